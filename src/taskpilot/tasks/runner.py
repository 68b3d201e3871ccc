"""Sequential execution of a decomposed task."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol, Sequence

from ..errors import CANCELLED, DEPENDENCIES_NOT_MET, TIMED_OUT, TaskCancelledError
from .base import AgentContext, AgentResponse, ProgressEvent, SubTask, Task, TaskStatus

logger = logging.getLogger(__name__)

ProgressSink = Callable[[ProgressEvent], Any]


class Router(Protocol):
    def route(self, sub_task: SubTask, context: AgentContext) -> Awaitable[AgentResponse]:
        ...


class ResultAggregator(Protocol):
    def aggregate(self, task: Task, results: Mapping[str, AgentResponse]) -> Awaitable[str]:
        ...


def dependencies_met(task: Task, sub_task: SubTask) -> bool:
    """Every dependency title must name a completed sibling or no sibling at all."""

    for title in sub_task.dependencies:
        sibling = task.find_sub_task(title)
        if sibling is not None and sibling.status != TaskStatus.COMPLETED:
            return False
    return True


class TaskRunner:
    """Executes sub-tasks in schedule order by dispatching them to the router.

    A failing sub-task never halts the loop. ``timeout`` is a wall-clock budget
    in seconds for the whole run: once spent, remaining sub-tasks fail with
    ``"Timed out"`` and the run proceeds to aggregation. ``cancel_event`` is
    checked between steps and aborts the run with :class:`TaskCancelledError`.
    """

    def __init__(self, router: Router, aggregator: ResultAggregator) -> None:
        self.router = router
        self.aggregator = aggregator

    async def execute(
        self,
        task: Task,
        on_progress: Optional[ProgressSink] = None,
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Task:
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        task.status = TaskStatus.IN_PROGRESS
        task.touch()

        results: Dict[str, AgentResponse] = {}
        context = AgentContext(task_id=task.id, history=task.history.dump())

        for index, sub_task in enumerate(task.sub_tasks):
            if cancel_event is not None and cancel_event.is_set():
                self._cancel(task, task.sub_tasks[index:])
                raise TaskCancelledError(f"Task {task.id} was cancelled")

            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                await self._time_out(task.sub_tasks[index:], on_progress)
                break

            if not dependencies_met(task, sub_task):
                sub_task.fail(DEPENDENCIES_NOT_MET)
                logger.info("Skipping %s (%s): dependencies not met", sub_task.id, sub_task.title)
                continue

            sub_task.start()
            await _emit(on_progress, sub_task, "started")
            try:
                call = self.router.route(sub_task, context.for_sub_task(sub_task.id))
                if remaining is None:
                    response = await call
                else:
                    response = await asyncio.wait_for(call, remaining)
            except asyncio.TimeoutError as exc:
                if deadline is None or loop.time() < deadline:
                    # raised by the agent itself, not by the run budget
                    await self._fail(sub_task, exc, on_progress)
                    continue
                sub_task.fail(TIMED_OUT)
                await _emit(on_progress, sub_task, "failed")
                await self._time_out(task.sub_tasks[index + 1 :], on_progress)
                break
            except Exception as exc:
                await self._fail(sub_task, exc, on_progress)
                continue

            results[sub_task.id] = response
            context.previous_results[sub_task.id] = response.message
            context.artifacts.extend(response.artifacts)
            sub_task.complete(response.message)
            logger.info("Sub-task %s completed", sub_task.id)
            await _emit(on_progress, sub_task, "completed")

        task.artifacts = list(context.artifacts)
        task.touch()
        task.result = await self.aggregator.aggregate(task, results)
        task.history.add("assistant", task.result)
        task.status = TaskStatus.COMPLETED
        task.touch()
        return task

    async def _fail(
        self, sub_task: SubTask, exc: Exception, on_progress: Optional[ProgressSink]
    ) -> None:
        sub_task.fail(str(exc) or exc.__class__.__name__)
        logger.warning("Sub-task %s failed: %s", sub_task.id, sub_task.error)
        await _emit(on_progress, sub_task, "failed")

    async def _time_out(self, sub_tasks: Sequence[SubTask], on_progress: Optional[ProgressSink]) -> None:
        for sub_task in sub_tasks:
            if sub_task.is_terminal:
                continue
            sub_task.fail(TIMED_OUT)
            await _emit(on_progress, sub_task, "failed")
        if sub_tasks:
            logger.warning("Time budget spent; %d sub-tasks not run", len(sub_tasks))

    def _cancel(self, task: Task, sub_tasks: Sequence[SubTask]) -> None:
        for sub_task in sub_tasks:
            if not sub_task.is_terminal:
                sub_task.fail(CANCELLED)
        task.status = TaskStatus.FAILED
        task.error = CANCELLED
        task.touch()
        logger.info("Task %s cancelled with %d sub-tasks left", task.id, len(sub_tasks))


async def _emit(on_progress: Optional[ProgressSink], sub_task: SubTask, status: str) -> None:
    if on_progress is None:
        return
    try:
        outcome = on_progress(ProgressEvent(sub_task=sub_task, status=status))
        if inspect.isawaitable(outcome):
            await outcome
    except Exception:
        logger.exception("Progress sink failed for %s (%s)", sub_task.id, status)
