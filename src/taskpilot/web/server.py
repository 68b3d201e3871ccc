"""FastAPI server that runs tasks and streams sub-task progress to clients."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, AsyncIterator, Dict, List, Optional, Set

from fastapi import Depends, FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from .. import __version__
from ..agents.orchestrator import Orchestrator
from ..config import ProjectConfig
from ..tasks.base import ProgressEvent, Task

logger = logging.getLogger(__name__)

app = FastAPI(title="taskpilot", version=__version__)

MISSING_FIELDS = "Title and description are required"
TERMINAL_EVENTS = ("task_complete", "error")


@lru_cache(maxsize=1)
def get_orchestrator() -> Orchestrator:
    return Orchestrator(ProjectConfig.from_env())


class TaskRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    stream: bool = True


@dataclass
class RunState:
    task: Task
    history: List[Dict[str, Any]] = field(default_factory=list)
    subscribers: List[asyncio.Queue] = field(default_factory=list)
    job: asyncio.Task | None = None
    completed: bool = False
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)


RUNS: Dict[str, RunState] = {}
_BACKGROUND: Set[asyncio.Task] = set()


def sse(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event)}\n\n"


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _missing_fields(request: TaskRequest) -> bool:
    return not request.title or not request.description


def task_created_event(task: Task) -> Dict[str, Any]:
    return {"type": "task_created", "task": {"id": task.id, "title": task.title, "status": "pending"}}


def subtask_update_event(event: ProgressEvent) -> Dict[str, Any]:
    return {"type": "subtask_update", "subTask": event.as_dict()}


async def run_task(
    orchestrator: Orchestrator,
    task: Task,
    publish,
    cancel_event: asyncio.Event,
) -> None:
    """Execute ``task`` and publish every event, ending with a terminal one."""

    try:
        result = await orchestrator.execute_task(
            task,
            on_progress=lambda event: publish(subtask_update_event(event)),
            timeout=orchestrator.config.execution.timeout,
            cancel_event=cancel_event,
        )
    except Exception as exc:
        logger.exception("Run for %s failed", task.id)
        await _maybe_await(publish({"type": "error", "error": str(exc) or "Unknown error"}))
        return
    await _maybe_await(publish({"type": "task_complete", "task": result.summary()}))


async def _maybe_await(value: Any) -> None:
    if asyncio.iscoroutine(value):
        await value


def _spawn(coro) -> asyncio.Task:
    job = asyncio.create_task(coro)
    _BACKGROUND.add(job)
    job.add_done_callback(_BACKGROUND.discard)
    return job


async def stream_task(orchestrator: Orchestrator, task: Task) -> AsyncIterator[str]:
    queue: asyncio.Queue = asyncio.Queue()
    cancel_event = asyncio.Event()
    yield sse(task_created_event(task))
    job = _spawn(run_task(orchestrator, task, queue.put_nowait, cancel_event))
    try:
        while True:
            event = await queue.get()
            yield sse(event)
            if event["type"] in TERMINAL_EVENTS:
                break
    finally:
        if not job.done():
            logger.info("Client left while %s was running; cancelling", task.id)
            cancel_event.set()


@app.post("/api/agent")
async def run_agent(
    request: TaskRequest, orchestrator: Orchestrator = Depends(get_orchestrator)
):
    if _missing_fields(request):
        return _error(MISSING_FIELDS, 400)
    task = orchestrator.new_task(request.title, request.description)
    logger.info("Starting %s: %s", task.id, task.title)
    if request.stream:
        return StreamingResponse(
            stream_task(orchestrator, task),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )
    try:
        result = await orchestrator.execute_task(task, timeout=orchestrator.config.execution.timeout)
    except Exception as exc:
        logger.exception("Agent API error")
        return _error(str(exc) or "An error occurred", 500)
    return JSONResponse(result.as_dict())


async def _preview(request: TaskRequest, orchestrator: Orchestrator):
    if _missing_fields(request):
        return _error(MISSING_FIELDS, 400)
    task = orchestrator.new_task(request.title, request.description)
    task.id = f"preview-{uuid.uuid4().hex[:12]}"
    try:
        sub_tasks = await orchestrator.decompose_task(task)
    except Exception as exc:
        logger.exception("Decompose API error")
        return _error(str(exc) or "An error occurred", 500)
    return {
        "task": {"id": task.id, "title": task.title, "description": task.description},
        "subTasks": [
            {
                "title": st.title,
                "description": st.description,
                "agent": st.agent_name,
                "priority": st.priority,
                "dependencies": list(st.dependencies),
            }
            for st in sub_tasks
        ],
    }


@app.post("/api/agent/decompose")
async def decompose(request: TaskRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
    return await _preview(request, orchestrator)


@app.put("/api/agent")
async def decompose_put(request: TaskRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
    return await _preview(request, orchestrator)


@app.get("/api/agents")
async def list_agents(orchestrator: Orchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    return {
        "agents": [
            {
                "type": kind.value,
                "name": agent.name,
                "description": agent.description,
                "tools": sorted(agent.tools),
                "engine": orchestrator.config.agents[kind].engine,
            }
            for kind, agent in orchestrator.agents.items()
        ]
    }


@app.post("/api/runs")
async def start_run(request: TaskRequest, orchestrator: Orchestrator = Depends(get_orchestrator)):
    if _missing_fields(request):
        return _error(MISSING_FIELDS, 400)
    task = orchestrator.new_task(request.title, request.description)
    run_id = str(uuid.uuid4())
    state = RunState(task=task)
    RUNS[run_id] = state

    async def broadcast(event: Dict[str, Any]) -> None:
        state.history.append(event)
        if event["type"] in TERMINAL_EVENTS:
            state.completed = True
        for queue in list(state.subscribers):
            await queue.put(event)

    async def execute() -> None:
        await broadcast(task_created_event(task))
        await run_task(orchestrator, task, broadcast, state.cancel_event)
        if not state.subscribers:
            RUNS.pop(run_id, None)

    state.job = _spawn(execute())
    return {"run_id": run_id, "task_id": task.id}


async def _client_gone(websocket: WebSocket) -> None:
    while (await websocket.receive())["type"] != "websocket.disconnect":
        pass


@app.websocket("/ws/{run_id}")
async def websocket_endpoint(websocket: WebSocket, run_id: str) -> None:
    if run_id not in RUNS:
        await websocket.close(code=1008)
        return
    state = RUNS[run_id]
    queue: asyncio.Queue = asyncio.Queue()
    # snapshot and subscribe without yielding so no event is missed or sent twice
    replay = list(state.history)
    state.subscribers.append(queue)
    await websocket.accept()
    gone = asyncio.create_task(_client_gone(websocket))
    try:
        for event in replay:
            await websocket.send_text(json.dumps(event))
        finished = any(event["type"] in TERMINAL_EVENTS for event in replay)
        while not finished:
            next_event = asyncio.create_task(queue.get())
            await asyncio.wait({next_event, gone}, return_when=asyncio.FIRST_COMPLETED)
            if not next_event.done():
                next_event.cancel()
                raise WebSocketDisconnect()
            event = next_event.result()
            await websocket.send_text(json.dumps(event))
            finished = event["type"] in TERMINAL_EVENTS
        await websocket.close()
    except WebSocketDisconnect:
        logger.info("Subscriber left run %s", run_id)
    finally:
        gone.cancel()
        if queue in state.subscribers:
            state.subscribers.remove(queue)
        if not state.subscribers:
            if state.completed:
                RUNS.pop(run_id, None)
            else:
                logger.info("Last subscriber left run %s; cancelling", run_id)
                state.cancel_event.set()
