import asyncio

import pytest

from taskpilot.errors import AgentExecutionError, TaskCancelledError
from taskpilot.tasks.base import AgentResponse, Artifact, ArtifactKind, TaskStatus
from taskpilot.tasks.runner import TaskRunner, dependencies_met


def collect_events():
    events = []

    def sink(event):
        events.append((event.sub_task.title, event.status))

    return events, sink


@pytest.mark.asyncio
async def test_dependency_on_failed_sibling_is_skipped(make_task, fake_router, fake_aggregator):
    task = make_task(("Design schema",), ("Build API", ["Design schema"]))
    router = fake_router({"Design schema": AgentExecutionError("Code Agent", "boom")})
    events, sink = collect_events()

    await TaskRunner(router, fake_aggregator()).execute(task, sink)

    design, build = task.sub_tasks
    assert design.status == TaskStatus.FAILED
    assert design.error == "boom"
    assert build.status == TaskStatus.FAILED
    assert build.error == "Dependencies not met"
    assert [title for title, _ in router.calls] == ["Design schema"]
    assert events == [("Design schema", "started"), ("Design schema", "failed")]


@pytest.mark.asyncio
async def test_middle_failure_does_not_halt_the_run(make_task, fake_router, fake_aggregator):
    task = make_task(("one",), ("two",), ("three",))
    router = fake_router({"one": "r1", "two": RuntimeError("agent crashed"), "three": "r3"})
    aggregator = fake_aggregator("synthesized")

    result = await TaskRunner(router, aggregator).execute(task)

    assert result is task
    assert [st.status for st in task.sub_tasks] == [
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
        TaskStatus.COMPLETED,
    ]
    assert task.sub_tasks[1].error == "agent crashed"
    assert task.status == TaskStatus.COMPLETED
    assert task.result == "synthesized"
    assert {key: value.message for key, value in aggregator.seen.items()} == {
        "task-1-sub-1": "r1",
        "task-1-sub-3": "r3",
    }


@pytest.mark.asyncio
async def test_progress_events_and_timestamps(make_task, fake_router, fake_aggregator):
    task = make_task(("a",), ("b",))
    events, sink = collect_events()

    await TaskRunner(fake_router(), fake_aggregator()).execute(task, sink)

    assert events == [("a", "started"), ("a", "completed"), ("b", "started"), ("b", "completed")]
    assert all(st.completed_at is not None for st in task.sub_tasks)
    assert task.sub_tasks[0].result == "done: a"


@pytest.mark.asyncio
async def test_async_sink_is_awaited_and_sink_errors_are_ignored(make_task, fake_router, fake_aggregator):
    task = make_task(("a",))
    seen = []

    async def sink(event):
        seen.append(event.status)
        raise ValueError("client went away")

    await TaskRunner(fake_router(), fake_aggregator()).execute(task, sink)

    assert seen == ["started", "completed"]
    assert task.status == TaskStatus.COMPLETED


@pytest.mark.asyncio
async def test_context_accumulates_results_and_artifacts(make_task, fake_router, fake_aggregator):
    chart = Artifact(kind=ArtifactKind.CHART, title="Growth")
    task = make_task(("research",), ("report", ["research"]))
    task.history.add("user", "Build app")
    router = fake_router({"research": AgentResponse(message="findings", artifacts=[chart])})

    await TaskRunner(router, fake_aggregator()).execute(task)

    (first_title, first_ctx), (second_title, second_ctx) = router.calls
    assert first_ctx.sub_task_id == "task-1-sub-1"
    assert second_ctx.sub_task_id == "task-1-sub-2"
    assert second_ctx.previous_results["task-1-sub-1"] == "findings"
    assert second_ctx.history[0].content == "Build app"
    assert task.artifacts == [chart]
    assert task.history.dump()[-1].role == "assistant"


@pytest.mark.asyncio
async def test_missing_dependency_title_counts_as_met(make_task, fake_router, fake_aggregator):
    task = make_task(("deploy", ["Provision servers"]))
    router = fake_router()

    await TaskRunner(router, fake_aggregator()).execute(task)

    assert task.sub_tasks[0].status == TaskStatus.COMPLETED
    assert dependencies_met(task, task.sub_tasks[0])


@pytest.mark.asyncio
async def test_zero_budget_times_out_every_sub_task(make_task, fake_router, fake_aggregator):
    task = make_task(("a",), ("b",))
    router = fake_router()
    events, sink = collect_events()

    await TaskRunner(router, fake_aggregator()).execute(task, sink, timeout=0)

    assert router.calls == []
    assert [st.error for st in task.sub_tasks] == ["Timed out", "Timed out"]
    assert events == [("a", "failed"), ("b", "failed")]
    assert task.status == TaskStatus.COMPLETED


@pytest.mark.asyncio
async def test_slow_agent_times_out_and_rest_is_not_run(make_task, fake_router, fake_aggregator):
    task = make_task(("fast",), ("slow",), ("never",))
    router = fake_router(delays={"slow": 5})
    aggregator = fake_aggregator()

    await TaskRunner(router, aggregator).execute(task, timeout=0.2)

    fast, slow, never = task.sub_tasks
    assert fast.status == TaskStatus.COMPLETED
    assert slow.error == "Timed out"
    assert never.error == "Timed out"
    assert [title for title, _ in router.calls] == ["fast", "slow"]
    assert list(aggregator.seen) == [fast.id]


@pytest.mark.asyncio
async def test_cancel_event_aborts_the_run(make_task, fake_router, fake_aggregator):
    task = make_task(("a",), ("b",))
    cancel = asyncio.Event()
    cancel.set()
    aggregator = fake_aggregator()

    with pytest.raises(TaskCancelledError):
        await TaskRunner(fake_router(), aggregator).execute(task, cancel_event=cancel)

    assert task.status == TaskStatus.FAILED
    assert task.error == "Cancelled"
    assert [st.error for st in task.sub_tasks] == ["Cancelled", "Cancelled"]
    assert aggregator.seen is None


@pytest.mark.asyncio
async def test_cancel_between_steps(make_task, fake_router, fake_aggregator):
    task = make_task(("a",), ("b",))
    cancel = asyncio.Event()

    def sink(event):
        if event.status == "completed":
            cancel.set()

    with pytest.raises(TaskCancelledError):
        await TaskRunner(fake_router(), fake_aggregator()).execute(task, sink, cancel_event=cancel)

    assert task.sub_tasks[0].status == TaskStatus.COMPLETED
    assert task.sub_tasks[1].error == "Cancelled"


@pytest.mark.asyncio
async def test_agent_timeout_error_is_an_ordinary_failure(make_task, fake_router, fake_aggregator):
    task = make_task(("one",), ("two",), ("three",))
    router = fake_router({"two": TimeoutError("upstream read timed out")})

    await TaskRunner(router, fake_aggregator()).execute(task)

    assert [(st.title, st.status, st.error) for st in task.sub_tasks] == [
        ("one", TaskStatus.COMPLETED, None),
        ("two", TaskStatus.FAILED, "upstream read timed out"),
        ("three", TaskStatus.COMPLETED, None),
    ]
    assert [title for title, _ in router.calls] == ["one", "two", "three"]


@pytest.mark.asyncio
async def test_agent_timeout_error_within_budget_keeps_running(make_task, fake_router, fake_aggregator):
    task = make_task(("one",), ("two",))
    router = fake_router({"one": TimeoutError("socket timeout")})

    await TaskRunner(router, fake_aggregator()).execute(task, timeout=30)

    assert task.sub_tasks[0].error == "socket timeout"
    assert task.sub_tasks[1].status == TaskStatus.COMPLETED
