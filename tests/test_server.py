import asyncio
import json
import threading
import time

import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from taskpilot.agents.orchestrator import Orchestrator
from taskpilot.config import ProjectConfig
from taskpilot.errors import ProviderError
from taskpilot.llm.provider import StaticResponseProvider
from taskpilot.tasks.base import TaskStatus
from taskpilot.web.server import RUNS, app, get_orchestrator, stream_task


def final(text):
    return json.dumps({"action": "final", "answer": text})


def gated(gate, text):
    """A reply that waits for ``gate`` before answering."""

    def reply(system, prompt):
        gate.wait(5)
        return final(text)

    return reply


def wait_until(condition, timeout=5.0):
    deadline = time.monotonic() + timeout
    while not condition():
        assert time.monotonic() < deadline, "condition not reached in time"
        time.sleep(0.01)


@pytest.fixture
def serve(make_plan):
    """Install an orchestrator replaying ``responses`` and yield a client."""

    def factory(*responses):
        orchestrator = Orchestrator(
            ProjectConfig.from_mapping({"execution": {"timeout": 30}}),
            provider=StaticResponseProvider(responses),
        )
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        return TestClient(app)

    yield factory
    app.dependency_overrides.clear()
    RUNS.clear()


def two_step_plan(make_plan):
    return make_plan(("Research", "research", 1, []), ("Report", "code", 2, ["Research"]))


def parse_sse(body):
    return [json.loads(chunk[len("data: "):]) for chunk in body.split("\n\n") if chunk.startswith("data: ")]


@pytest.mark.parametrize("payload", [{}, {"title": "t"}, {"description": "d"}, {"title": "", "description": "d"}])
def test_missing_fields_are_rejected(serve, payload):
    client = serve()

    for method, url in (("post", "/api/agent"), ("post", "/api/agent/decompose"), ("put", "/api/agent")):
        response = client.request(method.upper(), url, json=payload)
        assert response.status_code == 400
        assert response.json() == {"error": "Title and description are required"}


def test_stream_emits_lifecycle_events(serve, make_plan):
    client = serve(two_step_plan(make_plan), final("facts"), final("report"), "summary")

    response = client.post("/api/agent", json={"title": "Study", "description": "Research then report"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    events = parse_sse(response.text)
    assert [event["type"] for event in events] == [
        "task_created",
        "subtask_update",
        "subtask_update",
        "subtask_update",
        "subtask_update",
        "task_complete",
    ]
    assert events[0]["task"]["title"] == "Study"
    assert events[0]["task"]["status"] == "pending"
    assert [(e["subTask"]["title"], e["subTask"]["status"]) for e in events[1:5]] == [
        ("Research", "started"),
        ("Research", "completed"),
        ("Report", "started"),
        ("Report", "completed"),
    ]
    assert events[1]["subTask"]["agent"] == "research"
    done = events[-1]["task"]
    assert done["status"] == "completed"
    assert done["result"] == "summary"
    assert [st["result"] for st in done["subTasks"]] == ["facts", "report"]


def test_stream_reports_decomposition_error(serve):
    client = serve("this is not a plan")

    events = parse_sse(client.post("/api/agent", json={"title": "t", "description": "d"}).text)

    assert [event["type"] for event in events] == ["task_created", "error"]
    assert "Task decomposition failed" in events[-1]["error"]


def test_non_streaming_returns_task(serve, make_plan):
    client = serve(two_step_plan(make_plan), final("facts"), final("report"), "summary")

    response = client.post("/api/agent", json={"title": "t", "description": "d", "stream": False})

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["result"] == "summary"
    assert [st["status"] for st in body["subTasks"]] == ["completed", "completed"]
    assert body["messages"][0]["role"] == "user"


def test_non_streaming_error_is_500(serve, make_plan):
    client = serve(make_plan(("Only", "code", 1, [])), final("x"), ProviderError("synthesis down"))

    response = client.post("/api/agent", json={"title": "t", "description": "d", "stream": False})

    assert response.status_code == 500
    assert "synthesis down" in response.json()["error"]


@pytest.mark.parametrize("method, url", [("POST", "/api/agent/decompose"), ("PUT", "/api/agent")])
def test_decompose_preview(serve, make_plan, method, url):
    client = serve(two_step_plan(make_plan))

    body = client.request(method, url, json={"title": "t", "description": "d"}).json()

    assert body["task"]["id"].startswith("preview-")
    assert body["subTasks"] == [
        {
            "title": "Research",
            "description": "Research description",
            "agent": "research",
            "priority": 1,
            "dependencies": [],
        },
        {
            "title": "Report",
            "description": "Report description",
            "agent": "code",
            "priority": 2,
            "dependencies": ["Research"],
        },
    ]


def test_list_agents(serve):
    body = serve().get("/api/agents").json()

    assert [agent["type"] for agent in body["agents"]] == ["code", "research", "presentation", "multimodal"]
    assert body["agents"][0]["name"] == "Code Agent"
    assert body["agents"][0]["engine"] == "native"


def test_websocket_replays_run_events(serve, make_plan):
    gate = threading.Event()
    with serve(two_step_plan(make_plan), gated(gate, "facts"), final("report"), "summary") as client:
        started = client.post("/api/runs", json={"title": "t", "description": "d"}).json()
        assert started["task_id"].startswith("task-")

        events = []
        with client.websocket_connect(f"/ws/{started['run_id']}") as websocket:
            events.append(websocket.receive_json())
            gate.set()
            while not events or events[-1]["type"] not in ("task_complete", "error"):
                events.append(websocket.receive_json())

    assert events[0]["type"] == "task_created"
    assert events[-1]["type"] == "task_complete"
    assert events[-1]["task"]["result"] == "summary"


def test_websocket_unknown_run_is_closed(serve):
    client = serve()

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/missing") as websocket:
            websocket.receive_json()


def test_unwatched_run_is_dropped_when_complete(serve, make_plan):
    with serve(two_step_plan(make_plan), final("facts"), final("report"), "summary") as client:
        run_id = client.post("/api/runs", json={"title": "t", "description": "d"}).json()["run_id"]
        state = RUNS.get(run_id)

        wait_until(lambda: run_id not in RUNS)

    assert state is None or state.completed


def test_last_subscriber_leaving_cancels_the_run(serve, make_plan):
    gate = threading.Event()
    with serve(two_step_plan(make_plan), gated(gate, "facts"), final("report"), "summary") as client:
        run_id = client.post("/api/runs", json={"title": "t", "description": "d"}).json()["run_id"]
        state = RUNS[run_id]

        with client.websocket_connect(f"/ws/{run_id}") as websocket:
            assert websocket.receive_json()["type"] == "task_created"
        wait_until(state.cancel_event.is_set)
        gate.set()
        wait_until(lambda: state.completed)

    assert state.history[-1]["type"] == "error"
    research, report = state.task.sub_tasks
    assert research.status == TaskStatus.COMPLETED
    assert report.error == "Cancelled"
    assert state.task.status == TaskStatus.FAILED
    assert run_id not in RUNS


@pytest.mark.asyncio
async def test_closing_the_event_stream_cancels_the_run(make_plan):
    gate = threading.Event()
    orchestrator = Orchestrator(
        ProjectConfig.default(),
        provider=StaticResponseProvider(
            [two_step_plan(make_plan), gated(gate, "facts"), final("report"), "summary"]
        ),
    )
    task = orchestrator.new_task("t", "d")
    stream = stream_task(orchestrator, task)

    assert '"task_created"' in await stream.__anext__()
    started = await stream.__anext__()
    assert '"started"' in started and '"Research"' in started
    await stream.aclose()
    gate.set()

    for _ in range(500):
        if task.status == TaskStatus.FAILED:
            break
        await asyncio.sleep(0.01)

    assert task.status == TaskStatus.FAILED
    assert task.error == "Cancelled"
    assert task.sub_tasks[0].status == TaskStatus.COMPLETED
    assert task.sub_tasks[1].error == "Cancelled"
