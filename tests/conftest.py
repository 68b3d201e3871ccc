import asyncio
import json

import pytest

from taskpilot.tasks.base import AgentKind, AgentResponse, SubTask, Task


class FakeRouter:
    """Returns canned responses keyed by sub-task title and records every call."""

    def __init__(self, responses=None, delays=None):
        self.responses = responses or {}
        self.delays = delays or {}
        self.calls = []

    async def route(self, sub_task, context):
        self.calls.append((sub_task.title, context))
        delay = self.delays.get(sub_task.title)
        if delay:
            await asyncio.sleep(delay)
        outcome = self.responses.get(sub_task.title, f"done: {sub_task.title}")
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, AgentResponse):
            return outcome
        return AgentResponse(message=outcome)


class FakeAggregator:
    def __init__(self, result="final answer"):
        self.result = result
        self.seen = None

    async def aggregate(self, task, results):
        self.seen = dict(results)
        return self.result


@pytest.fixture
def make_sub_task():
    counter = {"n": 0}

    def factory(title, dependencies=(), priority=3, agent=AgentKind.CODE, parent_id="task-1"):
        counter["n"] += 1
        return SubTask(
            id=f"{parent_id}-sub-{counter['n']}",
            parent_id=parent_id,
            title=title,
            description=f"{title} description",
            assigned_agent=agent,
            priority=priority,
            dependencies=list(dependencies),
        )

    return factory


@pytest.fixture
def make_task(make_sub_task):
    def factory(*specs):
        task = Task(title="Build app", description="Build a small app", id="task-1")
        task.sub_tasks = [make_sub_task(*spec) for spec in specs]
        return task

    return factory


@pytest.fixture
def fake_router():
    return FakeRouter


@pytest.fixture
def fake_aggregator():
    return FakeAggregator


def plan_json(*entries, analysis="analysis", execution_plan="plan"):
    """Serialize a decomposition plan the way a model would return it."""

    sub_tasks = [
        {
            "title": title,
            "description": f"{title} description",
            "assignedAgent": agent,
            "priority": priority,
            "dependencies": list(dependencies),
        }
        for title, agent, priority, dependencies in entries
    ]
    return json.dumps({"analysis": analysis, "subTasks": sub_tasks, "executionPlan": execution_plan})


@pytest.fixture
def make_plan():
    return plan_json
