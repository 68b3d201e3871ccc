import json

import pytest

from taskpilot.agents.code import CodeAgent
from taskpilot.agents.orchestrator import Orchestrator
from taskpilot.config import ConfigError, ProjectConfig
from taskpilot.errors import AggregationError, DecompositionError, ProviderError
from taskpilot.llm.provider import StaticResponseProvider
from taskpilot.tasks.base import AgentKind, ArtifactKind, TaskStatus


def answer(text):
    return json.dumps({"thought": "", "action": "final", "answer": text})


def test_orchestrator_builds_agents_from_config():
    orchestrator = Orchestrator(ProjectConfig.default(), provider=StaticResponseProvider())

    assert set(orchestrator.agents) == set(AgentKind)
    code = orchestrator.agents[AgentKind.CODE]
    assert isinstance(code, CodeAgent)
    assert code.name == "Code Agent"
    assert sorted(code.tools) == ["execute_code", "install_package", "run_tests", "write_file"]
    assert code.max_steps == 15


def test_providers_are_instantiated_from_config():
    config = ProjectConfig.from_mapping(
        {"defaults": {"llm_provider": "taskpilot.llm.provider:StaticResponseProvider"}}
    )

    orchestrator = Orchestrator(config)

    assert isinstance(orchestrator.decomposer.client.provider, StaticResponseProvider)


@pytest.mark.asyncio
async def test_execute_task_end_to_end(make_plan):
    provider = StaticResponseProvider(
        [
            make_plan(
                ("Build API", "code", 2, ["Design schema"]),
                ("Design schema", "code", 1, []),
            ),
            json.dumps(
                {
                    "action": "write_file",
                    "input": {"path": "schema.sql", "content": "create table t();", "language": "sql"},
                }
            ),
            answer("Schema designed"),
            answer("API built"),
            "Everything is done.",
        ]
    )
    orchestrator = Orchestrator(ProjectConfig.default(), provider=provider)
    task = orchestrator.new_task("Build app", "Schema and API", task_id="task-e2e")
    events = []

    result = await orchestrator.execute_task(
        task, lambda event: events.append((event.sub_task.title, event.status))
    )

    assert result.status == TaskStatus.COMPLETED
    assert result.result == "Everything is done."
    assert [st.title for st in result.sub_tasks] == ["Design schema", "Build API"]
    assert [st.result for st in result.sub_tasks] == ["Schema designed", "API built"]
    assert [artifact.kind for artifact in result.artifacts] == [ArtifactKind.CODE]
    assert events == [
        ("Design schema", "started"),
        ("Design schema", "completed"),
        ("Build API", "started"),
        ("Build API", "completed"),
    ]
    assert [record.role for record in result.history.dump()] == ["user", "assistant"]
    assert "Previous: task-e2e-sub-2\nSchema designed" in provider.calls[3]["prompt"]
    assert "## Design schema\nSchema designed" in provider.calls[4]["prompt"]


@pytest.mark.asyncio
async def test_decomposition_failure_marks_task_failed():
    orchestrator = Orchestrator(
        ProjectConfig.default(), provider=StaticResponseProvider([ProviderError("offline")])
    )
    task = orchestrator.new_task("t", "d")

    with pytest.raises(DecompositionError):
        await orchestrator.execute_task(task)

    assert task.status == TaskStatus.FAILED
    assert "offline" in task.error
    assert task.sub_tasks == []


@pytest.mark.asyncio
async def test_aggregation_failure_marks_task_failed(make_plan):
    provider = StaticResponseProvider(
        [make_plan(("Only", "research", 1, [])), answer("found it"), ProviderError("synthesis down")]
    )
    orchestrator = Orchestrator(ProjectConfig.default(), provider=provider)
    task = orchestrator.new_task("t", "d")

    with pytest.raises(AggregationError):
        await orchestrator.execute_task(task)

    assert task.status == TaskStatus.FAILED
    assert task.sub_tasks[0].status == TaskStatus.COMPLETED


@pytest.mark.asyncio
async def test_decompose_task_previews_without_running(make_plan):
    provider = StaticResponseProvider([make_plan(("Low", "code", 5, []), ("High", "research", 1, []))])
    orchestrator = Orchestrator(ProjectConfig.default(), provider=provider)
    task = orchestrator.new_task("t", "d")

    sub_tasks = await orchestrator.decompose_task(task)

    assert [st.title for st in sub_tasks] == ["High", "Low"]
    assert task.status == TaskStatus.PENDING
    assert len(provider.calls) == 1


def test_unknown_agent_tool_is_a_config_error():
    config = ProjectConfig.from_mapping({"agents": {"code": {"tools": ["write_file", "time_travel"]}}})

    with pytest.raises(ConfigError, match="Unknown tools: time_travel"):
        Orchestrator(config, provider=StaticResponseProvider())
