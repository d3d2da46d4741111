"""Tests for the in-memory execution registry."""

import asyncio

import pytest

from tests.fixtures.workflows import by_agent, connect, make_agent, make_workflow, reply
from weaveflow.contracts import ExecutionState, ExecutionUpdate, UpdateType
from weaveflow.errors import ModelInvocationError, NotFoundError
from weaveflow.models import ScriptedLanguageModel
from weaveflow.registry import ExecutionRegistry


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _workflow():
    return make_workflow(
        [
            make_agent("a", inputs=["text"], outputs=["summary"]),
            make_agent("b", inputs=["summary"], outputs=["keywords"]),
        ],
        [connect("a", "b")],
    )


def _model(**kwargs):
    return ScriptedLanguageModel(
        responder=by_agent(
            {"a": reply({"summary": "S"}), "b": reply({"keywords": "K"})}
        ),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_start_returns_immediately_and_poll_reports_progress():
    registry = ExecutionRegistry()

    execution_id = registry.start(_workflow(), {"text": "T"}, _model(delay=0.01))
    status = registry.poll(execution_id)
    assert not status.is_complete

    result = await registry.wait(execution_id)
    assert result.results == {"summary": "S", "keywords": "K"}

    status = registry.poll(execution_id)
    assert status.is_complete
    assert status.state == ExecutionState.FINISHED
    assert status.updates[-1].type == UpdateType.COMPLETE
    assert [u.type for u in status.updates].count(UpdateType.COMPLETE) == 1


@pytest.mark.asyncio
async def test_execution_ids_embed_workflow_id_and_stay_unique():
    registry = ExecutionRegistry(clock=FakeClock(1234.5))
    workflow = _workflow()

    first = registry.start(workflow, {"text": "T"}, _model())
    second = registry.start(workflow, {"text": "T"}, _model())

    assert first == "wf-1-1234500"
    assert second != first
    assert second.startswith("wf-1-1234500")
    await asyncio.gather(registry.wait(first), registry.wait(second))


def test_poll_unknown_execution_raises():
    registry = ExecutionRegistry()
    with pytest.raises(NotFoundError):
        registry.poll("nope")


def test_sweep_expired_removes_finished_executions_after_retention():
    clock = FakeClock(100.0)
    registry = ExecutionRegistry(retention_seconds=3600, clock=clock)
    finished = registry.create("wf-1")
    running = registry.create("wf-2")

    registry.append(
        finished.id, ExecutionUpdate(type=UpdateType.COMPLETE, message="done")
    )
    registry.append(running.id, ExecutionUpdate(type=UpdateType.START, message="go"))
    assert finished.completed_at.timestamp() == 100.0

    assert registry.sweep_expired(now=100.0 + 3599) == 0
    assert registry.sweep_expired(now=100.0 + 3600) == 1
    assert finished.id not in registry
    assert running.id in registry
    with pytest.raises(NotFoundError):
        registry.poll(finished.id)


def test_completed_at_set_once():
    clock = FakeClock(10.0)
    registry = ExecutionRegistry(clock=clock)
    execution = registry.create("wf")

    registry.append(execution.id, ExecutionUpdate(type=UpdateType.ERROR, message="x"))
    clock.now = 20.0
    registry.append(execution.id, ExecutionUpdate(type=UpdateType.ERROR, message="y"))

    assert execution.completed_at.timestamp() == 10.0
    assert execution.started_at.timestamp() == 10.0


@pytest.mark.asyncio
async def test_finished_execution_removed_after_retention_window():
    registry = ExecutionRegistry(retention_seconds=0.01)

    execution_id = registry.start(_workflow(), {"text": "T"}, _model())
    await registry.wait(execution_id)
    assert execution_id in registry

    await asyncio.sleep(0.05)
    assert execution_id not in registry
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_failed_execution_completes_with_error():
    registry = ExecutionRegistry()
    model = ScriptedLanguageModel(replies=[ModelInvocationError("quota exceeded")])

    execution_id = registry.start(_workflow(), {"text": "T"}, model)
    assert await registry.wait(execution_id) is None

    status = registry.poll(execution_id)
    assert status.is_complete
    assert status.state == ExecutionState.FAILED
    assert status.updates[-1].type == UpdateType.ERROR
    assert "quota exceeded" in status.updates[-1].message


@pytest.mark.asyncio
async def test_interrupt_marks_execution_failed():
    registry = ExecutionRegistry()

    execution_id = registry.start(_workflow(), {"text": "T"}, _model(delay=0.05))
    await asyncio.sleep(0)
    registry.interrupt(execution_id, "Cancelled by user")
    await registry.wait(execution_id)

    status = registry.poll(execution_id)
    assert status.is_complete
    assert status.state == ExecutionState.FAILED
    assert status.updates[-1].message == "Cancelled by user"
    assert UpdateType.COMPLETE not in [u.type for u in status.updates]


@pytest.mark.asyncio
async def test_on_finished_callback_receives_execution():
    registry = ExecutionRegistry()
    finished = []

    async def on_finished(execution):
        finished.append(execution.id)

    execution_id = registry.start(
        _workflow(), {"text": "T"}, _model(), on_finished=on_finished
    )
    await registry.wait(execution_id)

    assert finished == [execution_id]


@pytest.mark.asyncio
async def test_concurrent_executions_keep_separate_update_streams():
    registry = ExecutionRegistry()
    first = _workflow()
    second = make_workflow(
        [
            make_agent("c", inputs=["text"], outputs=["title"]),
            make_agent("d", inputs=["title"], outputs=["tags"]),
        ],
        [connect("c", "d")],
    ).model_copy(update={"id": "wf-2"})
    second_model = ScriptedLanguageModel(
        responder=by_agent({"c": reply({"title": "C"}), "d": reply({"tags": "D"})}),
        delay=0.015,
    )

    first_id = registry.start(first, {"text": "T1"}, _model(delay=0.01))
    second_id = registry.start(second, {"text": "T2"}, second_model)
    await asyncio.gather(registry.wait(first_id), registry.wait(second_id))

    expected_types = [
        UpdateType.START,
        UpdateType.AGENT_START,
        UpdateType.AGENT_COMPLETE,
        UpdateType.AGENT_START,
        UpdateType.AGENT_COMPLETE,
        UpdateType.COMPLETE,
    ]
    expected_agents = {first_id: ["a", "a", "b", "b"], second_id: ["c", "c", "d", "d"]}
    for execution_id, agent_ids in expected_agents.items():
        updates = registry.poll(execution_id).updates
        assert [u.type for u in updates] == expected_types
        assert [u.agent.id for u in updates if u.agent is not None] == agent_ids

    assert registry.poll(first_id).updates[-1].data["results"] == {
        "summary": "S",
        "keywords": "K",
    }
    assert registry.poll(second_id).updates[-1].data["results"] == {
        "title": "C",
        "tags": "D",
    }
