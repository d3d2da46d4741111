"""Tests for workflow document stores."""

from datetime import datetime, timedelta, timezone

import pytest

from tests.fixtures.workflows import connect, make_agent, make_workflow
from weaveflow.contracts import Workflow
from weaveflow.persistence import InMemoryWorkflowStore, SQLiteWorkflowStore


def _store(kind, tmp_path):
    if kind == "sqlite":
        return SQLiteWorkflowStore(tmp_path / "wf.db")
    return InMemoryWorkflowStore()


def _workflow(workflow_id, user_id="user-1", updated_minutes_ago=0):
    workflow = make_workflow(
        [make_agent("a", outputs=["x: string"]), make_agent("b", inputs=["x"])],
        [connect("a", "b")],
        user_id=user_id,
    )
    workflow.id = workflow_id
    workflow.updated_at = datetime.now(timezone.utc) - timedelta(
        minutes=updated_minutes_ago
    )
    return workflow


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", ["memory", "sqlite"])
async def test_store_crud(kind, tmp_path):
    store = _store(kind, tmp_path)
    workflow = _workflow("wf-1")

    await store.save_workflow(workflow)
    loaded = await store.get_workflow("wf-1", "user-1")

    assert isinstance(loaded, Workflow)
    assert loaded.model_dump() == workflow.model_dump()
    assert loaded.flow.connections[0].source == "a"

    loaded.name = "renamed"
    await store.save_workflow(loaded)
    assert (await store.get_workflow("wf-1", "user-1")).name == "renamed"

    assert await store.delete_workflow("wf-1", "user-1") is True
    assert await store.get_workflow("wf-1", "user-1") is None
    assert await store.delete_workflow("wf-1", "user-1") is False


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", ["memory", "sqlite"])
async def test_store_is_scoped_to_owner(kind, tmp_path):
    store = _store(kind, tmp_path)
    await store.save_workflow(_workflow("wf-1", user_id="alice"))

    assert await store.get_workflow("wf-1", "bob") is None
    assert await store.list_workflows("bob") == []
    assert await store.delete_workflow("wf-1", "bob") is False
    assert await store.get_workflow("wf-1", "alice") is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", ["memory", "sqlite"])
async def test_list_orders_by_most_recent_update(kind, tmp_path):
    store = _store(kind, tmp_path)
    await store.save_workflow(_workflow("old", updated_minutes_ago=30))
    await store.save_workflow(_workflow("new", updated_minutes_ago=1))
    await store.save_workflow(_workflow("mid", updated_minutes_ago=10))

    listed = await store.list_workflows("user-1")

    assert [wf.id for wf in listed] == ["new", "mid", "old"]


@pytest.mark.asyncio
async def test_memory_store_returns_copies():
    store = InMemoryWorkflowStore()
    workflow = _workflow("wf-1")
    await store.save_workflow(workflow)

    workflow.agents.clear()
    loaded = await store.get_workflow("wf-1", "user-1")
    loaded.agents.clear()

    assert len((await store.get_workflow("wf-1", "user-1")).agents) == 2


@pytest.mark.asyncio
async def test_sqlite_store_survives_reopen(tmp_path):
    db_path = tmp_path / "wf.db"
    store = SQLiteWorkflowStore(db_path)
    await store.save_workflow(_workflow("wf-1"))
    store.close()

    reopened = SQLiteWorkflowStore(db_path)
    assert (await reopened.get_workflow("wf-1", "user-1")).agents[0].id == "a"
    reopened.close()
