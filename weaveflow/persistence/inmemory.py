"""In-memory implementation of the workflow store."""

from __future__ import annotations

from typing import Dict

from ..contracts import Workflow
from .repository import WorkflowStore


class InMemoryWorkflowStore(WorkflowStore):
    """Store workflow documents in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, Workflow] = {}

    async def save_workflow(self, workflow: Workflow) -> Workflow:
        self._workflows[workflow.id] = workflow.model_copy(deep=True)
        return workflow

    async def get_workflow(self, workflow_id: str, user_id: str) -> Workflow | None:
        wf = self._workflows.get(workflow_id)
        if wf is None or wf.user_id != user_id:
            return None
        return wf.model_copy(deep=True)

    async def list_workflows(self, user_id: str) -> list[Workflow]:
        owned = [wf for wf in self._workflows.values() if wf.user_id == user_id]
        owned.sort(key=lambda wf: wf.updated_at, reverse=True)
        return [wf.model_copy(deep=True) for wf in owned]

    async def delete_workflow(self, workflow_id: str, user_id: str) -> bool:
        wf = self._workflows.get(workflow_id)
        if wf is None or wf.user_id != user_id:
            return False
        del self._workflows[workflow_id]
        return True
