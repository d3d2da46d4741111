"""Store abstraction for workflow documents."""

from __future__ import annotations

from typing import Protocol

from ..contracts import Workflow


class WorkflowStore(Protocol):
    """Protocol for workflow document persistence backends.

    Every lookup is scoped to the owning user.
    """

    async def save_workflow(self, workflow: Workflow) -> Workflow:
        """Insert or replace a workflow document."""

    async def get_workflow(self, workflow_id: str, user_id: str) -> Workflow | None:
        """Retrieve a workflow owned by ``user_id``."""

    async def list_workflows(self, user_id: str) -> list[Workflow]:
        """Return the user's workflows, most recently updated first."""

    async def delete_workflow(self, workflow_id: str, user_id: str) -> bool:
        """Delete a workflow; ``False`` when nothing matched."""
