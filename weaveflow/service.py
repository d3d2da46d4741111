"""Workflow service: document lifecycle plus execution entry points."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel

from .architect import Architect
from .builder import DebugReport, debug_agent, improve_agent_prompt
from .contracts import (
    Agent,
    Execution,
    ExecutionResult,
    ExecutionStatus,
    Workflow,
    WorkflowInput,
    WorkflowStatus,
    WorkflowUpdate,
)
from .errors import NotFoundError
from .models.base import LanguageModel
from .orchestrator import Orchestrator
from .persistence import WorkflowStore
from .registry import ExecutionRegistry

logger = logging.getLogger(__name__)


class WorkflowSummary(BaseModel):
    id: str
    name: str
    status: WorkflowStatus
    last_run: Optional[datetime] = None
    agent_count: int
    connection_count: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowService:
    """Create, edit and run workflows on behalf of a user."""

    def __init__(
        self,
        store: WorkflowStore,
        model: LanguageModel,
        registry: Optional[ExecutionRegistry] = None,
    ) -> None:
        self.store = store
        self.model = model
        self.registry = registry if registry is not None else ExecutionRegistry()
        self.architect = Architect(model)

    async def list_workflows(self, user_id: str) -> List[Workflow]:
        return await self.store.list_workflows(user_id)

    async def get_workflow(self, workflow_id: str, user_id: str) -> Workflow:
        workflow = await self.store.get_workflow(workflow_id, user_id)
        if workflow is None:
            raise NotFoundError(f"Workflow {workflow_id} not found")
        return workflow

    async def create_workflow(self, data: WorkflowInput, user_id: str) -> Workflow:
        """Design agents for the problem statement and store a draft workflow."""
        plan = await self.architect.analyze(data.problem_statement)
        workflow = Workflow(
            user_id=user_id,
            name=data.name,
            description=data.description,
            problem_statement=data.problem_statement,
            agents=plan.agents,
            flow=plan.flow,
        )
        await self.store.save_workflow(workflow)
        logger.info(f"Created workflow {workflow.id} with {len(workflow.agents)} agents")
        return workflow

    async def update_workflow(
        self, workflow_id: str, changes: WorkflowUpdate, user_id: str
    ) -> Workflow:
        """Apply ``changes``; a new problem statement without agents is re-analyzed."""
        workflow = await self.get_workflow(workflow_id, user_id)
        fields = changes.model_dump(exclude_unset=True, exclude_none=True)

        if changes.problem_statement and changes.agents is None:
            plan = await self.architect.analyze(changes.problem_statement)
            fields["agents"] = plan.agents
            fields["flow"] = plan.flow
        else:
            if changes.agents is not None:
                fields["agents"] = changes.agents
            if changes.flow is not None:
                fields["flow"] = changes.flow

        fields["updated_at"] = _utcnow()
        updated = workflow.model_copy(update=fields)
        await self.store.save_workflow(updated)
        return updated

    async def delete_workflow(self, workflow_id: str, user_id: str) -> None:
        """Delete the document. Executions already running are not cancelled."""
        if not await self.store.delete_workflow(workflow_id, user_id):
            raise NotFoundError(f"Workflow {workflow_id} not found")
        logger.info(f"Deleted workflow {workflow_id}")

    async def get_agent(self, workflow_id: str, agent_id: str, user_id: str) -> Agent:
        workflow = await self.get_workflow(workflow_id, user_id)
        agent = workflow.get_agent(agent_id)
        if agent is None:
            raise NotFoundError(f"Agent {agent_id} not found in workflow {workflow_id}")
        return agent

    async def _replace_agent(
        self, workflow: Workflow, agent: Agent, user_id: str
    ) -> Workflow:
        agents = [agent if a.id == agent.id else a for a in workflow.agents]
        return await self.update_workflow(
            workflow.id, WorkflowUpdate(agents=agents), user_id
        )

    async def update_agent_prompt(
        self, workflow_id: str, agent_id: str, prompt: str, user_id: str
    ) -> Agent:
        if not prompt:
            raise ValueError("Prompt is required")
        workflow = await self.get_workflow(workflow_id, user_id)
        agent = await self.get_agent(workflow_id, agent_id, user_id)
        updated = agent.model_copy(update={"prompt": prompt})
        await self._replace_agent(workflow, updated, user_id)
        return updated

    async def improve_agent(
        self, workflow_id: str, agent_id: str, user_id: str, save: bool = False
    ) -> Agent:
        """Return the agent with a model-improved prompt, optionally saving it."""
        workflow = await self.get_workflow(workflow_id, user_id)
        agent = await self.get_agent(workflow_id, agent_id, user_id)
        prompt = await improve_agent_prompt(agent, self.model)
        improved = agent.model_copy(update={"prompt": prompt})
        if save:
            await self._replace_agent(workflow, improved, user_id)
        return improved

    async def debug_agent(
        self,
        workflow_id: str,
        agent_id: str,
        inputs: Dict[str, Any],
        user_id: str,
        save: bool = False,
    ) -> DebugReport:
        workflow = await self.get_workflow(workflow_id, user_id)
        agent = await self.get_agent(workflow_id, agent_id, user_id)
        report = await debug_agent(agent, inputs, self.model)
        if save and report.success and report.improved_agent is not None:
            await self._replace_agent(workflow, report.improved_agent, user_id)
        return report

    async def _mark_run(self, workflow_id: str, user_id: str) -> None:
        workflow = await self.store.get_workflow(workflow_id, user_id)
        if workflow is None:
            # Deleted while running.
            return
        workflow.last_run = _utcnow()
        workflow.updated_at = workflow.last_run
        await self.store.save_workflow(workflow)

    async def execute_workflow(
        self, workflow_id: str, inputs: Mapping[str, Any], user_id: str
    ) -> ExecutionResult:
        """Run the workflow to completion and stamp ``last_run``."""
        workflow = await self.get_workflow(workflow_id, user_id)
        logger.info(
            f"Executing workflow {workflow.name} with {len(workflow.agents)} agents"
        )
        orchestrator = Orchestrator(workflow, self.model)
        result = await orchestrator.execute(inputs)
        await self._mark_run(workflow_id, user_id)
        return result

    async def start_execution(
        self, workflow_id: str, inputs: Mapping[str, Any], user_id: str
    ) -> str:
        """Launch the workflow in the background and return the execution id."""
        workflow = await self.get_workflow(workflow_id, user_id)

        async def finished(execution: Execution) -> None:
            await self._mark_run(workflow_id, user_id)

        return self.registry.start(workflow, inputs, self.model, on_finished=finished)

    def poll_execution(self, execution_id: str) -> ExecutionStatus:
        return self.registry.poll(execution_id)

    async def workflow_status(self, workflow_id: str, user_id: str) -> WorkflowSummary:
        workflow = await self.get_workflow(workflow_id, user_id)
        return WorkflowSummary(
            id=workflow.id,
            name=workflow.name,
            status=workflow.status,
            last_run=workflow.last_run,
            agent_count=len(workflow.agents),
            connection_count=len(workflow.flow.connections),
        )
