"""Core data contracts for weaveflow workflows."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .naming import FieldSpec, parse_field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Agent(BaseModel):
    """One unit of work executed by delegating to a language model."""

    id: str
    name: str
    description: str = ""
    role: str = ""
    prompt: str = ""
    inputs: List[str] = Field(default_factory=list)
    outputs: List[str] = Field(default_factory=list)

    @property
    def input_fields(self) -> List[FieldSpec]:
        return [parse_field(name) for name in self.inputs]

    @property
    def output_fields(self) -> List[FieldSpec]:
        return [parse_field(name) for name in self.outputs]

    def declares_output(self, name: str) -> Optional[FieldSpec]:
        """Return the declared output field named ``name``, if any."""
        for field in self.output_fields:
            if field.name == name:
                return field
        return None


class Connection(BaseModel):
    """Directed edge: ``target`` consumes outputs of ``source``."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(alias="from")
    target: str = Field(alias="to")
    description: str = ""


class WorkflowFlow(BaseModel):
    """Edge set of a workflow plus human readable commentary."""

    description: str = ""
    connections: List[Connection] = Field(default_factory=list)


class WorkflowStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class Workflow(BaseModel):
    """A named graph of agents owned by a user."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str
    name: str
    description: str = ""
    problem_statement: str = ""
    agents: List[Agent] = Field(default_factory=list)
    flow: WorkflowFlow = Field(default_factory=WorkflowFlow)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    last_run: Optional[datetime] = None
    status: WorkflowStatus = WorkflowStatus.DRAFT

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        return next((a for a in self.agents if a.id == agent_id), None)


class WorkflowInput(BaseModel):
    """User supplied fields for creating a workflow."""

    name: str
    description: str = ""
    problem_statement: str


class WorkflowUpdate(BaseModel):
    """Partial update of a workflow document."""

    name: Optional[str] = None
    description: Optional[str] = None
    problem_statement: Optional[str] = None
    agents: Optional[List[Agent]] = None
    flow: Optional[WorkflowFlow] = None
    status: Optional[WorkflowStatus] = None


class UpdateType(str, Enum):
    START = "start"
    AGENT_START = "agent-start"
    AGENT_COMPLETE = "agent-complete"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_UPDATES = (UpdateType.COMPLETE, UpdateType.ERROR)


class ExecutionUpdate(BaseModel):
    """Lifecycle event emitted while a workflow executes."""

    type: UpdateType
    message: str
    agent: Optional[Agent] = None
    data: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_UPDATES


class AgentOutput(BaseModel):
    """Validated return value of one agent invocation."""

    result: Dict[str, Any] = Field(default_factory=dict)
    reasoning: str = ""


class ExecutionResult(BaseModel):
    """Return value of a completed orchestrator run."""

    results: Dict[str, Any] = Field(default_factory=dict)
    agent_outputs: Dict[str, AgentOutput] = Field(default_factory=dict)
    updates: List[ExecutionUpdate] = Field(default_factory=list)


class ExecutionState(str, Enum):
    IDLE = "idle"
    EXECUTING = "executing"
    FINISHED = "finished"
    FAILED = "failed"


class Execution(BaseModel):
    """Runtime record of one workflow run. Never persisted."""

    id: str
    workflow_id: str
    updates: List[ExecutionUpdate] = Field(default_factory=list)
    state: ExecutionState = ExecutionState.IDLE
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None

    @property
    def is_complete(self) -> bool:
        return any(update.is_terminal for update in self.updates)


class ExecutionStatus(BaseModel):
    """Answer to a poll for execution updates."""

    execution_id: str
    updates: List[ExecutionUpdate]
    is_complete: bool
    state: ExecutionState = ExecutionState.IDLE
