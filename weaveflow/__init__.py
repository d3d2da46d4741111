"""weaveflow: execute LLM agent graphs designed from a problem statement."""

from .architect import Architect, ArchitectPlan
from .contracts import (
    Agent,
    AgentOutput,
    Connection,
    ExecutionUpdate,
    UpdateType,
    Workflow,
    WorkflowFlow,
)
from .graph import ExecutionPlan, order_agents
from .invoker import AgentInvoker
from .models import LanguageModel, get_language_model
from .naming import normalize
from .orchestrator import Orchestrator
from .persistence import get_store
from .registry import ExecutionRegistry, get_registry
from .resolver import resolve_inputs
from .service import WorkflowService

__version__ = "0.1.0"
__all__ = [
    "Agent",
    "AgentInvoker",
    "AgentOutput",
    "Architect",
    "ArchitectPlan",
    "Connection",
    "ExecutionPlan",
    "ExecutionRegistry",
    "ExecutionUpdate",
    "LanguageModel",
    "Orchestrator",
    "UpdateType",
    "Workflow",
    "WorkflowFlow",
    "WorkflowService",
    "get_language_model",
    "get_registry",
    "get_store",
    "normalize",
    "order_agents",
    "resolve_inputs",
]
