"""Workflow execution engine."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from .contracts import (
    Agent,
    AgentOutput,
    ExecutionResult,
    ExecutionState,
    ExecutionUpdate,
    UpdateType,
    Workflow,
)
from .errors import ExecutionInterrupted
from .graph import ExecutionPlan
from .invoker import AgentInvoker
from .models.base import LanguageModel
from .resolver import resolve_inputs

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[ExecutionUpdate], None]


class Orchestrator:
    """Executes a workflow's agent graph for one set of global inputs.

    Agents run one at a time in the order computed by
    :class:`~weaveflow.graph.ExecutionPlan`. A failing model call aborts the
    whole run; there are no retries.
    """

    def __init__(
        self,
        workflow: Workflow,
        model: Optional[LanguageModel] = None,
        on_update: Optional[UpdateCallback] = None,
        invoker: Optional[AgentInvoker] = None,
    ) -> None:
        if invoker is None:
            if model is None:
                raise ValueError("Either model or invoker is required")
            invoker = AgentInvoker(model)
        self.workflow = workflow
        self._invoker = invoker
        self._callbacks: List[UpdateCallback] = [on_update] if on_update else []
        self.state = ExecutionState.IDLE
        self.updates: List[ExecutionUpdate] = []
        self._interrupt_reason: Optional[str] = None

    def on_update(self, callback: UpdateCallback) -> None:
        """Register a sink that receives every emitted update."""
        self._callbacks.append(callback)

    def _emit(
        self,
        update_type: UpdateType,
        message: str,
        agent: Optional[Agent] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> ExecutionUpdate:
        update = ExecutionUpdate(type=update_type, message=message, agent=agent, data=data)
        self.updates.append(update)
        for callback in self._callbacks:
            callback(update)
        return update

    async def initialize(self) -> None:
        logger.info(
            f"Orchestrator initialized for workflow {self.workflow.name} "
            f"with agents {[a.name for a in self.workflow.agents]}"
        )
        self._emit(UpdateType.START, f"Initialized workflow: {self.workflow.name}")

    def interrupt(self, reason: str = "Execution interrupted") -> None:
        """Stop the run before its next agent and mark it failed.

        A model call already in flight is not cancelled; its result is
        discarded when it returns.
        """
        if self.state in (ExecutionState.FINISHED, ExecutionState.FAILED):
            return
        logger.warning(f"Interrupting workflow {self.workflow.name}: {reason}")
        self._interrupt_reason = reason
        self.state = ExecutionState.FAILED
        self._emit(UpdateType.ERROR, reason)

    def _check_interrupted(self) -> None:
        if self._interrupt_reason is not None:
            raise ExecutionInterrupted(self._interrupt_reason)

    async def execute(self, global_inputs: Mapping[str, Any]) -> ExecutionResult:
        """Run every agent and return the merged results.

        Raises:
            ModelInvocationError: If an agent's model call fails. An ``error``
                update is emitted before the exception propagates.
            ExecutionInterrupted: If :meth:`interrupt` was called.
        """
        self._check_interrupted()
        if self.state != ExecutionState.IDLE:
            raise RuntimeError(f"Orchestrator already {self.state.value}")
        self.state = ExecutionState.EXECUTING

        connections = self.workflow.flow.connections
        plan = ExecutionPlan(self.workflow.agents, connections)
        logger.info(f"Starting workflow execution: {plan.describe()}")
        self._emit(
            UpdateType.START,
            f"Starting workflow execution: {plan.describe()}",
            data={"order": list(plan.order)},
        )

        agent_outputs: Dict[str, AgentOutput] = {}
        results: Dict[str, Any] = {}
        pool: Dict[str, Any] = dict(global_inputs)

        try:
            while (agent := plan.next_agent()) is not None:
                self._check_interrupted()
                inputs = resolve_inputs(
                    agent, pool, agent_outputs, connections, plan.agents
                )
                self._emit(
                    UpdateType.AGENT_START,
                    f"Executing agent: {agent.name}",
                    agent=agent,
                    data={"inputs": dict(inputs)},
                )

                output = await self._invoker.invoke(agent, inputs)
                self._check_interrupted()

                plan.mark_executed(agent.id)
                agent_outputs[agent.id] = output
                results.update(output.result)
                pool.update(output.result)

                logger.info(f"Agent {agent.name} completed")
                self._emit(
                    UpdateType.AGENT_COMPLETE,
                    f"Agent {agent.name} completed",
                    agent=agent,
                    data={
                        "inputs": dict(inputs),
                        "outputs": dict(output.result),
                        "reasoning": output.reasoning,
                    },
                )
        except ExecutionInterrupted:
            logger.info(f"Workflow {self.workflow.name} stopped after interruption")
            raise
        except Exception as e:
            if self._interrupt_reason is not None:
                # The interruption already emitted the terminal update.
                raise ExecutionInterrupted(self._interrupt_reason) from e
            logger.error(f"Workflow execution failed: {e}")
            self.state = ExecutionState.FAILED
            self._emit(UpdateType.ERROR, f"Workflow execution failed: {e}")
            raise

        self.state = ExecutionState.FINISHED
        logger.info(f"Workflow {self.workflow.name} completed")
        self._emit(
            UpdateType.COMPLETE,
            "Workflow execution completed",
            data={"results": dict(results)},
        )
        return ExecutionResult(
            results=results, agent_outputs=agent_outputs, updates=list(self.updates)
        )
