"""In-memory registry of running and recently finished executions."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from .config import WeaveflowConfig, load_config
from .constants import DEFAULT_EXECUTION_RETENTION_SECONDS
from .contracts import (
    Execution,
    ExecutionResult,
    ExecutionState,
    ExecutionStatus,
    ExecutionUpdate,
    Workflow,
)
from .errors import NotFoundError
from .models.base import LanguageModel
from .orchestrator import Orchestrator

logger = logging.getLogger(__name__)

FinishedCallback = Callable[[Execution], Any]


class ExecutionRegistry:
    """Tracks executions by id and exposes their update streams.

    Each execution owns a disjoint key, and only its own orchestrator task
    appends to its update list. Entries are removed ``retention_seconds``
    after reaching a terminal state; executions that never finish are kept
    until the process exits.
    """

    def __init__(
        self,
        retention_seconds: float = DEFAULT_EXECUTION_RETENTION_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._executions: Dict[str, Execution] = {}
        self._orchestrators: Dict[str, Orchestrator] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._cleanup: Dict[str, asyncio.TimerHandle] = {}

    def __contains__(self, execution_id: str) -> bool:
        return execution_id in self._executions

    def __len__(self) -> int:
        return len(self._executions)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), timezone.utc)

    def _new_id(self, workflow_id: str) -> str:
        millis = int(self._clock() * 1000)
        execution_id = f"{workflow_id}-{millis}"
        suffix = 1
        while execution_id in self._executions:
            execution_id = f"{workflow_id}-{millis}-{suffix}"
            suffix += 1
        return execution_id

    def create(self, workflow_id: str) -> Execution:
        """Register an empty execution for ``workflow_id``."""
        execution = Execution(
            id=self._new_id(workflow_id), workflow_id=workflow_id, started_at=self._now()
        )
        self._executions[execution.id] = execution
        return execution

    def get(self, execution_id: str) -> Execution:
        execution = self._executions.get(execution_id)
        if execution is None:
            raise NotFoundError(f"Execution {execution_id} not found")
        return execution

    def append(self, execution_id: str, update: ExecutionUpdate) -> None:
        execution = self.get(execution_id)
        execution.updates.append(update)
        if update.is_terminal and execution.completed_at is None:
            execution.completed_at = self._now()
            self._schedule_removal(execution_id)

    def _schedule_removal(self, execution_id: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: rely on sweep_expired().
            return
        self._cleanup[execution_id] = loop.call_later(
            self.retention_seconds, self.remove, execution_id
        )

    def remove(self, execution_id: str) -> None:
        self._executions.pop(execution_id, None)
        self._orchestrators.pop(execution_id, None)
        self._tasks.pop(execution_id, None)
        handle = self._cleanup.pop(execution_id, None)
        if handle is not None:
            handle.cancel()
        logger.debug(f"Removed execution {execution_id}")

    def sweep_expired(self, now: Optional[float] = None) -> int:
        """Remove finished executions older than the retention window."""
        now = self._clock() if now is None else now
        expired = [
            execution.id
            for execution in self._executions.values()
            if execution.completed_at is not None
            and now - execution.completed_at.timestamp() >= self.retention_seconds
        ]
        for execution_id in expired:
            self.remove(execution_id)
        return len(expired)

    def start(
        self,
        workflow: Workflow,
        global_inputs: Mapping[str, Any],
        model: LanguageModel,
        on_finished: Optional[FinishedCallback] = None,
    ) -> str:
        """Launch ``workflow`` in the background and return its execution id.

        Must be called from within a running event loop.
        """
        execution = self.create(workflow.id)
        orchestrator = Orchestrator(
            workflow, model, on_update=lambda u: self.append(execution.id, u)
        )
        self._orchestrators[execution.id] = orchestrator

        task = asyncio.get_running_loop().create_task(
            self._run(execution, orchestrator, dict(global_inputs), on_finished)
        )
        self._tasks[execution.id] = task
        logger.info(f"Started execution {execution.id} for workflow {workflow.name}")
        return execution.id

    async def _run(
        self,
        execution: Execution,
        orchestrator: Orchestrator,
        global_inputs: Dict[str, Any],
        on_finished: Optional[FinishedCallback],
    ) -> Optional[ExecutionResult]:
        execution.state = ExecutionState.EXECUTING
        result = None
        try:
            result = await orchestrator.execute(global_inputs)
        except Exception as e:
            logger.error(f"Execution {execution.id} failed: {e}")
        execution.state = orchestrator.state

        if on_finished is not None:
            try:
                outcome = on_finished(execution)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception as e:
                logger.error(f"Finish callback for {execution.id} failed: {e}")
        return result

    def poll(self, execution_id: str) -> ExecutionStatus:
        """Return the updates emitted so far.

        Raises:
            NotFoundError: If the id is unknown or already expired.
        """
        execution = self.get(execution_id)
        return ExecutionStatus(
            execution_id=execution.id,
            updates=list(execution.updates),
            is_complete=execution.is_complete,
            state=execution.state,
        )

    def interrupt(self, execution_id: str, reason: str = "Execution interrupted") -> None:
        """Mark a running execution failed; the in-flight model call completes."""
        self.get(execution_id)
        orchestrator = self._orchestrators.get(execution_id)
        if orchestrator is not None:
            orchestrator.interrupt(reason)
            self._executions[execution_id].state = orchestrator.state

    async def wait(self, execution_id: str) -> Optional[ExecutionResult]:
        """Wait for a background execution to finish."""
        self.get(execution_id)
        task = self._tasks.get(execution_id)
        if task is None:
            return None
        return await task


_registry_instance: ExecutionRegistry | None = None


def get_registry(config: Optional[WeaveflowConfig] = None) -> ExecutionRegistry:
    """Return the process-wide registry, creating it on first use."""

    global _registry_instance
    if _registry_instance is not None and config is None:
        return _registry_instance

    config = config or load_config()
    _registry_instance = ExecutionRegistry(
        retention_seconds=config.execution.retention_seconds
    )
    return _registry_instance
