"""Exception hierarchy for weaveflow."""

from __future__ import annotations


class WeaveflowError(Exception):
    """Base class for all weaveflow errors."""


class ModelInvocationError(WeaveflowError):
    """The language model call failed (transport, HTTP status or quota)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ResponseParseError(WeaveflowError):
    """The model response did not contain a parseable JSON object."""

    def __init__(self, message: str, raw_text: str = "") -> None:
        super().__init__(message)
        self.raw_text = raw_text


class ArchitectResponseError(WeaveflowError):
    """The architect response could not be turned into an agent graph."""


class NotFoundError(WeaveflowError):
    """Unknown workflow, agent or execution identifier."""


class ExecutionInterrupted(WeaveflowError):
    """The execution was stopped from outside before it finished."""
