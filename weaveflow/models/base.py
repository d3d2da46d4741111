"""Base interface for language model backends."""

from __future__ import annotations

import abc


class LanguageModel(metaclass=abc.ABCMeta):
    """Black-box text completion used by agents and the architect."""

    @abc.abstractmethod
    async def complete(self, prompt: str) -> str:
        """Return the raw response text for ``prompt``.

        Raises:
            ModelInvocationError: If the call fails or returns a non-success
                status. Implementations must not retry silently.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Release backend resources (no-op by default)."""
        pass
