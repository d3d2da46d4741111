"""Scripted language model for tests and dry runs."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Callable, Deque, Iterable, List, Optional, Union

from ..errors import ModelInvocationError
from .base import LanguageModel

Reply = Union[str, Exception]


class ScriptedLanguageModel(LanguageModel):
    """Return canned replies instead of calling a real model.

    Replies are taken from ``replies`` in order. When the queue is empty the
    ``responder`` callable is consulted, then ``default``. A reply that is an
    exception instance is raised instead of returned.
    """

    def __init__(
        self,
        replies: Optional[Iterable[Reply]] = None,
        responder: Optional[Callable[[str], Reply]] = None,
        default: Optional[str] = None,
        delay: float = 0.0,
    ) -> None:
        self._replies: Deque[Reply] = deque(replies or [])
        self._responder = responder
        self._default = default
        self._delay = delay
        self.prompts: List[str] = []

    def queue(self, *replies: Reply) -> None:
        self._replies.extend(replies)

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self._delay:
            await asyncio.sleep(self._delay)

        if self._replies:
            reply = self._replies.popleft()
        elif self._responder is not None:
            reply = self._responder(prompt)
        elif self._default is not None:
            reply = self._default
        else:
            raise ModelInvocationError("No scripted reply available")

        if isinstance(reply, Exception):
            raise reply
        return reply
