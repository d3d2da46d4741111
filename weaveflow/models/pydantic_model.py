"""Language model backend built on pydantic-ai."""

from __future__ import annotations

import logging
from typing import Optional, Union

from pydantic_ai import Agent
from pydantic_ai.exceptions import AgentRunError, ModelHTTPError, UserError
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings

from ..errors import ModelInvocationError
from .base import LanguageModel

logger = logging.getLogger(__name__)


class PydanticAILanguageModel(LanguageModel):
    """Send prompts through a plain-text pydantic-ai agent.

    ``model`` is anything pydantic-ai accepts: a ``"provider:model"`` string
    such as ``"google-gla:gemini-1.5-flash"`` or a ``Model`` instance.
    """

    def __init__(
        self,
        model: Union[str, Model],
        temperature: float = 0.2,
        top_p: float = 0.95,
        max_tokens: int = 8192,
        system_prompt: str = "",
    ) -> None:
        self.model = model
        self.settings = ModelSettings(
            temperature=temperature, top_p=top_p, max_tokens=max_tokens
        )
        self._system_prompt = system_prompt
        self._agent: Optional[Agent] = None

    def _get_agent(self) -> Agent:
        # Built lazily so a missing API key surfaces as an invocation error.
        if self._agent is None:
            self._agent = Agent(
                self.model, output_type=str, system_prompt=self._system_prompt or ()
            )
        return self._agent

    async def complete(self, prompt: str) -> str:
        try:
            result = await self._get_agent().run(prompt, model_settings=self.settings)
        except ModelHTTPError as e:
            logger.error(f"Model returned HTTP {e.status_code}: {e.body}")
            raise ModelInvocationError(
                f"Model API error: {e.status_code} {e.model_name}",
                status_code=e.status_code,
            ) from e
        except (AgentRunError, UserError) as e:
            logger.error(f"Model invocation failed: {e}")
            raise ModelInvocationError(f"Model invocation failed: {e}") from e
        except Exception as e:
            logger.error(f"Model transport failed: {e}")
            raise ModelInvocationError(f"Model transport failed: {e}") from e

        logger.debug(f"Model response: {result.output}")
        return result.output
