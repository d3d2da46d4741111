"""Prompt improvement and interactive agent debugging."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel

from .contracts import Agent, AgentOutput
from .errors import ModelInvocationError, ResponseParseError
from .invoker import AgentInvoker, parse_json_object, placeholder_pattern
from .models.base import LanguageModel

logger = logging.getLogger(__name__)

IMPROVE_PROMPT = """
You are an expert prompt engineer. Rewrite the prompt template of the following AI agent so that it produces better results.

Agent name: {name}
Description: {description}
Role: {role}
Inputs: {inputs}
Outputs: {outputs}

Current prompt:
\"\"\"
{prompt}
\"\"\"

Keep a {{{{placeholder}}}} for every input listed above, using the input name without its type.
Respond with a JSON object: {{"prompt": "<improved prompt template>"}}
"""


class DebugReport(BaseModel):
    """Outcome of running an agent before and after prompt improvement."""

    success: bool
    original_output: Optional[AgentOutput] = None
    improved_agent: Optional[Agent] = None
    improved_output: Optional[AgentOutput] = None
    error: Optional[str] = None


def _missing_placeholders(agent: Agent, prompt: str) -> list[str]:
    return [
        field.name
        for field in agent.input_fields
        if not placeholder_pattern([field.name]).search(prompt)
    ]


async def improve_agent_prompt(agent: Agent, model: LanguageModel) -> str:
    """Ask the model for a better prompt template for ``agent``.

    Placeholders the model dropped are re-added in an ``Inputs`` section so
    the improved prompt still receives every declared input.
    """
    text = await model.complete(
        IMPROVE_PROMPT.format(
            name=agent.name,
            description=agent.description,
            role=agent.role,
            inputs=", ".join(agent.inputs) or "(none)",
            outputs=", ".join(agent.outputs) or "(none)",
            prompt=agent.prompt,
        )
    )
    try:
        payload = parse_json_object(text)
        improved = str(payload.get("prompt") or "").strip()
    except ResponseParseError:
        improved = text.strip()
    if not improved:
        logger.warning(f"Model returned no improved prompt for {agent.name}")
        return agent.prompt

    missing = _missing_placeholders(agent, improved)
    if missing:
        lines = "\n".join(f"- {name}: {{{{{name}}}}}" for name in missing)
        improved = f"{improved}\n\nInputs:\n{lines}"
    return improved


async def debug_agent(
    agent: Agent, inputs: Dict[str, Any], model: LanguageModel
) -> DebugReport:
    """Run ``agent``, improve its prompt and run the improved version."""
    invoker = AgentInvoker(model)
    try:
        original = await invoker.invoke(agent, inputs)
        prompt = await improve_agent_prompt(agent, model)
        improved_agent = agent.model_copy(update={"prompt": prompt})
        improved = await invoker.invoke(improved_agent, inputs)
    except ModelInvocationError as e:
        logger.error(f"Debugging agent {agent.name} failed: {e}")
        return DebugReport(success=False, error=str(e))

    return DebugReport(
        success=True,
        original_output=original,
        improved_agent=improved_agent,
        improved_output=improved,
    )
