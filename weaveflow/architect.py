"""Architect: turn a problem statement into an agent graph."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from pydantic import BaseModel, Field, ValidationError

from .constants import SEQUENTIAL_FLOW_DESCRIPTION
from .contracts import Agent, Connection, WorkflowFlow
from .errors import ArchitectResponseError, ResponseParseError
from .invoker import parse_json_object
from .models.base import LanguageModel

logger = logging.getLogger(__name__)

ARCHITECT_PROMPT = """
You are an AI Architect Agent. Your task is to analyze the following problem statement and design a workflow of AI agents needed to solve it.

Problem Statement: "{problem_statement}"

Based on this problem statement, please:
1. Identify the specific AI agents needed to solve this problem
2. For each agent, provide:
   - A descriptive name
   - A clear description of its purpose
   - Its specific role in the workflow
   - A tailored prompt that the agent should use, referring to each input as {{{{input_name}}}}
   - What inputs it requires (be specific about data types and formats, e.g. "text: string")
   - What outputs it produces (be specific about data types and formats)
3. Define the flow of data between agents, showing how they connect and work together

Format your response as a JSON object with the following structure:
{{
  "analysis": "A brief analysis of the problem and overall workflow strategy",
  "agents": [
    {{
      "id": "unique-id-1",
      "name": "Agent Name",
      "description": "Description of what this agent does",
      "role": "The specific role this agent plays in the workflow",
      "prompt": "The prompt template this agent should use",
      "inputs": ["input1", "input2"],
      "outputs": ["output1", "output2"]
    }}
  ],
  "flow": {{
    "description": "A description of how data flows between agents",
    "connections": [
      {{
        "from": "unique-id-1",
        "to": "unique-id-2",
        "description": "Description of what data passes from one agent to another"
      }}
    ]
  }}
}}

Ensure your response is valid JSON and follows this exact structure. Be thoughtful about how agents connect and how data flows between them.
"""


class ArchitectPlan(BaseModel):
    """Agents and data flow proposed for a problem statement."""

    analysis: str = ""
    agents: List[Agent] = Field(default_factory=list)
    flow: WorkflowFlow = Field(default_factory=WorkflowFlow)


def sequential_flow(agents: List[Agent]) -> WorkflowFlow:
    """Chain agents in declaration order."""
    return WorkflowFlow(
        description=SEQUENTIAL_FLOW_DESCRIPTION,
        connections=[
            Connection(
                source=current.id,
                target=following.id,
                description=f"Data flows from {current.name} to {following.name}",
            )
            for current, following in zip(agents, agents[1:])
        ],
    )


def _as_names(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, dict):
        return [str(key) for key in value]
    return [str(item) for item in value]


def _repair_agents(raw_agents: Any) -> List[Agent]:
    if not isinstance(raw_agents, list):
        raise ArchitectResponseError("Architect response has no agent list")

    agents: List[Agent] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_agents, start=1):
        if not isinstance(raw, dict):
            logger.warning(f"Skipping malformed agent entry #{index}: {raw!r}")
            continue
        agent_id = str(raw.get("id") or f"agent-{index}")
        if agent_id in seen:
            suffix = 2
            while f"{agent_id}-{suffix}" in seen:
                suffix += 1
            logger.warning(f"Duplicate agent id {agent_id}, renaming")
            agent_id = f"{agent_id}-{suffix}"
        seen.add(agent_id)

        try:
            agents.append(
                Agent(
                    id=agent_id,
                    name=str(raw.get("name") or agent_id),
                    description=str(raw.get("description") or ""),
                    role=str(raw.get("role") or ""),
                    prompt=str(raw.get("prompt") or ""),
                    inputs=_as_names(raw.get("inputs")),
                    outputs=_as_names(raw.get("outputs")),
                )
            )
        except ValidationError as e:
            logger.warning(f"Skipping invalid agent {agent_id}: {e}")

    if not agents:
        raise ArchitectResponseError("Architect response contains no usable agents")
    return agents


def _repair_flow(raw_flow: Any, agents: List[Agent]) -> WorkflowFlow:
    if not isinstance(raw_flow, dict):
        return sequential_flow(agents)

    connections = []
    for raw in raw_flow.get("connections") or []:
        if not isinstance(raw, dict):
            continue
        source = raw.get("from", raw.get("source"))
        target = raw.get("to", raw.get("target"))
        if not source or not target:
            logger.warning(f"Skipping connection without endpoints: {raw!r}")
            continue
        connections.append(
            Connection(
                source=str(source),
                target=str(target),
                description=str(raw.get("description") or ""),
            )
        )
    return WorkflowFlow(
        description=str(raw_flow.get("description") or ""), connections=connections
    )


def plan_from_payload(payload: Dict[str, Any]) -> ArchitectPlan:
    """Validate and repair a parsed architect response."""
    agents = _repair_agents(payload.get("agents"))
    return ArchitectPlan(
        analysis=str(payload.get("analysis") or ""),
        agents=agents,
        flow=_repair_flow(payload.get("flow"), agents),
    )


class Architect:
    """Designs agent workflows with a single model call."""

    def __init__(self, model: LanguageModel) -> None:
        self.model = model

    async def analyze(self, problem_statement: str) -> ArchitectPlan:
        """Propose agents and connections for ``problem_statement``.

        Raises:
            ModelInvocationError: If the model call fails.
            ArchitectResponseError: If the response holds no usable agent graph.
        """
        logger.info(f"Analyzing problem statement: {problem_statement[:80]}")
        text = await self.model.complete(
            ARCHITECT_PROMPT.format(problem_statement=problem_statement)
        )
        try:
            payload = parse_json_object(text)
        except ResponseParseError as e:
            logger.error(f"Architect response is not JSON: {e}")
            raise ArchitectResponseError(f"Architect response is not JSON: {e}") from e

        plan = plan_from_payload(payload)
        logger.info(
            f"Architect proposed {len(plan.agents)} agents and "
            f"{len(plan.flow.connections)} connections"
        )
        return plan
