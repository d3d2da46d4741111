"""Input routing for agents about to run."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Sequence

from .contracts import Agent, AgentOutput, Connection
from .naming import FieldSpec, lookup

logger = logging.getLogger(__name__)


def _from_upstream(
    field: FieldSpec,
    incoming: Sequence[Connection],
    agents: Mapping[str, Agent],
    prior_outputs: Mapping[str, AgentOutput],
) -> tuple[bool, Any]:
    for connection in incoming:
        source = agents.get(connection.source)
        output = prior_outputs.get(connection.source)
        if source is None or output is None:
            continue
        produced = source.declares_output(field.name)
        if produced is None:
            continue
        found, value = lookup(output.result, produced)
        if found:
            return True, value
    return False, None


def resolve_inputs(
    agent: Agent,
    global_inputs: Mapping[str, Any],
    prior_outputs: Mapping[str, AgentOutput],
    connections: Sequence[Connection],
    agents: Sequence[Agent] | Mapping[str, Agent],
) -> Dict[str, Any]:
    """Resolve each declared input of ``agent``.

    Upstream agents connected to ``agent`` are searched first, then
    ``global_inputs``. Unresolved inputs are left out of the returned map,
    which is keyed by the agent's declared (possibly annotated) input names.
    """
    if not isinstance(agents, Mapping):
        agents = {a.id: a for a in agents}
    incoming = [c for c in connections if c.target == agent.id]

    resolved: Dict[str, Any] = {}
    unresolved = []
    for field in agent.input_fields:
        found, value = _from_upstream(field, incoming, agents, prior_outputs)
        if not found:
            found, value = lookup(global_inputs, field)
        if found:
            resolved[field.raw] = value
        else:
            unresolved.append(field.name)

    if unresolved:
        logger.warning(
            f"UnresolvedInput: agent {agent.name} is missing {', '.join(unresolved)}"
        )
    return resolved
