"""Execution ordering for agent graphs."""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Set

from .contracts import Agent, Connection

logger = logging.getLogger(__name__)


def valid_connections(
    agents: Sequence[Agent], connections: Iterable[Connection]
) -> List[Connection]:
    """Return the connections whose endpoints are both known agents."""
    known = {agent.id for agent in agents}
    kept = []
    for connection in connections:
        if connection.source not in known or connection.target not in known:
            logger.warning(
                f"Dropping connection {connection.source} -> {connection.target}: "
                "unknown agent id"
            )
            continue
        kept.append(connection)
    return kept


def order_agents(
    agents: Sequence[Agent], connections: Sequence[Connection]
) -> List[str]:
    """Compute an execution order with Kahn's algorithm.

    Falls back to declaration order when there are no connections or when the
    graph has a cycle. A partial topological order is never returned.
    """
    # Repeated ids collapse onto their first declaration.
    declared = list(dict.fromkeys(agent.id for agent in agents))
    if not connections:
        return declared

    adjacency: Dict[str, List[str]] = {agent_id: [] for agent_id in declared}
    in_degree: Dict[str, int] = {agent_id: 0 for agent_id in declared}
    for connection in valid_connections(agents, connections):
        adjacency[connection.source].append(connection.target)
        in_degree[connection.target] += 1

    queue: Deque[str] = deque(a for a in declared if in_degree[a] == 0)
    order: List[str] = []
    while queue:
        current = queue.popleft()
        order.append(current)
        for neighbor in adjacency[current]:
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                queue.append(neighbor)

    if len(order) < len(declared):
        logger.warning(
            "GraphCycleDetected: topological sort incomplete "
            f"({len(order)}/{len(declared)} agents), using declaration order"
        )
        return declared
    return order


class ExecutionPlan:
    """Ready-queue over an execution order.

    An agent is ready once every upstream producer has executed. The
    sequential policy releases agents strictly in plan order, so for acyclic
    graphs the released agent is always ready; for cyclic graphs (declaration
    order) it may not be. ``ready()`` exposes the full set a parallel policy
    could dispatch at once.
    """

    def __init__(self, agents: Sequence[Agent], connections: Sequence[Connection]):
        self.agents: Dict[str, Agent] = {}
        for agent in agents:
            self.agents.setdefault(agent.id, agent)
        self.order = order_agents(agents, connections)
        self._upstream: Dict[str, Set[str]] = {agent_id: set() for agent_id in self.agents}
        for connection in valid_connections(agents, connections):
            self._upstream[connection.target].add(connection.source)
        self._executed: Set[str] = set()

    @property
    def executed(self) -> Set[str]:
        return set(self._executed)

    def pending(self) -> List[str]:
        return [agent_id for agent_id in self.order if agent_id not in self._executed]

    def ready(self) -> List[str]:
        """Agents whose upstream producers have all executed, in plan order."""
        return [
            agent_id
            for agent_id in self.pending()
            if self._upstream[agent_id] <= self._executed
        ]

    def next_agent(self) -> Optional[Agent]:
        """Next agent under the sequential policy, or ``None`` when done."""
        for agent_id in self.order:
            if agent_id not in self._executed:
                return self.agents[agent_id]
        return None

    def mark_executed(self, agent_id: str) -> None:
        self._executed.add(agent_id)

    def describe(self) -> str:
        return " -> ".join(self.agents[agent_id].name for agent_id in self.order)
