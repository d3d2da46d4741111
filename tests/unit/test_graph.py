"""Tests for execution ordering."""

from tests.fixtures.workflows import connect, make_agent
from weaveflow.graph import ExecutionPlan, order_agents, valid_connections


def _agents(*ids):
    return [make_agent(agent_id) for agent_id in ids]


def test_no_connections_keeps_declaration_order():
    agents = _agents("c", "a", "b")
    assert order_agents(agents, []) == ["c", "a", "b"]


def test_chain_declared_in_reverse_is_sorted():
    agents = _agents("c", "b", "a")
    connections = [connect("a", "b"), connect("b", "c")]
    assert order_agents(agents, connections) == ["a", "b", "c"]


def test_diamond_respects_every_edge():
    agents = _agents("d", "b", "c", "a")
    connections = [
        connect("a", "b"),
        connect("a", "c"),
        connect("b", "d"),
        connect("c", "d"),
    ]
    order = order_agents(agents, connections)
    assert sorted(order) == ["a", "b", "c", "d"]
    for connection in connections:
        assert order.index(connection.source) < order.index(connection.target)
    # Ties are broken by declaration order.
    assert order == ["a", "b", "c", "d"]


def test_cycle_falls_back_to_declaration_order():
    agents = _agents("x", "y", "z")
    connections = [connect("x", "y"), connect("y", "x"), connect("y", "z")]
    assert order_agents(agents, connections) == ["x", "y", "z"]


def test_unknown_endpoints_are_dropped():
    agents = _agents("b", "a")
    connections = [connect("ghost", "a"), connect("a", "b"), connect("b", "nowhere")]

    kept = valid_connections(agents, connections)

    assert [(c.source, c.target) for c in kept] == [("a", "b")]
    assert order_agents(agents, connections) == ["a", "b"]


def test_order_is_deterministic():
    agents = _agents("e", "d", "c", "b", "a")
    connections = [connect("a", "c"), connect("b", "c"), connect("c", "e")]
    first = order_agents(agents, connections)
    assert all(order_agents(agents, connections) == first for _ in range(5))


def test_plan_releases_ready_agents_in_order():
    agents = _agents("a", "b", "c")
    plan = ExecutionPlan(agents, [connect("a", "c")])

    assert plan.ready() == ["a", "b"]
    assert plan.next_agent().id == "a"
    plan.mark_executed("a")
    assert plan.ready() == ["b", "c"]
    assert plan.executed == {"a"}

    plan.mark_executed("b")
    plan.mark_executed("c")
    assert plan.next_agent() is None
    assert plan.pending() == []


def test_plan_runs_duplicate_ids_once():
    agents = [make_agent("a", name="First"), make_agent("a", name="Second"), make_agent("b")]
    plan = ExecutionPlan(agents, [])

    assert plan.pending() == ["a", "b"]
    assert plan.agents["a"].name == "First"
    assert plan.order == ["a", "b"]
    assert plan.describe() == "First -> B"


def test_plan_follows_declaration_order_through_cycles():
    agents = _agents("b", "c", "d")
    plan = ExecutionPlan(agents, [connect("b", "c"), connect("c", "b")])

    assert plan.ready() == ["d"]
    released = []
    while (agent := plan.next_agent()) is not None:
        released.append(agent.id)
        plan.mark_executed(agent.id)
    assert released == ["b", "c", "d"]
