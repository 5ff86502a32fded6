"""Tests for GraphSpec reads, source discovery and editor mutations."""

import pytest
from pydantic import ValidationError

from openflow.graph.edge import EdgeSpec, GraphSpec, SourceFallback
from openflow.graph.node import NodeSpec, NodeState, NodeStatus


@pytest.fixture
def diamond():
    return GraphSpec(
        id="diamond",
        nodes=[
            NodeSpec(id="a", type="webhook", label="Start"),
            NodeSpec(id="b", type="passthrough"),
            NodeSpec(id="c", type="passthrough"),
            NodeSpec(id="d", type="passthrough"),
        ],
        edges=[
            EdgeSpec(id="e1", source="a", target="c"),
            EdgeSpec(id="e2", source="a", target="b"),
            EdgeSpec(id="e3", source="b", target="d"),
            EdgeSpec(id="e4", source="c", target="d"),
        ],
    )


def test_sources_in_declaration_order():
    graph = GraphSpec(
        nodes=[
            NodeSpec(id="z", type="webhook"),
            NodeSpec(id="m", type="passthrough"),
            NodeSpec(id="a", type="webhook"),
        ],
        edges=[EdgeSpec(id="e1", source="z", target="m")],
    )

    assert graph.sources() == ["z", "a"]


def test_sources_of_empty_graph():
    assert GraphSpec().sources() == []


def test_pure_cycle_falls_back_to_first_node():
    graph = GraphSpec(
        nodes=[NodeSpec(id="x", type="noop"), NodeSpec(id="y", type="noop")],
        edges=[
            EdgeSpec(id="e1", source="x", target="y"),
            EdgeSpec(id="e2", source="y", target="x"),
        ],
    )

    assert graph.sources() == ["x"]
    assert graph.sources(fallback=SourceFallback.NONE) == []


def test_dangling_edge_does_not_hide_a_source():
    graph = GraphSpec(
        nodes=[NodeSpec(id="a", type="noop")],
        edges=[EdgeSpec(id="e1", source="deleted", target="a")],
    )

    assert graph.sources() == ["a"]
    assert graph.incoming_edges("a") == []
    assert not graph.is_live(graph.edges[0])


def test_outgoing_edges_follow_declaration_order(diamond):
    assert [e.target for e in diamond.outgoing_edges("a")] == ["c", "b"]
    assert [e.source for e in diamond.incoming_edges("d")] == ["b", "c"]
    assert diamond.outgoing_edges("d") == []


def test_duplicate_node_ids_are_rejected():
    with pytest.raises(ValidationError):
        GraphSpec(nodes=[NodeSpec(id="a", type="noop"), NodeSpec(id="a", type="wait")])


def test_graph_loads_from_editor_json():
    graph = GraphSpec.model_validate(
        {
            "nodes": [
                {"id": "1", "type": "webhook", "label": "Start Trigger", "config": {}},
                {"id": "2", "type": "ai", "label": "Summarize Email", "position": {"x": 1}},
            ],
            "edges": [{"id": "e1-2", "source": "1", "target": "2"}],
        }
    )

    assert graph.get_node("2").display_name == "Summarize Email"
    assert graph.get_node("missing") is None
    assert graph.node_ids() == ["1", "2"]


def test_node_spec_is_frozen():
    node = NodeSpec(id="a", type="wait", config={"ms": 5})

    with pytest.raises(ValidationError):
        node.type = "noop"
    assert node.display_name == "a"


def test_validate_graph_reports_warnings():
    graph = GraphSpec(
        nodes=[NodeSpec(id="a", type="noop"), NodeSpec(id="b", type="noop")],
        edges=[
            EdgeSpec(id="e1", source="a", target="b"),
            EdgeSpec(id="e1", source="b", target="a"),
            EdgeSpec(id="e2", source="a", target="ghost"),
        ],
    )

    warnings = graph.validate_graph()

    assert "Duplicate edge id: e1" in warnings
    assert any("missing target node 'ghost'" in w for w in warnings)
    assert any("execution starts from 'a'" in w for w in warnings)


def test_validate_graph_clean(diamond):
    assert diamond.validate_graph() == []


def test_editor_mutations(diamond):
    diamond.add_node(NodeSpec(id="e", type="noop"))
    diamond.add_edge(EdgeSpec(id="e5", source="d", target="e"))
    assert [e.target for e in diamond.outgoing_edges("d")] == ["e"]

    with pytest.raises(ValueError):
        diamond.add_node(NodeSpec(id="a", type="noop"))

    assert diamond.remove_node("b")
    assert [e.id for e in diamond.edges] == ["e1", "e4", "e5"]
    assert not diamond.remove_node("b")

    assert diamond.remove_edge("e5")
    assert not diamond.remove_edge("e5")
    assert diamond.sources() == ["a", "e"]


def test_node_state_reset_and_duration():
    state = NodeState(node_id="a", status=NodeStatus.ERROR, error="x", last_output=1)
    assert state.duration_ms == 0

    state.reset()

    assert state.status == NodeStatus.IDLE
    assert state.error is None
    assert state.last_output is None
    assert not state.status.is_terminal
    assert NodeStatus.SUCCESS.is_terminal
