"""Tests for graph editing, socket typing and ordering."""

from __future__ import annotations

import pytest

from modelling.tile_grid import NumericTileGrid
from engine.graph import Edge, Graph, GraphValidationError


def _chain() -> tuple[Graph, int, int, int]:
    graph = Graph()
    const = graph.add_node("Numeric constant", data={"value": 1})
    threshold = graph.add_node("Threshold", data={"threshold": 0})
    sink = graph.add_node("Map layer")
    graph.connect(const.id, "out", threshold.id, "in")
    graph.connect(threshold.id, "out", sink.id, "in")
    return graph, const.id, threshold.id, sink.id


def test_ids_are_assigned_in_order():
    graph, a, b, c = _chain()
    assert (a, b, c) == (1, 2, 3)
    assert graph.add_node("Sum").id == 4


def test_unknown_kind_rejected():
    with pytest.raises(GraphValidationError):
        Graph().add_node("Teleport")


def test_socket_type_mismatch_rejected():
    graph = Graph()
    const = graph.add_node("Numeric constant")
    cat = graph.add_node("Categorise")
    with pytest.raises(GraphValidationError, match="Cannot connect"):
        graph.connect(const.id, "out", cat.id, "in")


def test_unknown_socket_rejected():
    graph, const, threshold, _ = _chain()
    with pytest.raises(GraphValidationError):
        graph.connect(const, "nope", threshold, "in")


def test_cycle_rejected():
    graph = Graph()
    a = graph.add_node("Sum")
    b = graph.add_node("Sum")
    graph.connect(a.id, "out", b.id, "in")
    with pytest.raises(GraphValidationError, match="cycle"):
        graph.connect(b.id, "out", a.id, "in")
    with pytest.raises(GraphValidationError, match="cycle"):
        graph.connect(a.id, "out", a.id, "in")
    assert len(graph.edges) == 1


def test_multi_input_keeps_connection_order():
    graph = Graph()
    consts = [graph.add_node("Numeric constant") for _ in range(3)]
    total = graph.add_node("Sum")
    for c in reversed(consts):
        graph.connect(c.id, "out", total.id, "in")
    assert [e.source for e in graph.incoming(total.id, "in")] == [3, 2, 1]


def test_single_input_replaces_connection():
    graph, const, threshold, sink = _chain()
    other = graph.add_node("Numeric constant")
    graph.connect(other.id, "out", threshold, "in")
    assert [e.source for e in graph.incoming(threshold, "in")] == [other.id]


def test_remove_node_drops_edges():
    graph, const, threshold, sink = _chain()
    graph.remove_node(threshold)
    assert graph.edges == []
    assert set(graph.nodes) == {const, sink}


def test_disconnect():
    graph, const, threshold, sink = _chain()
    graph.disconnect(Edge(threshold, "out", sink, "in"))
    assert graph.incoming(sink, "in") == []
    with pytest.raises(GraphValidationError):
        graph.disconnect(Edge(threshold, "out", sink, "in"))


def test_topological_order():
    graph = Graph()
    sink = graph.add_node("Map layer")
    total = graph.add_node("Sum")
    const = graph.add_node("Numeric constant")
    graph.connect(const.id, "out", total.id, "in")
    graph.connect(total.id, "out", sink.id, "in")
    assert graph.topological_order() == [const.id, total.id, sink.id]


def test_dict_round_trip():
    graph, const, threshold, sink = _chain()
    graph.nodes[const].name = "Base"
    graph.nodes[const].data["mask"] = NumericTileGrid(2, 0, 0, 1, 1, 3.0)

    copy = Graph.from_dict(graph.to_dict())
    assert set(copy.nodes) == set(graph.nodes)
    assert copy.edges == graph.edges
    assert copy.nodes[const].name == "Base"
    assert copy.nodes[const].data["value"] == 1
    assert copy.nodes[const].data["mask"] == graph.nodes[const].data["mask"]
    assert copy.nodes[const].data["mask"] is not graph.nodes[const].data["mask"]
    assert copy.add_node("Sum").id == 4


def test_error_message_annotation():
    graph, const, _, _ = _chain()
    node = graph.nodes[const]
    assert node.error_message is None
    node.error_message = "No input"
    assert node.meta["error_message"] == "No input"
    node.error_message = None
    assert "error_message" not in node.meta
