"""Tests for the graph evaluator and the worker pass entry point."""

from __future__ import annotations

import numpy as np
import pytest

from config_io.config import load_config
from modelling import transfer
from modelling.components.base import PassContext
from modelling.components.catalog import COMPONENT_CATALOG
from modelling.components.numeric import NumericConstantComponent
from modelling.tile_grid import BooleanTileGrid, CategoricalTileGrid, NumericTileGrid
from engine.evaluator import PassResult, evaluate, run_pass
from engine.graph import Edge, Graph, GraphValidationError


def _ctx() -> PassContext:
    config = load_config(overrides={"extent": {"zoom": 5, "x": 4, "y": 4, "width": 3, "height": 3}})
    return PassContext(*config.extent.as_tuple())


def test_linear_chain_saves_layer():
    graph = Graph()
    const = graph.add_node("Numeric constant", data={"value": 3})
    threshold = graph.add_node("Threshold", data={"threshold": 2})
    sink = graph.add_node("Map layer")
    graph.connect(const.id, "out", threshold.id, "in")
    graph.connect(threshold.id, "out", sink.id, "in")

    result = evaluate(graph, _ctx(), generation=7)
    assert result.generation == 7
    assert result.failed == {}
    assert set(result.errors) == {const.id, threshold.id, sink.id}
    assert len(result.saves) == 1
    node_id, grid = result.saves[0]
    assert node_id == sink.id
    assert isinstance(grid, BooleanTileGrid)
    assert grid.geometry == (5, 4, 4, 3, 3)
    assert grid.get(5, 5) is True


def test_missing_input_is_contained():
    """A node without input reports an error; the rest of the pass still runs."""
    graph = Graph()
    lonely = graph.add_node("Map layer")
    const = graph.add_node("Numeric constant", data={"value": 1})
    sink = graph.add_node("Map layer")
    graph.connect(const.id, "out", sink.id, "in")

    result = evaluate(graph, _ctx())
    assert result.failed == {lonely.id: "No input"}
    assert result.errors[sink.id] is None
    assert [nid for nid, _ in result.saves] == [sink.id]


def test_error_cascades_downstream():
    graph = Graph()
    const = graph.add_node("Numeric constant", data={"value": "oops"})
    threshold = graph.add_node("Threshold")
    sink = graph.add_node("Map layer")
    graph.connect(const.id, "out", threshold.id, "in")
    graph.connect(threshold.id, "out", sink.id, "in")

    result = evaluate(graph, _ctx())
    assert set(result.failed) == {const.id, threshold.id, sink.id}
    assert result.failed[threshold.id] == "No input"
    assert result.saves == []


def test_unexpected_exception_is_annotated(monkeypatch):
    class Exploding(NumericConstantComponent):
        name = "Exploding"

        def worker(self, node, inputs, ctx):
            raise RuntimeError("boom")

    monkeypatch.setitem(COMPONENT_CATALOG._components, "Exploding", Exploding())
    graph = Graph()
    broken = graph.add_node("Exploding")
    sink = graph.add_node("Map layer")
    graph.connect(broken.id, "out", sink.id, "in")

    result = evaluate(graph, _ctx())
    assert result.failed[broken.id] == "RuntimeError: boom"
    assert result.failed[sink.id] == "No input"


def test_multiple_inputs_arrive_in_order():
    graph = Graph()
    masks = []
    for value in (1, 5):
        const = graph.add_node("Numeric constant", data={"value": value})
        threshold = graph.add_node("Threshold", name=f"above {value}", data={"threshold": 0})
        graph.connect(const.id, "out", threshold.id, "in")
        masks.append(threshold)
    cat = graph.add_node("Categorise")
    sink = graph.add_node("Map layer")
    for m in masks:
        graph.connect(m.id, "out", cat.id, "in")
    graph.connect(cat.id, "out", sink.id, "in")

    result = evaluate(graph, _ctx())
    grid = result.saves[0][1]
    assert isinstance(grid, CategoricalTileGrid)
    assert grid.labels == {0: "above 1", 1: "above 5"}
    assert grid.get(4, 4) == 1


def test_cyclic_graph_raises():
    graph = Graph()
    a = graph.add_node("Sum")
    b = graph.add_node("Sum")
    graph.connect(a.id, "out", b.id, "in")
    # force a cycle past the edit-time check
    graph.edges.append(Edge(b.id, "out", a.id, "in"))
    with pytest.raises(GraphValidationError):
        evaluate(graph, _ctx())


def test_run_pass_round_trips_through_messages():
    graph = Graph()
    a = graph.add_node("Numeric constant", data={"value": 1.5})
    b = graph.add_node("Numeric constant", data={"value": 2})
    total = graph.add_node("Sum")
    sink = graph.add_node("Map layer")
    graph.connect(a.id, "out", total.id, "in")
    graph.connect(b.id, "out", total.id, "in")
    graph.connect(total.id, "out", sink.id, "in")

    message = transfer.serialize({"generation": 3, "graph": graph.to_dict(), "extent": (2, 0, 0, 2, 2)})
    reply = run_pass(message)
    result = PassResult.from_message(reply)
    assert result.generation == 3
    assert result.failed == {}
    node_id, grid = result.saves[0]
    assert node_id == sink.id
    assert isinstance(grid, NumericTileGrid)
    np.testing.assert_array_equal(grid.data, np.full((2, 2), 3.5, dtype=np.float32))
