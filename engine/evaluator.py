"""Graph evaluator: one dependency-ordered pass over a graph snapshot.

A node whose worker fails gets an error annotation and produces no outputs;
the pass carries on with the remaining nodes, so dependents see an empty
input list and report their own error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from modelling import transfer
from modelling.components.base import NodeError, PassContext
from modelling.components.catalog import COMPONENT_CATALOG
from modelling.tile_grid import TileGrid
from engine.graph import Graph

logger = logging.getLogger(__name__)


@dataclass
class PassResult:
    """Everything a pass contributes: one annotation per node plus sink saves."""
    generation: int
    errors: dict[int, Optional[str]] = field(default_factory=dict)
    saves: list[tuple[int, TileGrid]] = field(default_factory=list)

    @property
    def failed(self) -> dict[int, str]:
        return {nid: msg for nid, msg in self.errors.items() if msg is not None}

    def to_message(self) -> dict[str, Any]:
        return transfer.serialize({
            "generation": self.generation,
            "errors": [[nid, msg] for nid, msg in self.errors.items()],
            "saves": [[nid, grid] for nid, grid in self.saves],
        })

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> PassResult:
        message = transfer.deserialize(message)
        return cls(
            generation=message["generation"],
            errors={nid: msg for nid, msg in message["errors"]},
            saves=[(nid, grid) for nid, grid in message["saves"]],
        )


def _gather(graph: Graph, produced: dict[int, dict[str, Any]], node_id: int, key: str) -> list[Any]:
    values = []
    for edge in graph.incoming(node_id, key):
        outputs = produced.get(edge.source)
        if outputs is not None and edge.output in outputs:
            values.append(outputs[edge.output])
    return values


def evaluate(graph: Graph, ctx: PassContext, generation: int = 0) -> PassResult:
    """Run every node's worker in dependency order."""
    result = PassResult(generation=generation)
    produced: dict[int, dict[str, Any]] = {}

    for node_id in graph.topological_order():
        node = graph.nodes[node_id]
        component = COMPONENT_CATALOG.get(node.kind)
        inputs = {key: _gather(graph, produced, node_id, key) for key in node.inputs}

        saved_before = len(ctx.saves)
        try:
            outputs = component.worker(node, inputs, ctx) or {}
        except NodeError as e:
            logger.warning(f"Node {node_id} ({node.kind}): {e}")
            result.errors[node_id] = str(e)
            del ctx.saves[saved_before:]
            continue
        except Exception as e:
            logger.exception(f"Node {node_id} ({node.kind}) failed")
            result.errors[node_id] = f"{type(e).__name__}: {e}"
            del ctx.saves[saved_before:]
            continue

        produced[node_id] = {
            key: value for key, value in outputs.items()
            if key in node.outputs and value is not None
        }
        result.errors[node_id] = None

    result.saves = list(ctx.saves)
    return result


def run_pass(message: dict[str, Any]) -> dict[str, Any]:
    """Worker entry point. Takes and returns transfer-encoded messages only.

    ``message`` holds ``generation``, ``graph`` (a :meth:`Graph.to_dict`
    snapshot) and ``extent`` ``(zoom, x, y, width, height)``.
    """
    message = transfer.deserialize(message)
    graph = Graph.from_dict(message["graph"])
    ctx = PassContext(*message["extent"])
    result = evaluate(graph, ctx, generation=message["generation"])
    logger.debug(
        f"Pass {result.generation}: {len(graph.nodes)} nodes, "
        f"{len(result.failed)} errors, {len(result.saves)} layers"
    )
    return result.to_message()
