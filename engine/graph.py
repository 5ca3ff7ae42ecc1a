"""Graph model: nodes with typed sockets, edges, ordering, snapshots.

Uses NetworkX for acyclicity checks and topological sorting.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Optional

import networkx as nx

from config_io.schema import SocketType, sockets_compatible
from modelling import transfer
from modelling.components.catalog import COMPONENT_CATALOG


class GraphValidationError(Exception):
    """Raised when an edit or an evaluation meets a malformed graph."""


@dataclass
class SocketSpec:
    key: str
    name: str
    socket: SocketType
    multi: bool = True


@dataclass
class Node:
    """A processing step. ``data`` holds its parameters, ``meta`` its annotations."""
    id: int
    kind: str
    name: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    meta: dict[str, Any] = field(default_factory=dict)
    inputs: dict[str, SocketSpec] = field(default_factory=dict)
    outputs: dict[str, SocketSpec] = field(default_factory=dict)

    def add_input(self, key: str, name: str, socket: SocketType, multi: bool = True) -> None:
        self.inputs[key] = SocketSpec(key, name, socket, multi)

    def add_output(self, key: str, name: str, socket: SocketType) -> None:
        self.outputs[key] = SocketSpec(key, name, socket)

    @property
    def error_message(self) -> Optional[str]:
        return self.meta.get("error_message")

    @error_message.setter
    def error_message(self, message: Optional[str]) -> None:
        if message is None:
            self.meta.pop("error_message", None)
        else:
            self.meta["error_message"] = message


@dataclass(frozen=True)
class Edge:
    source: int
    output: str
    target: int
    input: str

    def to_dict(self) -> dict:
        return {"source": self.source, "output": self.output,
                "target": self.target, "input": self.input}


class Graph:
    """Nodes and edges of a model. Edits that would close a cycle are rejected."""

    def __init__(self):
        self.nodes: dict[int, Node] = {}
        self.edges: list[Edge] = []
        self._next_id = 1

    # ── Nodes ──────────────────────────────────────────────────────────

    def add_node(
        self,
        kind: str,
        name: str = "",
        data: dict[str, Any] | None = None,
        node_id: int | None = None,
    ) -> Node:
        try:
            component = COMPONENT_CATALOG.get(kind)
        except ValueError as e:
            raise GraphValidationError(str(e)) from None

        if node_id is None:
            node_id = self._next_id
        elif node_id in self.nodes:
            raise GraphValidationError(f"Duplicate node id {node_id}")
        self._next_id = max(self._next_id, node_id + 1)

        node = Node(id=node_id, kind=kind, name=name, data=dict(data or {}))
        component.builder(node)
        if component.tool_tip:
            node.meta["tool_tip"] = component.tool_tip
        self.nodes[node_id] = node
        return node

    def remove_node(self, node_id: int) -> None:
        self.get_node(node_id)
        self.edges = [e for e in self.edges if node_id not in (e.source, e.target)]
        del self.nodes[node_id]

    def get_node(self, node_id: int) -> Node:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise GraphValidationError(f"Unknown node {node_id}") from None

    # ── Edges ──────────────────────────────────────────────────────────

    def connect(self, source: int, output: str, target: int, input: str) -> Edge:
        src, dst = self.get_node(source), self.get_node(target)
        if output not in src.outputs:
            raise GraphValidationError(f"Node {source} has no output '{output}'")
        if input not in dst.inputs:
            raise GraphValidationError(f"Node {target} has no input '{input}'")
        spec = dst.inputs[input]
        if not sockets_compatible(src.outputs[output].socket, spec.socket):
            raise GraphValidationError(
                f"Cannot connect {src.outputs[output].socket.value} output "
                f"to {spec.socket.value} input"
            )

        edge = Edge(source, output, target, input)
        if edge in self.edges:
            raise GraphValidationError("Edge already exists")
        if source == target or nx.has_path(self.to_networkx(), target, source):
            raise GraphValidationError("Connection would create a cycle")

        if not spec.multi:
            # single-valued inputs keep only their newest connection
            self.edges = [e for e in self.edges if (e.target, e.input) != (target, input)]
        self.edges.append(edge)
        return edge

    def disconnect(self, edge: Edge) -> None:
        try:
            self.edges.remove(edge)
        except ValueError:
            raise GraphValidationError(f"Unknown edge {edge}") from None

    def incoming(self, node_id: int, key: str) -> list[Edge]:
        """Edges into one input socket, in connection order."""
        return [e for e in self.edges if e.target == node_id and e.input == key]

    # ── Ordering ───────────────────────────────────────────────────────

    def to_networkx(self) -> nx.MultiDiGraph:
        g = nx.MultiDiGraph()
        g.add_nodes_from(self.nodes)
        for e in self.edges:
            g.add_edge(e.source, e.target, output=e.output, input=e.input)
        return g

    def topological_order(self) -> list[int]:
        """Node ids with every node after all of its predecessors; ties by id."""
        try:
            return list(nx.lexicographical_topological_sort(self.to_networkx()))
        except nx.NetworkXUnfeasible as e:
            raise GraphValidationError("Graph contains a cycle") from e

    # ── Serialization ──────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        """Plain-data copy of the graph. Grid parameters are transfer-encoded."""
        return {
            "nodes": [
                {
                    "id": n.id,
                    "kind": n.kind,
                    "name": n.name,
                    "data": copy.deepcopy(transfer.serialize(n.data)),
                }
                for n in self.nodes.values()
            ],
            "edges": [e.to_dict() for e in self.edges],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Graph:
        graph = cls()
        for n in data.get("nodes", []):
            graph.add_node(
                n["kind"],
                name=n.get("name", ""),
                data=transfer.deserialize(n.get("data") or {}),
                node_id=int(n["id"]),
            )
        for e in data.get("edges", []):
            graph.connect(int(e["source"]), e["output"], int(e["target"]), e["input"])
        return graph
