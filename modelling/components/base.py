"""Base node-kind interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from modelling.tile_grid import TileGrid

if TYPE_CHECKING:
    from engine.graph import Node


class NodeError(Exception):
    """A node could not produce output. Recorded on the node, never raised out of a pass."""


@dataclass
class PassContext:
    """Per-pass state handed to every worker: the model extent and sink saves."""
    zoom: int
    x: int
    y: int
    width: int
    height: int
    saves: list[tuple[int, TileGrid]] = field(default_factory=list)

    @property
    def extent(self) -> tuple[int, int, int, int, int]:
        return (self.zoom, self.x, self.y, self.width, self.height)

    def save(self, node_id: int, grid: TileGrid) -> None:
        self.saves.append((node_id, grid))


class BaseComponent(ABC):
    """A node kind. Subclasses set ``name`` (the kind tag) and ``category``.

    ``builder`` runs when a node of this kind is added to a graph and declares
    its sockets. ``worker`` runs during a pass and must only depend on its
    inputs and ``node.data``, since passes execute off the interactive thread.
    """

    name: str = ""
    category: str = ""
    tool_tip: str = ""

    @abstractmethod
    def builder(self, node: Node) -> None:
        """Declare the node's input and output sockets."""
        ...

    @abstractmethod
    def worker(self, node: Node, inputs: dict[str, list[Any]], ctx: PassContext) -> dict[str, Any]:
        """Map resolved input values to output values, or raise NodeError."""
        ...
