"""Output sink: hands a computed grid to the map layer store."""

from __future__ import annotations

from typing import Any, Callable

from config_io.schema import SocketType
from modelling.components.base import BaseComponent, NodeError, PassContext
from modelling.tile_grid import TileGrid

SaveMapLayer = Callable[[int, TileGrid], None]


class MapLayerComponent(BaseComponent):
    """Records the first grid on its input as the node's map layer.

    The save is collected on the pass context and delivered to the external
    ``save(node_id, grid)`` callback when the pass result is applied.
    """

    name = "Map layer"
    category = "Outputs"
    tool_tip = "Output a model to the map view."

    def builder(self, node) -> None:
        node.add_input("in", "Output", SocketType.DATA, multi=False)

    def worker(self, node, inputs: dict[str, list[Any]], ctx: PassContext) -> dict[str, Any]:
        if len(inputs["in"]) == 0:
            raise NodeError("No input")
        ctx.save(node.id, inputs["in"][0])
        return {}
