"""Categorise: combine boolean masks into one categorical grid."""

from __future__ import annotations

from typing import Any

from config_io.schema import SocketType
from modelling.components.base import BaseComponent, NodeError, PassContext
from modelling.tile_grid import CategoricalTileGrid, NO_DATA


class CategoriseComponent(BaseComponent):
    name = "Categorise"
    category = "Logic"
    tool_tip = "Assign each connected mask its own category. Later inputs paint over earlier ones."

    def builder(self, node) -> None:
        node.add_input("in", "Masks", SocketType.BOOLEAN, multi=True)
        node.add_output("out", "Output", SocketType.CATEGORICAL)

    def worker(self, node, inputs: dict[str, list[Any]], ctx: PassContext) -> dict[str, Any]:
        masks = inputs["in"]
        if not masks:
            raise NodeError("No input")
        if len(masks) >= NO_DATA:
            raise NodeError(f"At most {NO_DATA - 1} categories are supported")
        first = masks[0]
        if any(m.zoom != first.zoom for m in masks[1:]):
            raise NodeError("Inputs must share a zoom level")

        result = CategoricalTileGrid(*first.geometry)
        labels: dict[int, str] = {}
        for code, mask in enumerate(masks):
            labels[code] = mask.name or f"Category {code}"
            result.apply_category_from_boolean_grid(mask, code)
        result.set_labels(labels)
        return {"out": result}
