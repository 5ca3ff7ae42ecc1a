"""Numeric node kinds: constant source, cellwise sum, threshold."""

from __future__ import annotations

from typing import Any

import numpy as np

from config_io.schema import SocketType
from modelling.components.base import BaseComponent, NodeError, PassContext
from modelling.tile_grid import BooleanTileGrid, NumericTileGrid


def _number_param(node, key: str, default: float = 0.0) -> float:
    value = node.data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise NodeError(f"{key.capitalize()} must be a number")
    return float(value)


class NumericConstantComponent(BaseComponent):
    name = "Numeric constant"
    category = "Inputs"
    tool_tip = "A grid covering the model extent with the same value in every cell."

    def builder(self, node) -> None:
        node.add_output("out", "Output", SocketType.NUMERIC)

    def worker(self, node, inputs: dict[str, list[Any]], ctx: PassContext) -> dict[str, Any]:
        value = _number_param(node, "value")
        return {"out": NumericTileGrid(*ctx.extent, value, name=node.name or None)}


class SumComponent(BaseComponent):
    name = "Sum"
    category = "Arithmetic"
    tool_tip = "Cellwise sum of all connected numeric grids."

    def builder(self, node) -> None:
        node.add_input("in", "Input", SocketType.NUMERIC, multi=True)
        node.add_output("out", "Output", SocketType.NUMERIC)

    def worker(self, node, inputs: dict[str, list[Any]], ctx: PassContext) -> dict[str, Any]:
        grids = inputs["in"]
        if not grids:
            raise NodeError("No input")
        first = grids[0]
        if any(g.geometry != first.geometry for g in grids[1:]):
            raise NodeError("Inputs must share an extent")
        total = np.sum([g.data for g in grids], axis=0, dtype=np.float32)
        return {"out": NumericTileGrid(*first.geometry, total, name=node.name or None)}


class ThresholdComponent(BaseComponent):
    name = "Threshold"
    category = "Logic"
    tool_tip = "True where the input is greater than the threshold."

    def builder(self, node) -> None:
        node.add_input("in", "Input", SocketType.NUMERIC, multi=False)
        node.add_output("out", "Output", SocketType.BOOLEAN)

    def worker(self, node, inputs: dict[str, list[Any]], ctx: PassContext) -> dict[str, Any]:
        if not inputs["in"]:
            raise NodeError("No input")
        grid = inputs["in"][0]
        threshold = _number_param(node, "threshold")
        mask = (grid.data > threshold).astype(np.uint8)
        return {"out": BooleanTileGrid(*grid.geometry, mask, name=node.name or None)}
