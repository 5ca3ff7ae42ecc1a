"""Tagged transfer of tile grids across the worker boundary.

Messages sent to and from a pass worker are plain dicts/lists. Grids inside
them are wrapped as ``{"__type": "$$<GridType>", ...}`` so the receiving side
rebuilds the concrete variant instead of a structural copy.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from config_io.schema import TileGridType
from modelling.tile_grid import (
    BooleanTileGrid,
    CategoricalTileGrid,
    NumericTileGrid,
    TileGrid,
    TileGridDecodeError,
)

TYPE_KEY = "__type"
TAG_PREFIX = "$$"


def _encode_grid(grid: TileGrid) -> dict[str, Any]:
    message: dict[str, Any] = {
        TYPE_KEY: TAG_PREFIX + grid.type.value,
        "zoom": grid.zoom,
        "x": grid.x,
        "y": grid.y,
        "width": grid.width,
        "height": grid.height,
        "data": grid.data.copy(),
    }
    if isinstance(grid, CategoricalTileGrid):
        message["labels"] = dict(grid.labels)
    else:
        message["name"] = grid.name
    return message


def _decode_grid(tag: str, message: dict[str, Any]) -> TileGrid:
    try:
        grid_type = TileGridType(tag[len(TAG_PREFIX):])
    except ValueError:
        raise TileGridDecodeError(f"Unknown transfer tag: {tag}") from None

    try:
        geometry = (message["zoom"], message["x"], message["y"], message["width"], message["height"])
        data = np.asarray(message["data"])
    except KeyError as e:
        raise TileGridDecodeError(f"Transfer message {tag} is missing {e}") from None
    if grid_type == TileGridType.BOOLEAN:
        return BooleanTileGrid(*geometry, data, name=message.get("name"))
    if grid_type == TileGridType.NUMERIC:
        return NumericTileGrid(*geometry, data, name=message.get("name"))
    return CategoricalTileGrid(*geometry, data, message.get("labels") or {})


def serialize(thing: Any) -> Any:
    """Wrap every grid in ``thing`` (recursing into dicts, lists and tuples)."""
    if isinstance(thing, TileGrid):
        return _encode_grid(thing)
    if isinstance(thing, dict):
        return {k: serialize(v) for k, v in thing.items()}
    if isinstance(thing, list):
        return [serialize(v) for v in thing]
    if isinstance(thing, tuple):
        return tuple(serialize(v) for v in thing)
    return thing


def deserialize(message: Any) -> Any:
    """Inverse of :func:`serialize`."""
    if isinstance(message, dict):
        tag = message.get(TYPE_KEY)
        if isinstance(tag, str) and tag.startswith(TAG_PREFIX):
            return _decode_grid(tag, message)
        return {k: deserialize(v) for k, v in message.items()}
    if isinstance(message, list):
        return [deserialize(v) for v in message]
    if isinstance(message, tuple):
        return tuple(deserialize(v) for v in message)
    return message
