"""Tile grids: rectangular raster windows at a fixed zoom level.

A grid covers ``width x height`` tiles starting at ``(x, y)`` in the tile
space of its ``zoom`` (``2 ** zoom`` tiles per axis). Cells are held in a
numpy array of shape ``(width, height)``, so flattening it gives the x-major
order used on the wire: index ``(x - grid.x) * height + (y - grid.y)``.

Three variants share the geometry and differ in cell type:

- ``BooleanTileGrid``: uint8 0/1 per cell, default ``False``
- ``NumericTileGrid``: float32 per cell, default ``0``
- ``CategoricalTileGrid``: uint8 code per cell, default ``255`` (no data),
  plus a code -> label table
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional, Union

import numpy as np
from pydantic import ValidationError

from config_io.schema import SocketType, TileGridJSON, TileGridType


NO_DATA = 255


class TileGridDecodeError(ValueError):
    """Raised when a wire object cannot be turned back into a tile grid."""


@dataclass
class GridStats:
    min: float
    max: float
    type: TileGridType
    labels: Optional[list[tuple[int, str]]] = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"min": self.min, "max": self.max, "type": self.type.value}
        if self.labels is not None:
            d["labels"] = [list(pair) for pair in self.labels]
        return d


# ── Geometry helpers ───────────────────────────────────────────────────────

def _is_integer(value: Any) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


def _is_buffer(value: Any) -> bool:
    return isinstance(value, (np.ndarray, list, tuple))


def validate_zoom(zoom: Any) -> None:
    if not (_is_integer(zoom) and zoom >= 0):
        raise ValueError("zoom must be an integer >= 0")


def validate_axis_extent(zoom: int, start: Any, length: Any) -> None:
    size = 2 ** zoom
    if not (
        _is_integer(start) and 0 <= start < size
        and _is_integer(length) and 0 < length <= size - start
    ):
        raise ValueError("extent out of range")


def to_index(grid: TileGrid, x: int, y: int) -> Optional[tuple[int, int]]:
    """Array index of native tile ``(x, y)``, or None outside the grid."""
    if grid.x <= x < grid.x + grid.width and grid.y <= y < grid.y + grid.height:
        return (x - grid.x, y - grid.y)
    return None


def get_extent(grid: TileGrid, zoom: int) -> list[float]:
    """Bounds ``[x0, y0, x1, y1]`` of ``grid`` in the tile space of ``zoom``."""
    scale = 2.0 ** (zoom - grid.zoom)
    return [
        grid.x * scale,
        grid.y * scale,
        (grid.x + grid.width) * scale,
        (grid.y + grid.height) * scale,
    ]


# ── Grids ──────────────────────────────────────────────────────────────────

class TileGrid:
    """Shared geometry and cell access. Use one of the concrete variants."""

    type: TileGridType
    socket: SocketType
    dtype: type = np.uint8
    default: Any = None

    def __init__(self, zoom: int, x: int, y: int, width: int, height: int):
        validate_zoom(zoom)
        validate_axis_extent(zoom, x, width)
        validate_axis_extent(zoom, y, height)

        self.zoom = int(zoom)
        self.x = int(x)
        self.y = int(y)
        self.width = int(width)
        self.height = int(height)
        self.data: np.ndarray

    @property
    def geometry(self) -> tuple[int, int, int, int, int]:
        return (self.zoom, self.x, self.y, self.width, self.height)

    def _make_buffer(self, initial: Any, fill: Any) -> np.ndarray:
        if _is_buffer(initial):
            arr = np.array(initial, dtype=self.dtype)
            if arr.size != self.width * self.height:
                raise ValueError(
                    f"data has {arr.size} cells, extent needs {self.width * self.height}"
                )
            return arr.reshape(self.width, self.height)
        return np.full((self.width, self.height), fill, dtype=self.dtype)

    def _locate(self, x: int, y: int, zoom: Optional[int]) -> Optional[tuple[int, int]]:
        if zoom is None:
            zoom = self.zoom
        if zoom < self.zoom:
            raise ValueError("invalid zoom level")
        scale = 2 ** (zoom - self.zoom)
        return to_index(self, int(x // scale), int(y // scale))

    def _locate_native(self, x: int, y: int) -> tuple[int, int]:
        index = to_index(self, x, y)
        if index is None:
            raise ValueError("coordinate out of range")
        return index

    def get(self, x: int, y: int, zoom: Optional[int] = None) -> Any:
        index = self._locate(x, y, zoom)
        if index is None:
            return self.default
        return self._read(index)

    def _read(self, index: tuple[int, int]) -> Any:
        raise NotImplementedError

    def get_stats(self) -> GridStats:
        raise NotImplementedError

    def _extra_json(self) -> dict[str, Any]:
        return {}

    def to_json(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "type": self.type.value,
            "zoom": self.zoom,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "data": self.data.ravel().tolist(),
        }
        d.update(self._extra_json())
        return d

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return (
            self.geometry == other.geometry
            and np.array_equal(self.data, other.data, equal_nan=self.dtype is np.float32)
            and self._extra_json() == other._extra_json()
        )

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(zoom={self.zoom}, x={self.x}, y={self.y}, "
                f"width={self.width}, height={self.height})")


class BooleanTileGrid(TileGrid):
    type = TileGridType.BOOLEAN
    socket = SocketType.BOOLEAN
    dtype = np.uint8
    default = False

    def __init__(self, zoom: int, x: int, y: int, width: int, height: int,
                 initial: Union[bool, np.ndarray, list] = False, name: Optional[str] = None):
        super().__init__(zoom, x, y, width, height)
        self.data = self._make_buffer(initial, 0 if _is_buffer(initial) else int(bool(initial)))
        self.name = name

    def _read(self, index: tuple[int, int]) -> bool:
        return bool(self.data[index] == 1)

    def set(self, x: int, y: int, value: bool) -> None:
        self.data[self._locate_native(x, y)] = 1 if value else 0

    def get_stats(self) -> GridStats:
        return GridStats(min=0, max=1, type=self.type)


class NumericTileGrid(TileGrid):
    type = TileGridType.NUMERIC
    socket = SocketType.NUMERIC
    dtype = np.float32
    default = 0.0

    def __init__(self, zoom: int, x: int, y: int, width: int, height: int,
                 initial: Union[float, np.ndarray, list] = 0.0, name: Optional[str] = None):
        super().__init__(zoom, x, y, width, height)
        self.data = self._make_buffer(initial, initial)
        self.name = name
        self._min_max: Optional[tuple[float, float]] = None

    def _read(self, index: tuple[int, int]) -> float:
        return float(self.data[index])

    def set(self, x: int, y: int, value: float) -> None:
        self.data[self._locate_native(x, y)] = value
        self._min_max = None

    def get_min_max(self) -> tuple[float, float]:
        """Min and max over finite cells; (inf, -inf) if there are none."""
        if self._min_max is None:
            finite = self.data[np.isfinite(self.data)]
            if finite.size:
                self._min_max = (float(finite.min()), float(finite.max()))
            else:
                self._min_max = (math.inf, -math.inf)
        return self._min_max

    def get_stats(self) -> GridStats:
        lo, hi = self.get_min_max()
        return GridStats(min=lo, max=hi, type=self.type)

    def get_total(self) -> float:
        return float(self.data.sum(dtype=np.float64))


class CategoricalTileGrid(TileGrid):
    type = TileGridType.CATEGORICAL
    socket = SocketType.CATEGORICAL
    dtype = np.uint8
    default = NO_DATA

    def __init__(self, zoom: int, x: int, y: int, width: int, height: int,
                 initial: Optional[Union[np.ndarray, list]] = None,
                 labels: Optional[dict[int, str]] = None):
        super().__init__(zoom, x, y, width, height)
        self.data = self._make_buffer(initial, NO_DATA)
        self.labels: dict[int, str] = {}
        if labels:
            self.set_labels(labels)

    def _read(self, index: tuple[int, int]) -> int:
        return int(self.data[index])

    def set(self, x: int, y: int, value: int) -> None:
        if not (_is_integer(value) and 0 <= value <= NO_DATA):
            raise ValueError("category code must be an integer in [0, 255]")
        self.data[self._locate_native(x, y)] = value

    def set_labels(self, labels: dict[int, str]) -> None:
        self.labels = {int(code): str(label) for code, label in labels.items()}

    def get_min_max(self) -> tuple[int, int]:
        return (0, len(self.labels))

    def get_as_label(self, x: int, y: int, zoom: Optional[int] = None) -> Optional[str]:
        return self.labels.get(self.get(x, y, zoom))

    def apply_category_from_boolean_grid(self, bool_grid: BooleanTileGrid, code: int) -> None:
        """Paint ``code`` into every cell where ``bool_grid`` is true."""
        for i in range(self.x, self.x + self.width):
            for j in range(self.y, self.y + self.height):
                if bool_grid.get(i, j, self.zoom):
                    self.set(i, j, code)

    def get_stats(self) -> GridStats:
        lo, hi = self.get_min_max()
        return GridStats(min=lo, max=hi, type=self.type, labels=list(self.labels.items()))

    def _extra_json(self) -> dict[str, Any]:
        return {"labels": {str(code): label for code, label in self.labels.items()}}


GRID_TYPES: dict[TileGridType, type[TileGrid]] = {
    TileGridType.BOOLEAN: BooleanTileGrid,
    TileGridType.NUMERIC: NumericTileGrid,
    TileGridType.CATEGORICAL: CategoricalTileGrid,
}


def _check_cells(grid_type: TileGridType, values: list[float]) -> None:
    """Reject cells that the uint8 variants cannot hold exactly."""
    if grid_type == TileGridType.NUMERIC:
        return
    top = 1 if grid_type == TileGridType.BOOLEAN else NO_DATA
    cells = np.asarray(values, dtype=np.float64)
    valid = (cells == np.floor(cells)) & (cells >= 0) & (cells <= top)
    if not valid.all():
        bad = cells[~valid][0]
        raise TileGridDecodeError(
            f"Invalid tile grid JSON: {grid_type.value} cell value {bad} not in 0..{top}"
        )


def from_json(obj: Union[dict, TileGridJSON]) -> TileGrid:
    """Rebuild the concrete grid described by a wire object."""
    try:
        wire = obj if isinstance(obj, TileGridJSON) else TileGridJSON.model_validate(obj)
    except ValidationError as e:
        raise TileGridDecodeError(f"Invalid tile grid JSON: {e}") from e

    geometry = (wire.zoom, wire.x, wire.y, wire.width, wire.height)
    values = wire.data_values()
    _check_cells(wire.type, values)
    try:
        if wire.type == TileGridType.BOOLEAN:
            return BooleanTileGrid(*geometry, np.asarray(values, dtype=np.uint8))
        if wire.type == TileGridType.NUMERIC:
            return NumericTileGrid(*geometry, np.asarray(values, dtype=np.float32))
        labels = {int(code): label for code, label in (wire.labels or {}).items()}
        return CategoricalTileGrid(*geometry, np.asarray(values, dtype=np.uint8), labels)
    except (ValueError, OverflowError) as e:
        raise TileGridDecodeError(f"Invalid tile grid JSON: {e}") from e
