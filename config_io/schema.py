"""Enums and Pydantic models for the tile grid wire format."""

from __future__ import annotations

import enum
from typing import Optional, Union

from pydantic import BaseModel, Field


# ── Enums ──────────────────────────────────────────────────────────────────

class TileGridType(str, enum.Enum):
    BOOLEAN = "BooleanTileGrid"
    NUMERIC = "NumericTileGrid"
    CATEGORICAL = "CategoricalTileGrid"


class SocketType(str, enum.Enum):
    """Value kinds carried between node sockets. DATA accepts any grid."""
    DATA = "data"
    BOOLEAN = "boolean"
    NUMERIC = "numeric"
    CATEGORICAL = "categorical"


class SchedulerState(str, enum.Enum):
    IDLE = "IDLE"
    PENDING = "PENDING"
    RUNNING = "RUNNING"


class ExecutorKind(str, enum.Enum):
    THREAD = "thread"
    PROCESS = "process"


# Which grid types an input socket of a given type will accept
SOCKET_ACCEPTS: dict[SocketType, set[SocketType]] = {
    SocketType.DATA: set(SocketType),
    SocketType.BOOLEAN: {SocketType.BOOLEAN},
    SocketType.NUMERIC: {SocketType.NUMERIC},
    SocketType.CATEGORICAL: {SocketType.CATEGORICAL},
}


def sockets_compatible(output: SocketType, input: SocketType) -> bool:
    return output in SOCKET_ACCEPTS[input]


# ── Wire schema ────────────────────────────────────────────────────────────

class TileGridJSON(BaseModel):
    """Persisted / wire representation of a tile grid.

    ``data`` is either a flat list or an index-keyed object, the latter being
    what a browser produces when it serializes a typed array.
    """
    type: TileGridType
    zoom: int = Field(ge=0)
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    data: Union[list[float], dict[str, float]]
    labels: Optional[dict[str, str]] = None

    def data_values(self) -> list[float]:
        if isinstance(self.data, dict):
            return [self.data[k] for k in sorted(self.data, key=int)]
        return list(self.data)
