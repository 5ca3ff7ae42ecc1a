"""Configuration loading and defaults."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator

from config_io.schema import ExecutorKind


# ── Sub-configs ────────────────────────────────────────────────────────────

class ProcessingConfig(BaseModel):
    auto: bool = True
    debounce_ms: int = Field(default=500, ge=0)
    executor: ExecutorKind = ExecutorKind.THREAD
    max_workers: int = Field(default=1, ge=1)


class ExtentConfig(BaseModel):
    """Working window of the model, in tile coordinates at ``zoom``."""
    zoom: int = Field(default=12, ge=0)
    x: int = 2016
    y: int = 1344
    width: int = 32
    height: int = 32

    @model_validator(mode="after")
    def _check_axes(self) -> "ExtentConfig":
        size = 2 ** self.zoom
        for start, length in ((self.x, self.width), (self.y, self.height)):
            if not (0 <= start < size and 0 < length <= size - start):
                raise ValueError(
                    f"extent ({start}, {length}) out of range at zoom {self.zoom}"
                )
        return self

    def as_tuple(self) -> tuple[int, int, int, int, int]:
        return (self.zoom, self.x, self.y, self.width, self.height)


# ── Top-level config ───────────────────────────────────────────────────

class Config(BaseModel):
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    extent: ExtentConfig = Field(default_factory=ExtentConfig)


def load_config(path: str | Path | None = None, overrides: dict[str, Any] | None = None) -> Config:
    """Load config from YAML file, applying optional overrides."""
    data: dict[str, Any] = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p) as f:
                data = yaml.safe_load(f) or {}
    if overrides:
        _deep_merge(data, overrides)
    return Config(**data)


def _deep_merge(base: dict, overlay: dict) -> None:
    for k, v in overlay.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
