"""Shared file helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np
import yaml


def ensure_dir(path: str | Path) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def _json_default(obj: Any) -> Any:
    # numpy scalars and arrays leak out of grid stats
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    return str(obj)


def save_json(data: Any, path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w") as f:
        json.dump(data, f, indent=2, default=_json_default)


def load_json(path: str | Path) -> Any:
    with open(path) as f:
        return json.load(f)


def load_document(path: str | Path) -> Any:
    """Load a JSON or YAML document, chosen by file suffix."""
    p = Path(path)
    if p.suffix.lower() in (".yaml", ".yml"):
        with open(p) as f:
            return yaml.safe_load(f) or {}
    return load_json(p)
