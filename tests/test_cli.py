"""Test: command-line model runs and grid stats."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import numpy as np

from cli import run_model, stats
from config_io.utils import load_json, save_json
from modelling.tile_grid import CategoricalTileGrid, NumericTileGrid, from_json

DEMO_MODEL = Path(__file__).resolve().parent.parent / "models" / "woodland_demo.yaml"


def test_run_model_writes_layers(tmp_path, monkeypatch, capsys):
    out = tmp_path / "layers"
    monkeypatch.setattr(sys, "argv", [
        "run_model", "--model", str(DEMO_MODEL), "--output", str(out), "--timeout", "30",
    ])
    run_model.main()

    cover = from_json(load_json(out / "layer_7.json"))
    assert isinstance(cover, CategoricalTileGrid)
    assert cover.labels == {0: "Woodland", 1: "Wetland"}
    assert np.all(cover.data == 0)

    suitability = from_json(load_json(out / "layer_8.json"))
    assert isinstance(suitability, NumericTileGrid)
    assert suitability.get_min_max() == (4.5, 4.5)
    assert suitability.geometry == (12, 2016, 1344, 32, 32)

    printed = capsys.readouterr().out
    assert "Model Summary" in printed
    assert "ERROR" not in printed


def test_stats_prints_labels(tmp_path, monkeypatch, capsys):
    grid = CategoricalTileGrid(3, 2, 2, 2, 2, labels={0: "Arable", 1: "Woodland"})
    grid.set(3, 3, 1)
    path = tmp_path / "grid.json"
    save_json(grid.to_json(), path)

    monkeypatch.setattr(sys, "argv", ["stats", "--grid", str(path), "--zoom", "5"])
    stats.main()
    printed = capsys.readouterr().out
    assert "CategoricalTileGrid" in printed
    assert "1: Woodland" in printed
    assert "Extent at zoom 5" in printed
