"""CLI command: print stats for a saved tile grid."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config_io.utils import load_json
from modelling.tile_grid import NumericTileGrid, from_json, get_extent


def main() -> None:
    parser = argparse.ArgumentParser(description="Show stats for a tile grid JSON file")
    parser.add_argument("--grid", type=str, required=True, help="Path to tile grid JSON")
    parser.add_argument("--zoom", type=int, default=None, help="Also report the extent at this zoom")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    grid = from_json(load_json(args.grid))
    stats = grid.get_stats()

    print(f"\n=== {stats.type.value} ===")
    print(f"  Zoom: {grid.zoom}  Origin: ({grid.x}, {grid.y})  Size: {grid.width}x{grid.height}")
    print(f"  Min: {stats.min}  Max: {stats.max}")
    if isinstance(grid, NumericTileGrid):
        print(f"  Total: {grid.get_total()}")
    if stats.labels:
        for code, label in stats.labels:
            print(f"  {code}: {label}")
    if args.zoom is not None:
        print(f"  Extent at zoom {args.zoom}: {get_extent(grid, args.zoom)}")


if __name__ == "__main__":
    main()
