"""CLI command: evaluate a model file once and write its map layers."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config_io.config import load_config
from config_io.utils import ensure_dir, load_document, save_json
from engine.graph import Graph
from engine.scheduler import ProcessingScheduler
from modelling.tile_grid import TileGrid


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a tilegraph model and save its map layers")
    parser.add_argument("--model", type=str, required=True, help="Path to model JSON/YAML")
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config file")
    parser.add_argument("--output", type=str, default="layers", help="Output directory")
    parser.add_argument("--executor", type=str, default=None, choices=["thread", "process"],
                        help="Override the pass executor")
    parser.add_argument("--timeout", type=float, default=None, help="Give up after this many seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(levelname)s: %(message)s")

    overrides: dict = {"processing": {"auto": False}}
    if args.executor is not None:
        overrides["processing"]["executor"] = args.executor
    config = load_config(args.config, overrides)
    graph = Graph.from_dict(load_document(args.model))

    out = ensure_dir(args.output)
    layers: dict[int, TileGrid] = {}

    def save(node_id: int, grid: TileGrid) -> None:
        layers[node_id] = grid

    logging.info(f"Running model: {len(graph.nodes)} nodes, {len(graph.edges)} edges, "
                 f"extent={config.extent.as_tuple()}")

    with ProcessingScheduler(graph, save, config) as scheduler:
        scheduler.process()
        if not scheduler.run_until_idle(timeout=args.timeout):
            logging.error("Timed out waiting for the pass to finish")
            sys.exit(1)
        if scheduler.last_error is not None:
            logging.error(f"Pass failed: {scheduler.last_error}")
            sys.exit(1)

    for node_id, grid in layers.items():
        save_json(grid.to_json(), out / f"layer_{node_id}.json")

    print("\n=== Model Summary ===")
    for node in graph.nodes.values():
        status = f"ERROR: {node.error_message}" if node.error_message else "ok"
        print(f"  [{node.id}] {node.name or node.kind}: {status}")
    for node_id, grid in layers.items():
        stats = grid.get_stats()
        print(f"  Layer {node_id}: {stats.type.value} min={stats.min} max={stats.max}")
    print(f"  Layers saved to: {out}")


if __name__ == "__main__":
    main()
