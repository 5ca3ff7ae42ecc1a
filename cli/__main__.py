"""CLI entry point: ``python -m cli <command> [options]``."""

import importlib
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

COMMANDS = {
    "run_model": "cli.run_model",
    "stats": "cli.stats",
}

if __name__ == "__main__":
    if len(sys.argv) < 2 or sys.argv[1] not in COMMANDS:
        if len(sys.argv) >= 2:
            print(f"Unknown command: {sys.argv[1]}")
        print("Usage: python -m cli <command>")
        print(f"Commands: {', '.join(COMMANDS)}")
        sys.exit(1)

    module = importlib.import_module(COMMANDS[sys.argv[1]])
    # argparse in the subcommand sees only its own options
    sys.argv = [sys.argv[0]] + sys.argv[2:]
    module.main()
