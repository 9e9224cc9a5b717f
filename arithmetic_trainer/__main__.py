"""Command line entry point: ``python -m arithmetic_trainer``."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from . import __version__
from .app import run
from .config import DATA_DIR_ENV
from .log import LOG_LEVEL_ENV, setup_logging


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="arithmetic-trainer", description="Timed mental arithmetic drills")
    p.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help=f"Directory for settings and results (default: ${DATA_DIR_ENV} or ~/.arithmetic_trainer)",
    )
    p.add_argument("--log-level", default=None, help=f"Log level (default: ${LOG_LEVEL_ENV} or WARNING)")
    p.add_argument("--version", action="store_true", help="Print version and exit")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    if args.version:
        print(f"arithmetic-trainer {__version__}")
        return 0
    setup_logging(args.log_level)
    return run(data_dir=args.data_dir)


if __name__ == "__main__":
    sys.exit(main())
