"""``spatialvault`` command: collect geospatial data from multiple sources."""

from __future__ import annotations

import argparse
import sys
from typing import Iterable, Optional

from . import __version__
from .errors import SpatialVaultError
from .etl import msft_footprints, pull_acled
from .utils.logging import setup_logging

logger = setup_logging(__name__)

COMMANDS = {
    "acled": pull_acled,
    "msft": msft_footprints,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="spatialvault", description=__doc__)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)
    sub_acled = sub.add_parser("acled", help="Ingest ACLED conflict events")
    pull_acled.build_parser(sub_acled)
    sub_msft = sub.add_parser("msft", help="Ingest Microsoft building footprints")
    msft_footprints.build_parser(sub_msft)
    return parser


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    setup_logging("spatialvault", level=args.log_level)
    try:
        COMMANDS[args.command].execute(args)
    except SpatialVaultError as exc:
        logger.error("Script failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
