#!/usr/bin/env python3
"""Pull ACLED events for every configured country into PostGIS.

For each ``(iso3, code)`` pair in the config's ``[country_codes]`` table the
existing rows for that code are deleted, then pages are fetched from 1 until
the API answers with ``count == 0``. Each page is mapped, enriched with the
ISO3 name and written in chunks.

Usage
-----
spatialvault acled --config acled.toml [--pg-config pg.toml] [--create-table]
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, Optional

import requests

from ..db import connect
from ..decode import Page, parse_page
from ..errors import ConfigError, SpatialVaultError
from ..fetch import acled_params, build_session, fetch_page
from ..loader import CHUNK_SIZE, SINK_KINDS, Sink, load, open_sink
from ..schema import incident_table
from ..settings import DEFAULT_ACLED_TABLE, AcledConfig, load_acled_config
from ..utils.logging import setup_logging
from .incident import map_page

# ---------------------------------------------------------------------------
# logging
# ---------------------------------------------------------------------------
logger = setup_logging(__name__)


@dataclass
class RunContext:
    """Everything one run needs, handed explicitly to each stage."""

    config: AcledConfig
    session: requests.Session
    sink: Sink


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------

def iter_pages(fetch: Callable[[Dict[str, Any]], Any],
               make_params: Callable[[int], Dict[str, Any]]) -> Iterator[Page]:
    """Yield non-empty pages starting at 1; stop at the first ``count == 0``."""
    page = 1
    while True:
        result = parse_page(fetch(make_params(page)))
        if result.exhausted:
            return
        yield result
        page += 1


def load_country(ctx: RunContext, iso3: str, code: int) -> int:
    """Replace every row for ``code`` with freshly fetched events."""
    logger.info("Fetching data for country %s", iso3)
    ctx.sink.reset("iso", code)

    api = ctx.config.api

    def fetch(params):
        return fetch_page(ctx.session, api.url, params, timeout=ctx.config.http.timeout)

    written = 0
    for number, page in enumerate(iter_pages(fetch, lambda p: acled_params(api, p, code)), 1):
        logger.info("iso = %s - page = %d - count = %d", iso3, number, page.count)
        incidents = map_page(page.data, iso3)
        written += load(ctx.sink, incidents)
    logger.info("Loaded %d incidents for %s", written, iso3)
    return written


def run(ctx: RunContext) -> int:
    total = 0
    for iso3, code in ctx.config.country_codes.items():
        total += load_country(ctx, iso3, code)
    logger.info("Done: %d incidents across %d countries",
                total, len(ctx.config.country_codes))
    return total


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"{value} is not a positive integer")
    return number


def build_parser(parser: Optional[argparse.ArgumentParser] = None) -> argparse.ArgumentParser:
    parser = parser or argparse.ArgumentParser(
        prog="spatialvault acled", description="Ingest data into postgresql from acled api"
    )
    parser.add_argument("--config", required=True, help="TOML file with [acled] and [country_codes]")
    parser.add_argument(
        "--pg-config",
        default=None,
        help="Optional TOML file with the database parameters; overrides [database]",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy database URL; overrides the config files and $DATABASE_URL",
    )
    parser.add_argument(
        "--create-table",
        action="store_true",
        help="Create the schema and table if they do not exist",
    )
    parser.add_argument("--output", choices=SINK_KINDS, default="postgis")
    parser.add_argument(
        "--output-path",
        default=None,
        help="Destination file for --output sql/shapefile",
    )
    parser.add_argument("--chunk-size", type=positive_int, default=CHUNK_SIZE)
    parser.add_argument("--log-level", default="INFO")
    return parser


def execute(args: argparse.Namespace) -> None:
    """Run the command described by parsed ``args``; raises on failure."""
    config = load_acled_config(args.config, pg_config=args.pg_config)
    try:
        table = incident_table(
            config.database.schema, config.database.table_name or DEFAULT_ACLED_TABLE
        )
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    connection = None
    if args.output == "postgis":
        connection = connect(args.database_url or config.database.url)

    try:
        sink = open_sink(
            args.output,
            table,
            connection=connection,
            path=args.output_path,
            chunk_size=args.chunk_size,
            create_table=args.create_table,
        )
    except SpatialVaultError:
        if connection is not None:
            connection.close()
        raise
    with sink, build_session(config.http.retries) as session:
        run(RunContext(config=config, session=session, sink=sink))


def main(argv: Iterable[str] | None = None) -> None:
    """Entry point for CLI usage."""
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    setup_logging(__name__, level=args.log_level)
    try:
        execute(args)
    except SpatialVaultError as exc:
        logger.error("Script failed: %s", exc)
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    main()
