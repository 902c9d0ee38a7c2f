#!/usr/bin/env python3
"""Load Microsoft Global Building Footprints into PostGIS.

The dataset manifest maps every location to one or more gzip-compressed
GeoJSON-lines files. ``--list`` prints the available locations; ``--name``
downloads every file for that location and loads each building polygon.

Usage
-----
spatialvault msft --list
spatialvault msft --database-url postgresql://... --create-table
spatialvault msft --database-url postgresql://... --name Sudan [--max-urls 2]
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from typing import Iterable, List, Optional

import requests

from ..db import connect
from ..decode import CountryCatalog, decode_gzip_ndjson, parse_manifest
from ..errors import ConfigError, SpatialVaultError
from ..fetch import build_session, fetch_bytes, fetch_text
from ..loader import CHUNK_SIZE, SINK_KINDS, Sink, load, open_sink
from ..schema import footprint_table
from ..settings import DEFAULT_TIMEOUT, load_database_config
from ..utils.logging import setup_logging
from .footprint import map_features
from .pull_acled import positive_int

logger = setup_logging(__name__)

CSV_URL = "https://minedbuildings.blob.core.windows.net/global-buildings/dataset-links.csv"
DEFAULT_TABLE = "wld_buildings_microsoft"


@dataclass
class RunContext:
    session: requests.Session
    sink: Sink
    timeout: float = DEFAULT_TIMEOUT


def get_catalog(session: requests.Session, url: str = CSV_URL,
                timeout: float = DEFAULT_TIMEOUT) -> CountryCatalog:
    """Download and parse the dataset manifest."""
    catalog = parse_manifest(fetch_text(session, url, timeout=timeout))
    logger.debug("Manifest lists %d files", len(catalog))
    return catalog


def list_countries(catalog: CountryCatalog) -> List[str]:
    logger.info("Fetching list of available countries")
    return catalog.list_countries()


def select_urls(catalog: CountryCatalog, name: str,
                max_urls: Optional[int] = None) -> List[str]:
    """URLs for ``name`` in manifest order, optionally capped at ``max_urls``."""
    urls = catalog.urls_for(name)
    if not urls:
        raise ConfigError(f"Unknown location {name!r}; use --list to see options")
    if max_urls is not None and max_urls < len(urls):
        logger.info("Processing the first %d of %d files for %s", max_urls, len(urls), name)
        urls = urls[:max_urls]
    return urls


def process_url(ctx: RunContext, url: str) -> int:
    logger.info("Processing url %s", url)
    geometries = decode_gzip_ndjson(fetch_bytes(ctx.session, url, timeout=ctx.timeout))
    footprints = map_features(geometries)
    written = load(ctx.sink, footprints)
    logger.info("Inserted %d footprints from %s", written, url)
    return written


def run(ctx: RunContext, urls: List[str]) -> int:
    """Fetch, decode, map and load each URL in sequence."""
    total = 0
    for url in urls:
        total += process_url(ctx, url)
    logger.info("Done: %d footprints from %d files", total, len(urls))
    return total


def build_parser(parser: Optional[argparse.ArgumentParser] = None) -> argparse.ArgumentParser:
    parser = parser or argparse.ArgumentParser(
        prog="spatialvault msft",
        description="Ingest data into postgresql of microsoft building footprint",
    )
    parser.add_argument("--list", action="store_true", help="List available locations and exit")
    parser.add_argument(
        "--create-table",
        action="store_true",
        help="Create the schema and table, then exit",
    )
    parser.add_argument("--name", default=None, help="Location to load, as printed by --list")
    parser.add_argument("--database-url", default=None)
    parser.add_argument(
        "--config",
        default=None,
        help="Optional TOML file with a [database] section",
    )
    parser.add_argument("--database-schema", default=None,
                        help="Target schema (default: public)")
    parser.add_argument("--table-name", default=None,
                        help=f"Target table (default: {DEFAULT_TABLE})")
    parser.add_argument("--output", choices=SINK_KINDS, default="postgis")
    parser.add_argument("--output-path", default=None,
                        help="Destination file for --output sql/shapefile")
    parser.add_argument(
        "--max-urls",
        type=positive_int,
        default=None,
        help="Only process the first N files of the location",
    )
    parser.add_argument("--manifest-url", default=CSV_URL)
    parser.add_argument("--chunk-size", type=positive_int, default=CHUNK_SIZE)
    parser.add_argument("--log-level", default="INFO")
    return parser


def execute(args: argparse.Namespace) -> None:
    """Run the command described by parsed ``args``; raises on failure."""
    with build_session() as session:
        if args.list:
            for name in list_countries(get_catalog(session, args.manifest_url)):
                print(f"- {name}")
            return

        database_url = args.database_url
        schema = args.database_schema
        table_name = args.table_name
        if args.config:
            database = load_database_config(args.config)
            database_url = database_url or database.url
            schema = schema or database.schema
            table_name = table_name or database.table_name
        try:
            table = footprint_table(schema or "public", table_name or DEFAULT_TABLE)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

        if args.create_table:
            with open_sink(
                args.output,
                table,
                connection=connect(database_url) if args.output == "postgis" else None,
                path=args.output_path,
                create_table=True,
            ):
                pass
            return

        if not args.name:
            raise ConfigError("Missing parameter --name (or use --list)")

        catalog = get_catalog(session, args.manifest_url)
        urls = select_urls(catalog, args.name, args.max_urls)

        connection = connect(database_url) if args.output == "postgis" else None
        with open_sink(
            args.output,
            table,
            connection=connection,
            path=args.output_path,
            chunk_size=args.chunk_size,
        ) as sink:
            run(RunContext(session=session, sink=sink), urls)


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
