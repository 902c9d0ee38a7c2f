"""Decode remote payloads into plain Python structures.

Decoding is fully buffered: a gzip blob is decompressed completely before it
is split into lines.
"""

from __future__ import annotations

import gzip
import io
import json
import zlib
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple

import pandas as pd

from .errors import DecodeError
from .utils.logging import setup_logging

logger = setup_logging(__name__)

MANIFEST_COLUMNS = ("Location", "Url")


@dataclass(frozen=True)
class Page:
    count: int
    data: List[Dict[str, Any]]

    @property
    def exhausted(self) -> bool:
        return self.count == 0


def parse_page(body: Any) -> Page:
    """Extract ``count`` and ``data`` from an event API response object."""
    if not isinstance(body, Mapping):
        raise DecodeError("Response body is not a JSON object")

    count = body.get("count")
    if isinstance(count, bool) or not isinstance(count, int):
        raise DecodeError(f"Invalid count field: {count!r}")

    if count == 0:
        # an exhausted page may omit data entirely
        return Page(count=0, data=[])

    data = body.get("data")
    if not isinstance(data, list):
        raise DecodeError("Array values not found in data field")
    for item in data:
        if not isinstance(item, Mapping):
            raise DecodeError(f"data entry is not an object: {item!r}")
    return Page(count=count, data=list(data))


def gunzip_text(payload: bytes) -> str:
    try:
        return gzip.decompress(payload).decode("utf-8")
    except (OSError, EOFError, zlib.error, UnicodeDecodeError) as exc:
        raise DecodeError(f"Invalid gzip payload: {exc}") from exc


def decode_gzip_ndjson(payload: bytes) -> List[Dict[str, Any]]:
    """Return the ``geometry`` member of every GeoJSON feature in ``payload``."""
    text = gunzip_text(payload)
    geometries = []
    for lineno, line in enumerate(text.split("\n"), start=1):
        if not line.strip():
            continue
        try:
            feature = json.loads(line)
        except ValueError as exc:
            raise DecodeError(f"Failing deserializing json on line {lineno}: {exc}") from exc
        if not isinstance(feature, Mapping) or "geometry" not in feature:
            raise DecodeError(f"Missing geometry field on line {lineno}")
        geometries.append(feature["geometry"])
    logger.debug("Decoded %d features", len(geometries))
    return geometries


class CountryCatalog:
    """Read-only mapping of location name to dataset download URLs."""

    def __init__(self, rows: List[Tuple[str, str]]):
        self._rows = list(rows)

    def __len__(self) -> int:
        return len(self._rows)

    @property
    def rows(self) -> List[Tuple[str, str]]:
        return list(self._rows)

    def list_countries(self) -> List[str]:
        """Distinct location names, sorted."""
        return sorted({location for location, _ in self._rows})

    def urls_for(self, name: str) -> List[str]:
        return [url for location, url in self._rows if location == name]


def parse_manifest(text: str) -> CountryCatalog:
    """Parse the dataset-links CSV (``Location``, ``Url`` and extra columns)."""
    try:
        frame = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
    except (ValueError, pd.errors.ParserError) as exc:
        raise DecodeError(f"Cannot parse manifest CSV: {exc}") from exc

    missing = set(MANIFEST_COLUMNS) - set(frame.columns)
    if missing:
        raise DecodeError(
            "Manifest is missing required columns: %s" % ", ".join(sorted(missing))
        )
    rows = list(zip(frame["Location"].str.strip(), frame["Url"].str.strip()))
    return CountryCatalog(rows)
