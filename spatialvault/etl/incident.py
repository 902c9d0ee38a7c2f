"""Map ACLED API records onto typed :class:`Incident` values.

Every field is looked up by its exact key. A missing field, a value of the
wrong JSON type or a value that does not parse raises
:class:`~spatialvault.errors.SchemaError`; there is no skip-and-continue.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, Iterable, List, Mapping, Optional

from shapely.geometry import Point

from ..errors import SchemaError
from ..schema import SRID

STRING_FIELDS = (
    "event_id_cnty",
    "disorder_type",
    "event_type",
    "sub_event_type",
    "actor1",
    "assoc_actor_1",
    "inter1",
    "actor2",
    "assoc_actor_2",
    "inter2",
    "interaction",
    "civilian_targeting",
    "region",
    "country",
    "admin1",
    "admin2",
    "admin3",
    "location",
    "source",
    "source_scale",
    "notes",
    "tags",
)
INT_FIELDS = ("year", "time_precision", "iso", "geo_precision", "fatalities", "timestamp")
FLOAT_FIELDS = ("latitude", "longitude")


def _get(obj: Mapping[str, Any], key: str) -> Any:
    if key not in obj:
        raise SchemaError(f"{key} not found", field=key)
    return obj[key]


def _as_str(obj: Mapping[str, Any], key: str) -> str:
    value = _get(obj, key)
    if not isinstance(value, str):
        raise SchemaError(f"{key} is not string: {value!r}", field=key)
    return value


def _as_number(obj: Mapping[str, Any], key: str, kind: Callable[[Any], Any]) -> Any:
    # the API sends numbers as decimal strings; JSON numbers are accepted too
    value = _get(obj, key)
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise SchemaError(f"{key} is not a number: {value!r}", field=key)
    if kind is int and isinstance(value, float):
        if not value.is_integer():
            raise SchemaError(f"Failed parsing {key}: {value!r}", field=key)
        return int(value)
    try:
        return kind(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError) as exc:
        raise SchemaError(f"Failed parsing {key}: {value!r}", field=key) from exc


def _as_date(obj: Mapping[str, Any], key: str) -> dt.date:
    value = _as_str(obj, key)
    try:
        return dt.datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise SchemaError(f"Failed parsing {key}: {value!r}", field=key) from exc


@dataclass(frozen=True)
class Incident:
    """One ACLED conflict event; ``event_id_cnty`` is the table key."""

    srid: ClassVar[int] = SRID

    event_id_cnty: str
    event_date: dt.date
    year: int
    time_precision: int
    disorder_type: str
    event_type: str
    sub_event_type: str
    actor1: str
    assoc_actor_1: str
    inter1: str
    actor2: str
    assoc_actor_2: str
    inter2: str
    interaction: str
    civilian_targeting: str
    iso: int
    region: str
    country: str
    admin1: str
    admin2: str
    admin3: str
    location: str
    latitude: float
    longitude: float
    geo_precision: int
    source: str
    source_scale: str
    notes: str
    fatalities: int
    tags: str
    timestamp: int
    geom: Point
    iso3: Optional[str] = None

    @classmethod
    def from_json(cls, obj: Mapping[str, Any]) -> "Incident":
        if not isinstance(obj, Mapping):
            raise SchemaError(f"Record is not an object: {obj!r}")
        values: Dict[str, Any] = {}
        for key in STRING_FIELDS:
            values[key] = _as_str(obj, key)
        for key in INT_FIELDS:
            values[key] = _as_number(obj, key, int)
        for key in FLOAT_FIELDS:
            values[key] = _as_number(obj, key, float)
        values["event_date"] = _as_date(obj, "event_date")
        values["geom"] = Point(values["longitude"], values["latitude"])
        return cls(**values)

    def with_iso3(self, iso3: str) -> "Incident":
        """Copy of this incident with only ``iso3`` replaced."""
        return dataclasses.replace(self, iso3=iso3)

    def to_row(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in dataclasses.fields(self)}


def map_page(data: Iterable[Mapping[str, Any]], iso3: str) -> List[Incident]:
    """Map and enrich a whole page before any of it is written."""
    return [Incident.from_json(item).with_iso3(iso3) for item in data]
