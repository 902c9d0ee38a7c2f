"""Typed table schemas and the SQL built from them."""
from __future__ import annotations

import datetime as dt
import enum
import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from shapely.geometry.base import BaseGeometry
from sqlalchemy import text
from sqlalchemy.sql.elements import TextClause

SRID = 4326

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PgType(enum.Enum):
    VARCHAR = "VARCHAR"
    BIGINT = "BIGINT"
    REAL = "REAL"
    DATE = "DATE"
    POINT = f"GEOMETRY(POINT, {SRID})"
    POLYGON = f"GEOMETRY(POLYGON, {SRID})"

    @property
    def is_geometry(self) -> bool:
        return self in (PgType.POINT, PgType.POLYGON)


def validate_identifier(name: str) -> str:
    """Validate ``name`` for use as a plain SQL identifier."""

    if not name:
        raise ValueError("Identifier must be a non-empty string")
    if not IDENTIFIER_PATTERN.fullmatch(name):
        raise ValueError(
            "Invalid identifier '%s'; only alphanumerics and underscores allowed" % name
        )
    return name


@dataclass(frozen=True)
class Column:
    name: str
    type: PgType
    nullable: bool = False

    def ddl(self) -> str:
        null = "" if self.nullable else " NOT NULL"
        return f"{self.name} {self.type.value}{null}"


@dataclass(frozen=True)
class TableSchema:
    """Target table: validated identifiers plus one typed column per field."""

    schema: str
    name: str
    columns: Tuple[Column, ...]
    primary_key: Optional[str] = None
    serial_id: bool = False

    def __post_init__(self):
        validate_identifier(self.schema)
        validate_identifier(self.name)
        names = [c.name for c in self.columns]
        for col in names:
            validate_identifier(col)
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate column names in {self.qualified}")
        if self.primary_key is not None and self.primary_key not in names:
            raise ValueError(f"Primary key {self.primary_key} is not a column")
        if self.serial_id and "id" in names:
            raise ValueError("Column 'id' clashes with the serial primary key")

    @property
    def qualified(self) -> str:
        return f"{self.schema}.{self.name}"

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def geometry_columns(self) -> List[str]:
        return [c.name for c in self.columns if c.type.is_geometry]

    def create_statements(self) -> List[str]:
        """``CREATE SCHEMA`` / ``CREATE TABLE`` / GIST index, all idempotent."""
        fields = []
        if self.serial_id:
            fields.append("id SERIAL PRIMARY KEY")
        fields.extend(c.ddl() for c in self.columns)
        if self.primary_key:
            fields.append(f"PRIMARY KEY ({self.primary_key})")
        body = ",\n    ".join(fields)
        statements = [
            f"CREATE SCHEMA IF NOT EXISTS {self.schema}",
            f"CREATE TABLE IF NOT EXISTS {self.qualified} (\n    {body}\n)",
        ]
        for geom in self.geometry_columns:
            statements.append(
                f"CREATE INDEX IF NOT EXISTS {self.name}_{geom}_idx "
                f"ON {self.qualified} USING GIST ({geom})"
            )
        return statements

    def insert_statement(self) -> TextClause:
        """Parameterized single-row INSERT, run executemany-style per chunk."""
        placeholders = []
        for col in self.columns:
            if col.type.is_geometry:
                placeholders.append(f"ST_GeomFromEWKT(:{col.name})")
            else:
                placeholders.append(f":{col.name}")
        return text(
            f"INSERT INTO {self.qualified} ({', '.join(self.column_names)}) "
            f"VALUES ({', '.join(placeholders)})"
        )

    def delete_statement(self, column: str) -> TextClause:
        if column not in self.column_names:
            raise ValueError(f"{column} is not a column of {self.qualified}")
        return text(f"DELETE FROM {self.qualified} WHERE {column} = :value")

    def bind_row(self, row: Mapping[str, Any]) -> dict:
        """Row dict ready for the driver; geometries become EWKT strings."""
        bound = {}
        for col in self.columns:
            value = row[col.name]
            if col.type.is_geometry:
                value = ewkt(value)
            bound[col.name] = value
        return bound

    def render_insert(self, rows: Sequence[Mapping[str, Any]]) -> str:
        """Literal multi-row INSERT for SQL scripts."""
        tuples = []
        for row in rows:
            values = [render_value(row[c.name], c.type) for c in self.columns]
            tuples.append(f"({','.join(values)})")
        return (
            f"INSERT INTO {self.qualified}({','.join(self.column_names)}) "
            f"VALUES {','.join(tuples)};"
        )

    def render_delete(self, column: str, value: Any) -> str:
        if column not in self.column_names:
            raise ValueError(f"{column} is not a column of {self.qualified}")
        return f"DELETE FROM {self.qualified} WHERE {column} = {quote_literal(value)};"


def ewkt(geometry: BaseGeometry, srid: int = SRID) -> str:
    return f"SRID={srid};{geometry.wkt}"


def quote_literal(value: Any) -> str:
    """Render ``value`` as a SQL literal; strings get embedded quotes doubled."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return f"'{value}'::REAL"
        return repr(value)
    if isinstance(value, (dt.date, dt.datetime)):
        return f"'{value.isoformat()}'"
    return "'" + str(value).replace("'", "''") + "'"


def render_value(value: Any, pg_type: PgType) -> str:
    if pg_type.is_geometry:
        return f"ST_GeomFromText({quote_literal(value.wkt)}, {SRID})"
    return quote_literal(value)


def columns(pairs: Iterable[Tuple[str, PgType]]) -> Tuple[Column, ...]:
    return tuple(Column(name, pg_type) for name, pg_type in pairs)


# ---------------------------------------------------------------------------
# target tables
# ---------------------------------------------------------------------------

INCIDENT_COLUMNS = columns([
    ("event_id_cnty", PgType.VARCHAR),
    ("event_date", PgType.DATE),
    ("year", PgType.BIGINT),
    ("time_precision", PgType.BIGINT),
    ("disorder_type", PgType.VARCHAR),
    ("event_type", PgType.VARCHAR),
    ("sub_event_type", PgType.VARCHAR),
    ("actor1", PgType.VARCHAR),
    ("assoc_actor_1", PgType.VARCHAR),
    ("inter1", PgType.VARCHAR),
    ("actor2", PgType.VARCHAR),
    ("assoc_actor_2", PgType.VARCHAR),
    ("inter2", PgType.VARCHAR),
    ("interaction", PgType.VARCHAR),
    ("civilian_targeting", PgType.VARCHAR),
    ("iso", PgType.BIGINT),
    ("region", PgType.VARCHAR),
    ("country", PgType.VARCHAR),
    ("admin1", PgType.VARCHAR),
    ("admin2", PgType.VARCHAR),
    ("admin3", PgType.VARCHAR),
    ("location", PgType.VARCHAR),
    ("latitude", PgType.REAL),
    ("longitude", PgType.REAL),
    ("geo_precision", PgType.BIGINT),
    ("source", PgType.VARCHAR),
    ("source_scale", PgType.VARCHAR),
    ("notes", PgType.VARCHAR),
    ("fatalities", PgType.BIGINT),
    ("tags", PgType.VARCHAR),
    ("timestamp", PgType.BIGINT),
    ("iso3", PgType.VARCHAR),
    ("geom", PgType.POINT),
])

FOOTPRINT_COLUMNS = columns([("geom", PgType.POLYGON)])


def incident_table(schema: str = "public", name: str = "wld_inc_acled") -> TableSchema:
    return TableSchema(schema, name, INCIDENT_COLUMNS, primary_key="event_id_cnty")


def footprint_table(schema: str = "public",
                    name: str = "wld_buildings_microsoft") -> TableSchema:
    return TableSchema(schema, name, FOOTPRINT_COLUMNS, serial_id=True)
