"""Write mapped records to an output sink in fixed-size chunks.

Three sinks share one interface (``reset`` / ``write`` / ``close``):

* :class:`PostgisSink` executes a parameterized INSERT per chunk and commits
  after each one; nothing spans chunks, so a failure leaves every earlier
  chunk in place.
* :class:`SqlFileSink` writes the equivalent literal SQL to a script.
* :class:`ShapefileSink` collects rows and writes them with geopandas.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Sequence

import geopandas as gpd
import pandas as pd
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from .errors import ConfigError, DatabaseError
from .schema import SRID, TableSchema
from .utils.logging import setup_logging

logger = setup_logging(__name__)

CHUNK_SIZE = 2000
SINK_KINDS = ("postgis", "sql", "shapefile")


def chunked(rows: Sequence[Any], size: int = CHUNK_SIZE) -> Iterator[List[Any]]:
    """Yield consecutive slices of ``rows`` holding at most ``size`` items."""
    if size < 1:
        raise ValueError("Chunk size must be positive")
    for start in range(0, len(rows), size):
        yield list(rows[start:start + size])


class Sink:
    """Base class; subclasses implement ``_write_chunk``."""

    def __init__(self, table: TableSchema, chunk_size: int = CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError("Chunk size must be positive")
        self.table = table
        self.chunk_size = chunk_size
        self.rows_written = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def reset(self, column: str, value: Any) -> None:
        """Drop previously loaded rows where ``column == value``."""

    def write(self, rows: Sequence[Mapping[str, Any]]) -> int:
        written = 0
        for chunk in chunked(rows, self.chunk_size):
            logger.debug("Saving %d rows into %s", len(chunk), self.table.qualified)
            self._write_chunk(chunk)
            written += len(chunk)
        self.rows_written += written
        return written

    def _write_chunk(self, chunk: List[Mapping[str, Any]]) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class PostgisSink(Sink):
    def __init__(self, connection: Connection, table: TableSchema,
                 chunk_size: int = CHUNK_SIZE):
        super().__init__(table, chunk_size)
        self.connection = connection
        self._insert = table.insert_statement()

    def create_table(self) -> None:
        logger.info("Creating postgresql table %s", self.table.qualified)
        try:
            for statement in self.table.create_statements():
                self.connection.exec_driver_sql(statement)
            self.connection.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to create %s: %s", self.table.qualified, exc)
            self._rollback()
            raise DatabaseError(f"Failed to create {self.table.qualified}: {exc}") from exc

    def reset(self, column: str, value: Any) -> None:
        try:
            result = self.connection.execute(
                self.table.delete_statement(column), {"value": value}
            )
            self.connection.commit()
        except SQLAlchemyError as exc:
            logger.error("Could not delete rows from %s: %s", self.table.qualified, exc)
            self._rollback()
            raise DatabaseError(f"Could not delete rows: {exc}") from exc
        logger.info("Deleted %s old rows where %s = %s", result.rowcount, column, value)

    def _write_chunk(self, chunk: List[Mapping[str, Any]]) -> None:
        params = [self.table.bind_row(row) for row in chunk]
        try:
            self.connection.execute(self._insert, params)
            self.connection.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed writing to %s: %s", self.table.qualified, exc)
            self._rollback()
            raise DatabaseError(f"Failed writing to {self.table.qualified}: {exc}") from exc

    def _rollback(self) -> None:
        try:
            self.connection.rollback()
        except SQLAlchemyError as exc:  # pragma: no cover - connection already broken
            logger.warning("Rollback failed: %s", exc)

    def close(self) -> None:
        self.connection.close()


class SqlFileSink(Sink):
    def __init__(self, path: str | Path, table: TableSchema,
                 chunk_size: int = CHUNK_SIZE, create_table: bool = False):
        super().__init__(table, chunk_size)
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("w", encoding="utf-8")
        if create_table:
            for statement in table.create_statements():
                self._fh.write(statement + ";\n")

    def reset(self, column: str, value: Any) -> None:
        self._fh.write(self.table.render_delete(column, value) + "\n")

    def _write_chunk(self, chunk: List[Mapping[str, Any]]) -> None:
        self._fh.write(self.table.render_insert(chunk) + "\n")

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()
            logger.info("Saved %d rows → %s", self.rows_written, self.path)


class ShapefileSink(Sink):
    """Buffers every row; the shapefile is written once, on close."""

    def __init__(self, path: str | Path, table: TableSchema,
                 chunk_size: int = CHUNK_SIZE):
        super().__init__(table, chunk_size)
        geometry = table.geometry_columns
        if len(geometry) != 1:
            raise ConfigError(f"{table.qualified} needs exactly one geometry column")
        self.geometry_column = geometry[0]
        self.path = Path(path)
        self._rows: List[Mapping[str, Any]] = []
        self._closed = False

    def reset(self, column: str, value: Any) -> None:
        self._rows = [row for row in self._rows if row[column] != value]

    def _write_chunk(self, chunk: List[Mapping[str, Any]]) -> None:
        self._rows.extend(chunk)

    def to_geodataframe(self) -> gpd.GeoDataFrame:
        frame = pd.DataFrame(list(self._rows), columns=self.table.column_names)
        if self.table.serial_id:
            frame.insert(0, "id", range(1, len(frame) + 1))
        return gpd.GeoDataFrame(
            frame, geometry=self.geometry_column, crs=f"EPSG:{SRID}"
        )

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if not self._rows:
            logger.warning("No rows collected; %s not written", self.path)
            return
        gdf = self.to_geodataframe()
        for col in gdf.columns:
            # shapefiles have no date type for object columns
            if col != self.geometry_column and gdf[col].dtype == object:
                gdf[col] = gdf[col].astype(str)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        gdf.to_file(self.path)
        logger.info("Saved %d features → %s", len(gdf), self.path)


def open_sink(kind: str, table: TableSchema, *, connection: Optional[Connection] = None,
              path: Optional[str | Path] = None, chunk_size: int = CHUNK_SIZE,
              create_table: bool = False) -> Sink:
    """Build the sink selected by ``kind`` (``postgis``, ``sql`` or ``shapefile``)."""
    if kind == "postgis":
        if connection is None:
            raise ConfigError("postgis output needs a database connection")
        sink = PostgisSink(connection, table, chunk_size)
        if create_table:
            sink.create_table()
        return sink
    if path is None:
        raise ConfigError(f"{kind} output needs an output path")
    if kind == "sql":
        return SqlFileSink(path, table, chunk_size, create_table=create_table)
    if kind == "shapefile":
        return ShapefileSink(path, table, chunk_size)
    raise ConfigError(f"Unknown output kind {kind!r}; expected one of {SINK_KINDS}")


def load(sink: Sink, records: Iterable[Any]) -> int:
    """Write domain records (anything with ``to_row()``) through ``sink``."""
    return sink.write([record.to_row() for record in records])
