import datetime as dt

import geopandas as gpd
import pytest
from shapely.geometry import Point, Polygon

from conftest import FakeConnection
from spatialvault.errors import ConfigError, DatabaseError
from spatialvault.loader import (
    PostgisSink,
    ShapefileSink,
    SqlFileSink,
    chunked,
    load,
    open_sink,
)
from spatialvault.schema import PgType, TableSchema, columns, footprint_table


def square(i):
    return {"geom": Polygon([(i, 0), (i + 1, 0), (i + 1, 1), (i, 1)])}


def test_chunked_sizes():
    assert [len(c) for c in chunked(list(range(4500)), 2000)] == [2000, 2000, 500]
    assert list(chunked([], 10)) == []
    with pytest.raises(ValueError):
        list(chunked([1], 0))


def test_postgis_sink_executes_one_insert_per_chunk(connection):
    sink = PostgisSink(connection, footprint_table(), chunk_size=2000)
    written = sink.write([square(i % 7) for i in range(4500)])

    inserts = connection.inserts()
    assert written == 4500
    assert [len(params) for params in inserts] == [2000, 2000, 500]
    assert connection.commits == 3
    assert inserts[0][0]["geom"].startswith("SRID=4326;POLYGON ((0 0")


def test_postgis_sink_reset_deletes_with_bound_value(connection):
    table = TableSchema("public", "t", columns([("iso", PgType.BIGINT), ("geom", PgType.POINT)]))
    PostgisSink(connection, table).reset("iso", 729)
    assert connection.deletes() == [{"value": 729}]
    assert connection.commits == 1


def test_postgis_sink_create_table_runs_ddl(connection):
    sink = open_sink("postgis", footprint_table("wfp", "b"), connection=connection,
                     create_table=True)
    assert isinstance(sink, PostgisSink)
    assert connection.driver_sql[0] == "CREATE SCHEMA IF NOT EXISTS wfp"
    assert connection.driver_sql[1].startswith("CREATE TABLE IF NOT EXISTS wfp.b")


def test_postgis_sink_wraps_driver_errors():
    connection = FakeConnection(fail_on="INSERT")
    sink = PostgisSink(connection, footprint_table())
    with pytest.raises(DatabaseError):
        sink.write([square(0)])
    assert connection.rollbacks == 1
    assert connection.commits == 0


def test_earlier_chunks_stay_committed_when_a_later_one_fails(connection):
    sink = PostgisSink(connection, footprint_table(), chunk_size=2)
    calls = {"n": 0}
    original = connection.execute

    def flaky(statement, params=None):
        calls["n"] += 1
        if calls["n"] == 2:
            from sqlalchemy.exc import OperationalError

            raise OperationalError("INSERT", params, Exception("gone"))
        return original(statement, params)

    connection.execute = flaky
    with pytest.raises(DatabaseError):
        sink.write([square(i) for i in range(5)])
    assert connection.commits == 1
    assert len(connection.inserts()) == 1


def test_sql_file_sink_writes_script(tmp_path):
    path = tmp_path / "out" / "footprints.sql"
    with open_sink("sql", footprint_table(), path=path, chunk_size=2, create_table=True) as sink:
        sink.write([square(i) for i in range(3)])
    lines = path.read_text().splitlines()
    assert lines[0] == "CREATE SCHEMA IF NOT EXISTS public;"
    inserts = [line for line in lines if line.startswith("INSERT")]
    assert len(inserts) == 2
    assert inserts[0].count("ST_GeomFromText") == 2
    assert inserts[1].count("ST_GeomFromText") == 1


def test_sql_file_sink_escapes_strings(tmp_path):
    table = TableSchema(
        "public", "t", columns([("notes", PgType.VARCHAR), ("geom", PgType.POINT)])
    )
    path = tmp_path / "events.sql"
    with SqlFileSink(path, table) as sink:
        sink.reset("notes", "o'clock")
        sink.write([{"notes": "it's", "geom": Point(1, 2)}])
    text = path.read_text()
    assert "WHERE notes = 'o''clock';" in text
    assert "'it''s'" in text


def test_shapefile_sink_writes_on_close(tmp_path):
    table = TableSchema(
        "public",
        "events",
        columns([
            ("name", PgType.VARCHAR),
            ("day", PgType.DATE),
            ("geom", PgType.POINT),
        ]),
    )
    path = tmp_path / "events.shp"
    with ShapefileSink(path, table) as sink:
        sink.write([
            {"name": "a", "day": dt.date(2024, 1, 1), "geom": Point(1, 2)},
            {"name": "b", "day": dt.date(2024, 1, 2), "geom": Point(3, 4)},
        ])
        sink.reset("name", "b")
    gdf = gpd.read_file(path)
    assert len(gdf) == 1
    assert gdf.crs.to_epsg() == 4326
    assert gdf.geometry.iloc[0].x == 1


def test_open_sink_requires_path_or_connection():
    with pytest.raises(ConfigError):
        open_sink("sql", footprint_table())
    with pytest.raises(ConfigError):
        open_sink("postgis", footprint_table())
    with pytest.raises(ConfigError):
        open_sink("parquet", footprint_table(), path="x")


def test_load_uses_to_row(connection):
    class Record:
        def __init__(self, i):
            self.i = i

        def to_row(self):
            return square(self.i)

    sink = PostgisSink(connection, footprint_table())
    assert load(sink, [Record(0), Record(1)]) == 2
    assert sink.rows_written == 2
