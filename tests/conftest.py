import gzip
import json

import pytest
import requests


def sample_event(**overrides) -> dict:
    event = {
        "event_id_cnty": "SDN12345",
        "event_date": "2024-01-15",
        "year": "2024",
        "time_precision": "1",
        "disorder_type": "Political violence",
        "event_type": "Battles",
        "sub_event_type": "Armed clash",
        "actor1": "Military Forces of Sudan (2019-)",
        "assoc_actor_1": "",
        "inter1": "1",
        "actor2": "Rapid Support Forces",
        "assoc_actor_2": "",
        "inter2": "2",
        "interaction": "12",
        "civilian_targeting": "",
        "iso": "729",
        "region": "Northern Africa",
        "country": "Sudan",
        "admin1": "Khartoum",
        "admin2": "Khartoum",
        "admin3": "",
        "location": "Khartoum",
        "latitude": "15.5007",
        "longitude": "32.5599",
        "geo_precision": "1",
        "source": "Sudan Tribune",
        "source_scale": "National",
        "notes": "On 15 January 2024, it's reported that clashes took place.",
        "fatalities": "3",
        "tags": "",
        "timestamp": "1705968000",
    }
    event.update(overrides)
    return event


def gzip_lines(features) -> bytes:
    return gzip.compress("\n".join(json.dumps(f) for f in features).encode("utf-8") + b"\n")


def square_feature(x=0.0, y=0.0, size=1.0) -> dict:
    ring = [[x, y], [x + size, y], [x + size, y + size], [x, y + size], [x, y]]
    return {
        "type": "Feature",
        "properties": {"height": -1.0, "confidence": -1.0},
        "geometry": {"type": "Polygon", "coordinates": [ring]},
    }


class FakeResponse:
    def __init__(self, payload=None, status_code=200, content=b"", text=""):
        self._payload = payload
        self.status_code = status_code
        self.content = content
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeSession:
    """Serves queued responses per URL and records each GET."""

    def __init__(self, responses=None):
        self.responses = {url: list(items) for url, items in (responses or {}).items()}
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, dict(params) if params else None))
        queue = self.responses.get(url)
        if not queue:
            raise requests.ConnectionError(f"no route to {url}")
        return queue.pop(0)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeResult:
    def __init__(self, rowcount=0):
        self.rowcount = rowcount


class FakeConnection:
    """Stands in for a SQLAlchemy Connection; records every statement."""

    def __init__(self, fail_on=None):
        self.executed = []
        self.driver_sql = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False
        self.fail_on = fail_on

    def execute(self, statement, params=None):
        sql = str(statement)
        if self.fail_on and self.fail_on in sql:
            from sqlalchemy.exc import ProgrammingError

            raise ProgrammingError(sql, params, Exception("boom"))
        self.executed.append((sql, params))
        return FakeResult(rowcount=0)

    def exec_driver_sql(self, sql):
        self.driver_sql.append(sql)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True

    def inserts(self):
        return [params for sql, params in self.executed if sql.startswith("INSERT")]

    def deletes(self):
        return [params for sql, params in self.executed if sql.startswith("DELETE")]


@pytest.fixture
def event():
    return sample_event()


@pytest.fixture
def connection():
    return FakeConnection()
