"""TOML configuration for the ingestion tools.

A config file looks like::

    [acled]                 # or [api]
    url = "https://api.acleddata.com/acled/read"
    key = "..."
    email = "me@example.org"
    start_date = 2023-01-01
    end_date = 2023-12-31   # optional, defaults to today

    [database]              # or [pg]
    host = "localhost"
    user = "postgres"
    password = "postgres"
    port = 5432
    name = "gis"
    schema = "wfp"
    table_name = "wld_inc_acled"

    [country_codes]         # or [codes]
    SDN = 729
    TCD = 148

    [http]                  # optional
    timeout = 60
    retries = 0
"""

from __future__ import annotations

import datetime as dt
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.engine import URL

from .errors import ConfigError

DEFAULT_ACLED_URL = "https://api.acleddata.com/acled/read"
DEFAULT_SCHEMA = "public"
DEFAULT_ACLED_TABLE = "wld_inc_acled"
DEFAULT_TIMEOUT = 60.0

SECTION_ALIASES = {
    "acled": ("acled", "api"),
    "database": ("database", "pg"),
    "country_codes": ("country_codes", "codes"),
}


@dataclass(frozen=True)
class AcledApi:
    key: str
    email: str
    start_date: dt.date
    end_date: dt.date
    url: str = DEFAULT_ACLED_URL

    @property
    def event_date(self) -> str:
        return f"{self.start_date.isoformat()}|{self.end_date.isoformat()}"


@dataclass(frozen=True)
class DatabaseConfig:
    url: Optional[str] = None
    schema: str = DEFAULT_SCHEMA
    table_name: Optional[str] = None


@dataclass(frozen=True)
class HttpConfig:
    timeout: float = DEFAULT_TIMEOUT
    retries: int = 0


@dataclass(frozen=True)
class AcledConfig:
    api: AcledApi
    database: DatabaseConfig
    country_codes: Dict[str, int] = field(default_factory=dict)
    http: HttpConfig = field(default_factory=HttpConfig)


def read_toml(path: str | Path) -> Dict[str, Any]:
    path = Path(path)
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file {path} does not exist") from exc
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc


def _section(doc: Mapping[str, Any], name: str, required: bool = True) -> Dict[str, Any]:
    for alias in SECTION_ALIASES.get(name, (name,)):
        if alias in doc:
            value = doc[alias]
            if not isinstance(value, dict):
                raise ConfigError(f"Section [{alias}] must be a table")
            return value
    if required:
        raise ConfigError(f"Missing section [{name}]")
    return {}


def _require(section: Mapping[str, Any], key: str, kind: type, where: str) -> Any:
    if key not in section:
        raise ConfigError(f"Missing parameter {key} in [{where}]")
    return _typed(section[key], key, kind, where)


def _typed(value: Any, key: str, kind: type, where: str) -> Any:
    # bool is an int subclass; a flag is never a valid number here
    if isinstance(value, bool) or not isinstance(value, kind):
        raise ConfigError(f"Parameter {key} in [{where}] is not a {kind.__name__}")
    return value


def _date(value: Any, key: str) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        try:
            return dt.date.fromisoformat(value)
        except ValueError as exc:
            raise ConfigError(f"Parameter {key} is not a YYYY-MM-DD date: {value!r}") from exc
    raise ConfigError(f"Parameter {key} is not a date")


def parse_api(section: Mapping[str, Any], today: Optional[dt.date] = None) -> AcledApi:
    today = today or dt.date.today()
    if "start_date" not in section:
        raise ConfigError("Missing parameter start_date in [acled]")
    start = _date(section["start_date"], "start_date")
    end = _date(section["end_date"], "end_date") if "end_date" in section else today
    if end < start:
        raise ConfigError(f"end_date {end} is before start_date {start}")
    return AcledApi(
        key=_require(section, "key", str, "acled"),
        email=_require(section, "email", str, "acled"),
        start_date=start,
        end_date=end,
        url=_typed(section.get("url", DEFAULT_ACLED_URL), "url", str, "acled"),
    )


def parse_database(section: Mapping[str, Any]) -> DatabaseConfig:
    """Build a :class:`DatabaseConfig`; an empty section leaves ``url`` unset.

    ``table_name`` stays ``None`` unless given, so each tool applies its own
    default table.
    """
    schema = _typed(section.get("schema", DEFAULT_SCHEMA), "schema", str, "database")
    table_name = None
    if "table_name" in section:
        table_name = _typed(section["table_name"], "table_name", str, "database")
    if "url" in section:
        url = _typed(section["url"], "url", str, "database")
    elif "host" in section or "name" in section:
        url = URL.create(
            "postgresql+psycopg2",
            username=_require(section, "user", str, "database"),
            password=_require(section, "password", str, "database"),
            host=_require(section, "host", str, "database"),
            port=_typed(section.get("port", 5432), "port", int, "database"),
            database=_require(section, "name", str, "database"),
        ).render_as_string(hide_password=False)
    else:
        url = None
    return DatabaseConfig(url=url, schema=schema, table_name=table_name)


def parse_country_codes(section: Mapping[str, Any]) -> Dict[str, int]:
    codes: Dict[str, int] = {}
    for name, code in section.items():
        codes[name] = _typed(code, name, int, "country_codes")
    return codes


def parse_http(section: Mapping[str, Any]) -> HttpConfig:
    timeout = section.get("timeout", DEFAULT_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
        raise ConfigError("Parameter timeout in [http] is not a number")
    retries = _typed(section.get("retries", 0), "retries", int, "http")
    if retries < 0:
        raise ConfigError("Parameter retries in [http] must be >= 0")
    return HttpConfig(timeout=float(timeout), retries=retries)


def load_database_config(path: str | Path) -> DatabaseConfig:
    """Read a database-only file (the ``--pg-config`` layout).

    The connection parameters may sit at the top level or inside a
    ``[database]``/``[pg]`` table.
    """
    doc = read_toml(path)
    section = _section(doc, "database", required=False) or doc
    return parse_database(section)


def load_acled_config(path: str | Path, pg_config: str | Path | None = None,
                      today: Optional[dt.date] = None) -> AcledConfig:
    """Load the ACLED tool configuration from ``path``.

    ``pg_config`` names a separate file holding the connection parameters;
    schema and table name still come from ``path`` when it sets them.
    """
    doc = read_toml(path)
    api = parse_api(_section(doc, "acled"), today=today)
    section = _section(doc, "database", required=False)
    database = parse_database(section)
    if pg_config is not None:
        connection = load_database_config(pg_config)
        database = DatabaseConfig(
            url=connection.url,
            schema=database.schema if "schema" in section else connection.schema,
            table_name=database.table_name or connection.table_name,
        )
    codes = parse_country_codes(_section(doc, "country_codes"))
    if not codes:
        raise ConfigError("Section [country_codes] is empty")
    http = parse_http(_section(doc, "http", required=False))
    return AcledConfig(api=api, database=database, country_codes=codes, http=http)
