# spatialvault/db.py
from functools import lru_cache
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
import os

from .errors import DatabaseError


def resolve_url(url: Optional[str] = None) -> str:
    """
    Return the database URL to connect to.

    Priority:
    1. explicit ``url`` (CLI flag or config file).
    2. $DATABASE_URL  – full URL wins if set.
    3. Individual POSTGRES_* env vars, with sensible defaults.
    """
    if url:
        return url

    if "DATABASE_URL" in os.environ:
        return os.environ["DATABASE_URL"]

    return (
        f"postgresql://{os.getenv('POSTGRES_USER',     'postgres')}:"
        f"{os.getenv('POSTGRES_PASSWORD', 'postgres')}@"
        f"{os.getenv('POSTGRES_HOST',     'localhost')}:"
        f"{os.getenv('POSTGRES_PORT',     '5432')}/"
        f"{os.getenv('POSTGRES_DB',       'spatialvault')}"
    )


@lru_cache(maxsize=None)
def get_engine(url: Optional[str] = None) -> Engine:
    """Return (and cache) a SQLAlchemy engine for ``resolve_url(url)``."""
    try:
        return create_engine(resolve_url(url), pool_pre_ping=True)
    except SQLAlchemyError as exc:
        raise DatabaseError(f"Cannot create engine: {exc}") from exc


def connect(url: Optional[str] = None) -> Connection:
    """Open the single connection a run uses for all of its writes."""
    engine = get_engine(url)
    try:
        return engine.connect()
    except SQLAlchemyError as exc:
        raise DatabaseError(f"Error connecting to {engine.url!r}: {exc}") from exc
