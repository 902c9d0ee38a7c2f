"""Blocking HTTP access to the remote sources.

One request is in flight at a time. Every failure surfaces as
:class:`~spatialvault.errors.TransportError` (or
:class:`~spatialvault.errors.DecodeError` for a non-JSON body).
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import requests
from requests.adapters import HTTPAdapter
from requests.exceptions import RequestException
from urllib3.util.retry import Retry

from .errors import DecodeError, TransportError
from .settings import DEFAULT_TIMEOUT, AcledApi
from .utils.logging import setup_logging

logger = setup_logging(__name__)

RETRY_STATUSES = (429, 500, 502, 503, 504)


def build_session(retries: int = 0, backoff: float = 1.0) -> requests.Session:
    """Return a session; ``retries > 0`` enables urllib3 retry with backoff."""
    session = requests.Session()
    if retries > 0:
        retry = Retry(
            total=retries,
            backoff_factor=backoff,
            status_forcelist=RETRY_STATUSES,
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
    return session


def acled_params(api: AcledApi, page: int, iso: int) -> Dict[str, Any]:
    """Query parameters for one page of one country."""
    return {
        "key": api.key,
        "email": api.email,
        "page": page,
        "iso": iso,
        "event_date": api.event_date,
        "event_date_where": "BETWEEN",
    }


def _get(session: requests.Session, url: str, params: Optional[Mapping[str, Any]],
         timeout: float) -> requests.Response:
    try:
        resp = session.get(url, params=params, timeout=timeout)
        resp.raise_for_status()
    except RequestException as exc:
        logger.error("Request to %s failed: %s", url, exc)
        raise TransportError(f"GET {url} failed: {exc}") from exc
    return resp


def fetch_page(session: requests.Session, base_url: str, params: Mapping[str, Any],
               timeout: float = DEFAULT_TIMEOUT) -> Any:
    """GET ``base_url`` with ``params`` and return the decoded JSON body."""
    resp = _get(session, base_url, params, timeout)
    try:
        return resp.json()
    except ValueError as exc:
        logger.error("Response from %s is not JSON: %s", base_url, exc)
        raise DecodeError(f"Response from {base_url} is not JSON: {exc}") from exc


def fetch_text(session: requests.Session, url: str,
               timeout: float = DEFAULT_TIMEOUT) -> str:
    return _get(session, url, None, timeout).text


def fetch_bytes(session: requests.Session, url: str,
                timeout: float = DEFAULT_TIMEOUT) -> bytes:
    resp = _get(session, url, None, timeout)
    logger.debug("Downloaded %d bytes from %s", len(resp.content), url)
    return resp.content
