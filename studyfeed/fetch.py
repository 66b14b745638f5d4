from __future__ import annotations

import logging
from typing import Optional

import requests

from studyfeed.errors import FetchError


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
HEADERS = {"Accept": "text/calendar"}


# ---------------------------------------------------------------------------
# Core logic
# ---------------------------------------------------------------------------


def _short_url(url: str, limit: int = 50) -> str:
    # Feed URLs usually embed a private token; keep logs short.
    return url if len(url) <= limit else url[:limit] + "..."


def fetch_ics(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    session: Optional[requests.Session] = None,
) -> str:
    """
    Download one ICS feed and return its text.

    Raises:
        FetchError: on connection problems, timeouts and non-2xx responses.
    """
    url = (url or "").strip()
    if not url:
        raise FetchError(url, "empty URL")
    if url.lower().startswith("webcal://"):
        url = "https://" + url[len("webcal://") :]

    getter = session.get if session is not None else requests.get

    logger.info("Fetching ICS from %s", _short_url(url))
    try:
        resp = getter(url, headers=HEADERS, timeout=timeout)
        resp.raise_for_status()
    except requests.Timeout as exc:
        raise FetchError(url, f"timed out after {timeout}s") from exc
    except requests.RequestException as exc:
        raise FetchError(url, str(exc)) from exc

    text = resp.text
    logger.debug("Received %d bytes from %s", len(text), _short_url(url))
    return text
