"""Existing contribution counts for a user and year, used to pre-fill the grid."""

import logging
import datetime as dt

import requests

from . import config
from .errors import NotFound, PermanentRemoteError, TransientRemoteError

logger = logging.getLogger(__name__)


def fetch_contributions(username: str, year: int, session=None):
    """{date: count} for every day the public contributions API reports."""
    s = session or requests.Session()
    url = f"{config.CONTRIB_URL}/{username}"
    try:
        r = s.get(url, params={"y": year}, headers={"User-Agent": config.USER_AGENT},
                  timeout=config.TIMEOUT)
    except requests.RequestException as e:
        raise TransientRemoteError(f"fetch contributions: {e}") from e
    if r.status_code == 404:
        raise NotFound(f"no contributions for {username!r}", 404)
    if r.status_code >= 500:
        raise TransientRemoteError(f"fetch contributions: HTTP {r.status_code}", r.status_code)
    if r.status_code >= 400:
        raise PermanentRemoteError(f"fetch contributions: HTTP {r.status_code}", r.status_code)
    try:
        days = r.json()["contributions"]
        counts = {dt.date.fromisoformat(d["date"]): int(d["count"]) for d in days}
    except (ValueError, KeyError, TypeError) as e:
        raise PermanentRemoteError(f"fetch contributions: malformed response ({e})") from e
    logger.info("Fetched %d days of contributions for %s (%d)", len(counts), username, year)
    return counts
