"""Cookie and crumb handshake for the Yahoo! Finance API.

Every API call needs a session cookie and a matching "crumb" token:

1. GET the login host; the response sets the session cookies.
2. GET ``/v1/test/getcrumb`` on the API host with those cookies; the plain
   text body is the crumb.

Both endpoints reject requests that do not look like they come from a
browser, hence the header profiles below.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import requests

from .config import API_URL, COOKIE_URL, CRUMB_PATH, DEFAULT_TIMEOUT, USER_AGENT
from .errors import TransportError

logger = logging.getLogger(__name__)

CRUMB_URL = f"{API_URL}{CRUMB_PATH}"

# Cookie set by the login host that must not be forwarded to the API host.
EXCLUDED_COOKIE = "AS"

# Expiry used when the login host sets no cookie with a usable lifetime.
DEFAULT_SESSION_LIFETIME_YEARS = 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class HeaderProfile:
    """A named, fixed set of request headers."""

    name: str
    headers: Mapping[str, str] = field(default_factory=dict)

    def build(self, user_agent: str = USER_AGENT, **extra: str) -> dict[str, str]:
        headers = {
            "Accept": "*/*",
            "Accept-Encoding": "gzip, deflate",
            "Accept-Language": "en-US,en;q=0.5",
            "Connection": "keep-alive",
            "TE": "trailers",
            "User-Agent": user_agent,
        }
        headers.update(self.headers)
        headers.update(extra)
        return headers


SESSION_HEADERS = HeaderProfile(
    "session",
    {
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
        "Upgrade-Insecure-Requests": "1",
    },
)

CRUMB_HEADERS = HeaderProfile(
    "crumb",
    {
        "Content-Type": "text/plain",
        "Sec-Fetch-Dest": "empty",
        "Sec-Fetch-Mode": "cors",
        "Sec-Fetch-Site": "same-site",
    },
)

API_HEADERS = HeaderProfile(
    "api",
    {
        "Content-Type": "application/json",
        "Origin": "https://finance.yahoo.com",
        "Referer": "https://finance.yahoo.com",
        "Sec-Fetch-Dest": "empty",
        "Sec-Fetch-Mode": "cors",
        "Sec-Fetch-Site": "same-site",
    },
)


@dataclass(frozen=True)
class SessionCredential:
    """Cookie header and crumb accepted by the API, valid until ``expires_at``."""

    cookie_header: str
    crumb: str
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def __repr__(self) -> str:
        return (
            f"SessionCredential(crumb={self.crumb!r}, "
            f"cookies={len(self.cookie_header)} chars, expires_at={self.expires_at.isoformat()})"
        )


def default_expiry(now: datetime) -> datetime:
    try:
        return now.replace(year=now.year + DEFAULT_SESSION_LIFETIME_YEARS)
    except ValueError:
        # Feb 29 in a year that has none ten years on.
        return now.replace(year=now.year + DEFAULT_SESSION_LIFETIME_YEARS, day=28)


def _parse_max_age(value: str) -> int:
    """Return the Max-Age in seconds, or 0 when unusable."""
    try:
        return int(value.strip())
    except ValueError:
        return 0


def parse_session_cookies(
    set_cookie_headers: Iterable[str], now: datetime
) -> tuple[str, datetime]:
    """Select the session cookies worth forwarding and compute their expiry.

    A cookie is accepted when it carries a positive Max-Age and is not the
    excluded cookie. The result is the accepted ``name=value`` pairs joined
    with ``"; "`` and the earliest ``now + max-age`` among them (ten years
    from ``now`` when nothing is accepted).

    This mirrors observed upstream behavior; it is a heuristic for the
    session lifetime, not a guarantee.
    """
    pairs: list[str] = []
    expiry: datetime | None = None

    for header in set_cookie_headers:
        parts = [part.strip() for part in header.split(";")]
        if not parts or "=" not in parts[0]:
            logger.debug(f"Ignoring malformed cookie: {header!r}")
            continue
        name, value = (s.strip() for s in parts[0].split("=", 1))

        max_age = 0
        for attr in parts[1:]:
            key, _, attr_value = attr.partition("=")
            if key.strip().lower() == "max-age":
                max_age = _parse_max_age(attr_value)

        if max_age <= 0 or name == EXCLUDED_COOKIE:
            logger.debug(f"Cookie ignored: {name}")
            continue

        logger.debug(f"Cookie accepted: {name} (max-age={max_age})")
        pairs.append(f"{name}={value}")
        cookie_expiry = now + timedelta(seconds=max_age)
        if expiry is None or cookie_expiry < expiry:
            expiry = cookie_expiry

    return "; ".join(pairs), expiry if expiry is not None else default_expiry(now)


def _set_cookie_headers(response: Any) -> list[str]:
    # requests folds repeated headers into one comma-joined value, which is
    # ambiguous for cookies carrying Expires dates; read the raw list instead.
    raw_headers = getattr(response.raw, "headers", None)
    if raw_headers is not None and hasattr(raw_headers, "getlist"):
        return list(raw_headers.getlist("Set-Cookie"))
    header = response.headers.get("Set-Cookie")
    return [header] if header else []


def fetch_session_cookies(
    url: str = COOKIE_URL,
    timeout: float = DEFAULT_TIMEOUT,
    user_agent: str = USER_AGENT,
    now: datetime | None = None,
) -> tuple[str, datetime]:
    """Perform the session handshake and return ``(cookie_header, expires_at)``.

    Raises TransportError if the request cannot be sent or its body read.
    """
    logger.info("Fetching session cookies...")
    try:
        res = requests.get(url, headers=SESSION_HEADERS.build(user_agent), timeout=timeout)
    except requests.RequestException as e:
        logger.error(f"Can't fetch cookies: {e}")
        raise TransportError(f"Can't fetch cookies from {url}: {e}") from e

    return parse_session_cookies(_set_cookie_headers(res), now or utcnow())


def fetch_crumb(
    cookie_header: str,
    url: str = CRUMB_URL,
    timeout: float = DEFAULT_TIMEOUT,
    user_agent: str = USER_AGENT,
) -> str:
    """Exchange session cookies for a crumb.

    The whole response body is the crumb. Raises TransportError on request
    failure, on an error status or on an empty body.
    """
    logger.info("Fetching crumb...")
    headers = CRUMB_HEADERS.build(user_agent, Cookie=cookie_header)
    try:
        res = requests.get(url, headers=headers, timeout=timeout)
    except requests.RequestException as e:
        logger.error(f"Can't fetch crumb: {e}")
        raise TransportError(f"Can't fetch crumb from {url}: {e}") from e

    if res.status_code >= 400:
        raise TransportError(f"Crumb request failed: {res.status_code} {res.text}")
    crumb = res.text
    if not crumb:
        raise TransportError("Crumb request succeeded but the body was empty")
    return crumb
