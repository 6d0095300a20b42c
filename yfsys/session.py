from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

from .auth import SessionCredential, fetch_crumb, fetch_session_cookies, utcnow
from .config import ClientConfig
from .errors import RemoteError, TransportError

logger = logging.getLogger(__name__)

EXPIRED = datetime(1970, 1, 1, tzinfo=timezone.utc)


class CredentialStore:
    """Holds the session credential of one client and refreshes it when stale.

    Refresh is lazy: staleness is only checked when :meth:`ensure_fresh` runs,
    at the start of every authenticated call. The check, the refresh and the
    swap happen under one lock, so concurrent callers see a consistent
    credential and at most one refresh runs at a time.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config or ClientConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._credential: SessionCredential | None = None

    @property
    def credential(self) -> SessionCredential | None:
        with self._lock:
            return self._credential

    def invalidate(self) -> None:
        """Mark the current credential stale so the next call refreshes it."""
        with self._lock:
            if self._credential is not None:
                self._credential = replace(self._credential, expires_at=EXPIRED)

    def ensure_fresh(self) -> SessionCredential:
        """Return a non-expired credential, refreshing it first if needed.

        A failed refresh keeps the previous credential in place and raises
        RemoteError.
        """
        with self._lock:
            now = self._clock()
            if self._credential is None or self._credential.is_expired(now):
                self._credential = self._refresh(now)
            return self._credential

    def _refresh(self, now: datetime) -> SessionCredential:
        logger.info("Refreshing crumb...")
        cfg = self.config
        try:
            cookie_header, expires_at = fetch_session_cookies(
                url=cfg.cookie_url, timeout=cfg.timeout, user_agent=cfg.user_agent, now=now
            )
            crumb = fetch_crumb(
                cookie_header, url=cfg.crumb_url, timeout=cfg.timeout, user_agent=cfg.user_agent
            )
        except TransportError as e:
            logger.error(f"Can't refresh crumb: {e.detail}")
            raise RemoteError(e.detail) from e

        credential = SessionCredential(cookie_header=cookie_header, crumb=crumb, expires_at=expires_at)
        logger.debug(f"Crumb refreshed: {credential}")
        return credential
