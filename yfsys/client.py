from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Callable, Mapping
from dataclasses import InitVar, dataclass, field
from pathlib import Path
from typing import Any, TypeVar

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .auth import API_HEADERS, SessionCredential
from .config import ClientConfig
from .errors import PayloadError, RemoteError
from .session import CredentialStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

CRUMB_PARAM = "crumb"
DUMP_KEY_PARAM = "symbols"


def _session_without_retries(pool_size: int = 10) -> requests.Session:
    sess = requests.Session()
    # Failed calls are surfaced to the caller, never retried by the transport.
    retries = Retry(total=0, read=False, raise_on_status=False)
    adapter = HTTPAdapter(max_retries=retries, pool_maxsize=pool_size)
    sess.mount("http://", adapter)
    sess.mount("https://", adapter)
    return sess


@dataclass
class YFinanceClient:
    """Authenticated client for the Yahoo! Finance API.

    The client owns one credential store; every :meth:`call` makes sure the
    cookie/crumb pair is fresh before the request goes out.
    """

    config: ClientConfig = field(default_factory=ClientConfig)
    store: InitVar[CredentialStore | None] = None

    def __post_init__(self, store: CredentialStore | None) -> None:
        self.session = _session_without_retries()
        self.store = store if store is not None else CredentialStore(self.config)

    @classmethod
    def from_env(cls) -> YFinanceClient:
        return cls(config=ClientConfig.from_env())

    def build_request(
        self,
        path: str,
        params: Mapping[str, str] | None,
        credential: SessionCredential,
    ) -> requests.Request:
        """Create the GET request for ``path`` carrying the session credential."""
        query = dict(params or {})
        if credential.crumb:
            query[CRUMB_PARAM] = credential.crumb
        headers = API_HEADERS.build(self.config.user_agent, Cookie=credential.cookie_header)
        return requests.Request(
            "GET", f"{self.config.base_url}{path}", params=query, headers=headers
        )

    def call(
        self,
        path: str,
        params: Mapping[str, str] | None = None,
        decode: Callable[[Any], T] | None = None,
    ) -> T | Any:
        """Execute an authenticated API call and decode its JSON body.

        Args:
            path: API path, e.g. ``/v7/finance/quote``.
            params: Query parameters; the crumb is added automatically.
            decode: Optional callable turning the parsed JSON into the result.

        Returns:
            The decoded result, or the parsed JSON when ``decode`` is omitted.

        Raises:
            RemoteError: On credential refresh failure, transport failure or
                an error status.
            PayloadError: If the body is not valid JSON or cannot be decoded.
        """
        logger.info(f'Calling "{path}" with params {dict(params or {})}')
        credential = self.store.ensure_fresh()
        prepared = self.build_request(path, params, credential).prepare()

        logger.info(f"Requesting GET {path}")
        start = time.monotonic()
        try:
            res = self.session.send(prepared, timeout=self.config.timeout)
        except requests.RequestException as e:
            logger.error(f"Request to api failed: {e}")
            raise RemoteError(f"Request to {path} failed: {e}") from e
        logger.debug(f"Completed in {time.monotonic() - start:.3f}s")

        body = res.text
        if self.config.dump_dir is not None:
            self._dump(self.config.dump_dir, params, body)

        if res.status_code >= 400:
            logger.error(f"API error {res.status_code}: {body!r}")
            raise RemoteError(
                f"error response received from upstream api: {res.status_code} {res.reason}",
                status_code=res.status_code,
                body=body,
            )

        try:
            payload = json.loads(body)
        except ValueError as e:
            raise PayloadError(
                f"Malformed JSON from {path}: {e}", status_code=res.status_code, body=body
            ) from e

        if decode is None:
            return payload
        try:
            return decode(payload)
        except (KeyError, TypeError, ValueError) as e:
            raise PayloadError(
                f"Can't decode response from {path}: {e}", status_code=res.status_code, body=body
            ) from e

    def _dump(self, dump_dir: Path, params: Mapping[str, str] | None, body: str) -> None:
        """Write a pretty-printed copy of ``body`` for offline inspection."""
        key = (params or {}).get(DUMP_KEY_PARAM) or "response"
        safe = re.sub(r"[^\w.,=^-]", "_", key)
        target = Path(dump_dir) / f"{safe}.json"
        try:
            text = json.dumps(json.loads(body), indent=2)
        except ValueError:
            text = body
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
            logger.debug(f"Response dumped to {target}")
        except OSError as e:
            logger.warning(f"Can't write response dump {target}: {e}")

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> YFinanceClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
