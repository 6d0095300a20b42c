"""Error types raised by the Yahoo! Finance client.

Callers only ever see two kinds of failure:

- ``ArgumentError``: the caller passed something unusable. Raised before any
  network activity.
- ``RemoteError``: anything that went wrong after input validation, whether
  the connection failed, the upstream answered with an error status, the
  payload could not be decoded or the payload embedded an error object.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Classification of a client error."""

    ARGUMENT = "api-error"
    REMOTE = "remote-error"


class YFinError(Exception):
    """Base class for all client errors."""

    kind: ErrorKind = ErrorKind.REMOTE

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"code: {self.kind.value}, detail: {detail}")


class ArgumentError(YFinError):
    """Invalid input supplied by the caller."""

    kind = ErrorKind.ARGUMENT


class RemoteError(YFinError):
    """Failure downstream of input validation."""

    kind = ErrorKind.REMOTE

    def __init__(
        self,
        detail: str,
        status_code: int | None = None,
        body: str | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.body = body
        self.code = code


class PayloadError(RemoteError):
    """The response body could not be decoded."""


class TransportError(YFinError):
    """A credential handshake request could not be completed.

    Only raised by :mod:`yfsys.auth`; the session store wraps it into a
    :class:`RemoteError` before it reaches client callers.
    """


@dataclass(frozen=True)
class ApiErrorObject:
    """Error object embedded in an otherwise successful response envelope."""

    code: str = ""
    description: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> ApiErrorObject:
        if not isinstance(data, dict):
            return cls(description=str(data))
        return cls(
            code=str(data.get("code") or ""),
            description=str(data.get("description") or ""),
        )

    def __str__(self) -> str:
        return json.dumps(asdict(self), separators=(",", ":"))

    def to_remote_error(self) -> RemoteError:
        return RemoteError(str(self), code=self.code or None)
