"""Lightweight Yahoo! Finance quote client.

This package provides:
- The cookie/crumb handshake the API requires, cached until the cookies expire
- A thin authenticated HTTP client that refreshes the credential when stale
- ``get_quotes`` returning flat ``Quote`` records, and a polars table view

Note: Quote results are never cached; every call goes to the API.
"""

from .client import YFinanceClient
from .config import ClientConfig, ConfigError
from .errors import ArgumentError, ErrorKind, PayloadError, RemoteError, YFinError
from .log import LogLevel, set_log_level
from .quote import MarketState, OptionType, Quote, QuoteType, get_quotes, quotes_to_frame

__all__ = [
    "ArgumentError",
    "ClientConfig",
    "ConfigError",
    "ErrorKind",
    "LogLevel",
    "MarketState",
    "OptionType",
    "PayloadError",
    "Quote",
    "QuoteType",
    "RemoteError",
    "YFinError",
    "YFinanceClient",
    "get_quotes",
    "quotes_to_frame",
    "set_log_level",
]
