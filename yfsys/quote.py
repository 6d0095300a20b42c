"""Quote retrieval built on top of the authenticated client.

The upstream omits fields depending on the asset class (an index has no
``bookValue``, a future no ``sharesOutstanding`` ...), so :class:`Quote` is a
single flat record where every field defaults to ``None``. Unknown keys in
the payload are ignored.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields
from enum import Enum
from functools import lru_cache
from typing import Any, get_args, get_type_hints

import polars as pl

from .client import YFinanceClient
from .errors import ApiErrorObject, ArgumentError, PayloadError

logger = logging.getLogger(__name__)

QUOTE_PATH = "/v7/finance/quote"


class QuoteType(str, Enum):
    """Asset classification of a quote."""

    EQUITY = "EQUITY"
    INDEX = "INDEX"
    OPTION = "OPTION"
    CURRENCY = "CURRENCY"
    CRYPTOCURRENCY = "CRYPTOCURRENCY"
    FUTURE = "FUTURE"
    ETF = "ETF"
    MUTUALFUND = "MUTUALFUND"


class MarketState(str, Enum):
    """Trading session state of the security's market."""

    PREPRE = "PREPRE"
    PRE = "PRE"  # weekdays 4:00am - 9:30am Eastern
    REGULAR = "REGULAR"  # weekdays 9:30am - 4:00pm Eastern
    POST = "POST"  # weekdays 4:00pm - 8:00pm Eastern
    POSTPOST = "POSTPOST"
    CLOSED = "CLOSED"


class OptionType(str, Enum):
    CALL = "CALL"
    PUT = "PUT"


_ENUM_FIELDS: dict[str, type[Enum]] = {
    "quote_type": QuoteType,
    "market_state": MarketState,
    "options_type": OptionType,
}


def to_snake_case(key: str) -> str:
    """Convert an upstream camelCase key (``volume24Hr``) to ``volume_24_hr``."""
    key = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", key)
    key = re.sub(r"([a-zA-Z])(\d)", r"\1_\2", key)
    return key.lower()


@dataclass
class Quote:
    """Quote for a stock or other security."""

    ask: float | None = None
    ask_size: float | None = None
    average_analyst_rating: str | None = None
    average_daily_volume_10_day: int | None = None
    average_daily_volume_3_month: int | None = None
    bid: float | None = None
    bid_size: int | None = None
    book_value: float | None = None
    circulating_supply: int | None = None
    coin_image_url: str | None = None
    coin_market_cap_link: str | None = None
    contract_symbol: bool | None = None
    crypto_tradeable: bool | None = None
    currency: str | None = None
    # Seen values are NONE, LOW and HIGH; meaning undocumented.
    custom_price_alert_confidence: str | None = None
    display_name: str | None = None
    dividend_date: int | None = None
    dividend_rate: float | None = None
    dividend_yield: float | None = None
    earnings_timestamp: int | None = None
    earnings_timestamp_end: int | None = None
    earnings_timestamp_start: int | None = None
    eps_current_year: float | None = None
    eps_forward: float | None = None
    eps_trailing_twelve_months: float | None = None
    esg_populated: bool | None = None
    exchange: str | None = None
    exchange_data_delayed_by: int | None = None
    exchange_timezone_name: str | None = None
    exchange_timezone_short_name: str | None = None
    expire_date: int | None = None
    expire_iso_date: str | None = None
    fifty_day_average: float | None = None
    fifty_day_average_change: float | None = None
    fifty_day_average_change_percent: float | None = None
    fifty_two_week_change_percent: float | None = None
    fifty_two_week_high: float | None = None
    fifty_two_week_high_change: float | None = None
    fifty_two_week_high_change_percent: float | None = None
    fifty_two_week_low: float | None = None
    fifty_two_week_low_change: float | None = None
    fifty_two_week_low_change_percent: float | None = None
    fifty_two_week_range: str | None = None
    financial_currency: str | None = None
    first_trade_date_milliseconds: int | None = None
    forward_pe: float | None = None
    from_currency: str | None = None
    full_exchange_name: str | None = None
    gmt_off_set_milliseconds: int | None = None
    head_symbol_as_string: str | None = None
    ipo_expected_date: str | None = None
    language: str | None = None
    last_market: str | None = None
    logo_url: str | None = None
    long_name: str | None = None
    market: str | None = None
    market_cap: int | None = None
    market_state: MarketState | str | None = None
    message_board_id: str | None = None
    name_change_date: str | None = None
    net_assets: float | None = None
    net_expense_ratio: float | None = None
    open_interest: int | None = None
    options_type: OptionType | str | None = None
    post_market_change: float | None = None
    post_market_change_percent: float | None = None
    post_market_price: float | None = None
    post_market_time: int | None = None
    pre_market_change: float | None = None
    pre_market_change_percent: float | None = None
    pre_market_price: float | None = None
    pre_market_time: int | None = None
    prev_name: str | None = None
    price_eps_current_year: float | None = None
    price_hint: int | None = None
    price_to_book: float | None = None
    quote_source_name: str | None = None
    quote_type: QuoteType | str | None = None
    region: str | None = None
    regular_market_change: float | None = None
    regular_market_change_percent: float | None = None
    regular_market_day_high: float | None = None
    regular_market_day_low: float | None = None
    regular_market_day_range: str | None = None
    regular_market_open: float | None = None
    regular_market_previous_close: float | None = None
    regular_market_price: float | None = None
    regular_market_time: int | None = None
    regular_market_volume: int | None = None
    shares_outstanding: int | None = None
    short_name: str | None = None
    source_interval: int | None = None
    start_date: int | None = None
    strike: float | None = None
    symbol: str | None = None
    to_currency: str | None = None
    tradeable: bool | None = None
    trailing_annual_dividend_rate: float | None = None
    trailing_annual_dividend_yield: float | None = None
    trailing_pe: float | None = None
    trailing_three_month_nav_returns: float | None = None
    trailing_three_month_returns: float | None = None
    triggerable: bool | None = None
    two_hundred_day_average: float | None = None
    two_hundred_day_average_change: float | None = None
    two_hundred_day_average_change_percent: float | None = None
    type_disp: str | None = None
    underlying_exchange_symbol: str | None = None
    underlying_short_name: str | None = None
    underlying_symbol: str | None = None
    volume_24_hr: int | None = None
    volume_all_currencies: int | None = None
    ytd_return: float | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Quote:
        """Decode one record of the ``result`` list.

        Raises:
            TypeError: If the record is not an object or a value does not match
                its field type. Integers are accepted for float fields.
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"Quote record must be an object, got {type(data).__name__}")

        types = _field_types()
        values: dict[str, Any] = {}
        for key, value in data.items():
            name = to_snake_case(key)
            accepted = types.get(name)
            if accepted is None:
                continue
            enum_cls = _ENUM_FIELDS.get(name)
            if enum_cls is not None and value is not None:
                try:
                    value = enum_cls(value)
                except ValueError:
                    logger.debug(f"Unknown {name} value {value!r}, keeping raw string")
            if value is not None:
                value = _check_type(name, value, accepted)
            values[name] = value
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        """Return the fields as plain values, enums rendered as strings."""
        return {f.name: _plain(getattr(self, f.name)) for f in fields(self)}


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


@lru_cache(maxsize=1)
def _field_types() -> dict[str, tuple[type, ...]]:
    """Non-None types accepted by each field, taken from the type hints."""
    return {
        name: tuple(t for t in get_args(hint) if t is not type(None))
        for name, hint in get_type_hints(Quote).items()
    }


def _check_type(name: str, value: Any, accepted: tuple[type, ...]) -> Any:
    # bool is an int subclass; only bool fields take it.
    if isinstance(value, bool):
        ok = bool in accepted
    elif isinstance(value, int) and float in accepted:
        return float(value)
    else:
        ok = isinstance(value, accepted)
    if not ok:
        expected = " | ".join(t.__name__ for t in accepted)
        raise TypeError(f"Field {name} expects {expected}, got {type(value).__name__}")
    return value


@lru_cache(maxsize=1)
def frame_schema() -> dict[str, pl.DataType]:
    """Polars schema matching :meth:`Quote.to_dict`."""
    dtypes: dict[type, pl.DataType] = {
        bool: pl.Boolean(),
        int: pl.Int64(),
        float: pl.Float64(),
    }
    schema: dict[str, pl.DataType] = {}
    for name, accepted in _field_types().items():
        schema[name] = dtypes.get(accepted[0], pl.Utf8())
    return schema


def quotes_to_frame(quotes: Sequence[Quote]) -> pl.DataFrame:
    """Tabulate quotes, one row per quote and one column per field."""
    schema = frame_schema()
    if not quotes:
        return pl.DataFrame(schema=schema)
    return pl.from_dicts([q.to_dict() for q in quotes], schema=schema, strict=False)


def decode_quote_response(payload: Any) -> list[Quote]:
    """Decode a ``{"quoteResponse": {"result": [...], "error": ...}}`` envelope.

    Raises:
        RemoteError: If the envelope embeds a non-null error object.
        PayloadError: If the envelope is missing.
    """
    inner = payload.get("quoteResponse") if isinstance(payload, Mapping) else None
    if not isinstance(inner, Mapping):
        raise PayloadError("Response is missing the 'quoteResponse' envelope")

    error = inner.get("error")
    if error is not None:
        api_error = ApiErrorObject.from_dict(error)
        logger.error(f"Quote API returned an error: {api_error}")
        raise api_error.to_remote_error()

    return [Quote.from_dict(item) for item in inner.get("result") or []]


_default_client: YFinanceClient | None = None
_default_client_lock = threading.Lock()


def default_client() -> YFinanceClient:
    """Return the process-wide client, created from the environment on first use."""
    global _default_client
    with _default_client_lock:
        if _default_client is None:
            _default_client = YFinanceClient.from_env()
        return _default_client


def get_quotes(symbols: Sequence[str], client: YFinanceClient | None = None) -> list[Quote]:
    """Return quotes for the given symbols, in upstream order.

    Args:
        symbols: Non-empty sequence of ticker symbols (e.g. ``["AAPL", "^DJI"]``).
        client: Client to use; defaults to :func:`default_client`.

    Raises:
        ArgumentError: If no symbols are given. No request is made.
        RemoteError: On any failure after input validation.
    """
    if isinstance(symbols, str):
        symbols = [symbols]
    cleaned = [s.strip() for s in symbols if s and s.strip()]
    if not cleaned:
        raise ArgumentError("No symbols provided to get_quotes")

    client = client or default_client()
    return client.call(QUOTE_PATH, {"symbols": ",".join(cleaned)}, decode_quote_response)
