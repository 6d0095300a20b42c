from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from yfsys.auth import SessionCredential
from yfsys.client import YFinanceClient
from yfsys.config import ClientConfig
from yfsys.session import CredentialStore

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for the credential store."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def _make_response(status_code: int = 200, payload=None, text: str | None = None) -> Mock:
    response = Mock()
    response.status_code = status_code
    response.reason = "OK" if status_code < 400 else "Internal Server Error"
    response.text = text if text is not None else json.dumps(payload)
    return response


@pytest.fixture
def make_response():
    """Factory for mocked API responses."""
    return _make_response


@pytest.fixture
def clean_env(monkeypatch):
    """Remove YF_* variables so tests do not pick up the developer's settings."""
    for key in list(os.environ):
        if key.startswith("YF_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def credential():
    return SessionCredential(
        cookie_header="A1=abc; A3=def",
        crumb="crumb123",
        expires_at=NOW + timedelta(hours=1),
    )


@pytest.fixture
def store(clock):
    return CredentialStore(ClientConfig(), clock=clock)


@pytest.fixture
def fresh_store(store, credential):
    """Store already holding a valid credential."""
    store._credential = credential
    return store


@pytest.fixture
def client(fresh_store):
    client = YFinanceClient(store=fresh_store)
    yield client
    client.close()


@pytest.fixture
def sample_quote_payload():
    """Quote envelope matching the /v7/finance/quote response structure."""
    return {
        "quoteResponse": {
            "result": [
                {
                    "language": "en-US",
                    "region": "US",
                    "quoteType": "EQUITY",
                    "typeDisp": "Equity",
                    "currency": "USD",
                    "marketState": "REGULAR",
                    "symbol": "AAPL",
                    "shortName": "Apple Inc.",
                    "regularMarketPrice": 150.25,
                    "regularMarketChangePercent": 1.2,
                    "regularMarketVolume": 51234567,
                    "marketCap": 2400000000000,
                    "fiftyTwoWeekRange": "124.17 - 198.23",
                    "averageDailyVolume10Day": 60000000,
                    "forwardPE": 25.4,
                    "esgPopulated": False,
                    "tradeable": False,
                },
                {
                    "language": "en-US",
                    "region": "US",
                    "quoteType": "INDEX",
                    "currency": "USD",
                    "marketState": "REGULAR",
                    "symbol": "^DJI",
                    "shortName": "Dow Jones Industrial Average",
                    "regularMarketPrice": 37592.98,
                },
            ],
            "error": None,
        }
    }
