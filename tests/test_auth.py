from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

import pytest
import requests

from yfsys.auth import (
    API_HEADERS,
    CRUMB_HEADERS,
    CRUMB_URL,
    SESSION_HEADERS,
    SessionCredential,
    default_expiry,
    fetch_crumb,
    fetch_session_cookies,
    parse_session_cookies,
)
from yfsys.config import COOKIE_URL, USER_AGENT
from yfsys.errors import TransportError

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

SET_COOKIES = [
    "A1=d=AQABBK&S=AQAAAo; Expires=Wed, 15 Jan 2025 12:00:00 GMT; Max-Age=31557600; "
    "Domain=.yahoo.com; Path=/; SameSite=Lax; Secure; HttpOnly",
    "A3=d=AQABBK&S=AQAAAo; Max-Age=7200; Domain=.yahoo.com; Path=/; Secure",
    "AS=v=1&s=abc; Max-Age=86400; Domain=.login.yahoo.com; Path=/",
    "GUC=AQEBCAFl; Max-Age=0; Path=/",
    "B=session-only; Path=/",
]


def _cookie_response(headers: list[str]) -> Mock:
    response = Mock()
    response.status_code = 200
    response.raw.headers.getlist.return_value = headers
    return response


class TestParseSessionCookies:
    def test_accepts_only_cookies_with_positive_max_age(self):
        header, _ = parse_session_cookies(SET_COOKIES, NOW)

        assert header == "A1=d=AQABBK&S=AQAAAo; A3=d=AQABBK&S=AQAAAo"

    def test_excluded_cookie_is_dropped(self):
        header, _ = parse_session_cookies(["AS=v=1; Max-Age=3600"], NOW)

        assert header == ""

    def test_expiry_is_earliest_accepted_cookie(self):
        _, expires_at = parse_session_cookies(SET_COOKIES, NOW)

        assert expires_at == NOW + timedelta(seconds=7200)

    def test_excluded_cookie_does_not_shorten_expiry(self):
        _, expires_at = parse_session_cookies(
            ["A1=x; Max-Age=7200", "AS=y; Max-Age=60"], NOW
        )

        assert expires_at == NOW + timedelta(seconds=7200)

    def test_no_usable_cookie_defaults_to_ten_years(self):
        header, expires_at = parse_session_cookies(["B=1; Path=/", "C=2; Max-Age=-1"], NOW)

        assert header == ""
        assert expires_at == datetime(2034, 1, 15, 12, 0, tzinfo=timezone.utc)

    def test_max_age_attribute_is_case_insensitive(self):
        header, expires_at = parse_session_cookies(["A1=x; max-age=60"], NOW)

        assert header == "A1=x"
        assert expires_at == NOW + timedelta(seconds=60)

    def test_unparseable_max_age_is_ignored(self):
        header, _ = parse_session_cookies(["A1=x; Max-Age=soon"], NOW)

        assert header == ""

    def test_malformed_cookie_is_skipped(self):
        header, _ = parse_session_cookies(["garbage", "A1=x; Max-Age=60"], NOW)

        assert header == "A1=x"

    def test_parsing_is_idempotent(self):
        first = parse_session_cookies(SET_COOKIES, NOW)
        second = parse_session_cookies(SET_COOKIES, NOW)

        assert first == second


class TestDefaultExpiry:
    def test_ten_years_out(self):
        assert default_expiry(NOW) == datetime(2034, 1, 15, 12, 0, tzinfo=timezone.utc)

    def test_leap_day(self):
        leap = datetime(2024, 2, 29, tzinfo=timezone.utc)

        assert default_expiry(leap) == datetime(2034, 2, 28, tzinfo=timezone.utc)


class TestFetchSessionCookies:
    @patch("yfsys.auth.requests.get")
    def test_successful_handshake(self, mock_get):
        mock_get.return_value = _cookie_response(SET_COOKIES)

        header, expires_at = fetch_session_cookies(now=NOW)

        assert header == "A1=d=AQABBK&S=AQAAAo; A3=d=AQABBK&S=AQAAAo"
        assert expires_at == NOW + timedelta(seconds=7200)
        mock_get.assert_called_once_with(
            COOKIE_URL, headers=SESSION_HEADERS.build(USER_AGENT), timeout=80.0
        )

    @patch("yfsys.auth.requests.get")
    def test_custom_url_and_timeout(self, mock_get):
        mock_get.return_value = _cookie_response([])

        fetch_session_cookies(url="https://login.example.com", timeout=5.0, now=NOW)

        args, kwargs = mock_get.call_args
        assert args == ("https://login.example.com",)
        assert kwargs["timeout"] == 5.0

    @patch("yfsys.auth.requests.get")
    def test_connection_failure_raises_transport_error(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("connection refused")

        with pytest.raises(TransportError, match="Can't fetch cookies"):
            fetch_session_cookies(now=NOW)

    @patch("yfsys.auth.requests.get")
    def test_falls_back_to_folded_header(self, mock_get):
        response = Mock()
        response.raw = Mock(spec=[])
        response.headers = {"Set-Cookie": "A1=x; Max-Age=60"}
        mock_get.return_value = response

        header, _ = fetch_session_cookies(now=NOW)

        assert header == "A1=x"


class TestFetchCrumb:
    @patch("yfsys.auth.requests.get")
    def test_body_is_the_crumb(self, mock_get):
        mock_get.return_value = Mock(status_code=200, text="Xy1/abc.Z")

        crumb = fetch_crumb("A1=x; A3=y")

        assert crumb == "Xy1/abc.Z"
        mock_get.assert_called_once_with(
            CRUMB_URL,
            headers=CRUMB_HEADERS.build(USER_AGENT, Cookie="A1=x; A3=y"),
            timeout=80.0,
        )

    @patch("yfsys.auth.requests.get")
    def test_cookie_header_is_forwarded(self, mock_get):
        mock_get.return_value = Mock(status_code=200, text="crumb")

        fetch_crumb("A1=x")

        assert mock_get.call_args.kwargs["headers"]["Cookie"] == "A1=x"

    @patch("yfsys.auth.requests.get")
    def test_timeout_raises_transport_error(self, mock_get):
        mock_get.side_effect = requests.exceptions.Timeout("read timed out")

        with pytest.raises(TransportError, match="Can't fetch crumb"):
            fetch_crumb("A1=x")

    @patch("yfsys.auth.requests.get")
    def test_error_status_raises_transport_error(self, mock_get):
        mock_get.return_value = Mock(status_code=401, text="Unauthorized")

        with pytest.raises(TransportError, match="401 Unauthorized"):
            fetch_crumb("A1=x")

    @patch("yfsys.auth.requests.get")
    def test_empty_body_raises_transport_error(self, mock_get):
        mock_get.return_value = Mock(status_code=200, text="")

        with pytest.raises(TransportError, match="empty"):
            fetch_crumb("A1=x")


class TestHeaderProfiles:
    def test_every_profile_spoofs_browser_user_agent(self):
        for profile in (SESSION_HEADERS, CRUMB_HEADERS, API_HEADERS):
            assert profile.build()["User-Agent"] == USER_AGENT

    def test_extra_headers_override(self):
        headers = API_HEADERS.build("agent/1.0", Cookie="A1=x")

        assert headers["User-Agent"] == "agent/1.0"
        assert headers["Cookie"] == "A1=x"
        assert headers["Origin"] == "https://finance.yahoo.com"

    def test_build_returns_a_copy(self):
        headers = SESSION_HEADERS.build()
        headers["Accept"] = "text/html"

        assert SESSION_HEADERS.build()["Accept"] == "*/*"


class TestSessionCredential:
    def test_is_expired(self):
        credential = SessionCredential("A1=x", "crumb", NOW)

        assert credential.is_expired(NOW)
        assert credential.is_expired(NOW + timedelta(seconds=1))
        assert not credential.is_expired(NOW - timedelta(seconds=1))

    def test_repr_hides_cookie_values(self):
        credential = SessionCredential("A1=secret", "crumb", NOW)

        assert "secret" not in repr(credential)
