"""Tests for fetching source content over HTTP."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from aggregator.constants import USER_AGENT
from aggregator.errors import FetchError
from aggregator.fetcher import build_headers, check_source_reachable, fetch_source_content
from aggregator.models import SourceType


def make_response(status_code=200, text="<rss></rss>", reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.reason = reason
    return response


class TestBuildHeaders:
    """Tests for build_headers."""

    def test_rss_accept(self):
        headers = build_headers(SourceType.RSS)
        assert headers["User-Agent"] == USER_AGENT
        assert "application/rss+xml" in headers["Accept"]

    def test_html_accept(self):
        headers = build_headers(SourceType.HTML)
        assert headers["Accept"].startswith("text/html")


class TestFetchSourceContent:
    """Tests for fetch_source_content."""

    @patch("aggregator.fetcher.requests.get")
    def test_returns_body_on_success(self, mock_get):
        mock_get.return_value = make_response(text="<rss>ok</rss>")

        body = fetch_source_content("https://example.com/feed.xml", SourceType.RSS, timeout=5)

        assert body == "<rss>ok</rss>"
        _, kwargs = mock_get.call_args
        assert kwargs["timeout"] == 5
        assert kwargs["headers"]["User-Agent"] == USER_AGENT

    @patch("aggregator.fetcher.requests.get")
    def test_non_2xx_raises(self, mock_get):
        mock_get.return_value = make_response(status_code=404, reason="Not Found")

        with pytest.raises(FetchError) as exc_info:
            fetch_source_content("https://example.com/missing", SourceType.HTML)

        assert exc_info.value.status_code == 404
        assert str(exc_info.value) == "HTTP 404: Not Found"

    @patch("aggregator.fetcher.requests.get")
    def test_timeout_raises(self, mock_get):
        mock_get.side_effect = requests.Timeout("read timed out")

        with pytest.raises(FetchError) as exc_info:
            fetch_source_content("https://example.com/slow", SourceType.RSS, timeout=15)

        assert "timed out" in str(exc_info.value)
        assert exc_info.value.status_code is None

    @patch("aggregator.fetcher.requests.get")
    def test_network_error_raises(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(FetchError, match="connection refused"):
            fetch_source_content("https://example.invalid/", SourceType.RSS)


class TestCheckSourceReachable:
    """Tests for check_source_reachable."""

    @patch("aggregator.fetcher.requests.head")
    def test_returns_status_without_raising(self, mock_head):
        mock_head.return_value = make_response(status_code=403, reason="Forbidden")

        status_code, reason, elapsed_ms = check_source_reachable(
            "https://example.com/blog", SourceType.HTML, timeout=3
        )

        assert (status_code, reason) == (403, "Forbidden")
        assert elapsed_ms >= 0
        _, kwargs = mock_head.call_args
        assert kwargs["timeout"] == 3
        assert kwargs["allow_redirects"] is True

    @patch("aggregator.fetcher.requests.head")
    def test_network_error_raises(self, mock_head):
        mock_head.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(FetchError, match="connection refused"):
            check_source_reachable("https://example.invalid/", SourceType.RSS)
