"""
HTTP fetching of source content.
"""

import time
from typing import Tuple

import requests

from aggregator.constants import (
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    HTML_ACCEPT,
    RSS_ACCEPT,
    USER_AGENT,
)
from aggregator.errors import FetchError
from aggregator.models import SourceType
from util.logging_util import setup_logger

logger = setup_logger(__name__)


def build_headers(source_type: SourceType) -> dict:
    """Browser-like request headers, with Accept tuned to the source type."""
    return {
        "User-Agent": USER_AGENT,
        "Accept": RSS_ACCEPT if source_type == SourceType.RSS else HTML_ACCEPT,
        "Accept-Language": "en-US,en;q=0.9",
        "DNT": "1",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
    }


def fetch_source_content(
    url: str,
    source_type: SourceType,
    timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
) -> str:
    """
    Fetch the raw body of a source.

    Args:
        url: The feed or page URL.
        source_type: Declared type of the source, used for the Accept header.
        timeout: Request timeout in seconds.

    Returns:
        The response body as text.

    Raises:
        FetchError: On network failure, timeout or a non-2xx response.
    """
    try:
        response = requests.get(url, headers=build_headers(source_type), timeout=timeout)
    except requests.Timeout as e:
        raise FetchError(f"Request timed out after {timeout}s: {e}") from e
    except requests.RequestException as e:
        raise FetchError(f"Request failed: {e}") from e

    if not 200 <= response.status_code < 300:
        raise FetchError(
            f"HTTP {response.status_code}: {response.reason}",
            status_code=response.status_code,
        )

    logger.debug(f"Fetched {len(response.text)} characters from {url}")
    return response.text


def check_source_reachable(
    url: str,
    source_type: SourceType,
    timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
) -> Tuple[int, str, int]:
    """
    Send a HEAD request to a source URL.

    Returns:
        (status code, reason, response time in milliseconds). Non-2xx
        responses are returned, not raised.

    Raises:
        FetchError: On network failure or timeout.
    """
    started = time.monotonic()
    try:
        response = requests.head(
            url, headers=build_headers(source_type), timeout=timeout, allow_redirects=True
        )
    except requests.RequestException as e:
        raise FetchError(f"Request failed: {e}") from e
    elapsed_ms = int((time.monotonic() - started) * 1000)
    return response.status_code, response.reason, elapsed_ms
