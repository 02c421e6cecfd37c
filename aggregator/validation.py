"""
Checks a stored source's configuration and whether its URL answers.
"""

import time
from typing import List, Tuple
from urllib.parse import urlparse

from aggregator.config import FetchConfig
from aggregator.constants import SLOW_RESPONSE_MS
from aggregator.errors import FetchError
from aggregator.fetcher import check_source_reachable
from aggregator.models import Source, SourceType, SourceValidation
from util.logging_util import setup_logger

logger = setup_logger(__name__)


def config_problems(source: Source, config: FetchConfig) -> Tuple[List[str], List[str]]:
    """Errors and warnings found in the source record alone, without network access."""
    errors = []
    warnings = []

    if not source.name or not source.name.strip():
        errors.append("Source name is required")

    parsed = urlparse(source.url or "")
    if not source.url:
        errors.append("Source URL is required")
    elif parsed.scheme not in ("http", "https") or not parsed.netloc:
        errors.append("Invalid URL format")

    if source.type == SourceType.HTML:
        scraping = source.scraping_config
        website_id = scraping.website_id if scraping else None
        if website_id and website_id not in config.websites:
            warnings.append(f"Unknown website id '{website_id}'; default selectors will be used")
        elif config.website_for(source) is None and not (scraping and scraping.article_selector):
            warnings.append("No website config or article selector; default selectors will be used")

    return errors, warnings


def validate_source(source: Source, config: FetchConfig) -> SourceValidation:
    """
    Validate a source's configuration, then check its URL responds.

    The connectivity check only runs when the configuration has no errors. A
    connection failure is an error; a non-2xx status or a slow answer is a
    warning.
    """
    started = time.monotonic()
    errors, warnings = config_problems(source, config)
    result = SourceValidation(
        source_id=source.id,
        source_name=source.name,
        errors=errors,
        warnings=warnings,
    )

    if not result.errors:
        try:
            status_code, reason, elapsed_ms = check_source_reachable(
                source.url, source.type, timeout=config.fetch_timeout
            )
        except FetchError as e:
            result.errors.append(f"Failed to connect to source: {e}")
        else:
            result.response_time_ms = elapsed_ms
            if not 200 <= status_code < 300:
                result.warnings.append(f"URL returned {status_code} {reason}")
            if elapsed_ms > SLOW_RESPONSE_MS:
                result.warnings.append(f"Source response time is slow (>{SLOW_RESPONSE_MS // 1000} seconds)")

    result.validation_time_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        f"Validated source {source.id} '{source.name}': "
        f"{len(result.errors)} error(s), {len(result.warnings)} warning(s)"
    )
    return result
