"""
Per-source processing: fetch, extract, cap, deduplicate and store.
"""

from typing import List, Optional

from aggregator.config import FetchConfig
from aggregator.errors import FetchError, ParseError
from aggregator.extractors import ContentExtractor, get_extractor
from aggregator.fetcher import fetch_source_content
from aggregator.models import (
    CandidateItem,
    ItemError,
    PersistAction,
    ProcessingSummary,
    Source,
    SourceType,
)
from aggregator.persister import persist_candidate
from util.logging_util import log_source_summary, setup_logger

logger = setup_logger(__name__)


def apply_article_cap(
    items: List[CandidateItem], max_articles: int, summary: ProcessingSummary
) -> List[CandidateItem]:
    """Keep the first ``max_articles`` items in feed order, recording counts."""
    summary.items_found = len(items)
    considered = items[:max_articles] if max_articles > 0 else []
    if len(considered) < len(items):
        logger.info(
            f"Source {summary.source_name} has {len(items)} items, limiting to first {max_articles}."
        )
    summary.items_considered = len(considered)
    return considered


def set_processing_status(summary: ProcessingSummary, max_articles: Optional[int] = None):
    """Set the final status and message of a summary that was fetched successfully."""
    item_label = "items" if summary.type == SourceType.RSS else "articles"
    limit_part = ""
    if max_articles and summary.items_found > max_articles:
        limit_part = f" (limited to first {summary.items_considered} of {summary.items_found} found)"
    stats = (
        f"{summary.items_processed} {item_label}{limit_part}. "
        f"Added: {summary.new_items_added}, Skipped: {summary.items_skipped}."
    )

    summary.status = summary.resolve_status()
    if summary.errors:
        summary.message = f"Completed with {len(summary.errors)} errors. Processed {stats}"
    elif summary.items_found == 0:
        if summary.type == SourceType.RSS:
            summary.message = "No items found in RSS feed."
        else:
            summary.message = "No articles found on website."
    elif summary.items_considered == 0:
        summary.message = (
            f"Found {summary.items_found} {item_label}, but 0 considered after limit. "
            f"No {item_label} processed."
        )
    else:
        summary.message = f"Successfully processed {stats}"


def mark_fetch_failed(summary: ProcessingSummary, error: Exception):
    """Record a whole-source failure. Counts stay at zero."""
    summary.fetch_error = str(error) or error.__class__.__name__
    summary.message = f"Failed to process {summary.type.value.upper()} source: {summary.fetch_error}"
    summary.status = summary.resolve_status()


def process_source(
    source: Source,
    config: FetchConfig,
    extractor: Optional[ContentExtractor] = None,
) -> ProcessingSummary:
    """
    Fetch one source and store its new articles.

    Args:
        source: The source to process.
        config: Fetch configuration (article caps, timeout, site defaults).
        extractor: Extractor to use instead of the one picked by source type.

    Returns:
        The ProcessingSummary for the source. Failures are reported in the
        summary and never raised.
    """
    summary = ProcessingSummary(
        source_url=source.url,
        source_name=source.name,
        type=source.type,
    )
    logger.info(f"Processing {source.type.value} source '{source.name}' ({source.url})")

    try:
        raw_content = fetch_source_content(source.url, source.type, timeout=config.fetch_timeout)
        extractor = extractor or get_extractor(source, config)
        items = extractor.extract(raw_content)
    except (FetchError, ParseError) as e:
        mark_fetch_failed(summary, e)
        log_source_summary(logger, source.name, summary.status.value, summary.message)
        return summary
    except Exception as e:
        logger.exception(f"Unexpected error fetching '{source.name}'")
        mark_fetch_failed(summary, e)
        log_source_summary(logger, source.name, summary.status.value, summary.message)
        return summary

    max_articles = config.resolve_max_articles(source)
    for item in apply_article_cap(items, max_articles, summary):
        summary.items_processed += 1
        result = persist_candidate(item, source.name)
        if result.action == PersistAction.ADDED:
            summary.new_items_added += 1
            continue
        summary.items_skipped += 1
        if result.error:
            summary.errors.append(
                ItemError(message=result.error, item_title=item.title, item_link=item.link)
            )

    set_processing_status(summary, max_articles)
    log_source_summary(logger, source.name, summary.status.value, summary.message, len(summary.errors))
    return summary
