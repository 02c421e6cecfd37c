"""
Deduplication and storage of candidate articles.
"""

import time

from sqlalchemy.exc import SQLAlchemyError

from aggregator.database import get_article_by_guid, get_article_by_link, insert_article
from aggregator.errors import PersistenceConflict
from aggregator.models import Article, CandidateItem, PersistAction, PersistResult
from util.logging_util import setup_logger

logger = setup_logger(__name__)

MISSING_LINK_ERROR = "Item missing link."


def article_exists(item: CandidateItem) -> bool:
    """Check for a stored article by guid first, then by link."""
    if item.guid and get_article_by_guid(item.guid) is not None:
        return True
    return get_article_by_link(item.link) is not None


def persist_candidate(item: CandidateItem, source_name: str) -> PersistResult:
    """
    Store a candidate item unless it is already known.

    Never raises: lookup and write failures come back as a skipped result
    carrying an error message, so one bad item cannot abort a batch.

    Args:
        item: The extracted candidate.
        source_name: Name of the source the item came from.

    Returns:
        PersistResult with action ADDED or SKIPPED (with ``error`` set when the
        skip was caused by a problem rather than a duplicate).
    """
    if not item.link:
        return PersistResult(PersistAction.SKIPPED, error=MISSING_LINK_ERROR)

    try:
        if article_exists(item):
            logger.debug(f"Article already exists: {item.link}")
            return PersistResult(PersistAction.SKIPPED)

        article = Article(
            title=item.title,
            link=item.link,
            guid=item.guid,
            source_name=source_name,
            published_date=item.published_date,
            description_snippet=item.description_snippet,
            categories=list(item.categories),
            fetched_at=int(time.time()),
        )
        insert_article(article)
        return PersistResult(PersistAction.ADDED)
    except PersistenceConflict as e:
        logger.warning(f"Uniqueness conflict storing '{item.title[:50]}': {e}")
        return PersistResult(PersistAction.SKIPPED, error=str(e))
    except SQLAlchemyError as e:
        logger.error(f"Failed to save article '{item.title[:50]}': {e}")
        return PersistResult(PersistAction.SKIPPED, error=f"Failed to save article: {e}")
    except Exception as e:
        logger.exception(f"Unexpected error storing '{item.title[:50]}'")
        return PersistResult(PersistAction.SKIPPED, error=f"Unexpected error: {e}")
