"""
LLM categorization of stored articles.

Results live in the article_categorizations table; article rows are never
modified here.
"""

import json
import time
from dataclasses import dataclass
from typing import Tuple

from aggregator.constants import (
    DEFAULT_CATEGORIZATION_LIMIT,
    NEWS_CATEGORIES,
    PROMPTS_DIR,
    TECH_CATEGORIES,
)
from aggregator.database import get_articles_needing_categorization, set_categorization
from aggregator.models import Article, CategorizationStatus
from llm.llm_util import get_llm_response
from util.logging_util import setup_logger

logger = setup_logger(__name__)

CATEGORIZE_ARTICLE_TEMPLATE = PROMPTS_DIR / "categorize_article.jinja2"


@dataclass
class CategorizationRunResult:
    articles_processed: int = 0
    articles_completed: int = 0
    articles_failed: int = 0


def _match_category(value, allowed: Tuple[str, ...], kind: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"Missing {kind} category")
    for category in allowed:
        if category.lower() == value.strip().lower():
            return category
    raise ValueError(f"Unknown {kind} category: {value!r}")


def parse_categorization_response(response: str) -> Tuple[str, str, str]:
    """
    Parse the model's JSON answer.

    Returns:
        Tuple of (news_category, tech_category, rationale).

    Raises:
        ValueError: If the response is not JSON or names an unknown category.
    """
    response = response.strip()
    if response.startswith("```"):
        lines = response.split("\n")
        response = "\n".join(lines[1:-1])

    try:
        result = json.loads(response)
    except json.JSONDecodeError as e:
        raise ValueError(f"Failed to parse LLM response as JSON: {e}") from e
    if not isinstance(result, dict):
        raise ValueError("LLM response is not a JSON object")

    news_category = _match_category(result.get("news_category"), NEWS_CATEGORIES, "news")
    tech_category = _match_category(result.get("tech_category"), TECH_CATEGORIES, "tech")
    rationale = result.get("rationale") or "No rationale provided"
    return news_category, tech_category, rationale


def categorize_article(article: Article) -> bool:
    """
    Categorize one article and store the outcome.

    Returns:
        True if the article was categorized, False if it was marked failed.
    """
    set_categorization(article.id, CategorizationStatus.PROCESSING)
    try:
        response = get_llm_response(
            str(CATEGORIZE_ARTICLE_TEMPLATE),
            {
                "title": article.title,
                "source_name": article.source_name,
                "description": article.description_snippet or "",
                "news_categories": list(NEWS_CATEGORIES),
                "tech_categories": list(TECH_CATEGORIES),
            },
        )
        news_category, tech_category, rationale = parse_categorization_response(response)
    except Exception as e:
        logger.error(f"Error categorizing article {article.id} '{article.title[:50]}': {e}")
        set_categorization(article.id, CategorizationStatus.FAILED, rationale=f"Error during categorization: {e}")
        return False

    set_categorization(
        article.id,
        CategorizationStatus.COMPLETED,
        news_category=news_category,
        tech_category=tech_category,
        rationale=rationale,
        categorized_at=int(time.time()),
    )
    logger.info(f"Categorized '{article.title[:50]}...': news={news_category}, tech={tech_category}")
    return True


def categorize_pending_articles(limit: int = DEFAULT_CATEGORIZATION_LIMIT) -> CategorizationRunResult:
    """Categorize up to ``limit`` articles that are uncategorized or previously failed."""
    result = CategorizationRunResult()
    for article in get_articles_needing_categorization(limit):
        result.articles_processed += 1
        if categorize_article(article):
            result.articles_completed += 1
        else:
            result.articles_failed += 1
    logger.info(
        f"Categorization run: {result.articles_completed} completed, "
        f"{result.articles_failed} failed of {result.articles_processed}"
    )
    return result
