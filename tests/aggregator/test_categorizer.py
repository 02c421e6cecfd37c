"""Tests for LLM categorization of stored articles."""

from unittest.mock import patch

import pytest
from sqlalchemy import create_engine

from aggregator import db_engine
from aggregator.categorizer import (
    categorize_article,
    categorize_pending_articles,
    parse_categorization_response,
)
from aggregator.models import Article, CategorizationStatus
from aggregator.orm_models import Base

GOOD_RESPONSE = (
    '{"news_category": "Solid News", "tech_category": "AI Agents", '
    '"rationale": "Covers a new agent framework."}'
)


@pytest.fixture
def temp_db():
    """Create a temporary in-memory database for testing."""
    test_engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(test_engine)
    db_engine.set_engine(test_engine)
    yield test_engine
    db_engine.reset_engine()


def stored_article(n: int = 1) -> Article:
    from aggregator.database import get_article_by_id, insert_article

    article_id = insert_article(Article(
        title=f"Agent framework {n} released",
        link=f"https://example.com/agents/{n}",
        source_name="Example Feed",
        description_snippet="A new open source agent framework.",
    ))
    return get_article_by_id(article_id)


class TestParseCategorizationResponse:
    """Tests for parse_categorization_response."""

    def test_plain_json(self):
        assert parse_categorization_response(GOOD_RESPONSE) == (
            "Solid News", "AI Agents", "Covers a new agent framework.",
        )

    def test_markdown_code_block(self):
        response = f"```json\n{GOOD_RESPONSE}\n```"
        news, tech, _ = parse_categorization_response(response)
        assert (news, tech) == ("Solid News", "AI Agents")

    def test_case_insensitive_categories(self):
        news, tech, _ = parse_categorization_response(
            '{"news_category": "solid news", "tech_category": "developer tools"}'
        )
        assert (news, tech) == ("Solid News", "Developer Tools")

    def test_default_rationale(self):
        _, _, rationale = parse_categorization_response(
            '{"news_category": "Solid News", "tech_category": "AI Agents"}'
        )
        assert rationale == "No rationale provided"

    @pytest.mark.parametrize("response", [
        "not json",
        "[1, 2]",
        '{"news_category": "Breaking", "tech_category": "AI Agents"}',
        '{"news_category": "Solid News"}',
    ])
    def test_invalid_responses(self, response):
        with pytest.raises(ValueError):
            parse_categorization_response(response)


class TestCategorizeArticle:
    """Tests for categorize_article."""

    @patch("aggregator.categorizer.get_llm_response")
    def test_success(self, mock_llm, temp_db):
        from aggregator.database import get_article_by_id

        mock_llm.return_value = GOOD_RESPONSE
        article = stored_article()

        assert categorize_article(article) is True

        stored = get_article_by_id(article.id)
        assert stored.categorization.status == CategorizationStatus.COMPLETED
        assert stored.categorization.news_category == "Solid News"
        assert stored.categorization.tech_category == "AI Agents"
        assert stored.categorization.categorized_at is not None
        assert stored.title == article.title
        params = mock_llm.call_args.args[1]
        assert params["title"] == article.title
        assert "Solid News" in params["news_categories"]

    @patch("aggregator.categorizer.get_llm_response")
    def test_llm_error_marks_failed(self, mock_llm, temp_db):
        from aggregator.database import get_article_by_id

        mock_llm.side_effect = RuntimeError("quota exceeded")
        article = stored_article()

        assert categorize_article(article) is False

        categorization = get_article_by_id(article.id).categorization
        assert categorization.status == CategorizationStatus.FAILED
        assert "quota exceeded" in categorization.rationale

    @patch("aggregator.categorizer.get_llm_response")
    def test_bad_category_marks_failed(self, mock_llm, temp_db):
        from aggregator.database import get_article_by_id

        mock_llm.return_value = '{"news_category": "Gossip", "tech_category": "AI Agents"}'
        article = stored_article()

        assert categorize_article(article) is False
        assert get_article_by_id(article.id).categorization.status == CategorizationStatus.FAILED


class TestCategorizePendingArticles:
    """Tests for categorize_pending_articles."""

    @patch("aggregator.categorizer.get_llm_response")
    def test_processes_pending_and_skips_completed(self, mock_llm, temp_db):
        mock_llm.return_value = GOOD_RESPONSE
        for n in range(3):
            stored_article(n)

        first = categorize_pending_articles(limit=2)
        second = categorize_pending_articles(limit=10)
        third = categorize_pending_articles(limit=10)

        assert first.articles_processed == 2
        assert first.articles_completed == 2
        assert second.articles_processed == 1
        assert third.articles_processed == 0

    @patch("aggregator.categorizer.get_llm_response")
    def test_failed_articles_are_retried(self, mock_llm, temp_db):
        stored_article()
        mock_llm.side_effect = [RuntimeError("timeout"), GOOD_RESPONSE]

        first = categorize_pending_articles()
        second = categorize_pending_articles()

        assert first.articles_failed == 1
        assert second.articles_completed == 1
