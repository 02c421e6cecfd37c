"""Tests for deduplication and storage of candidate items."""

from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError

from aggregator import db_engine
from aggregator.models import CandidateItem, PersistAction
from aggregator.orm_models import Base
from aggregator.persister import MISSING_LINK_ERROR, article_exists, persist_candidate


@pytest.fixture
def temp_db():
    """Create a temporary in-memory database for testing."""
    test_engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(test_engine)
    db_engine.set_engine(test_engine)
    yield test_engine
    db_engine.reset_engine()


def make_item(link="https://example.com/a", guid="guid-a", title="An article") -> CandidateItem:
    return CandidateItem(title=title, link=link, guid=guid, categories=["AI"])


class TestPersistCandidate:
    """Tests for persist_candidate."""

    def test_adds_new_item(self, temp_db):
        from aggregator.database import get_article_by_link

        result = persist_candidate(make_item(), "Example Feed")

        assert result.action == PersistAction.ADDED
        assert result.error is None
        stored = get_article_by_link("https://example.com/a")
        assert stored.source_name == "Example Feed"
        assert stored.categories == ["AI"]
        assert stored.fetched_at > 0

    def test_second_time_is_skipped(self, temp_db):
        persist_candidate(make_item(), "Example Feed")
        result = persist_candidate(make_item(), "Example Feed")

        assert result.action == PersistAction.SKIPPED
        assert result.error is None

    def test_duplicate_by_guid(self, temp_db):
        persist_candidate(make_item(), "Example Feed")
        result = persist_candidate(make_item(link="https://example.com/moved"), "Example Feed")

        assert result.action == PersistAction.SKIPPED
        assert result.error is None

    def test_duplicate_by_link_without_guid(self, temp_db):
        persist_candidate(make_item(guid=None), "Example Feed")
        result = persist_candidate(make_item(guid=None), "Example Feed")

        assert result.action == PersistAction.SKIPPED

    def test_missing_link(self, temp_db):
        from aggregator.database import list_articles

        result = persist_candidate(make_item(link=None), "Example Feed")

        assert result.action == PersistAction.SKIPPED
        assert result.error == MISSING_LINK_ERROR
        assert list_articles(include_hidden=True)[1] == 0

    def test_uniqueness_conflict_is_an_item_error(self, temp_db):
        """Same link with a different guid slips past the lookup but not the constraint."""
        persist_candidate(make_item(), "Example Feed")

        with patch("aggregator.persister.article_exists", return_value=False):
            result = persist_candidate(make_item(guid="guid-other"), "Example Feed")

        assert result.action == PersistAction.SKIPPED
        assert "already stored" in result.error

    def test_write_failure_is_an_item_error(self, temp_db):
        with patch(
            "aggregator.persister.insert_article",
            side_effect=OperationalError("INSERT", {}, Exception("disk I/O error")),
        ):
            result = persist_candidate(make_item(), "Example Feed")

        assert result.action == PersistAction.SKIPPED
        assert result.error.startswith("Failed to save article:")

    def test_unexpected_failure_is_an_item_error(self, temp_db):
        with patch(
            "aggregator.persister.insert_article",
            side_effect=TypeError("unsupported type for column"),
        ):
            result = persist_candidate(make_item(), "Example Feed")

        assert result.action == PersistAction.SKIPPED
        assert "unsupported type for column" in result.error


class TestArticleExists:
    """Tests for article_exists."""

    def test_checks_guid_then_link(self, temp_db):
        persist_candidate(make_item(), "Example Feed")

        assert article_exists(make_item(link="https://example.com/other")) is True
        assert article_exists(make_item(guid="new-guid")) is True
        assert article_exists(make_item(link="https://example.com/other", guid="new-guid")) is False
