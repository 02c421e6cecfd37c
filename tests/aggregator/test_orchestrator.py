"""Tests for fetch run orchestration."""

from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError

from aggregator import db_engine
from aggregator.config import FetchConfig
from aggregator.errors import LogPersistenceError, SourceDisabledError, SourceNotFoundError
from aggregator.models import (
    ItemError,
    ProcessingSummary,
    RunStatus,
    Source,
    SourceType,
    SummaryStatus,
)
from aggregator.orchestrator import (
    NO_ENABLED_SOURCES,
    run_all_sources,
    run_single_source,
    source_last_error,
)
from aggregator.orm_models import Base


@pytest.fixture
def temp_db():
    """Create a temporary in-memory database for testing."""
    test_engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(test_engine)
    db_engine.set_engine(test_engine)
    yield test_engine
    db_engine.reset_engine()


def add_sources(*names, enabled=True):
    from aggregator.database import create_source

    return [
        create_source(Source(
            name=name,
            url=f"https://example.com/{name.lower().replace(' ', '-')}.xml",
            type=SourceType.RSS,
            is_enabled=enabled,
        ))
        for name in names
    ]


def summary_for(source: Source, added=0, fetch_error=None, errors=None) -> ProcessingSummary:
    summary = ProcessingSummary(
        source_url=source.url,
        source_name=source.name,
        type=source.type,
        items_found=added,
        items_considered=added,
        items_processed=added,
        new_items_added=added,
        errors=errors or [],
        fetch_error=fetch_error,
        message=f"Successfully processed {added} items.",
    )
    summary.status = summary.resolve_status()
    return summary


class TestRunAllSources:
    """Tests for run_all_sources."""

    @patch("aggregator.orchestrator.process_source")
    def test_run_aggregation(self, mock_process, temp_db):
        from aggregator.database import get_run_log

        first, second, third = add_sources("Alpha", "Beta", "Gamma")
        mock_process.side_effect = [
            summary_for(first, added=3),
            summary_for(second, fetch_error="HTTP 500: Internal Server Error"),
            summary_for(third, added=5),
        ]

        run_log = run_all_sources(FetchConfig())

        assert run_log.total_sources_attempted == 3
        assert run_log.total_new_articles_added_across_all_sources == 8
        assert run_log.total_sources_failed_with_error == 1
        assert run_log.total_sources_successfully_processed == 2
        assert run_log.status == RunStatus.COMPLETED_WITH_ERRORS
        assert run_log.end_time is not None

        stored = get_run_log(run_log.id)
        assert stored.status == RunStatus.COMPLETED_WITH_ERRORS
        assert [s.source_name for s in stored.source_summaries] == ["Alpha", "Beta", "Gamma"]
        assert stored.source_summaries[1].fetch_error == "HTTP 500: Internal Server Error"

    @patch("aggregator.orchestrator.process_source")
    def test_all_successful(self, mock_process, temp_db):
        (only,) = add_sources("Alpha")
        mock_process.return_value = summary_for(only, added=2)

        run_log = run_all_sources(FetchConfig())

        assert run_log.status == RunStatus.COMPLETED
        assert run_log.orchestration_errors == []

    @patch("aggregator.orchestrator.process_source")
    def test_only_enabled_sources_in_order(self, mock_process, temp_db):
        add_sources("Alpha")
        add_sources("Disabled", enabled=False)
        add_sources("Beta")
        mock_process.side_effect = lambda source, config: summary_for(source)

        run_all_sources(FetchConfig())

        processed = [call.args[0].name for call in mock_process.call_args_list]
        assert processed == ["Alpha", "Beta"]

    @patch("aggregator.orchestrator.process_source")
    def test_no_enabled_sources(self, mock_process, temp_db):
        from aggregator.database import get_run_log

        add_sources("Disabled", enabled=False)

        run_log = run_all_sources(FetchConfig())

        assert run_log.status == RunStatus.COMPLETED
        assert run_log.total_sources_attempted == 0
        assert run_log.orchestration_errors == [NO_ENABLED_SOURCES]
        assert get_run_log(run_log.id).status == RunStatus.COMPLETED
        mock_process.assert_not_called()

    @patch("aggregator.orchestrator.process_source")
    @patch("aggregator.orchestrator.create_run_log")
    def test_run_start_failure(self, mock_create, mock_process, temp_db):
        add_sources("Alpha")
        mock_create.side_effect = LogPersistenceError("database is locked")

        run_log = run_all_sources(FetchConfig())

        assert run_log.status == RunStatus.FAILED
        assert run_log.id is None
        assert run_log.total_sources_attempted == 0
        assert "database is locked" in run_log.orchestration_errors[0]
        mock_process.assert_not_called()

    @patch("aggregator.orchestrator.record_source_run")
    @patch("aggregator.orchestrator.process_source")
    def test_bookkeeping_failure_does_not_stop_loop(self, mock_process, mock_record, temp_db):
        first, second = add_sources("Alpha", "Beta")
        mock_process.side_effect = [summary_for(first, added=1), summary_for(second, added=2)]
        mock_record.side_effect = [OperationalError("UPDATE", {}, Exception("disk full")), None]

        run_log = run_all_sources(FetchConfig())

        assert mock_process.call_count == 2
        assert run_log.total_sources_attempted == 2
        assert run_log.total_new_articles_added_across_all_sources == 3
        assert len(run_log.orchestration_errors) == 1
        assert "Alpha" in run_log.orchestration_errors[0]
        assert run_log.status == RunStatus.COMPLETED_WITH_ERRORS

    @patch("aggregator.orchestrator.update_run_log")
    @patch("aggregator.orchestrator.process_source")
    def test_final_log_failure_forces_failed(self, mock_process, mock_update, temp_db):
        from aggregator.database import get_run_log

        (only,) = add_sources("Alpha")
        mock_process.return_value = summary_for(only, added=4)
        mock_update.side_effect = LogPersistenceError("disk full")

        run_log = run_all_sources(FetchConfig())

        assert run_log.status == RunStatus.FAILED
        assert run_log.total_new_articles_added_across_all_sources == 4
        assert run_log.total_sources_successfully_processed == 1
        assert len(run_log.source_summaries) == 1
        assert get_run_log(run_log.id).status == RunStatus.IN_PROGRESS

    @patch("aggregator.orchestrator.process_source")
    def test_loop_exception_fails_run(self, mock_process, temp_db):
        from aggregator.database import get_run_log

        add_sources("Alpha", "Beta")
        mock_process.side_effect = RuntimeError("unexpected")

        run_log = run_all_sources(FetchConfig())

        assert run_log.status == RunStatus.FAILED
        assert any("unexpected" in e for e in run_log.orchestration_errors)
        stored = get_run_log(run_log.id)
        assert stored.status == RunStatus.FAILED
        assert stored.end_time is not None

    @patch("aggregator.persister.insert_article")
    @patch("aggregator.processor.fetch_source_content")
    def test_item_failures_do_not_stop_other_sources(self, mock_fetch, mock_insert, temp_db):
        add_sources("Alpha", "Beta")
        mock_fetch.return_value = (
            '<?xml version="1.0" encoding="UTF-8"?><rss version="2.0"><channel>'
            "<title>Feed</title><item><title>One</title>"
            "<link>https://example.com/one</link></item></channel></rss>"
        )
        mock_insert.side_effect = TypeError("unexpected value")

        run_log = run_all_sources(FetchConfig())

        assert run_log.status != RunStatus.FAILED
        assert run_log.total_sources_attempted == 2
        assert [s.source_name for s in run_log.source_summaries] == ["Alpha", "Beta"]
        assert all(s.status == SummaryStatus.PARTIAL_SUCCESS for s in run_log.source_summaries)

    @patch("aggregator.orchestrator.process_source")
    def test_source_bookkeeping_written(self, mock_process, temp_db):
        from aggregator.database import get_source

        good, broken, partial = add_sources("Good", "Broken", "Partial")
        mock_process.side_effect = [
            summary_for(good, added=1),
            summary_for(broken, fetch_error="timed out"),
            summary_for(partial, errors=[ItemError(message="Item missing link.")]),
        ]

        run_all_sources(FetchConfig())

        assert get_source(good.id).last_status == "success"
        assert get_source(good.id).last_error is None
        assert get_source(good.id).last_fetched_at is not None
        assert get_source(broken.id).last_status == "failed"
        assert get_source(broken.id).last_error == "timed out"
        assert get_source(partial.id).last_status == "partial_success"
        assert get_source(partial.id).last_error == "1 item-level error(s)"


class TestRunSingleSource:
    """Tests for run_single_source."""

    @patch("aggregator.orchestrator.process_source")
    def test_runs_one_source(self, mock_process, temp_db):
        from aggregator.database import get_run_log

        first, second = add_sources("Alpha", "Beta")
        mock_process.return_value = summary_for(second, added=2)

        result = run_single_source(second.id, FetchConfig())

        assert result.source_id == second.id
        assert result.summary.new_items_added == 2
        assert result.run_status == RunStatus.COMPLETED
        assert result.duration_ms >= 0
        assert mock_process.call_args.args[0].name == "Beta"
        stored = get_run_log(result.log_id)
        assert stored.total_sources_attempted == 1

    def test_unknown_source(self, temp_db):
        with pytest.raises(SourceNotFoundError):
            run_single_source(999, FetchConfig())

    def test_disabled_source(self, temp_db):
        (disabled,) = add_sources("Disabled", enabled=False)
        with pytest.raises(SourceDisabledError):
            run_single_source(disabled.id, FetchConfig())

    @patch("aggregator.orchestrator.create_run_log")
    @patch("aggregator.orchestrator.process_source")
    def test_run_start_failure(self, mock_process, mock_create, temp_db):
        (only,) = add_sources("Alpha")
        mock_create.side_effect = LogPersistenceError("database is locked")

        result = run_single_source(only.id, FetchConfig())

        assert result.log_id is None
        assert result.run_status == RunStatus.FAILED
        assert result.summary.status == SummaryStatus.FAILED
        mock_process.assert_not_called()


class TestSourceLastError:
    """Tests for source_last_error."""

    def test_prefers_fetch_error(self):
        source = Source(name="A", url="https://a.example", type=SourceType.RSS)
        summary = summary_for(source, fetch_error="boom", errors=[ItemError(message="x")])
        assert source_last_error(summary) == "boom"

    def test_clean_run(self):
        source = Source(name="A", url="https://a.example", type=SourceType.RSS)
        assert source_last_error(summary_for(source)) is None
