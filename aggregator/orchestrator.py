"""
Run orchestration: process sources in order and keep the audit trail.

Every run is recorded in a FetchRunLog, created before any source is touched
and rewritten with the final counts and summaries at the end. Sources are
processed one at a time; a failure in one source never stops the others.
"""

import time
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from aggregator.config import FetchConfig
from aggregator.database import (
    create_run_log,
    get_enabled_sources,
    get_source,
    record_source_run,
    update_run_log,
)
from aggregator.errors import LogPersistenceError, SourceDisabledError, SourceNotFoundError
from aggregator.models import (
    FetchRunLog,
    ProcessingSummary,
    RunStatus,
    SingleSourceResult,
    Source,
)
from aggregator.processor import process_source
from util.logging_util import setup_logger

logger = setup_logger(__name__)

NO_ENABLED_SOURCES = "No enabled sources found to process."


def source_last_error(summary: ProcessingSummary) -> Optional[str]:
    """The ``lastError`` written back onto a source after a run."""
    if summary.fetch_error:
        return summary.fetch_error
    if summary.errors:
        return f"{len(summary.errors)} item-level error(s)"
    return None


def add_summary_to_totals(run_log: FetchRunLog, summary: ProcessingSummary):
    run_log.source_summaries.append(summary)
    if summary.fetch_error:
        run_log.total_sources_failed_with_error += 1
    else:
        run_log.total_sources_successfully_processed += 1
    run_log.total_new_articles_added_across_all_sources += summary.new_items_added


def _record_bookkeeping(run_log: FetchRunLog, source: Source, summary: ProcessingSummary):
    """Write the source's last-run fields. Failures are noted on the run, not raised."""
    try:
        record_source_run(
            source.id,
            status=summary.status.value,
            message=summary.message,
            error=source_last_error(summary),
        )
    except (SQLAlchemyError, SourceNotFoundError) as e:
        message = f"Failed to update status for source {source.name} ({source.id}): {e}"
        logger.error(message)
        run_log.orchestration_errors.append(message)


def _failed_start(start_time: int, error: Exception) -> FetchRunLog:
    logger.error(f"Could not create fetch run log, aborting run: {error}")
    return FetchRunLog(
        start_time=start_time,
        end_time=int(time.time()),
        status=RunStatus.FAILED,
        orchestration_errors=[f"Failed to create fetch run log: {error}"],
    )


def _execute_run(
    config: FetchConfig,
    load_sources: Callable[[], List[Source]],
) -> FetchRunLog:
    start_time = int(time.time())
    run_log = FetchRunLog(start_time=start_time)
    try:
        run_log.id = create_run_log(run_log)
    except LogPersistenceError as e:
        return _failed_start(start_time, e)

    loop_failed = False
    no_sources = False
    try:
        sources = load_sources()
        if not sources:
            logger.info(NO_ENABLED_SOURCES)
            run_log.orchestration_errors.append(NO_ENABLED_SOURCES)
            no_sources = True

        for source in sources:
            run_log.total_sources_attempted += 1
            summary = process_source(source, config)
            add_summary_to_totals(run_log, summary)
            _record_bookkeeping(run_log, source, summary)
    except Exception as e:
        logger.exception("Fetch run aborted by an unexpected error")
        run_log.orchestration_errors.append(f"Critical error during fetch run: {e}")
        loop_failed = True
    finally:
        run_log.end_time = int(time.time())
        if loop_failed:
            run_log.status = RunStatus.FAILED
        elif no_sources:
            run_log.status = RunStatus.COMPLETED
        elif run_log.orchestration_errors or run_log.total_sources_failed_with_error:
            run_log.status = RunStatus.COMPLETED_WITH_ERRORS
        else:
            run_log.status = RunStatus.COMPLETED

        try:
            update_run_log(run_log)
        except LogPersistenceError as e:
            # Articles already stored stay stored; only the reported status changes.
            logger.error(f"Failed to save final state of fetch run {run_log.id}: {e}")
            run_log.orchestration_errors.append(f"Failed to save final run log: {e}")
            run_log.status = RunStatus.FAILED

    logger.info(
        f"Fetch run {run_log.id} finished with status {run_log.status.value}: "
        f"{run_log.total_sources_attempted} sources attempted, "
        f"{run_log.total_new_articles_added_across_all_sources} new articles"
    )
    return run_log


def run_all_sources(config: FetchConfig) -> FetchRunLog:
    """
    Fetch every enabled source and record the run.

    Returns:
        The final FetchRunLog. A run whose initial log could not be written
        comes back with status FAILED and no id; no source is attempted.
    """
    return _execute_run(config, get_enabled_sources)


def run_single_source(source_id: int, config: FetchConfig) -> SingleSourceResult:
    """
    Fetch one source on demand, recorded as its own run.

    Raises:
        SourceNotFoundError: If no source has this id.
        SourceDisabledError: If the source is disabled.
    """
    source = get_source(source_id)
    if source is None:
        raise SourceNotFoundError(f"Source {source_id} not found")
    if not source.is_enabled:
        raise SourceDisabledError(f"Source {source_id} ({source.name}) is disabled")

    started = time.monotonic()
    run_log = _execute_run(config, lambda: [source])
    duration_ms = int((time.monotonic() - started) * 1000)

    if run_log.source_summaries:
        summary = run_log.source_summaries[0]
    else:
        summary = ProcessingSummary(
            source_url=source.url,
            source_name=source.name,
            type=source.type,
            message="; ".join(run_log.orchestration_errors) or "Source was not processed.",
            fetch_error="Source was not processed.",
        )

    return SingleSourceResult(
        source_id=source_id,
        summary=summary,
        run_status=run_log.status,
        log_id=run_log.id,
        duration_ms=duration_ms,
    )
