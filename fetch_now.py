#!/usr/bin/env python3
"""
Entrypoint for triggering fetch runs from the command line (e.g. from cron).

Usage:
    # Fetch every enabled source
    python fetch_now.py

    # Fetch a single source by id
    python fetch_now.py --source 3

    # Categorize up to 50 uncategorized articles
    python fetch_now.py --categorize --limit 50
"""
import argparse
import sys

from aggregator.categorizer import categorize_pending_articles
from aggregator.config import FetchConfig
from aggregator.constants import DEFAULT_CATEGORIZATION_LIMIT
from aggregator.database import init_db
from aggregator.errors import SourceDisabledError, SourceNotFoundError
from aggregator.models import RunStatus
from aggregator.orchestrator import run_all_sources, run_single_source


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Fetch news sources and store new articles"
    )
    parser.add_argument(
        "--source",
        type=int,
        metavar="SOURCE_ID",
        help="Fetch only this source"
    )
    parser.add_argument(
        "--categorize",
        action="store_true",
        help="Categorize stored articles instead of fetching"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_CATEGORIZATION_LIMIT,
        help=f"Maximum articles to categorize (default: {DEFAULT_CATEGORIZATION_LIMIT})"
    )

    args = parser.parse_args(argv)
    init_db()

    if args.categorize:
        result = categorize_pending_articles(args.limit)
        print(f"Categorized {result.articles_completed} of {result.articles_processed} articles")
        return 0 if result.articles_failed == 0 else 1

    config = FetchConfig.from_env()

    if args.source is not None:
        try:
            result = run_single_source(args.source, config)
        except (SourceNotFoundError, SourceDisabledError) as e:
            print(str(e), file=sys.stderr)
            return 2
        print(f"[{result.summary.status.value}] {result.summary.source_name}: {result.summary.message}")
        return 0 if result.run_status == RunStatus.COMPLETED else 1

    run_log = run_all_sources(config)
    for summary in run_log.source_summaries:
        print(f"[{summary.status.value}] {summary.source_name}: {summary.message}")
    for error in run_log.orchestration_errors:
        print(f"  ! {error}", file=sys.stderr)
    print(
        f"Run {run_log.id} {run_log.status.value}: "
        f"{run_log.total_new_articles_added_across_all_sources} new articles from "
        f"{run_log.total_sources_attempted} sources"
    )
    return 0 if run_log.status == RunStatus.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main())
