"""
JSON conversion for the REST API.

Stored models use snake_case and epoch seconds; the wire format uses camelCase
keys and ISO 8601 UTC timestamps.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

from dateutil import parser as date_parser

from aggregator.models import (
    Article,
    FetchRunLog,
    ProcessingSummary,
    ScrapingConfig,
    SingleSourceResult,
    Source,
    SourceType,
    SourceValidation,
)

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 100

DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")

SCRAPING_CONFIG_FIELDS = {
    "websiteId": "website_id",
    "maxArticles": "max_articles",
    "articleSelector": "article_selector",
    "titleSelector": "title_selector",
    "linkSelector": "link_selector",
    "descriptionSelector": "description_selector",
    "dateSelector": "date_selector",
}

ARTICLE_SORT_FIELDS = {
    "publishedDate": "published_date",
    "title": "title",
    "sourceName": "source_name",
    "fetchedAt": "fetched_at",
}

SOURCE_SORT_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "name": "name",
    "type": "type",
}


class ValidationError(ValueError):
    """A request parameter or body failed validation."""


def to_iso(epoch: Optional[int]) -> Optional[str]:
    if epoch is None:
        return None
    return datetime.fromtimestamp(epoch, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def parse_date_param(value: Optional[str], name: str, end_of_day: bool = False) -> Optional[int]:
    """Parse an ISO date or datetime query parameter to epoch seconds.

    With ``end_of_day``, a bare date (2024-01-31) means its last second, so an
    inclusive upper bound covers the whole day.
    """
    if not value:
        return None
    try:
        parsed = date_parser.isoparse(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {name}: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    if end_of_day and DATE_ONLY.match(value):
        parsed += timedelta(days=1, seconds=-1)
    return int(parsed.timestamp())


def parse_bool_param(value: Optional[str], name: str) -> Optional[bool]:
    if value is None or value == "":
        return None
    lowered = value.lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ValidationError(f"Invalid {name}: {value!r}")


def parse_pagination(args) -> Tuple[int, int]:
    """Read ``page`` (1-based) and ``limit`` from query args."""
    try:
        page = int(args.get("page", 1))
        limit = int(args.get("limit", DEFAULT_PAGE_LIMIT))
    except (TypeError, ValueError) as e:
        raise ValidationError("page and limit must be integers") from e
    if page < 1:
        raise ValidationError("page must be at least 1")
    if limit < 1 or limit > MAX_PAGE_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_LIMIT}")
    return page, limit


def parse_sort(args, allowed: Dict[str, str], default: str) -> Tuple[str, bool]:
    """Read ``sortBy``/``sortOrder``. Returns the stored column name and descending flag."""
    sort_by = args.get("sortBy", default)
    if sort_by not in allowed:
        raise ValidationError(f"sortBy must be one of: {', '.join(allowed)}")
    sort_order = args.get("sortOrder", "desc").lower()
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sortOrder must be asc or desc")
    return allowed[sort_by], sort_order == "desc"


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, Any]:
    total_pages = (total + limit - 1) // limit
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }


def scraping_config_to_json(config: Optional[ScrapingConfig]) -> Optional[Dict[str, Any]]:
    if config is None:
        return None
    return {
        wire: getattr(config, attr)
        for wire, attr in SCRAPING_CONFIG_FIELDS.items()
        if getattr(config, attr) is not None
    }


def scraping_config_from_json(data) -> Optional[ScrapingConfig]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValidationError("scrapingConfig must be an object")
    unknown = set(data) - set(SCRAPING_CONFIG_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown scrapingConfig fields: {', '.join(sorted(unknown))}")
    max_articles = data.get("maxArticles")
    if max_articles is not None and (
        isinstance(max_articles, bool) or not isinstance(max_articles, int) or max_articles < 1
    ):
        raise ValidationError("scrapingConfig.maxArticles must be a positive integer")
    return ScrapingConfig(**{SCRAPING_CONFIG_FIELDS[key]: value for key, value in data.items()})


def source_to_json(source: Source) -> Dict[str, Any]:
    return {
        "id": source.id,
        "name": source.name,
        "url": source.url,
        "type": source.type.value,
        "isEnabled": source.is_enabled,
        "scrapingConfig": scraping_config_to_json(source.scraping_config),
        "lastFetchedAt": to_iso(source.last_fetched_at),
        "lastStatus": source.last_status,
        "lastFetchMessage": source.last_fetch_message,
        "lastError": source.last_error,
        "createdAt": to_iso(source.created_at),
        "updatedAt": to_iso(source.updated_at),
    }


def _require_text(data: dict, key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} is required")
    return value.strip()


def _validate_url(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"url must be an http or https URL: {url!r}")
    return url


def _validate_type(value) -> SourceType:
    try:
        return SourceType(value)
    except ValueError as e:
        raise ValidationError("type must be 'rss' or 'html'") from e


def source_from_json(data) -> Source:
    """Build a new Source from a create request body."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    is_enabled = data.get("isEnabled", True)
    if not isinstance(is_enabled, bool):
        raise ValidationError("isEnabled must be a boolean")
    return Source(
        name=_require_text(data, "name"),
        url=_validate_url(_require_text(data, "url")),
        type=_validate_type(data.get("type")),
        is_enabled=is_enabled,
        scraping_config=scraping_config_from_json(data.get("scrapingConfig")),
    )


def source_changes_from_json(data) -> Dict[str, Any]:
    """Turn a partial update body into keyword changes for update_source."""
    if not isinstance(data, dict) or not data:
        raise ValidationError("Request body must be a non-empty JSON object")
    allowed = {"name", "url", "type", "isEnabled", "scrapingConfig"}
    unknown = set(data) - allowed
    if unknown:
        raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    changes: Dict[str, Any] = {}
    if "name" in data:
        changes["name"] = _require_text(data, "name")
    if "url" in data:
        changes["url"] = _validate_url(_require_text(data, "url"))
    if "type" in data:
        changes["type"] = _validate_type(data["type"])
    if "isEnabled" in data:
        if not isinstance(data["isEnabled"], bool):
            raise ValidationError("isEnabled must be a boolean")
        changes["is_enabled"] = data["isEnabled"]
    if "scrapingConfig" in data:
        changes["scraping_config"] = scraping_config_from_json(data["scrapingConfig"])
    return changes


def article_to_json(article: Article) -> Dict[str, Any]:
    categorization = None
    if article.categorization is not None:
        c = article.categorization
        categorization = {
            "status": c.status.value,
            "newsCategory": c.news_category,
            "techCategory": c.tech_category,
            "rationale": c.rationale,
            "categorizedAt": to_iso(c.categorized_at),
        }
    return {
        "id": article.id,
        "title": article.title,
        "link": article.link,
        "guid": article.guid,
        "sourceName": article.source_name,
        "publishedDate": to_iso(article.published_date),
        "descriptionSnippet": article.description_snippet,
        "categories": list(article.categories),
        "fetchedAt": to_iso(article.fetched_at),
        "isRead": article.is_read,
        "isStarred": article.is_starred,
        "isHidden": article.is_hidden,
        "categorization": categorization,
    }


def summary_to_json(summary: ProcessingSummary) -> Dict[str, Any]:
    result = {
        "sourceUrl": summary.source_url,
        "sourceName": summary.source_name,
        "type": summary.type.value,
        "status": summary.status.value,
        "message": summary.message,
        "itemsFound": summary.items_found,
        "itemsConsidered": summary.items_considered,
        "itemsProcessed": summary.items_processed,
        "newItemsAdded": summary.new_items_added,
        "itemsSkipped": summary.items_skipped,
        "errors": [
            {"message": e.message, "itemTitle": e.item_title, "itemLink": e.item_link}
            for e in summary.errors
        ],
    }
    if summary.fetch_error is not None:
        result["fetchError"] = summary.fetch_error
    return result


def run_log_to_json(run_log: FetchRunLog, include_summaries: bool = True) -> Dict[str, Any]:
    result = {
        "id": run_log.id,
        "startTime": to_iso(run_log.start_time),
        "endTime": to_iso(run_log.end_time),
        "status": run_log.status.value,
        "totalSourcesAttempted": run_log.total_sources_attempted,
        "totalSourcesSuccessfullyProcessed": run_log.total_sources_successfully_processed,
        "totalSourcesFailedWithError": run_log.total_sources_failed_with_error,
        "totalNewArticlesAddedAcrossAllSources": run_log.total_new_articles_added_across_all_sources,
        "orchestrationErrors": list(run_log.orchestration_errors),
    }
    if include_summaries:
        result["sourceSummaries"] = [summary_to_json(s) for s in run_log.source_summaries]
    return result


def single_source_result_to_json(result: SingleSourceResult) -> Dict[str, Any]:
    return {
        "sourceId": result.source_id,
        "logId": result.log_id,
        "runStatus": result.run_status.value,
        "duration": result.duration_ms,
        "summary": summary_to_json(result.summary),
    }


def validation_to_json(validation: SourceValidation) -> Dict[str, Any]:
    return {
        "sourceId": validation.source_id,
        "sourceName": validation.source_name,
        "valid": validation.valid,
        "errors": validation.errors,
        "warnings": validation.warnings,
        "responseTime": validation.response_time_ms,
        "validationTime": validation.validation_time_ms,
    }
