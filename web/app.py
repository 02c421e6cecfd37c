"""
Flask REST API for the news aggregator.

All responses use the envelope {"success": bool, "data": ..., "message": str};
error responses carry "error" instead of "data".
"""

from typing import Optional

from flask import Flask, current_app, jsonify, request

from aggregator.categorizer import categorize_pending_articles
from aggregator.config import FetchConfig
from aggregator.constants import DEFAULT_CATEGORIZATION_LIMIT
from aggregator.database import (
    clear_source_error,
    create_source,
    delete_article,
    delete_source,
    get_article_by_id,
    get_article_source_names,
    get_run_log,
    get_source,
    init_db,
    list_articles,
    list_run_logs,
    list_sources,
    set_article_hidden,
    set_sources_enabled,
    update_source,
)
from aggregator.errors import PersistenceConflict, SourceDisabledError, SourceNotFoundError
from aggregator.models import RunStatus, SourceType
from aggregator.orchestrator import run_all_sources, run_single_source
from aggregator.validation import validate_source
from util.logging_util import setup_logger
from web.serializers import (
    ARTICLE_SORT_FIELDS,
    SOURCE_SORT_FIELDS,
    ValidationError,
    article_to_json,
    pagination_meta,
    parse_bool_param,
    parse_date_param,
    parse_pagination,
    parse_sort,
    run_log_to_json,
    single_source_result_to_json,
    source_changes_from_json,
    source_from_json,
    source_to_json,
    validation_to_json,
)

logger = setup_logger(__name__)

FETCH_CONFIG_KEY = "FETCH_CONFIG"


def ok(data=None, message: str = "", status: int = 200, **extra):
    body = {"success": True, "data": data, "message": message}
    body.update(extra)
    return jsonify(body), status


def fail(error: str, status: int, **extra):
    body = {"success": False, "error": error, "message": error}
    body.update(extra)
    return jsonify(body), status


def _fetch_config() -> FetchConfig:
    return current_app.config[FETCH_CONFIG_KEY]


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError("Request body must be JSON")
    return data


def register_error_handlers(app: Flask):
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        return fail(str(e), 400)

    @app.errorhandler(SourceNotFoundError)
    def handle_source_not_found(e):
        return fail(str(e), 404)

    @app.errorhandler(SourceDisabledError)
    def handle_source_disabled(e):
        return fail(str(e), 409)

    @app.errorhandler(PersistenceConflict)
    def handle_conflict(e):
        return fail(str(e), 409)

    @app.errorhandler(404)
    def handle_not_found(e):
        return fail("Not found", 404)

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return fail("Method not allowed", 405)


def register_fetch_routes(app: Flask):
    @app.post("/api/fetch-runs")
    def trigger_fetch_run():
        run_log = run_all_sources(_fetch_config())
        if run_log.id is None:
            return fail(
                "Fetch run could not be started",
                500,
                data=run_log_to_json(run_log, include_summaries=False),
            )
        return ok(
            run_log_to_json(run_log, include_summaries=False),
            f"Fetch run finished with status {run_log.status.value}",
        )

    @app.post("/api/sources/<int:source_id>/fetch")
    def trigger_source_fetch(source_id: int):
        result = run_single_source(source_id, _fetch_config())
        if result.log_id is None:
            return fail(
                "Fetch run could not be started",
                500,
                data=single_source_result_to_json(result),
            )
        return ok(single_source_result_to_json(result), result.summary.message)

    @app.get("/api/logs")
    def get_logs():
        page, limit = parse_pagination(request.args)
        status = request.args.get("status")
        if status:
            try:
                status = RunStatus(status)
            except ValueError as e:
                raise ValidationError(f"Invalid status: {status!r}") from e
        else:
            status = None
        started_after = parse_date_param(request.args.get("startDate"), "startDate")
        started_before = parse_date_param(request.args.get("endDate"), "endDate", end_of_day=True)

        logs, total = list_run_logs(
            status=status,
            started_after=started_after,
            started_before=started_before,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return ok(
            [run_log_to_json(log, include_summaries=False) for log in logs],
            pagination=pagination_meta(page, limit, total),
        )

    @app.get("/api/logs/<int:log_id>")
    def get_log(log_id: int):
        run_log = get_run_log(log_id)
        if run_log is None:
            return fail(f"Fetch run log {log_id} not found", 404)
        return ok(run_log_to_json(run_log))


def register_source_routes(app: Flask):
    @app.get("/api/sources")
    def get_sources():
        page, limit = parse_pagination(request.args)
        sort_by, descending = parse_sort(request.args, SOURCE_SORT_FIELDS, "createdAt")
        source_type = request.args.get("type")
        if source_type:
            try:
                source_type = SourceType(source_type)
            except ValueError as e:
                raise ValidationError("type must be 'rss' or 'html'") from e
        else:
            source_type = None
        is_enabled = parse_bool_param(request.args.get("isEnabled"), "isEnabled")

        sources, total = list_sources(
            source_type=source_type,
            is_enabled=is_enabled,
            sort_by=sort_by,
            descending=descending,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return ok(
            [source_to_json(s) for s in sources],
            pagination=pagination_meta(page, limit, total),
        )

    @app.post("/api/sources")
    def post_source():
        source = create_source(source_from_json(_json_body()))
        logger.info(f"Created source {source.id} '{source.name}'")
        return ok(source_to_json(source), "Source created", status=201)

    @app.post("/api/sources/batch")
    def batch_update_sources():
        data = _json_body()
        operation = data.get("operation") if isinstance(data, dict) else None
        if operation not in ("enable", "disable"):
            raise ValidationError("operation must be 'enable' or 'disable'")
        source_ids = data.get("sourceIds")
        if (
            not isinstance(source_ids, list)
            or not source_ids
            or not all(isinstance(i, int) and not isinstance(i, bool) for i in source_ids)
        ):
            raise ValidationError("sourceIds must be a non-empty list of integers")

        updated = set_sources_enabled(source_ids, operation == "enable")
        return ok({"updatedCount": updated}, f"{updated} source(s) {operation}d")

    @app.get("/api/sources/<int:source_id>")
    def get_one_source(source_id: int):
        source = get_source(source_id)
        if source is None:
            raise SourceNotFoundError(f"Source {source_id} not found")
        return ok(source_to_json(source))

    @app.patch("/api/sources/<int:source_id>")
    def patch_source(source_id: int):
        source = update_source(source_id, **source_changes_from_json(_json_body()))
        if source is None:
            raise SourceNotFoundError(f"Source {source_id} not found")
        return ok(source_to_json(source), "Source updated")

    @app.delete("/api/sources/<int:source_id>")
    def remove_source(source_id: int):
        if not delete_source(source_id):
            raise SourceNotFoundError(f"Source {source_id} not found")
        return ok(None, "Source deleted")

    @app.post("/api/sources/<int:source_id>/clear-error")
    def clear_error(source_id: int):
        source = clear_source_error(source_id)
        if source is None:
            raise SourceNotFoundError(f"Source {source_id} not found")
        return ok(source_to_json(source), "Source error cleared")

    @app.route("/api/sources/<int:source_id>/validate", methods=["GET", "POST"])
    def validate(source_id: int):
        source = get_source(source_id)
        if source is None:
            raise SourceNotFoundError(f"Source {source_id} not found")
        result = validate_source(source, _fetch_config())
        return ok(validation_to_json(result), "Source validation completed")


def register_article_routes(app: Flask):
    @app.get("/api/articles")
    def get_articles():
        page, limit = parse_pagination(request.args)
        sort_by, descending = parse_sort(request.args, ARTICLE_SORT_FIELDS, "publishedDate")
        source_name = request.args.get("source") or None
        published_after = parse_date_param(request.args.get("startDate"), "startDate")
        published_before = parse_date_param(request.args.get("endDate"), "endDate", end_of_day=True)
        include_hidden = parse_bool_param(request.args.get("includeHidden"), "includeHidden") or False

        articles, total = list_articles(
            source_name=source_name,
            published_after=published_after,
            published_before=published_before,
            include_hidden=include_hidden,
            sort_by=sort_by,
            descending=descending,
            limit=limit,
            offset=(page - 1) * limit,
        )
        return ok(
            [article_to_json(a) for a in articles],
            pagination=pagination_meta(page, limit, total),
            filters={
                "source": source_name,
                "startDate": request.args.get("startDate"),
                "endDate": request.args.get("endDate"),
                "includeHidden": include_hidden,
            },
        )

    @app.get("/api/articles/sources")
    def get_article_sources():
        return ok(get_article_source_names())

    @app.get("/api/articles/<int:article_id>")
    def get_article(article_id: int):
        article = get_article_by_id(article_id)
        if article is None:
            return fail(f"Article {article_id} not found", 404)
        return ok(article_to_json(article))

    @app.patch("/api/articles/<int:article_id>")
    def patch_article(article_id: int):
        data = _json_body()
        if not isinstance(data, dict) or set(data) != {"isHidden"}:
            raise ValidationError("Only isHidden can be updated")
        if not isinstance(data["isHidden"], bool):
            raise ValidationError("isHidden must be a boolean")

        article = set_article_hidden(article_id, data["isHidden"])
        if article is None:
            return fail(f"Article {article_id} not found", 404)
        return ok(article_to_json(article), "Article updated")

    @app.delete("/api/articles/<int:article_id>")
    def remove_article(article_id: int):
        if not delete_article(article_id):
            return fail(f"Article {article_id} not found", 404)
        return ok(None, "Article deleted")

    @app.post("/api/categorization-runs")
    def trigger_categorization():
        data = request.get_json(silent=True) or {}
        limit = data.get("limit", DEFAULT_CATEGORIZATION_LIMIT) if isinstance(data, dict) else None
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError("limit must be a positive integer")

        result = categorize_pending_articles(limit)
        return ok(
            {
                "articlesProcessed": result.articles_processed,
                "articlesCompleted": result.articles_completed,
                "articlesFailed": result.articles_failed,
            },
            f"Categorized {result.articles_completed} of {result.articles_processed} articles",
        )


def create_app(config: Optional[FetchConfig] = None) -> Flask:
    """
    Build the Flask app.

    Args:
        config: Fetch configuration shared by every run. Read from the
            environment when not given.
    """
    app = Flask(__name__)
    app.config[FETCH_CONFIG_KEY] = config or FetchConfig.from_env()
    init_db()

    register_error_handlers(app)
    register_fetch_routes(app)
    register_source_routes(app)
    register_article_routes(app)
    return app
