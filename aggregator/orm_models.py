"""
SQLAlchemy ORM models for the news aggregator.

These models are internal to the database layer. The public interface
uses the dataclass models from models.py.
"""

import json
from typing import List, Optional

from sqlalchemy import Boolean, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from aggregator.models import (
    Article,
    ArticleCategorization,
    CategorizationStatus,
    FetchRunLog,
    ItemError,
    ProcessingSummary,
    RunStatus,
    ScrapingConfig,
    Source,
    SourceType,
    SummaryStatus,
)


class JSONEncodedList(TypeDecorator):
    """Represents a list as a JSON-encoded string."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Optional[List], dialect) -> Optional[str]:
        if value is None or value == []:
            return None
        return json.dumps(value)

    def process_result_value(self, value: Optional[str], dialect) -> List:
        if value is None:
            return []
        return json.loads(value)


class JSONEncodedDict(TypeDecorator):
    """Represents a dict as a JSON-encoded string."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Optional[dict], dialect) -> Optional[str]:
        if not value:
            return None
        return json.dumps(value)

    def process_result_value(self, value: Optional[str], dialect) -> dict:
        if value is None:
            return {}
        return json.loads(value)


class Base(DeclarativeBase):
    pass


class ArticleORM(Base):
    """SQLAlchemy model for articles table."""

    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    # NULLs never collide in a unique index, which gives sparse uniqueness
    guid: Mapped[Optional[str]] = mapped_column(Text, nullable=True, unique=True)
    source_name: Mapped[str] = mapped_column(Text, nullable=False)
    published_date: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description_snippet: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    categories: Mapped[List[str]] = mapped_column(JSONEncodedList, nullable=True)
    fetched_at: Mapped[int] = mapped_column(Integer, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_starred: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_hidden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_articles_source_name", "source_name"),
        Index("idx_articles_published_date", "published_date"),
        Index("idx_articles_is_hidden", "is_hidden"),
    )


class ArticleCategorizationORM(Base):
    """SQLAlchemy model for article_categorizations table."""

    __tablename__ = "article_categorizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    article_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    news_category: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tech_category: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rationale: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    categorized_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class SourceORM(Base):
    """SQLAlchemy model for sources table."""

    __tablename__ = "sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    type: Mapped[str] = mapped_column(String(8), nullable=False)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    scraping_config: Mapped[dict] = mapped_column(JSONEncodedDict, nullable=True)
    last_fetched_at: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_fetch_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (Index("idx_sources_is_enabled", "is_enabled"),)


class FetchRunLogORM(Base):
    """SQLAlchemy model for fetch_run_logs table."""

    __tablename__ = "fetch_run_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    start_time: Mapped[int] = mapped_column(Integer, nullable=False)
    end_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    total_sources_attempted: Mapped[int] = mapped_column(Integer, default=0)
    total_sources_successfully_processed: Mapped[int] = mapped_column(Integer, default=0)
    total_sources_failed_with_error: Mapped[int] = mapped_column(Integer, default=0)
    total_new_articles_added_across_all_sources: Mapped[int] = mapped_column(Integer, default=0)
    orchestration_errors: Mapped[List[str]] = mapped_column(JSONEncodedList, nullable=True)
    source_summaries: Mapped[List[dict]] = mapped_column(JSONEncodedList, nullable=True)

    __table_args__ = (
        Index("idx_fetch_run_logs_start_time", "start_time"),
        Index("idx_fetch_run_logs_status", "status"),
    )


# Conversion functions between ORM models and dataclasses


def scraping_config_to_dict(config: Optional[ScrapingConfig]) -> dict:
    if config is None:
        return {}
    return {key: value for key, value in vars(config).items() if value is not None}


def scraping_config_from_dict(data: Optional[dict]) -> Optional[ScrapingConfig]:
    if not data:
        return None
    known = set(vars(ScrapingConfig()))
    return ScrapingConfig(**{key: value for key, value in data.items() if key in known})


def summary_to_dict(summary: ProcessingSummary) -> dict:
    """Convert a ProcessingSummary to the dict embedded in a run log row."""
    result = {
        "source_url": summary.source_url,
        "source_name": summary.source_name,
        "type": summary.type.value,
        "status": summary.status.value,
        "message": summary.message,
        "items_found": summary.items_found,
        "items_considered": summary.items_considered,
        "items_processed": summary.items_processed,
        "new_items_added": summary.new_items_added,
        "items_skipped": summary.items_skipped,
        "errors": [
            {"message": e.message, "item_title": e.item_title, "item_link": e.item_link}
            for e in summary.errors
        ],
    }
    if summary.fetch_error is not None:
        result["fetch_error"] = summary.fetch_error
    return result


def summary_from_dict(data: dict) -> ProcessingSummary:
    return ProcessingSummary(
        source_url=data["source_url"],
        source_name=data["source_name"],
        type=SourceType(data["type"]),
        status=SummaryStatus(data["status"]),
        message=data.get("message", ""),
        items_found=data.get("items_found", 0),
        items_considered=data.get("items_considered", 0),
        items_processed=data.get("items_processed", 0),
        new_items_added=data.get("new_items_added", 0),
        items_skipped=data.get("items_skipped", 0),
        errors=[
            ItemError(
                message=e["message"],
                item_title=e.get("item_title"),
                item_link=e.get("item_link"),
            )
            for e in data.get("errors", [])
        ],
        fetch_error=data.get("fetch_error"),
    )


def categorization_orm_to_dataclass(orm: ArticleCategorizationORM) -> ArticleCategorization:
    return ArticleCategorization(
        id=orm.id,
        article_id=orm.article_id,
        status=CategorizationStatus(orm.status),
        news_category=orm.news_category,
        tech_category=orm.tech_category,
        rationale=orm.rationale,
        categorized_at=orm.categorized_at,
    )


def article_orm_to_dataclass(
    orm: ArticleORM, categorization: Optional[ArticleCategorizationORM] = None
) -> Article:
    """Convert an ArticleORM instance to an Article dataclass."""
    return Article(
        id=orm.id,
        title=orm.title,
        link=orm.link,
        guid=orm.guid,
        source_name=orm.source_name,
        published_date=orm.published_date,
        description_snippet=orm.description_snippet,
        categories=orm.categories or [],
        fetched_at=orm.fetched_at,
        is_read=orm.is_read,
        is_starred=orm.is_starred,
        is_hidden=orm.is_hidden,
        categorization=(
            categorization_orm_to_dataclass(categorization) if categorization is not None else None
        ),
    )


def article_dataclass_to_orm(article: Article, fetched_at: int) -> ArticleORM:
    """Convert an Article dataclass to an ArticleORM instance."""
    return ArticleORM(
        title=article.title,
        link=article.link,
        guid=article.guid or None,
        source_name=article.source_name,
        published_date=article.published_date,
        description_snippet=article.description_snippet,
        categories=article.categories if article.categories else None,
        fetched_at=fetched_at,
        is_read=article.is_read,
        is_starred=article.is_starred,
        is_hidden=article.is_hidden,
    )


def source_orm_to_dataclass(orm: SourceORM) -> Source:
    """Convert a SourceORM instance to a Source dataclass."""
    return Source(
        id=orm.id,
        name=orm.name,
        url=orm.url,
        type=SourceType(orm.type),
        is_enabled=orm.is_enabled,
        scraping_config=scraping_config_from_dict(orm.scraping_config),
        last_fetched_at=orm.last_fetched_at,
        last_status=orm.last_status,
        last_fetch_message=orm.last_fetch_message,
        last_error=orm.last_error,
        created_at=orm.created_at,
        updated_at=orm.updated_at,
    )


def source_dataclass_to_orm(source: Source, now: int) -> SourceORM:
    """Convert a Source dataclass to a SourceORM instance."""
    return SourceORM(
        name=source.name,
        url=source.url,
        type=source.type.value,
        is_enabled=source.is_enabled,
        scraping_config=scraping_config_to_dict(source.scraping_config) or None,
        created_at=now,
        updated_at=now,
    )


def run_log_orm_to_dataclass(orm: FetchRunLogORM) -> FetchRunLog:
    """Convert a FetchRunLogORM instance to a FetchRunLog dataclass."""
    return FetchRunLog(
        id=orm.id,
        start_time=orm.start_time,
        end_time=orm.end_time,
        status=RunStatus(orm.status),
        total_sources_attempted=orm.total_sources_attempted or 0,
        total_sources_successfully_processed=orm.total_sources_successfully_processed or 0,
        total_sources_failed_with_error=orm.total_sources_failed_with_error or 0,
        total_new_articles_added_across_all_sources=orm.total_new_articles_added_across_all_sources or 0,
        orchestration_errors=orm.orchestration_errors or [],
        source_summaries=[summary_from_dict(s) for s in orm.source_summaries or []],
    )


def apply_run_log_to_orm(run_log: FetchRunLog, orm: FetchRunLogORM) -> None:
    """Copy the mutable fields of a run log onto its row."""
    orm.start_time = run_log.start_time
    orm.end_time = run_log.end_time
    orm.status = run_log.status.value
    orm.total_sources_attempted = run_log.total_sources_attempted
    orm.total_sources_successfully_processed = run_log.total_sources_successfully_processed
    orm.total_sources_failed_with_error = run_log.total_sources_failed_with_error
    orm.total_new_articles_added_across_all_sources = run_log.total_new_articles_added_across_all_sources
    orm.orchestration_errors = list(run_log.orchestration_errors)
    orm.source_summaries = [summary_to_dict(s) for s in run_log.source_summaries]
