"""
Database operations for the news aggregator.

Uses SQLAlchemy ORM for database access. The public API uses dataclass models
from models.py, with conversion to/from ORM models handled internally.
"""

import time
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from aggregator.db_engine import get_engine, get_session
from aggregator.errors import LogPersistenceError, PersistenceConflict, SourceNotFoundError
from aggregator.models import (
    Article,
    CategorizationStatus,
    FetchRunLog,
    RunStatus,
    Source,
    SourceType,
)
from aggregator.orm_models import (
    Base,
    ArticleCategorizationORM,
    ArticleORM,
    FetchRunLogORM,
    SourceORM,
    apply_run_log_to_orm,
    article_dataclass_to_orm,
    article_orm_to_dataclass,
    run_log_orm_to_dataclass,
    scraping_config_to_dict,
    source_dataclass_to_orm,
    source_orm_to_dataclass,
)

ARTICLE_SORT_COLUMNS = {
    "published_date": ArticleORM.published_date,
    "title": ArticleORM.title,
    "source_name": ArticleORM.source_name,
    "fetched_at": ArticleORM.fetched_at,
}

SOURCE_SORT_COLUMNS = {
    "created_at": SourceORM.created_at,
    "updated_at": SourceORM.updated_at,
    "name": SourceORM.name,
    "type": SourceORM.type,
}

SOURCE_UPDATABLE_FIELDS = ("name", "url", "type", "is_enabled", "scraping_config")


def init_db():
    """Initialize the database schema."""
    engine = get_engine()
    Base.metadata.create_all(engine)


# Articles


def insert_article(article: Article) -> int:
    """Insert a new article into the database.

    Returns the article id. Raises PersistenceConflict if the link or guid
    is already stored.
    """
    fetched_at = article.fetched_at or int(time.time())
    orm = article_dataclass_to_orm(article, fetched_at)

    try:
        with get_session() as session:
            session.add(orm)
            session.flush()
            return orm.id
    except IntegrityError as e:
        raise PersistenceConflict(f"Article already stored for link {article.link}: {e.orig}") from e


def _article_query():
    return select(ArticleORM, ArticleCategorizationORM).outerjoin(
        ArticleCategorizationORM, ArticleCategorizationORM.article_id == ArticleORM.id
    )


def _get_article_where(*criteria) -> Optional[Article]:
    with get_session() as session:
        row = session.execute(_article_query().where(*criteria).limit(1)).first()
        if row is None:
            return None
        return article_orm_to_dataclass(row[0], row[1])


def get_article_by_id(article_id: int) -> Optional[Article]:
    """Get an article by its database ID."""
    return _get_article_where(ArticleORM.id == article_id)


def get_article_by_guid(guid: str) -> Optional[Article]:
    return _get_article_where(ArticleORM.guid == guid)


def get_article_by_link(link: str) -> Optional[Article]:
    return _get_article_where(ArticleORM.link == link)


def list_articles(
    source_name: Optional[str] = None,
    published_after: Optional[int] = None,
    published_before: Optional[int] = None,
    include_hidden: bool = False,
    sort_by: str = "published_date",
    descending: bool = True,
    limit: int = 10,
    offset: int = 0,
) -> Tuple[List[Article], int]:
    """List articles matching the filters.

    Returns the requested page and the total number of matching articles.
    """
    criteria = []
    if source_name:
        criteria.append(ArticleORM.source_name == source_name)
    if published_after is not None:
        criteria.append(ArticleORM.published_date >= published_after)
    if published_before is not None:
        criteria.append(ArticleORM.published_date <= published_before)
    if not include_hidden:
        criteria.append(ArticleORM.is_hidden.is_(False))

    sort_column = ARTICLE_SORT_COLUMNS.get(sort_by, ArticleORM.published_date)
    order = [sort_column.desc() if descending else sort_column.asc()]
    if sort_column is not ArticleORM.fetched_at:
        order.append(ArticleORM.fetched_at.desc())
    order.append(ArticleORM.id.desc())

    with get_session() as session:
        total = session.execute(
            select(func.count()).select_from(ArticleORM).where(*criteria)
        ).scalar_one()
        rows = session.execute(
            _article_query().where(*criteria).order_by(*order).offset(offset).limit(limit)
        ).all()
        return [article_orm_to_dataclass(a, c) for a, c in rows], total


def get_article_source_names() -> List[str]:
    """Distinct source names that have at least one article, sorted."""
    with get_session() as session:
        stmt = select(ArticleORM.source_name).distinct().order_by(ArticleORM.source_name)
        return [name for name in session.execute(stmt).scalars().all() if name]


def set_article_hidden(article_id: int, is_hidden: bool) -> Optional[Article]:
    """Toggle an article's visibility. Returns None if the article does not exist."""
    with get_session() as session:
        orm = session.get(ArticleORM, article_id)
        if orm is None:
            return None
        orm.is_hidden = is_hidden
    return get_article_by_id(article_id)


def delete_article(article_id: int) -> bool:
    """Delete an article and its enrichment record."""
    with get_session() as session:
        orm = session.get(ArticleORM, article_id)
        if orm is None:
            return False
        session.execute(
            delete(ArticleCategorizationORM).where(ArticleCategorizationORM.article_id == article_id)
        )
        session.delete(orm)
        return True


# Categorization enrichment


def get_articles_needing_categorization(limit: int) -> List[Article]:
    """Articles with no enrichment record, or one that is pending or failed.

    Newest fetched first.
    """
    with get_session() as session:
        stmt = (
            _article_query()
            .where(
                or_(
                    ArticleCategorizationORM.id.is_(None),
                    ArticleCategorizationORM.status.in_(
                        [CategorizationStatus.PENDING.value, CategorizationStatus.FAILED.value]
                    ),
                )
            )
            .order_by(ArticleORM.fetched_at.desc(), ArticleORM.id.desc())
            .limit(limit)
        )
        return [article_orm_to_dataclass(a, c) for a, c in session.execute(stmt).all()]


def set_categorization(
    article_id: int,
    status: CategorizationStatus,
    news_category: Optional[str] = None,
    tech_category: Optional[str] = None,
    rationale: Optional[str] = None,
    categorized_at: Optional[int] = None,
):
    """Create or update the enrichment record for an article."""
    with get_session() as session:
        stmt = select(ArticleCategorizationORM).where(
            ArticleCategorizationORM.article_id == article_id
        )
        orm = session.execute(stmt).scalar_one_or_none()
        if orm is None:
            orm = ArticleCategorizationORM(article_id=article_id, status=status.value)
            session.add(orm)
        orm.status = status.value
        if news_category is not None:
            orm.news_category = news_category
        if tech_category is not None:
            orm.tech_category = tech_category
        if rationale is not None:
            orm.rationale = rationale
        if categorized_at is not None:
            orm.categorized_at = categorized_at


# Sources


def create_source(source: Source) -> Source:
    """Insert a new source. Raises PersistenceConflict if the url is taken."""
    orm = source_dataclass_to_orm(source, int(time.time()))
    try:
        with get_session() as session:
            session.add(orm)
            session.flush()
            return source_orm_to_dataclass(orm)
    except IntegrityError as e:
        raise PersistenceConflict(f"A source with url {source.url} already exists") from e


def get_source(source_id: int) -> Optional[Source]:
    with get_session() as session:
        orm = session.get(SourceORM, source_id)
        if orm is None:
            return None
        return source_orm_to_dataclass(orm)


def list_sources(
    source_type: Optional[SourceType] = None,
    is_enabled: Optional[bool] = None,
    sort_by: str = "created_at",
    descending: bool = True,
    limit: Optional[int] = None,
    offset: int = 0,
) -> Tuple[List[Source], int]:
    """List sources matching the filters, with the total match count."""
    criteria = []
    if source_type is not None:
        criteria.append(SourceORM.type == source_type.value)
    if is_enabled is not None:
        criteria.append(SourceORM.is_enabled.is_(is_enabled))

    sort_column = SOURCE_SORT_COLUMNS.get(sort_by, SourceORM.created_at)
    order = [sort_column.desc() if descending else sort_column.asc(), SourceORM.id.asc()]

    with get_session() as session:
        total = session.execute(
            select(func.count()).select_from(SourceORM).where(*criteria)
        ).scalar_one()
        stmt = select(SourceORM).where(*criteria).order_by(*order).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        orms = session.execute(stmt).scalars().all()
        return [source_orm_to_dataclass(orm) for orm in orms], total


def get_enabled_sources() -> List[Source]:
    """All enabled sources in insertion order."""
    with get_session() as session:
        stmt = select(SourceORM).where(SourceORM.is_enabled.is_(True)).order_by(SourceORM.id.asc())
        return [source_orm_to_dataclass(orm) for orm in session.execute(stmt).scalars().all()]


def update_source(source_id: int, **changes) -> Optional[Source]:
    """Update the user-editable fields of a source.

    Accepts any of name, url, type, is_enabled and scraping_config. Returns
    None if the source does not exist; raises PersistenceConflict on a url clash.
    """
    unknown = set(changes) - set(SOURCE_UPDATABLE_FIELDS)
    if unknown:
        raise ValueError(f"Cannot update source fields: {', '.join(sorted(unknown))}")

    try:
        with get_session() as session:
            orm = session.get(SourceORM, source_id)
            if orm is None:
                return None
            for key, value in changes.items():
                if key == "type":
                    value = SourceType(value).value
                elif key == "scraping_config":
                    value = scraping_config_to_dict(value) or None
                setattr(orm, key, value)
            orm.updated_at = int(time.time())
            session.flush()
            return source_orm_to_dataclass(orm)
    except IntegrityError as e:
        raise PersistenceConflict(f"A source with url {changes.get('url')} already exists") from e


def set_sources_enabled(source_ids: Iterable[int], is_enabled: bool) -> int:
    """Enable or disable several sources. Returns the number of rows changed."""
    with get_session() as session:
        result = session.execute(
            update(SourceORM)
            .where(SourceORM.id.in_(list(source_ids)))
            .values(is_enabled=is_enabled, updated_at=int(time.time()))
        )
        return result.rowcount


def delete_source(source_id: int) -> bool:
    with get_session() as session:
        orm = session.get(SourceORM, source_id)
        if orm is None:
            return False
        session.delete(orm)
        return True


def record_source_run(
    source_id: int,
    status: str,
    message: Optional[str],
    error: Optional[str],
    fetched_at: Optional[int] = None,
):
    """Write the last-run fields of a source after a fetch attempt."""
    with get_session() as session:
        orm = session.get(SourceORM, source_id)
        if orm is None:
            raise SourceNotFoundError(f"Source {source_id} no longer exists")
        orm.last_fetched_at = fetched_at or int(time.time())
        orm.last_status = status
        orm.last_fetch_message = message
        orm.last_error = error


def clear_source_error(source_id: int) -> Optional[Source]:
    """Reset the last error and last status of a source. None if it does not exist."""
    with get_session() as session:
        orm = session.get(SourceORM, source_id)
        if orm is None:
            return None
        orm.last_error = None
        orm.last_status = None
        orm.updated_at = int(time.time())
        session.flush()
        return source_orm_to_dataclass(orm)


# Fetch run logs


def create_run_log(run_log: FetchRunLog) -> int:
    """Persist a new run log and return its id."""
    orm = FetchRunLogORM()
    apply_run_log_to_orm(run_log, orm)
    try:
        with get_session() as session:
            session.add(orm)
            session.flush()
            return orm.id
    except SQLAlchemyError as e:
        raise LogPersistenceError(f"Failed to create fetch run log: {e}") from e


def update_run_log(run_log: FetchRunLog):
    """Write the current state of a run log back onto its row."""
    try:
        with get_session() as session:
            orm = session.get(FetchRunLogORM, run_log.id)
            if orm is None:
                raise LogPersistenceError(f"Fetch run log {run_log.id} not found")
            apply_run_log_to_orm(run_log, orm)
    except SQLAlchemyError as e:
        raise LogPersistenceError(f"Failed to save fetch run log {run_log.id}: {e}") from e


def get_run_log(log_id: int) -> Optional[FetchRunLog]:
    with get_session() as session:
        orm = session.get(FetchRunLogORM, log_id)
        if orm is None:
            return None
        return run_log_orm_to_dataclass(orm)


def list_run_logs(
    status: Optional[RunStatus] = None,
    started_after: Optional[int] = None,
    started_before: Optional[int] = None,
    limit: int = 10,
    offset: int = 0,
) -> Tuple[List[FetchRunLog], int]:
    """List run logs, newest first, with the total match count."""
    criteria = []
    if status is not None:
        criteria.append(FetchRunLogORM.status == status.value)
    if started_after is not None:
        criteria.append(FetchRunLogORM.start_time >= started_after)
    if started_before is not None:
        criteria.append(FetchRunLogORM.start_time <= started_before)

    with get_session() as session:
        total = session.execute(
            select(func.count()).select_from(FetchRunLogORM).where(*criteria)
        ).scalar_one()
        stmt = (
            select(FetchRunLogORM)
            .where(*criteria)
            .order_by(FetchRunLogORM.start_time.desc(), FetchRunLogORM.id.desc())
            .offset(offset)
            .limit(limit)
        )
        orms = session.execute(stmt).scalars().all()
        return [run_log_orm_to_dataclass(orm) for orm in orms], total
