"""
Data models for the news aggregator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class SourceType(Enum):
    RSS = "rss"
    HTML = "html"


class SummaryStatus(Enum):
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    FAILED = "failed"


class RunStatus(Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FAILED = "failed"


class CategorizationStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PersistAction(Enum):
    ADDED = "added"
    SKIPPED = "skipped"


@dataclass
class ScrapingConfig:
    """Per-source scraping settings, only meaningful for html sources."""
    website_id: Optional[str] = None
    max_articles: Optional[int] = None
    article_selector: Optional[str] = None
    title_selector: Optional[str] = None
    link_selector: Optional[str] = None
    description_selector: Optional[str] = None
    date_selector: Optional[str] = None


@dataclass
class Source:
    """A configured feed or page to fetch articles from."""
    name: str
    url: str
    type: SourceType
    id: Optional[int] = None
    is_enabled: bool = True
    scraping_config: Optional[ScrapingConfig] = None
    last_fetched_at: Optional[int] = None
    last_status: Optional[str] = None
    last_fetch_message: Optional[str] = None
    last_error: Optional[str] = None
    created_at: int = 0
    updated_at: int = 0


@dataclass
class ArticleCategorization:
    """AI enrichment attached to an article. Written only by the categorizer."""
    article_id: int
    status: CategorizationStatus = CategorizationStatus.PENDING
    news_category: Optional[str] = None
    tech_category: Optional[str] = None
    rationale: Optional[str] = None
    categorized_at: Optional[int] = None
    id: Optional[int] = None


@dataclass
class Article:
    """A deduplicated news item."""
    title: str
    link: str
    source_name: str
    id: Optional[int] = None
    guid: Optional[str] = None
    published_date: Optional[int] = None
    description_snippet: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    fetched_at: int = 0
    is_read: bool = False
    is_starred: bool = False
    is_hidden: bool = False
    categorization: Optional[ArticleCategorization] = None


@dataclass
class CandidateItem:
    """An article candidate produced by a content extractor."""
    title: str
    link: Optional[str] = None
    guid: Optional[str] = None
    published_date: Optional[int] = None
    description_snippet: Optional[str] = None
    categories: List[str] = field(default_factory=list)


@dataclass
class ItemError:
    message: str
    item_title: Optional[str] = None
    item_link: Optional[str] = None


@dataclass
class PersistResult:
    action: PersistAction
    error: Optional[str] = None


@dataclass
class ProcessingSummary:
    """Outcome of processing a single source."""
    source_url: str
    source_name: str
    type: SourceType
    status: SummaryStatus = SummaryStatus.FAILED
    message: str = ""
    items_found: int = 0
    items_considered: int = 0
    items_processed: int = 0
    new_items_added: int = 0
    items_skipped: int = 0
    errors: List[ItemError] = field(default_factory=list)
    fetch_error: Optional[str] = None

    def resolve_status(self) -> SummaryStatus:
        """Status implied by the fetch error and item errors."""
        if self.fetch_error:
            return SummaryStatus.FAILED
        if self.errors:
            return SummaryStatus.PARTIAL_SUCCESS
        return SummaryStatus.SUCCESS


@dataclass
class FetchRunLog:
    """One record per orchestration run."""
    start_time: int
    status: RunStatus = RunStatus.IN_PROGRESS
    id: Optional[int] = None
    end_time: Optional[int] = None
    total_sources_attempted: int = 0
    total_sources_successfully_processed: int = 0
    total_sources_failed_with_error: int = 0
    total_new_articles_added_across_all_sources: int = 0
    orchestration_errors: List[str] = field(default_factory=list)
    source_summaries: List[ProcessingSummary] = field(default_factory=list)


@dataclass
class SingleSourceResult:
    """Result of fetching one source on demand."""
    source_id: int
    summary: ProcessingSummary
    run_status: RunStatus
    log_id: Optional[int] = None
    duration_ms: int = 0


@dataclass
class SourceValidation:
    """Outcome of checking a source's configuration and reachability."""
    source_id: int
    source_name: str
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    response_time_ms: Optional[int] = None
    validation_time_ms: int = 0

    @property
    def valid(self) -> bool:
        return not self.errors
