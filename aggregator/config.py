"""
Fetch configuration: article caps, timeouts and per-website scraping defaults.

A FetchConfig is built once at process start (FetchConfig.from_env) and passed
to the processor and orchestrator.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from aggregator.constants import (
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_MAX_ARTICLES,
    FETCH_TIMEOUT_ENV,
    MAX_ARTICLES_ENV,
    WEBSITES_CONFIG_PATH,
)
from aggregator.models import Source
from util.logging_util import setup_logger

logger = setup_logger(__name__)


@dataclass
class WebsiteConfig:
    """Scraping defaults for a known website."""
    website_id: str
    name: str
    base_url: Optional[str] = None
    article_selector: Optional[str] = None
    title_selector: Optional[str] = None
    link_selector: Optional[str] = None
    description_selector: Optional[str] = None
    date_selector: Optional[str] = None
    max_articles: Optional[int] = None
    skip_articles_without_dates: bool = False
    remove_title_prefixes: List[str] = field(default_factory=list)
    remove_title_patterns: List[str] = field(default_factory=list)


def load_website_configs(config_path: Path = WEBSITES_CONFIG_PATH) -> Dict[str, WebsiteConfig]:
    """Load website scraping configurations from YAML file."""
    if not config_path.exists():
        logger.warning(f"Website config not found at {config_path}")
        return {}

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    websites = {}
    for website_id, site_data in (data.get("websites") or {}).items():
        title_cleaning = site_data.get("title_cleaning") or {}
        websites[website_id] = WebsiteConfig(
            website_id=website_id,
            name=site_data.get("name", website_id),
            base_url=site_data.get("base_url"),
            article_selector=site_data.get("article_selector"),
            title_selector=site_data.get("title_selector"),
            link_selector=site_data.get("link_selector"),
            description_selector=site_data.get("description_selector"),
            date_selector=site_data.get("date_selector"),
            max_articles=site_data.get("max_articles"),
            skip_articles_without_dates=bool(site_data.get("skip_articles_without_dates", False)),
            remove_title_prefixes=list(title_cleaning.get("remove_prefixes") or []),
            remove_title_patterns=list(title_cleaning.get("remove_patterns") or []),
        )
    return websites


def _parse_positive_int(raw: Optional[str], name: str) -> Optional[int]:
    """Parse an env value as a positive int, ignoring blank or invalid values."""
    if raw is None or raw.strip() == "":
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning(f"Invalid {name} value: {raw!r}. Ignoring it.")
        return None
    if value <= 0:
        logger.warning(f"Invalid {name} value: {raw!r}. Ignoring it.")
        return None
    return value


@dataclass
class FetchConfig:
    """Settings consumed by the per-source processor."""
    global_max_articles: Optional[int] = None
    default_max_articles: int = DEFAULT_MAX_ARTICLES
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    websites: Dict[str, WebsiteConfig] = field(default_factory=dict)

    @classmethod
    def from_env(cls, websites_path: Path = WEBSITES_CONFIG_PATH) -> "FetchConfig":
        global_max = _parse_positive_int(os.environ.get(MAX_ARTICLES_ENV), MAX_ARTICLES_ENV)
        if global_max is not None:
            logger.info(f"Using article limit from environment: {global_max}")
        timeout = _parse_positive_int(os.environ.get(FETCH_TIMEOUT_ENV), FETCH_TIMEOUT_ENV)
        return cls(
            global_max_articles=global_max,
            fetch_timeout=timeout or DEFAULT_FETCH_TIMEOUT_SECONDS,
            websites=load_website_configs(websites_path),
        )

    def website_for(self, source: Source) -> Optional[WebsiteConfig]:
        """Site defaults for a source, by its website id or else its name."""
        website_id = None
        if source.scraping_config is not None:
            website_id = source.scraping_config.website_id
        return self.websites.get(website_id or source.name)

    def resolve_max_articles(self, source: Source) -> int:
        """Article cap for a source.

        Precedence: global override, then the source's own cap, then the
        website default, then the hardcoded default.
        """
        if self.global_max_articles:
            return self.global_max_articles
        if source.scraping_config is not None and source.scraping_config.max_articles:
            return source.scraping_config.max_articles
        website = self.website_for(source)
        if website is not None and website.max_articles:
            return website.max_articles
        return self.default_max_articles
