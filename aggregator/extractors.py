"""
Content extractors: turn a fetched feed or page into candidate article items.

Each extractor implements ``extract(raw_content) -> List[CandidateItem]``. An
empty feed or page yields an empty list; content that cannot be parsed as its
declared type raises ParseError.
"""

import calendar
import re
from datetime import timezone
from typing import List, Optional, Protocol
from urllib.parse import urljoin

import feedparser  # type: ignore
import lxml.html
from cssselect import SelectorError
from dateutil import parser as date_parser
from html2text import html2text
from lxml import etree

from aggregator.config import FetchConfig, WebsiteConfig
from aggregator.constants import (
    DEFAULT_ARTICLE_SELECTOR,
    DEFAULT_LINK_SELECTOR,
    DEFAULT_TITLE_SELECTOR,
    DESCRIPTION_SNIPPET_LENGTH,
    UNTITLED_ARTICLE,
)
from aggregator.errors import ParseError
from aggregator.models import CandidateItem, ScrapingConfig, Source, SourceType
from util.logging_util import setup_logger

logger = setup_logger(__name__)

# lxml refuses str input that carries an encoding declaration
XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")


class ContentExtractor(Protocol):
    """Turns raw fetched content into candidate items."""

    def extract(self, raw_content: str) -> List[CandidateItem]: ...


def parse_loose_date(value: Optional[str]) -> Optional[int]:
    """Parse a loosely formatted date string to epoch seconds (UTC if no zone).

    Text with anything besides date tokens in it ("5 min read") gives None.
    """
    if not value or not value.strip():
        return None
    try:
        parsed = date_parser.parse(value.strip())
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def make_snippet(html_or_text: str, limit: int = DESCRIPTION_SNIPPET_LENGTH) -> Optional[str]:
    """Plain-text excerpt of an HTML fragment, capped at ``limit`` characters."""
    if not html_or_text:
        return None
    text = " ".join(html2text(html_or_text).split())
    return text[:limit] or None


def _clean(value) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


class RssExtractor:
    """Extracts candidate items from an RSS or Atom document."""

    def extract(self, raw_content: str) -> List[CandidateItem]:
        if not raw_content or not raw_content.strip():
            return []

        parsed = feedparser.parse(raw_content)
        entries = parsed.get("entries", [])
        if not entries and not parsed.get("version"):
            reason = parsed.get("bozo_exception") or "no RSS or Atom structure found"
            raise ParseError(f"Content is not a valid feed: {reason}")

        return [self._entry_to_item(entry) for entry in entries]

    def _entry_to_item(self, entry: dict) -> CandidateItem:
        return CandidateItem(
            title=_clean(entry.get("title")) or UNTITLED_ARTICLE,
            link=_clean(entry.get("link")),
            guid=_clean(entry.get("id")),
            published_date=self._published_date(entry),
            description_snippet=self._snippet(entry),
            categories=[
                tag.get("term").strip()
                for tag in entry.get("tags", []) or []
                if _clean(tag.get("term"))
            ],
        )

    @staticmethod
    def _published_date(entry: dict) -> Optional[int]:
        """Structured date first, then the raw published/updated string."""
        for key in ("published_parsed", "updated_parsed"):
            parsed = entry.get(key)
            if parsed is not None:
                return calendar.timegm(parsed)
        return parse_loose_date(entry.get("published") or entry.get("updated"))

    @staticmethod
    def _snippet(entry: dict) -> Optional[str]:
        summary = entry.get("summary") or entry.get("description")
        if not summary:
            content = entry.get("content") or []
            if content:
                summary = content[0].get("value", "")
        return make_snippet(summary or "")


class HtmlExtractor:
    """Extracts candidate items from an HTML listing page using CSS selectors.

    Selectors come from the source's own scraping config first, then the
    website defaults, then generic fallbacks.
    """

    def __init__(
        self,
        page_url: str,
        website: Optional[WebsiteConfig] = None,
        overrides: Optional[ScrapingConfig] = None,
    ):
        self.page_url = page_url
        self.website = website
        self.base_url = (website.base_url if website else None) or page_url

        def pick(name: str, default: Optional[str] = None) -> Optional[str]:
            override = getattr(overrides, name, None) if overrides else None
            site_value = getattr(website, name, None) if website else None
            return override or site_value or default

        self.article_selector = pick("article_selector", DEFAULT_ARTICLE_SELECTOR)
        self.title_selector = pick("title_selector", DEFAULT_TITLE_SELECTOR)
        self.link_selector = pick("link_selector", DEFAULT_LINK_SELECTOR)
        self.description_selector = pick("description_selector")
        self.date_selector = pick("date_selector")

    def extract(self, raw_content: str) -> List[CandidateItem]:
        if not raw_content or not raw_content.strip():
            return []

        try:
            document = lxml.html.fromstring(XML_DECLARATION.sub("", raw_content, count=1))
        except (etree.ParserError, ValueError) as e:
            raise ParseError(f"Content is not valid HTML: {e}") from e

        try:
            elements = document.cssselect(self.article_selector)
        except SelectorError as e:
            raise ParseError(f"Invalid article selector {self.article_selector!r}: {e}") from e

        items = []
        for index, element in enumerate(elements):
            try:
                item = self._element_to_item(element)
            except SelectorError as e:
                raise ParseError(f"Invalid selector in scraping config: {e}") from e
            if item is None:
                logger.debug(f"Skipping entry {index} on {self.page_url}: no title, link or date")
                continue
            items.append(item)
        return items

    @staticmethod
    def _first(element, selector: Optional[str]):
        if not selector:
            return None
        matches = element.cssselect(selector)
        return matches[0] if matches else None

    def _element_to_item(self, element) -> Optional[CandidateItem]:
        title_element = self._first(element, self.title_selector)
        title = (
            _clean(title_element.text_content() if title_element is not None else None)
            or _clean(element.text_content())
            or _clean(element.get("title"))
        )
        if not title:
            return None

        link_element = self._first(element, self.link_selector)
        href = _clean(link_element.get("href") if link_element is not None else None) or _clean(
            element.get("href")
        )
        if not href:
            return None

        description = None
        description_element = self._first(element, self.description_selector)
        if description_element is not None:
            description = make_snippet(_clean(description_element.text_content()) or "")

        raw_date = None
        date_element = self._first(element, self.date_selector)
        if date_element is not None:
            raw_date = _clean(date_element.get("datetime")) or _clean(date_element.text_content())

        if self.website is not None and self.website.skip_articles_without_dates and not raw_date:
            return None

        return CandidateItem(
            title=self._clean_title(title),
            link=urljoin(self.base_url, href),
            published_date=parse_loose_date(raw_date),
            description_snippet=description,
        )

    def _clean_title(self, title: str) -> str:
        title = " ".join(title.split())
        if self.website is None:
            return title
        for prefix in self.website.remove_title_prefixes:
            title = re.sub(rf"^{re.escape(prefix)}\s*:?\s*", "", title, flags=re.IGNORECASE)
        for pattern in self.website.remove_title_patterns:
            title = re.sub(pattern, "", title, flags=re.IGNORECASE)
        return title.strip() or UNTITLED_ARTICLE


def get_extractor(source: Source, config: FetchConfig) -> ContentExtractor:
    """Pick the extractor for a source's declared type."""
    if source.type == SourceType.RSS:
        return RssExtractor()
    if source.type == SourceType.HTML:
        return HtmlExtractor(source.url, config.website_for(source), source.scraping_config)
    raise ValueError(f"Unknown source type: {source.type}")
