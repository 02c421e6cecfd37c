"""
Constants for the news aggregator.
"""

from pathlib import Path

MODULE_ROOT = Path(__file__).parent

PROMPTS_DIR = MODULE_ROOT / "prompts"

WEBSITES_CONFIG_PATH = MODULE_ROOT / "data" / "websites.yaml"

DB_NAME = "news_aggregator.db"

DATABASE_URL_ENV = "AGGREGATOR_DATABASE_URL"

MAX_ARTICLES_ENV = "MAX_ARTICLES_PER_SOURCE"

FETCH_TIMEOUT_ENV = "FETCH_TIMEOUT_SECONDS"

DEFAULT_MAX_ARTICLES = 20

DEFAULT_FETCH_TIMEOUT_SECONDS = 15
SLOW_RESPONSE_MS = 5000

# Feed excerpts are cut to this many characters
DESCRIPTION_SNIPPET_LENGTH = 300

UNTITLED_ARTICLE = "Untitled Article"

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

RSS_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

# Fallback selectors for html sources with no site or source configuration
DEFAULT_ARTICLE_SELECTOR = "article"
DEFAULT_TITLE_SELECTOR = "h1, h2, h3, .title, .post-title, a"
DEFAULT_LINK_SELECTOR = "a"

NEWS_CATEGORIES = (
    "Top Story Candidate",
    "Solid News",
    "Interesting but Lower Priority",
    "Likely Noise or Opinion",
)

TECH_CATEGORIES = (
    "Products and Updates",
    "Research and Innovation",
    "AI Agents",
    "Startups and Funding",
    "Industry Trends",
    "Developer Tools",
    "Not Relevant",
)

DEFAULT_CATEGORIZATION_LIMIT = 20
