"""News capabilities backed by Google News RSS (keyless, no rate limit).

Google appends the publisher to each item title (``"Headline - Reuters"``),
so the source is split off at the last ``" - "``.  Item descriptions are
HTML fragments; only their text is kept.
"""

from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from urllib.parse import quote_plus

from bs4 import BeautifulSoup

from ..models.schemas import Domain
from .providers.base import http_get
from .registry import Capability, ToolTable, build_tool_table

logger = logging.getLogger(__name__)

_RSS_BASE = "https://news.google.com/rss"
_LOCALE = "hl=en-US&gl=US&ceid=US:en"

_TOPIC_IDS = {
    "business": "CAAqJggKIiBDQkFTRWdvSUwyMHZNRGx6TVdZU0FtVnVHZ0pWVXlnQVAB",
    "technology": "CAAqJggKIiBDQkFTRWdvSUwyMHZNRGRqTVhZU0FtVnVHZ0pWVXlnQVAB",
    "world": "CAAqJggKIiBDQkFTRWdvSUwyMHZNRGx1YlY4U0FtVnVHZ0pWVXlnQVAB",
    "sports": "CAAqJggKIiBDQkFTRWdvSUwyMHZNRFp1ZEdvU0FtVnVHZ0pWVXlnQVAB",
    "entertainment": "CAAqJggKIiBDQkFTRWdvSUwyMHZNREpxYW5RU0FtVnVHZ0pWVXlnQVAB",
    "science": "CAAqJggKIiBDQkFTRWdvSUwyMHZNRFp0Y1RjU0FtVnVHZ0pWVXlnQVAB",
    "health": "CAAqIQgKIhtDQkFTRGdvSUwyMHZNR3QwTlRFU0FtVnVLQUFQAQ",
}

_FINANCIAL_WORDS = ("stock", "market", "trading", "finance", "earnings", "shares")
_TICKER_LIKE = re.compile(r"\b[A-Z]{2,5}\b")

DEFAULT_LIMIT = 10


@dataclass(frozen=True)
class NewsArticle:
    title: str
    summary: str
    source: str
    published: str
    url: str

    def format(self) -> str:
        text = f"- {self.title} ({self.source}, {self.published})"
        if self.summary and self.summary != self.title:
            text += f"\n  {self.summary[:280]}"
        if self.url:
            text += f"\n  {self.url}"
        return text


# ── RSS plumbing ─────────────────────────────────────────────────────────

def search_url(query: str) -> str:
    return f"{_RSS_BASE}/search?q={quote_plus(query)}&{_LOCALE}"


def category_url(category: str) -> str:
    topic = _TOPIC_IDS.get((category or "").strip().lower())
    if topic is None:
        return f"{_RSS_BASE}?{_LOCALE}"   # top stories
    return f"{_RSS_BASE}/topics/{topic}?{_LOCALE}"


def _split_source(title: str) -> tuple[str, str]:
    head, sep, tail = title.rpartition(" - ")
    if sep and head.strip() and tail.strip():
        return head.strip(), tail.strip()
    return title.strip(), "Google News"


def _published(raw: str | None) -> str:
    if not raw:
        return "N/A"
    try:
        return parsedate_to_datetime(raw).date().isoformat()
    except (TypeError, ValueError):
        return raw


def parse_feed(xml_text: str, limit: int = DEFAULT_LIMIT) -> list[NewsArticle]:
    """Parse an RSS 2.0 document into at most *limit* articles."""
    root = ET.fromstring(xml_text)
    articles: list[NewsArticle] = []
    for item in root.iter("item"):
        if len(articles) >= (limit if limit > 0 else DEFAULT_LIMIT):
            break
        title, source = _split_source(item.findtext("title") or "")
        source = (item.findtext("source") or source).strip()
        description = item.findtext("description") or ""
        summary = BeautifulSoup(description, "html.parser").get_text(" ", strip=True) if description else ""
        articles.append(NewsArticle(
            title=title,
            summary=summary or "No description available",
            source=source,
            published=_published(item.findtext("pubDate")),
            url=(item.findtext("link") or "").strip(),
        ))
    return articles


def fetch_feed(url: str, limit: int = DEFAULT_LIMIT) -> list[NewsArticle]:
    resp = http_get(url)
    return parse_feed(resp.text, limit)


def _render(header: str, articles: list[NewsArticle]) -> str:
    if not articles:
        return f"{header}\nNo articles found."
    return "\n".join([header, *(a.format() for a in articles)])


# ── Capabilities ─────────────────────────────────────────────────────────

def is_financial_topic(topic: str) -> bool:
    lowered = topic.lower()
    return any(w in lowered for w in _FINANCIAL_WORDS) or bool(_TICKER_LIKE.search(topic))


def get_market_news(topic: str, limit: int = DEFAULT_LIMIT) -> str:
    """Search recent news articles about a topic, company or ticker.

    Args:
        topic: Free-text topic, e.g. "Tesla earnings" or "AAPL".
        limit: Maximum number of articles to return.
    """
    query = f"{topic} stock market" if is_financial_topic(topic) else topic
    logger.info("Google News search: %s", query)
    return _render(f"News for '{topic}':", fetch_feed(search_url(query), limit))


def get_headlines_by_category(category: str, limit: int = DEFAULT_LIMIT) -> str:
    """Top headlines for a category.

    Args:
        category: One of business, technology, world, science, health,
            sports, entertainment. Anything else returns top stories.
        limit: Maximum number of headlines to return.
    """
    logger.info("Google News headlines: %s", category)
    return _render(f"Top {category} headlines:", fetch_feed(category_url(category), limit))


def build_news_tools() -> ToolTable:
    return build_tool_table(Domain.NEWS, {
        Capability.GET_MARKET_NEWS: get_market_news,
        Capability.GET_HEADLINES_BY_CATEGORY: get_headlines_by_category,
    })
