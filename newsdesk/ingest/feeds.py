"""RSS/Atom fetching and parsing into plain feed-item dicts."""

from __future__ import annotations

import calendar
import html
import logging
import re
from datetime import datetime, timezone

import feedparser
import httpx

from newsdesk.errors import FeedFetchError
from newsdesk.models import FeedConfig

logger = logging.getLogger(__name__)

USER_AGENT = "newsdesk/0.1 (+https://github.com/newsdesk)"

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


def strip_html(text: str | None) -> str:
    """Drop tags, unescape entities and collapse whitespace."""
    if not text:
        return ""
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    return _SPACE_RE.sub(" ", text).strip()


def _entry_published(entry) -> datetime | str | None:
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            ts = calendar.timegm(parsed)
            return datetime.fromtimestamp(ts, tz=timezone.utc).replace(tzinfo=None)
    return entry.get("published") or entry.get("updated")


def entry_to_item(entry) -> dict:
    """Flatten a feedparser entry to {title, link, description, pubDate, guid, category, content}."""
    content = ""
    if entry.get("content"):
        content = entry["content"][0].get("value", "")

    guid = entry.get("id") or entry.get("guid") or ""
    link = entry.get("link") or guid

    return {
        "title": entry.get("title", ""),
        "link": link,
        "description": entry.get("summary") or entry.get("description") or "",
        "pubDate": _entry_published(entry),
        "guid": guid,
        "category": [t.get("term") for t in entry.get("tags", []) or [] if t.get("term")],
        "content": content,
    }


def parse_feed(raw: bytes | str) -> list[dict]:
    feed = feedparser.parse(raw)
    if feed.bozo and not feed.entries:
        raise ValueError(f"unparseable feed: {feed.get('bozo_exception')}")
    return [entry_to_item(entry) for entry in feed.entries]


async def fetch_feed(client: httpx.AsyncClient, feed: FeedConfig) -> list[dict]:
    """Download and parse one feed. Any failure is raised as FeedFetchError."""
    try:
        resp = await client.get(feed.url, timeout=feed.timeout)
        resp.raise_for_status()
    except httpx.TimeoutException:
        raise FeedFetchError(feed.name, f"timed out after {feed.timeout:.0f}s")
    except httpx.HTTPStatusError as exc:
        raise FeedFetchError(feed.name, f"HTTP {exc.response.status_code}")
    except httpx.HTTPError as exc:
        raise FeedFetchError(feed.name, str(exc) or type(exc).__name__)

    try:
        items = parse_feed(resp.content)
    except ValueError as exc:
        raise FeedFetchError(feed.name, str(exc))

    logger.debug("Parsed %d entries from %s", len(items), feed.name)
    return items
