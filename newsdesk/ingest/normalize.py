"""Convert adapter feed items into NormalizedArticle records."""

from __future__ import annotations

from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING

from newsdesk.classify.symbols import extract_symbols
from newsdesk.errors import NormalizationError
from newsdesk.ingest.feeds import strip_html
from newsdesk.models import FeedConfig, NormalizedArticle, to_naive_utc

if TYPE_CHECKING:
    from newsdesk.ingest.base import BaseAdapter

SUMMARY_MAX_CHARS = 500


def parse_published(value) -> datetime | None:
    """Parse an RFC 822 or ISO-8601 date. Returns None when unparseable."""
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if not value or not isinstance(value, str):
        return None

    value = value.strip()
    try:
        return to_naive_utc(parsedate_to_datetime(value))
    except (TypeError, ValueError, IndexError):
        pass
    try:
        return to_naive_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None


def normalize_feed_item(item: dict, feed: FeedConfig, adapter: BaseAdapter) -> NormalizedArticle:
    """Build a NormalizedArticle or raise NormalizationError.

    Records without an id, title, link or parseable publication date are
    rejected rather than patched up.
    """
    title = strip_html(item.get("title"))
    url = (item.get("link") or item.get("guid") or "").strip()
    guid = (item.get("guid") or url).strip()

    if not title:
        raise NormalizationError(f"{feed.name}: item has no title")
    if not url:
        raise NormalizationError(f"{feed.name}: item '{title[:60]}' has no link")
    if not guid:
        raise NormalizationError(f"{feed.name}: item '{title[:60]}' has no id")

    published_at = parse_published(item.get("pubDate"))
    if published_at is None:
        raise NormalizationError(
            f"{feed.name}: unparseable publication date {item.get('pubDate')!r} for {url}"
        )

    description = strip_html(item.get("description"))
    body = strip_html(item.get("content")) or description
    summary = description[:SUMMARY_MAX_CHARS]
    categories = [c for c in item.get("category") or [] if c]

    article = NormalizedArticle(
        external_id=f"{adapter.key}_{feed.name}_{guid}",
        title=title,
        url=url,
        published_at=published_at,
        summary=summary,
        body=body,
        symbols=extract_symbols(f"{title} {description}"),
        entities={"source": feed.name},
        region=feed.region,
        lang="en",
        tags=adapter.build_tags(feed, categories),
    )
    adapter.enrich(article, feed)
    article.validate()
    return article
