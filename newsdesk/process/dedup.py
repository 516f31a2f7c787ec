"""URL and topic deduplication with authority escalation."""

from __future__ import annotations

import hashlib
import logging
import re
import sqlite3
from datetime import datetime, timedelta

from newsdesk import db
from newsdesk.errors import DedupeStoreError
from newsdesk.models import DedupResult, NormalizedArticle, utcnow

logger = logging.getLogger(__name__)

URL_WINDOW = timedelta(hours=24)
TOPIC_WINDOW = timedelta(hours=6)
CACHE_TTL = timedelta(hours=24)

MIN_TOPIC_KEYWORDS = 3
MAX_TOPIC_KEYWORDS = 10

TOPIC_STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "from", "as", "is", "was", "are", "been", "be", "have", "has", "had",
})

_NON_WORD = re.compile(r"[^a-z0-9\s]")


def hash_url(url: str) -> str:
    """md5 of the URL without query, fragment or trailing slash, lower-cased."""
    normalized = url.strip().split("#", 1)[0].split("?", 1)[0].rstrip("/").lower()
    return hashlib.md5(normalized.encode()).hexdigest()


def hash_topic(title: str, summary: str = "") -> str | None:
    """md5 of the sorted keyword set, or None when too few keywords survive."""
    if not title:
        return None
    text = _NON_WORD.sub(" ", f"{title} {(summary or '')[:100]}".lower())
    words = [w for w in text.split() if len(w) > 3 and w not in TOPIC_STOP_WORDS]
    words = words[:MAX_TOPIC_KEYWORDS]
    if len(words) < MIN_TOPIC_KEYWORDS:
        return None
    return hashlib.md5(" ".join(sorted(words)).encode()).hexdigest()


class Deduplicator:
    """Decide whether an article is new, a repeat, or a more authoritative retelling."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    hash_url = staticmethod(hash_url)
    hash_topic = staticmethod(hash_topic)

    def check_duplicate(
        self,
        article: NormalizedArticle,
        source_tier: int,
        now: datetime | None = None,
    ) -> DedupResult:
        now = now or utcnow()
        url_hash = hash_url(article.url)
        topic_hash = hash_topic(article.title, article.summary)

        try:
            return self._check(article, int(source_tier), url_hash, topic_hash, now)
        except DedupeStoreError as exc:
            # Fail open
            logger.warning("Dedupe check failed for %s, treating as new: %s", article.url, exc)
            return DedupResult(is_duplicate=False, reason="dedupe_error", error=str(exc))

    def _check(
        self,
        article: NormalizedArticle,
        source_tier: int,
        url_hash: str,
        topic_hash: str | None,
        now: datetime,
    ) -> DedupResult:
        try:
            existing = db.find_dedupe_by_url(self.conn, url_hash, now - URL_WINDOW)
            if existing:
                seen = db.touch_dedupe_entry(self.conn, existing.id, now)
                return DedupResult(
                    is_duplicate=True, reason="url_match", existing=existing, corroboration=seen,
                )

            if topic_hash:
                existing = db.find_dedupe_by_topic(self.conn, topic_hash, now - TOPIC_WINDOW)
                if existing:
                    if source_tier > existing.authority_level:
                        seen = db.raise_dedupe_authority(self.conn, existing.id, source_tier, now)
                        logger.info(
                            "Authority upgrade tier %d -> %d for %s",
                            existing.authority_level, source_tier, article.url,
                        )
                        return DedupResult(
                            is_duplicate=False,
                            reason="authority_upgrade",
                            existing=existing,
                            corroboration=seen,
                            upgraded=True,
                        )
                    seen = db.touch_dedupe_entry(self.conn, existing.id, now)
                    return DedupResult(
                        is_duplicate=True, reason="topic_match", existing=existing, corroboration=seen,
                    )

            seen = db.upsert_dedupe_entry(
                self.conn,
                external_id=article.external_id,
                url_hash=url_hash,
                topic_hash=topic_hash,
                authority_level=source_tier,
                now=now,
                window_start=now - URL_WINDOW,
            )
            if seen > 1:
                # Lost an insert race against another ingestion of the same URL
                return DedupResult(
                    is_duplicate=True,
                    reason="url_match",
                    existing=db.get_dedupe_entry(self.conn, url_hash),
                    corroboration=seen,
                )
        except sqlite3.Error as exc:
            raise DedupeStoreError(str(exc)) from exc

        return DedupResult(is_duplicate=False, reason="new_article", corroboration=1)

    def cleanup_cache(self, now: datetime | None = None) -> int:
        """Delete cache entries first seen more than 24h ago."""
        now = now or utcnow()
        try:
            deleted = db.delete_expired_dedupe(self.conn, now - CACHE_TTL)
        except sqlite3.Error:
            logger.exception("Dedupe cache cleanup failed")
            return 0
        logger.info("Cleaned up %d expired dedupe cache entries", deleted)
        return deleted

    def get_corroboration(self, topic_hash: str | None) -> int:
        if not topic_hash:
            return 0
        try:
            return db.get_topic_seen_count(self.conn, topic_hash)
        except sqlite3.Error:
            logger.exception("Corroboration lookup failed")
            return 0
