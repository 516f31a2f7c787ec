"""Pipeline orchestrator: Dedup -> persist -> Score -> Route -> (maybe) Push."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from newsdesk import db
from newsdesk.config import get_scoring_context_defaults
from newsdesk.deliver.base import BaseDelivery
from newsdesk.deliver.push import PushService
from newsdesk.errors import PushError
from newsdesk.ingest.base import BaseAdapter
from newsdesk.models import (
    ACTION_PUSHED,
    ACTION_ROUTED,
    ACTION_SKIPPED,
    ACTION_SUPPRESSED,
    CHANNEL_DIGEST,
    CHANNEL_URGENT,
    BatchPushResult,
    IngestionStats,
    IngestOutcome,
    NormalizedArticle,
    ScoringContext,
    SourceInfo,
    utcnow,
)
from newsdesk.process.dedup import Deduplicator, hash_topic
from newsdesk.process.routing import Router
from newsdesk.process.scoring import Scorer

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK = timedelta(hours=1)
DEFAULT_INGESTION_INTERVAL_MINUTES = 5

MARKET_TZ = ZoneInfo("America/New_York")
MARKET_OPEN = time(9, 30)
MARKET_CLOSE = time(16, 0)

# Sightings beyond the first needed for full corroboration
CORROBORATION_SATURATION = 4


def is_market_hours(now: datetime | None = None) -> bool:
    """US equity regular session, Monday to Friday (holidays ignored)."""
    now = now or utcnow()
    local = now.replace(tzinfo=ZoneInfo("UTC")).astimezone(MARKET_TZ)
    return local.weekday() < 5 and MARKET_OPEN <= local.time() < MARKET_CLOSE


def corroboration_factor(seen_count: int) -> float:
    """Map a dedup sighting count to [0, 1]: one sighting is no corroboration."""
    return min(max(seen_count - 1, 0) / CORROBORATION_SATURATION, 1.0)


class NewsPipeline:
    """Owns the per-article services and drives ingestion, digest and cleanup."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        config: dict,
        adapters: list[BaseAdapter] | None = None,
        delivery: BaseDelivery | None = None,
    ):
        self.conn = conn
        self.config = config
        self.adapters = list(adapters or [])
        self.deduplicator = Deduplicator(conn)
        self.scorer = Scorer(conn)
        self.router = Router(conn, config)
        self.push = PushService(conn, delivery, config) if delivery else None
        self.scoring_defaults = get_scoring_context_defaults(config)
        self.source_ids: dict[str, int] = {}

    # --- Startup ---

    def startup(self) -> None:
        """Fail fast on a missing schema, then register every adapter's source."""
        db.verify_schema(self.conn)
        for adapter in self.adapters:
            adapter.validate()
        self.register_sources()

    def register_sources(self) -> None:
        for adapter in self.adapters:
            self.source_ids[adapter.name] = db.upsert_source(self.conn, adapter.source_metadata())
        logger.info("Registered %d sources", len(self.adapters))

    def ensure_source(self, name: str, tier: int) -> int:
        """Source id for `name`, registering it with `tier` when unknown or changed."""
        source = db.get_source(self.conn, name)
        if source and source.tier == tier:
            self.source_ids[name] = source.id
            return source.id
        source_id = db.upsert_source(self.conn, SourceInfo(name=name, tier=tier))
        self.source_ids[name] = source_id
        return source_id

    @property
    def ingestion_interval_minutes(self) -> int:
        intervals = [a.fetch_interval_minutes for a in self.adapters if a.enabled]
        return min(intervals) if intervals else DEFAULT_INGESTION_INTERVAL_MINUTES

    # --- Single-item path ---

    def build_context(self, seen_count: int = 0, now: datetime | None = None) -> ScoringContext:
        now = now or utcnow()
        market_hours = self.scoring_defaults["market_hours_aware"] and is_market_hours(now)
        return ScoringContext(
            symbols=self.scoring_defaults["symbols"],
            corroboration=corroboration_factor(seen_count),
            is_market_hours=market_hours,
            has_holdings=self.scoring_defaults["has_holdings"],
            now=now,
        )

    def _previous_score(self, news_item_id: int) -> float | None:
        try:
            return db.get_composite_score(self.conn, news_item_id)
        except sqlite3.Error:
            logger.exception("Could not read previous score for item %d", news_item_id)
            return None

    async def process_article(
        self, article: NormalizedArticle, tier: int, source_name: str,
    ) -> IngestOutcome:
        """Run one article through the whole pipeline and report what happened.

        ValidationError and ScoringError propagate; push failures do not.
        """
        article.validate()
        source_id = self.source_ids.get(source_name) or self.ensure_source(source_name, tier)

        dedup = self.deduplicator.check_duplicate(article, tier)
        if dedup.is_duplicate:
            logger.info("Skipped duplicate (%s): %s", dedup.reason, article.title[:80])
            return IngestOutcome(action=ACTION_SKIPPED, reason=dedup.reason)

        article.id = db.insert_article(self.conn, article, source_id)
        previous = self._previous_score(article.id)

        score = self.scorer.score_article(article, tier, self.build_context(dedup.corroboration))
        self.scorer.store_score(article.id, score)

        decision = self.router.route_news_item(
            article.id,
            score.composite,
            {
                "topic_hash": hash_topic(article.title, article.summary),
                "previous_score": previous,
            },
        )
        outcome = IngestOutcome(
            action=ACTION_ROUTED,
            channel=decision.channel,
            score=score.composite,
            reason=dedup.reason,
            news_item_id=article.id,
            fade_level=decision.fade_level,
            upgrade_flag=decision.upgrade_flag,
        )

        if not decision.should_push:
            outcome.action = ACTION_SUPPRESSED
            return outcome

        if decision.channel == CHANNEL_URGENT and self.push:
            item = db.get_push_item(self.conn, article.id)
            try:
                pushed = await self.push.push_single(item, channel=CHANNEL_URGENT)
            except PushError as exc:
                logger.warning("Urgent push failed for item %d, left pending: %s", article.id, exc)
                return outcome
            self.router.mark_as_sent([article.id])
            outcome.action = ACTION_PUSHED
            outcome.message_id = pushed.message_id

        return outcome

    # --- Batch ingestion ---

    async def _run_adapter(
        self, adapter: BaseAdapter, since: datetime, limit: int,
    ) -> dict:
        batch = await adapter.fetch_batch(since, limit=limit)
        counts = {
            "adapter": adapter.name,
            "fetched": len(batch.accepted),
            "stored": 0,
            "skipped": 0,
            "errors": len(batch.errors),
        }

        for article in batch.accepted:
            try:
                outcome = await self.process_article(article, adapter.tier, adapter.name)
            except Exception:
                logger.exception("Failed to process article %s", article.url)
                counts["errors"] += 1
                continue
            if outcome.action == ACTION_SKIPPED:
                counts["skipped"] += 1
            else:
                counts["stored"] += 1
        return counts

    async def run_ingestion_cycle(
        self,
        since: datetime | None = None,
        limit: int = 100,
        now: datetime | None = None,
    ) -> IngestionStats:
        """Fetch all due adapters concurrently. One failing adapter never cancels the rest."""
        now = now or utcnow()
        since = since or now - DEFAULT_LOOKBACK
        active = [a for a in self.adapters if a.enabled and a.due(now)]
        stats = IngestionStats()
        if not active:
            logger.info("No adapters due for ingestion")
            return stats

        results = await asyncio.gather(
            *[self._run_adapter(a, since, limit) for a in active],
            return_exceptions=True,
        )

        for adapter, result in zip(active, results):
            tier_stats = stats.by_tier.setdefault(
                adapter.tier, {"fetched": 0, "stored": 0, "skipped": 0, "errors": 0},
            )
            if isinstance(result, BaseException):
                logger.error("Adapter %s failed: %r", adapter.name, result)
                tier_stats["errors"] += 1
                stats.total_errors += 1
                continue
            for key in ("fetched", "stored", "skipped", "errors"):
                tier_stats[key] += result[key]
            stats.total_fetched += result["fetched"]
            stats.total_stored += result["stored"]
            stats.total_skipped += result["skipped"]
            stats.total_errors += result["errors"]

        logger.info(
            "Ingestion cycle: %d fetched, %d stored, %d skipped, %d errors",
            stats.total_fetched, stats.total_stored, stats.total_skipped, stats.total_errors,
        )
        return stats

    # --- Digest and maintenance ---

    async def run_digest(self, lookback_hours: float = 12, limit: int = 10) -> BatchPushResult | None:
        """Push the top items of the lookback window. Repeats across digests are expected."""
        if not self.push:
            logger.info("No delivery channel configured, skipping digest")
            return None

        items = db.get_top_items(self.conn, utcnow() - timedelta(hours=lookback_hours), limit)
        if not items:
            logger.info("No items for digest in the last %.0fh", lookback_hours)
            return BatchPushResult()
        return await self.push.push_batch(items, channel=CHANNEL_DIGEST)

    def cleanup_cache(self) -> int:
        return self.deduplicator.cleanup_cache()

    def get_status(self) -> dict:
        return {
            "articles": db.count_articles(self.conn),
            "sources": db.get_source_stats(self.conn),
            "routing": self.router.get_stats(),
            "push": db.get_push_stats(self.conn, utcnow() - timedelta(hours=24)),
        }
