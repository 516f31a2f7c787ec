"""Channel routing with repeat-story fade and upgrade detection."""

from __future__ import annotations

import logging
import sqlite3
from datetime import timedelta

from newsdesk import db
from newsdesk.config import get_routing_config
from newsdesk.errors import RouteStoreError
from newsdesk.models import (
    CHANNEL_DIGEST,
    CHANNEL_SUPPRESSED,
    CHANNEL_URGENT,
    PushItem,
    RoutingDecision,
    utcnow,
)

logger = logging.getLogger(__name__)

MAX_FADE_LEVEL = 5
FADE_WINDOW = timedelta(hours=24)
STATS_WINDOW = timedelta(hours=24)


def apply_fade(channel: str, fade_level: int) -> str:
    """Downgrade a base channel according to how often the topic has resurfaced."""
    if fade_level >= 5:
        return CHANNEL_SUPPRESSED
    if fade_level >= 3:
        if channel == CHANNEL_URGENT:
            return CHANNEL_DIGEST
        if channel == CHANNEL_DIGEST:
            return CHANNEL_SUPPRESSED
        return channel
    if fade_level >= 1 and channel == CHANNEL_URGENT:
        return CHANNEL_DIGEST
    return channel


class Router:
    """Map composite scores to delivery channels and persist routing state.

    Only two thresholds exist: at or above `urgent_threshold` goes to the
    urgent channel, everything else to the digest. `suppressed` is reached
    only through fade.
    """

    def __init__(self, conn: sqlite3.Connection, config: dict | None = None):
        self.conn = conn
        cfg = get_routing_config(config or {})
        self.urgent_threshold: float = cfg["urgent_threshold"]
        self.upgrade_delta: float = cfg["upgrade_delta"]

    def determine_channel(self, score: float) -> str:
        if score >= self.urgent_threshold:
            return CHANNEL_URGENT
        return CHANNEL_DIGEST

    def check_fade_status(self, news_item_id: int, topic_hash: str | None) -> int:
        """Fade level for this item: previous max for the topic plus one, capped at 5."""
        if not topic_hash:
            return 0
        try:
            previous = db.get_max_fade_level(
                self.conn, topic_hash, utcnow() - FADE_WINDOW, exclude_id=news_item_id,
            )
        except sqlite3.Error as exc:
            raise RouteStoreError(f"Fade lookup failed: {exc}") from exc
        if previous is None:
            return 0
        return min(previous + 1, MAX_FADE_LEVEL)

    apply_fade = staticmethod(apply_fade)

    def detect_upgrade(
        self, news_item_id: int, score: float, previous: float | None = None,
    ) -> bool:
        """True when the score rose by at least `upgrade_delta` over the previous one."""
        if previous is None:
            try:
                previous = db.get_composite_score(self.conn, news_item_id)
            except sqlite3.Error as exc:
                raise RouteStoreError(f"Score lookup failed: {exc}") from exc
        if previous is None:
            return False
        return score - previous >= self.upgrade_delta

    def store_routing_state(
        self,
        news_item_id: int,
        channel: str,
        fade_level: int,
        upgrade_flag: bool,
        topic_hash: str | None = None,
    ) -> None:
        try:
            db.upsert_routing_state(
                self.conn, news_item_id, channel, fade_level, upgrade_flag, topic_hash,
            )
        except sqlite3.Error as exc:
            raise RouteStoreError(f"Failed to store routing state: {exc}") from exc

    def route_news_item(
        self,
        news_item_id: int,
        composite_score: float,
        context: dict | None = None,
    ) -> RoutingDecision:
        """Route one item. Context keys: topic_hash, previous_score.

        A store failure is logged and the item falls back to the digest.
        """
        context = context or {}
        topic_hash = context.get("topic_hash")
        base_channel = self.determine_channel(composite_score)

        try:
            fade_level = self.check_fade_status(news_item_id, topic_hash)
            channel = apply_fade(base_channel, fade_level)
            upgrade_flag = self.detect_upgrade(
                news_item_id, composite_score, context.get("previous_score"),
            )
            self.store_routing_state(news_item_id, channel, fade_level, upgrade_flag, topic_hash)
        except RouteStoreError as exc:
            logger.error("Routing failed for item %d, falling back to digest: %s", news_item_id, exc)
            return RoutingDecision(
                channel=CHANNEL_DIGEST,
                original_channel=base_channel,
                should_push=True,
                error=str(exc),
            )

        if channel != base_channel:
            logger.info(
                "Item %d faded %s -> %s (fade level %d)",
                news_item_id, base_channel, channel, fade_level,
            )
        if upgrade_flag:
            logger.info("Item %d upgraded to %.1f", news_item_id, composite_score)

        return RoutingDecision(
            channel=channel,
            original_channel=base_channel,
            fade_level=fade_level,
            upgrade_flag=upgrade_flag,
            should_push=channel != CHANNEL_SUPPRESSED,
        )

    def get_pending_items(self, channel: str, limit: int = 50) -> list[PushItem]:
        return db.get_pending_items(self.conn, channel, limit)

    def mark_as_sent(self, news_item_ids: list[int]) -> None:
        db.mark_as_sent(self.conn, news_item_ids)

    def get_stats(self) -> list[dict]:
        return db.get_routing_stats(self.conn, utcnow() - STATS_WINDOW)
