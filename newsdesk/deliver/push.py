"""Push service: format, send with retries, and audit every attempt."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import timedelta

from newsdesk import db
from newsdesk.config import get_push_config
from newsdesk.deliver.base import BaseDelivery
from newsdesk.deliver.format import MAX_MESSAGE_LENGTH, format_push_message
from newsdesk.errors import PushError
from newsdesk.models import (
    CHANNEL_DIGEST,
    CHANNEL_URGENT,
    BatchPushResult,
    PushItem,
    PushResult,
    utcnow,
)
from newsdesk.retry import retry_async

logger = logging.getLogger(__name__)

STATS_WINDOW = timedelta(hours=24)


class PushService:
    """Deliver routed items. Never touches scoring or routing state."""

    def __init__(self, conn: sqlite3.Connection, delivery: BaseDelivery, config: dict | None = None):
        self.conn = conn
        self.delivery = delivery
        cfg = get_push_config(config or {})
        self.max_retries: int = cfg["max_retries"]
        self.base_delay: float = cfg["base_delay"]
        self.send_delay: float = cfg["send_delay"]
        self.max_length: int = getattr(delivery, "max_message_length", MAX_MESSAGE_LENGTH)

    def _record(
        self,
        item: PushItem,
        channel: str,
        outcome: str,
        attempt: int,
        message_id: str | None = None,
        error: str | None = None,
    ) -> None:
        try:
            db.insert_push_history(
                self.conn,
                item.news_item_id,
                channel,
                outcome,
                attempt=attempt,
                message_id=message_id,
                error_message=error,
            )
        except sqlite3.Error:
            logger.exception("Failed to record push history for item %s", item.news_item_id)

    async def _send_once(self, item: PushItem, channel: str, text: str, state: dict) -> str:
        state["attempts"] += 1
        attempt = state["attempts"]
        try:
            message_id = await self.delivery.send(text)
        except Exception as exc:
            self._record(item, channel, "failed", attempt, error=f"{type(exc).__name__}: {exc}")
            raise
        self._record(item, channel, "success", attempt, message_id=message_id)
        return message_id

    async def push_single(self, item: PushItem, channel: str = CHANNEL_URGENT) -> PushResult:
        """Send one item. Raises PushError once retries are exhausted."""
        text = format_push_message(item, self.max_length, channel=channel)
        state = {"attempts": 0}
        try:
            message_id = await retry_async(
                self._send_once,
                item,
                channel,
                text,
                state,
                max_retries=self.max_retries,
                base_delay=self.base_delay,
            )
        except Exception as exc:
            logger.error(
                "Push failed for item %s after %d attempt(s): %s",
                item.news_item_id, state["attempts"], exc,
            )
            raise PushError(
                f"Push failed for item {item.news_item_id}: {exc}", attempts=state["attempts"],
            ) from exc

        logger.info("Pushed item %s to %s (message %s)", item.news_item_id, channel, message_id)
        return PushResult(success=True, message_id=message_id, attempts=state["attempts"])

    async def push_batch(self, items: list[PushItem], channel: str = CHANNEL_DIGEST) -> BatchPushResult:
        """Send each item as its own message, highest score first."""
        result = BatchPushResult(total=len(items))
        ordered = sorted(items, key=lambda i: i.composite_score or 0.0, reverse=True)

        for i, item in enumerate(ordered):
            if i > 0 and self.send_delay > 0:
                await asyncio.sleep(self.send_delay)
            try:
                pushed = await self.push_single(item, channel=channel)
            except PushError as exc:
                result.failed += 1
                result.results.append(PushResult(success=False, attempts=exc.attempts, error=str(exc)))
                continue
            result.sent += 1
            result.results.append(pushed)

        logger.info("%s batch: %d sent, %d failed of %d", channel, result.sent, result.failed, result.total)
        return result

    def get_stats(self) -> list[dict]:
        return db.get_push_stats(self.conn, utcnow() - STATS_WINDOW)
