"""APScheduler timers for ingestion, digest and cache cleanup."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from newsdesk.config import get_scheduler_config
from newsdesk.models import utcnow
from newsdesk.pipeline import NewsPipeline

logger = logging.getLogger(__name__)


class NewsScheduler:
    """Three independent interval jobs. Each job logs its own failures and carries on."""

    def __init__(self, pipeline: NewsPipeline, config: dict):
        self.pipeline = pipeline
        self.settings = get_scheduler_config(config)
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self._add_jobs()

    @property
    def ingestion_interval_minutes(self) -> int:
        configured = self.settings["ingestion_interval_minutes"]
        if configured:
            return int(configured)
        return self.pipeline.ingestion_interval_minutes

    def _add_jobs(self) -> None:
        now = datetime.now().astimezone()
        self.scheduler.add_job(
            self.ingestion_job,
            IntervalTrigger(minutes=self.ingestion_interval_minutes),
            id="ingestion",
            next_run_time=now,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self.digest_job,
            IntervalTrigger(hours=self.settings["digest_interval_hours"]),
            id="digest",
            next_run_time=now,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self.cleanup_job,
            IntervalTrigger(hours=self.settings["cleanup_interval_hours"]),
            id="cleanup",
            max_instances=1,
            coalesce=True,
        )

    async def ingestion_job(self) -> None:
        lookback = timedelta(minutes=self.settings["ingestion_lookback_minutes"])
        try:
            await self.pipeline.run_ingestion_cycle(since=utcnow() - lookback)
        except Exception:
            logger.exception("Scheduled ingestion failed")

    async def digest_job(self) -> None:
        try:
            result = await self.pipeline.run_digest(
                lookback_hours=self.settings["digest_lookback_hours"],
                limit=self.settings["digest_limit"],
            )
            if result is not None:
                logger.info("Digest: %d/%d sent", result.sent, result.total)
        except Exception:
            logger.exception("Scheduled digest failed")

    async def cleanup_job(self) -> None:
        try:
            self.pipeline.cleanup_cache()
        except Exception:
            logger.exception("Scheduled cache cleanup failed")

    def start(self) -> None:
        """Start the timers. Must be called from inside a running event loop."""
        self.scheduler.start()
        logger.info(
            "Scheduler started: ingestion every %d min, digest every %.1fh, cleanup every %.1fh",
            self.ingestion_interval_minutes,
            self.settings["digest_interval_hours"],
            self.settings["cleanup_interval_hours"],
        )

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
