"""Abstract base class for tiered source adapters."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime, timedelta

import httpx

from newsdesk.config import get_adapter_config
from newsdesk.errors import FeedFetchError, ValidationError
from newsdesk.ingest.feeds import USER_AGENT, fetch_feed
from newsdesk.ingest.normalize import normalize_feed_item
from newsdesk.models import FeedConfig, FetchBatch, NormalizedArticle, SourceInfo, to_naive_utc, utcnow

logger = logging.getLogger(__name__)


class BaseAdapter(ABC):
    """A fixed list of feeds sharing one tier, rate limit and fetch interval.

    Subclasses set the class attributes and may override `build_tags` and
    `enrich` to attach tier-specific tags and entities.
    """

    key: str = ""
    tier: int = 3
    reliability_score: float = 3.0
    rate_limit_per_hour: int = 60
    fetch_interval_minutes: int = 15
    default_timeout: float = 12.0
    default_feeds: list[FeedConfig] = []

    def __init__(self, config: dict | None = None):
        cfg = get_adapter_config(config or {}, self.key)
        self.enabled: bool = bool(cfg.get("enabled", True))
        self.rate_limit_per_hour = int(cfg.get("rate_limit_per_hour", self.rate_limit_per_hour))
        self.fetch_interval_minutes = int(
            cfg.get("fetch_interval_minutes", self.fetch_interval_minutes)
        )
        if cfg.get("feeds"):
            self.feeds = [
                FeedConfig(
                    name=f["name"],
                    url=f["url"],
                    region=f.get("region", "US"),
                    category=f.get("category", ""),
                    timeout=float(f.get("timeout", self.default_timeout)),
                )
                for f in cfg["feeds"]
            ]
        else:
            self.feeds = list(self.default_feeds)
        self.last_run: datetime | None = None
        self._requests: deque[datetime] = deque()

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name, unique across the store."""
        ...

    def validate(self) -> None:
        if not self.name:
            raise ValidationError(f"{type(self).__name__} has no name")
        if not 1 <= int(self.tier) <= 5:
            raise ValidationError(f"{self.name}: tier must be 1-5, got {self.tier}")

    def source_metadata(self) -> SourceInfo:
        return SourceInfo(
            name=self.name,
            tier=self.tier,
            reliability_score=self.reliability_score,
            rate_limit_per_hour=self.rate_limit_per_hour,
            fetch_interval_minutes=self.fetch_interval_minutes,
            enabled=self.enabled,
        )

    def due(self, now: datetime | None = None) -> bool:
        """True when the fetch interval has elapsed since the last run."""
        if self.last_run is None:
            return True
        now = now or utcnow()
        return now - self.last_run >= timedelta(minutes=self.fetch_interval_minutes)

    def _take_request_slot(self, now: datetime) -> bool:
        window_start = now - timedelta(hours=1)
        while self._requests and self._requests[0] <= window_start:
            self._requests.popleft()
        if len(self._requests) >= self.rate_limit_per_hour:
            return False
        self._requests.append(now)
        return True

    def build_tags(self, feed: FeedConfig, categories: list[str]) -> list[str]:
        return [f"tier{self.tier}", *categories]

    def enrich(self, article: NormalizedArticle, feed: FeedConfig) -> None:
        """Hook for tier-specific entities."""

    def normalize(self, item: dict, feed: FeedConfig) -> NormalizedArticle:
        return normalize_feed_item(item, feed, self)

    async def fetch_batch(
        self,
        since: datetime,
        until: datetime | None = None,
        limit: int = 100,
        client: httpx.AsyncClient | None = None,
    ) -> FetchBatch:
        """Fetch every feed in turn. Feed failures land in `errors`, never raise."""
        since = to_naive_utc(since)
        until = to_naive_utc(until) if until else utcnow()
        self.last_run = utcnow()
        batch = FetchBatch()

        own_client = client is None
        if own_client:
            client = httpx.AsyncClient(
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
                timeout=self.default_timeout,
            )

        try:
            for feed in self.feeds:
                if not self._take_request_slot(utcnow()):
                    batch.errors.append(FeedFetchError(
                        feed.name, f"rate limit of {self.rate_limit_per_hour}/h reached",
                    ))
                    continue
                await self._fetch_one(client, feed, since, until, limit, batch)
        finally:
            if own_client:
                await client.aclose()

        logger.info(
            "%s fetched %d articles (%d errors) from %d feeds",
            self.name, len(batch.accepted), len(batch.errors), len(self.feeds),
        )
        return batch

    async def _fetch_one(
        self,
        client: httpx.AsyncClient,
        feed: FeedConfig,
        since: datetime,
        until: datetime,
        limit: int,
        batch: FetchBatch,
    ) -> None:
        try:
            items = await fetch_feed(client, feed)
        except FeedFetchError as exc:
            logger.warning("%s: %s", self.name, exc)
            batch.errors.append(exc)
            return
        except Exception as exc:
            logger.exception("%s: unexpected error fetching %s", self.name, feed.name)
            batch.errors.append(FeedFetchError(feed.name, str(exc)))
            return

        kept = 0
        for item in items:
            if kept >= limit:
                break
            try:
                article = self.normalize(item, feed)
            except ValidationError as exc:
                logger.debug("Rejected item: %s", exc)
                batch.errors.append(exc)
                continue
            if not since <= article.published_at <= until:
                continue
            batch.accepted.append(article)
            kept += 1
