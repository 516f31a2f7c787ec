"""Core data models for the news pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from newsdesk.errors import ValidationError

# Delivery channels
CHANNEL_URGENT = "urgent"
CHANNEL_DIGEST = "digest"
CHANNEL_SUPPRESSED = "suppressed"
CHANNELS = (CHANNEL_URGENT, CHANNEL_DIGEST, CHANNEL_SUPPRESSED)

# Ingestion outcomes
ACTION_SKIPPED = "skipped"
ACTION_SUPPRESSED = "suppressed"
ACTION_PUSHED = "pushed"
ACTION_ROUTED = "routed"


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass
class NormalizedArticle:
    """A news article in the common shape produced by every adapter."""

    external_id: str
    title: str
    url: str
    published_at: datetime | None
    summary: str = ""
    body: str = ""
    primary_symbol: str | None = None
    symbols: list[str] = field(default_factory=list)
    entities: dict = field(default_factory=dict)
    region: str = "US"
    lang: str = "en"
    tags: list[str] = field(default_factory=list)
    translated_title: str | None = None
    translated_summary: str | None = None
    ai_commentary: str | None = None
    fetched_at: datetime = field(default_factory=utcnow)
    id: int | None = None

    def __post_init__(self):
        if self.published_at is not None:
            self.published_at = to_naive_utc(self.published_at)
        if self.primary_symbol is None and self.symbols:
            self.primary_symbol = self.symbols[0]

    def validate(self) -> None:
        """Raise ValidationError unless all required fields are present."""
        if not self.external_id:
            raise ValidationError("external_id is required")
        if not self.title:
            raise ValidationError("title is required")
        if not self.url:
            raise ValidationError("url is required")
        if not isinstance(self.published_at, datetime):
            raise ValidationError("valid published_at is required")


@dataclass
class SourceInfo:
    """A registered news source."""

    name: str
    tier: int
    reliability_score: float = 3.0
    rate_limit_per_hour: int = 60
    fetch_interval_minutes: int = 15
    enabled: bool = True
    id: int | None = None


@dataclass
class FeedConfig:
    """One feed owned by an adapter."""

    name: str
    url: str
    region: str = "US"
    category: str = ""
    timeout: float = 12.0


@dataclass
class FetchBatch:
    """Result of one adapter fetch: accepted articles plus per-feed errors."""

    accepted: list[NormalizedArticle] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)


@dataclass
class DedupeEntry:
    """A row of the deduplication cache."""

    external_id: str
    url_hash: str
    topic_hash: str | None
    authority_level: int
    first_seen_at: datetime
    last_seen_at: datetime
    seen_count: int = 1
    id: int | None = None


@dataclass
class DedupResult:
    is_duplicate: bool
    reason: str  # url_match, topic_match, authority_upgrade, new_article, dedupe_error
    existing: DedupeEntry | None = None
    corroboration: int = 0
    upgraded: bool = False
    error: str | None = None


@dataclass
class ScoringContext:
    """Inputs to ImpactRank that come from the caller, not the article."""

    symbols: list[str] = field(default_factory=list)
    corroboration: float = 0.0
    is_market_hours: bool = False
    has_holdings: bool = False
    now: datetime | None = None


@dataclass
class ScoreResult:
    scores: dict[str, float]
    composite: float
    weights_used: dict[str, float]
    scored_at: datetime = field(default_factory=utcnow)


@dataclass
class RoutingDecision:
    channel: str
    original_channel: str
    fade_level: int = 0
    upgrade_flag: bool = False
    should_push: bool = True
    error: str | None = None


@dataclass
class PushItem:
    """Everything the formatter needs to render one chat message."""

    news_item_id: int | None
    title: str
    url: str
    composite_score: float = 0.0
    summary: str = ""
    source_name: str = ""
    symbols: list[str] = field(default_factory=list)
    region: str | None = None
    published_at: datetime | None = None
    translated_title: str | None = None
    translated_summary: str | None = None
    ai_commentary: str | None = None


@dataclass
class PushResult:
    success: bool
    message_id: str | None = None
    attempts: int = 0
    error: str | None = None


@dataclass
class BatchPushResult:
    sent: int = 0
    failed: int = 0
    total: int = 0
    results: list[PushResult] = field(default_factory=list)


@dataclass
class IngestOutcome:
    """What happened to one article on its way through the pipeline."""

    action: str  # skipped, suppressed, pushed, routed
    channel: str | None = None
    score: float | None = None
    message_id: str | None = None
    reason: str | None = None
    news_item_id: int | None = None
    fade_level: int = 0
    upgrade_flag: bool = False


@dataclass
class IngestionStats:
    total_fetched: int = 0
    total_stored: int = 0
    total_skipped: int = 0
    total_errors: int = 0
    by_tier: dict[int, dict] = field(default_factory=dict)
