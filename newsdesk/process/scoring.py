"""ImpactRank: 7-factor market-impact scoring.

Each factor is in [0, 1]. The composite is the weighted sum scaled to
0-10 and rounded to one decimal:

    freshness       time decay from published_at
    source_quality  fixed per source tier
    relevance       overlap with the caller's tracked symbols
    impact          strongest matching event keyword category
    novelty         how few recent articles share a symbol
    corroboration   independent sightings, supplied by the caller
    attention       reserved for social signals, always 0
"""

from __future__ import annotations

import logging
import re
import sqlite3
from datetime import datetime, timedelta

from newsdesk import db
from newsdesk.errors import ScoringError
from newsdesk.models import NormalizedArticle, ScoreResult, ScoringContext, utcnow

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS = {
    "freshness": 0.20,
    "source_quality": 0.20,
    "relevance": 0.15,
    "impact": 0.20,
    "novelty": 0.10,
    "corroboration": 0.10,
    "attention": 0.05,
}

TIER_QUALITY = {5: 1.0, 4: 0.85, 3: 0.65, 2: 0.40, 1: 0.20}
UNKNOWN_TIER_QUALITY = 0.5

# (age in minutes, score); linear in between, 1.0 before the first point
FRESHNESS_CURVE = [(5, 0.9), (60, 0.8), (360, 0.5), (1440, 0.1), (2880, 0.0)]

IMPACT_CATEGORIES = {
    "earnings": (["earnings", "revenue", "profit", "eps", "guidance", "beat", "miss"], 1.0),
    "merger": (["merger", "acquisition", "buyout", "takeover", "deal"], 0.95),
    "bankruptcy": (["bankruptcy", "chapter 11", "insolvency", "default"], 1.0),
    "lawsuit": (["lawsuit", "litigation", "settlement", "fraud", "investigation"], 0.75),
    "product": (["launch", "release", "recall", "approval", "fda"], 0.7),
    "executive": (["ceo", "cfo", "resign", "appoint", "hire", "fire"], 0.65),
    "dividend": (["dividend", "buyback", "split", "distribution"], 0.6),
    "upgrade": (["upgrade", "downgrade", "rating", "analyst", "target"], 0.55),
    "contract": (["contract", "partnership", "agreement", "collaboration"], 0.5),
}

# Inflections accepted after a keyword stem ("launch" -> "launches", "upgrade" -> "upgraded")
_INFLECTIONS = r"(?:s|es|d|ed|ing|ment|ments|ation|ations)?"


def keyword_pattern(keywords: list[str]) -> re.Pattern:
    """Case-insensitive regex matching any keyword or its common inflections as a whole word."""
    stems = []
    for keyword in keywords:
        stems.append(re.escape(keyword))
        if keyword.endswith("e"):
            stems.append(re.escape(keyword[:-1]))
    return re.compile(r"\b(?:" + "|".join(stems) + r")" + _INFLECTIONS + r"\b", re.I)


_IMPACT_PATTERNS = [
    (name, keyword_pattern(keywords), weight)
    for name, (keywords, weight) in IMPACT_CATEGORIES.items()
]

NOVELTY_WINDOW = timedelta(hours=6)


def calculate_freshness(published_at: datetime, now: datetime | None = None) -> float:
    """Piecewise-linear decay: 1.0 under 5 minutes, 0 from 48 hours."""
    now = now or utcnow()
    age_minutes = (now - published_at).total_seconds() / 60
    if age_minutes < FRESHNESS_CURVE[0][0]:
        return 1.0

    for (x0, y0), (x1, y1) in zip(FRESHNESS_CURVE, FRESHNESS_CURVE[1:]):
        if age_minutes < x1:
            return y0 + (y1 - y0) * (age_minutes - x0) / (x1 - x0)
    return 0.0


def calculate_source_quality(tier: int) -> float:
    return TIER_QUALITY.get(tier, UNKNOWN_TIER_QUALITY)


def calculate_relevance(article: NormalizedArticle, tracked: list[str]) -> float:
    if not tracked:
        score = 0.5
    elif article.primary_symbol and article.primary_symbol in tracked:
        score = 0.5
    elif any(s in tracked for s in article.symbols):
        score = 0.3
    else:
        score = 0.0

    if len(article.title) > 100:
        score += 0.1
    if article.summary and len(article.summary) > 100:
        score += 0.1
    return min(score, 1.0)


def calculate_impact(article: NormalizedArticle) -> float:
    """Weight of the strongest keyword category found, 0 if none."""
    text = f"{article.title} {article.summary or ''}"
    return max(
        (weight for _, pattern, weight in _IMPACT_PATTERNS if pattern.search(text)),
        default=0.0,
    )


def novelty_from_count(similar: int) -> float:
    if similar == 0:
        return 1.0
    if similar == 1:
        return 0.8
    if similar <= 3:
        return 0.6
    if similar <= 5:
        return 0.4
    return 0.2


def contextual_weights(is_market_hours: bool = False, has_holdings: bool = False) -> dict[str, float]:
    """Default weights adjusted for context and renormalised to sum to 1."""
    weights = dict(DEFAULT_WEIGHTS)
    if is_market_hours:
        weights.update(freshness=0.25, impact=0.25, source_quality=0.15)
    if has_holdings:
        weights.update(relevance=0.25, freshness=0.20, impact=0.20)

    total = sum(weights.values())
    return {k: v / total for k, v in weights.items()}


def calculate_composite(scores: dict[str, float], weights: dict[str, float]) -> float:
    weighted = sum(scores.get(k, 0.0) * w for k, w in weights.items())
    return min(max(round(weighted * 10, 1), 0.0), 10.0)


class Scorer:
    """Compute and persist ImpactRank scores."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def calculate_novelty(self, article: NormalizedArticle, now: datetime | None = None) -> float:
        if not article.symbols:
            return 1.0
        now = now or utcnow()
        try:
            similar = db.count_recent_symbol_matches(
                self.conn, article.symbols, now - NOVELTY_WINDOW, exclude_id=article.id,
            )
        except sqlite3.Error:
            logger.exception("Novelty lookup failed, using neutral score")
            return 0.5
        return novelty_from_count(similar)

    def score_article(
        self,
        article: NormalizedArticle,
        tier: int,
        context: ScoringContext | None = None,
    ) -> ScoreResult:
        """Score one article. Raises ScoringError on any bad input or failure."""
        context = context or ScoringContext()
        if not isinstance(article.published_at, datetime):
            raise ScoringError(f"Article {article.external_id} has no valid published_at")
        if isinstance(tier, bool) or not isinstance(tier, int):
            raise ScoringError(f"Invalid tier {tier!r} for {article.external_id}")

        now = context.now or utcnow()
        try:
            scores = {
                "freshness": calculate_freshness(article.published_at, now),
                "source_quality": calculate_source_quality(tier),
                "relevance": calculate_relevance(article, context.symbols),
                "impact": calculate_impact(article),
                "novelty": self.calculate_novelty(article, now),
                "corroboration": min(max(float(context.corroboration or 0.0), 0.0), 1.0),
                "attention": 0.0,
            }
            weights = contextual_weights(context.is_market_hours, context.has_holdings)
            composite = calculate_composite(scores, weights)
        except Exception as exc:
            raise ScoringError(f"Scoring failed for {article.external_id}: {exc}") from exc

        logger.debug("Scored %s: %.1f %s", article.external_id, composite, scores)
        return ScoreResult(scores=scores, composite=composite, weights_used=weights, scored_at=now)

    def store_score(self, news_item_id: int, result: ScoreResult) -> None:
        try:
            db.upsert_score(self.conn, news_item_id, result)
        except sqlite3.Error as exc:
            raise ScoringError(f"Failed to store score for {news_item_id}: {exc}") from exc
        logger.info("Stored score %.1f/10 for item %d", result.composite, news_item_id)
