"""Tier 4: premium financial media."""

from __future__ import annotations

from newsdesk.ingest import register_adapter
from newsdesk.ingest.base import BaseAdapter
from newsdesk.models import FeedConfig, NormalizedArticle
from newsdesk.process.scoring import keyword_pattern

IMPACT_PATTERNS = {
    "earnings": keyword_pattern(["earnings", "revenue", "profit", "loss", "eps", "guidance"]),
    "merger": keyword_pattern(["merger", "acquisition", "buyout", "takeover", "deal"]),
    "lawsuit": keyword_pattern(["lawsuit", "litigation", "settlement", "fraud", "investigation"]),
    "product": keyword_pattern(["launch", "release", "recall", "approval", "fda"]),
    "executive": keyword_pattern(["ceo", "cfo", "resign", "appoint", "hire", "fire"]),
    "bankruptcy": keyword_pattern(["bankruptcy", "chapter 11", "insolvency", "default"]),
    "upgrade": keyword_pattern(["upgrade", "downgrade", "rating", "analyst", "target"]),
}


def detect_impact_keywords(text: str) -> list[str]:
    return [name for name, pattern in IMPACT_PATTERNS.items() if pattern.search(text)]


@register_adapter("tier4")
class PremiumMediaAdapter(BaseAdapter):
    """Reuters, WSJ, FT and MarketWatch."""

    key = "tier4"
    tier = 4
    reliability_score = 4.8
    rate_limit_per_hour = 120
    fetch_interval_minutes = 5
    default_timeout = 15.0
    default_feeds = [
        FeedConfig(
            name="Reuters-Business",
            url="https://www.reutersagency.com/feed/?taxonomy=best-topics&post_type=best",
            region="Global",
            category="business",
            timeout=15.0,
        ),
        FeedConfig(
            name="WSJ-Markets",
            url="https://feeds.a.dj.com/rss/RSSMarketsMain.xml",
            region="US",
            category="markets",
            timeout=15.0,
        ),
        FeedConfig(
            name="FT-Companies",
            url="https://www.ft.com/companies?format=rss",
            region="Global",
            category="companies",
            timeout=15.0,
        ),
        FeedConfig(
            name="MarketWatch-Top",
            url="http://feeds.marketwatch.com/marketwatch/topstories/",
            region="US",
            category="markets",
            timeout=15.0,
        ),
    ]

    @property
    def name(self) -> str:
        return "Tier4-Premium-Media"

    def build_tags(self, feed: FeedConfig, categories: list[str]) -> list[str]:
        return ["premium-media", "tier4", *categories]

    def enrich(self, article: NormalizedArticle, feed: FeedConfig) -> None:
        article.entities["impact_keywords"] = detect_impact_keywords(
            f"{article.title} {article.summary}"
        )
