"""Tier 5: official regulatory and central bank releases."""

from __future__ import annotations

from newsdesk.ingest import register_adapter
from newsdesk.ingest.base import BaseAdapter
from newsdesk.models import FeedConfig, NormalizedArticle

# Checked in order against the lower-cased title
REGULATORY_TYPES = [
    ("8-k", "8-K"),
    ("10-k", "10-K"),
    ("10-q", "10-Q"),
    ("13f", "13F"),
    ("press release", "Press Release"),
    ("interest rate", "Monetary Policy"),
]


def detect_regulatory_type(title: str) -> str:
    lowered = title.lower()
    for needle, label in REGULATORY_TYPES:
        if needle in lowered:
            return label
    return "General"


@register_adapter("tier5")
class RegulatoryAdapter(BaseAdapter):
    """SEC EDGAR current filings and Federal Reserve press releases."""

    key = "tier5"
    tier = 5
    reliability_score = 5.0
    rate_limit_per_hour = 60
    fetch_interval_minutes = 15
    default_timeout = 15.0
    default_feeds = [
        FeedConfig(
            name="SEC-EDGAR-Latest",
            url=(
                "https://www.sec.gov/cgi-bin/browse-edgar?action=getcurrent&CIK=&type="
                "&company=&dateb=&owner=include&start=0&count=40&output=atom"
            ),
            region="US",
            category="filings",
            timeout=15.0,
        ),
        FeedConfig(
            name="Federal-Reserve-News",
            url="https://www.federalreserve.gov/feeds/press_all.xml",
            region="US",
            category="monetary-policy",
            timeout=15.0,
        ),
    ]

    @property
    def name(self) -> str:
        return "Tier5-Regulatory"

    def build_tags(self, feed: FeedConfig, categories: list[str]) -> list[str]:
        return ["regulatory", "official", *categories]

    def enrich(self, article: NormalizedArticle, feed: FeedConfig) -> None:
        article.entities["regulatory_type"] = detect_regulatory_type(article.title)
