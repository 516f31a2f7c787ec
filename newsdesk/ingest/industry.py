"""Tier 3: tech and finance aggregators."""

from __future__ import annotations

from newsdesk.ingest import register_adapter
from newsdesk.ingest.base import BaseAdapter
from newsdesk.models import FeedConfig


@register_adapter("tier3")
class IndustryAggregatorAdapter(BaseAdapter):
    key = "tier3"
    tier = 3
    reliability_score = 3.8
    rate_limit_per_hour = 180
    fetch_interval_minutes = 10
    default_timeout = 12.0
    default_feeds = [
        FeedConfig(name="TechCrunch", url="https://techcrunch.com/feed/", category="tech"),
        FeedConfig(name="The-Verge", url="https://www.theverge.com/rss/index.xml", category="tech"),
        FeedConfig(
            name="Yahoo-Finance", url="https://finance.yahoo.com/news/rssindex", category="finance",
        ),
        FeedConfig(name="Seeking-Alpha", url="https://seekingalpha.com/feed.xml", category="finance"),
        FeedConfig(name="Benzinga", url="https://www.benzinga.com/feed", category="finance"),
    ]

    @property
    def name(self) -> str:
        return "Tier3-Industry-Aggregator"

    def build_tags(self, feed: FeedConfig, categories: list[str]) -> list[str]:
        tags = ["tier3"]
        if feed.category:
            tags.append(feed.category)
        return tags + [c for c in categories if c not in tags]
