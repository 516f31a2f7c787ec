"""Tests for feed parsing, normalization and tiered adapters."""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from newsdesk.errors import FeedFetchError, NormalizationError
from newsdesk.ingest import ADAPTERS, build_adapters
from newsdesk.ingest.feeds import entry_to_item, fetch_feed, parse_feed, strip_html
from newsdesk.ingest.industry import IndustryAggregatorAdapter
from newsdesk.ingest.normalize import normalize_feed_item, parse_published
from newsdesk.ingest.premium import PremiumMediaAdapter
from newsdesk.ingest.regulatory import RegulatoryAdapter, detect_regulatory_type
from newsdesk.models import FeedConfig, utcnow


class FakeEntry(dict):
    """Dict subclass that also supports attribute access (like feedparser)."""

    def __getattr__(self, key):
        try:
            return self[key]
        except KeyError:
            raise AttributeError(key)


SAMPLE_RSS = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Markets</title>
    <item>
      <title>Microsoft (MSFT) raises dividend</title>
      <link>https://example.com/msft-dividend</link>
      <guid>msft-1</guid>
      <description>&lt;p&gt;The board approved a &lt;b&gt;10%&lt;/b&gt; increase.&lt;/p&gt;</description>
      <pubDate>Mon, 19 Oct 2026 13:45:00 GMT</pubDate>
      <category>dividends</category>
    </item>
  </channel>
</rss>
"""


def _item(n: int = 1, minutes_ago: int = 5, **overrides) -> dict:
    published = utcnow() - timedelta(minutes=minutes_ago)
    item = {
        "title": f"Nvidia ships new data center chip, batch {n}",
        "link": f"https://example.com/nvda/{n}",
        "description": "<p>Nvidia (NVDA) said shipments begin this quarter.</p>",
        "pubDate": published.strftime("%a, %d %b %Y %H:%M:%S +0000"),
        "guid": f"nvda-{n}",
        "category": ["chips"],
        "content": "",
    }
    item.update(overrides)
    return item


@pytest.fixture
def industry_config():
    return {
        "sources": {
            "tier3": {
                "enabled": True,
                "feeds": [
                    {"name": "Feed-A", "url": "https://a.example.com/rss", "category": "finance"},
                    {"name": "Feed-B", "url": "https://b.example.com/rss", "category": "tech"},
                ],
            }
        }
    }


# --- feeds ---


def test_strip_html():
    assert strip_html("<p>Hello&nbsp;<b>world</b></p>\n\n  again") == "Hello world again"
    assert strip_html(None) == ""


def test_entry_to_item():
    entry = FakeEntry(
        title="Fed holds rates",
        link="https://example.com/fed",
        id="fed-123",
        summary="<p>No change.</p>",
        published_parsed=time.strptime("2026-10-19 14:00:00", "%Y-%m-%d %H:%M:%S"),
        tags=[{"term": "policy"}, {"term": None}],
        content=[{"value": "<p>Full text</p>"}],
    )
    item = entry_to_item(entry)

    assert item["title"] == "Fed holds rates"
    assert item["guid"] == "fed-123"
    assert item["pubDate"] == datetime(2026, 10, 19, 14, 0, 0)
    assert item["category"] == ["policy"]
    assert item["content"] == "<p>Full text</p>"


def test_entry_without_link_falls_back_to_guid():
    item = entry_to_item(FakeEntry(title="x", id="https://example.com/by-guid"))
    assert item["link"] == "https://example.com/by-guid"
    assert item["pubDate"] is None


def test_parse_feed():
    items = parse_feed(SAMPLE_RSS)
    assert len(items) == 1
    assert items[0]["link"] == "https://example.com/msft-dividend"
    assert items[0]["pubDate"] == datetime(2026, 10, 19, 13, 45)
    assert items[0]["category"] == ["dividends"]


@pytest.mark.asyncio
async def test_fetch_feed_success():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=SAMPLE_RSS))
    async with httpx.AsyncClient(transport=transport) as client:
        items = await fetch_feed(client, FeedConfig(name="Example", url="https://example.com/rss"))
    assert items[0]["guid"] == "msft-1"


@pytest.mark.asyncio
async def test_fetch_feed_http_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(FeedFetchError, match="HTTP 503"):
            await fetch_feed(client, FeedConfig(name="Example", url="https://example.com/rss"))


@pytest.mark.asyncio
async def test_fetch_feed_timeout():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(FeedFetchError, match="timed out") as excinfo:
            await fetch_feed(client, FeedConfig(name="Slow-Feed", url="https://example.com/rss"))
    assert excinfo.value.feed_name == "Slow-Feed"


# --- normalize ---


def test_parse_published_formats():
    assert parse_published("Mon, 19 Oct 2026 13:45:00 GMT") == datetime(2026, 10, 19, 13, 45)
    assert parse_published("2026-10-19T09:45:00-04:00") == datetime(2026, 10, 19, 13, 45)
    assert parse_published("2026-10-19T13:45:00Z") == datetime(2026, 10, 19, 13, 45)
    assert parse_published("not a date") is None
    assert parse_published("") is None
    assert parse_published(None) is None


def test_normalize_feed_item():
    adapter = IndustryAggregatorAdapter()
    feed = FeedConfig(name="Benzinga", url="https://www.benzinga.com/feed", category="finance")
    article = normalize_feed_item(_item(), feed, adapter)

    assert article.external_id == "tier3_Benzinga_nvda-1"
    assert article.summary == "Nvidia (NVDA) said shipments begin this quarter."
    assert article.body == article.summary
    assert article.symbols == ["NVDA"]
    assert article.primary_symbol == "NVDA"
    assert article.entities["source"] == "Benzinga"
    assert article.tags == ["tier3", "finance", "chips"]


@pytest.mark.parametrize("overrides", [
    {"title": ""},
    {"link": "", "guid": ""},
    {"pubDate": "yesterday-ish"},
    {"pubDate": None},
])
def test_normalize_rejects_incomplete_items(overrides):
    adapter = IndustryAggregatorAdapter()
    feed = FeedConfig(name="Benzinga", url="https://www.benzinga.com/feed")
    with pytest.raises(NormalizationError):
        normalize_feed_item(_item(**overrides), feed, adapter)


# --- adapters ---


def test_adapters_registered():
    assert set(ADAPTERS) == {"tier3", "tier4", "tier5"}
    adapters = {a.tier: a for a in build_adapters({})}
    assert adapters[5].name == "Tier5-Regulatory"
    assert adapters[4].name == "Tier4-Premium-Media"
    assert adapters[3].name == "Tier3-Industry-Aggregator"
    for adapter in adapters.values():
        adapter.validate()


def test_default_metadata():
    meta = PremiumMediaAdapter().source_metadata()
    assert meta.tier == 4
    assert meta.reliability_score == 4.8
    assert meta.rate_limit_per_hour == 120
    assert meta.fetch_interval_minutes == 5


def test_config_overrides_feeds(industry_config):
    adapter = IndustryAggregatorAdapter(industry_config)
    assert [f.name for f in adapter.feeds] == ["Feed-A", "Feed-B"]
    assert adapter.feeds[0].timeout == 12.0
    assert len(IndustryAggregatorAdapter().feeds) == 5


def test_disabled_by_config():
    adapter = PremiumMediaAdapter({"sources": {"tier4": {"enabled": False}}})
    assert adapter.enabled is False


def test_due():
    adapter = RegulatoryAdapter()
    now = utcnow()
    assert adapter.due(now) is True
    adapter.last_run = now - timedelta(minutes=10)
    assert adapter.due(now) is False
    adapter.last_run = now - timedelta(minutes=15)
    assert adapter.due(now) is True


@pytest.mark.asyncio
@patch("newsdesk.ingest.base.fetch_feed", new_callable=AsyncMock)
async def test_fetch_batch_isolates_feed_errors(mock_fetch, industry_config):
    async def fake_fetch(client, feed):
        if feed.name == "Feed-A":
            raise FeedFetchError(feed.name, "HTTP 500")
        return [_item(1), _item(2)]

    mock_fetch.side_effect = fake_fetch
    adapter = IndustryAggregatorAdapter(industry_config)
    batch = await adapter.fetch_batch(utcnow() - timedelta(hours=1))

    assert len(batch.accepted) == 2
    assert len(batch.errors) == 1
    assert batch.errors[0].feed_name == "Feed-A"
    assert adapter.last_run is not None


@pytest.mark.asyncio
@patch("newsdesk.ingest.base.fetch_feed", new_callable=AsyncMock)
async def test_fetch_batch_wraps_unexpected_errors(mock_fetch, industry_config):
    mock_fetch.side_effect = RuntimeError("boom")
    batch = await IndustryAggregatorAdapter(industry_config).fetch_batch(utcnow() - timedelta(hours=1))
    assert batch.accepted == []
    assert all(isinstance(e, FeedFetchError) for e in batch.errors)
    assert len(batch.errors) == 2


@pytest.mark.asyncio
@patch("newsdesk.ingest.base.fetch_feed", new_callable=AsyncMock)
async def test_fetch_batch_filters_window_and_limit(mock_fetch, industry_config):
    mock_fetch.return_value = [
        _item(1, minutes_ago=5),
        _item(2, minutes_ago=10),
        _item(3, minutes_ago=180),
        _item(4, minutes_ago=15),
        _item(5, pubDate="garbage"),
    ]
    industry_config["sources"]["tier3"]["feeds"] = industry_config["sources"]["tier3"]["feeds"][:1]
    adapter = IndustryAggregatorAdapter(industry_config)

    batch = await adapter.fetch_batch(utcnow() - timedelta(hours=1), limit=2)

    assert [a.url for a in batch.accepted] == [
        "https://example.com/nvda/1",
        "https://example.com/nvda/2",
    ]

    batch = await adapter.fetch_batch(utcnow() - timedelta(hours=1))
    assert len(batch.accepted) == 3
    assert len(batch.errors) == 1
    assert isinstance(batch.errors[0], NormalizationError)


@pytest.mark.asyncio
@patch("newsdesk.ingest.base.fetch_feed", new_callable=AsyncMock)
async def test_fetch_batch_enforces_rate_limit(mock_fetch, industry_config):
    industry_config["sources"]["tier3"]["rate_limit_per_hour"] = 1
    mock_fetch.return_value = [_item(1)]
    adapter = IndustryAggregatorAdapter(industry_config)

    batch = await adapter.fetch_batch(utcnow() - timedelta(hours=1))

    assert mock_fetch.await_count == 1
    assert len(batch.accepted) == 1
    assert "rate limit" in str(batch.errors[0])


@pytest.mark.asyncio
@patch("newsdesk.ingest.base.fetch_feed", new_callable=AsyncMock)
async def test_regulatory_enrichment(mock_fetch):
    mock_fetch.return_value = [
        _item(1, title="8-K - Apple Inc. (0000320193) (Filer)", guid="edgar-1"),
    ]
    adapter = RegulatoryAdapter({"sources": {"tier5": {"feeds": [
        {"name": "SEC-EDGAR-Latest", "url": "https://www.sec.gov/atom"},
    ]}}})
    batch = await adapter.fetch_batch(utcnow() - timedelta(hours=1))

    article = batch.accepted[0]
    assert article.entities["regulatory_type"] == "8-K"
    assert article.tags[:2] == ["regulatory", "official"]
    assert article.external_id == "tier5_SEC-EDGAR-Latest_edgar-1"


def test_detect_regulatory_type():
    assert detect_regulatory_type("10-Q - Microsoft Corp") == "10-Q"
    assert detect_regulatory_type("Federal Reserve issues FOMC statement on interest rate") == "Monetary Policy"
    assert detect_regulatory_type("Speech by Governor Cook") == "General"


def test_premium_impact_keywords():
    adapter = PremiumMediaAdapter()
    feed = adapter.feeds[0]
    article = adapter.normalize(
        _item(1, title="Acme CEO resigns amid fraud investigation", description="Shares fell."),
        feed,
    )
    assert article.entities["impact_keywords"] == ["lawsuit", "executive"]
    assert article.region == "Global"
    assert article.tags[:2] == ["premium-media", "tier4"]
