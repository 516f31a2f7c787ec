"""Shared test fixtures."""

from __future__ import annotations

from datetime import timedelta

import pytest

from newsdesk.config import load_config
from newsdesk.db import get_connection, init_db
from newsdesk.deliver.base import BaseDelivery
from newsdesk.models import NormalizedArticle, PushItem, utcnow


class FakeDelivery(BaseDelivery):
    """Records sent messages; optionally fails with queued exceptions first."""

    def __init__(self, failures: list[Exception] | None = None):
        super().__init__({})
        self.sent: list[str] = []
        self.failures = list(failures or [])

    @property
    def name(self) -> str:
        return "fake"

    async def send(self, text: str) -> str:
        if self.failures:
            raise self.failures.pop(0)
        self.sent.append(text)
        return str(1000 + len(self.sent))

    async def send_test(self) -> bool:
        return True


@pytest.fixture
def sample_config(tmp_path):
    """Minimal config for testing (no real tokens)."""
    config_text = """
database:
  path: "DB_PATH_PLACEHOLDER"

sources:
  tier3:
    enabled: true
    feeds:
      - name: "Test-Feed"
        url: "https://example.com/feed.xml"
        category: "finance"
  tier4:
    enabled: false

scoring:
  tracked_symbols: [aapl, msft]
  has_holdings: false
  market_hours_aware: false

push:
  max_retries: 3
  base_delay: 0
  send_delay: 0

deliver:
  telegram:
    enabled: false
    bot_token: "fake"
    chat_id: "12345"

api:
  ingestion_secret: "s3cret"
"""
    db_path = str(tmp_path / "test.db")
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text(config_text.replace("DB_PATH_PLACEHOLDER", db_path))
    return load_config(str(cfg_path))


@pytest.fixture
def db_conn(sample_config):
    """Initialized test database connection."""
    db_path = sample_config["database"]["path"]
    init_db(db_path)
    conn = get_connection(db_path)
    yield conn
    conn.close()


@pytest.fixture
def make_article():
    """Factory for normalized articles published a few minutes ago."""
    counter = {"n": 0}

    def _make(**overrides) -> NormalizedArticle:
        counter["n"] += 1
        n = counter["n"]
        fields = {
            "external_id": f"test-{n}",
            "title": f"Apple reports record quarterly earnings beat, release {n:04d}",
            "url": f"https://example.com/news/{n}",
            "published_at": utcnow() - timedelta(minutes=2),
            "summary": "Apple Inc. (AAPL) posted revenue above analyst expectations.",
            "symbols": ["AAPL"],
        }
        fields.update(overrides)
        return NormalizedArticle(**fields)

    return _make


@pytest.fixture
def push_item():
    return PushItem(
        news_item_id=1,
        title="Fed raises interest rates by 25 basis points",
        url="https://www.federalreserve.gov/newsevents/pressreleases/monetary20261019a.htm",
        composite_score=8.4,
        summary="The Federal Reserve raised its benchmark rate, citing persistent inflation.",
        source_name="Federal-Reserve-News",
        symbols=["SPY"],
        published_at=utcnow(),
    )


@pytest.fixture
def fake_delivery():
    return FakeDelivery()
