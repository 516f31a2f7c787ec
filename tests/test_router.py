"""Tests for channel routing, fade and upgrade detection."""

from __future__ import annotations

import sqlite3
from unittest.mock import patch

import pytest

from newsdesk.db import get_routing_state, insert_article, upsert_score, upsert_source
from newsdesk.models import ScoreResult, SourceInfo
from newsdesk.process.routing import Router, apply_fade


@pytest.fixture
def router(db_conn):
    return Router(db_conn, {})


@pytest.fixture
def item_ids(db_conn, make_article):
    source_id = upsert_source(db_conn, SourceInfo(name="S", tier=4))
    return [insert_article(db_conn, make_article(), source_id) for _ in range(8)]


def test_determine_channel(router):
    assert router.determine_channel(10.0) == "urgent"
    assert router.determine_channel(9.9) == "digest"
    assert router.determine_channel(5.0) == "digest"
    assert router.determine_channel(0.0) == "digest"


def test_threshold_is_configurable(db_conn):
    router = Router(db_conn, {"routing": {"urgent_threshold": 8.0}})
    assert router.determine_channel(8.0) == "urgent"


@pytest.mark.parametrize("channel,fade,expected", [
    ("urgent", 0, "urgent"),
    ("urgent", 1, "digest"),
    ("digest", 1, "digest"),
    ("digest", 2, "digest"),
    ("urgent", 3, "digest"),
    ("digest", 3, "suppressed"),
    ("digest", 4, "suppressed"),
    ("urgent", 5, "suppressed"),
    ("digest", 5, "suppressed"),
])
def test_apply_fade(channel, fade, expected):
    assert apply_fade(channel, fade) == expected


def test_fade_escalates_per_topic(router, item_ids):
    levels = []
    for item_id in item_ids:
        decision = router.route_news_item(item_id, 6.0, {"topic_hash": "topic-a"})
        levels.append(decision.fade_level)
    assert levels == [0, 1, 2, 3, 4, 5, 5, 5]


def test_fade_level_five_is_suppressed_regardless_of_score(router, item_ids):
    for item_id in item_ids[:5]:
        router.route_news_item(item_id, 6.0, {"topic_hash": "topic-a"})
    decision = router.route_news_item(item_ids[5], 10.0, {"topic_hash": "topic-a"})
    assert decision.fade_level == 5
    assert decision.channel == "suppressed"
    assert decision.original_channel == "urgent"
    assert decision.should_push is False


def test_no_topic_hash_means_no_fade(router, item_ids):
    for item_id in item_ids[:3]:
        decision = router.route_news_item(item_id, 10.0)
        assert decision.fade_level == 0
        assert decision.channel == "urgent"


def test_rerouting_same_item_does_not_fade_itself(router, item_ids):
    router.route_news_item(item_ids[0], 6.0, {"topic_hash": "t"})
    decision = router.route_news_item(item_ids[0], 6.0, {"topic_hash": "t"})
    assert decision.fade_level == 0


def test_detect_upgrade(router):
    assert router.detect_upgrade(1, 7.0, previous=5.0) is True
    assert router.detect_upgrade(1, 6.9, previous=5.0) is False
    assert router.detect_upgrade(1, 7.0, previous=None) is False


def test_detect_upgrade_reads_stored_score(db_conn, router, item_ids):
    scores = dict.fromkeys(
        ["freshness", "source_quality", "relevance", "impact", "novelty", "corroboration", "attention"],
        0.0,
    )
    upsert_score(db_conn, item_ids[0], ScoreResult(scores=scores, composite=4.0, weights_used={}))
    assert router.detect_upgrade(item_ids[0], 6.5) is True
    assert router.detect_upgrade(item_ids[0], 5.0) is False


def test_route_persists_state(db_conn, router, item_ids):
    decision = router.route_news_item(item_ids[0], 8.0, {"topic_hash": "t", "previous_score": 5.5})
    assert decision.channel == "digest"
    assert decision.upgrade_flag is True

    state = get_routing_state(db_conn, item_ids[0])
    assert state["channel"] == "digest"
    assert state["status"] == "pending"
    assert state["upgrade_flag"] == 1


def test_store_error_falls_back_to_digest(router, item_ids):
    with patch(
        "newsdesk.process.routing.db.upsert_routing_state",
        side_effect=sqlite3.OperationalError("disk I/O error"),
    ):
        decision = router.route_news_item(item_ids[0], 10.0, {"topic_hash": "t"})
    assert decision.channel == "digest"
    assert decision.should_push is True
    assert "disk I/O error" in decision.error


def test_pending_and_mark_as_sent(db_conn, router, item_ids):
    scores = dict.fromkeys(
        ["freshness", "source_quality", "relevance", "impact", "novelty", "corroboration", "attention"],
        0.5,
    )
    for item_id, composite in zip(item_ids[:2], (5.0, 7.0)):
        upsert_score(db_conn, item_id, ScoreResult(scores=scores, composite=composite, weights_used={}))
        router.route_news_item(item_id, composite)

    pending = router.get_pending_items("digest")
    assert [p.news_item_id for p in pending] == [item_ids[1], item_ids[0]]

    router.mark_as_sent([item_ids[1]])
    assert [p.news_item_id for p in router.get_pending_items("digest")] == [item_ids[0]]

    stats = {(s["channel"], s["status"]): s["count"] for s in router.get_stats()}
    assert stats == {("digest", "pending"): 1, ("digest", "sent"): 1}
