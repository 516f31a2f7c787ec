"""Tests for the push service: retries, batching and audit log."""

from __future__ import annotations

import pytest

from newsdesk.db import get_push_history
from newsdesk.deliver.push import PushService
from newsdesk.errors import PushError
from newsdesk.models import PushItem


class TimedOut(Exception):
    pass


class Forbidden(Exception):
    pass


def _item(news_item_id: int, score: float) -> PushItem:
    return PushItem(
        news_item_id=news_item_id,
        title=f"Story {news_item_id}",
        url=f"https://example.com/{news_item_id}",
        composite_score=score,
    )


@pytest.fixture
def service(db_conn, sample_config, fake_delivery):
    return PushService(db_conn, fake_delivery, sample_config)


@pytest.mark.asyncio
async def test_push_single_success(db_conn, service, fake_delivery, push_item):
    result = await service.push_single(push_item)

    assert result.success is True
    assert result.attempts == 1
    assert result.message_id == "1001"
    assert len(fake_delivery.sent) == 1

    history = get_push_history(db_conn, push_item.news_item_id)
    assert len(history) == 1
    assert history[0]["outcome"] == "success"
    assert history[0]["channel"] == "urgent"
    assert history[0]["message_id"] == "1001"


@pytest.mark.asyncio
async def test_transient_failures_are_retried_and_audited(db_conn, service, fake_delivery, push_item):
    fake_delivery.failures = [TimedOut("slow"), TimedOut("slow again")]
    result = await service.push_single(push_item)

    assert result.success is True
    assert result.attempts == 3
    history = get_push_history(db_conn, push_item.news_item_id)
    assert [(h["attempt"], h["outcome"]) for h in history] == [
        (1, "failed"), (2, "failed"), (3, "success"),
    ]
    assert "TimedOut" in history[0]["error_message"]


@pytest.mark.asyncio
async def test_gives_up_after_three_retries(db_conn, service, fake_delivery, push_item):
    fake_delivery.failures = [TimedOut("down")] * 10
    with pytest.raises(PushError) as excinfo:
        await service.push_single(push_item)

    assert excinfo.value.attempts == 4
    history = get_push_history(db_conn, push_item.news_item_id)
    assert len(history) == 4
    assert all(h["outcome"] == "failed" for h in history)


@pytest.mark.asyncio
async def test_permanent_error_is_not_retried(db_conn, service, fake_delivery, push_item):
    fake_delivery.failures = [Forbidden("bot was kicked")]
    with pytest.raises(PushError):
        await service.push_single(push_item)
    assert len(get_push_history(db_conn, push_item.news_item_id)) == 1


@pytest.mark.asyncio
async def test_push_batch_orders_by_score_and_counts_failures(db_conn, service, fake_delivery):
    items = [_item(1, 5.0), _item(2, 9.0), _item(3, 7.0)]
    fake_delivery.failures = [Forbidden("blocked")]

    result = await service.push_batch(items, channel="digest")

    assert result.total == 3
    assert result.sent == 2
    assert result.failed == 1
    # Item 2 (highest score) went first and hit the failure
    assert get_push_history(db_conn, 2)[0]["outcome"] == "failed"
    assert "Story 3" in fake_delivery.sent[0]
    assert "Story 1" in fake_delivery.sent[1]
    assert get_push_history(db_conn, 1)[0]["channel"] == "digest"


@pytest.mark.asyncio
async def test_stats(service, push_item, fake_delivery):
    fake_delivery.failures = [Forbidden("no")]
    with pytest.raises(PushError):
        await service.push_single(push_item)
    await service.push_single(push_item)

    stats = {(s["channel"], s["outcome"]): s["count"] for s in service.get_stats()}
    assert stats == {("urgent", "failed"): 1, ("urgent", "success"): 1}
