"""Tests for the APScheduler wiring."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from newsdesk.models import BatchPushResult, IngestionStats
from newsdesk.scheduler import NewsScheduler


@pytest.fixture
def fake_pipeline():
    pipeline = MagicMock()
    pipeline.ingestion_interval_minutes = 5
    pipeline.run_ingestion_cycle = AsyncMock(return_value=IngestionStats())
    pipeline.run_digest = AsyncMock(return_value=BatchPushResult(sent=2, total=2))
    pipeline.cleanup_cache = MagicMock(return_value=3)
    return pipeline


def _interval_seconds(scheduler: NewsScheduler, job_id: str) -> float:
    return scheduler.scheduler.get_job(job_id).trigger.interval.total_seconds()


def test_jobs_registered_with_intervals(fake_pipeline):
    config = {"scheduler": {"digest_interval_hours": 4, "cleanup_interval_hours": 6}}
    sched = NewsScheduler(fake_pipeline, config)

    assert {job.id for job in sched.scheduler.get_jobs()} == {"ingestion", "digest", "cleanup"}
    assert _interval_seconds(sched, "ingestion") == 5 * 60
    assert _interval_seconds(sched, "digest") == 4 * 3600
    assert _interval_seconds(sched, "cleanup") == 6 * 3600
    assert sched.scheduler.get_job("ingestion").max_instances == 1


def test_configured_ingestion_interval_wins(fake_pipeline):
    sched = NewsScheduler(fake_pipeline, {"scheduler": {"ingestion_interval_minutes": 2}})
    assert sched.ingestion_interval_minutes == 2
    assert _interval_seconds(sched, "ingestion") == 120


@pytest.mark.asyncio
async def test_jobs_call_pipeline(fake_pipeline):
    sched = NewsScheduler(fake_pipeline, {"scheduler": {"digest_limit": 5, "digest_lookback_hours": 6}})

    await sched.ingestion_job()
    await sched.digest_job()
    await sched.cleanup_job()

    assert fake_pipeline.run_ingestion_cycle.await_count == 1
    assert "since" in fake_pipeline.run_ingestion_cycle.call_args.kwargs
    fake_pipeline.run_digest.assert_awaited_once_with(lookback_hours=6.0, limit=5)
    fake_pipeline.cleanup_cache.assert_called_once()


@pytest.mark.asyncio
async def test_job_failures_are_contained(fake_pipeline):
    fake_pipeline.run_ingestion_cycle.side_effect = RuntimeError("network down")
    fake_pipeline.run_digest.side_effect = RuntimeError("telegram down")
    fake_pipeline.cleanup_cache.side_effect = RuntimeError("db locked")
    sched = NewsScheduler(fake_pipeline, {})

    await sched.ingestion_job()
    await sched.digest_job()
    await sched.cleanup_job()


@pytest.mark.asyncio
async def test_start_and_shutdown(fake_pipeline):
    sched = NewsScheduler(fake_pipeline, {})
    sched.start()
    assert sched.scheduler.running
    sched.shutdown()
