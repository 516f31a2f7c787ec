"""CLI entrypoint: python -m newsdesk {run|init-db|ingest|digest|cleanup|test-telegram|stats}."""

from __future__ import annotations

import asyncio
import logging
import logging.handlers
import os
import sys
from pathlib import Path

from newsdesk.config import (
    get_db_path,
    get_ingest_api_config,
    get_scheduler_config,
    get_telegram_config,
    load_config,
)
from newsdesk.db import get_connection, init_db


def setup_logging(config: dict) -> None:
    """Configure logging with console + rotating file output."""
    root = logging.getLogger()
    root.setLevel(logging.INFO)

    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setFormatter(fmt)
    root.addHandler(console)

    # File handler (rotate at 5MB, keep 3 backups)
    db_path = get_db_path(config)
    log_dir = Path(db_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "newsdesk.log"

    file_handler = logging.handlers.RotatingFileHandler(
        str(log_file), maxBytes=5 * 1024 * 1024, backupCount=3,
    )
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("telegram").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("feedparser").setLevel(logging.WARNING)


logger = logging.getLogger("newsdesk")


def build_pipeline(config: dict):
    """Open the database, build adapters and delivery, and run startup checks."""
    from newsdesk.deliver import CHANNELS
    from newsdesk.ingest import build_adapters
    from newsdesk.pipeline import NewsPipeline

    conn = get_connection(get_db_path(config))
    delivery = None
    telegram = get_telegram_config(config)
    if telegram["enabled"] and telegram["bot_token"] and telegram["chat_id"]:
        delivery = CHANNELS["telegram"](config)
    else:
        logger.warning("Telegram delivery disabled or not configured; pushes are skipped")

    pipeline = NewsPipeline(conn, config, build_adapters(config), delivery)
    try:
        pipeline.startup()
    except Exception:
        conn.close()
        raise
    return pipeline


def cmd_init_db(config: dict) -> None:
    """Initialize the SQLite database."""
    db_path = get_db_path(config)
    init_db(db_path)
    print(f"Database initialized at {db_path}")


async def cmd_run(config: dict) -> None:
    """Run the scheduler and the ingestion API until interrupted."""
    import uvicorn

    from newsdesk.api import create_app
    from newsdesk.scheduler import NewsScheduler

    pipeline = build_pipeline(config)
    api_cfg = get_ingest_api_config(config)

    scheduler = None
    if get_scheduler_config(config)["enabled"]:
        scheduler = NewsScheduler(pipeline, config)
        scheduler.start()

    server = uvicorn.Server(uvicorn.Config(
        create_app(pipeline, api_cfg["secret"]),
        host=api_cfg["host"],
        port=api_cfg["port"],
        log_config=None,
    ))
    try:
        await server.serve()
    finally:
        if scheduler:
            scheduler.shutdown()
        pipeline.conn.close()


async def cmd_ingest(config: dict) -> None:
    """Run one ingestion cycle over all enabled adapters."""
    pipeline = build_pipeline(config)
    try:
        stats = await pipeline.run_ingestion_cycle()
    finally:
        pipeline.conn.close()

    for tier, counts in sorted(stats.by_tier.items(), reverse=True):
        print(
            f"  tier {tier}: {counts['fetched']} fetched, {counts['stored']} stored, "
            f"{counts['skipped']} skipped, {counts['errors']} errors"
        )
    print(
        f"\nTotal: {stats.total_fetched} fetched, {stats.total_stored} stored, "
        f"{stats.total_skipped} skipped, {stats.total_errors} errors"
    )


async def cmd_digest(config: dict) -> None:
    """Push one digest of the top items."""
    settings = get_scheduler_config(config)
    pipeline = build_pipeline(config)
    try:
        result = await pipeline.run_digest(
            lookback_hours=settings["digest_lookback_hours"], limit=settings["digest_limit"],
        )
    finally:
        pipeline.conn.close()

    if result is None:
        print("Digest skipped: no delivery channel configured")
        sys.exit(1)
    print(f"Digest: {result.sent} sent, {result.failed} failed of {result.total}")


def cmd_cleanup(config: dict) -> None:
    """Prune expired dedupe cache entries."""
    pipeline = build_pipeline(config)
    try:
        deleted = pipeline.cleanup_cache()
    finally:
        pipeline.conn.close()
    print(f"Deleted {deleted} expired cache entries")


async def cmd_test_telegram(config: dict) -> None:
    """Send a test message via Telegram."""
    from newsdesk.deliver import CHANNELS

    if "telegram" not in CHANNELS:
        print("Error: Telegram channel not registered")
        sys.exit(1)

    channel = CHANNELS["telegram"](config)
    success = await channel.send_test()
    if success:
        print("Telegram test message sent successfully")
    else:
        print("Telegram test failed, check logs")
        sys.exit(1)


def cmd_stats(config: dict) -> None:
    """Show per-source counts and 24h routing/push stats."""
    conn = get_connection(get_db_path(config))
    try:
        from newsdesk.pipeline import NewsPipeline

        status = NewsPipeline(conn, config).get_status()
    finally:
        conn.close()

    print(f"Articles stored: {status['articles']}\n")
    print(f"{'Tier':>4} {'Source':<28} {'Articles':>8} {'Last fetch'}")
    print("-" * 70)
    for s in status["sources"]:
        print(f"{s['tier']:>4} {s['name']:<28} {s['article_count']:>8} {s['last_fetch'] or '-'}")

    print("\nRouting (24h):")
    for r in status["routing"]:
        print(f"  {r['channel']:<11} {r['status']:<8} {r['count']:>5}  upgrades={r['upgrades'] or 0}")

    print("\nPushes (24h):")
    for p in status["push"]:
        print(f"  {p['channel']:<11} {p['outcome']:<8} {p['count']:>5}  last={p['last_sent']}")


COMMANDS = {
    "run": cmd_run,
    "init-db": cmd_init_db,
    "ingest": cmd_ingest,
    "digest": cmd_digest,
    "cleanup": cmd_cleanup,
    "test-telegram": cmd_test_telegram,
    "stats": cmd_stats,
}


def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1] not in COMMANDS:
        available = ", ".join(COMMANDS)
        print(f"Usage: python -m newsdesk {{{available}}}")
        sys.exit(1)

    command = sys.argv[1]
    config = load_config(os.environ.get("CONFIG_PATH", "config.yaml"))
    setup_logging(config)
    handler = COMMANDS[command]

    if asyncio.iscoroutinefunction(handler):
        asyncio.run(handler(config))
    else:
        handler(config)


if __name__ == "__main__":
    main()
