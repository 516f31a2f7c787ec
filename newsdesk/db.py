"""SQLite database schema, verification, and query helpers."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from newsdesk.errors import SchemaError
from newsdesk.models import (
    CHANNEL_SUPPRESSED,
    DedupeEntry,
    NormalizedArticle,
    PushItem,
    ScoreResult,
    SourceInfo,
    utcnow,
)

SCHEMA_VERSION = 1

REQUIRED_TABLES = (
    "sources",
    "news_items",
    "news_scores",
    "news_routing_state",
    "news_push_history",
    "news_dedupe_cache",
)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS sources (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL,
    tier INTEGER NOT NULL CHECK (tier BETWEEN 1 AND 5),
    reliability_score REAL NOT NULL DEFAULT 3.0,
    rate_limit_per_hour INTEGER NOT NULL DEFAULT 60,
    fetch_interval_minutes INTEGER NOT NULL DEFAULT 15,
    enabled INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS news_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id INTEGER NOT NULL,
    external_id TEXT NOT NULL,
    title TEXT NOT NULL,
    summary TEXT NOT NULL DEFAULT '',
    body TEXT NOT NULL DEFAULT '',
    url TEXT UNIQUE NOT NULL,
    published_at TEXT NOT NULL,
    fetched_at TEXT NOT NULL,
    primary_symbol TEXT,
    symbols TEXT NOT NULL DEFAULT '[]',
    entities TEXT NOT NULL DEFAULT '{}',
    region TEXT,
    lang TEXT NOT NULL DEFAULT 'en',
    tags TEXT NOT NULL DEFAULT '[]',
    translated_title TEXT,
    translated_summary TEXT,
    ai_commentary TEXT,
    UNIQUE (source_id, external_id),
    FOREIGN KEY (source_id) REFERENCES sources(id)
);

CREATE TABLE IF NOT EXISTS news_scores (
    news_item_id INTEGER PRIMARY KEY,
    freshness REAL NOT NULL,
    source_quality REAL NOT NULL,
    relevance REAL NOT NULL,
    impact REAL NOT NULL,
    novelty REAL NOT NULL,
    corroboration REAL NOT NULL,
    attention REAL NOT NULL,
    composite_score REAL NOT NULL CHECK (composite_score BETWEEN 0 AND 10),
    weights_used TEXT NOT NULL DEFAULT '{}',
    scored_at TEXT NOT NULL,
    FOREIGN KEY (news_item_id) REFERENCES news_items(id)
);

CREATE TABLE IF NOT EXISTS news_routing_state (
    news_item_id INTEGER PRIMARY KEY,
    channel TEXT NOT NULL CHECK (channel IN ('urgent', 'digest', 'suppressed')),
    status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'sent')),
    fade_level INTEGER NOT NULL DEFAULT 0 CHECK (fade_level BETWEEN 0 AND 5),
    upgrade_flag INTEGER NOT NULL DEFAULT 0,
    topic_hash TEXT,
    routed_at TEXT NOT NULL,
    last_updated TEXT NOT NULL,
    FOREIGN KEY (news_item_id) REFERENCES news_items(id)
);

CREATE TABLE IF NOT EXISTS news_push_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    news_item_id INTEGER,
    channel TEXT NOT NULL,
    attempt INTEGER NOT NULL DEFAULT 1,
    message_id TEXT,
    outcome TEXT NOT NULL CHECK (outcome IN ('success', 'failed')),
    error_message TEXT,
    sent_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS news_dedupe_cache (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    external_id TEXT NOT NULL,
    url_hash TEXT UNIQUE NOT NULL,
    topic_hash TEXT,
    authority_level INTEGER NOT NULL DEFAULT 1,
    first_seen_at TEXT NOT NULL,
    last_seen_at TEXT NOT NULL,
    seen_count INTEGER NOT NULL DEFAULT 1
);

CREATE INDEX IF NOT EXISTS idx_news_items_published ON news_items(published_at);
CREATE INDEX IF NOT EXISTS idx_news_items_fetched ON news_items(fetched_at);
CREATE INDEX IF NOT EXISTS idx_news_scores_composite ON news_scores(composite_score);
CREATE INDEX IF NOT EXISTS idx_routing_channel ON news_routing_state(channel, status);
CREATE INDEX IF NOT EXISTS idx_routing_topic ON news_routing_state(topic_hash, routed_at);
CREATE INDEX IF NOT EXISTS idx_push_news_id ON news_push_history(news_item_id);
CREATE INDEX IF NOT EXISTS idx_dedupe_topic ON news_dedupe_cache(topic_hash, first_seen_at);
CREATE INDEX IF NOT EXISTS idx_dedupe_first_seen ON news_dedupe_cache(first_seen_at);
"""


def get_connection(db_path: str) -> sqlite3.Connection:
    """Get a SQLite connection with WAL mode enabled."""
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str) -> None:
    """Create all tables and set schema version."""
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        conn.commit()
    finally:
        conn.close()


def verify_schema(conn: sqlite3.Connection) -> None:
    """Raise SchemaError unless every pipeline table exists."""
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table'"
    ).fetchall()
    present = {row[0] for row in rows}
    missing = [t for t in REQUIRED_TABLES if t not in present]
    if missing:
        raise SchemaError(
            f"Missing news tables: {', '.join(missing)}. Run: python -m newsdesk init-db"
        )


def _dt_str(dt: datetime | None) -> str | None:
    # Fixed width so that string comparison matches time order
    if dt is None:
        return None
    return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")


def _parse_dt(s: str | None) -> datetime | None:
    if s is None:
        return None
    return datetime.fromisoformat(s)


# --- Source helpers ---


def upsert_source(conn: sqlite3.Connection, source: SourceInfo) -> int:
    """Register a source by name, returning its ID. Existing rows are refreshed."""
    row = conn.execute(
        """INSERT INTO sources
           (name, tier, reliability_score, rate_limit_per_hour,
            fetch_interval_minutes, enabled, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)
           ON CONFLICT(name) DO UPDATE SET
               tier = excluded.tier,
               reliability_score = excluded.reliability_score,
               rate_limit_per_hour = excluded.rate_limit_per_hour,
               fetch_interval_minutes = excluded.fetch_interval_minutes,
               enabled = excluded.enabled
           RETURNING id""",
        (
            source.name,
            source.tier,
            source.reliability_score,
            source.rate_limit_per_hour,
            source.fetch_interval_minutes,
            int(source.enabled),
            _dt_str(utcnow()),
        ),
    ).fetchall()[0]
    conn.commit()
    return row["id"]


def get_source(conn: sqlite3.Connection, name: str) -> SourceInfo | None:
    row = conn.execute("SELECT * FROM sources WHERE name = ?", (name,)).fetchone()
    if row is None:
        return None
    return SourceInfo(
        id=row["id"],
        name=row["name"],
        tier=row["tier"],
        reliability_score=row["reliability_score"],
        rate_limit_per_hour=row["rate_limit_per_hour"],
        fetch_interval_minutes=row["fetch_interval_minutes"],
        enabled=bool(row["enabled"]),
    )


def get_source_stats(conn: sqlite3.Connection) -> list[dict]:
    """Article counts and last fetch per source."""
    rows = conn.execute(
        """SELECT s.tier, s.name, COUNT(ni.id) AS article_count,
                  MAX(ni.fetched_at) AS last_fetch
           FROM sources s
           LEFT JOIN news_items ni ON s.id = ni.source_id
           GROUP BY s.id
           ORDER BY s.tier DESC, article_count DESC"""
    ).fetchall()
    return [dict(row) for row in rows]


# --- Article helpers ---


def insert_article(
    conn: sqlite3.Connection, article: NormalizedArticle, source_id: int,
) -> int:
    """Insert an article, returning its ID. Duplicate URLs return the existing row."""
    try:
        cur = conn.execute(
            """INSERT INTO news_items
               (source_id, external_id, title, summary, body, url, published_at,
                fetched_at, primary_symbol, symbols, entities, region, lang, tags,
                translated_title, translated_summary, ai_commentary)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                source_id,
                article.external_id,
                article.title,
                article.summary or "",
                article.body or "",
                article.url,
                _dt_str(article.published_at),
                _dt_str(article.fetched_at),
                article.primary_symbol,
                json.dumps(article.symbols),
                json.dumps(article.entities, default=str),
                article.region,
                article.lang,
                json.dumps(article.tags),
                article.translated_title,
                article.translated_summary,
                article.ai_commentary,
            ),
        )
        conn.commit()
        return cur.lastrowid
    except sqlite3.IntegrityError:
        # Duplicate URL or external ID; return existing
        row = conn.execute(
            "SELECT id FROM news_items WHERE url = ? OR (source_id = ? AND external_id = ?)",
            (article.url, source_id, article.external_id),
        ).fetchone()
        if row is None:
            raise
        return row["id"]


def get_article(conn: sqlite3.Connection, article_id: int) -> NormalizedArticle | None:
    row = conn.execute("SELECT * FROM news_items WHERE id = ?", (article_id,)).fetchone()
    return _row_to_article(row) if row else None


def count_articles(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM news_items").fetchone()[0]


def count_recent_symbol_matches(
    conn: sqlite3.Connection,
    symbols: list[str],
    since: datetime,
    exclude_id: int | None = None,
) -> int:
    """Count other articles published since `since` sharing any of `symbols`."""
    if not symbols:
        return 0
    placeholders = ", ".join("?" for _ in symbols)
    row = conn.execute(
        f"""SELECT COUNT(DISTINCT ni.id) FROM news_items ni, json_each(ni.symbols) s
            WHERE s.value IN ({placeholders})
            AND ni.published_at > ?
            AND ni.id != ?""",
        (*symbols, _dt_str(since), exclude_id if exclude_id is not None else -1),
    ).fetchone()
    return row[0]


def _row_to_article(row: sqlite3.Row) -> NormalizedArticle:
    return NormalizedArticle(
        id=row["id"],
        external_id=row["external_id"],
        title=row["title"],
        summary=row["summary"],
        body=row["body"],
        url=row["url"],
        published_at=_parse_dt(row["published_at"]),
        fetched_at=_parse_dt(row["fetched_at"]),
        primary_symbol=row["primary_symbol"],
        symbols=json.loads(row["symbols"]),
        entities=json.loads(row["entities"]),
        region=row["region"],
        lang=row["lang"],
        tags=json.loads(row["tags"]),
        translated_title=row["translated_title"],
        translated_summary=row["translated_summary"],
        ai_commentary=row["ai_commentary"],
    )


# --- Score helpers ---


def upsert_score(conn: sqlite3.Connection, news_item_id: int, result: ScoreResult) -> None:
    """Store the latest score for an article, overwriting any previous one."""
    s = result.scores
    conn.execute(
        """INSERT INTO news_scores
           (news_item_id, freshness, source_quality, relevance, impact, novelty,
            corroboration, attention, composite_score, weights_used, scored_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
           ON CONFLICT(news_item_id) DO UPDATE SET
               freshness = excluded.freshness,
               source_quality = excluded.source_quality,
               relevance = excluded.relevance,
               impact = excluded.impact,
               novelty = excluded.novelty,
               corroboration = excluded.corroboration,
               attention = excluded.attention,
               composite_score = excluded.composite_score,
               weights_used = excluded.weights_used,
               scored_at = excluded.scored_at""",
        (
            news_item_id,
            s["freshness"],
            s["source_quality"],
            s["relevance"],
            s["impact"],
            s["novelty"],
            s["corroboration"],
            s["attention"],
            result.composite,
            json.dumps(result.weights_used),
            _dt_str(result.scored_at),
        ),
    )
    conn.commit()


def get_composite_score(conn: sqlite3.Connection, news_item_id: int) -> float | None:
    row = conn.execute(
        "SELECT composite_score FROM news_scores WHERE news_item_id = ?",
        (news_item_id,),
    ).fetchone()
    return float(row["composite_score"]) if row else None


# --- Routing helpers ---


def upsert_routing_state(
    conn: sqlite3.Connection,
    news_item_id: int,
    channel: str,
    fade_level: int,
    upgrade_flag: bool,
    topic_hash: str | None = None,
) -> None:
    now = _dt_str(utcnow())
    conn.execute(
        """INSERT INTO news_routing_state
           (news_item_id, channel, status, fade_level, upgrade_flag, topic_hash,
            routed_at, last_updated)
           VALUES (?, ?, 'pending', ?, ?, ?, ?, ?)
           ON CONFLICT(news_item_id) DO UPDATE SET
               channel = excluded.channel,
               fade_level = excluded.fade_level,
               upgrade_flag = excluded.upgrade_flag,
               topic_hash = COALESCE(excluded.topic_hash, news_routing_state.topic_hash),
               last_updated = excluded.last_updated""",
        (news_item_id, channel, fade_level, int(upgrade_flag), topic_hash, now, now),
    )
    conn.commit()


def get_routing_state(conn: sqlite3.Connection, news_item_id: int) -> dict | None:
    row = conn.execute(
        "SELECT * FROM news_routing_state WHERE news_item_id = ?", (news_item_id,)
    ).fetchone()
    return dict(row) if row else None


def get_max_fade_level(
    conn: sqlite3.Connection,
    topic_hash: str,
    since: datetime,
    exclude_id: int | None = None,
) -> int | None:
    """Highest fade level among recent routing rows for a topic, or None if unseen."""
    row = conn.execute(
        """SELECT MAX(fade_level) AS fade FROM news_routing_state
           WHERE topic_hash = ? AND routed_at > ? AND news_item_id != ?""",
        (topic_hash, _dt_str(since), exclude_id if exclude_id is not None else -1),
    ).fetchone()
    return row["fade"]


_PUSH_ITEM_SQL = """
    SELECT ni.id, ni.title, ni.url, ni.summary, ni.symbols, ni.region,
           ni.published_at, ni.translated_title, ni.translated_summary,
           ni.ai_commentary, ns.composite_score, src.name AS source_name
    FROM news_items ni
    JOIN news_routing_state nrs ON ni.id = nrs.news_item_id
    JOIN news_scores ns ON ni.id = ns.news_item_id
    LEFT JOIN sources src ON ni.source_id = src.id
"""


def get_pending_items(conn: sqlite3.Connection, channel: str, limit: int = 50) -> list[PushItem]:
    rows = conn.execute(
        _PUSH_ITEM_SQL
        + """WHERE nrs.channel = ? AND nrs.status = 'pending'
             ORDER BY ns.composite_score DESC, ni.published_at DESC
             LIMIT ?""",
        (channel, limit),
    ).fetchall()
    return [_row_to_push_item(row) for row in rows]


def get_top_items(
    conn: sqlite3.Connection, since: datetime, limit: int = 10,
) -> list[PushItem]:
    """Top items by composite score fetched since `since`, excluding suppressed ones."""
    rows = conn.execute(
        _PUSH_ITEM_SQL
        + """WHERE nrs.channel != ? AND ni.fetched_at > ?
             ORDER BY ns.composite_score DESC, ni.published_at DESC
             LIMIT ?""",
        (CHANNEL_SUPPRESSED, _dt_str(since), limit),
    ).fetchall()
    return [_row_to_push_item(row) for row in rows]


def get_push_item(conn: sqlite3.Connection, news_item_id: int) -> PushItem | None:
    row = conn.execute(_PUSH_ITEM_SQL + "WHERE ni.id = ?", (news_item_id,)).fetchone()
    return _row_to_push_item(row) if row else None


def mark_as_sent(conn: sqlite3.Connection, news_item_ids: list[int]) -> None:
    if not news_item_ids:
        return
    placeholders = ", ".join("?" for _ in news_item_ids)
    conn.execute(
        f"""UPDATE news_routing_state SET status = 'sent', last_updated = ?
            WHERE news_item_id IN ({placeholders})""",
        (_dt_str(utcnow()), *news_item_ids),
    )
    conn.commit()


def get_routing_stats(conn: sqlite3.Connection, since: datetime) -> list[dict]:
    rows = conn.execute(
        """SELECT channel, status, COUNT(*) AS count, AVG(fade_level) AS avg_fade,
                  SUM(upgrade_flag) AS upgrades
           FROM news_routing_state
           WHERE routed_at > ?
           GROUP BY channel, status
           ORDER BY channel, status""",
        (_dt_str(since),),
    ).fetchall()
    return [dict(row) for row in rows]


def _row_to_push_item(row: sqlite3.Row) -> PushItem:
    return PushItem(
        news_item_id=row["id"],
        title=row["title"],
        url=row["url"],
        summary=row["summary"],
        composite_score=float(row["composite_score"]),
        source_name=row["source_name"] or "",
        symbols=json.loads(row["symbols"]),
        region=row["region"],
        published_at=_parse_dt(row["published_at"]),
        translated_title=row["translated_title"],
        translated_summary=row["translated_summary"],
        ai_commentary=row["ai_commentary"],
    )


# --- Push history helpers ---


def insert_push_history(
    conn: sqlite3.Connection,
    news_item_id: int | None,
    channel: str,
    outcome: str,
    attempt: int = 1,
    message_id: str | None = None,
    error_message: str | None = None,
) -> int:
    cur = conn.execute(
        """INSERT INTO news_push_history
           (news_item_id, channel, attempt, message_id, outcome, error_message, sent_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (
            news_item_id,
            channel,
            attempt,
            message_id,
            outcome,
            error_message,
            _dt_str(utcnow()),
        ),
    )
    conn.commit()
    return cur.lastrowid


def get_push_history(conn: sqlite3.Connection, news_item_id: int) -> list[dict]:
    rows = conn.execute(
        "SELECT * FROM news_push_history WHERE news_item_id = ? ORDER BY id",
        (news_item_id,),
    ).fetchall()
    return [dict(row) for row in rows]


def get_push_stats(conn: sqlite3.Connection, since: datetime) -> list[dict]:
    rows = conn.execute(
        """SELECT channel, outcome, COUNT(*) AS count, MAX(sent_at) AS last_sent
           FROM news_push_history
           WHERE sent_at > ?
           GROUP BY channel, outcome
           ORDER BY channel, outcome""",
        (_dt_str(since),),
    ).fetchall()
    return [dict(row) for row in rows]


# --- Dedupe cache helpers ---


def _row_to_dedupe_entry(row: sqlite3.Row) -> DedupeEntry:
    return DedupeEntry(
        id=row["id"],
        external_id=row["external_id"],
        url_hash=row["url_hash"],
        topic_hash=row["topic_hash"],
        authority_level=row["authority_level"],
        first_seen_at=_parse_dt(row["first_seen_at"]),
        last_seen_at=_parse_dt(row["last_seen_at"]),
        seen_count=row["seen_count"],
    )


def find_dedupe_by_url(
    conn: sqlite3.Connection, url_hash: str, since: datetime,
) -> DedupeEntry | None:
    row = conn.execute(
        "SELECT * FROM news_dedupe_cache WHERE url_hash = ? AND first_seen_at > ?",
        (url_hash, _dt_str(since)),
    ).fetchone()
    return _row_to_dedupe_entry(row) if row else None


def find_dedupe_by_topic(
    conn: sqlite3.Connection, topic_hash: str, since: datetime,
) -> DedupeEntry | None:
    row = conn.execute(
        """SELECT * FROM news_dedupe_cache
           WHERE topic_hash = ? AND first_seen_at > ?
           ORDER BY authority_level DESC, first_seen_at
           LIMIT 1""",
        (topic_hash, _dt_str(since)),
    ).fetchone()
    return _row_to_dedupe_entry(row) if row else None


def touch_dedupe_entry(conn: sqlite3.Connection, entry_id: int, now: datetime) -> int:
    """Record a re-sighting and return the new seen_count."""
    rows = conn.execute(
        """UPDATE news_dedupe_cache
           SET last_seen_at = ?, seen_count = seen_count + 1
           WHERE id = ?
           RETURNING seen_count""",
        (_dt_str(now), entry_id),
    ).fetchall()
    conn.commit()
    return rows[0]["seen_count"] if rows else 0


def raise_dedupe_authority(
    conn: sqlite3.Connection, entry_id: int, authority_level: int, now: datetime,
) -> int:
    """Raise an entry's authority level (never lowers it) and return seen_count."""
    rows = conn.execute(
        """UPDATE news_dedupe_cache
           SET authority_level = MAX(authority_level, ?),
               last_seen_at = ?, seen_count = seen_count + 1
           WHERE id = ?
           RETURNING seen_count""",
        (authority_level, _dt_str(now), entry_id),
    ).fetchall()
    conn.commit()
    return rows[0]["seen_count"] if rows else 0


def upsert_dedupe_entry(
    conn: sqlite3.Connection,
    external_id: str,
    url_hash: str,
    topic_hash: str | None,
    authority_level: int,
    now: datetime,
    window_start: datetime,
) -> int:
    """Atomically insert a cache entry keyed by url_hash and return its seen_count.

    A live conflicting row (first seen after `window_start`) is counted as a
    re-sighting; an expired one that has not been pruned yet is reset.
    """
    row = conn.execute(
        """INSERT INTO news_dedupe_cache
           (external_id, url_hash, topic_hash, authority_level,
            first_seen_at, last_seen_at, seen_count)
           VALUES (:external_id, :url_hash, :topic_hash, :authority, :now, :now, 1)
           ON CONFLICT(url_hash) DO UPDATE SET
               seen_count = CASE WHEN news_dedupe_cache.first_seen_at > :window
                   THEN news_dedupe_cache.seen_count + 1 ELSE 1 END,
               external_id = CASE WHEN news_dedupe_cache.first_seen_at > :window
                   THEN news_dedupe_cache.external_id ELSE excluded.external_id END,
               topic_hash = CASE WHEN news_dedupe_cache.first_seen_at > :window
                   THEN news_dedupe_cache.topic_hash ELSE excluded.topic_hash END,
               authority_level = CASE WHEN news_dedupe_cache.first_seen_at > :window
                   THEN MAX(news_dedupe_cache.authority_level, excluded.authority_level)
                   ELSE excluded.authority_level END,
               first_seen_at = CASE WHEN news_dedupe_cache.first_seen_at > :window
                   THEN news_dedupe_cache.first_seen_at ELSE excluded.first_seen_at END,
               last_seen_at = excluded.last_seen_at
           RETURNING seen_count""",
        {
            "external_id": external_id,
            "url_hash": url_hash,
            "topic_hash": topic_hash,
            "authority": authority_level,
            "now": _dt_str(now),
            "window": _dt_str(window_start),
        },
    ).fetchall()[0]
    conn.commit()
    return row["seen_count"]


def get_dedupe_entry(conn: sqlite3.Connection, url_hash: str) -> DedupeEntry | None:
    row = conn.execute(
        "SELECT * FROM news_dedupe_cache WHERE url_hash = ?", (url_hash,)
    ).fetchone()
    return _row_to_dedupe_entry(row) if row else None


def get_topic_seen_count(conn: sqlite3.Connection, topic_hash: str) -> int:
    row = conn.execute(
        "SELECT MAX(seen_count) AS seen FROM news_dedupe_cache WHERE topic_hash = ?",
        (topic_hash,),
    ).fetchone()
    return row["seen"] or 0


def delete_expired_dedupe(conn: sqlite3.Connection, before: datetime) -> int:
    """Delete cache entries first seen strictly before `before`."""
    cur = conn.execute(
        "DELETE FROM news_dedupe_cache WHERE first_seen_at < ?", (_dt_str(before),)
    )
    conn.commit()
    return cur.rowcount
