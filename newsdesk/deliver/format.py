"""Render push items as Telegram HTML messages within the length cap."""

from __future__ import annotations

import html

from newsdesk.classify.base import BaseClassifier
from newsdesk.classify.tags import build_hashtags
from newsdesk.models import CHANNEL_URGENT, PushItem

MAX_MESSAGE_LENGTH = 4096
MAX_SYMBOLS_SHOWN = 5
ELLIPSIS = "…"

CHANNEL_HEADERS = {
    CHANNEL_URGENT: "🚨 Breaking",
}


def _escape(text: str) -> str:
    return html.escape(text, quote=False)


def _truncate(raw: str, budget: int) -> str:
    """Escaped `raw` cut to at most `budget` characters, ending in an ellipsis."""
    if budget <= len(ELLIPSIS):
        return ""
    keep = budget - len(ELLIPSIS)
    cut = raw[:keep]
    # Escaping can only grow the text; shrink until it fits
    while cut and len(_escape(cut)) > keep:
        cut = cut[: len(cut) - max(len(_escape(cut)) - keep, 1)]
    cut = cut.rstrip()
    return f"{_escape(cut)}{ELLIPSIS}" if cut else ""


def _meta_line(item: PushItem, channel: str) -> str:
    parts = []
    header = CHANNEL_HEADERS.get(channel)
    if header:
        parts.append(header)
    parts.append(f"Score {item.composite_score:.1f}/10")
    if item.source_name:
        parts.append(_escape(item.source_name))
    if item.published_at:
        parts.append(item.published_at.strftime("%Y-%m-%d %H:%M UTC"))
    return " | ".join(parts)


def _render(blocks: list[str]) -> str:
    return "\n\n".join(b for b in blocks if b)


def format_push_message(
    item: PushItem,
    max_length: int = MAX_MESSAGE_LENGTH,
    channel: str = CHANNEL_URGENT,
    classifiers: list[BaseClassifier] | None = None,
) -> str:
    """Build the HTML message for one item.

    Layout: title, score line, symbols, summary, commentary, source link,
    hashtags. When the message would exceed `max_length` the summary is
    trimmed first, then the commentary, then the title. The link is never cut.
    """
    fields = {
        "title": _escape(item.translated_title or item.title),
        "summary": _escape(item.translated_summary or item.summary or ""),
        "commentary": _escape(item.ai_commentary or ""),
    }
    raw = {
        "title": item.translated_title or item.title,
        "summary": item.translated_summary or item.summary or "",
        "commentary": item.ai_commentary or "",
    }

    meta = _meta_line(item, channel)
    symbols = " ".join(f"${_escape(s)}" for s in item.symbols[:MAX_SYMBOLS_SHOWN])
    link = f'<a href="{html.escape(item.url, quote=True)}">Read source</a>'
    hashtags = build_hashtags(item, classifiers)

    def build(meta_line: str = meta, tag_line: str = hashtags) -> str:
        return _render([
            f"<b>{fields['title']}</b>" if fields["title"] else "",
            meta_line,
            symbols,
            fields["summary"],
            f"💡 <i>{fields['commentary']}</i>" if fields["commentary"] else "",
            link,
            tag_line,
        ])

    text = build()
    for key in ("summary", "commentary", "title"):
        excess = len(text) - max_length
        if excess <= 0:
            return text
        if not fields[key]:
            continue
        fields[key] = _truncate(raw[key], len(fields[key]) - excess)
        text = build()

    if len(text) > max_length:
        text = build(tag_line="")
    if len(text) > max_length:
        text = build(meta_line="", tag_line="")
    return text
