"""Heuristic ticker extraction from free text."""

from __future__ import annotations

import re

MAX_SYMBOLS = 10

# All-caps tokens that are almost never tickers
SYMBOL_STOP_WORDS = frozenset({
    "A", "I", "AI", "API", "AND", "CEO", "CFO", "COO", "CORP", "CPI", "ECB", "EDGAR",
    "ETF", "EU", "EUR", "FDA", "FED", "FOMC", "FOR", "FT", "GBP", "GDP", "HK", "IMF",
    "INC", "IPO", "LLC", "LTD", "NASDAQ", "NEW", "NYSE", "PLC", "RSS", "SEC", "TECH",
    "THE", "UK", "UPDATE", "US", "USA", "USD", "WSJ", "XML", "YEN",
})

_PAREN_TICKER = re.compile(r"\((?:(?:NYSE|NASDAQ|Nasdaq|AMEX|OTC)\s*:\s*)?([A-Z]{1,5})\)")
_CASHTAG = re.compile(r"\$([A-Z]{1,5})\b")
_EXCHANGE_TICKER = re.compile(r"\b(?:NYSE|NASDAQ|Nasdaq|AMEX)\s*:\s*([A-Z]{1,5})\b")
_BARE_TICKER = re.compile(r"\b([A-Z]{2,5})\b")


def extract_symbols(text: str, stop_words: frozenset[str] = SYMBOL_STOP_WORDS) -> list[str]:
    """Extract likely tickers, strongest patterns first. May return an empty list."""
    if not text:
        return []

    symbols: list[str] = []

    def _add(symbol: str) -> None:
        if symbol not in stop_words and symbol not in symbols:
            symbols.append(symbol)

    for pattern in (_PAREN_TICKER, _CASHTAG, _EXCHANGE_TICKER):
        for match in pattern.finditer(text):
            _add(match.group(1))

    for match in _BARE_TICKER.finditer(text):
        _add(match.group(1))

    return symbols[:MAX_SYMBOLS]
