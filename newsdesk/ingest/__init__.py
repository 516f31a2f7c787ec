"""Source adapter registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from newsdesk.ingest.base import BaseAdapter

ADAPTERS: dict[str, type[BaseAdapter]] = {}


def register_adapter(name: str):
    """Decorator to register a source adapter."""

    def decorator(cls):
        ADAPTERS[name] = cls
        return cls

    return decorator


def build_adapters(config: dict) -> list[BaseAdapter]:
    """Instantiate every registered adapter with its config overrides."""
    return [cls(config) for cls in ADAPTERS.values()]


# Import implementations to trigger registration
from newsdesk.ingest.industry import IndustryAggregatorAdapter  # noqa: E402, F401
from newsdesk.ingest.premium import PremiumMediaAdapter  # noqa: E402, F401
from newsdesk.ingest.regulatory import RegulatoryAdapter  # noqa: E402, F401
