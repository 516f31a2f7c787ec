"""Heuristic classifier registry (hashtag producers)."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from newsdesk.classify.base import BaseClassifier

CLASSIFIERS: dict[str, type[BaseClassifier]] = {}


def register_classifier(name: str):
    """Decorator to register a classifier."""

    def decorator(cls):
        CLASSIFIERS[name] = cls
        return cls

    return decorator


from newsdesk.classify.tags import (  # noqa: E402, F401
    EventCategoryClassifier,
    RegionClassifier,
    ScoreTierClassifier,
)
