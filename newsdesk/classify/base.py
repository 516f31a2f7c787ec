"""Abstract base class for item classifiers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from newsdesk.models import PushItem


class BaseClassifier(ABC):
    """Maps a push item to zero or more hashtags."""

    @abstractmethod
    def classify(self, item: PushItem) -> list[str]:
        """Return hashtags (with leading '#') for the item."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Classifier name."""
        ...
