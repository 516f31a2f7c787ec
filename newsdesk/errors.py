"""Exception hierarchy for the news pipeline."""

from __future__ import annotations


class NewsdeskError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(NewsdeskError):
    """Input rejected at the pipeline boundary (HTTP 400)."""


class AuthError(NewsdeskError):
    """Missing or invalid ingestion credentials (HTTP 401)."""


class FeedFetchError(NewsdeskError):
    """A single feed could not be fetched or parsed."""

    def __init__(self, feed_name: str, message: str):
        super().__init__(f"Failed to fetch {feed_name}: {message}")
        self.feed_name = feed_name


class NormalizationError(ValidationError):
    """An adapter record is missing a required field."""


class DedupeStoreError(NewsdeskError):
    """The dedupe cache could not be read or written."""


class ScoringError(NewsdeskError):
    """An article could not be scored."""


class RouteStoreError(NewsdeskError):
    """Routing state could not be read or written."""


class PushError(NewsdeskError):
    """A chat message could not be delivered after all retries."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class SchemaError(NewsdeskError):
    """The relational store is missing expected tables."""
