"""Per-article processing: deduplication, ImpactRank scoring and routing."""

from newsdesk.process.dedup import Deduplicator  # noqa: F401
from newsdesk.process.routing import Router  # noqa: F401
from newsdesk.process.scoring import Scorer  # noqa: F401
