"""Push event vocabulary.

Every event name the channel understands is a member of `PushEventKind`.
Subscriptions are keyed by kind, so a typo in an event name fails at
subscribe time instead of silently never firing. Payloads are kept opaque:
push events only signal that something changed, the authoritative data is
always re-fetched over REST.
"""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


class PushEventKind(StrEnum):
    business_created = "business:created"
    business_enriched = "business:enriched"
    enrichment_progress = "enrichment:progress"
    enrichment_completed = "enrichment:completed"
    enrichment_failed = "enrichment:failed"
    scraping_started = "scraping:started"
    scraping_progress = "scraping:progress"
    scraping_completed = "scraping:completed"
    scraping_failed = "scraping:failed"
    stats_updated = "stats:updated"
    analytics_updated = "analytics:updated"
    csv_progress = "csv:progress"
    csv_completed = "csv:completed"
    csv_failed = "csv:failed"

    @classmethod
    def lookup(cls, name: str) -> Optional["PushEventKind"]:
        try:
            return cls(name)
        except ValueError:
            return None


class PushEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: PushEventKind
    data: Any = None
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def parse(cls, name: str, data: Any = None) -> Optional["PushEvent"]:
        """Build an event from a raw transport frame; None for unknown names."""
        kind = PushEventKind.lookup(name)
        if kind is None:
            return None
        return cls(kind=kind, data=data)


# Events after which a tracked job may have changed state
JOB_REFRESH_EVENTS = frozenset({
    PushEventKind.scraping_progress,
    PushEventKind.scraping_completed,
    PushEventKind.scraping_failed,
    PushEventKind.enrichment_completed,
    PushEventKind.enrichment_failed,
    PushEventKind.csv_completed,
    PushEventKind.csv_failed,
})

# Cached views to refetch per event
INVALIDATION_TARGETS: Mapping[PushEventKind, tuple[str, ...]] = {
    PushEventKind.business_created: ("businesses", "stats"),
    PushEventKind.business_enriched: ("businesses", "business"),
    PushEventKind.enrichment_completed: ("businesses", "stats"),
    PushEventKind.enrichment_failed: ("businesses",),
    PushEventKind.scraping_completed: ("businesses", "stats", "jobs"),
    PushEventKind.scraping_failed: ("jobs",),
    PushEventKind.stats_updated: ("stats",),
    PushEventKind.analytics_updated: ("analytics",),
    PushEventKind.csv_completed: ("businesses", "stats"),
}
