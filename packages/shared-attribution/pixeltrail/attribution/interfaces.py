"""Collaborator interfaces consumed by the attribution engine.

Production implementations live in pixeltrail.bigquery; tests use in-memory
fakes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from pixeltrail.attribution.schema import DateRange, Event, EventValues


@dataclass(frozen=True)
class EventFilters:
    """Filters applied by the event store on top of pixel and date range."""

    exclude_page_views: bool = True
    require_touchpoint: bool = False
    visitor_id: str | None = None


@dataclass(frozen=True)
class AccessGrant:
    """Outcome of an authorization check for one pixel and requester."""

    authorized: bool
    attribution_model: str | None = None  # Stored name, validated by the orchestrator
    event_values: EventValues = field(default_factory=EventValues)
    workspace_id: str | None = None

    @classmethod
    def denied(cls) -> AccessGrant:
        return cls(authorized=False)


class EventStore(ABC):
    """Read-only query surface over a pixel's tracking events."""

    @abstractmethod
    def query_events(
        self,
        pixel_id: str,
        date_range: DateRange,
        filters: EventFilters | None = None,
    ) -> list[Event]:
        """Return the pixel's events inside date_range that match filters."""
        pass  # pragma: no cover

    @abstractmethod
    def query_touchpoints(self, pixel_id: str, visitor_id: str) -> list[Event]:
        """Return every event of the visitor carrying an ad id, in any order."""
        pass  # pragma: no cover


class AccessResolver(ABC):
    """Resolves a requester's access to a pixel and the pixel's workspace settings."""

    @abstractmethod
    def resolve_access(self, pixel_id: str, requester_id: str) -> AccessGrant:
        """Return the grant; unauthorized requesters get AccessGrant.denied()."""
        pass  # pragma: no cover
