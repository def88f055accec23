"""Shared pytest fixtures for Pixeltrail packages."""

import threading
from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest

from pixeltrail.attribution.interfaces import (
    AccessGrant,
    AccessResolver,
    EventFilters,
    EventStore,
)
from pixeltrail.attribution.orchestrator import AttributionOrchestrator
from pixeltrail.attribution.schema import Event, EventValues


class InMemoryEventStore(EventStore):
    """Event store over a list of events, recording every query."""

    def __init__(self, events, failing_visitors=()):
        self.events = list(events)
        self.failing_visitors = set(failing_visitors)
        self.event_queries = []
        self.touchpoint_queries = []
        self._lock = threading.Lock()

    def query_events(self, pixel_id, date_range, filters=None):
        filters = filters or EventFilters()
        self.event_queries.append((pixel_id, date_range, filters))

        events = [
            e
            for e in self.events
            if e.pixel_id == pixel_id
            and (e.event_time is None or date_range.contains(e.event_time))
        ]
        if filters.exclude_page_views:
            events = [e for e in events if e.is_conversion_candidate]
        if filters.require_touchpoint:
            events = [e for e in events if e.is_touchpoint]
        if filters.visitor_id is not None:
            events = [e for e in events if e.visitor_id == filters.visitor_id]
        return events

    def query_touchpoints(self, pixel_id, visitor_id):
        with self._lock:
            self.touchpoint_queries.append(visitor_id)
        if visitor_id in self.failing_visitors:
            raise RuntimeError(f"connection reset while reading {visitor_id}")
        return [
            e
            for e in self.events
            if e.pixel_id == pixel_id and e.visitor_id == visitor_id and e.is_touchpoint
        ]


class StaticAccessResolver(AccessResolver):
    """Access resolver returning a fixed grant."""

    def __init__(self, grant):
        self.grant = grant
        self.calls = []

    def resolve_access(self, pixel_id, requester_id):
        self.calls.append((pixel_id, requester_id))
        return self.grant


@pytest.fixture
def at():
    """Build an aware UTC timestamp on 2025-01-15 (or another January day)."""

    def _at(hour, minute=0, day=15):
        return datetime(2025, 1, day, hour, minute, tzinfo=UTC)

    return _at


@pytest.fixture
def make_event():
    """Factory for pixel events with sensible defaults."""
    counter = iter(range(1, 1_000_000))

    def _make_event(
        event_type="purchase",
        event_time=None,
        visitor_id="visitor-1",
        event_value=None,
        ad_id=None,
        pixel_id="px_123",
    ):
        return Event(
            id=f"evt-{next(counter)}",
            pixel_id=pixel_id,
            event_type=event_type,
            event_time=event_time,
            visitor_id=visitor_id,
            event_value=event_value,
            touchpoint_ad_id=ad_id,
        )

    return _make_event


@pytest.fixture
def make_store():
    """Factory for in-memory event stores."""

    def _make_store(events, failing_visitors=()):
        return InMemoryEventStore(events, failing_visitors=failing_visitors)

    return _make_store


@pytest.fixture
def make_orchestrator(make_store):
    """Factory wiring an orchestrator to in-memory collaborators."""

    def _make_orchestrator(
        events,
        model="last_touch",
        event_values=None,
        authorized=True,
        failing_visitors=(),
        config=None,
    ):
        store = make_store(events, failing_visitors=failing_visitors)
        if authorized:
            grant = AccessGrant(
                authorized=True,
                attribution_model=model,
                event_values=EventValues.from_mapping(event_values),
                workspace_id="ws-1",
            )
        else:
            grant = AccessGrant.denied()
        resolver = StaticAccessResolver(grant)
        return AttributionOrchestrator(store, resolver, config=config)

    return _make_orchestrator


@pytest.fixture
def mock_bigquery_client():
    """Mock google.cloud.bigquery.Client for testing."""
    with patch("google.cloud.bigquery.Client") as mock:
        client = MagicMock()
        mock.return_value = client
        yield client


@pytest.fixture
def sample_event_rows():
    """Sample pixel_events rows as returned by BigQuery."""
    return [
        {
            "id": "evt-001",
            "pixel_id": "px_123",
            "client_id": "visitor-1",
            "event_type": "PageView",
            "event_time": "2025-01-15T09:00:00Z",
            "event_value": None,
            "utm_content": "ad_A",
        },
        {
            "id": "evt-002",
            "pixel_id": "px_123",
            "client_id": "visitor-1",
            "event_type": "Purchase",
            "event_time": "2025-01-15T10:30:00Z",
            "event_value": 150.0,
            "utm_content": None,
        },
    ]
