"""
Pixeltrail Attribution - ad-level credit for pixel-tracked conversions.

Provides:
- Journey reconstruction from raw pixel events
- Single-touch attribution models (first touch, last touch)
- Dual-lane aggregation: whole last-touch credit for parent levels, model
  credit for ads
- Parent rollup and priority merge with platform-reported conversions

Usage:
    from pixeltrail.attribution import AttributionOrchestrator
    from pixeltrail.bigquery import BigQueryEventStore, WorkspaceRegistry

    orchestrator = AttributionOrchestrator(
        event_store=BigQueryEventStore(),
        access_resolver=WorkspaceRegistry(),
    )
    result = orchestrator.get_attribution("px_123", "user-1", "2025-01-01", "2025-01-31")
"""

from pixeltrail.attribution.aggregator import aggregate
from pixeltrail.attribution.attribution import (
    MODEL_INFO,
    apply_attribution_model,
)
from pixeltrail.attribution.config import AttributionConfig
from pixeltrail.attribution.event_types import is_page_view_type, normalize_event_type
from pixeltrail.attribution.exceptions import (
    AttributionError,
    AttributionFetchError,
    ConfigurationError,
    InvalidDateRangeError,
    UnauthorizedError,
    UnknownAttributionModelError,
)
from pixeltrail.attribution.interfaces import (
    AccessGrant,
    AccessResolver,
    EventFilters,
    EventStore,
)
from pixeltrail.attribution.journey import JourneyBuilder
from pixeltrail.attribution.normalizer import EventNormalizer
from pixeltrail.attribution.orchestrator import (
    AttributionOrchestrator,
    FastPath,
    JourneyPath,
)
from pixeltrail.attribution.rollup import (
    merge_lane_with_platform,
    priority_merge,
    rollup_by_parent,
)
from pixeltrail.attribution.schema import (
    AdAttribution,
    AggregateAttribution,
    AttributedConversion,
    AttributionModel,
    AttributionResult,
    Conversion,
    DateRange,
    Event,
    EventValues,
    Journey,
    Touchpoint,
)

__all__ = [
    # Schema
    "Event",
    "Touchpoint",
    "Journey",
    "Conversion",
    "EventValues",
    "DateRange",
    "AttributionModel",
    "AttributedConversion",
    "AdAttribution",
    "AggregateAttribution",
    "AttributionResult",
    # Event types
    "normalize_event_type",
    "is_page_view_type",
    "EventNormalizer",
    # Engine
    "apply_attribution_model",
    "MODEL_INFO",
    "aggregate",
    "JourneyBuilder",
    "AttributionOrchestrator",
    "FastPath",
    "JourneyPath",
    "AttributionConfig",
    # Collaborators
    "EventStore",
    "AccessResolver",
    "AccessGrant",
    "EventFilters",
    # Rollup
    "rollup_by_parent",
    "priority_merge",
    "merge_lane_with_platform",
    # Errors
    "AttributionError",
    "UnauthorizedError",
    "AttributionFetchError",
    "InvalidDateRangeError",
    "UnknownAttributionModelError",
    "ConfigurationError",
]
