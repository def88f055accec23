"""
Attribution schema - request-scoped records of the attribution engine.

Raw tracking events come from the pixel's event store. Touchpoints, journeys
and conversions are derived from them per request, and every request yields
two AggregateAttribution lanes:

- last touch: whole conversions credited to the closing ad, used for
  campaign / ad set reporting where fractional or first-touch credit would
  inflate parent totals
- model: credit assigned by the configured attribution model, used for
  ad-level reporting

Nothing in this module is persisted or shared between requests. All
timestamps are timezone-aware datetimes in UTC.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from enum import Enum
from typing import Any

from pixeltrail.attribution.event_types import is_page_view_type, normalize_event_type
from pixeltrail.attribution.exceptions import InvalidDateRangeError


class AttributionModel(str, Enum):
    """Credit assignment policy applied to a conversion's journey."""

    FIRST_TOUCH = "first_touch"  # Which ad introduced the customer
    LAST_TOUCH = "last_touch"  # Which ad closed the customer


@dataclass(frozen=True)
class Event:
    """
    A single client-side tracking event.

    An event is a touchpoint when it carries an ad id, and a conversion
    candidate when its type is outside the page-view family. It can be both.
    """

    id: str
    pixel_id: str
    event_type: str
    event_time: datetime | None
    visitor_id: str | None = None
    event_value: float | None = None
    touchpoint_ad_id: str | None = None

    @property
    def canonical_type(self) -> str:
        return normalize_event_type(self.event_type)

    @property
    def is_touchpoint(self) -> bool:
        return self.touchpoint_ad_id is not None

    @property
    def is_conversion_candidate(self) -> bool:
        return not is_page_view_type(self.event_type)

    @property
    def is_well_formed(self) -> bool:
        """False for events without a timestamp or with a negative value."""
        if self.event_time is None:
            return False
        return self.event_value is None or self.event_value >= 0


def as_utc(moment: datetime) -> datetime:
    """Timezone-aware UTC copy of a timestamp; naive values are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


@dataclass(frozen=True)
class Touchpoint:
    """An exposure of a visitor to one ad."""

    ad_id: str
    event_time: datetime

    @classmethod
    def from_event(cls, event: Event) -> Touchpoint:
        if event.touchpoint_ad_id is None or event.event_time is None:
            raise ValueError(f"Event {event.id} is not a touchpoint")
        return cls(ad_id=event.touchpoint_ad_id, event_time=as_utc(event.event_time))


def touchpoint_sort_key(touchpoint: Touchpoint) -> tuple[datetime, str]:
    """Chronological order, ad id breaking ties so the order never depends on input order."""
    return (touchpoint.event_time, touchpoint.ad_id)


@dataclass(frozen=True)
class Journey:
    """Chronologically ordered touchpoints of one visitor. May be empty."""

    visitor_id: str
    touchpoints: tuple[Touchpoint, ...] = ()

    @classmethod
    def from_touchpoints(cls, visitor_id: str, touchpoints: Iterable[Touchpoint]) -> Journey:
        return cls(
            visitor_id=visitor_id,
            touchpoints=tuple(sorted(touchpoints, key=touchpoint_sort_key)),
        )

    def __len__(self) -> int:
        return len(self.touchpoints)

    def __iter__(self) -> Iterator[Touchpoint]:
        return iter(self.touchpoints)

    def __getitem__(self, index: int) -> Touchpoint:
        return self.touchpoints[index]

    @property
    def is_empty(self) -> bool:
        return not self.touchpoints

    def up_to(self, as_of: datetime) -> Journey:
        """
        Touchpoints at or before as_of.

        Exposures after a conversion cannot have influenced it, so every
        conversion is attributed against its own truncated journey.
        """
        as_of = as_utc(as_of)
        times = [tp.event_time for tp in self.touchpoints]
        return Journey(
            visitor_id=self.visitor_id,
            touchpoints=self.touchpoints[: bisect_right(times, as_of)],
        )


@dataclass(frozen=True)
class EventValues:
    """
    Configured default monetary value per canonical event type.

    Used when an event carries no value of its own.
    """

    values: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, float] | None) -> EventValues:
        """Build from raw event type names; keys are canonicalized."""
        return cls(
            values={
                normalize_event_type(event_type): float(value)
                for event_type, value in (mapping or {}).items()
            }
        )

    def lookup(self, event_type: str) -> float | None:
        return self.values.get(normalize_event_type(event_type))


@dataclass(frozen=True)
class Conversion:
    """A conversion candidate with its monetary value resolved."""

    visitor_id: str | None
    event_type: str
    event_time: datetime
    value: float
    touchpoint_ad_id: str | None = None
    event_id: str | None = None

    @classmethod
    def from_event(cls, event: Event, event_values: EventValues | None = None) -> Conversion:
        """
        Resolve the conversion value: the event's own value, else the
        configured value for its canonical type, else 0.
        """
        if event.event_time is None:
            raise ValueError(f"Event {event.id} has no timestamp")

        value = event.event_value
        if value is None and event_values is not None:
            value = event_values.lookup(event.event_type)

        return cls(
            visitor_id=event.visitor_id or None,
            event_type=event.event_type,
            event_time=as_utc(event.event_time),
            value=float(value or 0.0),
            touchpoint_ad_id=event.touchpoint_ad_id,
            event_id=event.id,
        )


@dataclass(frozen=True)
class AttributedConversion:
    """
    Credit assigned to one ad for one conversion.

    For a single conversion the credits of all produced records sum to 1.0.
    event_type carries the conversion's type into the per-type breakdown.
    """

    ad_id: str
    credit: float
    value: float
    event_type: str | None = None


@dataclass(frozen=True)
class TypeBreakdown:
    """Per event type totals inside one ad's attribution."""

    count: float = 0.0
    value: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"count": self.count, "value": self.value}


@dataclass(frozen=True)
class AdAttribution:
    """Totals credited to one ad. conversions is fractional for multi-touch models."""

    conversions: float = 0.0
    revenue: float = 0.0
    by_type: dict[str, TypeBreakdown] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "conversions": self.conversions,
            "revenue": self.revenue,
            "byType": {
                event_type: breakdown.to_dict()
                for event_type, breakdown in self.by_type.items()
            },
        }


@dataclass(frozen=True)
class AggregateAttribution:
    """Per-ad attribution totals for one lane."""

    ads: dict[str, AdAttribution] = field(default_factory=dict)

    def __getitem__(self, ad_id: str) -> AdAttribution:
        return self.ads[ad_id]

    def __contains__(self, ad_id: object) -> bool:
        return ad_id in self.ads

    def __len__(self) -> int:
        return len(self.ads)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ads)

    def get(self, ad_id: str) -> AdAttribution | None:
        return self.ads.get(ad_id)

    @property
    def total_conversions(self) -> float:
        return sum(ad.conversions for ad in self.ads.values())

    @property
    def total_revenue(self) -> float:
        return sum(ad.revenue for ad in self.ads.values())

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return {ad_id: ad.to_dict() for ad_id, ad in self.ads.items()}


def _parse_calendar_date(value: date | str | None, name: str) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise InvalidDateRangeError(f"Invalid {name}: {value!r}") from e


@dataclass(frozen=True)
class DateRange:
    """
    Half-open UTC time window [start, end).

    None on either side means unbounded; both None means all time.
    """

    start: datetime | None = None
    end: datetime | None = None

    @classmethod
    def from_dates(
        cls,
        date_start: date | str | None = None,
        date_end: date | str | None = None,
    ) -> DateRange:
        """
        Build a window from calendar dates.

        date_end is inclusive as a whole day, so the exclusive upper bound is
        midnight of the following day.

        Raises:
            InvalidDateRangeError: If a date cannot be parsed or end precedes start.
        """
        start_day = _parse_calendar_date(date_start, "date_start")
        end_day = _parse_calendar_date(date_end, "date_end")

        if start_day and end_day and end_day < start_day:
            raise InvalidDateRangeError(
                f"date_end {end_day.isoformat()} is before date_start {start_day.isoformat()}"
            )

        return cls(
            start=datetime.combine(start_day, time.min, tzinfo=UTC) if start_day else None,
            end=(
                datetime.combine(end_day + timedelta(days=1), time.min, tzinfo=UTC)
                if end_day
                else None
            ),
        )

    @property
    def is_unbounded(self) -> bool:
        return self.start is None and self.end is None

    def contains(self, moment: datetime) -> bool:
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment >= self.end:
            return False
        return True


@dataclass(frozen=True)
class AttributionResult:
    """Both lanes of one attribution request plus request totals."""

    last_touch_attribution: AggregateAttribution
    model_attribution: AggregateAttribution
    model: AttributionModel
    total_events: int = 0  # Conversion candidates counted on input
    total_conversions: int = 0  # Conversions that produced credit

    @property
    def unique_ads(self) -> int:
        return len(self.model_attribution)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the reporting layer, keeping the legacy lane aliases."""
        model_lane = self.model_attribution.to_dict()
        return {
            "lastTouchAttribution": self.last_touch_attribution.to_dict(),
            "modelAttribution": model_lane,
            "multiTouchAttribution": model_lane,
            "attribution": model_lane,
            "totalEvents": self.total_events,
            "totalConversions": self.total_conversions,
            "uniqueAds": self.unique_ads,
            "model": self.model.value,
        }
