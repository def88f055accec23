"""
Event normalizer - transform stored pixel rows into Event records.

Tracking data is noisy: rows with no timestamp, no event type, or an
unparseable / negative value are skipped with a warning instead of failing
the report.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import pandas as pd

from pixeltrail.attribution.schema import Event

logger = logging.getLogger(__name__)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, tuple, dict)):
        return False
    return bool(pd.isna(value))


def _parse_timestamp(value: Any) -> datetime | None:
    """Parse a stored timestamp into an aware UTC datetime."""
    if _is_missing(value):
        return None
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    elif isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    elif not isinstance(value, datetime):
        return None

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _parse_value(value: Any) -> float | None:
    if _is_missing(value):
        return None
    return float(value)


def _parse_text(value: Any) -> str | None:
    if _is_missing(value):
        return None
    text = str(value).strip()
    return text or None


class EventNormalizer:
    """
    Normalize pixel event rows to Events.

    Maps the pixel table's column names onto Event fields; custom mappings
    via field_map.

    Example:
        normalizer = EventNormalizer()
        events = normalizer.normalize(rows)
    """

    def __init__(self, field_map: dict[str, str] | None = None):
        """
        Initialize event normalizer.

        Args:
            field_map: Mapping of source columns to Event fields
        """
        self.field_map = field_map or self._default_field_map()

    def _default_field_map(self) -> dict[str, str]:
        """Default column mappings for the pixel_events table."""
        return {
            "id": "id",
            "pixel_id": "pixel_id",
            # Visitor variants
            "client_id": "visitor_id",
            "visitor_id": "visitor_id",
            # Type / time / value
            "event_type": "event_type",
            "event_time": "event_time",
            "event_value": "event_value",
            # Ad identifier variants
            "utm_content": "touchpoint_ad_id",
            "ad_id": "touchpoint_ad_id",
            "touchpoint_ad_id": "touchpoint_ad_id",
        }

    def _to_dataframe(
        self,
        data: pd.DataFrame | list[dict[str, Any]],
    ) -> pd.DataFrame:
        """Convert input to DataFrame."""
        if isinstance(data, pd.DataFrame):
            return data
        return pd.DataFrame(data)

    def normalize(
        self,
        data: pd.DataFrame | list[dict[str, Any]],
    ) -> list[Event]:
        """Normalize rows to Events, skipping malformed ones."""
        df = self._to_dataframe(data)
        events = []
        skipped = 0

        for index, row in df.iterrows():
            row_dict = row.to_dict()

            mapped: dict[str, Any] = {}
            for source_field, target_field in self.field_map.items():
                if source_field in row_dict and not _is_missing(row_dict[source_field]):
                    mapped.setdefault(target_field, row_dict[source_field])

            event = self._build_event(index, mapped)
            if event is None or not event.is_well_formed:
                skipped += 1
                continue
            events.append(event)

        if skipped:
            logger.warning(f"Skipped {skipped} malformed event rows out of {len(df)}")

        return events

    def _build_event(self, index: Any, mapped: dict[str, Any]) -> Event | None:
        event_type = _parse_text(mapped.get("event_type"))
        event_time = _parse_timestamp(mapped.get("event_time"))
        if event_type is None or event_time is None:
            logger.debug(f"Row {index} is missing event_type or event_time")
            return None

        try:
            event_value = _parse_value(mapped.get("event_value"))
        except (TypeError, ValueError):
            logger.debug(f"Row {index} has a non-numeric event_value: {mapped.get('event_value')!r}")
            return None

        return Event(
            id=_parse_text(mapped.get("id")) or str(index),
            pixel_id=_parse_text(mapped.get("pixel_id")) or "",
            event_type=event_type,
            event_time=event_time,
            visitor_id=_parse_text(mapped.get("visitor_id")),
            event_value=event_value,
            touchpoint_ad_id=_parse_text(mapped.get("touchpoint_ad_id")),
        )
