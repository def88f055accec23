"""BigQuery-backed event store for pixel tracking events.

Reads the pixel_events table:

    id, pixel_id, client_id, event_type, event_time, event_value, utm_content

client_id identifies the visitor and utm_content the ad a visitor arrived
from, so a row with utm_content is a touchpoint.
"""

from __future__ import annotations

import logging
from typing import Any

from google.api_core.exceptions import GoogleAPIError

from pixeltrail.attribution.exceptions import AttributionFetchError
from pixeltrail.attribution.interfaces import EventFilters, EventStore
from pixeltrail.attribution.normalizer import EventNormalizer
from pixeltrail.attribution.schema import DateRange, Event
from pixeltrail.bigquery.client import BigQueryClient

logger = logging.getLogger(__name__)

EVENTS_TABLE = "pixel_events"

_COLUMNS = "id, pixel_id, client_id, event_type, event_time, event_value, utm_content"

# Pushed-down prefilter; the engine re-checks the canonical type.
# "_" is a LIKE wildcard, so it is escaped to match only a literal underscore.
_PAGE_VIEW_EXCLUSION = (
    "LOWER(event_type) NOT LIKE '%pageview%'",
    r"LOWER(event_type) NOT LIKE '%page\\_view%'",
)


class BigQueryEventStore(EventStore):
    """
    Event store over the pixel_events table.

    Example:
        store = BigQueryEventStore()
        events = store.query_events("px_123", DateRange.from_dates("2025-01-01", "2025-01-31"))
    """

    def __init__(
        self,
        client: BigQueryClient | None = None,
        normalizer: EventNormalizer | None = None,
    ):
        self._client = client
        self.normalizer = normalizer or EventNormalizer()

    @property
    def client(self) -> BigQueryClient:
        """Lazy initialization of BigQuery client."""
        if self._client is None:
            self._client = BigQueryClient()
        return self._client

    @property
    def table_ref(self) -> str:
        return self.client.table_ref(self.client.config.events_dataset, EVENTS_TABLE)

    def query_events(
        self,
        pixel_id: str,
        date_range: DateRange,
        filters: EventFilters | None = None,
    ) -> list[Event]:
        """Fetch the pixel's events in the date range."""
        filters = filters or EventFilters()
        clauses = ["pixel_id = @pixel_id"]
        params: dict[str, Any] = {"pixel_id": pixel_id}

        if date_range.start is not None:
            clauses.append("event_time >= @date_start")
            params["date_start"] = date_range.start
        if date_range.end is not None:
            clauses.append("event_time < @date_end")
            params["date_end"] = date_range.end
        if filters.exclude_page_views:
            clauses.extend(_PAGE_VIEW_EXCLUSION)
        if filters.require_touchpoint:
            clauses.append("utm_content IS NOT NULL")
        if filters.visitor_id is not None:
            clauses.append("client_id = @visitor_id")
            params["visitor_id"] = filters.visitor_id

        sql = f"""
            SELECT {_COLUMNS}
            FROM `{self.table_ref}`
            WHERE {' AND '.join(clauses)}
        """

        rows = self._fetch(sql, params, f"Event query for pixel {pixel_id}")
        logger.info(f"Fetched {len(rows)} event rows for pixel {pixel_id}")
        return self.normalizer.normalize(rows)

    def query_touchpoints(self, pixel_id: str, visitor_id: str) -> list[Event]:
        """Fetch the visitor's full touchpoint history, oldest first."""
        sql = f"""
            SELECT {_COLUMNS}
            FROM `{self.table_ref}`
            WHERE pixel_id = @pixel_id
              AND client_id = @visitor_id
              AND utm_content IS NOT NULL
            ORDER BY event_time ASC
        """

        rows = self._fetch(
            sql,
            {"pixel_id": pixel_id, "visitor_id": visitor_id},
            f"Touchpoint query for visitor {visitor_id}",
        )
        return self.normalizer.normalize(rows)

    def _fetch(self, sql: str, params: dict[str, Any], operation: str) -> list[dict[str, Any]]:
        try:
            result = self.client.query(sql, params=params)
        except (GoogleAPIError, TimeoutError) as e:
            logger.error(f"{operation} failed: {e}")
            raise AttributionFetchError(f"{operation} failed: {e}") from e

        # A capped result would attribute a subset of the events
        if result.is_truncated:
            logger.error(f"{operation} returned {len(result.rows)} of {result.total_rows} rows")
            raise AttributionFetchError(
                f"{operation} failed: result truncated at {len(result.rows)} of {result.total_rows} rows"
            )
        return result.rows
