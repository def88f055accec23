"""
WorkspaceRegistry - pixel access and per-pixel attribution settings.

Provides:
- Access checks: workspace owner or accepted member of a workspace the
  pixel is attached to, with the legacy per-user pixels table as fallback
- The workspace's attribution model for the pixel
- Configured monetary values per event type

Registry tables (registry dataset):
    workspaces         (id, user_id)
    workspace_members  (workspace_id, user_id, role, accepted_at)
    workspace_pixels   (workspace_id, pixel_id, attribution_model)
    pixels             (pixel_id, user_id)              -- legacy ownership
    event_values       (pixel_id, event_type, event_value)
"""

from __future__ import annotations

import logging
from typing import Any

from google.api_core.exceptions import GoogleAPIError

from pixeltrail.attribution.exceptions import AttributionFetchError
from pixeltrail.attribution.interfaces import AccessGrant, AccessResolver
from pixeltrail.attribution.schema import AttributionModel, EventValues
from pixeltrail.bigquery.client import BigQueryClient

logger = logging.getLogger(__name__)


class WorkspaceRegistry(AccessResolver):
    """
    Registry of workspaces, members and their pixels.

    Example:
        registry = WorkspaceRegistry()
        grant = registry.resolve_access("px_123", "user-1")
        if grant.authorized:
            print(grant.attribution_model, grant.event_values.values)
    """

    WORKSPACES_TABLE = "workspaces"
    MEMBERS_TABLE = "workspace_members"
    WORKSPACE_PIXELS_TABLE = "workspace_pixels"
    LEGACY_PIXELS_TABLE = "pixels"
    EVENT_VALUES_TABLE = "event_values"

    def __init__(self, client: BigQueryClient | None = None):
        self._client = client

    @property
    def client(self) -> BigQueryClient:
        """Lazy initialization of BigQuery client."""
        if self._client is None:
            self._client = BigQueryClient()
        return self._client

    def _table(self, table: str) -> str:
        return self.client.table_ref(self.client.config.registry_dataset, table)

    def resolve_access(self, pixel_id: str, requester_id: str) -> AccessGrant:
        """
        Resolve the requester's access to a pixel.

        Args:
            pixel_id: Pixel being reported on
            requester_id: User asking for the report

        Returns:
            AccessGrant with the workspace's model and event values, or
            AccessGrant.denied() when the requester has no access

        Raises:
            AttributionFetchError: If a registry query fails
        """
        workspace_pixel = self.get_workspace_pixel(pixel_id, requester_id)

        if workspace_pixel is not None:
            return AccessGrant(
                authorized=True,
                attribution_model=workspace_pixel.get("attribution_model") or AttributionModel.LAST_TOUCH.value,
                event_values=self.get_event_values(pixel_id),
                workspace_id=workspace_pixel.get("workspace_id"),
            )

        if self.owns_legacy_pixel(pixel_id, requester_id):
            return AccessGrant(
                authorized=True,
                attribution_model=AttributionModel.LAST_TOUCH.value,
                event_values=self.get_event_values(pixel_id),
            )

        logger.info(f"Requester {requester_id} denied access to pixel {pixel_id}")
        return AccessGrant.denied()

    def get_workspace_pixel(self, pixel_id: str, requester_id: str) -> dict[str, Any] | None:
        """Return the workspace pixel row the requester can see, if any."""
        query = f"""
            SELECT wp.workspace_id, wp.attribution_model
            FROM `{self._table(self.WORKSPACE_PIXELS_TABLE)}` AS wp
            JOIN `{self._table(self.WORKSPACES_TABLE)}` AS w
              ON w.id = wp.workspace_id
            LEFT JOIN `{self._table(self.MEMBERS_TABLE)}` AS m
              ON m.workspace_id = wp.workspace_id
             AND m.user_id = @requester_id
             AND m.accepted_at IS NOT NULL
            WHERE wp.pixel_id = @pixel_id
              AND (w.user_id = @requester_id OR m.user_id IS NOT NULL)
            ORDER BY wp.workspace_id
            LIMIT 1
        """

        rows = self._fetch(
            query,
            {"pixel_id": pixel_id, "requester_id": requester_id},
            f"Workspace lookup for pixel {pixel_id}",
        )
        return rows[0] if rows else None

    def owns_legacy_pixel(self, pixel_id: str, requester_id: str) -> bool:
        """True if the requester owns the pixel in the legacy pixels table."""
        query = f"""
            SELECT pixel_id
            FROM `{self._table(self.LEGACY_PIXELS_TABLE)}`
            WHERE pixel_id = @pixel_id
              AND user_id = @requester_id
            LIMIT 1
        """

        rows = self._fetch(
            query,
            {"pixel_id": pixel_id, "requester_id": requester_id},
            f"Legacy pixel lookup for pixel {pixel_id}",
        )
        return bool(rows)

    def get_event_values(self, pixel_id: str) -> EventValues:
        """Configured values keyed by canonical event type."""
        query = f"""
            SELECT event_type, event_value
            FROM `{self._table(self.EVENT_VALUES_TABLE)}`
            WHERE pixel_id = @pixel_id
        """

        rows = self._fetch(query, {"pixel_id": pixel_id}, f"Event value lookup for pixel {pixel_id}")

        values = {}
        for row in rows:
            if row.get("event_type") is None or row.get("event_value") is None:
                continue
            values[row["event_type"]] = row["event_value"]

        return EventValues.from_mapping(values)

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
