"""
Pixeltrail BigQuery - BigQuery collaborators of the attribution engine.

Usage:
    from pixeltrail.bigquery import BigQueryEventStore, WorkspaceRegistry

    # Pixel events (read-only)
    store = BigQueryEventStore()
    touchpoints = store.query_touchpoints("px_123", "visitor-1")

    # Access checks and workspace settings
    registry = WorkspaceRegistry()
    grant = registry.resolve_access("px_123", "user-1")
"""

from pixeltrail.bigquery.client import BigQueryClient, BigQueryConfig, QueryResult
from pixeltrail.bigquery.events import BigQueryEventStore
from pixeltrail.bigquery.registry import WorkspaceRegistry
from pixeltrail.bigquery.validation import QueryValidator

__all__ = [
    "BigQueryClient",
    "BigQueryConfig",
    "QueryResult",
    "BigQueryEventStore",
    "WorkspaceRegistry",
    "QueryValidator",
]
