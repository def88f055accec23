"""
BigQueryClient - read-only BigQuery access for pixel events and the workspace registry.

Provides:
- Lazy client construction from environment configuration
- Read-only query validation before anything is sent
- Scalar parameter binding (strings, numbers, booleans, timestamps)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from google.cloud import bigquery
from pydantic import BaseModel

from pixeltrail.bigquery.validation import QueryValidator


class BigQueryConfig(BaseModel):
    """Configuration for BigQuery client."""

    project_id: str | None = None
    credentials_path: str | None = None
    location: str = "US"
    events_dataset: str = "pixeltrail_events"
    registry_dataset: str = "pixeltrail_registry"
    max_results: int = 100_000
    timeout: int = 300  # 5 minutes

    @classmethod
    def from_env(cls) -> BigQueryConfig:
        """Load configuration from environment variables."""
        return cls(
            project_id=os.getenv("PIXELTRAIL_PROJECT_ID") or os.getenv("GCP_PROJECT_ID"),
            credentials_path=os.getenv("GOOGLE_APPLICATION_CREDENTIALS"),
            location=os.getenv("PIXELTRAIL_BQ_LOCATION", "US"),
            events_dataset=os.getenv("PIXELTRAIL_EVENTS_DATASET", "pixeltrail_events"),
            registry_dataset=os.getenv("PIXELTRAIL_REGISTRY_DATASET", "pixeltrail_registry"),
        )


@dataclass
class QueryResult:
    """Result of a BigQuery query."""

    rows: list[dict[str, Any]]
    total_rows: int
    bytes_processed: int
    cache_hit: bool

    @property
    def is_truncated(self) -> bool:
        """True when max_results cut the result short of the full row count."""
        return self.total_rows > len(self.rows)


class BigQueryClient:
    """
    Read-only BigQuery client.

    Example:
        client = BigQueryClient()
        result = client.query(
            "SELECT event_type FROM `proj.pixeltrail_events.pixel_events` WHERE pixel_id = @pixel_id",
            params={"pixel_id": "px_123"},
        )
    """

    def __init__(self, config: BigQueryConfig | None = None):
        self.config = config or BigQueryConfig.from_env()
        self._client: bigquery.Client | None = None

    @property
    def client(self) -> bigquery.Client:
        """Lazy initialization of BigQuery client."""
        if self._client is None:
            self._client = bigquery.Client(
                project=self.config.project_id,
                location=self.config.location,
            )
        return self._client

    def table_ref(self, dataset: str, table: str) -> str:
        """Get fully-qualified table reference."""
        QueryValidator.sanitize_identifier(dataset)
        QueryValidator.sanitize_identifier(table)
        if self.config.project_id:
            return f"{self.config.project_id}.{dataset}.{table}"
        return f"{dataset}.{table}"

    def query(
        self,
        sql: str,
        params: dict[str, Any] | None = None,
        max_results: int | None = None,
    ) -> QueryResult:
        """
        Execute a read-only query.

        Args:
            sql: SQL query string
            params: Query parameters for parameterized queries
            max_results: Maximum rows to return (default: config.max_results)

        Returns:
            QueryResult with rows, metadata, and cost info

        Raises:
            ValueError: If the query is not read-only
            google.api_core.exceptions.GoogleAPIError: If BigQuery rejects the job
        """
        QueryValidator.validate(sql)

        job_config = bigquery.QueryJobConfig()
        if params:
            job_config.query_parameters = [
                bigquery.ScalarQueryParameter(name, self._infer_type(value), value)
                for name, value in params.items()
            ]

        query_job = self.client.query(sql, job_config=job_config)
        result = query_job.result(
            max_results=max_results or self.config.max_results,
            timeout=self.config.timeout,
        )

        rows = [dict(row.items()) for row in result]

        return QueryResult(
            rows=rows,
            total_rows=result.total_rows or len(rows),
            bytes_processed=query_job.total_bytes_processed or 0,
            cache_hit=query_job.cache_hit or False,
        )

    def _infer_type(self, value: Any) -> str:
        """Infer BigQuery type from Python value."""
        if isinstance(value, bool):
            return "BOOL"
        if isinstance(value, int):
            return "INT64"
        if isinstance(value, float):
            return "FLOAT64"
        if isinstance(value, datetime):
            return "TIMESTAMP"
        return "STRING"
