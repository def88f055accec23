"""Integration tests for package imports and cross-package wiring."""

from unittest.mock import MagicMock

import pytest

from pixeltrail.bigquery.client import BigQueryConfig, QueryResult


class TestAllPackagesImportable:
    """Test that all Pixeltrail packages can be imported together."""

    def test_attribution_package_imports(self):
        """Attribution package classes should be importable."""
        from pixeltrail.attribution import AttributionOrchestrator
        from pixeltrail.attribution import EventNormalizer
        from pixeltrail.attribution import AttributionModel
        from pixeltrail.attribution import rollup_by_parent

        assert AttributionOrchestrator is not None
        assert EventNormalizer is not None
        assert AttributionModel.LAST_TOUCH == "last_touch"
        assert rollup_by_parent is not None

    def test_bigquery_package_imports(self):
        """BigQuery package classes should be importable."""
        from pixeltrail.bigquery import BigQueryClient
        from pixeltrail.bigquery import BigQueryEventStore
        from pixeltrail.bigquery import WorkspaceRegistry
        from pixeltrail.bigquery import QueryValidator

        assert BigQueryClient is not None
        assert BigQueryEventStore is not None
        assert WorkspaceRegistry is not None
        assert QueryValidator is not None

    def test_mcp_server_imports(self):
        """MCP server should be importable."""
        from pixeltrail_mcp.server import mcp
        from pixeltrail_mcp.server import get_attribution

        assert mcp is not None
        assert get_attribution is not None


def _rows(rows):
    return QueryResult(rows=rows, total_rows=len(rows), bytes_processed=0, cache_hit=False)


@pytest.fixture
def bigquery_backend():
    """BigQueryClient double answering registry, event and touchpoint queries."""
    touchpoints = {
        "visitor-1": [
            {"id": "e1", "pixel_id": "px_123", "client_id": "visitor-1", "event_type": "PageView",
             "event_time": "2025-01-15T09:00:00Z", "event_value": None, "utm_content": "ad_A"},
            {"id": "e2", "pixel_id": "px_123", "client_id": "visitor-1", "event_type": "PageView",
             "event_time": "2025-01-15T11:00:00Z", "event_value": None, "utm_content": "ad_B"},
            {"id": "e4", "pixel_id": "px_123", "client_id": "visitor-1", "event_type": "Purchase",
             "event_time": "2025-01-15T12:00:00Z", "event_value": 100.0, "utm_content": "ad_B"},
        ],
        "visitor-2": [],
    }
    conversions = [
        {"id": "e3", "pixel_id": "px_123", "client_id": "visitor-1", "event_type": "Lead",
         "event_time": "2025-01-15T10:00:00Z", "event_value": None, "utm_content": None},
        {"id": "e4", "pixel_id": "px_123", "client_id": "visitor-1", "event_type": "Purchase",
         "event_time": "2025-01-15T12:00:00Z", "event_value": 100.0, "utm_content": "ad_B"},
        {"id": "e5", "pixel_id": "px_123", "client_id": "visitor-2", "event_type": "Purchase",
         "event_time": "2025-01-15T12:00:00Z", "event_value": 40.0, "utm_content": None},
        {"id": "e6", "pixel_id": "px_123", "client_id": "visitor-2", "event_type": "Purchase",
         "event_time": None, "event_value": 999.0, "utm_content": "ad_A"},
    ]

    def fake_query(sql, params=None):
        if "workspace_pixels" in sql:
            return _rows([{"workspace_id": "ws-1", "attribution_model": "first_touch"}])
        if "event_values" in sql:
            return _rows([{"event_type": "lead", "event_value": 25.0}])
        if "ORDER BY event_time ASC" in sql:
            return _rows(touchpoints[params["visitor_id"]])
        return _rows(conversions)

    client = MagicMock()
    client.config = BigQueryConfig(project_id="test-project")
    client.table_ref.side_effect = lambda dataset, table: f"test-project.{dataset}.{table}"
    client.query.side_effect = fake_query
    return client


class TestCrossPackageIntegration:
    """Test that packages work together."""

    def test_orchestrator_over_bigquery_collaborators(self, bigquery_backend):
        """Stored rows flow through normalization, journeys and both lanes."""
        from pixeltrail.attribution import AttributionOrchestrator
        from pixeltrail.bigquery import BigQueryEventStore, WorkspaceRegistry

        orchestrator = AttributionOrchestrator(
            event_store=BigQueryEventStore(client=bigquery_backend),
            access_resolver=WorkspaceRegistry(client=bigquery_backend),
        )

        result = orchestrator.get_attribution("px_123", "user-1", "2025-01-01", "2025-01-31")

        data = result.to_dict()
        assert data["model"] == "first_touch"
        # Malformed row dropped during normalization
        assert data["totalEvents"] == 3
        # visitor-2 has no touchpoints
        assert data["totalConversions"] == 2
        assert data["modelAttribution"] == {
            "ad_A": {
                "conversions": 2.0,
                "revenue": 125.0,
                "byType": {
                    "Lead": {"count": 1.0, "value": 25.0},
                    "Purchase": {"count": 1.0, "value": 100.0},
                },
            }
        }
        assert data["lastTouchAttribution"]["ad_A"]["revenue"] == 25.0
        assert data["lastTouchAttribution"]["ad_B"]["revenue"] == 100.0

    def test_mcp_tool_over_bigquery_collaborators(self, bigquery_backend, monkeypatch):
        """The MCP tool serializes an end-to-end result."""
        from pixeltrail.attribution import AttributionOrchestrator
        from pixeltrail.bigquery import BigQueryEventStore, WorkspaceRegistry
        from pixeltrail_mcp import server

        orchestrator = AttributionOrchestrator(
            event_store=BigQueryEventStore(client=bigquery_backend),
            access_resolver=WorkspaceRegistry(client=bigquery_backend),
        )
        monkeypatch.setattr(server, "_build_orchestrator", lambda: orchestrator)

        get_attribution = server.mcp._tool_manager._tools["get_attribution"].fn
        result = get_attribution(pixel_id="px_123", requester_id="user-1", model="last_touch")

        assert result["success"] is True
        # Fast path: only the purchase carrying its own ad id is attributed
        assert result["modelAttribution"] == result["lastTouchAttribution"]
        assert list(result["modelAttribution"]) == ["ad_B"]
