"""Tests for MCP server tools, resources, and prompts."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest

from pixeltrail.attribution.exceptions import AttributionFetchError

# =============================================================================
# Attribution Tool Tests
# =============================================================================


def test_get_attribution(make_orchestrator, make_event, at):
    """Test attribution for a pixel returns both lanes and totals."""
    from pixeltrail_mcp.server import mcp

    get_attribution = mcp._tool_manager._tools["get_attribution"].fn

    events = [
        make_event("PageView", at(9), ad_id="ad_A"),
        make_event("PageView", at(11), ad_id="ad_B"),
        make_event("Purchase", at(12), event_value=100.0),
    ]
    orchestrator = make_orchestrator(events, model="first_touch")

    with patch("pixeltrail_mcp.server._build_orchestrator", return_value=orchestrator):
        result = get_attribution(
            pixel_id="px_123",
            requester_id="user-1",
            date_start="2025-01-01",
            date_end="2025-01-31",
        )

    assert result["success"] is True
    assert result["model"] == "first_touch"
    assert result["modelAttribution"]["ad_A"]["revenue"] == 100.0
    assert result["lastTouchAttribution"]["ad_B"]["revenue"] == 100.0
    assert result["totalEvents"] == 1
    assert result["totalConversions"] == 1
    assert result["uniqueAds"] == 1


def test_get_attribution_model_override(make_orchestrator, make_event, at):
    """Test the model argument overrides the workspace model."""
    from pixeltrail_mcp.server import mcp

    get_attribution = mcp._tool_manager._tools["get_attribution"].fn

    orchestrator = make_orchestrator(
        [make_event("Purchase", at(12), ad_id="ad_A", event_value=10.0)],
        model="first_touch",
    )

    with patch("pixeltrail_mcp.server._build_orchestrator", return_value=orchestrator):
        result = get_attribution(pixel_id="px_123", requester_id="user-1", model="last_touch")

    assert result["model"] == "last_touch"
    assert result["modelAttribution"] == result["lastTouchAttribution"]


def test_get_attribution_unauthorized(make_orchestrator):
    """Test unauthorized requests return the unauthorized error code."""
    from pixeltrail_mcp.server import mcp

    get_attribution = mcp._tool_manager._tools["get_attribution"].fn

    orchestrator = make_orchestrator([], authorized=False)

    with patch("pixeltrail_mcp.server._build_orchestrator", return_value=orchestrator):
        result = get_attribution(pixel_id="px_123", requester_id="stranger")

    assert result["success"] is False
    assert result["error"] == "unauthorized"
    assert "stranger" in result["message"]


def test_get_attribution_invalid_date_range(make_orchestrator):
    """Test an inverted range returns the invalid_date_range error code."""
    from pixeltrail_mcp.server import mcp

    get_attribution = mcp._tool_manager._tools["get_attribution"].fn

    orchestrator = make_orchestrator([])

    with patch("pixeltrail_mcp.server._build_orchestrator", return_value=orchestrator):
        result = get_attribution(
            pixel_id="px_123",
            requester_id="user-1",
            date_start="2025-02-01",
            date_end="2025-01-01",
        )

    assert result == {
        "success": False,
        "error": "invalid_date_range",
        "message": "date_end 2025-01-01 is before date_start 2025-02-01",
    }
    assert orchestrator.event_store.event_queries == []


def test_get_attribution_unknown_model(make_orchestrator):
    """Test an unsupported model returns the unknown_model error code."""
    from pixeltrail_mcp.server import mcp

    get_attribution = mcp._tool_manager._tools["get_attribution"].fn

    with patch("pixeltrail_mcp.server._build_orchestrator", return_value=make_orchestrator([])):
        result = get_attribution(pixel_id="px_123", requester_id="user-1", model="linear")

    assert result["success"] is False
    assert result["error"] == "unknown_model"


def test_get_attribution_fetch_failed():
    """Test store failures return the fetch_failed error code."""
    from pixeltrail_mcp.server import mcp

    get_attribution = mcp._tool_manager._tools["get_attribution"].fn

    orchestrator = Mock()
    orchestrator.get_attribution.side_effect = AttributionFetchError("Conversion query for pixel px_123 failed")

    with patch("pixeltrail_mcp.server._build_orchestrator", return_value=orchestrator):
        result = get_attribution(pixel_id="px_123", requester_id="user-1")

    assert result == {
        "success": False,
        "error": "fetch_failed",
        "message": "Conversion query for pixel px_123 failed",
    }


def test_build_orchestrator(monkeypatch):
    """Test the server wires the orchestrator to BigQuery collaborators."""
    from pixeltrail.bigquery import BigQueryEventStore, WorkspaceRegistry
    from pixeltrail_mcp.server import _build_orchestrator

    monkeypatch.setenv("PIXELTRAIL_PROJECT_ID", "test-project")
    monkeypatch.setenv("PIXELTRAIL_JOURNEY_WORKERS", "4")

    orchestrator = _build_orchestrator()

    assert isinstance(orchestrator.event_store, BigQueryEventStore)
    assert isinstance(orchestrator.access_resolver, WorkspaceRegistry)
    assert orchestrator.event_store.client is orchestrator.access_resolver.client
    assert orchestrator.event_store.client.config.project_id == "test-project"
    assert orchestrator.config.journey_workers == 4


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("PIXELTRAIL_JOURNEY_WORKERS", "many"),
        ("PIXELTRAIL_JOURNEY_WORKERS", "0"),
        ("PIXELTRAIL_DEFAULT_MODEL", "linear"),
    ],
)
def test_get_attribution_invalid_config(monkeypatch, name, value):
    """Test a bad environment setting is reported in the error shape."""
    from pixeltrail_mcp.server import mcp

    get_attribution = mcp._tool_manager._tools["get_attribution"].fn
    monkeypatch.setenv("PIXELTRAIL_PROJECT_ID", "test-project")
    monkeypatch.setenv(name, value)

    result = get_attribution(pixel_id="px_123", requester_id="user-1")

    assert result["success"] is False
    assert result["error"] == "invalid_config"
    assert "Invalid configuration" in result["message"]


def test_build_orchestrator_invalid_config(monkeypatch):
    """Test configuration failures raise ConfigurationError."""
    from pixeltrail.attribution import AttributionError, ConfigurationError
    from pixeltrail_mcp.server import _build_orchestrator

    monkeypatch.setenv("PIXELTRAIL_JOURNEY_WORKERS", "many")

    with pytest.raises(ConfigurationError) as exc_info:
        _build_orchestrator()

    assert isinstance(exc_info.value, AttributionError)
    assert isinstance(exc_info.value.__cause__, ValueError)


def test_list_attribution_models():
    """Test the model catalogue."""
    from pixeltrail_mcp.server import mcp

    list_attribution_models = mcp._tool_manager._tools["list_attribution_models"].fn

    result = list_attribution_models()

    models = {entry["model"]: entry for entry in result}
    assert set(models) == {"first_touch", "last_touch"}
    assert models["last_touch"]["label"] == "Last Touch"
    assert "first ad" in models["first_touch"]["description"]


# =============================================================================
# Reconciliation Tool Tests
# =============================================================================


def test_rollup_attribution():
    """Test rolling a serialized lane up to campaigns."""
    from pixeltrail_mcp.server import mcp

    rollup_attribution = mcp._tool_manager._tools["rollup_attribution"].fn

    lane = {
        "ad_A": {"conversions": 1.0, "revenue": 100.0, "byType": {"purchase": {"count": 1.0, "value": 100.0}}},
        "ad_B": {"conversions": 2.0, "revenue": 20.0, "byType": {"lead": {"count": 2.0, "value": 20.0}}},
        "ad_C": {"conversions": 1.0, "revenue": 5.0},
    }

    result = rollup_attribution(attribution=lane, parent_of={"ad_A": "camp_1", "ad_B": "camp_1"})

    assert result["camp_1"] == {
        "conversions": 3.0,
        "revenue": 120.0,
        "byType": {
            "lead": {"count": 2.0, "value": 20.0},
            "purchase": {"count": 1.0, "value": 100.0},
        },
    }
    assert result["__unmapped__"]["conversions"] == 1.0


def test_merge_with_platform():
    """Test priority merge against platform-reported results."""
    from pixeltrail_mcp.server import mcp

    merge_with_platform = mcp._tool_manager._tools["merge_with_platform"].fn

    result = merge_with_platform(
        pixel_attribution={"ad_A": {"conversions": 10, "revenue": 1000.0}},
        platform_results={
            "ad_A": {"conversions": 8, "revenue": 960.0},
            "ad_B": {"conversions": 2, "revenue": 40.0},
        },
    )

    assert result["ad_A"]["verified"] == 8.0
    assert result["ad_A"]["pixel_only"] == 2.0
    assert result["ad_A"]["conversions"] == 10.0
    assert result["ad_B"]["platform_only"] == 2.0
    assert result["ad_B"]["revenue"] == 40.0


# =============================================================================
# Resource and Prompt Tests
# =============================================================================


def test_list_models_resource():
    """Test attribution models resource."""
    from pixeltrail_mcp.server import mcp

    list_models = mcp._resource_manager._resources["attribution-models://list"].fn

    result = list_models()

    assert "- last_touch: Last Touch" in result
    assert "- first_touch: First Touch" in result


def test_analyze_ad_attribution_prompt():
    """Test the attribution review prompt."""
    from pixeltrail_mcp.server import mcp

    prompt_fn = mcp._prompt_manager._prompts["analyze_ad_attribution"].fn

    result = prompt_fn(pixel_id="px_123", requester_id="user-1", days=14)

    assert 'pixel "px_123"' in result
    assert "last 14 days" in result
    assert 'get_attribution("px_123", "user-1")' in result
    assert "merge_with_platform" in result


def test_main():
    """Test main runs the server."""
    from pixeltrail_mcp import server

    with patch.object(server.mcp, "run") as mock_run:
        server.main()

    mock_run.assert_called_once_with()
