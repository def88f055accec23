"""
Pixeltrail MCP Server - Main entry point.

Exposes the attribution engine:
- Per-ad attribution for a pixel (last-touch and model lanes)
- Attribution model catalogue
- Parent rollup and priority merge with platform-reported conversions
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from pixeltrail.attribution import (
    AttributionError,
    AttributionOrchestrator,
    MODEL_INFO,
)

logger = logging.getLogger(__name__)

# Initialize server
mcp = FastMCP("Pixeltrail Attribution")


def _build_orchestrator() -> AttributionOrchestrator:
    """Wire the orchestrator to the BigQuery collaborators."""
    from pixeltrail.attribution import AttributionConfig, ConfigurationError
    from pixeltrail.bigquery import BigQueryClient, BigQueryEventStore, WorkspaceRegistry

    # pydantic.ValidationError is a ValueError
    try:
        client = BigQueryClient()
        config = AttributionConfig.from_env()
    except ValueError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    return AttributionOrchestrator(
        event_store=BigQueryEventStore(client=client),
        access_resolver=WorkspaceRegistry(client=client),
        config=config,
    )


# =============================================================================
# Attribution Tools
# =============================================================================


@mcp.tool()
def get_attribution(
    pixel_id: str,
    requester_id: str,
    date_start: str | None = None,
    date_end: str | None = None,
    model: str | None = None,
) -> dict:
    """
    Attribute a pixel's conversions to the ads that drove them.

    Returns two lanes keyed by ad id:
    - lastTouchAttribution: whole conversions on the closing ad (use for
      campaign and ad set totals)
    - modelAttribution: credit under the workspace's attribution model (use
      for ad-level figures)

    Args:
        pixel_id: Pixel identifier
        requester_id: User requesting the report
        date_start: First day (YYYY-MM-DD, inclusive); omit for all time
        date_end: Last day (YYYY-MM-DD, inclusive); omit for all time
        model: Override the workspace model (first_touch, last_touch)

    Returns:
        Attribution lanes and totals, or an error code
    """
    logger.info(f"Attribution requested for pixel {pixel_id} ({date_start} to {date_end})")

    try:
        orchestrator = _build_orchestrator()
        result = orchestrator.get_attribution(
            pixel_id,
            requester_id,
            date_start=date_start,
            date_end=date_end,
            model=model,
        )
    except AttributionError as e:
        logger.warning(f"Attribution failed for pixel {pixel_id}: {e}")
        return {"success": False, "error": e.code, "message": str(e)}

    return {"success": True, **result.to_dict()}


@mcp.tool()
def list_attribution_models() -> list[dict]:
    """
    List the supported attribution models.

    Returns:
        Model name, label and description for each model
    """
    return [
        {"model": model.value, **info}
        for model, info in MODEL_INFO.items()
    ]


# =============================================================================
# Reconciliation Tools
# =============================================================================


@mcp.tool()
def rollup_attribution(
    attribution: dict[str, dict],
    parent_of: dict[str, str],
) -> dict:
    """
    Roll a per-ad lane up to ad sets or campaigns.

    Pass lastTouchAttribution so a visitor whose journey spans several ads of
    one campaign is counted once.

    Args:
        attribution: Lane keyed by ad id ({conversions, revenue, byType})
        parent_of: Ad id -> parent id

    Returns:
        Lane keyed by parent id; unmapped ads under "__unmapped__"
    """
    from pixeltrail.attribution import rollup_by_parent

    lane = _lane_from_dict(attribution)
    return rollup_by_parent(lane, parent_of).to_dict()


@mcp.tool()
def merge_with_platform(
    pixel_attribution: dict[str, dict],
    platform_results: dict[str, dict],
) -> dict:
    """
    Priority-merge pixel attribution with the ad platform's reported results.

    Args:
        pixel_attribution: Pixel lane keyed by ad id ({conversions, revenue})
        platform_results: Platform figures keyed by ad id ({conversions, revenue})

    Returns:
        Per-ad verified / pixel-only / platform-only split with merged totals
    """
    from pixeltrail.attribution import merge_lane_with_platform

    lane = _lane_from_dict(pixel_attribution)
    merged = merge_lane_with_platform(lane, platform_results)
    return {ad_id: result.to_dict() for ad_id, result in merged.items()}


def _lane_from_dict(data: dict[str, dict]):
    """Rebuild an AggregateAttribution from its serialized form."""
    from pixeltrail.attribution.schema import AdAttribution, AggregateAttribution, TypeBreakdown

    return AggregateAttribution(
        ads={
            ad_id: AdAttribution(
                conversions=float(entry.get("conversions") or 0),
                revenue=float(entry.get("revenue") or 0),
                by_type={
                    event_type: TypeBreakdown(
                        count=float(breakdown.get("count") or 0),
                        value=float(breakdown.get("value") or 0),
                    )
                    for event_type, breakdown in (entry.get("byType") or {}).items()
                },
            )
            for ad_id, entry in data.items()
        }
    )


# =============================================================================
# Resources
# =============================================================================


@mcp.resource("attribution-models://list")
def list_models_resource() -> str:
    """List attribution models with their descriptions."""
    return "\n".join(
        f"- {model.value}: {info['label']} - {info['description']}"
        for model, info in MODEL_INFO.items()
    )


# =============================================================================
# Prompts
# =============================================================================


@mcp.prompt()
def analyze_ad_attribution(pixel_id: str, requester_id: str, days: int = 30) -> str:
    """Prompt for reviewing which ads drive conversions."""
    return f"""Review ad attribution for pixel "{pixel_id}" over the last {days} days.

Steps:
1. Call get_attribution("{pixel_id}", "{requester_id}") with a date range covering the last {days} days
2. Rank ads in modelAttribution by revenue and by conversions
3. Roll lastTouchAttribution up to ad sets and campaigns with rollup_attribution
4. If platform-reported results are available, reconcile them with merge_with_platform

Include:
- Top ads by attributed revenue
- Ads that introduce customers vs ads that close them (compare first_touch and last_touch)
- Campaigns whose pixel and platform figures disagree the most
"""


# =============================================================================
# Entry Point
# =============================================================================


def main():
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
