"""
Parent rollup and priority merge.

Campaign and ad set figures are rolled up from the last-touch lane, where
each conversion is one whole unit on its closing ad, so a visitor whose
journey spans several ads of one campaign is counted once.

Priority merge reconciles pixel-tracked conversions with what the ad
platform reports for the same ad:

- verified: seen by both (the minimum of the two counts)
- pixel only: tracked by the pixel beyond the platform's count
- platform only: reported by the platform beyond the pixel's count
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pixeltrail.attribution.schema import AdAttribution, AggregateAttribution, TypeBreakdown

UNMAPPED_PARENT = "__unmapped__"


def rollup_by_parent(
    lane: AggregateAttribution,
    parent_of: Mapping[str, str | None],
) -> AggregateAttribution:
    """
    Fold a lane up one level of the ad hierarchy.

    Args:
        lane: Per-ad lane, normally the last-touch lane
        parent_of: Ad id -> ad set id (or ad set id -> campaign id)

    Returns:
        AggregateAttribution keyed by parent id; ads with no parent land
        under UNMAPPED_PARENT
    """
    children: dict[str, list[AdAttribution]] = defaultdict(list)
    for ad_id, ad in lane.ads.items():
        children[parent_of.get(ad_id) or UNMAPPED_PARENT].append(ad)

    parents = {}
    for parent_id in sorted(children):
        ads = children[parent_id]
        event_types = sorted({event_type for ad in ads for event_type in ad.by_type})
        parents[parent_id] = AdAttribution(
            conversions=math.fsum(ad.conversions for ad in ads),
            revenue=math.fsum(ad.revenue for ad in ads),
            by_type={
                event_type: TypeBreakdown(
                    count=math.fsum(ad.by_type[event_type].count for ad in ads if event_type in ad.by_type),
                    value=math.fsum(ad.by_type[event_type].value for ad in ads if event_type in ad.by_type),
                )
                for event_type in event_types
            },
        )

    return AggregateAttribution(ads=parents)


@dataclass(frozen=True)
class MergedAttribution:
    """Pixel and platform figures for one ad, reconciled."""

    verified: float
    pixel_only: float
    platform_only: float
    conversions: float
    revenue: float

    def to_dict(self) -> dict[str, float]:
        return {
            "verified": self.verified,
            "pixel_only": self.pixel_only,
            "platform_only": self.platform_only,
            "conversions": self.conversions,
            "revenue": self.revenue,
        }


def priority_merge(
    pixel_conversions: float,
    pixel_revenue: float,
    platform_conversions: float,
    platform_revenue: float,
) -> MergedAttribution:
    """
    Merge pixel and platform counts for one ad.

    Revenue of each bucket is taken proportionally from the source that saw
    it; a source with zero conversions contributes no revenue.
    """
    verified = min(pixel_conversions, platform_conversions)
    pixel_only = max(0.0, pixel_conversions - platform_conversions)
    platform_only = max(0.0, platform_conversions - pixel_conversions)

    verified_revenue = (verified / platform_conversions) * platform_revenue if platform_conversions > 0 else 0.0
    pixel_only_revenue = (pixel_only / pixel_conversions) * pixel_revenue if pixel_conversions > 0 else 0.0
    platform_only_revenue = (
        (platform_only / platform_conversions) * platform_revenue if platform_conversions > 0 else 0.0
    )

    return MergedAttribution(
        verified=verified,
        pixel_only=pixel_only,
        platform_only=platform_only,
        conversions=verified + pixel_only + platform_only,
        revenue=verified_revenue + pixel_only_revenue + platform_only_revenue,
    )


def merge_lane_with_platform(
    lane: AggregateAttribution,
    platform: Mapping[str, Mapping[str, Any]],
) -> dict[str, MergedAttribution]:
    """
    Priority-merge every ad present in the lane or in the platform report.

    platform maps ad id -> {"conversions": ..., "revenue": ...}. Ads known to
    only one side keep that side's figures.
    """
    merged = {}
    for ad_id in sorted(set(lane.ads) | set(platform)):
        pixel = lane.get(ad_id) or AdAttribution()
        reported = platform.get(ad_id) or {}
        merged[ad_id] = priority_merge(
            pixel.conversions,
            pixel.revenue,
            float(reported.get("conversions") or 0),
            float(reported.get("revenue") or 0),
        )
    return merged
