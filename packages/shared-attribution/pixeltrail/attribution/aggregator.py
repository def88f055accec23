"""
Aggregator - fold attributed conversions into per-ad lane totals.

The fold is commutative: credits and values are collected per key and summed
with math.fsum, which is exactly rounded, so shuffling the input (or
attributing visitors in parallel) cannot change a single digit of the output.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable

from pixeltrail.attribution.schema import (
    AdAttribution,
    AggregateAttribution,
    AttributedConversion,
    TypeBreakdown,
)


def aggregate(attributions: Iterable[AttributedConversion]) -> AggregateAttribution:
    """
    Fold AttributedConversion records by ad id.

    conversions += credit, revenue += value, and the same per
    (ad id, event type) for the drill-down breakdown. Records without an
    event type only count toward the ad totals.
    """
    credits: dict[str, list[float]] = defaultdict(list)
    values: dict[str, list[float]] = defaultdict(list)
    type_credits: dict[str, dict[str, list[float]]] = defaultdict(lambda: defaultdict(list))
    type_values: dict[str, dict[str, list[float]]] = defaultdict(lambda: defaultdict(list))

    for attribution in attributions:
        credits[attribution.ad_id].append(attribution.credit)
        values[attribution.ad_id].append(attribution.value)
        if attribution.event_type is not None:
            type_credits[attribution.ad_id][attribution.event_type].append(attribution.credit)
            type_values[attribution.ad_id][attribution.event_type].append(attribution.value)

    ads = {}
    for ad_id in sorted(credits):
        by_type = {
            event_type: TypeBreakdown(
                count=math.fsum(type_credits[ad_id][event_type]),
                value=math.fsum(type_values[ad_id][event_type]),
            )
            for event_type in sorted(type_credits.get(ad_id, {}))
        }
        ads[ad_id] = AdAttribution(
            conversions=math.fsum(credits[ad_id]),
            revenue=math.fsum(values[ad_id]),
            by_type=by_type,
        )

    return AggregateAttribution(ads=ads)
