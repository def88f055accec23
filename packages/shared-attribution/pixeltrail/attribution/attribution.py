"""
Attribution models - assign a conversion's value to the ads in its journey.

Supported models:
- Last touch (default): 100% credit to the latest exposure at or before
  the conversion ("which ad closed this customer")
- First touch: 100% credit to the earliest exposure ("which ad introduced
  this customer")

Both are single-touch. A fractional model (linear, time decay, position
based) plugs in by registering a function in ATTRIBUTION_MODELS that returns
several records whose credits sum to 1.0; the aggregator already folds
fractional credit.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from pixeltrail.attribution.schema import (
    AttributedConversion,
    AttributionModel,
    Touchpoint,
    touchpoint_sort_key,
)

ModelFunction = Callable[[Sequence[Touchpoint], float, str | None], list[AttributedConversion]]


MODEL_INFO: dict[AttributionModel, dict[str, str]] = {
    AttributionModel.LAST_TOUCH: {
        "label": "Last Touch",
        "description": "Credit to the last ad clicked before purchase",
    },
    AttributionModel.FIRST_TOUCH: {
        "label": "First Touch",
        "description": "Credit to the first ad that introduced the customer",
    },
}


def apply_attribution_model(
    journey: Sequence[Touchpoint],
    conversion_value: float,
    model: AttributionModel = AttributionModel.LAST_TOUCH,
    event_type: str | None = None,
) -> list[AttributedConversion]:
    """
    Attribute one conversion to the touchpoints of its journey.

    Args:
        journey: Touchpoints eligible for this conversion (at or before it)
        conversion_value: Monetary value of the conversion
        model: Attribution model to use
        event_type: Conversion event type, carried into the per-type breakdown

    Returns:
        AttributedConversion records whose credits sum to 1.0, or an empty
        list when the journey is empty (the conversion is unattributable)
    """
    if not journey:
        return []

    touchpoints = sorted(journey, key=touchpoint_sort_key)
    model_fn = ATTRIBUTION_MODELS[AttributionModel(model)]
    return model_fn(touchpoints, conversion_value, event_type)


def _first_touch_attribution(
    touchpoints: Sequence[Touchpoint],
    conversion_value: float,
    event_type: str | None = None,
) -> list[AttributedConversion]:
    """Attribute to the first exposure in the path."""
    first = touchpoints[0]
    return [
        AttributedConversion(
            ad_id=first.ad_id,
            credit=1.0,
            value=conversion_value,
            event_type=event_type,
        )
    ]


def _last_touch_attribution(
    touchpoints: Sequence[Touchpoint],
    conversion_value: float,
    event_type: str | None = None,
) -> list[AttributedConversion]:
    """Attribute to the last exposure before conversion."""
    last = touchpoints[-1]
    return [
        AttributedConversion(
            ad_id=last.ad_id,
            credit=1.0,
            value=conversion_value,
            event_type=event_type,
        )
    ]


ATTRIBUTION_MODELS: dict[AttributionModel, ModelFunction] = {
    AttributionModel.FIRST_TOUCH: _first_touch_attribution,
    AttributionModel.LAST_TOUCH: _last_touch_attribution,
}
