"""Attribution orchestrator.

Drives one attribution request end to end:

1. Validate the date range (before any query is issued)
2. Resolve the requester's access and the pixel's workspace settings
3. Fetch the conversion candidates in the window
4. Assign credit through one of two paths
5. Fold the credit into the last-touch and model lanes

Paths:
- FastPath (last touch): every conversion carrying an ad id is its own single
  touchpoint; one store query, no journey reconstruction
- JourneyPath (any model): conversions are grouped by visitor, each visitor's
  journey is fetched once, and each conversion is attributed against the
  touchpoints at or before it. Both lanes are always computed: parent-level
  reporting needs whole last-touch credit even when ads use another model.

Any failure aborts the request; partial results are never returned.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date

from pixeltrail.attribution.aggregator import aggregate
from pixeltrail.attribution.attribution import apply_attribution_model
from pixeltrail.attribution.config import AttributionConfig
from pixeltrail.attribution.exceptions import (
    UnauthorizedError,
    UnknownAttributionModelError,
    translate_fetch_errors,
)
from pixeltrail.attribution.interfaces import AccessResolver, EventFilters, EventStore
from pixeltrail.attribution.journey import JourneyBuilder
from pixeltrail.attribution.schema import (
    AttributedConversion,
    AttributionModel,
    AttributionResult,
    Conversion,
    DateRange,
    EventValues,
    Journey,
    Touchpoint,
)

logger = logging.getLogger(__name__)


@dataclass
class CreditAssignment:
    """Credit produced by a path, before aggregation."""

    last_touch: list[AttributedConversion] = field(default_factory=list)
    model: list[AttributedConversion] = field(default_factory=list)
    attributed: int = 0  # Conversions that produced credit


class AttributionPath(ABC):
    """Strategy turning conversions into last-touch and model credit.

    Every path must satisfy credit conservation: each attributed conversion
    yields records whose credits sum to 1.0 in each lane, and unattributable
    conversions yield nothing.
    """

    name: str

    @abstractmethod
    def attribute(
        self,
        conversions: Sequence[Conversion],
        model: AttributionModel,
    ) -> CreditAssignment:
        pass  # pragma: no cover


class FastPath(AttributionPath):
    """Last touch straight from each conversion's own ad id."""

    name = "fast"

    def attribute(
        self,
        conversions: Sequence[Conversion],
        model: AttributionModel,
    ) -> CreditAssignment:
        if model != AttributionModel.LAST_TOUCH:
            raise ValueError(f"FastPath only supports last_touch, got {model.value}")

        assignment = CreditAssignment()
        for conversion in conversions:
            if conversion.touchpoint_ad_id is None:
                continue

            touchpoint = Touchpoint(ad_id=conversion.touchpoint_ad_id, event_time=conversion.event_time)
            assignment.last_touch.extend(
                apply_attribution_model(
                    [touchpoint],
                    conversion.value,
                    AttributionModel.LAST_TOUCH,
                    conversion.event_type,
                )
            )
            assignment.attributed += 1

        # Both lanes are the same credit on this path
        assignment.model = assignment.last_touch
        return assignment


class JourneyPath(AttributionPath):
    """Per-visitor journey reconstruction with bounded parallel fetches."""

    name = "journey"

    def __init__(self, journey_builder: JourneyBuilder, max_workers: int = 8):
        self.journey_builder = journey_builder
        self.max_workers = max_workers

    def attribute(
        self,
        conversions: Sequence[Conversion],
        model: AttributionModel,
    ) -> CreditAssignment:
        by_visitor: dict[str, list[Conversion]] = defaultdict(list)
        anonymous = 0
        for conversion in conversions:
            if not conversion.visitor_id:
                anonymous += 1
                continue
            by_visitor[conversion.visitor_id].append(conversion)

        if anonymous:
            logger.info(f"Dropped {anonymous} conversions without a visitor id")

        visitor_ids = sorted(by_visitor)
        journeys = self.build_journeys(visitor_ids)

        assignment = CreditAssignment()
        for visitor_id in visitor_ids:
            journey = journeys[visitor_id]
            for conversion in by_visitor[visitor_id]:
                # Each conversion gets its own eligible set
                eligible = journey.up_to(conversion.event_time)
                if eligible.is_empty:
                    continue

                last_touch = apply_attribution_model(
                    eligible.touchpoints,
                    conversion.value,
                    AttributionModel.LAST_TOUCH,
                    conversion.event_type,
                )
                if model == AttributionModel.LAST_TOUCH:
                    modeled = last_touch
                else:
                    modeled = apply_attribution_model(
                        eligible.touchpoints,
                        conversion.value,
                        model,
                        conversion.event_type,
                    )

                assignment.last_touch.extend(last_touch)
                assignment.model.extend(modeled)
                assignment.attributed += 1

        logger.info(
            f"Attributed {assignment.attributed} conversions across {len(visitor_ids)} visitors"
        )
        return assignment

    def build_journeys(self, visitor_ids: Sequence[str]) -> dict[str, Journey]:
        """Fetch full journeys for visitors; the first failure aborts the rest."""
        if not visitor_ids:
            return {}

        journeys: dict[str, Journey] = {}
        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(visitor_ids)),
            thread_name_prefix="journey",
        )
        try:
            futures = {
                executor.submit(self.journey_builder.build_journey, visitor_id): visitor_id
                for visitor_id in visitor_ids
            }
            for future in as_completed(futures):
                journeys[futures[future]] = future.result()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return journeys


class AttributionOrchestrator:
    """
    Entry point of the attribution engine.

    Example:
        orchestrator = AttributionOrchestrator(
            event_store=BigQueryEventStore(),
            access_resolver=WorkspaceRegistry(),
        )
        result = orchestrator.get_attribution("px_123", "user-1", "2025-01-01", "2025-01-31")
        result.to_dict()
    """

    def __init__(
        self,
        event_store: EventStore,
        access_resolver: AccessResolver,
        config: AttributionConfig | None = None,
    ):
        self.event_store = event_store
        self.access_resolver = access_resolver
        self.config = config or AttributionConfig()

    def get_attribution(
        self,
        pixel_id: str,
        requester_id: str,
        date_start: date | str | None = None,
        date_end: date | str | None = None,
        model: AttributionModel | str | None = None,
        force_journeys: bool = False,
    ) -> AttributionResult:
        """
        Attribute the pixel's conversions in the date range to ads.

        Args:
            pixel_id: Pixel whose events to attribute
            requester_id: User asking for the report
            date_start: First calendar day (inclusive); None for all time
            date_end: Last calendar day (inclusive); None for all time
            model: Model overriding the workspace setting
            force_journeys: Reconstruct journeys even for last touch

        Returns:
            AttributionResult with both lanes and totals

        Raises:
            InvalidDateRangeError: If the range is malformed; raised before any query
            UnknownAttributionModelError: If model names an unsupported model
            UnauthorizedError: If the requester has no access to the pixel
            AttributionFetchError: If any store or registry query fails
        """
        date_range = DateRange.from_dates(date_start, date_end)
        requested_model = self._parse_requested_model(model)

        if not pixel_id or not requester_id:
            raise UnauthorizedError("pixel_id and requester_id are required")

        with translate_fetch_errors(f"Access check for pixel {pixel_id}"):
            grant = self.access_resolver.resolve_access(pixel_id, requester_id)
        if not grant.authorized:
            raise UnauthorizedError(f"Requester {requester_id} has no access to pixel {pixel_id}")

        attribution_model = requested_model or self._stored_model(grant.attribution_model)

        conversions = self.fetch_conversions(pixel_id, date_range, grant.event_values)

        path = self.select_path(pixel_id, attribution_model, force_journeys)
        logger.info(
            f"Attributing {len(conversions)} conversions for pixel {pixel_id} "
            f"with {attribution_model.value} via {path.name} path"
        )
        assignment = path.attribute(conversions, attribution_model)

        last_touch_lane = aggregate(assignment.last_touch)
        if assignment.model is assignment.last_touch:
            model_lane = last_touch_lane
        else:
            model_lane = aggregate(assignment.model)

        return AttributionResult(
            last_touch_attribution=last_touch_lane,
            model_attribution=model_lane,
            model=attribution_model,
            total_events=len(conversions),
            total_conversions=assignment.attributed,
        )

    def select_path(
        self,
        pixel_id: str,
        model: AttributionModel,
        force_journeys: bool = False,
    ) -> AttributionPath:
        """Pick the path once per request."""
        if model == AttributionModel.LAST_TOUCH and not force_journeys:
            return FastPath()
        return JourneyPath(
            JourneyBuilder(self.event_store, pixel_id),
            max_workers=self.config.journey_workers,
        )

    def fetch_conversions(
        self,
        pixel_id: str,
        date_range: DateRange,
        event_values: EventValues | None = None,
    ) -> list[Conversion]:
        """
        Fetch conversion candidates in the window with values resolved.

        Page-view-family events are excluded on the canonical type even if
        the store let them through; malformed events are skipped.
        """
        with translate_fetch_errors(f"Conversion query for pixel {pixel_id}"):
            events = self.event_store.query_events(
                pixel_id,
                date_range,
                EventFilters(exclude_page_views=True),
            )

        conversions = []
        malformed = 0
        for event in events:
            if not event.is_well_formed:
                malformed += 1
                continue
            if not event.is_conversion_candidate:
                continue
            conversions.append(Conversion.from_event(event, event_values))

        if malformed:
            logger.warning(f"Skipped {malformed} malformed events for pixel {pixel_id}")

        return conversions

    def _parse_requested_model(self, model: AttributionModel | str | None) -> AttributionModel | None:
        if model is None or model == "":
            return None
        try:
            return AttributionModel(model)
        except ValueError as e:
            raise UnknownAttributionModelError(f"Unknown attribution model: {model}") from e

    def _stored_model(self, stored: str | None) -> AttributionModel:
        if not stored:
            return self.config.default_model
        try:
            return AttributionModel(stored)
        except ValueError:
            logger.warning(
                f"Unknown stored attribution model {stored!r}, "
                f"using {self.config.default_model.value}"
            )
            return self.config.default_model
