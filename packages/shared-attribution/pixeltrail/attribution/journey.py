"""
Journey builder - reconstruct a visitor's ad exposure history.

A journey is every event of the visitor that carries an ad id, ordered by
event time. Builders hold no state between calls, so journeys of different
visitors can be built concurrently.
"""

from __future__ import annotations

import logging
from datetime import datetime

from pixeltrail.attribution.exceptions import translate_fetch_errors
from pixeltrail.attribution.interfaces import EventStore
from pixeltrail.attribution.schema import Journey, Touchpoint

logger = logging.getLogger(__name__)


class JourneyBuilder:
    """
    Builds journeys for the visitors of one pixel.

    Example:
        builder = JourneyBuilder(store, pixel_id="px_123")
        journey = builder.build_journey("visitor-1", as_of=conversion_time)
    """

    def __init__(self, event_store: EventStore, pixel_id: str):
        self.event_store = event_store
        self.pixel_id = pixel_id

    def build_journey(self, visitor_id: str, as_of: datetime | None = None) -> Journey:
        """
        Return the visitor's touchpoints at or before as_of.

        Args:
            visitor_id: Visitor whose journey to build (required)
            as_of: Upper bound on touchpoint time; None means full history

        Returns:
            Journey ordered by event time; empty when the visitor has no
            qualifying touchpoints

        Raises:
            ValueError: If visitor_id is empty
            AttributionFetchError: If the event store query fails
        """
        if not visitor_id:
            raise ValueError("visitor_id is required to build a journey")

        with translate_fetch_errors(f"Touchpoint query for visitor {visitor_id}"):
            events = self.event_store.query_touchpoints(self.pixel_id, visitor_id)

        touchpoints = [
            Touchpoint.from_event(event)
            for event in events
            if event.is_touchpoint and event.event_time is not None
        ]
        journey = Journey.from_touchpoints(visitor_id, touchpoints)

        logger.debug(f"Built journey for visitor {visitor_id}: {len(journey)} touchpoints")

        if as_of is not None:
            return journey.up_to(as_of)
        return journey
