"""Configuration for the attribution engine."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

from pixeltrail.attribution.schema import AttributionModel


class AttributionConfig(BaseModel):
    """Engine settings shared by every request."""

    default_model: AttributionModel = AttributionModel.LAST_TOUCH
    journey_workers: int = Field(default=8, ge=1, le=64)  # Parallel journey fetches

    @classmethod
    def from_env(cls) -> AttributionConfig:
        """Load configuration from environment variables."""
        return cls(
            default_model=os.getenv("PIXELTRAIL_DEFAULT_MODEL", AttributionModel.LAST_TOUCH.value),
            journey_workers=int(os.getenv("PIXELTRAIL_JOURNEY_WORKERS", "8")),
        )
