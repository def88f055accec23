"""Custom exceptions for attribution requests.

Every error aborts the whole request: a report never carries one lane
without the other.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager


class AttributionError(Exception):
    """Base exception for attribution errors."""

    code = "attribution_error"


class UnauthorizedError(AttributionError):
    """Raised when the requester has no access to the pixel."""

    code = "unauthorized"


class AttributionFetchError(AttributionError):
    """Raised when the event store or registry cannot be queried."""

    code = "fetch_failed"


class InvalidDateRangeError(AttributionError, ValueError):
    """Raised when the requested date range is malformed or inverted."""

    code = "invalid_date_range"


class UnknownAttributionModelError(AttributionError, ValueError):
    """Raised when an explicitly requested attribution model is not supported."""

    code = "unknown_model"


class ConfigurationError(AttributionError):
    """Raised when the environment holds an invalid engine or BigQuery setting."""

    code = "invalid_config"


@contextmanager
def translate_fetch_errors(operation: str) -> Iterator[None]:
    """Re-raise any collaborator failure inside the block as AttributionFetchError."""
    try:
        yield
    except AttributionError:
        raise
    except Exception as e:
        raise AttributionFetchError(f"{operation} failed: {e}") from e
