"""
Event type normalization.

Pixels report event types in whatever shape the site author chose
("Purchase", "CompleteRegistration", "add-to-cart", "Page View"). Configured
event values and the page-view exclusion both work on a canonical key:

    CompleteRegistration -> complete_registration
    add-to-cart          -> add_to_cart
    Page View            -> page_view
"""

from __future__ import annotations

import re

UNKNOWN_EVENT_TYPE = "unknown"

# Substrings that put a canonical type in the page-view family.
# "purchase_page_view" is a page view too: the match is on the whole key.
PAGE_VIEW_MARKERS = ("pageview", "page_view")

_CASE_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_event_type(event_type: str | None) -> str:
    """
    Return the canonical key for an event type.

    The key is lowercase snake_case with punctuation and whitespace folded
    into single underscores. Never returns an empty string: input with no
    letters or digits maps to "unknown".
    """
    if event_type is None:
        return UNKNOWN_EVENT_TYPE

    text = _CASE_BOUNDARY.sub("_", str(event_type).strip())
    key = _NON_ALNUM.sub("_", text.lower()).strip("_")
    return key or UNKNOWN_EVENT_TYPE


def is_page_view_type(event_type: str | None) -> bool:
    """True if the event type belongs to the page-view family."""
    canonical = normalize_event_type(event_type)
    return any(marker in canonical for marker in PAGE_VIEW_MARKERS)
