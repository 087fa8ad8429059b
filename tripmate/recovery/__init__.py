"""Itinerary recovery from assistant prose."""

from tripmate.recovery.parser import (
    looks_like_itinerary,
    parse_itinerary,
    recover_itinerary,
    should_recover,
)

__all__ = [
    "looks_like_itinerary",
    "parse_itinerary",
    "recover_itinerary",
    "should_recover",
]
