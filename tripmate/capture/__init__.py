"""Slot capture: tool executors and the regex fallback."""

from tripmate.capture.tools import (
    CAPTURE_ITINERARY,
    CAPTURE_TOOL_NAMES,
    CAPTURE_TRIP_PARAMS,
    CONFIRM_BOOKING,
    TOOL_SPECS,
    CaptureResult,
    capture_itinerary,
    capture_trip_params,
    confirm_booking,
    execute_capture_tool,
)
from tripmate.capture.fallback import capture_from_text, extract_slots

__all__ = [
    "CAPTURE_ITINERARY",
    "CAPTURE_TOOL_NAMES",
    "CAPTURE_TRIP_PARAMS",
    "CONFIRM_BOOKING",
    "TOOL_SPECS",
    "CaptureResult",
    "capture_itinerary",
    "capture_trip_params",
    "confirm_booking",
    "execute_capture_tool",
    "capture_from_text",
    "extract_slots",
]
