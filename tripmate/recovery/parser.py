"""
Itinerary recovery parser.

Rebuilds a structured day list from assistant prose when the specialist
presented an itinerary without calling capture_itinerary. It is a safety
net behind the tool path, not a second source of truth: it only runs when
the stored itinerary is missing or not fresh, and a text it cannot read
is skipped silently.

Recognized shapes (markdown tolerant):

    ### Day 1 (2026-05-03): Arrival
    **Morning:** Colosseum tour
    - Afternoon: Roman Forum
      - Palatine Hill
    Evening - Trastevere dinner

    Day 2: Morning: Vatican Museums
"""

import logging
import re
from datetime import date
from typing import List, Optional, Tuple

from tripmate.context.store import Day, TripContext


logger = logging.getLogger(__name__)


_BULLET = re.compile(r"^(?:[-*•+]|\d+[.)])\s+")
_HEADING = re.compile(r"^#+\s*")
_EMPHASIS = re.compile(r"\*\*|__")
_PAREN_DATE = re.compile(r"\(\s*(\d{4}-\d{2}-\d{2})\s*\)")
_DAY_HEADER = re.compile(r"^day\s*(\d+)?\s*(.*)$", re.IGNORECASE)
_SEGMENT = re.compile(
    r"^(morning|afternoon|evening|night)\b\s*(?:\([^)]*\))?\s*(?:[:\-–—]\s*(.*))?$",
    re.IGNORECASE,
)
# Labels that end the current segment without starting a new one
_CLOSING_LABEL = re.compile(
    r"^(?:commute|transit|transport|dining|food|meals?|tips?|notes?|fallback|"
    r"alternates?|alternatives?|rainy[- ]day|budget|stay|accommodation)\b[^:]*:",
    re.IGNORECASE,
)
_SEPARATORS = ":-–—."

_SEGMENT_FIELD = {
    "morning": "morning",
    "afternoon": "afternoon",
    "evening": "evening",
    "night": "evening",
}


def _normalize(raw: str) -> Tuple[str, bool, bool]:
    """Strip markdown decoration; returns (line, was_bulleted, was_heading)."""
    line = raw.strip()
    heading = bool(_HEADING.match(line))
    line = _HEADING.sub("", line)
    bulleted = bool(_BULLET.match(line))
    line = _BULLET.sub("", line)
    line = _EMPHASIS.sub("", line).strip()
    return line, bulleted, heading


def _match_day_header(line: str) -> Optional[Tuple[Optional[int], Optional[str], str]]:
    """Return (number, date, remainder) for a day header line, else None."""
    match = _DAY_HEADER.match(line)
    if not match:
        return None

    number, rest = match.group(1), match.group(2)
    # "Daytime", "Day trips" are not headers; a bare "Day" needs ":" or "("
    if number is None and rest and rest[0] not in ":(":
        return None
    if number is not None and rest and rest[0].isalnum() and not line[: match.start(2)].endswith(" "):
        return None

    day_date = None
    found = _PAREN_DATE.search(rest)
    if found:
        try:
            day_date = date.fromisoformat(found.group(1)).isoformat()
        except ValueError:
            day_date = None
        rest = _PAREN_DATE.sub("", rest, count=1)

    rest = rest.strip().lstrip(_SEPARATORS).strip()
    return (int(number) if number else None), day_date, rest


def _match_segment(line: str) -> Optional[Tuple[str, str]]:
    match = _SEGMENT.match(line)
    if not match:
        return None
    return _SEGMENT_FIELD[match.group(1).lower()], (match.group(2) or "").strip()


def looks_like_itinerary(text: Optional[str]) -> bool:
    """True when the text has a Day header followed later by a segment marker."""
    if not text:
        return False

    seen_day = False
    for raw in text.splitlines():
        line, _, _ = _normalize(raw)
        if not line:
            continue
        header = _match_day_header(line)
        if header is not None:
            seen_day = True
            if header[2] and _match_segment(header[2]):
                return True
            continue
        if seen_day and _match_segment(line):
            return True
    return False


def parse_itinerary(text: Optional[str]) -> List[Day]:
    """
    Parse itinerary-shaped prose into Day records.

    Days whose three segments are all empty are discarded.

    Args:
        text: Complete assistant output for the turn

    Returns:
        Ordered list of non-empty days (possibly empty)
    """
    days: List[Day] = []
    if not text:
        return days

    current: Optional[Day] = None
    segment: Optional[str] = None

    def flush() -> None:
        if current is not None and not current.is_empty():
            days.append(current)

    def append(field: str, activity: str) -> None:
        activity = activity.strip()
        if activity:
            getattr(current, field).append(activity)

    for raw in text.splitlines():
        line, bulleted, heading = _normalize(raw)

        if not line:
            # A blank line ends a segment that already has content
            if current is not None and segment and getattr(current, segment):
                segment = None
            continue

        header = _match_day_header(line)
        if header is not None:
            flush()
            number, day_date, rest = header
            current = Day(day=number, date=day_date)
            segment = None
            inline = _match_segment(rest) if rest else None
            if inline:
                segment, content = inline
                append(segment, content)
            continue

        if current is None:
            continue

        if heading:
            # Any other heading ends the day section
            flush()
            current = None
            segment = None
            continue

        inline = _match_segment(line)
        if inline:
            segment, content = inline
            append(segment, content)
            continue

        if _CLOSING_LABEL.match(line):
            segment = None
            continue

        if segment is not None:
            append(segment, line)

    flush()
    return days


def should_recover(trip: TripContext, text: Optional[str]) -> bool:
    """Recovery runs only for itinerary-shaped text and a non-fresh itinerary."""
    if trip.has_itinerary and trip.itinerary_status == "fresh":
        return False
    return looks_like_itinerary(text)


def recover_itinerary(trip: TripContext, text: Optional[str], session_id: str = "unknown") -> bool:
    """
    Populate the trip itinerary from prose when the tool path was skipped.

    Returns:
        True if an itinerary was stored
    """
    _log = f"[session={session_id}] [recovery] "

    if not should_recover(trip, text):
        return False

    days = parse_itinerary(text)
    if not days:
        logger.info(f"{_log}Itinerary-shaped text did not yield any days; skipping")
        return False

    count = trip.mark_itinerary(days)
    logger.info(f"{_log}Recovered itinerary from text | days={count}, status={trip.itinerary_status}")
    return True
