"""
Deterministic slot extraction from free text.

Used when a specialist was supposed to call capture_trip_params but did
not. It recognizes a small set of phrasings:

    from Mumbai                    -> originCity
    to / in / of Rome, thinking of, destination is -> destinationCity
    2026-07-10 to 2026-07-16       -> startDate, endDate
    starting 2026-05-03            -> startDate
    2 adults / two adults          -> adults
    ₹120000, $2,500, 1500 USD      -> budgetAmount, currency

A budget amount with no recognizable currency is captured on its own and
the currency stays missing. Values written by the tool path are never
overwritten here.
"""

import logging
import re
from datetime import date
from typing import Any, Dict, Optional

from tripmate.context.store import SignatureChange, TripContext, dates_out_of_order
from tripmate.shared.contracts.capture import CURRENCY_SYMBOLS


logger = logging.getLogger(__name__)


ISO_CURRENCIES = (
    "INR", "USD", "EUR", "GBP", "JPY", "AUD", "CAD", "SGD", "AED", "CHF", "THB", "NZD",
)

_MONTHS_AND_DAYS = {
    "January", "February", "March", "April", "May", "June", "July", "August",
    "September", "October", "November", "December",
    "Jan", "Feb", "Mar", "Apr", "Jun", "Jul", "Aug", "Sep", "Sept", "Oct", "Nov", "Dec",
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
}

_WORD_NUMBERS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5,
    "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
}

_CITY = r"([A-Z][a-zA-Z]+(?:\s+[A-Z][a-zA-Z]+){0,2})"
_ISO_DATE = r"(\d{4}-\d{2}-\d{2})"
_AMOUNT = r"(\d[\d,]*(?:\.\d+)?)\s*([kK])?\b"

_ORIGIN_PATTERN = re.compile(r"\bfrom\s+" + _CITY)
_DEST_PATTERN = re.compile(r"\b(?:to|in|of)\s+" + _CITY)
_THINKING_PATTERN = re.compile(r"(?:thinking\s+(?:about|of)|(?i:destination)\s*(?:is|:))\s+" + _CITY)
_RANGE_PATTERN = re.compile(_ISO_DATE + r"\s*(?:to|until|through|till|–|—|-)\s*" + _ISO_DATE)
_START_PATTERN = re.compile(r"\b(?:starting|start(?:ing)?\s+on|from|on)\s+" + _ISO_DATE, re.IGNORECASE)
_ADULTS_PATTERN = re.compile(
    r"\b(\d+|" + "|".join(_WORD_NUMBERS) + r")\s+adults?\b", re.IGNORECASE
)
_SYMBOL_BUDGET_PATTERN = re.compile(
    "(" + "|".join(re.escape(s) for s in CURRENCY_SYMBOLS) + r")\s?" + _AMOUNT
)
_CODE_AFTER_PATTERN = re.compile(_AMOUNT + r"\s*(" + "|".join(ISO_CURRENCIES) + r")\b")
_CODE_BEFORE_PATTERN = re.compile(r"\b(" + "|".join(ISO_CURRENCIES) + r")\s?" + _AMOUNT)
_BARE_BUDGET_PATTERN = re.compile(
    r"\bbudget\b(?:\s+(?:is|of|around|about|approx(?:imately)?|roughly|under|~|:))*\s*:?\s*" + _AMOUNT,
    re.IGNORECASE,
)


def _clean_city(raw: str) -> Optional[str]:
    words = raw.split()
    # Trailing month/day names belong to the date phrase, not the city
    while words and words[-1] in _MONTHS_AND_DAYS:
        words.pop()
    if not words or words[0] in _MONTHS_AND_DAYS or words[0] in ISO_CURRENCIES:
        return None
    return " ".join(words)


def _first_city(pattern: re.Pattern, text: str, exclude: Optional[str] = None) -> Optional[str]:
    for match in pattern.finditer(text):
        city = _clean_city(match.group(1))
        if city and city != exclude:
            return city
    return None


def _valid_date(value: str) -> bool:
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _amount(raw: str, thousands: Optional[str]) -> Optional[float]:
    value = float(raw.replace(",", ""))
    if thousands:
        value *= 1000
    return value if value > 0 else None


def _number(value: float):
    return int(value) if value.is_integer() else value


def extract_slots(text: str) -> Dict[str, Any]:
    """
    Pull trip slots out of a user message.

    Args:
        text: Raw user message

    Returns:
        Snake_case slot mapping containing only the slots that were found
    """
    slots: Dict[str, Any] = {}
    if not text:
        return slots

    origin = _first_city(_ORIGIN_PATTERN, text)
    if origin:
        slots["origin_city"] = origin

    destination = _first_city(_DEST_PATTERN, text, exclude=origin)
    if not destination:
        destination = _first_city(_THINKING_PATTERN, text, exclude=origin)
    if destination:
        slots["destination_city"] = destination

    date_range = _RANGE_PATTERN.search(text)
    if date_range and _valid_date(date_range.group(1)) and _valid_date(date_range.group(2)):
        slots["start_date"] = date_range.group(1)
        slots["end_date"] = date_range.group(2)
    else:
        start = _START_PATTERN.search(text)
        if start and _valid_date(start.group(1)):
            slots["start_date"] = start.group(1)

    adults = _ADULTS_PATTERN.search(text)
    if adults:
        token = adults.group(1).lower()
        count = _WORD_NUMBERS.get(token) or int(token)
        if count > 0:
            slots["adults"] = count

    symbol = _SYMBOL_BUDGET_PATTERN.search(text)
    code_after = _CODE_AFTER_PATTERN.search(text)
    code_before = _CODE_BEFORE_PATTERN.search(text)
    bare = _BARE_BUDGET_PATTERN.search(text)

    if symbol:
        amount = _amount(symbol.group(2), symbol.group(3))
        currency = CURRENCY_SYMBOLS[symbol.group(1)]
    elif code_after:
        amount = _amount(code_after.group(1), code_after.group(2))
        currency = code_after.group(3)
    elif code_before:
        amount = _amount(code_before.group(2), code_before.group(3))
        currency = code_before.group(1)
    elif bare:
        amount = _amount(bare.group(1), bare.group(2))
        currency = None
    else:
        amount = currency = None

    if amount is not None:
        slots["budget_amount"] = _number(amount)
        if currency:
            slots["currency"] = currency

    return slots


def capture_from_text(trip: TripContext, text: str) -> Optional[SignatureChange]:
    """
    Apply fallback extraction to the trip context.

    Only fills slots that are empty or were previously filled by this same
    fallback. Extracted dates that would conflict with each other or with
    stored dates are dropped.

    Returns:
        SignatureChange if anything was written, otherwise None
    """
    found = extract_slots(text)
    writable = {
        slot: value
        for slot, value in found.items()
        if getattr(trip, slot) is None or trip.slot_sources.get(slot) == "fallback"
    }

    start = writable.get("start_date", trip.start_date)
    end = writable.get("end_date", trip.end_date)
    if dates_out_of_order(start, end):
        writable.pop("start_date", None)
        writable.pop("end_date", None)

    if not writable:
        if found:
            logger.debug(f"Fallback extraction skipped | found={sorted(found)}, all slots owned by tool")
        return None

    change = trip.apply_update(writable, source="fallback")
    logger.info(
        f"Fallback extraction applied | slots={sorted(writable)}, "
        f"signature_changed={change.changed}"
    )
    return change
