"""
Safety decision policy.

Whatever a classifier backend returns passes through enforce_policy before
the router sees it, so the allow / warn / block rules hold even when the
model gets them wrong:

- block only for injection, illicit, harmful and explicit content
- competitor mentions and benign off-topic messages warn with a redirect
- travel is never blocked; missing details only populate missingSlots
"""

import logging
from typing import Dict, List, Optional, Tuple

from tripmate.context.store import TripContext
from tripmate.shared.contracts.classifier_output import (
    POLICY_VIOLATION_CATEGORIES,
    ClassifierDecision,
)


logger = logging.getLogger(__name__)


FAIL_OPEN_MESSAGE = "I'm here to help with your travel needs! What can I assist you with today?"

BLOCKED_REPLY = (
    "Sorry, I can't help with that request. "
    "I'm happy to help you plan a trip, find flights or hotels, or answer travel questions!"
)

COMPETITOR_REDIRECT = (
    "I understand you're comparing options. I can search flights, hotels and packages "
    "for you right here and find you great deals. Where would you like to go?"
)

NON_TRAVEL_REDIRECT = (
    "I'm specialized in travel planning and bookings. "
    "Is there a trip you'd like help with?"
)

# Critical details each request kind needs, in the order they are asked for
MISSING_SLOT_TEMPLATES: Dict[str, Tuple[str, ...]] = {
    "flight": ("origin", "destination", "departureDate"),
    "hotel": ("location", "checkInDate", "checkOutDate"),
    "car": ("pickupLocation", "pickupDate", "returnDate"),
    "trip": ("destination", "travelDates"),
    "generic": ("destination", "travelDates"),
}

# Trip context slots that satisfy each requested detail
_SATISFIED_BY: Dict[str, Tuple[str, ...]] = {
    "origin": ("origin_city",),
    "destination": ("destination_city",),
    "location": ("destination_city",),
    "pickupLocation": ("destination_city",),
    "departureDate": ("start_date",),
    "checkInDate": ("start_date",),
    "pickupDate": ("start_date",),
    "checkOutDate": ("end_date",),
    "returnDate": ("end_date",),
    "travelDates": ("start_date", "end_date"),
    "passengers": ("adults",),
}

_SLOT_LABELS: Dict[str, str] = {
    "origin": "where you're flying from",
    "destination": "where you'd like to go",
    "departureDate": "your departure date",
    "location": "which city you'd like to stay in",
    "checkInDate": "your check-in date",
    "checkOutDate": "your check-out date",
    "pickupLocation": "the pickup location",
    "pickupDate": "the pickup date",
    "returnDate": "the return date",
    "travelDates": "your travel dates",
}

_KIND_OPENERS: Dict[str, str] = {
    "flight": "I'd be happy to help you book a flight!",
    "hotel": "I'd love to help you find a great place to stay!",
    "car": "Happy to help you with a car rental!",
    "trip": "Sounds like a great trip to plan!",
    "generic": "I'd be happy to help with your travel plans!",
}


def missing_slots_for(kind: str, known: Dict[str, object]) -> List[str]:
    """
    Details still needed for a request kind.

    Args:
        kind: flight, hotel, car, trip or generic
        known: Snake_case trip slots already known (context plus this message)

    Returns:
        Template slot names not satisfied by known values
    """
    template = MISSING_SLOT_TEMPLATES.get(kind, MISSING_SLOT_TEMPLATES["generic"])
    missing = []
    for slot in template:
        needed = _SATISFIED_BY.get(slot, ())
        if not needed or any(known.get(field) is None for field in needed):
            missing.append(slot)
    return missing


def known_slots(trip: Optional[TripContext]) -> Dict[str, object]:
    if trip is None:
        return {}
    return {
        field: getattr(trip, field)
        for field in ("origin_city", "destination_city", "start_date", "end_date", "adults")
    }


def missing_slots_question(kind: str, missing: List[str]) -> str:
    """Friendly single question asking for the missing details."""
    opener = _KIND_OPENERS.get(kind, _KIND_OPENERS["generic"])
    labels = [_SLOT_LABELS.get(slot, slot) for slot in missing]
    if not labels:
        return opener
    if len(labels) == 1:
        asks = labels[0]
    else:
        asks = ", ".join(labels[:-1]) + " and " + labels[-1]
    return f"{opener} Could you tell me {asks}?"


def fail_open_decision(reason: str = "Classifier unavailable") -> ClassifierDecision:
    """Decision used whenever classification fails for any reason."""
    return ClassifierDecision(
        decision="allow",
        category="travel",
        reason=reason,
        missing_slots=None,
        suggestion=FAIL_OPEN_MESSAGE,
    )


def enforce_policy(decision: ClassifierDecision) -> ClassifierDecision:
    """
    Normalize a classifier decision so the gating rules always hold.

    Returns:
        A new ClassifierDecision; the input is not modified
    """
    category = decision.category
    verdict = decision.decision
    missing = decision.missing_slots
    suggestion = decision.suggestion

    if category in POLICY_VIOLATION_CATEGORIES:
        verdict = "block"
    elif category in ("competitor", "non-travel"):
        if verdict != "warn":
            logger.debug(f"Policy adjusted {category} decision {verdict} -> warn")
        verdict = "warn"
        missing = None
        if not suggestion:
            suggestion = COMPETITOR_REDIRECT if category == "competitor" else NON_TRAVEL_REDIRECT
    elif verdict == "block":
        # Travel requests are never blocked, however underspecified
        logger.debug("Policy adjusted travel decision block -> allow")
        verdict = "allow"

    if verdict == "block":
        missing = None
        suggestion = None
    elif missing is not None and not missing:
        missing = None

    return ClassifierDecision(
        decision=verdict,
        category=category,
        reason=decision.reason,
        missing_slots=missing,
        suggestion=suggestion,
    )


def tripwire_triggered(decision: ClassifierDecision) -> bool:
    """The only condition that stops a turn before any specialist runs."""
    return decision.decision == "block" or decision.category in POLICY_VIOLATION_CATEGORIES
