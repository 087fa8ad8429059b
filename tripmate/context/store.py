"""
Trip context store.

The canonical, mutable record of what is known about the current trip plus
the bookkeeping that decides whether a generated itinerary still matches
the trip. One instance is owned by one conversation session and is mutated
in place by the capturer, the recovery parser and booking confirmation.

Slot names are snake_case in Python and camelCase on the wire
(originCity, destinationCity, startDate, ...).
"""

import hashlib
import json
import logging
from datetime import date
from typing import Any, Dict, List, Literal, Mapping, NamedTuple, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from tripmate.shared.errors import ErrorCode, SlotTypeError, TripEngineError


logger = logging.getLogger(__name__)


ItineraryStatus = Literal["fresh", "stale", "absent"]
SlotSource = Literal["tool", "fallback"]

# Slots whose change invalidates a generated itinerary
CRITICAL_SLOTS = (
    "destination_city",
    "start_date",
    "end_date",
    "adults",
    "budget_amount",
)

SLOT_TYPES: Dict[str, tuple] = {
    "origin_city": (str,),
    "destination_city": (str,),
    "start_date": (str,),
    "end_date": (str,),
    "adults": (int,),
    "budget_amount": (int, float),
    "currency": (str,),
}

PLANNING_SLOTS = ("origin_city", "destination_city", "start_date", "end_date", "adults")
BOOKING_PREREQUISITES = ("destination_city", "start_date", "end_date")


class SignatureChange(NamedTuple):
    """Result of a slot mutation: the new signature and whether it moved."""

    signature: str
    changed: bool


def compute_critical_signature(values: Mapping[str, Any]) -> str:
    """
    Fingerprint the critical slot subset.

    Keys are serialized sorted so the result does not depend on dict
    iteration order; numbers are normalized so 1500 and 1500.0 agree.
    """
    payload: Dict[str, Any] = {}
    for slot in CRITICAL_SLOTS:
        value = values.get(slot)
        if slot == "budget_amount" and value is not None:
            value = float(value)
        payload[to_camel(slot)] = value

    raw = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def dates_out_of_order(start_date: Optional[str], end_date: Optional[str]) -> bool:
    """True when both dates are known and end precedes start."""
    if not start_date or not end_date:
        return False
    return date.fromisoformat(end_date) < date.fromisoformat(start_date)


class Day(BaseModel):
    """One day of an itinerary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    day: Optional[int] = Field(default=None, ge=1, description="1-based day ordinal")
    date: Optional[str] = Field(default=None, description="Date in YYYY-MM-DD format")
    morning: List[str] = Field(default_factory=list)
    afternoon: List[str] = Field(default_factory=list)
    evening: List[str] = Field(default_factory=list)

    @field_validator("morning", "afternoon", "evening", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    def is_empty(self) -> bool:
        return not (self.morning or self.afternoon or self.evening)


class TripContext(BaseModel):
    """
    Long-lived trip record for one conversation session.

    Invariants:
    - The critical-slot signature is recomputed on every accepted mutation;
      when it differs from last_itinerary_signature the itinerary status
      becomes "stale", whether or not an itinerary exists.
    - An empty itinerary is stored as None and reported as "absent".
    - Only mark_itinerary sets the status back to "fresh".
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    origin_city: Optional[str] = None
    destination_city: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    adults: Optional[int] = None
    budget_amount: Optional[float] = None
    currency: Optional[str] = None

    booking_confirmed: bool = False

    itinerary: Optional[List[Day]] = None
    itinerary_status: ItineraryStatus = "absent"
    last_itinerary_signature: Optional[str] = None

    # Which capture path last wrote each slot
    slot_sources: Dict[str, SlotSource] = Field(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        if self.last_itinerary_signature is None:
            self.last_itinerary_signature = self.compute_signature()
        if not self.itinerary:
            self.itinerary = None

    # ------------------------------------------------------------------
    # Signature / staleness
    # ------------------------------------------------------------------

    def compute_signature(self) -> str:
        return compute_critical_signature(
            {slot: getattr(self, slot) for slot in CRITICAL_SLOTS}
        )

    def _refresh_staleness(self) -> SignatureChange:
        signature = self.compute_signature()
        changed = signature != self.last_itinerary_signature
        if changed:
            self.itinerary_status = "stale"
            self.last_itinerary_signature = signature
        return SignatureChange(signature, changed)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def apply_update(
        self,
        partial: Mapping[str, Any],
        source: SlotSource = "tool",
    ) -> SignatureChange:
        """
        Merge a sparse slot update into the context.

        Only present, non-None values overwrite; absence never clears a slot
        (use clear_slots for that). Input is expected to be validated at the
        capture boundary already, so the only errors raised here are for
        unknown slots and type mismatches. Nothing is written when any value
        is rejected.

        Args:
            partial: Mapping of snake_case slot name to value
            source: Capture path that produced the update

        Returns:
            SignatureChange with the new signature and whether it changed

        Raises:
            SlotTypeError: If a value has the wrong type
            TripEngineError: If a slot name is unknown
        """
        accepted: Dict[str, Any] = {}
        for slot, value in partial.items():
            if slot not in SLOT_TYPES:
                raise TripEngineError(
                    f"Unknown slot '{slot}'",
                    ErrorCode.CONTEXT_UPDATE_FAILED,
                    {"slot": slot},
                )
            if value is None:
                continue
            expected = SLOT_TYPES[slot]
            if isinstance(value, bool) or not isinstance(value, expected):
                raise SlotTypeError(slot, "/".join(t.__name__ for t in expected), value)
            accepted[slot] = value

        for slot, value in accepted.items():
            if slot == "budget_amount":
                value = float(value)
            setattr(self, slot, value)
            self.slot_sources[slot] = source

        change = self._refresh_staleness()
        if accepted:
            logger.debug(
                f"Slots updated | source={source}, slots={sorted(accepted)}, "
                f"signature_changed={change.changed}, status={self.itinerary_status}"
            )
        return change

    def clear_slots(self, *slots: str) -> SignatureChange:
        """Explicitly clear slots (the only way a slot goes back to None)."""
        for slot in slots:
            if slot not in SLOT_TYPES:
                raise TripEngineError(
                    f"Unknown slot '{slot}'",
                    ErrorCode.CONTEXT_UPDATE_FAILED,
                    {"slot": slot},
                )
            setattr(self, slot, None)
            self.slot_sources.pop(slot, None)
        return self._refresh_staleness()

    def mark_itinerary(self, days: Sequence[Union[Day, Mapping[str, Any]]]) -> int:
        """
        Replace the itinerary wholesale and mark it fresh.

        Days are never merged with a previous itinerary. Zero days is
        equivalent to no itinerary.

        Returns:
            Number of days stored
        """
        parsed = [d if isinstance(d, Day) else Day.model_validate(d) for d in days]

        if parsed:
            self.itinerary = parsed
            self.itinerary_status = "fresh"
        else:
            self.itinerary = None
            self.itinerary_status = "absent"
        self.last_itinerary_signature = self.compute_signature()
        return len(parsed)

    def confirm_booking(self, confirm: Optional[bool]) -> bool:
        """
        Flag the booking as confirmed.

        Idempotent; a falsy argument is a silent no-op.

        Returns:
            Current value of booking_confirmed
        """
        if confirm:
            self.booking_confirmed = True
        return self.booking_confirmed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def has_itinerary(self) -> bool:
        return bool(self.itinerary)

    def missing_planning_slots(self) -> List[str]:
        """
        Wire names of slots still needed before an itinerary can be planned.

        A budget amount without a currency (or the reverse) is reported as
        incomplete instead of defaulting the currency.
        """
        missing = [to_camel(slot) for slot in PLANNING_SLOTS if getattr(self, slot) is None]
        if self.budget_amount is not None and not self.currency:
            missing.append("currency")
        if self.currency and self.budget_amount is None:
            missing.append("budgetAmount")
        return missing

    def booking_prerequisites_missing(self) -> List[str]:
        return [to_camel(slot) for slot in BOOKING_PREREQUISITES if getattr(self, slot) is None]

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready camelCase representation for persistence and prompts."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_snapshot(cls, data: Optional[Mapping[str, Any]]) -> "TripContext":
        if not data:
            return cls()
        return cls.model_validate(dict(data))

    def summary(self) -> Dict[str, Any]:
        """Compact view used in log lines."""
        filled = [slot for slot in SLOT_TYPES if getattr(self, slot) is not None]
        return {
            "filled_slots": len(filled),
            "destination": self.destination_city,
            "itinerary_status": self.itinerary_status,
            "itinerary_days": len(self.itinerary or []),
            "booking_confirmed": self.booking_confirmed,
        }
