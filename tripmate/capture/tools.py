"""
Tool-driven slot capture.

Executors for the tools specialists call to write into the trip context:
capture_trip_params, capture_itinerary and confirm_booking. Arguments are
validated against the pydantic contracts before anything touches the
store; rejected calls come back to the model as a structured result so it
can correct itself, and the store is left untouched.
"""

import json
import logging
from typing import Any, Dict, List, Literal, Mapping, Optional, Type, Union

from pydantic import BaseModel, Field, ValidationError
from pydantic.alias_generators import to_camel

from tripmate.context.store import TripContext, dates_out_of_order
from tripmate.shared.contracts.capture import (
    CaptureTripParams,
    ConfirmBookingArgs,
    ItineraryCapture,
)
from tripmate.shared.errors import ErrorCode, TripEngineError


logger = logging.getLogger(__name__)


CAPTURE_TRIP_PARAMS = "capture_trip_params"
CAPTURE_ITINERARY = "capture_itinerary"
CONFIRM_BOOKING = "confirm_booking"

CAPTURE_TOOL_NAMES = (CAPTURE_TRIP_PARAMS, CAPTURE_ITINERARY, CONFIRM_BOOKING)

ToolStatus = Literal["ok", "error", "needs_confirmation", "rejected"]
RawArguments = Union[str, Mapping[str, Any], None]


class CaptureResult(BaseModel):
    """Structured tool output returned to the model."""

    tool: str
    status: ToolStatus
    message: str
    updated: List[str] = Field(default_factory=list)
    signature_changed: bool = False
    itinerary_status: Optional[str] = None
    missing: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    days: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def to_tool_output(self) -> str:
        return json.dumps(self.model_dump(exclude_none=True, exclude_defaults=False))


# ============================================================================
# Tool specs (OpenAI function-calling format)
# ============================================================================


def _tool_spec(name: str, description: str, schema: Type[BaseModel]) -> Dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": schema.model_json_schema(by_alias=True),
        },
    }


TOOL_SPECS: Dict[str, Dict[str, Any]] = {
    CAPTURE_TRIP_PARAMS: _tool_spec(
        CAPTURE_TRIP_PARAMS,
        "Update the trip context with any trip details the user provided "
        "(origin, destination, dates, adults, budget, currency). Include only "
        "fields you can confidently extract; omit unknowns.",
        CaptureTripParams,
    ),
    CAPTURE_ITINERARY: _tool_spec(
        CAPTURE_ITINERARY,
        "Store the day-by-day itinerary you are presenting "
        "(morning / afternoon / evening activities per day).",
        ItineraryCapture,
    ),
    CONFIRM_BOOKING: _tool_spec(
        CONFIRM_BOOKING,
        "Mark the booking as confirmed once the user explicitly agrees.",
        ConfirmBookingArgs,
    ),
}


# ============================================================================
# Helpers
# ============================================================================


def _load_arguments(raw: RawArguments) -> Dict[str, Any]:
    """Decode tool-call arguments; the model sends a JSON string."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError(f"Tool arguments must be a JSON object, got {type(data).__name__}")
    return data


def _format_validation_errors(e: ValidationError) -> List[str]:
    errors = []
    for err in e.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "arguments"
        errors.append(f"{loc}: {err.get('msg')}")
    return errors


def _rejected_arguments(tool: str, errors: List[str]) -> CaptureResult:
    logger.info(f"[tool={tool}] Arguments rejected | errors={errors}")
    return CaptureResult(
        tool=tool,
        status="error",
        message="Arguments failed validation; nothing was stored. Fix the listed fields and retry.",
        errors=errors,
    )


def _parse(tool: str, schema: Type[BaseModel], raw: RawArguments):
    try:
        return schema.model_validate(_load_arguments(raw)), None
    except ValidationError as e:
        return None, _rejected_arguments(tool, _format_validation_errors(e))
    except ValueError as e:
        return None, _rejected_arguments(tool, [f"arguments: {e}"])


# ============================================================================
# Executors
# ============================================================================


def capture_trip_params(trip: TripContext, arguments: RawArguments) -> CaptureResult:
    """
    Validate and merge a sparse trip slot update.

    Dates that would put endDate before startDate (including against dates
    already stored) are not written; the model is asked to confirm with the
    user instead of the values being swapped.

    Args:
        trip: Session trip context (mutated in place)
        arguments: Raw tool-call arguments (JSON string or mapping)

    Returns:
        CaptureResult describing what happened
    """
    params, rejection = _parse(CAPTURE_TRIP_PARAMS, CaptureTripParams, arguments)
    if rejection is not None:
        return rejection

    slots = params.to_slots()
    if not slots:
        return CaptureResult(
            tool=CAPTURE_TRIP_PARAMS,
            status="ok",
            message="No trip details to update.",
            itinerary_status=trip.itinerary_status,
            missing=trip.missing_planning_slots(),
        )

    start = slots.get("start_date", trip.start_date)
    end = slots.get("end_date", trip.end_date)
    if dates_out_of_order(start, end):
        logger.info(
            f"[tool={CAPTURE_TRIP_PARAMS}] Date conflict | startDate={start}, endDate={end}"
        )
        return CaptureResult(
            tool=CAPTURE_TRIP_PARAMS,
            status="needs_confirmation",
            message=(
                f"endDate {end} is before startDate {start}. Nothing was stored; "
                "confirm the travel dates with the user."
            ),
            itinerary_status=trip.itinerary_status,
            missing=trip.missing_planning_slots(),
        )

    change = trip.apply_update(slots, source="tool")
    updated = sorted(to_camel(slot) for slot in slots)

    logger.info(
        f"[tool={CAPTURE_TRIP_PARAMS}] Trip context updated | slots={updated}, "
        f"signature_changed={change.changed}, status={trip.itinerary_status}"
    )
    return CaptureResult(
        tool=CAPTURE_TRIP_PARAMS,
        status="ok",
        message="Trip parameters captured.",
        updated=updated,
        signature_changed=change.changed,
        itinerary_status=trip.itinerary_status,
        missing=trip.missing_planning_slots(),
    )


def capture_itinerary(trip: TripContext, arguments: RawArguments) -> CaptureResult:
    """
    Replace the stored itinerary with a structured day list.

    Days with no activities are dropped; a payload with no remaining days
    is rejected and leaves the previous itinerary in place.
    """
    capture, rejection = _parse(CAPTURE_ITINERARY, ItineraryCapture, arguments)
    if rejection is not None:
        return rejection

    days = [d for d in capture.to_days() if not d.is_empty()]
    if not days:
        return _rejected_arguments(CAPTURE_ITINERARY, ["days: no day has any activities"])

    count = trip.mark_itinerary(days)
    logger.info(
        f"[tool={CAPTURE_ITINERARY}] Itinerary stored | days={count}, status={trip.itinerary_status}"
    )
    return CaptureResult(
        tool=CAPTURE_ITINERARY,
        status="ok",
        message=f"Itinerary with {count} day(s) stored.",
        itinerary_status=trip.itinerary_status,
        days=count,
    )


def confirm_booking(
    trip: TripContext,
    arguments: RawArguments,
    active_specialist: Optional[str],
) -> CaptureResult:
    """
    Flag the booking as confirmed.

    A false confirm is a no-op. Otherwise only the booking specialist may
    confirm, and only once destination and travel dates are known.
    """
    args, rejection = _parse(CONFIRM_BOOKING, ConfirmBookingArgs, arguments)
    if rejection is not None:
        return rejection

    if not args.confirm:
        return CaptureResult(
            tool=CONFIRM_BOOKING,
            status="ok",
            message="Booking not confirmed by user.",
        )

    if active_specialist != "booking":
        logger.warning(
            f"[tool={CONFIRM_BOOKING}] Rejected | caller={active_specialist} is not the booking specialist"
        )
        return CaptureResult(
            tool=CONFIRM_BOOKING,
            status="rejected",
            message="Only the booking specialist can confirm a booking.",
        )

    missing = trip.booking_prerequisites_missing()
    if missing:
        logger.info(f"[tool={CONFIRM_BOOKING}] Rejected | missing={missing}")
        return CaptureResult(
            tool=CONFIRM_BOOKING,
            status="rejected",
            message="Booking cannot be confirmed until these are known: " + ", ".join(missing),
            missing=missing,
        )

    trip.confirm_booking(True)
    logger.info(f"[tool={CONFIRM_BOOKING}] Booking confirmed | destination={trip.destination_city}")
    return CaptureResult(
        tool=CONFIRM_BOOKING,
        status="ok",
        message="Booking has been confirmed.",
    )


def execute_capture_tool(
    name: str,
    trip: TripContext,
    arguments: RawArguments,
    active_specialist: Optional[str] = None,
) -> CaptureResult:
    """
    Dispatch a capture tool call by name.

    Raises:
        TripEngineError: If the tool name is not a capture tool
    """
    if name == CAPTURE_TRIP_PARAMS:
        return capture_trip_params(trip, arguments)
    if name == CAPTURE_ITINERARY:
        return capture_itinerary(trip, arguments)
    if name == CONFIRM_BOOKING:
        return confirm_booking(trip, arguments, active_specialist)
    raise TripEngineError(
        f"Unknown capture tool '{name}'",
        ErrorCode.TOOL_EXECUTION_FAILED,
        {"tool": name},
    )
