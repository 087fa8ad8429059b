"""
Specialist registry.

Declares every specialist the router can hand a turn to: which capture
tools it gets, which other specialists it may consult as a tool, and
whether it must capture slots before answering.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from tripmate.capture.tools import (
    CAPTURE_ITINERARY,
    CAPTURE_TRIP_PARAMS,
    CONFIRM_BOOKING,
)
from tripmate.shared.contracts.capture import DelegateArgs
from tripmate.shared.errors import ErrorCode, TripEngineError


DELEGATE_PREFIX = "consult_"


@dataclass(frozen=True)
class SpecialistSpec:
    """Static description of one specialist."""

    name: str
    title: str
    description: str
    tools: Tuple[str, ...] = ()
    delegates_to: Tuple[str, ...] = ()
    must_capture: bool = True

    @property
    def can_write(self) -> bool:
        return bool(self.tools)


SPECIALISTS: Dict[str, SpecialistSpec] = {
    "destination": SpecialistSpec(
        name="destination",
        title="Destination Decider",
        description="Helps the user pick a destination by interests and vibe; compares options.",
        tools=(CAPTURE_TRIP_PARAMS,),
        delegates_to=("itinerary",),
    ),
    "itinerary": SpecialistSpec(
        name="itinerary",
        title="Itinerary Builder",
        description="Builds a day-wise itinerary (morning / afternoon / evening) for a chosen destination.",
        tools=(CAPTURE_TRIP_PARAMS, CAPTURE_ITINERARY),
        delegates_to=("destination",),
    ),
    "booking": SpecialistSpec(
        name="booking",
        title="Booking Agent",
        description="Finalizes reservations and confirms bookings from the current trip details.",
        tools=(CAPTURE_TRIP_PARAMS, CONFIRM_BOOKING),
    ),
    "flight": SpecialistSpec(
        name="flight",
        title="Flight Specialist",
        description="Finds and compares flight options between two cities.",
        tools=(CAPTURE_TRIP_PARAMS,),
    ),
    "hotel": SpecialistSpec(
        name="hotel",
        title="Hotel Specialist",
        description="Finds and compares places to stay at the destination.",
        tools=(CAPTURE_TRIP_PARAMS,),
    ),
    "local": SpecialistSpec(
        name="local",
        title="Local Expert",
        description="Answers on-the-ground questions: weather, visas, safety, food, customs.",
        must_capture=False,
    ),
    "optimizer": SpecialistSpec(
        name="optimizer",
        title="Itinerary Optimizer",
        description="Reorders and tightens an existing itinerary to cut transit and fit the budget.",
        tools=(CAPTURE_TRIP_PARAMS, CAPTURE_ITINERARY),
        delegates_to=("local",),
    ),
}

SPECIALIST_NAMES: Tuple[str, ...] = tuple(SPECIALISTS)


def get_specialist(name: str) -> SpecialistSpec:
    """
    Look up a specialist by name.

    Raises:
        TripEngineError: AGENT_NOT_FOUND if the name is not registered
    """
    try:
        return SPECIALISTS[name]
    except KeyError:
        raise TripEngineError(
            f"Unknown specialist '{name}'",
            ErrorCode.AGENT_NOT_FOUND,
            {"specialist": name},
        )


def delegate_tool_name(target: str) -> str:
    return f"{DELEGATE_PREFIX}{target}"


def delegate_target(tool_name: str) -> str:
    return tool_name[len(DELEGATE_PREFIX):]


def is_delegate_tool(tool_name: str) -> bool:
    return tool_name.startswith(DELEGATE_PREFIX)


def delegate_tool_specs(spec: SpecialistSpec) -> List[Dict[str, Any]]:
    """Function specs that expose the allowed targets as callable tools."""
    specs = []
    for target in spec.delegates_to:
        other = get_specialist(target)
        specs.append(
            {
                "type": "function",
                "function": {
                    "name": delegate_tool_name(target),
                    "description": (
                        f"Consult the {other.title}. {other.description} "
                        "The answer comes back to you; incorporate it in your own reply."
                    ),
                    "parameters": DelegateArgs.model_json_schema(),
                },
            }
        )
    return specs
