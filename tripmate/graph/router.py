"""
Routing logic for the turn graph.

select_route turns an intent decision into the specialist for this turn
(or a clarifying question); the route_after_* functions pick the next
graph node from the populated state.
"""

import logging
from typing import Literal, NamedTuple, Optional

from tripmate.context.store import TripContext
from tripmate.graph.intent import AMBIGUOUS_QUESTION, RoutingDecision
from tripmate.graph.state import TurnState


logger = logging.getLogger(__name__)


class RouteChoice(NamedTuple):
    """Outcome of routing: a specialist, or one clarifying question."""

    specialist: Optional[str]
    question: Optional[str]
    reason: str


def default_specialist(trip: Optional[TripContext]) -> str:
    """Where a still-ambiguous user goes after one clarifying question."""
    if trip is None or trip.destination_city is None:
        return "destination"
    return "itinerary"


def select_route(
    decision: RoutingDecision,
    active_specialist: Optional[str],
    clarification_pending: bool,
    trip: Optional[TripContext] = None,
    question: Optional[str] = None,
) -> RouteChoice:
    """
    Pick exactly one specialist for the turn, asking at most one question.

    Rules:
    1. A clear intent routes to that specialist
    2. Ambiguous with an active specialist -> stay with it
    3. Ambiguous, nothing active, no question asked yet -> ask one
    4. Ambiguous right after our question -> route to the default

    Args:
        decision: Intent classifier output
        active_specialist: Specialist that handled the previous turn
        clarification_pending: True if the previous turn was our question
        trip: Session trip context (for the default route)
        question: Preferred clarifying question, overrides the intent one

    Returns:
        RouteChoice with either specialist or question set
    """
    if not decision.ambiguous:
        return RouteChoice(decision.specialist, None, f"intent={decision.specialist}")

    if active_specialist:
        return RouteChoice(active_specialist, None, "ambiguous; keeping active specialist")

    if not clarification_pending:
        return RouteChoice(
            None,
            question or decision.question or AMBIGUOUS_QUESTION,
            "ambiguous; asking one clarifying question",
        )

    fallback = default_specialist(trip)
    return RouteChoice(fallback, None, f"still ambiguous after clarification; default={fallback}")


def route_after_classify(state: TurnState) -> Literal["blocked", "route"]:
    """
    Gate the turn on the safety decision.

    The tripwire is the only condition that skips routing.
    """
    session_id = state.get("session_id", "unknown")
    _log = f"[session={session_id}] [graph=turn] [router=route_after_classify] "

    if state.get("blocked"):
        logger.info(f"{_log}Routing to 'blocked' | tripwire triggered")
        return "blocked"

    logger.info(f"{_log}Routing to 'route'")
    return "route"


def route_after_routing(state: TurnState) -> Literal["specialist", "respond"]:
    """Run the chosen specialist, or answer with the clarifying question."""
    session_id = state.get("session_id", "unknown")
    _log = f"[session={session_id}] [graph=turn] [router=route_after_routing] "

    if state.get("specialist"):
        logger.info(f"{_log}Routing to 'specialist' | specialist={state['specialist']}")
        return "specialist"

    logger.info(f"{_log}Routing to 'respond' | clarification question")
    return "respond"
