"""
Turn graph state schema.

Defines the state that flows through one user turn:
classify -> route -> specialist -> recover -> finalize.
The trip context itself is not part of the state; it is owned by the
session and passed to nodes by reference through the run config.
"""

from typing import Annotated, Any, Dict, List, Optional, TypedDict
import operator

from tripmate.shared.contracts.classifier_output import ClassifierDecision


class TurnState(TypedDict):
    """
    State schema for the turn graph.

    Inputs are filled by the engine before invocation; every other field is
    written by exactly one node.
    """

    # Inputs
    session_id: str
    user_message: str
    history: List[Dict[str, Any]]
    active_specialist: Optional[str]
    clarification_pending: bool

    # Safety gate
    decision: Optional[ClassifierDecision]
    blocked: bool

    # Routing
    specialist: Optional[str]
    clarification_question: Optional[str]

    # Specialist output
    reply: str
    tools_used: List[str]
    itinerary_captured: bool
    fallback_applied: bool
    delegated_to: Optional[str]

    # Recovery
    itinerary_recovered: bool

    # Tracking
    errors: Annotated[List[str], operator.add]
    messages: Annotated[List[dict], operator.add]


def initial_turn_state(
    session_id: str,
    user_message: str,
    history: Optional[List[Dict[str, Any]]] = None,
    active_specialist: Optional[str] = None,
    clarification_pending: bool = False,
) -> TurnState:
    """Build the starting state for one turn."""
    return {
        "session_id": session_id,
        "user_message": user_message,
        "history": list(history or []),
        "active_specialist": active_specialist,
        "clarification_pending": clarification_pending,
        "decision": None,
        "blocked": False,
        "specialist": None,
        "clarification_question": None,
        "reply": "",
        "tools_used": [],
        "itinerary_captured": False,
        "fallback_applied": False,
        "delegated_to": None,
        "itinerary_recovered": False,
        "errors": [],
        "messages": [],
    }
