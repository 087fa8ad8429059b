"""
Turn graph nodes.

Each node reads the turn state, does one step and returns a partial state
update. Collaborators (trip context, classifiers, specialist runner,
config) arrive through the run config under "configurable" so the same
compiled graph serves every session.
"""

import logging
from typing import Any, Dict

from langchain_core.runnables import RunnableConfig

from tripmate.config import DEFAULT_CONFIG
from tripmate.graph.router import select_route
from tripmate.graph.state import TurnState
from tripmate.recovery.parser import recover_itinerary
from tripmate.safety.classifier import classify_turn
from tripmate.safety.policy import BLOCKED_REPLY, FAIL_OPEN_MESSAGE, tripwire_triggered
from tripmate.shared.logging.config import log_state_transition


logger = logging.getLogger(__name__)


def _configurable(config: RunnableConfig) -> Dict[str, Any]:
    return (config or {}).get("configurable", {})


def _guidance(state: TurnState) -> str:
    """Hint passed to the specialist from the safety decision."""
    decision = state.get("decision")
    if decision is None:
        return ""
    if decision.decision == "warn" and decision.suggestion:
        return f"The user's message is {decision.category}; steer back to travel, e.g.: {decision.suggestion}"
    if decision.missing_slots:
        return "The request is missing: " + ", ".join(decision.missing_slots) + ". Ask for them once."
    return ""


async def classify_node(state: TurnState, config: RunnableConfig) -> Dict[str, Any]:
    """Run the safety gate; never raises for classifier failures."""
    session_id = state.get("session_id", "unknown")
    _log = f"[session={session_id}] [graph=turn] [node=classify] "
    deps = _configurable(config)
    engine_config = deps.get("engine_config", DEFAULT_CONFIG)

    logger.info(f"{_log}Entering node | message_length={len(state['user_message'])}")

    decision = await classify_turn(
        deps["safety_classifier"],
        state["user_message"],
        deps.get("trip"),
        timeout=engine_config.classifier_timeout,
        session_id=session_id,
    )
    blocked = tripwire_triggered(decision)

    return {
        "decision": decision,
        "blocked": blocked,
        "messages": [
            {
                "role": "system",
                "agent": "guardrail",
                "content": f"decision={decision.decision} category={decision.category} blocked={blocked}",
            }
        ],
    }


def blocked_node(state: TurnState) -> Dict[str, Any]:
    """Fixed refusal; no specialist runs and nothing internal is exposed."""
    session_id = state.get("session_id", "unknown")
    decision = state.get("decision")
    logger.info(
        f"[session={session_id}] [graph=turn] [node=blocked] "
        f"Turn blocked | category={decision.category if decision else None}"
    )
    return {"reply": BLOCKED_REPLY, "specialist": None}


async def route_node(state: TurnState, config: RunnableConfig) -> Dict[str, Any]:
    """Pick the specialist for this turn or a single clarifying question."""
    session_id = state.get("session_id", "unknown")
    _log = f"[session={session_id}] [graph=turn] [node=route] "
    deps = _configurable(config)
    trip = deps.get("trip")

    intent = await deps["intent_classifier"].classify(
        state["user_message"], trip, state.get("active_specialist")
    )

    decision = state.get("decision")
    preferred_question = None
    if decision is not None and decision.decision == "warn" and decision.suggestion:
        preferred_question = decision.suggestion

    choice = select_route(
        intent,
        state.get("active_specialist"),
        state.get("clarification_pending", False),
        trip,
        question=preferred_question,
    )
    logger.info(
        f"{_log}Route selected | specialist={choice.specialist}, "
        f"confidence={intent.confidence}, reason={choice.reason}"
    )

    return {
        "specialist": choice.specialist,
        "clarification_question": choice.question,
    }


def respond_node(state: TurnState) -> Dict[str, Any]:
    """Answer with the router's clarifying question."""
    session_id = state.get("session_id", "unknown")
    logger.info(f"[session={session_id}] [graph=turn] [node=respond] Asking clarifying question")
    return {"reply": state.get("clarification_question") or FAIL_OPEN_MESSAGE}


async def specialist_node(state: TurnState, config: RunnableConfig) -> Dict[str, Any]:
    """
    Run the selected specialist.

    Unexpected failures degrade to a generic helpful reply and are recorded
    in the errors channel. Cancellation propagates.
    """
    session_id = state.get("session_id", "unknown")
    specialist = state["specialist"]
    _log = f"[session={session_id}] [graph=turn] [node=specialist] "
    deps = _configurable(config)

    logger.info(f"{_log}Entering node | specialist={specialist}")

    try:
        outcome = await deps["runner"].run(
            specialist,
            state["user_message"],
            deps["trip"],
            history=state.get("history", []),
            guidance=_guidance(state) or None,
            session_id=session_id,
        )
    except Exception as e:
        logger.exception(f"{_log}Specialist {specialist} failed: {e}")
        return {
            "reply": FAIL_OPEN_MESSAGE,
            "errors": [f"{specialist} specialist error: {str(e)}"],
            "messages": [
                {
                    "role": "system",
                    "agent": "router",
                    "content": f"Specialist {specialist} failed",
                }
            ],
        }

    return {
        "reply": outcome.reply or FAIL_OPEN_MESSAGE,
        "tools_used": outcome.tools_used,
        "itinerary_captured": outcome.itinerary_captured,
        "fallback_applied": outcome.fallback_applied,
        "delegated_to": outcome.delegated_to,
        "messages": [
            {
                "role": "assistant",
                "agent": specialist,
                "content": outcome.reply,
            }
        ],
    }


def recover_node(state: TurnState, config: RunnableConfig) -> Dict[str, Any]:
    """Repair a missed itinerary capture from the complete specialist reply."""
    session_id = state.get("session_id", "unknown")
    trip = _configurable(config)["trip"]

    if state.get("itinerary_captured") or state.get("errors"):
        return {"itinerary_recovered": False}

    recovered = recover_itinerary(trip, state.get("reply", ""), session_id=session_id)
    return {"itinerary_recovered": recovered}


def finalize_node(state: TurnState, config: RunnableConfig) -> Dict[str, Any]:
    """Log the end of the turn."""
    session_id = state.get("session_id", "unknown")
    _log = f"[session={session_id}] [graph=turn] [node=finalize] "
    trip = _configurable(config).get("trip")

    summary = trip.summary() if trip is not None else {}
    logger.info(
        f"{_log}Turn complete | specialist={state.get('specialist')}, "
        f"blocked={state.get('blocked')}, recovered={state.get('itinerary_recovered')}, "
        f"errors={len(state.get('errors', []))} -> END"
    )
    log_state_transition(
        "turn_complete",
        {
            "specialist": state.get("specialist"),
            "itinerary_status": summary.get("itinerary_status"),
            "blocked": state.get("blocked"),
        },
        extra={"session_id": session_id, "trip": summary},
    )
    return {}
