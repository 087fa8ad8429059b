"""
Trip engine.

Entry point of the core: runs one user message through the turn graph for
a session and records the outcome on the session. Turns of the same
session are serialized with a per-session lock; different sessions run
concurrently.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Mapping, Optional

from tripmate.config import DEFAULT_CONFIG, EngineConfig
from tripmate.graph.build import create_turn_graph
from tripmate.graph.intent import IntentClassifier, KeywordIntentClassifier, LLMIntentClassifier
from tripmate.graph.state import initial_turn_state
from tripmate.safety.classifier import (
    LLMSafetyClassifier,
    RuleBasedSafetyClassifier,
    SafetyClassifier,
)
from tripmate.safety.policy import fail_open_decision
from tripmate.session import AgentInteraction, GuardrailEntry, InMemorySessionStore, Session, SessionStore
from tripmate.shared.contracts.turn_output import TurnResult
from tripmate.shared.errors import SessionNotFoundError
from tripmate.shared.llm.client import ChatModel, OpenAIChatModel
from tripmate.specialists.runner import SpecialistRunner


logger = logging.getLogger(__name__)


class TripEngine:
    """
    Runs conversation turns against stored sessions.

    Args:
        classifier: Safety gate backend
        intent_classifier: Specialist selection backend
        runner: Specialist tool loop
        store: Session storage (in-memory by default)
        config: Engine limits and timeouts
    """

    def __init__(
        self,
        classifier: SafetyClassifier,
        intent_classifier: IntentClassifier,
        runner: SpecialistRunner,
        store: Optional[SessionStore] = None,
        config: EngineConfig = DEFAULT_CONFIG,
    ):
        self.classifier = classifier
        self.intent_classifier = intent_classifier
        self.runner = runner
        self.store = store if store is not None else InMemorySessionStore()
        self.config = config
        self._graph = create_turn_graph()
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig = DEFAULT_CONFIG,
        model: Optional[ChatModel] = None,
        store: Optional[SessionStore] = None,
    ) -> "TripEngine":
        """Wire the default collaborators for the configured backends."""
        if config.classifier_backend == "rules":
            classifier: SafetyClassifier = RuleBasedSafetyClassifier()
        else:
            classifier = LLMSafetyClassifier(model=config.classifier_model)

        if config.intent_backend == "keywords":
            intent_classifier: IntentClassifier = KeywordIntentClassifier()
        else:
            intent_classifier = LLMIntentClassifier(model=config.router_model)

        runner = SpecialistRunner(model or OpenAIChatModel(model=config.specialist_model), config)
        return cls(classifier, intent_classifier, runner, store=store, config=config)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def get_session(self, session_id: str) -> Session:
        session = self.store.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def load_session(self, snapshot: Mapping[str, Any]) -> Session:
        """
        Install a session from its snapshot, replacing any existing one.

        Waits for a turn in flight on the same session to finish first.
        """
        session = Session.from_snapshot(snapshot)
        async with self._locks[session.session_id]:
            self.store.save(session)
        logger.info(
            f"[session={session.session_id}] Session loaded | messages={len(session.messages)}, "
            f"trip={session.trip_context.summary()}"
        )
        return session

    async def reset_session(self, session_id: str) -> bool:
        """
        Drop a session. Returns False if it did not exist.

        Runs under the session lock so a turn in flight cannot save the
        session back afterwards. The lock stays registered because
        queued turns may be waiting on it.
        """
        async with self._locks[session_id]:
            removed = self.store.delete(session_id)
        logger.info(f"[session={session_id}] Session reset | existed={removed}")
        return removed

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def run_turn(self, session_id: str, message: str) -> TurnResult:
        """
        Process one user message.

        Creates the session on first use. History and audit logs are only
        updated after the graph completes, so a cancelled turn leaves the
        session as it was apart from slots already captured.
        """
        async with self._locks[session_id]:
            session = self.store.get(session_id)
            if session is None:
                session = Session(session_id=session_id)
                logger.info(f"[session={session_id}] New session created")

            return await self._run_locked(session, message)

    async def _run_locked(self, session: Session, message: str) -> TurnResult:
        session_id = session.session_id
        _log = f"[session={session_id}] [graph=turn] [engine=run_turn] "
        trip = session.trip_context

        state = initial_turn_state(
            session_id,
            message,
            history=session.history(),
            active_specialist=session.active_specialist,
            clarification_pending=session.clarification_pending,
        )
        run_config = {
            "recursion_limit": self.config.recursion_limit,
            "configurable": {
                "trip": trip,
                "safety_classifier": self.classifier,
                "intent_classifier": self.intent_classifier,
                "runner": self.runner,
                "engine_config": self.config,
            },
        }

        logger.info(f"{_log}Invoking turn graph | history={len(session.messages)}")
        final_state = await self._graph.ainvoke(state, config=run_config)

        decision = final_state.get("decision") or fail_open_decision("no classifier decision")
        blocked = bool(final_state.get("blocked"))
        specialist = final_state.get("specialist")
        reply = final_state.get("reply") or ""
        clarification = not blocked and specialist is None

        session.guardrail_log.append(
            GuardrailEntry(
                input=message,
                decision=decision.decision,
                category=decision.category,
                blocked=blocked,
            )
        )
        session.append("user", message)
        if blocked:
            session.append("assistant", reply, agent="guardrail")
        elif clarification:
            session.append("assistant", reply, agent="router")
        else:
            session.append("assistant", reply, agent=specialist)
            session.interactions.append(
                AgentInteraction(
                    specialist=specialist,
                    input=message,
                    output=reply,
                    tools_used=final_state.get("tools_used", []),
                    delegated_to=final_state.get("delegated_to"),
                )
            )
            session.active_specialist = specialist

        session.clarification_pending = clarification
        self.store.save(session)

        logger.info(
            f"{_log}Turn stored | specialist={specialist}, blocked={blocked}, "
            f"clarification={clarification}, errors={len(final_state.get('errors', []))}"
        )

        return TurnResult(
            session_id=session_id,
            reply=reply,
            specialist=specialist,
            decision=decision,
            blocked=blocked,
            clarification=clarification,
            itinerary_recovered=bool(final_state.get("itinerary_recovered")),
            delegated_to=final_state.get("delegated_to"),
            trip=trip.snapshot(),
        )
