"""
Intent classification for specialist routing.

Maps an already-safe user message to at most one specialist. Returns no
specialist when the intent is genuinely ambiguous so the router can decide
whether to keep the active specialist or ask a clarifying question.
"""

import logging
import re
from typing import Dict, List, Optional, Protocol, Tuple

from openai import AsyncOpenAI
from pydantic import BaseModel, Field, field_validator

from tripmate.context.store import TripContext
from tripmate.shared.llm.client import call_llm_json
from tripmate.specialists.registry import SPECIALISTS, SPECIALIST_NAMES


logger = logging.getLogger(__name__)


AMBIGUOUS_QUESTION = (
    "Happy to help! Are you still choosing where to go, or would you like a day-by-day "
    "itinerary, or help booking flights or hotels?"
)


class RoutingDecision(BaseModel):
    """Which specialist should handle the turn."""

    specialist: Optional[str] = Field(default=None, description="Specialist name or null when ambiguous")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reason: str = Field(default="")
    question: Optional[str] = Field(
        default=None, description="Clarifying question to ask when ambiguous"
    )

    @field_validator("specialist", mode="before")
    @classmethod
    def _known_specialist(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
            if value in ("", "none", "null", "ambiguous"):
                return None
            if value not in SPECIALISTS:
                raise ValueError(f"Unknown specialist '{value}'")
        return value

    @property
    def ambiguous(self) -> bool:
        return self.specialist is None


class IntentClassifier(Protocol):
    async def classify(
        self,
        text: str,
        trip: Optional[TripContext] = None,
        active_specialist: Optional[str] = None,
    ) -> RoutingDecision:
        ...


# ============================================================================
# Keyword backend
# ============================================================================

# (specialist, weight, pattern)
_SIGNALS: List[Tuple[str, int, re.Pattern]] = [
    ("booking", 3, re.compile(r"\b(?:confirm|finali[sz]e|book it|go ahead and book|proceed with (?:the )?booking|reserve it|lock it in)\b", re.IGNORECASE)),
    ("booking", 1, re.compile(r"\b(?:book|booking|reserve|reservation)\b", re.IGNORECASE)),
    ("flight", 2, re.compile(r"\b(?:flights?|fly|flying|airfare|airlines?|plane)\b", re.IGNORECASE)),
    ("hotel", 2, re.compile(r"\b(?:hotels?|hostels?|resorts?|accommodation|place to stay|rooms?)\b", re.IGNORECASE)),
    ("optimizer", 3, re.compile(r"\b(?:optimi[sz]e|rearrange|reorder|reshuffle|tighten|less travel time)\b", re.IGNORECASE)),
    ("local", 2, re.compile(r"\b(?:weather|visas?|safety|safe|food|cuisine|customs|etiquette|tipping|sim card|local transport)\b", re.IGNORECASE)),
    ("destination", 2, re.compile(r"\b(?:where should|suggest|recommend|which (?:city|place|country)|destination ideas|somewhere)\b", re.IGNORECASE)),
    ("destination", 2, re.compile(r"\b[A-Z][a-zA-Z]+\s+or\s+[A-Z][a-zA-Z]+\b")),
    ("itinerary", 2, re.compile(r"\b(?:itinerar\w*|plan|planning|day[- ]wise|day by day|schedule)\b", re.IGNORECASE)),
]


class KeywordIntentClassifier:
    """Deterministic weighted keyword routing."""

    def scores(self, text: str) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for name, weight, pattern in _SIGNALS:
            if pattern.search(text or ""):
                totals[name] = totals.get(name, 0) + weight
        return totals

    async def classify(
        self,
        text: str,
        trip: Optional[TripContext] = None,
        active_specialist: Optional[str] = None,
    ) -> RoutingDecision:
        return self.classify_sync(text)

    def classify_sync(self, text: str) -> RoutingDecision:
        totals = self.scores(text)
        if not totals:
            return RoutingDecision(reason="No intent signal", question=AMBIGUOUS_QUESTION)

        ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
        best, best_score = ranked[0]
        if len(ranked) > 1 and ranked[1][1] == best_score:
            tied = sorted(name for name, score in ranked if score == best_score)
            return RoutingDecision(
                reason=f"Tied intent signals: {', '.join(tied)}",
                question=AMBIGUOUS_QUESTION,
            )

        confidence = round(best_score / sum(totals.values()), 2)
        return RoutingDecision(
            specialist=best,
            confidence=confidence,
            reason=f"Keyword signals {dict(ranked)}",
        )


# ============================================================================
# LLM backend
# ============================================================================


ROUTER_SYSTEM_PROMPT = """You are the routing gateway of a travel assistant. You NEVER write travel content yourself.
Pick exactly one specialist for the user's latest message:
{specialists}

If the message is a short follow-up (a date, a number, "yes"), it belongs to the currently active specialist.
If the intent is genuinely ambiguous, set specialist to null and write ONE short clarifying question.

Return ONLY a JSON object:
{{"specialist": "<name>" or null, "confidence": 0.0-1.0, "reason": "short", "question": "..." or null}}"""


def build_router_system_prompt() -> str:
    lines = [f"- {spec.name}: {spec.description}" for spec in SPECIALISTS.values()]
    return ROUTER_SYSTEM_PROMPT.format(specialists="\n".join(lines))


class LLMIntentClassifier:
    """Model-backed routing that falls back to keywords on any failure."""

    def __init__(
        self,
        model: str = "gpt-4.1-mini",
        client: Optional[AsyncOpenAI] = None,
        fallback: Optional[KeywordIntentClassifier] = None,
    ):
        self.model = model
        self.client = client
        self.fallback = fallback or KeywordIntentClassifier()

    async def classify(
        self,
        text: str,
        trip: Optional[TripContext] = None,
        active_specialist: Optional[str] = None,
    ) -> RoutingDecision:
        known = trip.summary() if trip is not None else {}
        user_prompt = (
            f"Active specialist: {active_specialist or 'none'}\n"
            f"Trip summary: {known}\n"
            f"Specialists: {', '.join(SPECIALIST_NAMES)}\n\n"
            f"User message:\n{text}"
        )
        try:
            data = await call_llm_json(
                build_router_system_prompt(), user_prompt, model=self.model, client=self.client
            )
            decision = RoutingDecision.model_validate(data)
        except Exception as e:
            logger.warning(f"Intent model failed ({type(e).__name__}: {e}); using keyword routing")
            return self.fallback.classify_sync(text)

        if decision.ambiguous and not decision.question:
            decision.question = AMBIGUOUS_QUESTION
        return decision
