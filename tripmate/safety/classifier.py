"""
Safety and intent classifiers.

Two interchangeable backends implement the SafetyClassifier protocol:

- LLMSafetyClassifier asks a model for the decision JSON
- RuleBasedSafetyClassifier applies deterministic keyword rules and needs
  no network access

classify_turn wraps either one with a timeout and the fail-open rule.
"""

import asyncio
import logging
import re
from typing import Optional, Protocol

from openai import AsyncOpenAI

from tripmate.capture.fallback import extract_slots
from tripmate.context.store import TripContext
from tripmate.safety.policy import (
    enforce_policy,
    fail_open_decision,
    known_slots,
    missing_slots_for,
    missing_slots_question,
)
from tripmate.safety.prompts import (
    COMPETITORS,
    build_classifier_system_prompt,
    build_classifier_user_prompt,
)
from tripmate.shared.contracts.classifier_output import ClassifierDecision
from tripmate.shared.llm.client import call_llm_json


logger = logging.getLogger(__name__)


class SafetyClassifier(Protocol):
    """Classifies one user utterance."""

    async def classify(self, text: str, trip: Optional[TripContext] = None) -> ClassifierDecision:
        ...


# ============================================================================
# LLM backend
# ============================================================================


class LLMSafetyClassifier:
    """Safety classifier backed by a JSON-mode chat completion."""

    def __init__(self, model: str = "gpt-4o-mini", client: Optional[AsyncOpenAI] = None):
        self.model = model
        self.client = client

    async def classify(self, text: str, trip: Optional[TripContext] = None) -> ClassifierDecision:
        data = await call_llm_json(
            build_classifier_system_prompt(),
            build_classifier_user_prompt(text, trip),
            model=self.model,
            client=self.client,
        )
        return ClassifierDecision.model_validate(data)


# ============================================================================
# Rule backend
# ============================================================================


_INJECTION_PATTERNS = [
    r"\b(?:ignore|disregard|forget)\b.{0,30}\b(?:previous|prior|above|earlier|all)\b.{0,20}\b(?:instructions?|rules|prompts?|messages?)\b",
    r"\b(?:reveal|show|print|display|tell me|repeat)\b.{0,30}\b(?:system|hidden|initial)\s+(?:prompt|instructions?|message|configuration|config)\b",
    r"\bwhat\s+(?:are|were)\s+your\s+(?:instructions|rules|system prompt)\b",
    r"\b(?:developer|dan|god)\s+mode\b",
    r"\bjailbreak\b",
    r"\byou\s+are\s+no\s+longer\b",
]

_ILLICIT_PATTERNS = [
    r"\b(?:fake|forged?|counterfeit|false)\s+(?:passports?|visas?|documents?|ids?|papers)\b",
    r"\bsmuggl\w*\b",
    r"\bvisa\s+fraud\b",
    r"\btraffick\w*\b",
    r"\b(?:sneak|cross)\b.{0,30}\bborder\b.{0,30}\b(?:illegally|undetected|without (?:a )?(?:visa|passport))\b",
    r"\bavoid\w*\b.{0,20}\b(?:customs|immigration)\s+(?:checks?|control)\b",
    r"\bbuy\w*\b.{0,20}\b(?:cocaine|heroin|meth)\b",
]

_PROTECTED_GROUPS = (
    r"(?:jews|jewish\s+people|muslims|christians|hindus|sikhs|buddhists|"
    r"blacks|black\s+people|whites|white\s+people|asians|asian\s+people|arabs|"
    r"latinos|mexicans|africans|indians|chinese\s+people|immigrants|refugees|"
    r"gays|gay\s+people|lesbians|trans\s+people|women|disabled\s+people)"
)

_HARMFUL_PATTERNS = [
    r"\b(?:kill|murder|attack|stab)\b.{0,40}\b(?:people|someone|him|her|them|tourists?|passengers?|crowd)\b",
    r"\bhow\s+to\s+make\s+(?:a\s+)?(?:bomb|explosive|weapon)s?\b",
    r"\bhijack\w*\b",
    r"\b(?:hate|despise|exterminate|wipe\s+out)\s+(?:all\s+)?(?:the\s+)?" + _PROTECTED_GROUPS + r"\b",
]

_EXPLICIT_PATTERNS = [
    r"\b(?:porn\w*|nude|nudes|sex\s+tour\w*|escort\s+services?|sexual\s+services?)\b",
]

_OFF_TOPIC_PATTERNS = [
    r"\b(?:joke|poem|song|riddle|recipe|homework|essay)\b",
    r"\b(?:python|javascript|sql|code|program)\b",
    r"\bwhat\s+is\s+\d+\s*[-+*/x]\s*\d+\b",
    r"\b(?:solve|calculate)\b",
    r"\b(?:stock|crypto|bitcoin)\b",
    r"\bhtml\b",
]

_TRAVEL_PATTERNS = [
    r"\b(?:travel\w*|trip|tour|vacation|holiday|getaway|honeymoon|itinerar\w*|journey)\b",
    r"\b(?:flights?|fly|flying|airfare|airline|airport|plane)\b",
    r"\b(?:hotels?|hostels?|resort|stay|accommodation|room|check[- ]?in)\b",
    r"\b(?:car\s+rental|rent\s+a\s+car|cab|train|bus)\b",
    r"\b(?:destination|visit|beach|sightseeing|museum|weather|visa|passport|budget)\b",
    r"\b(?:book|booking|reserve|reservation|plan|planning)\b",
    r"\b\d+\s+adults?\b",
    r"\d{4}-\d{2}-\d{2}",
]

_KIND_PATTERNS = [
    ("flight", r"\b(?:flights?|fly|flying|airfare|plane tickets?)\b"),
    ("hotel", r"\b(?:hotels?|hostels?|resorts?|accommodation|rooms?|place to stay)\b"),
    ("car", r"\b(?:car\s+rental|rent\s+a\s+car|rental\s+car)\b"),
    ("trip", r"\b(?:trip|itinerar\w*|vacation|holiday|plan|getaway)\b"),
]


def _compile(patterns):
    return [re.compile(p, re.IGNORECASE) for p in patterns]


class RuleBasedSafetyClassifier:
    """
    Deterministic keyword classifier.

    Anything that is not clearly a violation, a competitor mention or
    off-topic is treated as travel, so the rules lean toward allowing.
    """

    def __init__(self):
        self._injection = _compile(_INJECTION_PATTERNS)
        self._illicit = _compile(_ILLICIT_PATTERNS)
        self._harmful = _compile(_HARMFUL_PATTERNS)
        self._explicit = _compile(_EXPLICIT_PATTERNS)
        self._off_topic = _compile(_OFF_TOPIC_PATTERNS)
        self._travel = _compile(_TRAVEL_PATTERNS)
        self._kinds = [(kind, re.compile(p, re.IGNORECASE)) for kind, p in _KIND_PATTERNS]
        self._competitors = [
            (name, re.compile(r"(?<!\w)" + re.escape(name) + r"(?!\w)", re.IGNORECASE))
            for name in COMPETITORS
        ]

    @staticmethod
    def _any(patterns, text: str) -> bool:
        return any(p.search(text) for p in patterns)

    def request_kind(self, text: str) -> str:
        for kind, pattern in self._kinds:
            if pattern.search(text):
                return kind
        return "generic"

    async def classify(self, text: str, trip: Optional[TripContext] = None) -> ClassifierDecision:
        return self.classify_sync(text, trip)

    def classify_sync(self, text: str, trip: Optional[TripContext] = None) -> ClassifierDecision:
        text = text or ""

        for category, patterns, reason in (
            ("injection", self._injection, "Prompt injection attempt"),
            ("illicit", self._illicit, "Request facilitates an illegal activity"),
            ("harmful", self._harmful, "Harmful or violent content"),
            ("explicit", self._explicit, "Explicit sexual content"),
        ):
            if self._any(patterns, text):
                return enforce_policy(
                    ClassifierDecision(decision="block", category=category, reason=reason)
                )

        mentioned = [name for name, pattern in self._competitors if pattern.search(text)]
        if mentioned:
            return enforce_policy(
                ClassifierDecision(
                    decision="warn",
                    category="competitor",
                    reason=f"Mentions competitor service: {', '.join(mentioned)}",
                )
            )

        extracted = extract_slots(text)
        is_travel = self._any(self._travel, text) or bool(extracted)
        if not is_travel and self._any(self._off_topic, text):
            return enforce_policy(
                ClassifierDecision(
                    decision="warn",
                    category="non-travel",
                    reason="Off-topic request unrelated to travel",
                )
            )

        kind = self.request_kind(text)
        known = known_slots(trip)
        for slot, value in extracted.items():
            if known.get(slot) is None:
                known[slot] = value

        missing = missing_slots_for(kind, known) if is_travel else []
        return enforce_policy(
            ClassifierDecision(
                decision="allow",
                category="travel",
                reason="Travel-related request" if is_travel else "General request, treated as travel",
                missing_slots=missing or None,
                suggestion=missing_slots_question(kind, missing) if missing else None,
            )
        )


# ============================================================================
# Gate
# ============================================================================


async def classify_turn(
    classifier: SafetyClassifier,
    text: str,
    trip: Optional[TripContext] = None,
    timeout: float = 8.0,
    session_id: str = "unknown",
) -> ClassifierDecision:
    """
    Classify one user turn, failing open on any error.

    Exceptions, timeouts and malformed classifier output all produce the
    fail-open decision. Cancellation of the turn itself still propagates.

    Args:
        classifier: Backend to use
        text: User message
        trip: Session trip context, used to filter missingSlots
        timeout: Seconds to wait for the backend
        session_id: For log correlation

    Returns:
        Policy-enforced ClassifierDecision
    """
    _log = f"[session={session_id}] [graph=turn] [node=classify] "

    try:
        decision = await asyncio.wait_for(classifier.classify(text, trip), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"{_log}Classifier timed out after {timeout}s; failing open")
        return fail_open_decision("Classifier timed out")
    except Exception as e:
        logger.warning(f"{_log}Classifier failed ({type(e).__name__}: {e}); failing open")
        return fail_open_decision("Classifier unavailable")

    decision = enforce_policy(decision)
    logger.info(
        f"{_log}Decision | decision={decision.decision}, category={decision.category}, "
        f"missing={decision.missing_slots}"
    )
    return decision
