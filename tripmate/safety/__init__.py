"""Safety and intent classification gate."""

from tripmate.safety.classifier import (
    LLMSafetyClassifier,
    RuleBasedSafetyClassifier,
    SafetyClassifier,
    classify_turn,
)
from tripmate.safety.policy import (
    BLOCKED_REPLY,
    FAIL_OPEN_MESSAGE,
    enforce_policy,
    fail_open_decision,
    tripwire_triggered,
)

__all__ = [
    "LLMSafetyClassifier",
    "RuleBasedSafetyClassifier",
    "SafetyClassifier",
    "classify_turn",
    "BLOCKED_REPLY",
    "FAIL_OPEN_MESSAGE",
    "enforce_policy",
    "fail_open_decision",
    "tripwire_triggered",
]
