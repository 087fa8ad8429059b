"""
Safety classifier output contract.

The router's gating logic depends on this exact shape:
    {decision, category, reason, missingSlots?, suggestion?}
Renaming or reordering these fields breaks downstream consumers.
"""

from typing import Any, Dict, FrozenSet, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


Decision = Literal["allow", "warn", "block"]
Category = Literal[
    "travel",
    "non-travel",
    "competitor",
    "harmful",
    "injection",
    "illicit",
    "explicit",
]

POLICY_VIOLATION_CATEGORIES: FrozenSet[str] = frozenset(
    {"harmful", "injection", "illicit", "explicit"}
)

# Categories some classifier deployments emit that map onto the fixed set
_CATEGORY_ALIASES: Dict[str, str] = {
    "comparison": "competitor",
    "html_request": "non-travel",
    "off-topic": "non-travel",
    "off_topic": "non-travel",
    "non_travel": "non-travel",
    "nontravel": "non-travel",
    "prompt_injection": "injection",
    "illegal": "illicit",
    "sexual": "explicit",
    "violence": "harmful",
    "hate": "harmful",
    "harassment": "harmful",
}


class ClassifierDecision(BaseModel):
    """Decision record produced for one user utterance."""

    model_config = ConfigDict(populate_by_name=True)

    decision: Decision = Field(description="allow | warn | block")
    category: Category = Field(description="Benign travel or policy category")
    reason: str = Field(description="Short human-readable justification")
    missing_slots: Optional[List[str]] = Field(
        default=None,
        alias="missingSlots",
        description="Critical slots still needed (never set when blocked)",
    )
    suggestion: Optional[str] = Field(
        default=None,
        description="Ready-to-send clarification or redirect message",
    )

    @model_validator(mode="before")
    @classmethod
    def _normalize_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        # Older classifier prompts call the suggestion recommendedResponse
        if data.get("suggestion") is None and data.get("recommendedResponse"):
            data["suggestion"] = data["recommendedResponse"]
        for key in ("recommendedResponse", "isTravel", "hasCompetitor",
                    "competitorMentioned", "actionRequired"):
            data.pop(key, None)

        category = data.get("category")
        if isinstance(category, str):
            normalized = category.strip().lower()
            # Unknown categories are left to fail validation
            data["category"] = _CATEGORY_ALIASES.get(normalized, normalized)

        decision = data.get("decision")
        if isinstance(decision, str):
            data["decision"] = decision.strip().lower()

        return data

    def to_wire(self) -> Dict[str, Any]:
        """Serialize in the wire field order, omitting missingSlots when unset."""
        payload = self.model_dump(by_alias=True)
        if payload.get("missingSlots") is None:
            payload.pop("missingSlots", None)
        return payload
