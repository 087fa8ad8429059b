"""
Turn result contract.

What the engine hands back to the transport layer after one user turn.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tripmate.shared.contracts.classifier_output import ClassifierDecision


class TurnResult(BaseModel):
    """Outcome of a single user turn."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str = Field(description="Conversation session identifier")
    reply: str = Field(description="Text shown to the user")
    specialist: Optional[str] = Field(
        default=None, description="Specialist that answered, if any"
    )
    decision: ClassifierDecision = Field(description="Safety classifier decision")
    blocked: bool = Field(default=False, description="Turn was stopped by the tripwire")
    clarification: bool = Field(
        default=False, description="Router asked a clarifying question instead of routing"
    )
    itinerary_recovered: bool = Field(
        default=False, description="Recovery parser populated the itinerary"
    )
    delegated_to: Optional[str] = Field(
        default=None, description="Specialist consulted as a tool during the turn"
    )
    trip: Dict[str, Any] = Field(default_factory=dict, description="Trip context snapshot")

    def to_wire(self) -> Dict[str, Any]:
        payload = self.model_dump(by_alias=True, mode="json")
        payload["decision"] = self.decision.to_wire()
        return payload
