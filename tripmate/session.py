"""
Conversation sessions.

A session owns exactly one TripContext and the message history for one
conversation. Sessions serialize to the snapshot shape

    {"sessionId", "messages": [{role, content, agent?}], "tripContext", "activeSpecialist"}

and are kept behind the SessionStore protocol; persistence backends other
than the in-memory store live outside this package.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tripmate.context.store import TripContext
from tripmate.shared.errors import SessionNotFoundError


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ChatMessage(BaseModel):
    """One entry of the conversation transcript."""

    model_config = ConfigDict(extra="ignore")

    role: Literal["user", "assistant", "system"]
    content: str
    agent: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class GuardrailEntry(BaseModel):
    """Audit record of one safety classification."""

    timestamp: str = Field(default_factory=_now)
    input: str
    decision: str
    category: str
    blocked: bool


class AgentInteraction(BaseModel):
    """Audit record of one specialist turn."""

    timestamp: str = Field(default_factory=_now)
    specialist: str
    input: str
    output: str
    tools_used: List[str] = Field(default_factory=list)
    delegated_to: Optional[str] = None


class Session(BaseModel):
    """State carried between turns of one conversation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str
    messages: List[ChatMessage] = Field(default_factory=list)
    trip_context: TripContext = Field(default_factory=TripContext)
    active_specialist: Optional[str] = None

    # True when the last assistant turn was the router's clarifying question
    clarification_pending: bool = False

    guardrail_log: List[GuardrailEntry] = Field(default_factory=list)
    interactions: List[AgentInteraction] = Field(default_factory=list)

    def history(self) -> List[Dict[str, Any]]:
        return [m.to_wire() for m in self.messages]

    def append(self, role: str, content: str, agent: Optional[str] = None) -> None:
        self.messages.append(ChatMessage(role=role, content=content, agent=agent))

    def snapshot(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "messages": [m.to_wire() for m in self.messages],
            "tripContext": self.trip_context.snapshot(),
            "activeSpecialist": self.active_specialist,
            "clarificationPending": self.clarification_pending,
        }

    @classmethod
    def from_snapshot(cls, data: Mapping[str, Any]) -> "Session":
        """
        Rebuild a session from its snapshot.

        A null tripContext starts an empty trip record.
        """
        return cls(
            session_id=data["sessionId"],
            messages=[ChatMessage.model_validate(m) for m in data.get("messages") or []],
            trip_context=TripContext.from_snapshot(data.get("tripContext")),
            active_specialist=data.get("activeSpecialist"),
            clarification_pending=bool(data.get("clarificationPending", False)),
        )


class SessionStore(Protocol):
    """Where sessions live between turns."""

    def get(self, session_id: str) -> Optional[Session]:
        ...

    def save(self, session: Session) -> None:
        ...

    def delete(self, session_id: str) -> bool:
        ...


class InMemorySessionStore:
    """Process-local session storage (replace with Redis/DB in production)."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def save(self, session: Session) -> None:
        self._sessions[session.session_id] = session

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
