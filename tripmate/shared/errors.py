"""
Error taxonomy for the trip engine.

Every error raised by the core carries an ErrorCode so the transport layer
can map it without inspecting messages. None of these are shown to the end
user verbatim; recoverable failures degrade to a clarifying question or a
generic helpful message.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Stable error codes shared by the engine and the API layer."""

    AGENT_NOT_FOUND = "AGENT_NOT_FOUND"
    TOOL_EXECUTION_FAILED = "TOOL_EXECUTION_FAILED"
    CONTEXT_UPDATE_FAILED = "CONTEXT_UPDATE_FAILED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    INVALID_HANDOFF = "INVALID_HANDOFF"
    CLASSIFIER_FAILED = "CLASSIFIER_FAILED"
    CAPTURE_REJECTED = "CAPTURE_REJECTED"


class TripEngineError(Exception):
    """Base class for all trip engine errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.code = code
        self.details = details


class SlotTypeError(TripEngineError):
    """Raised by the store when a slot value has the wrong type."""

    def __init__(self, slot: str, expected: str, actual: Any):
        super().__init__(
            f"Slot '{slot}' expects {expected}, got {type(actual).__name__}",
            ErrorCode.CONTEXT_UPDATE_FAILED,
            {"slot": slot, "expected": expected},
        )
        self.slot = slot


class SessionNotFoundError(TripEngineError):
    """Raised when a session id is unknown to the session store."""

    def __init__(self, session_id: str):
        super().__init__(
            f"Session '{session_id}' not found",
            ErrorCode.SESSION_NOT_FOUND,
            {"session_id": session_id},
        )
        self.session_id = session_id


class DelegationError(TripEngineError):
    """Raised when a specialist delegates to an unknown or disallowed target."""

    def __init__(self, source: str, target: str, reason: str):
        super().__init__(
            f"Delegation {source} -> {target} refused: {reason}",
            ErrorCode.INVALID_HANDOFF,
            {"source": source, "target": target, "reason": reason},
        )


class ParseError(Exception):
    """Raised when model output cannot be parsed into the expected structure."""

    pass
