"""
FastAPI endpoints for the trip engine.

Thin transport over TripEngine: chat turns plus session snapshot
get/load/reset.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tripmate.config import EngineConfig
from tripmate.engine import TripEngine
from tripmate.shared.errors import SessionNotFoundError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/trip", tags=["trip"])

# Engine instance (shared across requests)
_engine: Optional[TripEngine] = None


def get_engine() -> TripEngine:
    """Get or create the shared engine instance."""
    global _engine
    if _engine is None:
        _engine = TripEngine.from_config(EngineConfig.from_env())
    return _engine


# ============================================================================
# Request/Response Models
# ============================================================================


class ChatRequest(BaseModel):
    """One user message, optionally continuing a session."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str = Field(min_length=1, description="User message")
    session_id: Optional[str] = Field(
        default=None, description="Existing session; a new one is created if omitted"
    )


class SessionSnapshot(BaseModel):
    """Session snapshot as exchanged with persistence."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: Optional[str] = None
    messages: List[Dict[str, Any]] = Field(default_factory=list)
    trip_context: Optional[Dict[str, Any]] = None
    active_specialist: Optional[str] = None
    clarification_pending: bool = False


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/chat")
async def chat(request: ChatRequest, engine: TripEngine = Depends(get_engine)) -> Dict[str, Any]:
    """Run one conversation turn and return the turn result."""
    session_id = request.session_id or str(uuid.uuid4())
    _log = f"[session={session_id}] [graph=turn] [api=chat] "

    logger.info(f"{_log}Turn requested | message_length={len(request.message)}")

    try:
        result = await engine.run_turn(session_id, request.message)
    except Exception as e:
        logger.exception(f"{_log}Turn failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Something went wrong while processing your message",
        )

    return result.to_wire()


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, engine: TripEngine = Depends(get_engine)) -> Dict[str, Any]:
    """Return the session snapshot."""
    try:
        session = engine.get_session(session_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found",
        )
    return session.snapshot()


@router.put("/sessions/{session_id}")
async def load_session(
    session_id: str,
    snapshot: SessionSnapshot,
    engine: TripEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """Install a session from a snapshot (e.g. restored from persistence)."""
    if snapshot.session_id and snapshot.session_id != session_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="sessionId in body does not match the URL",
        )

    payload = snapshot.model_dump(by_alias=True)
    payload["sessionId"] = session_id
    try:
        session = await engine.load_session(payload)
    except ValueError as e:
        # pydantic ValidationError is a ValueError
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    return session.snapshot()


@router.delete("/sessions/{session_id}")
async def reset_session(session_id: str, engine: TripEngine = Depends(get_engine)) -> Dict[str, Any]:
    """Forget a session and its trip context."""
    if not await engine.reset_session(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found",
        )
    return {"sessionId": session_id, "status": "reset"}
