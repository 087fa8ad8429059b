"""
Specialist tool loop.

Runs one specialist for one turn: builds its prompt from the trip context,
lets the model call its capture tools and consult other specialists as
tools, and returns the final user-facing text.

Rules enforced here:
- capturing specialists must call a tool on their first model call
- if no capture_trip_params call succeeded, the regex fallback is applied
  to the user's message
- delegation is depth-limited and allowed once per turn; the consulted
  specialist's answer only ever comes back as a tool result
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from tripmate.capture.fallback import capture_from_text
from tripmate.capture.tools import (
    CAPTURE_ITINERARY,
    CAPTURE_TRIP_PARAMS,
    TOOL_SPECS,
    execute_capture_tool,
)
from tripmate.config import DEFAULT_CONFIG, EngineConfig
from tripmate.context.store import TripContext
from tripmate.shared.contracts.capture import DelegateArgs
from tripmate.shared.errors import DelegationError, ErrorCode, TripEngineError
from tripmate.shared.llm.client import ChatModel, ToolCall
from tripmate.specialists.prompts import build_specialist_prompt
from tripmate.specialists.registry import (
    SpecialistSpec,
    delegate_target,
    delegate_tool_specs,
    get_specialist,
    is_delegate_tool,
)


logger = logging.getLogger(__name__)


@dataclass
class SpecialistOutcome:
    """What a specialist produced for one turn."""

    specialist: str
    reply: str
    tools_used: List[str] = field(default_factory=list)
    captured: bool = False
    itinerary_captured: bool = False
    fallback_applied: bool = False
    delegated_to: Optional[str] = None


@dataclass
class _DelegationBudget:
    limit: int
    used: int = 0


class SpecialistRunner:
    """Executes specialists against a ChatModel."""

    def __init__(self, model: ChatModel, config: EngineConfig = DEFAULT_CONFIG):
        self.model = model
        self.config = config

    async def run(
        self,
        name: str,
        user_message: str,
        trip: TripContext,
        history: Optional[List[Dict[str, Any]]] = None,
        guidance: Optional[str] = None,
        session_id: str = "unknown",
    ) -> SpecialistOutcome:
        """
        Run a specialist for the current user turn.

        Args:
            name: Registered specialist name
            user_message: Latest user message
            trip: Session trip context (mutated by capture tools)
            history: Prior conversation messages (role/content dicts)
            guidance: Optional hint from the safety gate
            session_id: For log correlation

        Returns:
            SpecialistOutcome with the final reply and capture bookkeeping

        Raises:
            TripEngineError: AGENT_NOT_FOUND for an unknown specialist
        """
        spec = get_specialist(name)
        budget = _DelegationBudget(limit=self.config.max_delegations_per_turn)
        return await self._run(
            spec,
            user_message,
            trip,
            history=history or [],
            guidance=guidance,
            depth=0,
            budget=budget,
            session_id=session_id,
        )

    async def _run(
        self,
        spec: SpecialistSpec,
        user_message: str,
        trip: TripContext,
        history: List[Dict[str, Any]],
        guidance: Optional[str],
        depth: int,
        budget: _DelegationBudget,
        session_id: str,
    ) -> SpecialistOutcome:
        _log = f"[session={session_id}] [graph=turn] [specialist={spec.name}] [depth={depth}] "
        outcome = SpecialistOutcome(specialist=spec.name, reply="")

        tools = [TOOL_SPECS[t] for t in spec.tools]
        if depth < self.config.max_delegation_depth:
            tools += delegate_tool_specs(spec)

        # Consulted specialists answer another specialist, not the user
        require_capture = depth == 0 and spec.must_capture and bool(spec.tools)

        messages: List[Dict[str, Any]] = [
            {
                "role": "system",
                "content": build_specialist_prompt(spec, trip, guidance, delegated=depth > 0),
            }
        ]
        window = self.config.history_window
        if depth == 0 and window > 0:
            replay = [
                {"role": m["role"], "content": m["content"]}
                for m in history
                if m.get("role") in ("user", "assistant") and m.get("content")
            ]
            messages.extend(replay[-window:])
        messages.append({"role": "user", "content": user_message})

        logger.info(
            f"{_log}Starting | tools={[t['function']['name'] for t in tools]}, "
            f"require_capture={require_capture}"
        )

        final_text: Optional[str] = None
        for round_index in range(self.config.max_tool_rounds):
            if not tools:
                tool_choice = None
            elif round_index == 0 and require_capture:
                tool_choice = "required"
            else:
                tool_choice = "auto"

            reply = await self.model.complete(
                messages,
                tools=tools or None,
                tool_choice=tool_choice,
                model=self.config.specialist_model,
            )

            if not reply.tool_calls:
                final_text = reply.content or ""
                break

            messages.append(reply.as_message())
            for call in reply.tool_calls:
                output = await self._execute_tool(
                    spec, call, trip, outcome, depth, budget, session_id
                )
                messages.append({"role": "tool", "tool_call_id": call.id, "content": output})

        if final_text is None:
            logger.warning(f"{_log}Tool rounds exhausted; requesting final answer without tools")
            reply = await self.model.complete(messages, model=self.config.specialist_model)
            final_text = reply.content or ""

        if require_capture and not outcome.captured:
            change = capture_from_text(trip, user_message)
            outcome.fallback_applied = change is not None
            logger.info(
                f"{_log}No structured capture this turn; fallback applied={outcome.fallback_applied}"
            )

        outcome.reply = final_text.strip()
        logger.info(
            f"{_log}Finished | tools_used={outcome.tools_used}, captured={outcome.captured}, "
            f"itinerary_captured={outcome.itinerary_captured}, delegated_to={outcome.delegated_to}"
        )
        return outcome

    async def _execute_tool(
        self,
        spec: SpecialistSpec,
        call: ToolCall,
        trip: TripContext,
        outcome: SpecialistOutcome,
        depth: int,
        budget: _DelegationBudget,
        session_id: str,
    ) -> str:
        """Execute one tool call and return the tool message content."""
        _log = f"[session={session_id}] [graph=turn] [specialist={spec.name}] [tool={call.name}] "
        outcome.tools_used.append(call.name)

        try:
            if is_delegate_tool(call.name):
                return await self._delegate(spec, call, trip, outcome, depth, budget, session_id)

            if call.name not in spec.tools:
                raise TripEngineError(
                    f"Tool '{call.name}' is not available to {spec.name}",
                    ErrorCode.TOOL_EXECUTION_FAILED,
                    {"tool": call.name, "specialist": spec.name},
                )

            result = execute_capture_tool(call.name, trip, call.arguments, active_specialist=spec.name)
            if result.ok and call.name == CAPTURE_TRIP_PARAMS:
                outcome.captured = True
            if result.ok and call.name == CAPTURE_ITINERARY:
                outcome.itinerary_captured = True
            return result.to_tool_output()

        except DelegationError as e:
            logger.warning(f"{_log}Delegation refused: {e}")
            return json.dumps({"status": "rejected", "message": e.details["reason"]})
        except TripEngineError as e:
            logger.warning(f"{_log}Tool call failed: {e}")
            return json.dumps({"status": "error", "message": str(e)})
        except Exception as e:
            logger.exception(f"{_log}Tool execution crashed: {e}")
            return json.dumps({"status": "error", "message": "Tool execution failed"})

    async def _delegate(
        self,
        spec: SpecialistSpec,
        call: ToolCall,
        trip: TripContext,
        outcome: SpecialistOutcome,
        depth: int,
        budget: _DelegationBudget,
        session_id: str,
    ) -> str:
        target = delegate_target(call.name)

        if target not in spec.delegates_to:
            raise DelegationError(spec.name, target, f"{spec.name} cannot consult {target}")
        if depth + 1 > self.config.max_delegation_depth:
            raise DelegationError(spec.name, target, "Consulted specialists cannot consult others")
        if budget.used >= budget.limit:
            raise DelegationError(spec.name, target, "Only one consultation is allowed per turn")

        try:
            args = DelegateArgs.model_validate(json.loads(call.arguments or "{}"))
        except (ValidationError, ValueError) as e:
            return json.dumps({"status": "error", "message": f"Invalid consultation request: {e}"})

        budget.used += 1
        logger.info(
            f"[session={session_id}] [graph=turn] [specialist={spec.name}] "
            f"Consulting {target} | request={args.request[:80]!r}"
        )

        inner = await self._run(
            get_specialist(target),
            args.request,
            trip,
            history=[],
            guidance=None,
            depth=depth + 1,
            budget=budget,
            session_id=session_id,
        )
        outcome.delegated_to = target
        # Writes made by the consulted specialist count for this turn too
        outcome.captured = outcome.captured or inner.captured
        outcome.itinerary_captured = outcome.itinerary_captured or inner.itinerary_captured

        return json.dumps({"status": "ok", "specialist": target, "answer": inner.reply})
