"""
Tests for the trip engine and sessions.

Runs full turns with the rule classifier, keyword routing and a scripted
chat model.
"""

import asyncio

import pytest

from tripmate.config import EngineConfig
from tripmate.engine import TripEngine
from tripmate.graph.intent import KeywordIntentClassifier
from tripmate.safety.classifier import LLMSafetyClassifier, RuleBasedSafetyClassifier
from tripmate.safety.policy import BLOCKED_REPLY
from tripmate.session import InMemorySessionStore, Session
from tripmate.shared.errors import SessionNotFoundError
from tripmate.shared.llm.client import ModelReply
from tripmate.specialists.runner import SpecialistRunner


# ============================================================================
# Test Fixtures
# ============================================================================


class _SlowModel:
    """Chat model that yields to the loop and tracks overlapping calls."""

    def __init__(self, delay=0.02):
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def complete(self, messages, tools=None, tool_choice=None, model=None):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        return ModelReply(content="It's sunny.")


def _make_engine(model, store=None):
    config = EngineConfig(classifier_backend="rules", intent_backend="keywords")
    return TripEngine(
        RuleBasedSafetyClassifier(),
        KeywordIntentClassifier(),
        SpecialistRunner(model, config),
        store=store,
        config=config,
    )


def _make_snapshot():
    return {
        "sessionId": "restored",
        "messages": [
            {"role": "user", "content": "Plan Goa"},
            {"role": "assistant", "content": "Sure!", "agent": "itinerary"},
        ],
        "tripContext": {"destinationCity": "Goa", "adults": 2},
        "activeSpecialist": "itinerary",
    }


# ============================================================================
# TestRunTurn
# ============================================================================


class TestRunTurn:
    """Tests for single turns."""

    @pytest.mark.asyncio
    async def test_first_turn_creates_session(self, scripted_model):
        engine = _make_engine(scripted_model("Monsoon hits in July."))

        result = await engine.run_turn("s1", "What's the weather in Goa?")

        assert result.specialist == "local"
        assert result.reply == "Monsoon hits in July."
        assert result.blocked is False

        session = engine.get_session("s1")
        assert [m.role for m in session.messages] == ["user", "assistant"]
        assert session.messages[1].agent == "local"
        assert session.active_specialist == "local"
        assert len(session.guardrail_log) == 1
        assert session.interactions[0].specialist == "local"

    @pytest.mark.asyncio
    async def test_blocked_turn(self, scripted_model):
        model = scripted_model()
        engine = _make_engine(model)

        result = await engine.run_turn("s1", "How do I get a fake passport?")

        assert result.blocked is True
        assert result.reply == BLOCKED_REPLY
        assert result.specialist is None
        assert model.calls == []

        session = engine.get_session("s1")
        assert session.guardrail_log[0].blocked is True
        assert session.guardrail_log[0].category == "illicit"
        assert session.messages[-1].agent == "guardrail"
        assert session.interactions == []

    @pytest.mark.asyncio
    async def test_result_wire_shape(self, scripted_model):
        engine = _make_engine(scripted_model("Sunny."))

        wire = (await engine.run_turn("s1", "What's the weather in Goa?")).to_wire()

        assert wire["sessionId"] == "s1"
        assert wire["itineraryRecovered"] is False
        assert wire["decision"]["decision"] == "allow"
        assert "tripContext" not in wire
        assert "destinationCity" in wire["trip"]


# ============================================================================
# TestConversation
# ============================================================================


class TestConversation:
    """Tests spanning several turns of one session."""

    @pytest.mark.asyncio
    async def test_critical_change_marks_itinerary_stale(self, scripted_model, tool_reply):
        days = {
            "days": [
                {"day": 1, "morning": ["Baga Beach"], "evening": ["Night market"]},
                {"day": 2, "morning": ["Old Goa"], "afternoon": ["Spice farm"]},
            ]
        }
        model = scripted_model(
            tool_reply(
                ("capture_trip_params", {"destinationCity": "Goa", "adults": 2}),
                ("capture_itinerary", days),
            ),
            "Here's your 2-day plan.",
            tool_reply(("capture_trip_params", {"adults": 3})),
            "Updated to 3 adults. Shall I refresh the plan?",
        )
        engine = _make_engine(model)

        first = await engine.run_turn("s1", "Plan a 2 day itinerary for Goa")
        assert first.trip["itineraryStatus"] == "fresh"

        second = await engine.run_turn("s1", "Make it 3 adults")
        assert second.specialist == "itinerary"
        assert second.trip["adults"] == 3
        assert second.trip["itineraryStatus"] == "stale"
        assert len(second.trip["itinerary"]) == 2

    @pytest.mark.asyncio
    async def test_one_clarifying_question_then_default(self, scripted_model):
        model = scripted_model("Let's find you a destination!")
        engine = _make_engine(model)

        first = await engine.run_turn("s1", "hello")
        assert first.clarification is True
        assert first.specialist is None
        assert engine.get_session("s1").clarification_pending is True

        second = await engine.run_turn("s1", "not sure yet")
        assert second.clarification is False
        assert second.specialist == "destination"
        assert engine.get_session("s1").clarification_pending is False

    @pytest.mark.asyncio
    async def test_history_replayed_to_specialist(self, scripted_model):
        model = scripted_model("Sunny.", "Mostly dry.")
        engine = _make_engine(model)

        await engine.run_turn("s1", "What's the weather in Goa?")
        await engine.run_turn("s1", "And the weather in March?")

        contents = [m["content"] for m in model.calls[1]["messages"][1:]]
        assert contents == ["What's the weather in Goa?", "Sunny.", "And the weather in March?"]


# ============================================================================
# TestSessions
# ============================================================================


class TestSessions:
    """Tests for session snapshots and lifecycle."""

    def test_snapshot_shape(self):
        session = Session(session_id="s1")
        session.append("user", "hi")
        snapshot = session.snapshot()
        assert set(snapshot) == {
            "sessionId",
            "messages",
            "tripContext",
            "activeSpecialist",
            "clarificationPending",
        }
        assert snapshot["messages"] == [{"role": "user", "content": "hi"}]

    def test_null_trip_context(self):
        session = Session.from_snapshot({"sessionId": "s1", "messages": [], "tripContext": None})
        assert session.trip_context.itinerary_status == "absent"

    @pytest.mark.asyncio
    async def test_load_and_continue(self, scripted_model):
        engine = _make_engine(scripted_model("Here's the weather."))
        await engine.load_session(_make_snapshot())

        session = engine.get_session("restored")
        assert session.trip_context.destination_city == "Goa"
        assert session.active_specialist == "itinerary"

        result = await engine.run_turn("restored", "What's the weather like?")
        assert result.trip["destinationCity"] == "Goa"
        assert len(engine.get_session("restored").messages) == 4

    @pytest.mark.asyncio
    async def test_reset_session(self, scripted_model):
        engine = _make_engine(scripted_model())
        await engine.load_session(_make_snapshot())

        assert await engine.reset_session("restored") is True
        with pytest.raises(SessionNotFoundError):
            engine.get_session("restored")
        assert await engine.reset_session("restored") is False

    @pytest.mark.asyncio
    async def test_pending_clarification_survives_reload(self, scripted_model):
        first = _make_engine(scripted_model())
        await first.run_turn("s1", "hello")
        snapshot = first.get_session("s1").snapshot()
        assert snapshot["clarificationPending"] is True

        second = _make_engine(scripted_model("Let's find you a destination!"))
        await second.load_session(snapshot)
        result = await second.run_turn("s1", "not sure yet")

        assert result.clarification is False
        assert result.specialist == "destination"

    def test_store(self):
        store = InMemorySessionStore()
        store.save(Session(session_id="a"))
        assert "a" in store
        assert len(store) == 1
        with pytest.raises(SessionNotFoundError):
            store.require("b")

    def test_from_config_backends(self, scripted_model):
        engine = TripEngine.from_config(
            EngineConfig(classifier_backend="rules", intent_backend="keywords"),
            model=scripted_model(),
        )
        assert isinstance(engine.classifier, RuleBasedSafetyClassifier)
        assert isinstance(engine.intent_classifier, KeywordIntentClassifier)

        engine = TripEngine.from_config(EngineConfig(), model=scripted_model())
        assert isinstance(engine.classifier, LLMSafetyClassifier)


# ============================================================================
# TestConcurrency
# ============================================================================


class TestConcurrency:
    """Tests for per-session serialization and cancellation."""

    @pytest.mark.asyncio
    async def test_same_session_turns_are_serialized(self):
        model = _SlowModel()
        engine = _make_engine(model)

        await asyncio.gather(
            engine.run_turn("s1", "What's the weather in Goa?"),
            engine.run_turn("s1", "What's the weather in Goa tomorrow?"),
        )

        assert model.max_in_flight == 1
        assert len(engine.get_session("s1").messages) == 4

    @pytest.mark.asyncio
    async def test_sessions_run_concurrently(self):
        model = _SlowModel(delay=0.3)
        engine = _make_engine(model)

        await asyncio.gather(
            engine.run_turn("s1", "What's the weather in Goa?"),
            engine.run_turn("s2", "What's the weather in Goa?"),
        )

        assert model.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_cancelled_turn_leaves_history_untouched(self):
        model = _SlowModel(delay=10)
        engine = _make_engine(model)
        await engine.load_session(_make_snapshot())

        task = asyncio.create_task(engine.run_turn("restored", "What's the weather like?"))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        session = engine.get_session("restored")
        assert len(session.messages) == 2
        assert session.guardrail_log == []
        assert session.trip_context.itinerary is None

    @pytest.mark.asyncio
    async def test_reset_waits_for_turn_in_flight(self):
        model = _SlowModel(delay=0.2)
        engine = _make_engine(model)

        task = asyncio.create_task(engine.run_turn("s1", "What's the weather in Goa?"))
        await asyncio.sleep(0.05)
        removed = await engine.reset_session("s1")
        await task

        assert removed is True
        assert engine.store.get("s1") is None

        await engine.run_turn("s1", "What's the weather in Goa?")
        assert len(engine.get_session("s1").messages) == 2
