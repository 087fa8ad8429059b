"""
Tests for the trip context store.

Covers slot merging, the critical-slot signature and staleness rule,
itinerary replacement, booking confirmation and snapshots.
"""

import pytest

from tripmate.context.store import (
    Day,
    TripContext,
    compute_critical_signature,
    dates_out_of_order,
)
from tripmate.shared.errors import ErrorCode, SlotTypeError, TripEngineError


# ============================================================================
# Test Fixtures
# ============================================================================


def _make_trip(**slots):
    """Create a trip context with the given slots applied through apply_update."""
    trip = TripContext()
    if slots:
        trip.apply_update(slots)
    return trip


def _make_days():
    return [
        Day(day=1, morning=["Senso-ji"], afternoon=["Ueno Park"], evening=["Izakaya"]),
        Day(day=2, morning=["Tsukiji"], afternoon=[], evening=["Shibuya Crossing"]),
    ]


# ============================================================================
# TestApplyUpdate
# ============================================================================


class TestApplyUpdate:
    """Tests for sparse slot merging."""

    def test_present_values_overwrite(self):
        trip = _make_trip(destination_city="Paris")
        trip.apply_update({"destination_city": "Lisbon"})
        assert trip.destination_city == "Lisbon"

    def test_absent_values_do_not_clear(self):
        trip = _make_trip(destination_city="Paris", adults=2)
        trip.apply_update({"adults": 3})
        assert trip.destination_city == "Paris"
        assert trip.adults == 3

    def test_none_values_are_ignored(self):
        trip = _make_trip(destination_city="Paris")
        trip.apply_update({"destination_city": None})
        assert trip.destination_city == "Paris"

    def test_records_slot_source(self):
        trip = TripContext()
        trip.apply_update({"origin_city": "Delhi"}, source="fallback")
        trip.apply_update({"adults": 2})
        assert trip.slot_sources == {"origin_city": "fallback", "adults": "tool"}

    def test_budget_stored_as_float(self):
        trip = _make_trip(budget_amount=1500)
        assert trip.budget_amount == 1500.0
        assert isinstance(trip.budget_amount, float)

    def test_wrong_type_rejected_without_partial_write(self):
        trip = TripContext()
        with pytest.raises(SlotTypeError) as exc:
            trip.apply_update({"destination_city": "Rome", "adults": "two"})
        assert exc.value.code == ErrorCode.CONTEXT_UPDATE_FAILED
        assert trip.destination_city is None

    def test_bool_is_not_an_int(self):
        trip = TripContext()
        with pytest.raises(SlotTypeError):
            trip.apply_update({"adults": True})

    def test_unknown_slot_rejected(self):
        trip = TripContext()
        with pytest.raises(TripEngineError) as exc:
            trip.apply_update({"hotel_stars": 5})
        assert exc.value.code == ErrorCode.CONTEXT_UPDATE_FAILED

    def test_clear_slots(self):
        trip = _make_trip(destination_city="Paris", currency="EUR")
        trip.clear_slots("currency")
        assert trip.currency is None
        assert "currency" not in trip.slot_sources
        assert trip.destination_city == "Paris"


# ============================================================================
# TestStaleness
# ============================================================================


class TestStaleness:
    """Tests for the critical-slot signature and itinerary status."""

    def test_new_context_is_absent(self):
        trip = TripContext()
        assert trip.itinerary_status == "absent"
        assert trip.itinerary is None
        assert trip.last_itinerary_signature == trip.compute_signature()

    def test_non_critical_update_keeps_status(self):
        trip = TripContext()
        change = trip.apply_update({"origin_city": "Delhi", "currency": "INR"})
        assert change.changed is False
        assert trip.itinerary_status == "absent"

    def test_critical_update_marks_stale_without_itinerary(self):
        trip = TripContext()
        change = trip.apply_update({"destination_city": "Tokyo"})
        assert change.changed is True
        assert trip.itinerary_status == "stale"

    def test_mark_itinerary_sets_fresh(self):
        trip = _make_trip(destination_city="Tokyo", adults=2)
        stored = trip.mark_itinerary(_make_days())
        assert stored == 2
        assert trip.itinerary_status == "fresh"
        assert trip.last_itinerary_signature == trip.compute_signature()

    def test_critical_change_after_itinerary_marks_stale(self):
        trip = _make_trip(destination_city="Tokyo", adults=2)
        trip.mark_itinerary(_make_days())
        trip.apply_update({"adults": 3})
        assert trip.itinerary_status == "stale"
        # The stale itinerary is kept until replaced
        assert len(trip.itinerary) == 2

    def test_same_value_is_idempotent(self):
        trip = _make_trip(destination_city="Tokyo", budget_amount=1500)
        trip.mark_itinerary(_make_days())
        change = trip.apply_update({"destination_city": "Tokyo", "budget_amount": 1500.0})
        assert change.changed is False
        assert trip.itinerary_status == "fresh"

    def test_stale_is_sticky_until_new_itinerary(self):
        trip = _make_trip(destination_city="Tokyo")
        trip.mark_itinerary(_make_days())
        trip.apply_update({"start_date": "2025-04-01"})
        trip.apply_update({"origin_city": "Osaka"})
        assert trip.itinerary_status == "stale"
        trip.mark_itinerary(_make_days()[:1])
        assert trip.itinerary_status == "fresh"
        assert len(trip.itinerary) == 1

    def test_empty_itinerary_is_absent(self):
        trip = _make_trip(destination_city="Tokyo")
        trip.mark_itinerary(_make_days())
        assert trip.mark_itinerary([]) == 0
        assert trip.itinerary is None
        assert trip.itinerary_status == "absent"

    def test_signature_ignores_number_form(self):
        a = compute_critical_signature({"budget_amount": 1500})
        b = compute_critical_signature({"budget_amount": 1500.0})
        assert a == b

    def test_signature_ignores_non_critical_slots(self):
        a = compute_critical_signature({"destination_city": "Tokyo"})
        b = compute_critical_signature({"destination_city": "Tokyo", "origin_city": "Delhi"})
        assert a == b


# ============================================================================
# TestReads
# ============================================================================


class TestReads:
    """Tests for derived views of the context."""

    def test_missing_planning_slots(self):
        trip = _make_trip(destination_city="Goa")
        assert trip.missing_planning_slots() == ["originCity", "startDate", "endDate", "adults"]

    def test_budget_without_currency_is_incomplete(self):
        trip = _make_trip(budget_amount=50000)
        assert "currency" in trip.missing_planning_slots()
        assert trip.currency is None

    def test_currency_without_budget_is_incomplete(self):
        trip = _make_trip(currency="EUR")
        assert "budgetAmount" in trip.missing_planning_slots()

    def test_booking_prerequisites(self):
        trip = _make_trip(destination_city="Goa", start_date="2025-03-01")
        assert trip.booking_prerequisites_missing() == ["endDate"]

    def test_confirm_booking_is_idempotent(self):
        trip = TripContext()
        assert trip.confirm_booking(True) is True
        assert trip.confirm_booking(True) is True
        assert trip.confirm_booking(False) is True

    def test_confirm_false_is_noop(self):
        trip = TripContext()
        assert trip.confirm_booking(False) is False
        assert trip.confirm_booking(None) is False

    def test_dates_out_of_order(self):
        assert dates_out_of_order("2025-03-10", "2025-03-05") is True
        assert dates_out_of_order("2025-03-05", "2025-03-10") is False
        assert dates_out_of_order("2025-03-05", None) is False


# ============================================================================
# TestSnapshot
# ============================================================================


class TestSnapshot:
    """Tests for camelCase snapshots."""

    def test_snapshot_uses_wire_names(self):
        trip = _make_trip(destination_city="Tokyo", budget_amount=2000, currency="USD")
        snap = trip.snapshot()
        assert snap["destinationCity"] == "Tokyo"
        assert snap["budgetAmount"] == 2000.0
        assert snap["itineraryStatus"] == "stale"

    def test_snapshot_restores_state(self):
        trip = _make_trip(destination_city="Tokyo", adults=2)
        trip.mark_itinerary(_make_days())
        restored = TripContext.from_snapshot(trip.snapshot())
        assert restored.destination_city == "Tokyo"
        assert restored.itinerary_status == "fresh"
        assert restored.last_itinerary_signature == trip.last_itinerary_signature
        assert restored.itinerary[0].morning == ["Senso-ji"]

    def test_restored_context_tracks_staleness(self):
        trip = _make_trip(destination_city="Tokyo")
        trip.mark_itinerary(_make_days())
        restored = TripContext.from_snapshot(trip.snapshot())
        restored.apply_update({"destination_city": "Kyoto"})
        assert restored.itinerary_status == "stale"

    def test_null_snapshot_is_empty_context(self):
        trip = TripContext.from_snapshot(None)
        assert trip.destination_city is None
        assert trip.itinerary_status == "absent"

    def test_day_segments_never_none(self):
        day = Day.model_validate({"day": 1, "morning": None, "evening": ["Dinner"]})
        assert day.morning == []
        assert day.afternoon == []
        assert not day.is_empty()
