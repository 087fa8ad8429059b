"""
Tests for the capture tools.

Each executor validates its arguments against the capture contracts and
returns a structured CaptureResult; invalid input never reaches the store.
"""

import json

import pytest

from tripmate.capture.tools import (
    CAPTURE_ITINERARY,
    CAPTURE_TRIP_PARAMS,
    CONFIRM_BOOKING,
    TOOL_SPECS,
    capture_itinerary,
    capture_trip_params,
    confirm_booking,
    execute_capture_tool,
)
from tripmate.context.store import TripContext
from tripmate.shared.contracts.capture import CaptureTripParams
from tripmate.shared.errors import ErrorCode, TripEngineError


# ============================================================================
# Test Fixtures
# ============================================================================


def _make_trip_ready_for_booking():
    trip = TripContext()
    trip.apply_update(
        {
            "destination_city": "Goa",
            "start_date": "2026-07-10",
            "end_date": "2026-07-16",
            "adults": 2,
        }
    )
    return trip


def _make_itinerary_args(days=2):
    return {
        "days": [
            {
                "day": i + 1,
                "morning": [f"Beach walk {i + 1}"],
                "afternoon": ["Fort Aguada"],
                "evening": ["Seafood dinner"],
            }
            for i in range(days)
        ]
    }


# ============================================================================
# TestCaptureTripParams
# ============================================================================


class TestCaptureTripParams:
    """Tests for capture_trip_params."""

    def test_sparse_update_accepted(self):
        trip = TripContext()
        result = capture_trip_params(trip, json.dumps({"destinationCity": "Goa", "adults": 2}))

        assert result.ok
        assert result.updated == ["adults", "destinationCity"]
        assert result.signature_changed is True
        assert trip.destination_city == "Goa"
        assert trip.adults == 2
        assert trip.slot_sources["adults"] == "tool"

    def test_accepts_mapping_arguments(self):
        trip = TripContext()
        result = capture_trip_params(trip, {"originCity": "Mumbai"})
        assert result.ok
        assert trip.origin_city == "Mumbai"

    def test_empty_payload_is_noop(self):
        trip = TripContext()
        result = capture_trip_params(trip, "{}")
        assert result.ok
        assert result.updated == []
        assert trip.itinerary_status == "absent"

    def test_null_fields_are_absent(self):
        trip = TripContext()
        trip.apply_update({"destination_city": "Goa"})
        result = capture_trip_params(trip, {"destinationCity": None, "adults": 3})
        assert result.ok
        assert trip.destination_city == "Goa"

    def test_string_adults_rejected(self):
        trip = TripContext()
        result = capture_trip_params(trip, {"adults": "2"})
        assert result.status == "error"
        assert any("adults" in e for e in result.errors)
        assert trip.adults is None

    def test_non_positive_values_rejected(self):
        trip = TripContext()
        result = capture_trip_params(trip, {"adults": 0, "budgetAmount": -5})
        assert result.status == "error"
        assert trip.adults is None
        assert trip.budget_amount is None

    def test_unknown_field_rejected(self):
        trip = TripContext()
        result = capture_trip_params(trip, {"destinationCity": "Goa", "hotelStars": 5})
        assert result.status == "error"
        assert trip.destination_city is None

    def test_bad_date_rejected(self):
        trip = TripContext()
        result = capture_trip_params(trip, {"startDate": "10/07/2026"})
        assert result.status == "error"
        assert trip.start_date is None

    def test_unpadded_date_rejected(self):
        trip = TripContext()
        result = capture_trip_params(trip, {"startDate": "2026-7-1"})
        assert result.status == "error"

    def test_malformed_json_rejected(self):
        trip = TripContext()
        result = capture_trip_params(trip, "{not json")
        assert result.status == "error"
        assert result.errors

    def test_currency_symbol_normalized(self):
        trip = TripContext()
        result = capture_trip_params(trip, {"budgetAmount": 120000, "currency": "₹"})
        assert result.ok
        assert trip.currency == "INR"
        assert trip.budget_amount == 120000.0

    def test_lowercase_currency_normalized(self):
        trip = TripContext()
        capture_trip_params(trip, {"currency": "usd"})
        assert trip.currency == "USD"

    def test_invalid_currency_rejected(self):
        trip = TripContext()
        result = capture_trip_params(trip, {"currency": "rupees"})
        assert result.status == "error"
        assert trip.currency is None

    def test_end_before_start_needs_confirmation(self):
        trip = TripContext()
        result = capture_trip_params(
            trip, {"startDate": "2026-07-16", "endDate": "2026-07-10"}
        )
        assert result.status == "needs_confirmation"
        assert trip.start_date is None
        assert trip.end_date is None

    def test_end_before_stored_start_needs_confirmation(self):
        trip = TripContext()
        capture_trip_params(trip, {"startDate": "2026-07-16"})
        result = capture_trip_params(trip, {"endDate": "2026-07-10"})
        assert result.status == "needs_confirmation"
        assert trip.start_date == "2026-07-16"
        assert trip.end_date is None

    def test_reports_missing_slots(self):
        trip = TripContext()
        result = capture_trip_params(trip, {"destinationCity": "Goa"})
        assert "originCity" in result.missing
        assert "destinationCity" not in result.missing

    def test_tool_output_is_json(self):
        trip = TripContext()
        output = capture_trip_params(trip, {"adults": 2}).to_tool_output()
        data = json.loads(output)
        assert data["status"] == "ok"
        assert data["tool"] == CAPTURE_TRIP_PARAMS


# ============================================================================
# TestCaptureItinerary
# ============================================================================


class TestCaptureItinerary:
    """Tests for capture_itinerary."""

    def test_itinerary_stored_fresh(self):
        trip = _make_trip_ready_for_booking()
        result = capture_itinerary(trip, _make_itinerary_args(3))

        assert result.ok
        assert result.days == 3
        assert trip.itinerary_status == "fresh"
        assert trip.itinerary[0].morning == ["Beach walk 1"]

    def test_replaces_previous_itinerary(self):
        trip = _make_trip_ready_for_booking()
        capture_itinerary(trip, _make_itinerary_args(3))
        capture_itinerary(trip, _make_itinerary_args(1))
        assert len(trip.itinerary) == 1

    def test_empty_days_dropped(self):
        trip = TripContext()
        args = _make_itinerary_args(1)
        args["days"].append({"day": 2, "morning": [], "afternoon": None, "evening": ["  "]})
        result = capture_itinerary(trip, args)
        assert result.days == 1

    def test_all_empty_rejected_keeps_previous(self):
        trip = _make_trip_ready_for_booking()
        capture_itinerary(trip, _make_itinerary_args(2))
        result = capture_itinerary(trip, {"days": [{"day": 1}]})
        assert result.status == "error"
        assert len(trip.itinerary) == 2
        assert trip.itinerary_status == "fresh"

    def test_missing_days_rejected(self):
        trip = TripContext()
        result = capture_itinerary(trip, {})
        assert result.status == "error"
        assert trip.itinerary is None


# ============================================================================
# TestConfirmBooking
# ============================================================================


class TestConfirmBooking:
    """Tests for confirm_booking."""

    def test_booking_specialist_confirms(self):
        trip = _make_trip_ready_for_booking()
        result = confirm_booking(trip, {"confirm": True}, "booking")
        assert result.ok
        assert trip.booking_confirmed is True

    def test_confirm_is_idempotent(self):
        trip = _make_trip_ready_for_booking()
        confirm_booking(trip, {"confirm": True}, "booking")
        result = confirm_booking(trip, {"confirm": True}, "booking")
        assert result.ok
        assert trip.booking_confirmed is True

    def test_false_is_noop(self):
        trip = _make_trip_ready_for_booking()
        result = confirm_booking(trip, {"confirm": False}, "booking")
        assert result.ok
        assert trip.booking_confirmed is False

    def test_false_is_noop_without_prerequisites(self):
        trip = TripContext()
        result = confirm_booking(trip, {"confirm": False}, "itinerary")
        assert result.ok
        assert result.missing == []
        assert trip.booking_confirmed is False

    def test_other_specialist_rejected(self):
        trip = _make_trip_ready_for_booking()
        result = confirm_booking(trip, {"confirm": True}, "itinerary")
        assert result.status == "rejected"
        assert trip.booking_confirmed is False

    def test_missing_prerequisites_rejected(self):
        trip = TripContext()
        trip.apply_update({"destination_city": "Goa"})
        result = confirm_booking(trip, {"confirm": True}, "booking")
        assert result.status == "rejected"
        assert result.missing == ["startDate", "endDate"]
        assert trip.booking_confirmed is False

    def test_string_confirm_rejected(self):
        trip = _make_trip_ready_for_booking()
        result = confirm_booking(trip, {"confirm": "yes"}, "booking")
        assert result.status == "error"
        assert trip.booking_confirmed is False


# ============================================================================
# TestDispatch
# ============================================================================


class TestDispatch:
    """Tests for execute_capture_tool and the tool specs."""

    def test_dispatches_by_name(self):
        trip = TripContext()
        result = execute_capture_tool(CAPTURE_TRIP_PARAMS, trip, {"adults": 1})
        assert result.ok
        assert trip.adults == 1

    def test_unknown_tool_raises(self):
        with pytest.raises(TripEngineError) as exc:
            execute_capture_tool("book_flight", TripContext(), {})
        assert exc.value.code == ErrorCode.TOOL_EXECUTION_FAILED

    def test_specs_use_wire_names(self):
        params = TOOL_SPECS[CAPTURE_TRIP_PARAMS]["function"]["parameters"]
        assert "destinationCity" in params["properties"]
        assert "budgetAmount" in params["properties"]
        assert set(TOOL_SPECS) == {CAPTURE_TRIP_PARAMS, CAPTURE_ITINERARY, CONFIRM_BOOKING}

    def test_contract_accepts_snake_case(self):
        params = CaptureTripParams.model_validate({"destination_city": "Goa"})
        assert params.to_slots() == {"destination_city": "Goa"}
