"""
Tests for submitting a modification draft against an in-memory store.
Run with: pytest tests/test_submission.py -v
"""

import copy
from datetime import date, datetime, timedelta

import pytest

from aerox import pricing
from aerox.draft import PRICE_KEPT_MESSAGE, ModificationDraft
from aerox.errors import (
    GENERIC_RETRY_MESSAGE,
    AlreadyProcessing,
    BackendRejected,
    BackendUnavailable,
    StateGateError,
    SubmissionError,
    ValidationError,
)
from aerox.submission import BookingBoard, build_payload, submit_modification


class FakeStore:
    """Keeps bookings in a dict and records every write."""

    def __init__(self, bookings, requests):
        self.bookings = {b["id"]: copy.deepcopy(b) for b in bookings}
        self.requests = list(requests)
        self.calls = []
        self.fail_with = None
        self.fail_refresh = False
        self.server_total = None

    def fetch_bookings_for_user(self, identity):
        if self.fail_refresh and self.calls:
            raise BackendUnavailable()
        return [copy.deepcopy(b) for b in self.bookings.values()]

    def fetch_requests_for_user(self, identity):
        return list(self.requests)

    def submit_modification(self, booking_id, payload):
        self.calls.append((booking_id, payload))
        if self.fail_with:
            raise self.fail_with
        stored = dict(self.bookings[booking_id], **payload)
        stored["modifiedAt"] = "2026-02-01T12:00:00"
        if self.server_total is not None:
            stored["totalPrice"] = self.server_total
        self.bookings[booking_id] = stored
        return copy.deepcopy(stored)


@pytest.fixture
def setup(booking_data, request_data, identity):
    booking = booking_data()
    store = FakeStore([booking], [request_data()])
    board = BookingBoard.load(store, identity)
    draft = ModificationDraft.seed(board.find(1), request_data())
    return store, board, draft


class TestSuccessfulSubmission:
    def test_submit_passenger_increase(self, setup, identity):
        store, board, draft = setup
        draft.toggle_section("passengers", True)
        draft.set_field("passengers", 3)
        for field, value in [("firstName", "Ann"), ("lastName", "Doe"), ("dateOfBirth", "2001-02-03"),
                             ("nationality", "Canadian"), ("passportNumber", "EF112233")]:
            draft.set_field(f"passengersDetails.2.{field}", value)

        result = submit_modification(draft, board, store, identity)

        assert len(store.calls) == 1
        assert result["status"] == "modified"
        assert result["passengers"] == 3
        assert result["totalPrice"] == 800.0
        assert board.find(1)["status"] == "modified"
        assert draft.closed
        assert not board.processing

    def test_server_values_win(self, setup, identity):
        store, board, draft = setup
        store.server_total = 805.0
        draft.toggle_section("dates", True)
        submit = submit_modification(draft, board, store, identity)
        assert submit["totalPrice"] == 805.0
        assert submit["modifiedAt"] == "2026-02-01T12:00:00"

    def test_refresh_failure_keeps_local_view(self, setup, identity):
        store, board, draft = setup
        store.fail_refresh = True
        draft.toggle_section("dates", True)
        result = submit_modification(draft, board, store, identity)
        assert result["status"] == "modified"
        assert draft.closed


class TestRefusedBeforeNetwork:
    """Nothing reaches the store when the draft is refused locally."""

    def test_no_section_selected(self, setup, identity):
        store, board, draft = setup
        with pytest.raises(ValidationError) as exc:
            submit_modification(draft, board, store, identity)
        assert exc.value.message == "Please select at least one modification option."
        assert store.calls == []
        assert not draft.closed

    def test_invalid_field(self, setup, identity):
        store, board, draft = setup
        draft.toggle_section("dates", True)
        draft.set_field("contactInfo.email", "nope")
        with pytest.raises(ValidationError) as exc:
            submit_modification(draft, board, store, identity)
        assert exc.value.errors == {"contactInfo.email": "Please enter a valid email address"}
        assert draft.errors["contactInfo.email"] == "Please enter a valid email address"
        assert store.calls == []

    def test_clamped_total_blocks_submission(self, setup, identity, monkeypatch):
        store, board, draft = setup
        draft.toggle_section("passengers", True)
        monkeypatch.setattr(pricing, "passenger_count_delta", lambda *args: float("nan"))
        draft.set_field("passengers", 3)
        assert draft.fields["passengers"] == 2
        with pytest.raises(ValidationError) as exc:
            submit_modification(draft, board, store, identity)
        assert exc.value.errors == {"totalPrice": PRICE_KEPT_MESSAGE}
        assert store.calls == []

    def test_converted_round_trip_without_return_flight(self, setup, identity):
        store, board, draft = setup
        draft.toggle_section("dates", True)
        draft.set_field("tripType", "Round Trip")
        draft.set_field("returnDate", (date.today() + timedelta(days=45)).isoformat())
        with pytest.raises(ValidationError) as exc:
            submit_modification(draft, board, store, identity)
        assert "returnFlight" in exc.value.errors
        assert store.calls == []

    def test_modification_not_approved(self, booking_data, request_data, identity):
        store = FakeStore([booking_data()], [request_data(status="pending")])
        board = BookingBoard.load(store, identity)
        draft = ModificationDraft.seed(board.find(1), request_data())
        draft.toggle_section("dates", True)
        with pytest.raises(StateGateError):
            submit_modification(draft, board, store, identity)
        assert store.calls == []

    def test_duplicate_submit(self, setup, identity):
        store, board, draft = setup
        draft.toggle_section("dates", True)
        board.processing.add("1")
        with pytest.raises(AlreadyProcessing):
            submit_modification(draft, board, store, identity)
        assert store.calls == []


class TestBackendFailures:
    def test_rejection_message_is_passed_through(self, setup, identity):
        store, board, draft = setup
        store.fail_with = BackendRejected("This booking has already been modified and cannot be modified again")
        draft.toggle_section("dates", True)
        with pytest.raises(SubmissionError) as exc:
            submit_modification(draft, board, store, identity)
        assert exc.value.message == "This booking has already been modified and cannot be modified again"
        assert not draft.closed
        assert not board.processing
        assert board.find(1)["status"] == "confirmed"

    def test_transport_failure_gives_retry_message(self, setup, identity):
        store, board, draft = setup
        store.fail_with = BackendUnavailable("connection reset")
        draft.toggle_section("dates", True)
        with pytest.raises(SubmissionError) as exc:
            submit_modification(draft, board, store, identity)
        assert exc.value.message == GENERIC_RETRY_MESSAGE

    def test_retry_after_failure(self, setup, identity):
        store, board, draft = setup
        store.fail_with = BackendUnavailable()
        draft.toggle_section("dates", True)
        with pytest.raises(SubmissionError):
            submit_modification(draft, board, store, identity)
        store.fail_with = None
        assert submit_modification(draft, board, store, identity)["status"] == "modified"
        assert len(store.calls) == 2


class TestBuildPayload:
    def test_disabled_sections_pass_through(self, booking_data, request_data):
        booking = booking_data()
        draft = ModificationDraft.seed(booking, request_data())
        draft.toggle_section("passengers", True)
        draft.fields["departureDate"] = "2030-01-01"
        draft.fields["from"] = "Berlin"
        draft.set_field("passengersDetails.0.firstName", "Janet")
        draft.set_field("contactInfo.phoneNumber", "416-555-0100")

        payload = build_payload(booking, draft, now=datetime(2026, 2, 1, 12, 0))

        assert payload["departureDate"] == booking["departureDate"]
        assert payload["from"] == "London"
        assert payload["passengersDetails"][0]["firstName"] == "Janet"
        assert payload["contactInfo"]["phoneNumber"] == "416-555-0100"
        assert payload["status"] == "modified"
        assert payload["modifiedAt"] == "2026-02-01T12:00:00"

    def test_dates_are_normalized(self, booking_data, request_data):
        booking = booking_data(departureDate="2026-12-01T00:00:00.000Z")
        draft = ModificationDraft.seed(booking, request_data())
        payload = build_payload(booking, draft)
        assert payload["departureDate"] == "2026-12-01"

    def test_one_way_has_no_return_leg(self, booking_data, request_data, stub_fares):
        booking = booking_data(
            tripType="Round Trip",
            returnDate="2026-12-20",
            returnFlight={"flightNumber": "AX909", "price": 250.0},
            seatSelection={"outbound": ["1A", "1B"], "return": ["2A", "2B"]},
            totalPrice=900.0,
        )
        draft = ModificationDraft.seed(booking, request_data(), fare_lookup=stub_fares)
        draft.toggle_section("dates", True)
        draft.set_field("tripType", "One Way")
        payload = build_payload(booking, draft)
        assert payload["tripType"] == "One Way"
        assert payload["returnFlight"] is None
        assert payload["returnDate"] is None
        assert payload["seatSelection"]["return"] == []
        assert payload["totalPrice"] == 400.0
