"""
Submitting a modification draft.

``submit_modification`` runs the whole sequence: lifecycle gate, duplicate
guard, validation, payload build, the single store call, reconciliation and
closing the draft. Nothing reaches the store unless validation passed, and a
failed submission leaves the draft open so it can be retried as is.
"""

import copy
import logging
from datetime import date, datetime
from typing import Iterable, List, Optional

from . import lifecycle
from .draft import FIELD_SECTIONS
from .errors import (
    GENERIC_RETRY_MESSAGE,
    AlreadyProcessing,
    BackendRejected,
    BackendUnavailable,
    StateGateError,
    SubmissionError,
    ValidationError,
)
from .pricing import ONE_WAY, SINGLE_LEG, round_money
from .validators import parse_date, validate_modification_form

logger = logging.getLogger(__name__)

# booking fields a modification may write
PAYLOAD_KEYS = (
    "tripType", "from", "to", "departureDate", "returnDate", "departureTime",
    "passengers", "flightcabin", "outboundFlight", "returnFlight",
    "passengersDetails", "contactInfo", "seatSelection", "totalPrice",
)


class BookingBoard:
    """The signed-in user's bookings and requests as last seen by the client.

    ``processing`` holds booking ids with a submission in flight. It can be
    shared between boards (the web app keeps one per process) and only guards
    against double submits from the same client.
    """

    def __init__(self, bookings: Iterable[dict] = (), requests: Iterable[dict] = (), processing=None):
        self.bookings: List[dict] = list(bookings)
        self.requests: List[dict] = list(requests)
        self.processing = processing if processing is not None else set()

    @classmethod
    def load(cls, store, identity, processing=None) -> "BookingBoard":
        board = cls(processing=processing)
        board.refresh(store, identity)
        return board

    def find(self, booking_id) -> Optional[dict]:
        for booking in self.bookings:
            if str(booking.get("id")) == str(booking_id):
                return booking
        return None

    def requests_for(self, booking_id) -> List[dict]:
        return [r for r in self.requests if str(r.get("bookingId")) == str(booking_id)]

    def replace(self, booking: dict):
        for i, current in enumerate(self.bookings):
            if str(current.get("id")) == str(booking.get("id")):
                self.bookings[i] = booking
                return
        self.bookings.insert(0, booking)

    def refresh(self, store, identity):
        bookings = store.fetch_bookings_for_user(identity)
        requests = store.fetch_requests_for_user(identity)
        for fresh in bookings:
            seen = self.find(fresh.get("id"))
            if seen is None:
                continue
            drift = sorted(k for k in fresh if seen.get(k) != fresh.get(k))
            if drift:
                logger.debug("Booking %s reconciled from server, fields: %s", fresh.get("id"), ", ".join(drift))
        self.bookings = bookings
        self.requests = requests

    def is_processing(self, booking_id) -> bool:
        return str(booking_id) in self.processing


def _iso_date(value) -> Optional[str]:
    day = parse_date(value)
    return day.isoformat() if day else None


def build_payload(booking: dict, draft, now: Optional[datetime] = None) -> dict:
    """Merge the draft's enabled sections over ``booking``.

    Fields of disabled sections keep the booking's values; contact details are
    always taken from the draft.
    """
    now = now or datetime.utcnow()
    payload = {key: copy.deepcopy(booking.get(key)) for key in PAYLOAD_KEYS}
    fields = draft.fields

    for key, section in FIELD_SECTIONS.items():
        if key in fields and draft.is_enabled(section):
            payload[key] = copy.deepcopy(fields[key])

    seats = dict(payload.get("seatSelection") or {})
    # the return leg follows the trip type
    if payload.get("tripType") != booking.get("tripType"):
        payload["returnFlight"] = copy.deepcopy(fields.get("returnFlight"))
        payload["returnDate"] = fields.get("returnDate")
        seats["return"] = list((fields.get("seatSelection") or {}).get("return") or [])
    # seat lists follow the passenger count
    if payload.get("passengers") != booking.get("passengers"):
        seats = copy.deepcopy(fields.get("seatSelection") or {})
    payload["seatSelection"] = {
        "outbound": list(seats.get("outbound") or []),
        "return": list(seats.get("return") or []),
    }

    if payload.get("tripType") in (ONE_WAY, SINGLE_LEG):
        payload["returnFlight"] = None
        payload["returnDate"] = None
        payload["seatSelection"]["return"] = []

    payload["departureDate"] = _iso_date(payload.get("departureDate"))
    payload["returnDate"] = _iso_date(payload.get("returnDate"))
    payload["totalPrice"] = round_money(draft.total_price)
    payload["modificationReason"] = f"Approved modification request {draft.request_id}"
    payload["modificationDetails"] = fields.get("modificationDetails") or ""
    payload["modifiedAt"] = now.isoformat()
    payload["status"] = lifecycle.MODIFIED
    return payload


def _gate(booking: Optional[dict], draft, board: BookingBoard) -> dict:
    if booking is None:
        raise StateGateError("Booking not found")
    if draft.closed:
        raise StateGateError("This modification draft has been closed.")
    if not lifecycle.can_act_on_approved_modification(booking, board.requests_for(booking.get("id"))):
        if booking.get("status") == lifecycle.MODIFIED:
            raise StateGateError("This booking has already been modified and cannot be modified again")
        raise StateGateError("A modification request must be approved before the booking can be modified.")
    return booking


def submit_modification(draft, board: BookingBoard, store, identity,
                        today: Optional[date] = None, now: Optional[datetime] = None) -> dict:
    """Validate ``draft`` and store it; returns the reconciled booking."""
    booking = _gate(board.find(draft.booking_id), draft, board)
    key = str(booking.get("id"))
    if board.is_processing(key):
        raise AlreadyProcessing("This modification is already being submitted.")

    errors = validate_modification_form(draft, today=today)
    if errors:
        draft.errors.update(errors)
        raise ValidationError(errors)

    payload = build_payload(booking, draft, now=now)
    board.processing.add(key)
    try:
        saved = store.submit_modification(booking["id"], payload)
    except BackendRejected as exc:
        logger.warning("Modification of booking %s rejected: %s", key, exc.message)
        raise SubmissionError(exc.message) from exc
    except BackendUnavailable as exc:
        logger.error("Modification of booking %s failed: backend unavailable", key)
        raise SubmissionError(GENERIC_RETRY_MESSAGE) from exc
    finally:
        board.processing.discard(key)

    # server wins on every field it returns
    optimistic = dict(booking, **payload)
    merged = dict(optimistic, **saved)
    board.replace(merged)
    draft.close()
    logger.info("Booking %s modified by user %s, total %.2f", key, identity.id, merged.get("totalPrice") or 0)

    try:
        board.refresh(store, identity)
    except BackendUnavailable:
        logger.warning("Could not refresh bookings after modifying %s; keeping local view", key)
    return board.find(key) or merged
