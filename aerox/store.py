"""
Persistence boundary for bookings and change requests.

``BookingStore`` is what the modification workflow talks to. Every method takes
and returns wire dicts (see ``Booking.to_dict`` / ``ChangeRequest.to_dict``) so
the core never handles ORM objects. Business refusals raise
``BackendRejected`` with a message fit for the user; database failures roll the
session back and raise ``BackendUnavailable``.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from . import db, lifecycle
from .errors import BackendRejected, BackendUnavailable, StateGateError
from .models import REQUEST_STATUSES, REQUEST_TYPES, Booking, ChangeRequest
from .pricing import ONE_WAY, ROUND_TRIP, SINGLE_LEG, cents, is_valid_amount
from .validators import parse_date

logger = logging.getLogger(__name__)

REQUIRED_REQUEST_FIELDS = ("userId", "userEmail", "bookingId", "requestType", "reason", "details")


def _commit(action: str):
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Database error while %s", action)
        raise BackendUnavailable() from exc


def owns(booking: dict, identity) -> bool:
    """True if ``booking`` belongs to ``identity`` by user id or contact email."""
    if str(booking.get("userId")) == str(identity.id):
        return True
    email = ((booking.get("contactInfo") or {}).get("email") or "").strip().lower()
    return bool(email) and email == identity.email


class BookingStore:
    def _booking(self, booking_id) -> Booking:
        try:
            booking = db.session.get(Booking, int(booking_id))
        except (TypeError, ValueError):
            booking = None
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Database error loading booking %s", booking_id)
            raise BackendUnavailable() from exc
        if booking is None:
            raise BackendRejected("Booking not found", status_code=404)
        return booking

    def get_booking(self, booking_id) -> dict:
        return self._booking(booking_id).to_dict()

    # ---- reads ---------------------------------------------------------

    def fetch_bookings_for_user(self, identity) -> List[dict]:
        clauses = [func.lower(Booking.contact_email) == identity.email]
        if str(identity.id).isdigit():
            clauses.append(Booking.user_id == int(identity.id))
        try:
            rows = (
                Booking.query.filter(or_(*clauses))
                .order_by(Booking.created_at.desc(), Booking.id.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Database error fetching bookings for user %s", identity.id)
            raise BackendUnavailable() from exc
        return [b.to_dict() for b in rows]

    def fetch_requests_for_user(self, identity) -> List[dict]:
        try:
            rows = (
                ChangeRequest.query.filter_by(user_id=str(identity.id))
                .order_by(ChangeRequest.created_at.desc(), ChangeRequest.id.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Database error fetching requests for user %s", identity.id)
            raise BackendUnavailable() from exc
        return [r.to_dict() for r in rows]

    def list_requests(self, status: Optional[str] = None) -> List[dict]:
        query = ChangeRequest.query
        if status:
            if status not in REQUEST_STATUSES:
                raise BackendRejected("Invalid status provided")
            query = query.filter_by(status=status)
        try:
            rows = query.order_by(ChangeRequest.created_at.desc(), ChangeRequest.id.desc()).all()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Database error listing requests")
            raise BackendUnavailable() from exc
        return [r.to_dict() for r in rows]

    # ---- writes --------------------------------------------------------

    def submit_modification(self, booking_id, payload: dict) -> dict:
        booking = self._booking(booking_id)
        if booking.status == lifecycle.MODIFIED:
            raise BackendRejected("This booking has already been modified and cannot be modified again")
        if booking.status == lifecycle.CANCELLED:
            raise BackendRejected("Cancelled bookings cannot be modified")

        trip_type = payload.get("tripType") or booking.trip_type
        passengers = payload.get("passengers", booking.passengers)
        if isinstance(passengers, bool) or not isinstance(passengers, int) or passengers < 1:
            raise BackendRejected("Number of passengers must be a positive number")
        if trip_type == ROUND_TRIP and not payload.get("returnFlight"):
            raise BackendRejected("Return flight is required for round trip")

        departure = parse_date(payload.get("departureDate")) or booking.departure_date
        if payload.get("departureDate") and parse_date(payload.get("departureDate")) is None:
            raise BackendRejected("Invalid departure date")

        seats = dict(payload.get("seatSelection") or booking.seat_selection or {})
        outbound = list(seats.get("outbound") or [])
        returning = list(seats.get("return") or [])
        if booking.booking_type != "airtaxi":
            if len(outbound) < passengers:
                raise BackendRejected("Please select seats for all passengers (outbound)")
            if trip_type == ROUND_TRIP and len(returning) < passengers:
                raise BackendRejected("Please select seats for all passengers (return)")
        seats = {"outbound": outbound[:passengers], "return": returning[:passengers]}
        total = payload.get("totalPrice", 0)
        if not is_valid_amount(total) or total < 0:
            raise BackendRejected("Total price must be a non-negative number")

        booking.trip_type = trip_type
        booking.origin = payload.get("from") or booking.origin
        booking.destination = payload.get("to") or booking.destination
        booking.departure_date = departure
        booking.departure_time = payload.get("departureTime", booking.departure_time)
        booking.passengers = passengers
        booking.outbound_flight = payload.get("outboundFlight", booking.outbound_flight)
        booking.passengers_details = list(payload.get("passengersDetails") or booking.passengers_details or [])
        booking.set_contact(payload.get("contactInfo") or booking.contact_info)
        if trip_type in (ONE_WAY, SINGLE_LEG):
            booking.return_date = None
            booking.return_flight = None
            seats["return"] = []
        else:
            booking.return_date = parse_date(payload.get("returnDate"))
            booking.return_flight = payload.get("returnFlight")
        booking.seat_selection = seats
        if "totalPrice" in payload:
            booking.total_paid_cents = cents(payload["totalPrice"])
        booking.modification_reason = payload.get("modificationReason") or "Customer modification"
        booking.modification_details = payload.get("modificationDetails") or None
        booking.modified_at = datetime.utcnow()
        booking.status = lifecycle.MODIFIED

        _commit(f"modifying booking {booking.id}")
        logger.info("Booking %s modified", booking.booking_ref)
        return booking.to_dict()

    def create_request(self, payload: dict) -> dict:
        missing = [key for key in REQUIRED_REQUEST_FIELDS if not payload.get(key)]
        if missing:
            raise BackendRejected("Missing required fields: " + ", ".join(missing))
        kind = payload["requestType"]
        if kind not in REQUEST_TYPES:
            raise BackendRejected("Invalid request type")

        booking = self._booking(payload["bookingId"])
        if kind == lifecycle.CANCELLATION:
            if booking.status == lifecycle.CANCELLED:
                raise BackendRejected("This booking is already cancelled")
            if any(r.request_type == kind and r.status == lifecycle.APPROVED for r in booking.requests):
                raise BackendRejected("This booking already has an approved cancellation")

        try:
            lifecycle.require_can_request(booking.to_dict(), [r.to_dict() for r in booking.requests], kind)
        except StateGateError as exc:
            raise BackendRejected(exc.message, status_code=409) from exc

        req = ChangeRequest(
            booking_id=booking.id,
            booking_type=payload.get("bookingType") or booking.booking_type,
            user_id=str(payload["userId"]),
            user_email=payload["userEmail"],
            user_name=payload.get("userName") or payload["userEmail"],
            request_type=kind,
            reason=str(payload["reason"]).strip(),
            details=str(payload["details"]).strip(),
        )
        db.session.add(req)
        _commit(f"creating {kind} request for booking {booking.id}")
        logger.info("Created %s request %s for %s", kind, req.id, booking.booking_ref)
        return req.to_dict()

    def decide_request(self, request_id, status: str, admin_note: Optional[str] = None,
                       amount=None, admin_id=None) -> dict:
        if status not in (lifecycle.APPROVED, lifecycle.REJECTED):
            raise BackendRejected("Invalid status provided")
        try:
            req = db.session.get(ChangeRequest, int(request_id))
        except (TypeError, ValueError):
            req = None
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Database error loading request %s", request_id)
            raise BackendUnavailable() from exc
        if req is None:
            raise BackendRejected("Request not found", status_code=404)
        try:
            lifecycle.decide(req.to_dict(), status)
        except StateGateError as exc:
            raise BackendRejected(exc.message, status_code=409) from exc
        if amount is not None and (not is_valid_amount(amount) or amount < 0):
            raise BackendRejected("Amount must be a non-negative number")

        now = datetime.utcnow()
        req.status = status
        req.admin_note = admin_note or None
        req.admin_id = str(admin_id) if admin_id is not None else None
        req.amount_cents = cents(amount) if amount is not None else None
        req.responded_at = now

        booking = req.booking
        if status == lifecycle.APPROVED and req.request_type == lifecycle.CANCELLATION:
            try:
                booking.status = lifecycle.transition_booking(booking.status, lifecycle.CANCELLED)
            except StateGateError as exc:
                db.session.rollback()
                raise BackendRejected(exc.message, status_code=409) from exc
            booking.cancellation_reason = req.reason
            booking.cancellation_date = now

        _commit(f"deciding request {req.id}")
        logger.info("Request %s (%s) %s by admin %s", req.id, req.request_type, status, admin_id)
        return req.to_dict()
