from datetime import datetime
from flask import current_app
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from . import db, login_manager
from .pricing import from_cents

BOOKING_STATUSES = ("confirmed", "modified", "cancelled")
REQUEST_STATUSES = ("pending", "approved", "rejected")
REQUEST_TYPES = ("modification", "cancellation")


def _iso(value):
    return value.isoformat() if value else None


# User model
class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    display_name = db.Column(db.String(120))

    bookings = db.relationship("Booking", back_populates="user")

    def set_password(self, plaintext: str):
        self.password_hash = generate_password_hash(plaintext)

    def check_password(self, plaintext: str) -> bool:
        return check_password_hash(self.password_hash, plaintext)

    @property
    def is_staff(self) -> bool:
        domain = current_app.config.get("STAFF_EMAIL_DOMAIN", "aerox.com")
        return self.email.lower().endswith("@" + domain.lower())

    @property
    def full_name(self):
        if self.display_name:
            return self.display_name
        if self.email:
            return self.email.split("@")[0]
        return None

    def __repr__(self):
        return f"<User {self.email}>"


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


# A confirmed flight or air-taxi reservation
class Booking(db.Model):
    __tablename__ = "booking"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)
    booking_type = db.Column(db.String(16), nullable=False, default="flight")
    trip_type = db.Column(db.String(16), nullable=False)
    origin = db.Column(db.String(64), nullable=False)
    destination = db.Column(db.String(64), nullable=False)
    departure_date = db.Column(db.Date, nullable=False)
    return_date = db.Column(db.Date, nullable=True)
    departure_time = db.Column(db.String(8), nullable=True)
    passengers = db.Column(db.Integer, nullable=False, default=1)
    flight_cabin = db.Column(db.String(32), nullable=True)

    # selected fare (flights) or vehicle record (air taxi)
    outbound_flight = db.Column(db.JSON, nullable=True)
    return_flight = db.Column(db.JSON, nullable=True)
    passengers_details = db.Column(db.JSON, nullable=False, default=list)
    contact_info = db.Column(db.JSON, nullable=False, default=dict)
    # lower-cased copy of contact_info["email"] for lookups
    contact_email = db.Column(db.String(120), nullable=True, index=True)
    seat_selection = db.Column(db.JSON, nullable=False, default=dict)

    total_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="confirmed")

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    modified_at = db.Column(db.DateTime, nullable=True)
    modification_reason = db.Column(db.String(255), nullable=True)
    modification_details = db.Column(db.Text, nullable=True)
    cancellation_reason = db.Column(db.String(255), nullable=True)
    cancellation_date = db.Column(db.DateTime, nullable=True)

    user = db.relationship("User", back_populates="bookings")
    requests = db.relationship("ChangeRequest", back_populates="booking", order_by="ChangeRequest.created_at.desc()")

    @property
    def booking_ref(self) -> str:
        return f"BK-{self.id:06d}"

    def set_contact(self, contact: dict):
        self.contact_info = dict(contact or {})
        email = (self.contact_info.get("email") or "").strip().lower()
        self.contact_email = email or None

    def to_dict(self) -> dict:
        seats = self.seat_selection or {}
        return {
            "id": self.id,
            "bookingRef": self.booking_ref,
            "bookingType": self.booking_type,
            "userId": self.user_id,
            "tripType": self.trip_type,
            "from": self.origin,
            "to": self.destination,
            "departureDate": _iso(self.departure_date),
            "returnDate": _iso(self.return_date),
            "departureTime": self.departure_time,
            "passengers": self.passengers,
            "flightcabin": self.flight_cabin,
            "outboundFlight": self.outbound_flight,
            "returnFlight": self.return_flight,
            "passengersDetails": list(self.passengers_details or []),
            "contactInfo": dict(self.contact_info or {}),
            "seatSelection": {
                "outbound": list(seats.get("outbound") or []),
                "return": list(seats.get("return") or []),
            },
            "totalPrice": from_cents(self.total_paid_cents),
            "status": self.status,
            "createdAt": _iso(self.created_at),
            "modifiedAt": _iso(self.modified_at),
            "modificationReason": self.modification_reason,
            "modificationDetails": self.modification_details,
            "cancellationReason": self.cancellation_reason,
            "cancellationDate": _iso(self.cancellation_date),
        }

    def __repr__(self):
        return f"<Booking {self.booking_ref} {self.origin}->{self.destination} {self.status}>"


# customer-initiated modification / cancellation request
class ChangeRequest(db.Model):
    __tablename__ = "change_request"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("booking.id"), nullable=False, index=True)
    booking_type = db.Column(db.String(16), nullable=False, default="flight")
    user_id = db.Column(db.String(64), nullable=False, index=True)
    user_email = db.Column(db.String(120), nullable=False)
    user_name = db.Column(db.String(120), nullable=False)
    request_type = db.Column(db.String(16), nullable=False)
    reason = db.Column(db.String(255), nullable=False)
    details = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending")
    admin_note = db.Column(db.Text, nullable=True)
    admin_id = db.Column(db.String(64), nullable=True)
    # refund (cancellation) or additional fee (modification)
    amount_cents = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    responded_at = db.Column(db.DateTime, nullable=True)

    booking = db.relationship("Booking", back_populates="requests")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bookingId": self.booking_id,
            "bookingType": self.booking_type,
            "userId": self.user_id,
            "userEmail": self.user_email,
            "userName": self.user_name,
            "requestType": self.request_type,
            "reason": self.reason,
            "details": self.details,
            "status": self.status,
            "adminNote": self.admin_note,
            "adminId": self.admin_id,
            "amount": from_cents(self.amount_cents) if self.amount_cents is not None else None,
            "createdAt": _iso(self.created_at),
            "respondedAt": _iso(self.responded_at),
        }

    def __repr__(self):
        return f"<ChangeRequest {self.id} {self.request_type} booking={self.booking_id} {self.status}>"
