"""
Shared fixtures.

Pure-module tests use the wire-dict factories (``booking_data``,
``request_data``). Blueprint tests use ``app`` with the testing config and log
in through ``/auth/login`` like a real client.
"""

import copy
from datetime import date, timedelta

import pytest

from aerox import create_app, db
from aerox.identity import IdentityContext
from aerox.models import Booking, ChangeRequest, User
from aerox.pricing import cents

FUTURE = date.today() + timedelta(days=30)

PASSENGERS = [
    {
        "firstName": "Jane",
        "lastName": "Doe",
        "dateOfBirth": "1990-04-12",
        "nationality": "Canadian",
        "passportNumber": "AB123456",
        "specialRequests": "",
    },
    {
        "firstName": "John",
        "lastName": "Doe",
        "dateOfBirth": "1988-09-30",
        "nationality": "Canadian",
        "passportNumber": "CD654321",
        "specialRequests": "Aisle seat",
    },
]

CONTACT = {"email": "jane@example.com", "phoneNumber": "647-555-0142", "name": "Jane Doe"}


class StubFares:
    """Fixed fares so price arithmetic in tests is obvious."""

    def __init__(self, outbound_price=300.0, return_price=250.0):
        self.outbound_price = outbound_price
        self.return_price = return_price

    def list_candidate_fares(self, origin, destination):
        return [{"flightNumber": "AX500", "from": origin, "to": destination, "price": self.outbound_price}]

    def list_return_fares(self, origin, destination):
        return [{"flightNumber": "AX909", "from": destination, "to": origin, "price": self.return_price}]

    def list_air_taxi_vehicles(self):
        return [
            {"id": "heli-2", "name": "Bell 505", "capacity": 4, "price": 1200.0},
            {"id": "jet-6", "name": "Citation", "capacity": 6, "price": 3500.0},
        ]


@pytest.fixture
def stub_fares():
    return StubFares()


@pytest.fixture
def booking_data():
    def make(**overrides):
        booking = {
            "id": 1,
            "bookingRef": "BK-000001",
            "bookingType": "flight",
            "userId": 1,
            "tripType": "One Way",
            "from": "London",
            "to": "Paris",
            "departureDate": FUTURE.isoformat(),
            "returnDate": None,
            "departureTime": "08:00",
            "passengers": 2,
            "flightcabin": "Economy",
            "outboundFlight": {"flightNumber": "AX100", "price": 200.0},
            "returnFlight": None,
            "passengersDetails": copy.deepcopy(PASSENGERS),
            "contactInfo": dict(CONTACT),
            "seatSelection": {"outbound": ["1A", "1B"], "return": []},
            "totalPrice": 400.0,
            "status": "confirmed",
            "createdAt": "2026-01-01T09:00:00",
        }
        booking.update(overrides)
        return booking
    return make


@pytest.fixture
def request_data():
    def make(booking_id=1, kind="modification", status="approved", **overrides):
        req = {
            "id": 10,
            "bookingId": booking_id,
            "bookingType": "flight",
            "userId": "1",
            "userEmail": "jane@example.com",
            "userName": "Jane Doe",
            "requestType": kind,
            "reason": "Change of plans",
            "details": "Need a later flight",
            "status": status,
            "adminNote": None,
            "amount": None,
            "createdAt": "2026-01-02T10:00:00",
            "respondedAt": None,
        }
        req.update(overrides)
        return req
    return make


@pytest.fixture
def identity():
    return IdentityContext(id="1", email="jane@example.com", display_name="Jane Doe")


# ---- application fixtures ----------------------------------------------

@pytest.fixture
def app():
    app = create_app("testing")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _create_user(app, email, password, name=None):
    with app.app_context():
        user = User(email=email, display_name=name)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user.id


def _login(app, email, password):
    c = app.test_client()
    resp = c.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return c


@pytest.fixture
def customer_id(app):
    return _create_user(app, "jane@example.com", "secret123", "Jane Doe")


@pytest.fixture
def other_customer_id(app):
    return _create_user(app, "bob@example.com", "secret456", "Bob")


@pytest.fixture
def staff_id(app):
    return _create_user(app, "admin@aerox.com", "admin123", "Admin")


@pytest.fixture
def customer_client(app, customer_id):
    return _login(app, "jane@example.com", "secret123")


@pytest.fixture
def admin_client(app, staff_id):
    return _login(app, "admin@aerox.com", "admin123")


@pytest.fixture
def make_booking(app, customer_id):
    """Insert a booking and return its id."""
    def make(**overrides):
        fields = dict(
            user_id=customer_id,
            booking_type="flight",
            trip_type="One Way",
            origin="London",
            destination="Paris",
            departure_date=FUTURE,
            departure_time="08:00",
            passengers=2,
            flight_cabin="Economy",
            outbound_flight={"flightNumber": "AX100", "price": 200.0},
            return_flight=None,
            passengers_details=copy.deepcopy(PASSENGERS),
            seat_selection={"outbound": ["1A", "1B"], "return": []},
            total_paid_cents=cents(400),
        )
        contact = overrides.pop("contact_info", dict(CONTACT))
        fields.update(overrides)
        with app.app_context():
            booking = Booking(**fields)
            booking.set_contact(contact)
            db.session.add(booking)
            db.session.commit()
            return booking.id
    return make


@pytest.fixture
def make_request(app, customer_id):
    """Insert a change request directly, bypassing the gating checks."""
    def make(booking_id, kind="modification", status="pending"):
        with app.app_context():
            req = ChangeRequest(
                booking_id=booking_id,
                booking_type="flight",
                user_id=str(customer_id),
                user_email="jane@example.com",
                user_name="Jane Doe",
                request_type=kind,
                reason="Change of plans",
                details="Need a later flight",
                status=status,
            )
            db.session.add(req)
            db.session.commit()
            return req.id
    return make
