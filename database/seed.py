from datetime import date, datetime, timedelta
import logging
import random

from aerox import create_app, db
from aerox.fares import AIR_TAXI_VEHICLES, AVAILABLE_LOCATIONS, FareLookup
from aerox.models import Booking, ChangeRequest, User
from aerox.pricing import ONE_WAY, ROUND_TRIP, SINGLE_LEG, cents

logger = logging.getLogger("seed")

app = create_app()

FIRST_NAMES = [
    "Amina", "Layla", "Omar", "Yusuf", "Fatima", "Noor", "Ibrahim", "Zain",
    "John", "Michael", "Emily", "Sophia", "Olivia", "James", "Liam", "Emma",
]
LAST_NAMES = ["Khan", "Hussain", "Rahman", "Patel", "Smith", "Brown", "Garcia", "Taylor", "Silva", "Rossi"]
NATIONALITIES = ["Canadian", "British", "Pakistani", "Indian", "American", "Italian"]

DEMO_USERS = [
    ("admin@aerox.com", "admin123", "AeroX Admin"),
    ("demo@example.com", "demo123", "Demo Customer"),
]


def seed_users():
    for email, password, name in DEMO_USERS:
        if User.query.filter_by(email=email).first():
            logger.info("User already exists: %s", email)
            continue
        user = User(email=email, display_name=name)
        user.set_password(password)
        db.session.add(user)
        logger.info("Created user: %s", email)
    db.session.commit()


def _passenger():
    dob = date(random.randint(1950, 2010), random.randint(1, 12), random.randint(1, 28))
    return {
        "firstName": random.choice(FIRST_NAMES),
        "lastName": random.choice(LAST_NAMES),
        "dateOfBirth": dob.isoformat(),
        "nationality": random.choice(NATIONALITIES),
        "passportNumber": f"P{random.randint(1000000, 9999999)}",
        "specialRequests": "",
    }


def _seats(count):
    picked = set()
    while len(picked) < count:
        picked.add(f"{random.randint(1, 30)}{random.choice('ABCDEF')}")
    return sorted(picked)


def seed_bookings(user, count=6):
    fares = FareLookup()
    created = 0
    for _ in range(count):
        origin, destination = random.sample(AVAILABLE_LOCATIONS, 2)
        trip_type = random.choice([ONE_WAY, ROUND_TRIP])
        passengers = random.randint(1, 3)
        depart = date.today() + timedelta(days=random.randint(10, 120))
        outbound = random.choice(fares.list_candidate_fares(origin, destination))
        ret = random.choice(fares.list_return_fares(origin, destination)) if trip_type == ROUND_TRIP else None
        total = outbound["price"] * passengers + (ret["price"] * passengers if ret else 0)

        b = Booking(
            user_id=user.id,
            booking_type="flight",
            trip_type=trip_type,
            origin=origin,
            destination=destination,
            departure_date=depart,
            return_date=depart + timedelta(days=7) if ret else None,
            departure_time=outbound["departureTime"],
            passengers=passengers,
            flight_cabin="Economy",
            outbound_flight=outbound,
            return_flight=ret,
            passengers_details=[_passenger() for _ in range(passengers)],
            seat_selection={"outbound": _seats(passengers), "return": _seats(passengers) if ret else []},
            total_paid_cents=cents(total),
        )
        b.set_contact({"email": user.email, "phoneNumber": "647-555-0142", "name": user.full_name})
        db.session.add(b)
        created += 1

    taxi = random.choice(AIR_TAXI_VEHICLES)
    b = Booking(
        user_id=user.id,
        booking_type="airtaxi",
        trip_type=SINGLE_LEG,
        origin="Toronto",
        destination="Niagara Falls",
        departure_date=date.today() + timedelta(days=21),
        departure_time="09:30",
        passengers=2,
        outbound_flight=dict(taxi),
        passengers_details=[_passenger() for _ in range(2)],
        seat_selection={"outbound": [], "return": []},
        total_paid_cents=cents(taxi["price"]),
    )
    b.set_contact({"email": user.email, "phoneNumber": "647-555-0142", "name": user.full_name})
    db.session.add(b)
    created += 1

    db.session.commit()
    logger.info("Seeded %d bookings for %s", created, user.email)


def seed_requests(user):
    bookings = Booking.query.filter_by(user_id=user.id).order_by(Booking.id).all()
    if len(bookings) < 2:
        logger.warning("Not enough bookings to seed requests for %s", user.email)
        return
    approved = ChangeRequest(
        booking_id=bookings[0].id,
        booking_type=bookings[0].booking_type,
        user_id=str(user.id),
        user_email=user.email,
        user_name=user.full_name,
        request_type="modification",
        reason="Change of plans",
        details="Need to travel a few days later.",
        status="approved",
        admin_note="Approved, please update your booking.",
        responded_at=datetime.utcnow(),
    )
    pending = ChangeRequest(
        booking_id=bookings[1].id,
        booking_type=bookings[1].booking_type,
        user_id=str(user.id),
        user_email=user.email,
        user_name=user.full_name,
        request_type="cancellation",
        reason="Trip cancelled",
        details="The conference was called off.",
    )
    db.session.add_all([approved, pending])
    db.session.commit()
    logger.info("Seeded demo requests for %s", user.email)


with app.app_context():
    logger.info("---- Seeding users + bookings + requests ----")
    seed_users()
    demo = User.query.filter_by(email="demo@example.com").first()
    if not Booking.query.filter_by(user_id=demo.id).first():
        seed_bookings(demo)
        seed_requests(demo)
    logger.info("---- DONE ----")
