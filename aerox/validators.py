"""
Field rules for booking modifications.

Each ``check_*`` function returns ``None`` when the value is fine, or the message
to show. ``validate_modification_form`` runs the rules for every enabled
section of a draft and returns the failures keyed by field path, in the order
dates, route, passengers, seats, contact, price.
"""

import re
from datetime import date, datetime
from typing import Dict, Optional

from .pricing import MAX_TOTAL_PRICE, ONE_WAY, ROUND_TRIP, round_money

NAME_RE = re.compile(r"^[A-Za-z\s\-']+$")
LOCATION_RE = re.compile(r"^[A-Za-z\s\-']+$")
NATIONALITY_RE = re.compile(r"^[A-Za-z\s]+$")
PASSPORT_RE = re.compile(r"^[A-Z0-9]+$")
SEAT_RE = re.compile(r"^[0-9]{1,2}[A-F]$")
EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
PHONE_RE = re.compile(r"^[\d\s\-()+]+$")

MAX_PASSENGERS = 9
MAX_AGE = 120
NO_SECTION_MESSAGE = "Please select at least one modification option."


def parse_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        return None
    try:
        return date.fromisoformat(str(value).split("T")[0])
    except ValueError:
        return None


def add_years(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:
        # 29 February
        return day.replace(year=day.year + years, day=28)


def age_on(dob: date, today: date) -> int:
    age = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        age -= 1
    return age


# ---- single-field checks ----------------------------------------------

def check_location(value, label: str) -> Optional[str]:
    text = (value or "").strip()
    if not text:
        return f"{label} is required"
    if not LOCATION_RE.match(text):
        return f"{label} contains invalid characters"
    return None


def check_name(value, label: str, number: int) -> Optional[str]:
    text = (value or "").strip()
    if len(text) < 2:
        return f"{label} must be at least 2 characters for passenger {number}"
    if len(text) > 50:
        return f"{label} cannot exceed 50 characters for passenger {number}"
    if not NAME_RE.match(text):
        return f"{label} contains invalid characters for passenger {number}"
    return None


def check_date_of_birth(value, number: int, today: date) -> Optional[str]:
    if not value:
        return f"Date of birth is required for passenger {number}"
    dob = parse_date(value)
    if dob is None:
        return f"Invalid date of birth for passenger {number}"
    if dob > today:
        return f"Date of birth cannot be in the future for passenger {number}"
    if age_on(dob, today) > MAX_AGE:
        return f"Age exceeds maximum allowed ({MAX_AGE} years) for passenger {number}"
    return None


def check_passport_number(value, number: int) -> Optional[str]:
    text = (value or "").strip()
    if len(text) < 6:
        return f"Passport number must be at least 6 characters for passenger {number}"
    if len(text) > 9:
        return f"Passport number cannot exceed 9 characters for passenger {number}"
    if not PASSPORT_RE.match(text.upper()):
        return f"Passport number must contain only letters and numbers for passenger {number}"
    return None


def check_nationality(value, number: int) -> Optional[str]:
    text = (value or "").strip()
    if len(text) < 2:
        return f"Nationality must be at least 2 characters for passenger {number}"
    if len(text) > 50:
        return f"Nationality cannot exceed 50 characters for passenger {number}"
    if not NATIONALITY_RE.match(text):
        return f"Nationality must contain only letters and spaces for passenger {number}"
    return None


def check_special_requests(value, number: int) -> Optional[str]:
    if value and len(value.strip()) > 200:
        return f"Special requests cannot exceed 200 characters for passenger {number}"
    return None


def check_seats(seats, count: int, leg: str) -> Optional[str]:
    seats = list(seats or [])
    if len(seats) != count:
        return f"Please select exactly {count} {leg} seats"
    if any(not seat for seat in seats):
        return f"All {leg} seats must be selected"
    invalid = [seat for seat in seats if not SEAT_RE.match(str(seat))]
    if invalid:
        return f"Invalid {leg} seat format: {', '.join(invalid)}"
    return None


def check_email(value) -> Optional[str]:
    if not value:
        return "Contact email is required"
    if not EMAIL_RE.match(value.strip()):
        return "Please enter a valid email address"
    return None


def check_phone(value) -> Optional[str]:
    if not value:
        return "Contact phone number is required"
    if not PHONE_RE.match(value):
        return "Phone number contains invalid characters"
    digits = re.sub(r"\D", "", value)
    if len(digits) < 7 or len(digits) > 15:
        return "Phone number must be between 7 and 15 digits"
    return None


def check_total_price(total) -> Optional[str]:
    try:
        amount = round_money(total)
    except (TypeError, ValueError):
        return "Total price must be greater than zero"
    if not amount or amount <= 0:
        return "Total price must be greater than zero"
    if amount > MAX_TOTAL_PRICE:
        return "Total price exceeds maximum allowed value"
    return None


# ---- sections ------------------------------------------------------------

def validate_dates(fields: dict, today: date) -> Dict[str, str]:
    errors = {}
    trip_type = fields.get("tripType")
    if not trip_type:
        errors["tripType"] = "Trip type is required"

    departure = parse_date(fields.get("departureDate"))
    if not fields.get("departureDate"):
        errors["departureDate"] = "Departure date is required"
    elif departure is None:
        errors["departureDate"] = "Invalid departure date"
    elif departure <= today:
        errors["departureDate"] = "Departure date must be in the future"
    elif departure > add_years(today, 1):
        errors["departureDate"] = "Departure date cannot be more than 1 year in the future"

    if trip_type == ROUND_TRIP:
        returning = parse_date(fields.get("returnDate"))
        anchor = departure or today
        if not fields.get("returnDate"):
            errors["returnDate"] = "Return date is required for round trip"
        elif returning is None:
            errors["returnDate"] = "Invalid return date"
        elif returning <= anchor:
            errors["returnDate"] = "Return date must be after departure date"
        elif returning > add_years(anchor, 1):
            errors["returnDate"] = "Return date cannot be more than 1 year after departure date"
    return errors


def validate_route(fields: dict, original_trip_type: str) -> Dict[str, str]:
    errors = {}
    origin_error = check_location(fields.get("from"), "Departure location")
    if origin_error:
        errors["from"] = origin_error
    destination_error = check_location(fields.get("to"), "Destination")
    if destination_error:
        errors["to"] = destination_error
    origin = (fields.get("from") or "").strip().lower()
    if origin and origin == (fields.get("to") or "").strip().lower():
        errors["to"] = "Destination must be different from departure"

    # converting one-way to round-trip keeps the original outbound leg
    converting = original_trip_type == ONE_WAY and fields.get("tripType") == ROUND_TRIP
    if not converting and not fields.get("outboundFlight"):
        errors["outboundFlight"] = "Outbound flight is required"
    if fields.get("tripType") == ROUND_TRIP and not fields.get("returnFlight"):
        errors["returnFlight"] = "Return flight is required for round trip"
    return errors


def validate_passengers(fields: dict, today: date, air_taxi: bool = False) -> Dict[str, str]:
    errors = {}
    count = fields.get("passengers")
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        errors["passengers"] = "Number of passengers must be a positive number"
        return errors
    if count > MAX_PASSENGERS:
        errors["passengers"] = f"Maximum {MAX_PASSENGERS} passengers allowed per booking"
        return errors
    if air_taxi:
        capacity = (fields.get("outboundFlight") or {}).get("capacity")
        if capacity and count > int(capacity):
            errors["passengers"] = f"Selected air taxi model can only accommodate up to {capacity} passengers."

    details = fields.get("passengersDetails") or []
    for i in range(count):
        number = i + 1
        passenger = details[i] if i < len(details) else None
        if not passenger:
            errors[f"passengersDetails.{i}"] = f"Details for passenger {number} are incomplete"
            continue
        checks = [
            ("firstName", check_name(passenger.get("firstName"), "First name", number)),
            ("lastName", check_name(passenger.get("lastName"), "Last name", number)),
            ("dateOfBirth", check_date_of_birth(passenger.get("dateOfBirth"), number, today)),
            ("passportNumber", check_passport_number(passenger.get("passportNumber"), number)),
            ("nationality", check_nationality(passenger.get("nationality"), number)),
            ("specialRequests", check_special_requests(passenger.get("specialRequests"), number)),
        ]
        for field, message in checks:
            if message:
                errors[f"passengersDetails.{i}.{field}"] = message
    return errors


def validate_seats(fields: dict) -> Dict[str, str]:
    errors = {}
    count = fields.get("passengers") or 0
    seats = fields.get("seatSelection") or {}
    outbound = check_seats(seats.get("outbound"), count, "outbound")
    if outbound:
        errors["seatSelection.outbound"] = outbound
    if fields.get("tripType") == ROUND_TRIP:
        ret = check_seats(seats.get("return"), count, "return")
        if ret:
            errors["seatSelection.return"] = ret
    return errors


def validate_contact(fields: dict) -> Dict[str, str]:
    errors = {}
    contact = fields.get("contactInfo") or {}
    email = check_email(contact.get("email"))
    if email:
        errors["contactInfo.email"] = email
    phone = check_phone(contact.get("phoneNumber"))
    if phone:
        errors["contactInfo.phoneNumber"] = phone
    return errors


def validate_modification_form(draft, today: Optional[date] = None) -> Dict[str, str]:
    """All failures for ``draft``; an empty dict means it may be submitted."""
    today = today or date.today()
    if not draft.any_section_enabled:
        return {"form": NO_SECTION_MESSAGE}

    fields = draft.fields
    errors: Dict[str, str] = {}
    if draft.toggles.get("dates"):
        errors.update(validate_dates(fields, today))
    if draft.toggles.get("route"):
        errors.update(validate_route(fields, draft.original_trip_type))
    # a new round trip carries its return leg whichever sections are on
    converted = fields.get("tripType") == ROUND_TRIP and draft.original_trip_type != ROUND_TRIP
    if converted and not fields.get("returnFlight"):
        errors.setdefault("returnFlight", "Return flight is required for round trip")
    if draft.toggles.get("passengers"):
        errors.update(validate_passengers(fields, today, air_taxi=draft.is_air_taxi))
    if draft.toggles.get("seats") and not draft.is_air_taxi:
        errors.update(validate_seats(fields))
    errors.update(validate_contact(fields))
    price = check_total_price(draft.total_price) or draft.errors.get("totalPrice")
    if price:
        errors["totalPrice"] = price
    return errors


def first_error(errors: Dict[str, str]) -> Optional[str]:
    return next(iter(errors.values()), None)
