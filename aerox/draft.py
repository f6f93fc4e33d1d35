"""
Modification drafts.

A draft is the working copy of a booking while the customer edits it after a
modification request was approved. Fields are kept in the same camelCase shape
the booking uses on the wire, so building the submission payload is a merge.

``set_field`` is the only way values change. Route, trip-type, fare and
passenger-count edits go through :mod:`aerox.pricing` and the returned delta is
added to ``total_price``; the applied deltas are kept in ``adjustments`` so
``total_price == original_total + sum(adjustments)`` always holds. A delta that
would leave the total negative or not a number is refused together with the
edit that caused it, and ``errors["totalPrice"]`` stays set until the next
accepted price change.

Selected fares and air-taxi vehicles are matched against the fare lookup by
flight number (or vehicle id) and priced from its records; prices sent by the
client are ignored.
"""

import copy
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from . import pricing
from .errors import StateGateError
from .pricing import ONE_WAY, ROUND_TRIP, SINGLE_LEG

logger = logging.getLogger(__name__)

SECTIONS = ("dates", "route", "passengers", "seats")

# which section each top-level field belongs to; contact is always editable
FIELD_SECTIONS = {
    "tripType": "dates",
    "departureDate": "dates",
    "returnDate": "dates",
    "departureTime": "dates",
    "from": "route",
    "to": "route",
    "outboundFlight": "route",
    "returnFlight": "route",
    "passengers": "passengers",
    "passengersDetails": "passengers",
    "seatSelection": "seats",
    "contactInfo": "contact",
    "modificationDetails": "contact",
}

PASSENGER_FIELDS = ("firstName", "lastName", "dateOfBirth", "nationality", "passportNumber", "specialRequests")
CONTACT_FIELDS = ("email", "phoneNumber", "name")
SEAT_LEGS = ("outbound", "return")

PRICE_KEPT_MESSAGE = "Price could not be recalculated; the previous total was kept."


def blank_passenger() -> Dict[str, str]:
    return {field: "" for field in PASSENGER_FIELDS}


def normalize_trip_type(value) -> str:
    text = (value or "").strip().lower().replace("-", " ").replace("_", " ")
    if text in ("round trip", "roundtrip"):
        return ROUND_TRIP
    if text in ("single leg", "single"):
        return SINGLE_LEG
    if text in ("one way", "oneway"):
        return ONE_WAY
    return value


def _date_only(value) -> str:
    if not value:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value)
    return text.split("T")[0]


class ModificationDraft:
    def __init__(self, booking_id, booking_type: str = "flight", request_id=None, fields=None,
                 original_total: float = 0.0, original_trip_type: str = ONE_WAY,
                 original_passengers: int = 1, fare_lookup=None):
        self.booking_id = booking_id
        self.booking_type = booking_type
        self.request_id = request_id
        self.fields: Dict[str, Any] = fields or {}
        self.toggles = {section: False for section in SECTIONS}
        self.original_total = float(original_total)
        self.original_trip_type = original_trip_type
        self.original_passengers = original_passengers
        self.total_price = float(original_total)
        self.adjustments: List[Dict[str, Any]] = []
        # fare prices currently included in total_price
        self.priced_outbound: Optional[float] = None
        self.priced_return: Optional[float] = None
        self.candidate_fares: List[Dict] = []
        self.return_fares: List[Dict] = []
        self.errors: Dict[str, str] = {}
        self.closed = False
        self.fare_lookup = fare_lookup

    # ---- seeding -------------------------------------------------------

    @classmethod
    def seed(cls, booking: dict, approved_request: dict, fare_lookup=None) -> "ModificationDraft":
        """Start a draft that mirrors ``booking``, with every section switched off."""
        if (
            not approved_request
            or approved_request.get("requestType") != "modification"
            or approved_request.get("status") != "approved"
            or str(approved_request.get("bookingId")) != str(booking.get("id"))
        ):
            raise StateGateError("A modification request must be approved before the booking can be modified.")

        booking_type = booking.get("bookingType") or "flight"
        trip_type = normalize_trip_type(booking.get("tripType")) or ONE_WAY
        seats = booking.get("seatSelection") or {}
        passengers = []
        for p in booking.get("passengersDetails") or []:
            passengers.append({
                "firstName": p.get("firstName") or "",
                "lastName": p.get("lastName") or "",
                "dateOfBirth": _date_only(p.get("dateOfBirth") or p.get("dob")),
                "nationality": p.get("nationality") or "",
                "passportNumber": p.get("passportNumber") or "",
                "specialRequests": p.get("specialRequests") or "",
            })

        fields = {
            "tripType": trip_type,
            "from": booking.get("from") or "",
            "to": booking.get("to") or "",
            "departureDate": _date_only(booking.get("departureDate")),
            "returnDate": _date_only(booking.get("returnDate")) or None,
            "departureTime": booking.get("departureTime"),
            "passengers": int(booking.get("passengers") or 1),
            "outboundFlight": copy.deepcopy(booking.get("outboundFlight")),
            "returnFlight": copy.deepcopy(booking.get("returnFlight")) if trip_type == ROUND_TRIP else None,
            "passengersDetails": passengers,
            "contactInfo": dict(booking.get("contactInfo") or {}),
            "seatSelection": {
                "outbound": list(seats.get("outbound") or []),
                "return": list(seats.get("return") or []) if trip_type == ROUND_TRIP else [],
            },
            "modificationDetails": "",
        }

        total = pricing.fare_price({"price": booking.get("totalPrice")}, default=0.0)
        draft = cls(
            booking_id=booking.get("id"),
            booking_type=booking_type,
            request_id=approved_request.get("id"),
            fields=fields,
            original_total=total,
            original_trip_type=trip_type,
            original_passengers=fields["passengers"],
            fare_lookup=fare_lookup,
        )
        draft.priced_outbound = pricing.fare_price(fields["outboundFlight"])
        if trip_type == ROUND_TRIP:
            draft.priced_return = pricing.fare_price(fields["returnFlight"])
        logger.info("Seeded modification draft for booking %s (request %s)", draft.booking_id, draft.request_id)
        return draft

    # ---- section toggles ----------------------------------------------

    def toggle_section(self, section: str, enabled: bool):
        self._ensure_open()
        if section not in SECTIONS:
            raise ValueError(f"Unknown section: {section}")
        self.toggles[section] = bool(enabled)

    @property
    def any_section_enabled(self) -> bool:
        return any(self.toggles.values())

    def is_enabled(self, section: str) -> bool:
        return section == "contact" or self.toggles.get(section, False)

    # ---- edits ---------------------------------------------------------

    def set_field(self, path: str, value):
        self._ensure_open()
        head = (path or "").split(".")[0]
        if head not in FIELD_SECTIONS:
            raise ValueError(f"Unknown field: {path}")

        if path == "tripType":
            self._change_trip_type(value)
        elif path in ("from", "to"):
            self._change_route(path, value)
        elif path == "passengers":
            self._change_passenger_count(value)
        elif path in ("outboundFlight", "returnFlight"):
            self._select_fare(path, value)
        elif "." in path:
            self._assign_nested(path, value)
        elif head in ("passengersDetails", "seatSelection", "contactInfo"):
            raise ValueError(f"Set {head} one entry at a time, e.g. '{head}.0'")
        else:
            self.fields[path] = value
            self.errors.pop(path, None)

    def close(self):
        self.closed = True

    # ---- pricing helpers -----------------------------------------------

    @property
    def is_air_taxi(self) -> bool:
        return self.booking_type == "airtaxi" or self.fields.get("tripType") == SINGLE_LEG

    @property
    def passenger_count(self) -> int:
        try:
            return int(self.fields.get("passengers") or 0)
        except (TypeError, ValueError):
            return 0

    def per_passenger_fare(self) -> float:
        prices = [self.priced_outbound]
        if self.fields.get("tripType") == ROUND_TRIP:
            prices.append(self.priced_return)
        known = [p for p in prices if p is not None]
        return sum(known) if known else pricing.DEFAULT_FARE_PRICE

    def _fare_multiplier(self) -> int:
        # air-taxi vehicles are priced per trip
        return 1 if self.is_air_taxi else self.passenger_count

    def _apply(self, field: str, delta: float) -> bool:
        """Add ``delta`` to the total; False (and the total untouched) if it is refused."""
        if not pricing.is_valid_amount(delta):
            self.errors["totalPrice"] = PRICE_KEPT_MESSAGE
            logger.warning("Rejected non-numeric price delta for %s on booking %s", field, self.booking_id)
            return False
        new_total = self.total_price + delta
        if not pricing.is_valid_amount(new_total) or new_total < 0:
            self.errors["totalPrice"] = PRICE_KEPT_MESSAGE
            logger.warning("Clamped invalid total %r for booking %s", new_total, self.booking_id)
            return False
        applied = new_total - self.total_price
        self.total_price = new_total
        if applied:
            self.adjustments.append({"field": field, "delta": applied})
        self.errors.pop("totalPrice", None)
        return True

    # ---- field handlers ------------------------------------------------

    def _change_trip_type(self, value):
        target = normalize_trip_type(value)
        current = self.fields.get("tripType")
        if self.is_air_taxi:
            self.errors["tripType"] = "The trip type of an air taxi booking cannot be changed"
            return
        if target not in (ONE_WAY, ROUND_TRIP):
            self.errors["tripType"] = "Trip type must be One Way or Round Trip"
            return
        self.errors.pop("tripType", None)
        if target == current:
            return

        n = self.passenger_count
        seats = self.fields["seatSelection"]
        if target == ROUND_TRIP:
            return_price = pricing.fare_price(self.fields.get("returnFlight"), pricing.DEFAULT_FARE_PRICE)
        else:
            return_price = self.priced_return
            if return_price is None:
                return_price = pricing.fare_price(self.fields.get("returnFlight"), pricing.DEFAULT_FARE_PRICE)
        delta = pricing.trip_type_conversion_delta(current, target, return_price, n, self.total_price)
        if not self._apply("tripType", delta):
            return

        self.fields["tripType"] = target
        self.fields["returnFlight"] = None
        self.fields["returnDate"] = None
        if target == ROUND_TRIP:
            self.fields["seatSelection"] = {"outbound": seats["outbound"], "return": [""] * n}
            self.priced_return = return_price
            self.return_fares = self._fetch_return_fares()
        else:
            self.fields["seatSelection"] = {"outbound": seats["outbound"], "return": []}
            self.priced_return = None
            self.return_fares = []

    def _change_route(self, key: str, value):
        value = (value or "").strip()
        if value == self.fields.get(key):
            return
        self.fields[key] = value
        self.errors.pop(key, None)
        # force a new fare choice; the old fare stays priced until it is replaced
        self.fields["outboundFlight"] = None
        self.candidate_fares = self._fetch_candidate_fares()
        if self.fields.get("tripType") == ROUND_TRIP:
            self.fields["returnFlight"] = None
            self.return_fares = self._fetch_return_fares()

    def _change_passenger_count(self, value):
        if isinstance(value, float) and not value.is_integer():
            self.errors["passengers"] = "Number of passengers must be a whole number"
            return
        try:
            new_count = int(value)
        except (TypeError, ValueError):
            self.errors["passengers"] = "Number of passengers must be a positive number"
            return
        if new_count < 1:
            self.errors["passengers"] = "Number of passengers must be a positive number"
            return
        self.errors.pop("passengers", None)
        old_count = self.passenger_count
        if new_count == old_count:
            return

        delta = pricing.passenger_count_delta(old_count, new_count, self.total_price, self.per_passenger_fare())
        if not self._apply("passengers", delta):
            return

        details = [dict(p) for p in self.fields.get("passengersDetails") or []][:new_count]
        while len(details) < new_count:
            details.append(blank_passenger())
        seats = self.fields["seatSelection"]
        outbound = _resize(seats.get("outbound") or [], new_count)
        if self.fields.get("tripType") == ROUND_TRIP:
            ret = _resize(seats.get("return") or [], new_count)
        else:
            ret = []

        self.fields["passengers"] = new_count
        self.fields["passengersDetails"] = details
        self.fields["seatSelection"] = {"outbound": outbound, "return": ret}

    def _select_fare(self, leg: str, fare):
        if fare is None:
            self.fields[leg] = None
            return
        if leg == "returnFlight" and self.fields.get("tripType") != ROUND_TRIP:
            self.errors[leg] = "A return flight can only be selected for a round trip"
            return
        # only fares we generated ourselves are accepted, at our price
        offered = self._resolve_fare(leg, fare)
        if offered is None:
            if self.is_air_taxi:
                self.errors[leg] = "The selected air taxi is not available"
            else:
                self.errors[leg] = "The selected fare is not available for this route"
            logger.warning("Refused unknown %s %r for booking %s", leg, fare, self.booking_id)
            return
        price = pricing.fare_price(offered)
        if price is None:
            self.errors[leg] = "The selected fare has no valid price"
            return
        previous = self.priced_outbound if leg == "outboundFlight" else self.priced_return
        delta = pricing.flight_substitution_delta(previous, price, self._fare_multiplier())
        if not self._apply(leg, delta):
            return
        self.fields[leg] = offered
        if leg == "outboundFlight":
            self.priced_outbound = price
        else:
            self.priced_return = price
        self.errors.pop(leg, None)

    def _offered_fares(self, leg: str) -> List[Dict]:
        if self.is_air_taxi:
            return self.fare_lookup.list_air_taxi_vehicles() if self.fare_lookup is not None else []
        if leg == "outboundFlight":
            if not self.candidate_fares:
                self.candidate_fares = self._fetch_candidate_fares()
            return self.candidate_fares
        if not self.return_fares:
            self.return_fares = self._fetch_return_fares()
        return self.return_fares

    def _resolve_fare(self, leg: str, fare) -> Optional[Dict]:
        """The offered record matching ``fare`` by flight number (or vehicle id)."""
        key = "id" if self.is_air_taxi else "flightNumber"
        wanted = fare.get(key) if isinstance(fare, dict) else fare
        if not wanted:
            return None
        for offered in self._offered_fares(leg):
            if offered.get(key) == wanted:
                return dict(offered)
        return None

    def _assign_nested(self, path: str, value):
        parts = path.split(".")
        head = parts[0]
        if head == "passengersDetails" and len(parts) == 3:
            index, field = _index(parts[1], path), parts[2]
            if field not in PASSENGER_FIELDS:
                raise ValueError(f"Unknown passenger field: {field}")
            details = [dict(p) for p in self.fields.get("passengersDetails") or []]
            if index >= self.passenger_count:
                raise ValueError(f"Passenger {index + 1} is not part of this booking")
            while len(details) <= index:
                details.append(blank_passenger())
            details[index][field] = "" if value is None else str(value)
            self.fields["passengersDetails"] = details
        elif head == "seatSelection" and len(parts) == 3:
            leg, index = parts[1], _index(parts[2], path)
            if leg not in SEAT_LEGS:
                raise ValueError(f"Unknown leg: {leg}")
            if index >= self.passenger_count:
                raise ValueError(f"Seat {index + 1} is beyond the passenger count")
            seats = {k: list(v) for k, v in self.fields["seatSelection"].items()}
            while len(seats[leg]) <= index:
                seats[leg].append("")
            seats[leg][index] = (value or "").strip().upper()
            self.fields["seatSelection"] = seats
        elif head == "contactInfo" and len(parts) == 2:
            if parts[1] not in CONTACT_FIELDS:
                raise ValueError(f"Unknown contact field: {parts[1]}")
            contact = dict(self.fields.get("contactInfo") or {})
            contact[parts[1]] = (value or "").strip()
            self.fields["contactInfo"] = contact
        else:
            raise ValueError(f"Unknown field: {path}")
        self.errors.pop(path, None)

    def _fetch_candidate_fares(self) -> List[Dict]:
        origin, destination = self.fields.get("from"), self.fields.get("to")
        if not origin or not destination or self.fare_lookup is None:
            return []
        return self.fare_lookup.list_candidate_fares(origin, destination)

    def _fetch_return_fares(self) -> List[Dict]:
        origin, destination = self.fields.get("from"), self.fields.get("to")
        if not origin or not destination or self.fare_lookup is None:
            return []
        return self.fare_lookup.list_return_fares(origin, destination)

    def _ensure_open(self):
        if self.closed:
            raise StateGateError("This modification draft has been closed.")

    # ---- serialization -------------------------------------------------

    def to_dict(self, include_fares: bool = True) -> dict:
        data = {
            "bookingId": self.booking_id,
            "bookingType": self.booking_type,
            "requestId": self.request_id,
            "fields": copy.deepcopy(self.fields),
            "toggles": dict(self.toggles),
            "originalTotal": self.original_total,
            "originalTripType": self.original_trip_type,
            "originalPassengers": self.original_passengers,
            "totalPrice": self.total_price,
            "displayTotal": pricing.round_money(self.total_price),
            "adjustments": list(self.adjustments),
            "pricedOutbound": self.priced_outbound,
            "pricedReturn": self.priced_return,
            "errors": dict(self.errors),
            "closed": self.closed,
        }
        if include_fares:
            data["candidateFares"] = list(self.candidate_fares)
            data["returnFares"] = list(self.return_fares)
        return data

    @classmethod
    def from_dict(cls, data: dict, fare_lookup=None) -> "ModificationDraft":
        draft = cls(
            booking_id=data.get("bookingId"),
            booking_type=data.get("bookingType") or "flight",
            request_id=data.get("requestId"),
            fields=copy.deepcopy(data.get("fields") or {}),
            original_total=data.get("originalTotal") or 0.0,
            original_trip_type=data.get("originalTripType") or ONE_WAY,
            original_passengers=data.get("originalPassengers") or 1,
            fare_lookup=fare_lookup,
        )
        draft.toggles.update({k: bool(v) for k, v in (data.get("toggles") or {}).items() if k in SECTIONS})
        draft.total_price = float(data.get("totalPrice", draft.original_total))
        draft.adjustments = list(data.get("adjustments") or [])
        draft.priced_outbound = data.get("pricedOutbound")
        draft.priced_return = data.get("pricedReturn")
        draft.errors = dict(data.get("errors") or {})
        draft.closed = bool(data.get("closed"))
        if "candidateFares" in data:
            draft.candidate_fares = list(data.get("candidateFares") or [])
            draft.return_fares = list(data.get("returnFares") or [])
        elif fare_lookup is not None:
            origin, destination = draft.fields.get("from"), draft.fields.get("to")
            if draft.fields.get("outboundFlight") is None and origin and destination:
                draft.candidate_fares = draft._fetch_candidate_fares()
            if draft.fields.get("tripType") == ROUND_TRIP and draft.fields.get("returnFlight") is None:
                draft.return_fares = draft._fetch_return_fares()
        return draft


def _resize(values: list, count: int) -> list:
    values = list(values)[:count]
    while len(values) < count:
        values.append("")
    return values


def _index(raw: str, path: str) -> int:
    try:
        index = int(raw)
    except ValueError:
        raise ValueError(f"Bad index in {path}") from None
    if index < 0:
        raise ValueError(f"Bad index in {path}")
    return index
