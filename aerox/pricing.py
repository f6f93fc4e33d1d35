"""
Price deltas for booking modifications.

Every function here is pure: it returns the amount to add to a running total
and never touches a draft. Amounts are plain floats while a draft is being
edited and are only rounded to cents when shown or submitted.
"""

import math

ONE_WAY = "One Way"
ROUND_TRIP = "Round Trip"
SINGLE_LEG = "Single Leg"

# used when no fare is known for a leg or passenger
DEFAULT_FARE_PRICE = 200.0

MAX_TOTAL_PRICE = 100000


# dollars to cents
def cents(n: float) -> int:
    return int(round(n * 100))


def from_cents(value) -> float:
    return round((value or 0) / 100, 2)


def round_money(amount: float) -> float:
    return round(float(amount), 2)


def is_valid_amount(amount) -> bool:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return False
    return not math.isnan(amount) and not math.isinf(amount)


def fare_price(fare, default=None):
    """Price of a fare/vehicle record, or ``default`` when missing or unusable."""
    if not fare:
        return default
    try:
        price = float(fare.get("price"))
    except (TypeError, ValueError, AttributeError):
        return default
    if not is_valid_amount(price) or price < 0:
        return default
    return price


def apply_delta(total: float, delta: float) -> float:
    """Add a delta to a running total, never going below zero."""
    return max(0.0, total + delta)


def trip_type_conversion_delta(trip_type: str, target: str, return_fare_price: float,
                               passenger_count: int, current_total: float) -> float:
    if trip_type == target:
        return 0.0
    if trip_type == ONE_WAY and target == ROUND_TRIP:
        return return_fare_price * passenger_count
    if trip_type == ROUND_TRIP and target == ONE_WAY:
        # floored so the total never goes negative
        return -min(return_fare_price * passenger_count, max(0.0, current_total))
    raise ValueError(f"Cannot convert a {trip_type} booking to {target}")


def passenger_count_delta(old_count: int, new_count: int, current_total: float,
                          per_passenger_fare: float) -> float:
    if new_count == old_count:
        return 0.0
    if new_count > old_count:
        # Adding passengers doubles the running total, whatever the count.
        return current_total
    reduction = (old_count - new_count) * per_passenger_fare
    return -min(reduction, max(0.0, current_total))


def flight_substitution_delta(previous_price, new_price: float, passenger_count: int) -> float:
    if previous_price is None:
        return new_price * passenger_count
    return (new_price - previous_price) * passenger_count
