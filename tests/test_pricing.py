"""
Tests for the price delta functions.
Run with: pytest tests/test_pricing.py -v
"""

import random

import pytest

from aerox import pricing
from aerox.pricing import ONE_WAY, ROUND_TRIP


class TestTripTypeConversion:
    """One-way <-> round-trip price deltas."""

    def test_one_way_to_round_trip_adds_return_fare_per_passenger(self):
        assert pricing.trip_type_conversion_delta(ONE_WAY, ROUND_TRIP, 250.0, 2, 600.0) == 500.0

    def test_round_trip_to_one_way_subtracts_return_fare(self):
        assert pricing.trip_type_conversion_delta(ROUND_TRIP, ONE_WAY, 250.0, 2, 900.0) == -500.0

    def test_round_trip_to_one_way_is_floored_at_total(self):
        """The reduction never exceeds the current total."""
        assert pricing.trip_type_conversion_delta(ROUND_TRIP, ONE_WAY, 250.0, 2, 300.0) == -300.0

    def test_same_trip_type_is_free(self):
        assert pricing.trip_type_conversion_delta(ONE_WAY, ONE_WAY, 250.0, 2, 600.0) == 0.0

    def test_unsupported_conversion_raises(self):
        with pytest.raises(ValueError):
            pricing.trip_type_conversion_delta(ONE_WAY, "Multi City", 250.0, 2, 600.0)

    def test_conversion_round_trip_restores_total(self):
        """Converting there and back with the same fare leaves the total unchanged."""
        for total in (0.0, 150.0, 600.0, 1234.56):
            for n in range(1, 10):
                up = pricing.trip_type_conversion_delta(ONE_WAY, ROUND_TRIP, 275.5, n, total)
                down = pricing.trip_type_conversion_delta(ROUND_TRIP, ONE_WAY, 275.5, n, total + up)
                assert total + up + down == pytest.approx(total)


class TestPassengerCountDelta:
    """Passenger count changes."""

    def test_increase_doubles_the_total(self):
        """2 -> 3 passengers on a 400 booking ends at 800."""
        delta = pricing.passenger_count_delta(2, 3, 400.0, 200.0)
        assert 400.0 + delta == 800.0

    def test_increase_by_several_still_only_doubles(self):
        assert pricing.passenger_count_delta(1, 5, 300.0, 300.0) == 300.0

    def test_decrease_removes_fare_per_passenger(self):
        assert pricing.passenger_count_delta(3, 1, 600.0, 200.0) == -400.0

    def test_decrease_is_floored_at_total(self):
        assert pricing.passenger_count_delta(5, 1, 100.0, 200.0) == -100.0

    def test_unchanged_count(self):
        assert pricing.passenger_count_delta(2, 2, 400.0, 200.0) == 0.0


class TestFlightSubstitution:
    """Replacing a selected fare."""

    def test_first_selection_prices_the_whole_fare(self):
        assert pricing.flight_substitution_delta(None, 300.0, 2) == 600.0

    def test_cheaper_fare_gives_negative_delta(self):
        assert pricing.flight_substitution_delta(300.0, 250.0, 2) == -100.0


class TestTotalNeverNegative:
    """Any sequence of deltas keeps the running total at or above zero."""

    def test_random_sequences(self):
        rng = random.Random(7)
        for _ in range(200):
            total = rng.choice([0.0, 50.0, 400.0, 999.99])
            trip, count = ONE_WAY, rng.randint(1, 9)
            for _ in range(25):
                op = rng.choice(["trip", "pax", "fare"])
                if op == "trip":
                    target = ROUND_TRIP if trip == ONE_WAY else ONE_WAY
                    delta = pricing.trip_type_conversion_delta(trip, target, rng.uniform(0, 900), count, total)
                    trip = target
                elif op == "pax":
                    new = rng.randint(1, 9)
                    delta = pricing.passenger_count_delta(count, new, total, rng.uniform(0, 900))
                    count = new
                else:
                    delta = pricing.flight_substitution_delta(rng.uniform(0, 900), rng.uniform(0, 900), count)
                total = pricing.apply_delta(total, delta)
                assert total >= 0


class TestHelpers:
    def test_cents_round_trip(self):
        assert pricing.cents(19.99) == 1999
        assert pricing.from_cents(1999) == 19.99
        assert pricing.from_cents(None) == 0

    def test_invalid_amounts(self):
        assert not pricing.is_valid_amount(True)
        assert not pricing.is_valid_amount(float("nan"))
        assert not pricing.is_valid_amount(float("inf"))
        assert not pricing.is_valid_amount("12")
        assert pricing.is_valid_amount(12)

    def test_fare_price_falls_back_to_default(self):
        assert pricing.fare_price(None, 200.0) == 200.0
        assert pricing.fare_price({"price": "abc"}, 200.0) == 200.0
        assert pricing.fare_price({"price": -5}, 200.0) == 200.0
        assert pricing.fare_price({"price": "349"}) == 349.0
