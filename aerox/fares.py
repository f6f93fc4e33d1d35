"""
Fare lookup for the modification form.

There is no live inventory behind this service; fares are generated from the
route so that the same route always yields the same options. Drafts only accept
fares and vehicles that appear in these lists, priced as listed here. Anything
with ``list_candidate_fares``, ``list_return_fares`` and
``list_air_taxi_vehicles`` can be passed to a draft in place of ``FareLookup``.
"""

import logging
from typing import Dict, List

logger = logging.getLogger(__name__)

AIRLINE = "AeroX"

AVAILABLE_LOCATIONS = [
    "New York", "London", "Tokyo", "Dubai", "Singapore", "Paris", "Mumbai", "Sydney",
    "Hong Kong", "Toronto", "Los Angeles", "Berlin", "Bangkok", "Seoul", "Madrid", "Sri Lanka",
]

# priced per trip
AIR_TAXI_VEHICLES = [
    {"id": "heli-2", "name": "Bell 505 Helicopter", "capacity": 4, "price": 1200.0},
    {"id": "jet-6", "name": "Cessna Citation M2", "capacity": 6, "price": 3500.0},
]


def _route_seed(origin: str, destination: str) -> int:
    if not origin or not destination:
        return 0
    return ord(origin[0]) + ord(destination[0])


class FareLookup:
    def list_candidate_fares(self, origin: str, destination: str) -> List[Dict]:
        seed = _route_seed(origin, destination)
        schedule = [
            (100, "08:00", "10:30", 299, 30, 50),
            (200, "12:00", "14:30", 349, 20, 40),
            (300, "16:00", "18:30", 399, 15, 30),
        ]
        fares = []
        for number, dep, arr, base, seats, spread in schedule:
            fares.append({
                "airline": AIRLINE,
                "flightNumber": f"AX{number + (seed % 900)}",
                "from": origin,
                "to": destination,
                "departureTime": dep,
                "arrivalTime": arr,
                "duration": "2h 30m",
                "price": float(base + (seed % 200)),
                "seatsAvailable": seats + (seed % spread),
            })
        logger.debug("Generated %d fares for %s -> %s", len(fares), origin, destination)
        return fares

    def list_return_fares(self, origin: str, destination: str) -> List[Dict]:
        """Fares for the leg back from ``destination`` to ``origin``."""
        schedule = [
            ("AX101", "08:00", "11:00", 450, 30),
            ("AX202", "14:30", "17:30", 550, 25),
            ("AX303", "19:45", "22:45", 650, 20),
        ]
        return [
            {
                "airline": AIRLINE,
                "flightNumber": number,
                "from": destination,
                "to": origin,
                "departureTime": dep,
                "arrivalTime": arr,
                "duration": "3h 00m",
                "price": float(price),
                "seatsAvailable": seats,
            }
            for number, dep, arr, price, seats in schedule
        ]

    def list_air_taxi_vehicles(self) -> List[Dict]:
        return [dict(vehicle) for vehicle in AIR_TAXI_VEHICLES]
