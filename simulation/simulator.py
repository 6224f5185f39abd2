"""
Tick-driven flight simulator.

Each tick applies a bounded random walk to every flight and may change its
status. Motion is a stochastic walk, not flight dynamics.
"""

import logging
import random
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from simulation import geo
from simulation.config import EngineConfig
from simulation.models import FlightState, FlightStatus, HistoryBuffer, utcnow
from simulation.zones import DEFAULT_AIRPORTS

logger = logging.getLogger(__name__)

AIRLINES = ("AI", "6E", "SG", "G8", "IX", "UK")

AIRCRAFT_TYPES = (
    "Boeing 737-800", "Airbus A320", "Boeing 777-300ER", "Airbus A321",
    "Boeing 787-9", "Airbus A330-300", "Boeing 737 MAX", "Airbus A350-900",
    "Embraer E190", "ATR 72-600", "Bombardier CRJ-900", "Boeing 747-400",
)


class FlightSimulator:
    """Owns and mutates every FlightState. The only writer."""

    def __init__(self, config: Optional[EngineConfig] = None, rng: Optional[random.Random] = None):
        self.config = (config or EngineConfig()).validate()
        self.rng = rng or random.Random()
        self._flights: Dict[str, FlightState] = {}

    # ------------------------------------------------------------------
    # Population
    # ------------------------------------------------------------------

    def seed(self, count: Optional[int] = None) -> List[FlightState]:
        """Replace the population with `count` fresh on-time flights."""
        count = self.config.flight_count if count is None else count
        if count <= 0:
            raise ValueError(f"Flight count must be positive, got {count}")

        flights: Dict[str, FlightState] = {}
        while len(flights) < count:
            flight = self._new_flight()
            if flight.id not in flights:
                flights[flight.id] = flight

        self._flights = flights
        logger.info(f"Seeded {count} flights")
        return self.flights()

    def _new_flight(self) -> FlightState:
        rng = self.rng
        motion = self.config.motion

        lat, lng = geo.random_point_in_bounds(self.config.bounds, rng)
        dest_code, dest_city, dest_lat, dest_lng = rng.choice(DEFAULT_AIRPORTS)
        origin_code, origin_city, _, _ = rng.choice(
            [a for a in DEFAULT_AIRPORTS if a[0] != dest_code]
        )

        altitude = geo.clamp(
            float(int(rng.uniform(*motion.initial_altitude_ft))),
            motion.altitude_min_ft,
            motion.altitude_max_ft,
        )
        speed = geo.clamp(
            float(int(rng.uniform(*motion.initial_speed_kt))),
            motion.speed_min_kt,
            motion.speed_max_kt,
        )

        flight = FlightState(
            id=uuid.UUID(int=rng.getrandbits(128)).hex[:8],
            flight_number=f"{rng.choice(AIRLINES)}{rng.randint(100, 999)}",
            lat=lat,
            lng=lng,
            altitude=altitude,
            speed=speed,
            heading=geo.bearing((lat, lng), (dest_lat, dest_lng)),
            status=FlightStatus.ON_TIME,
            history=HistoryBuffer(self.config.history_length),
            aircraft=rng.choice(AIRCRAFT_TYPES),
            origin=f"{origin_code} - {origin_city}",
            destination=f"{dest_code} - {dest_city}",
        )
        flight.record_position()
        return flight

    def flights(self) -> List[FlightState]:
        return list(self._flights.values())

    def get(self, flight_id: str) -> Optional[FlightState]:
        return self._flights.get(flight_id)

    def count(self) -> int:
        return len(self._flights)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def step(self, now: Optional[datetime] = None) -> List[FlightState]:
        """Advance every flight by one tick."""
        now = now or utcnow()
        for flight in self._flights.values():
            self._advance(flight, now)
        return self.flights()

    def _advance(self, flight: FlightState, now: datetime) -> None:
        # Landed flights stay in the population but no longer move or change status
        if flight.status is FlightStatus.LANDED:
            return

        self._transition_status(flight)
        if flight.status is FlightStatus.LANDED:
            flight.updated_at = now
            return

        rng = self.rng
        motion = self.config.motion

        flight.lat = geo.clamp(
            flight.lat + rng.uniform(-motion.position_range_deg, motion.position_range_deg),
            -90.0,
            90.0,
        )
        flight.lng = geo.wrap_longitude(
            flight.lng + rng.uniform(-motion.position_range_deg, motion.position_range_deg)
        )
        flight.altitude = geo.clamp(
            flight.altitude + rng.uniform(-motion.altitude_range_ft, motion.altitude_range_ft),
            motion.altitude_min_ft,
            motion.altitude_max_ft,
        )
        flight.speed = geo.clamp(
            flight.speed + rng.uniform(-motion.speed_range_kt, motion.speed_range_kt),
            motion.speed_min_kt,
            motion.speed_max_kt,
        )
        flight.heading = geo.wrap_heading(
            flight.heading + rng.uniform(-motion.heading_range_deg, motion.heading_range_deg)
        )
        flight.updated_at = now
        flight.record_position()

    def _transition_status(self, flight: FlightState) -> None:
        """At most one transition per tick, in fixed precedence order."""
        p = self.config.probabilities
        rolls = (
            (FlightStatus.LOST_COMM, p.lost_comm),
            (FlightStatus.DELAYED, p.delayed),
            (FlightStatus.LANDED, p.landed),
        )
        # Independent draws; the first in precedence order wins
        fired = [status for status, prob in rolls if self.rng.random() < prob]
        if not fired:
            return

        new_status = fired[0]
        if new_status is not flight.status:
            logger.debug(f"Flight {flight.flight_number} ({flight.id}): {flight.status.value} -> {new_status.value}")
            flight.status = new_status
