"""
Shared fixtures for the engine test suite.
"""

import random

import pytest

from simulation.config import EngineConfig, StatusProbabilities
from simulation.engine import FlightEngine
from simulation.models import FlightState, FlightStatus, HistoryBuffer
from simulation.store import InMemoryPositionStore


@pytest.fixture
def rng():
    """Seeded RNG so simulator runs are reproducible."""
    return random.Random(1234)


@pytest.fixture
def config():
    """Engine config with status transitions switched off."""
    return EngineConfig(
        tick_ms=50,
        flight_count=5,
        history_length=10,
        max_recorded_positions=20,
        persist_timeout_seconds=2.0,
        probabilities=StatusProbabilities(lost_comm=0.0, delayed=0.0, landed=0.0),
    )


@pytest.fixture
def store():
    return InMemoryPositionStore()


@pytest.fixture
def engine(config, store, rng):
    return FlightEngine(config, store=store, rng=rng)


@pytest.fixture
def make_flight():
    """Factory for hand-placed flights."""
    def _make(flight_id="f1", lat=0.0, lng=0.0, status=FlightStatus.ON_TIME, **kwargs):
        return FlightState(
            id=flight_id,
            flight_number=kwargs.pop("flight_number", f"AI{abs(hash(flight_id)) % 900 + 100}"),
            lat=lat,
            lng=lng,
            altitude=kwargs.pop("altitude", 30000.0),
            speed=kwargs.pop("speed", 450.0),
            heading=kwargs.pop("heading", 90.0),
            status=status,
            history=HistoryBuffer(kwargs.pop("history_length", 10)),
            **kwargs,
        )
    return _make
