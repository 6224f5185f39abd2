"""
SkyWatch Flight State Engine

Simulates a population of flights, raises comm-loss and restricted-zone
alerts, records selected flights and fans post-tick state out to subscribers.
"""

from simulation.config import EngineConfig
from simulation.engine import EngineSnapshot, FlightEngine
from simulation.errors import (
    ConfigurationError,
    EngineError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

__all__ = [
    "EngineConfig",
    "EngineSnapshot",
    "FlightEngine",
    "EngineError",
    "ConfigurationError",
    "PersistenceError",
    "ValidationError",
    "NotFoundError",
]
