"""
Unit tests for environment configuration.
"""

import pytest

from simulation.config import EngineConfig, GeoBounds, StatusProbabilities
from simulation.errors import ConfigurationError


def test_defaults():
    config = EngineConfig().validate()
    assert config.tick_ms == 3000
    assert config.tick_seconds == 3.0
    assert config.flight_count == 8
    assert config.max_flight_count == 200
    assert config.history_length == 50
    assert config.max_recorded_positions == 5000
    assert config.position_epsilon == 1e-10
    assert config.database_url is None


def test_from_env(monkeypatch):
    monkeypatch.setenv("TICK_MS", "500")
    monkeypatch.setenv("FLIGHT_COUNT", "20")
    monkeypatch.setenv("PROB_LOST_COMM", "0.5")
    monkeypatch.setenv("MAX_FLIGHT_COUNT", "50")
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/skywatch")

    config = EngineConfig.from_env()
    assert config.tick_ms == 500
    assert config.flight_count == 20
    assert config.max_flight_count == 50
    assert config.probabilities.lost_comm == 0.5
    assert config.database_url == "postgresql://localhost/skywatch"


def test_malformed_env_value(monkeypatch):
    monkeypatch.setenv("FLIGHT_COUNT", "many")
    with pytest.raises(ConfigurationError):
        EngineConfig.from_env()


@pytest.mark.parametrize("kwargs", [
    {"tick_ms": 0},
    {"flight_count": -1},
    {"flight_count": 300},
    {"flight_count": 20, "max_flight_count": 10},
    {"history_length": 0},
    {"max_recorded_positions": 0},
    {"persist_timeout_seconds": 0},
    {"bounds": GeoBounds(lat_min=30.0, lat_max=8.0)},
    {"bounds": GeoBounds(lng_min=68.0, lng_max=200.0)},
    {"probabilities": StatusProbabilities(lost_comm=1.5)},
    {"probabilities": StatusProbabilities(landed=-0.1)},
])
def test_invalid_settings_rejected(kwargs):
    with pytest.raises(ConfigurationError):
        EngineConfig(**kwargs).validate()
