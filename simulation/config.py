"""
Configuration for the flight state engine.

Settings come from environment variables with typed defaults and are
collected into a frozen EngineConfig. validate() fails fast at startup;
nothing is re-checked per tick.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from simulation.errors import ConfigurationError


@dataclass(frozen=True)
class GeoBounds:
    """Rectangle new flights are seeded in (near India by default)."""
    lat_min: float = 8.0
    lat_max: float = 30.0
    lng_min: float = 68.0
    lng_max: float = 90.0


@dataclass(frozen=True)
class MotionConfig:
    """Per-tick perturbation ranges and value domains."""
    position_range_deg: float = 0.08
    altitude_range_ft: float = 800.0
    speed_range_kt: float = 20.0
    heading_range_deg: float = 8.0

    altitude_min_ft: float = 0.0
    altitude_max_ft: float = 40000.0
    speed_min_kt: float = 140.0
    speed_max_kt: float = 560.0

    # Initial values drawn at seed time, clamped to the domains above
    initial_altitude_ft: tuple[float, float] = (10000.0, 38000.0)
    initial_speed_kt: tuple[float, float] = (220.0, 520.0)


@dataclass(frozen=True)
class StatusProbabilities:
    """Independent per-tick status transition probabilities."""
    lost_comm: float = 0.01
    delayed: float = 0.01
    landed: float = 0.005


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


@dataclass(frozen=True)
class EngineConfig:
    """Top-level engine configuration."""
    tick_ms: int = 3000
    flight_count: int = 8
    max_flight_count: int = 200
    history_length: int = 50
    max_recorded_positions: int = 5000
    position_epsilon: float = 1e-10
    persist_timeout_seconds: float = 5.0
    retention_days: int = 7
    cleanup_interval_seconds: float = 3600.0
    database_url: Optional[str] = None

    bounds: GeoBounds = field(default_factory=GeoBounds)
    motion: MotionConfig = field(default_factory=MotionConfig)
    probabilities: StatusProbabilities = field(default_factory=StatusProbabilities)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load configuration from the environment and validate it."""
        try:
            config = cls(
                tick_ms=_env_int("TICK_MS", 3000),
                flight_count=_env_int("FLIGHT_COUNT", 8),
                max_flight_count=_env_int("MAX_FLIGHT_COUNT", 200),
                history_length=_env_int("HISTORY_LENGTH", 50),
                max_recorded_positions=_env_int("MAX_RECORDED_POSITIONS", 5000),
                position_epsilon=_env_float("POSITION_EPSILON", 1e-10),
                persist_timeout_seconds=_env_float("PERSIST_TIMEOUT_SECONDS", 5.0),
                retention_days=_env_int("RETENTION_DAYS", 7),
                cleanup_interval_seconds=_env_float("CLEANUP_INTERVAL_SECONDS", 3600.0),
                database_url=os.getenv("DATABASE_URL") or None,
                probabilities=StatusProbabilities(
                    lost_comm=_env_float("PROB_LOST_COMM", 0.01),
                    delayed=_env_float("PROB_DELAYED", 0.01),
                    landed=_env_float("PROB_LANDED", 0.005),
                ),
            )
        except ValueError as e:
            raise ConfigurationError(f"Malformed environment setting: {e}") from e
        config.validate()
        return config

    @property
    def tick_seconds(self) -> float:
        return self.tick_ms / 1000.0

    def validate(self) -> "EngineConfig":
        """Raise ConfigurationError on any invalid setting."""
        if self.tick_ms <= 0:
            raise ConfigurationError(f"tick_ms must be positive, got {self.tick_ms}")
        if self.flight_count <= 0:
            raise ConfigurationError(f"flight_count must be positive, got {self.flight_count}")
        if self.flight_count > self.max_flight_count:
            raise ConfigurationError(
                f"flight_count {self.flight_count} exceeds max_flight_count {self.max_flight_count}"
            )
        if self.history_length <= 0:
            raise ConfigurationError(f"history_length must be positive, got {self.history_length}")
        if self.max_recorded_positions <= 0:
            raise ConfigurationError(
                f"max_recorded_positions must be positive, got {self.max_recorded_positions}"
            )
        if self.position_epsilon < 0:
            raise ConfigurationError("position_epsilon must not be negative")
        if self.persist_timeout_seconds <= 0:
            raise ConfigurationError("persist_timeout_seconds must be positive")
        if self.retention_days <= 0:
            raise ConfigurationError("retention_days must be positive")
        if self.cleanup_interval_seconds <= 0:
            raise ConfigurationError("cleanup_interval_seconds must be positive")

        b = self.bounds
        _check_range("latitude bounds", b.lat_min, b.lat_max, -90.0, 90.0)
        _check_range("longitude bounds", b.lng_min, b.lng_max, -180.0, 180.0)

        m = self.motion
        _check_range("altitude bounds", m.altitude_min_ft, m.altitude_max_ft)
        _check_range("speed bounds", m.speed_min_kt, m.speed_max_kt)
        _check_range("initial altitude", *m.initial_altitude_ft)
        _check_range("initial speed", *m.initial_speed_kt)
        if m.speed_min_kt < 0:
            raise ConfigurationError("speed bounds must not be negative")
        for name in ("position_range_deg", "altitude_range_ft", "speed_range_kt", "heading_range_deg"):
            if getattr(m, name) < 0:
                raise ConfigurationError(f"{name} must not be negative")

        p = self.probabilities
        for name in ("lost_comm", "delayed", "landed"):
            value = getattr(p, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"probability {name} must be within [0, 1], got {value}")

        return self


def _check_range(
    name: str,
    lo: float,
    hi: float,
    floor: Optional[float] = None,
    ceiling: Optional[float] = None,
) -> None:
    if lo > hi:
        raise ConfigurationError(f"{name} are inverted: {lo} > {hi}")
    if floor is not None and lo < floor:
        raise ConfigurationError(f"{name} below {floor}: {lo}")
    if ceiling is not None and hi > ceiling:
        raise ConfigurationError(f"{name} above {ceiling}: {hi}")
