"""
Error taxonomy for the flight state engine.
"""


class EngineError(Exception):
    """Base class for engine errors."""


class ConfigurationError(EngineError):
    """Invalid engine configuration. Fatal at startup."""


class PersistenceError(EngineError):
    """Durable store unavailable, timed out or rejected a write. Recoverable."""


class ValidationError(EngineError, ValueError):
    """Rejected control-surface request. No engine state was changed."""


class NotFoundError(ValidationError):
    """Control-surface request referenced an unknown flight or alert."""
