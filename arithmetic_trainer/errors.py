from __future__ import annotations


class TrainerError(Exception):
    """Base class for errors raised by the trainer core."""


class ConfigError(TrainerError, ValueError):
    """A configured value is out of range (e.g. ``min > max``)."""


class InvalidStateError(TrainerError, RuntimeError):
    """A session operation was invoked in the wrong state."""


class PersistenceError(TrainerError, OSError):
    """Reading or writing stored results failed, or the stored data is malformed."""
