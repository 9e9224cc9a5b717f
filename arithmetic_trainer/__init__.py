"""Timed arithmetic drills with persistent history and statistics."""

__version__ = "0.1.0"
