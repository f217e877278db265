from __future__ import annotations


class MalformedInputError(ValueError):
    """Persisted or imported payload could not be parsed into a known shape."""


class BaselineUnavailableError(RuntimeError):
    """The mandatory baseline structure document could not be loaded."""

    def __init__(self, location: str, reason: str) -> None:
        super().__init__(f"Baseline structure unavailable at {location}: {reason}")
        self.location = location
        self.reason = reason
