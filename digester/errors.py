# digester/errors.py
from __future__ import annotations

from typing import Optional


class DigesterError(Exception):
    """Base for every failure raised by the digester package."""


class ValidationError(DigesterError):
    """Batch parameters out of bounds. Raised before any actuation."""


class RunStateError(DigesterError):
    """Requested transition is not allowed from the current run state."""


class TransportError(DigesterError):
    """Field transport could not complete a read or write."""


class ConnectivityError(TransportError):
    """Transport is not connected to the plant."""


class ActuationFailure(DigesterError):
    """A point write failed while executing an operation."""

    def __init__(self, operation: str, point: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.point = point
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"{operation} failed writing {point}{detail}")


class ConditionTimeout(DigesterError):
    """A wait condition was not satisfied within its timeout."""

    def __init__(self, condition: str, timeout: float, elapsed: float):
        self.condition = condition
        self.timeout = timeout
        self.elapsed = elapsed
        super().__init__(f"{condition} (not met within {timeout:g}s, waited {elapsed:.2f}s)")


class RunCancelled(DigesterError):
    """Raised out of a wait when the run's cancel signal is set."""
