"""
Exceptions raised by attribute configuration and kernel initialization.

ValidationError blocks a job before any compute call. DegenerateDataError and
MissingInputError are raised inside initialize() and converted into a logged
fallback there, so they never reach the host.
"""
from typing import Any, Optional


class ValidationError(ValueError):
    """Configuration violates a documented constraint."""


class DegenerateDataError(Exception):
    """
    Statistics collapsed (no valid samples, zero-width range, zero spacing).

    Attributes:
        status: Short machine-readable reason (e.g. 'no_valid_data')
        fallback: Value the caller should adopt instead of failing
    """

    def __init__(self, message: str, status: str, fallback: Optional[Any] = None):
        super().__init__(message)
        self.status = status
        self.fallback = fallback


class MissingInputError(Exception):
    """Required input volume is absent or is not a valid 3D cube."""
