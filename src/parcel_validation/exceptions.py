"""Exceptions raised by the validation engine."""


class ParcelValidationError(Exception):
    """Base parcel validation exception."""


class InvalidRingError(ParcelValidationError, ValueError):
    """Raised when a ring is missing or holds malformed coordinates."""


class ContainmentError(ParcelValidationError):
    """Raised when a containment test cannot be evaluated."""
