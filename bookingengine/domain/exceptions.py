"""
Domain-specific exception hierarchy for the booking engine.

Booking rejections are not exceptions; they are returned as ``Rejected``
values by admission. These errors cover caller bugs and collaborator failures.
"""


class BookingEngineError(Exception):
    """Base class for all application-level errors."""


class StorageUnavailableError(BookingEngineError):
    """Raised when the backing store cannot be read or written."""


class UnknownServiceError(BookingEngineError):
    """Raised when a service id is not part of the catalog."""

