"""
Service layer helpers that orchestrate the store and domain logic.
"""

from .booking_service import BookingService, BookingStoreProtocol

__all__ = ["BookingService", "BookingStoreProtocol"]
