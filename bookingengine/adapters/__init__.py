"""
Adapters layer - Storage backends implementing the booking store protocol.
"""

from .memory_store import InMemoryBookingStore

__all__ = ["InMemoryBookingStore"]
