"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking import BookingResult, BookingService, PersistenceGatewayProtocol

__all__ = ["BookingResult", "BookingService", "PersistenceGatewayProtocol"]
