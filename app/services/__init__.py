"""Domain services."""

from app.services.listings import ListingService

__all__ = ["ListingService"]
