"""
Core module - configuration, Firestore client, and response formatting.
"""
from .config import Settings, get_settings
from .firestore import get_firestore_client
from .responses import (
    BookingError,
    SlotConflictError,
    StoreUnavailableError,
    error_body,
    error_response,
    success_response,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Firestore
    "get_firestore_client",
    # Responses
    "BookingError",
    "SlotConflictError",
    "StoreUnavailableError",
    "error_body",
    "error_response",
    "success_response",
]
