"""
Standardized API Response Module

Every JSON body returned by the booking backend carries an ``ok`` flag so
voice assistants and the web form can branch on a single field.

RESPONSE FORMAT:
    Success:
        {
            "ok": true,
            ...endpoint specific fields...
        }

    Error:
        {
            "ok": false,
            "error": "Human-readable message",
            "details": ...  # Optional extra context
        }
"""

from typing import Any, Optional

from fastapi.responses import JSONResponse


# ============================================================================
# DOMAIN ERRORS
# ============================================================================

class BookingError(Exception):
    """Base class for errors that map onto an HTTP error response."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def extra_fields(self) -> dict:
        return {}


class SlotConflictError(BookingError):
    """Requested business/date/time slot already holds a booking."""

    status_code = 409

    def __init__(self, booking_id: str, existing: Optional[dict] = None):
        super().__init__("That time slot is already booked.")
        self.booking_id = booking_id
        self.existing = existing

    def extra_fields(self) -> dict:
        return {"bookingId": self.booking_id}


class StoreUnavailableError(BookingError):
    """Firestore credentials are missing so nothing can be persisted."""

    status_code = 500

    def __init__(self):
        super().__init__(
            "Firestore not initialized. Check FIREBASE_PROJECT_ID, "
            "FIREBASE_CLIENT_EMAIL, FIREBASE_PRIVATE_KEY env vars."
        )


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def success_response(status_code: int = 200, **fields: Any) -> JSONResponse:
    """Create a JSON success response with ``ok: true``."""
    return JSONResponse(status_code=status_code, content={"ok": True, **fields})


def error_body(message: str, details: Optional[Any] = None, **fields: Any) -> dict:
    body: dict[str, Any] = {"ok": False, "error": message}
    if details is not None:
        body["details"] = details
    body.update(fields)
    return body


def error_response(
    status_code: int,
    message: str,
    details: Optional[Any] = None,
    **fields: Any,
) -> JSONResponse:
    """Create a JSON error response with ``ok: false``."""
    return JSONResponse(status_code=status_code, content=error_body(message, details, **fields))
