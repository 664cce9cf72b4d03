"""
Web-form booking API.

POST /api/bookings  -> create a booking (reserves the slot when date+time given)
GET  /api/bookings  -> list recent bookings, optionally for one business
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from .booking_service import process_booking
from .booking_store import BookingStore
from .core.config import Settings, get_settings
from .core.responses import BookingError, StoreUnavailableError, success_response
from .dependencies import get_booking_store, get_notifier, get_sheet_mirror
from .models import BookingRequest
from .rate_limiter import intake_rate_limit
from .sheets import SheetMirror
from .sms import Notifier

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["bookings"])


@router.post(
    "/bookings",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(intake_rate_limit)],
)
async def create_booking(
    payload: BookingRequest,
    store: Optional[BookingStore] = Depends(get_booking_store),
    mirror: Optional[SheetMirror] = Depends(get_sheet_mirror),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
):
    """
    Create a booking from the web form.

    With preferredDate + preferredTime the slot is reserved under a
    deterministic id and a second request for it gets 409. Without them
    the request is stored as pending.
    """
    try:
        outcome = await process_booking(payload, store, mirror, notifier, settings)
    except BookingError:
        raise
    except Exception as e:
        logger.exception(f"Failed to create booking: {e}")
        raise BookingError("Failed to create booking", str(e)) from e
    return success_response(status.HTTP_201_CREATED, **outcome.to_response())


@router.get("/bookings")
async def list_bookings(
    business_id: Optional[str] = Query(None, alias="businessId"),
    store: Optional[BookingStore] = Depends(get_booking_store),
):
    if store is None:
        raise StoreUnavailableError()

    try:
        bookings = await asyncio.to_thread(store.list_recent, business_id)
    except Exception as e:
        logger.exception(f"Failed to fetch bookings: {e}")
        raise BookingError("Failed to fetch bookings", str(e)) from e
    return success_response(bookings=bookings)
