"""
FastAPI dependencies for the managed services behind the intake flow.

Tests swap these out through ``app.dependency_overrides``.
"""

import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends

from .booking_store import BookingStore
from .core.config import Settings, get_settings
from .core.firestore import get_firestore_client
from .sheets import SheetMirror, SheetsConfigError, build_sheet_mirror
from .sms import Notifier

logger = logging.getLogger(__name__)


def get_booking_store(settings: Settings = Depends(get_settings)) -> Optional[BookingStore]:
    client = get_firestore_client()
    if client is None:
        return None
    return BookingStore(client, settings.firestore_bookings_collection)


@lru_cache
def _configured_sheet_mirror() -> Optional[SheetMirror]:
    try:
        return build_sheet_mirror(get_settings())
    except SheetsConfigError as e:
        logger.warning(f"Google Sheets mirror disabled: {e.status}")
        return None


def get_sheet_mirror() -> Optional[SheetMirror]:
    return _configured_sheet_mirror()


def get_notifier(settings: Settings = Depends(get_settings)) -> Notifier:
    return Notifier(settings)
