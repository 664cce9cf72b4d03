"""
Booking intake flow shared by the web form and voice endpoints.

    conflict check -> Firestore write -> sheet mirror -> owner SMS -> customer SMS

Only the Firestore write is required; the sheet mirror and SMS steps are
best effort and report their outcome as flags.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from .booking_store import BookingStore
from .core.config import Settings
from .core.responses import SlotConflictError, StoreUnavailableError
from .models import BookingRecord, BookingRequest, BookingStatus, booking_id_for
from .sheets import SheetMirror
from .sms import Notifier

logger = logging.getLogger(__name__)


@dataclass
class IntakeOutcome:
    booking_id: str
    record: BookingRecord
    saved: bool = False
    sheet_mirrored: bool = False
    owner_notified: bool = False
    customer_notified: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def steps(self) -> dict:
        return {
            "saved": self.saved,
            "sheetMirrored": self.sheet_mirrored,
            "ownerNotified": self.owner_notified,
            "customerNotified": self.customer_notified,
        }

    def to_response(self) -> dict:
        body = {
            "id": self.booking_id,
            "booking": self.record.to_document(),
            "steps": self.steps,
        }
        if self.warnings:
            body["warnings"] = self.warnings
        return body


async def check_slot_conflict(
    booking_id: str,
    request: BookingRequest,
    store: BookingStore,
    mirror: Optional[SheetMirror],
    settings: Settings,
) -> Optional[dict]:
    """
    Raise SlotConflictError if the slot is taken.

    Returns the cancelled booking previously held at this id, if any.
    """
    existing = await asyncio.to_thread(store.get, booking_id)
    if existing and existing.get("status") != BookingStatus.CANCELLED.value:
        raise SlotConflictError(booking_id, existing)

    # The spreadsheet has no business column; it belongs to the default business
    sheet_is_shared = request.business_id == settings.default_business_id
    if settings.sheets_conflict_check and mirror is not None and sheet_is_shared:
        try:
            row = await asyncio.to_thread(mirror.find_slot_row, request.date, request.time)
        except Exception as e:
            logger.error(f"Sheet conflict check failed for {booking_id}: {e}")
        else:
            if row:
                logger.info(f"Slot {booking_id} already taken in sheet: {row}")
                raise SlotConflictError(booking_id, {"sheetRow": row})

    return existing


async def process_booking(
    request: BookingRequest,
    store: Optional[BookingStore],
    mirror: Optional[SheetMirror],
    notifier: Notifier,
    settings: Settings,
) -> IntakeOutcome:
    """
    Run a booking request through the intake chain.

    Raises:
        StoreUnavailableError: Firestore is not configured
        SlotConflictError: the business/date/time slot is already booked
    """
    if store is None:
        raise StoreUnavailableError()

    if request.has_slot:
        booking_id = booking_id_for(request.business_id, request.date, request.time)
        record = BookingRecord.from_request(request, BookingStatus.BOOKED)
        existing = await check_slot_conflict(booking_id, request, store, mirror, settings)
        if existing:
            logger.info(f"Rebooking cancelled slot {booking_id}")
            await asyncio.to_thread(store.replace, booking_id, record)
        else:
            await asyncio.to_thread(store.create, booking_id, record)
    else:
        record = BookingRecord.from_request(request, BookingStatus.PENDING)
        booking_id = await asyncio.to_thread(store.add, record)

    outcome = IntakeOutcome(booking_id=booking_id, record=record, saved=True)
    logger.info(f"Saved booking {booking_id} ({record.status.value}, source={record.source.value})")

    if mirror is None:
        outcome.warnings.append("Google Sheets not configured; booking not mirrored.")
    else:
        try:
            await asyncio.to_thread(mirror.append_booking_row, record)
            outcome.sheet_mirrored = True
        except Exception as e:
            logger.exception(f"Failed to mirror booking {booking_id} to Google Sheets: {e}")
            outcome.warnings.append("Booking saved but could not be added to the spreadsheet.")

    outcome.owner_notified = await notifier.notify_owner(record)
    outcome.customer_notified = await notifier.notify_customer(record)
    return outcome
