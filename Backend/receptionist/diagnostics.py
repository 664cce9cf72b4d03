"""
Health and connectivity checks used while wiring up deployments.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from .booking_store import BookingStore
from .core.config import Settings, get_settings
from .core.responses import StoreUnavailableError
from .dependencies import get_booking_store, get_sheet_mirror
from .models import BookingRecord, BookingStatus
from .sheets import SheetMirror, sheets_config_status

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["diagnostics"])


def sheets_test_record() -> BookingRecord:
    now = datetime.now(timezone.utc).isoformat()
    return BookingRecord(
        business_id="test-business",
        name="Test User",
        phone="+61400111222",
        service="Test Service",
        date="2025-12-12",
        time="15:00",
        status=BookingStatus.TEST,
        created_at=now,
        updated_at=now,
    )


def _sheets_failure(error: str, details: Optional[dict] = None) -> JSONResponse:
    body = {"ok": False, "message": "Failed to append row to Google Sheets.", "error": error}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=body)


@router.get("/health")
async def healthcheck(settings: Settings = Depends(get_settings)):
    return {
        "ok": True,
        "message": f"{settings.business_name} backend is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/db-test")
async def db_test(store: Optional[BookingStore] = Depends(get_booking_store)):
    if store is None:
        raise StoreUnavailableError()
    return {"ok": True, "message": "Firestore is configured"}


@router.get("/sheets-test")
async def sheets_test_info():
    return {
        "ok": True,
        "message": "Sheets test endpoint is alive. Send a POST to append a row.",
    }


@router.post("/sheets-test")
async def sheets_test_append(
    mirror: Optional[SheetMirror] = Depends(get_sheet_mirror),
    settings: Settings = Depends(get_settings),
):
    """Append a fixed test row to the bookings sheet."""
    if mirror is None:
        return _sheets_failure("Google Sheets is not configured", sheets_config_status(settings))

    try:
        await asyncio.to_thread(mirror.append_booking_row, sheets_test_record())
    except Exception as e:
        logger.exception(f"[/api/sheets-test] Error appending row: {e}")
        return _sheets_failure(str(e))

    return {"ok": True, "message": "Successfully appended a test row to Google Sheets."}


@router.get("/messages")
async def messages_check():
    return {"ok": True, "message": "GET /api/messages reached successfully"}


@router.post("/messages", status_code=status.HTTP_201_CREATED)
async def messages_echo(request: Request):
    try:
        body = await request.json()
    except ValueError:
        body = None
    return {
        "ok": True,
        "message": "POST /api/messages reached successfully",
        "receivedBody": body,
    }
