"""
Phone-call intake for the voice assistant (Vapi).

The assistant calls POST /api/vapi/booking as a tool while it is on the
phone with the customer. The body is either a flat booking JSON or a
tool-call envelope:

    {
      "message": {
        "type": "tool-calls",
        "toolCallList": [
          {"id": "call_1", "function": {"name": "book_appointment",
                                         "arguments": {...} | "<json>"}}
        ],
        "call": {"id": "...", "customer": {"number": "+61400111222"}}
      }
    }

Every tool call gets a spoken sentence back in ``results`` so the assistant
can keep the conversation going; booking problems are not HTTP errors here.
"""

import json
import logging
import secrets
from dataclasses import dataclass, field
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .booking_service import IntakeOutcome, process_booking
from .booking_store import BookingStore
from .core.config import Settings, get_settings
from .core.responses import SlotConflictError, StoreUnavailableError
from .dependencies import get_booking_store, get_notifier, get_sheet_mirror
from .models import BookingRequest, BookingSource
from .rate_limiter import intake_rate_limit
from .sheets import SheetMirror
from .sms import Notifier

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["voice"])

BUSINESS_ID_KEYS = ("businessId", "business_id")
PHONE_KEYS = ("phone", "phoneNumber", "phone_number", "customerPhone", "customer_phone")
CALL_ID_KEYS = ("callId", "call_id")

FIELD_LABELS = {
    "name": "the caller's name",
    "customerName": "the caller's name",
    "customer_name": "the caller's name",
    "phone": "a phone number",
    "phoneNumber": "a phone number",
    "customerPhone": "a phone number",
    "businessId": "the business",
    "date": "the date",
    "time": "the time",
}


@dataclass
class ToolCall:
    id: Optional[str]
    name: Optional[str]
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class CallInfo:
    call_id: Optional[str] = None
    caller_number: Optional[str] = None


# ────────────────────────────────────────────────────────────────
# Payload Parsing
# ────────────────────────────────────────────────────────────────


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Tool call arguments are not valid JSON: {raw[:200]!r}")
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def extract_call_info(payload: dict[str, Any]) -> CallInfo:
    message = payload.get("message") if isinstance(payload.get("message"), dict) else {}
    call = message.get("call") or payload.get("call") or {}
    if not isinstance(call, dict):
        return CallInfo()
    customer = call.get("customer") if isinstance(call.get("customer"), dict) else {}
    return CallInfo(call_id=call.get("id"), caller_number=customer.get("number"))


def extract_tool_calls(payload: dict[str, Any]) -> list[ToolCall]:
    """Tool calls from the envelope, or the payload itself as one flat call."""
    message = payload.get("message")
    if isinstance(message, dict):
        raw_calls = message.get("toolCallList") or message.get("toolCalls") or []
        calls = []
        for raw in raw_calls:
            if not isinstance(raw, dict):
                continue
            function = raw.get("function") if isinstance(raw.get("function"), dict) else {}
            arguments = function.get("arguments", raw.get("arguments"))
            calls.append(ToolCall(
                id=raw.get("id"),
                name=function.get("name") or raw.get("name"),
                arguments=_parse_arguments(arguments),
            ))
        return calls

    flat = {key: value for key, value in payload.items() if key != "call"}
    return [ToolCall(id=None, name=None, arguments=flat)]


def build_booking_arguments(arguments: dict[str, Any], call: CallInfo, settings: Settings) -> dict[str, Any]:
    args = dict(arguments)
    if not any(args.get(key) for key in BUSINESS_ID_KEYS):
        args["businessId"] = settings.default_business_id
    if call.caller_number and not any(args.get(key) for key in PHONE_KEYS):
        args["phone"] = call.caller_number
    if call.call_id and not any(args.get(key) for key in CALL_ID_KEYS):
        args["callId"] = call.call_id
    args["source"] = BookingSource.PHONE.value
    return args


# ────────────────────────────────────────────────────────────────
# Spoken Results
# ────────────────────────────────────────────────────────────────


def describe_validation_error(error: ValidationError) -> str:
    missing = []
    for err in error.errors():
        if err["type"] == "missing" and err["loc"]:
            label = FIELD_LABELS.get(str(err["loc"][-1]), str(err["loc"][-1]))
            if label not in missing:
                missing.append(label)
    if missing:
        return f"I can't book that yet. I still need {' and '.join(missing)}."

    first = error.errors()[0]
    detail = str(first.get("msg", "")).removeprefix("Value error, ")
    return f"I can't book that yet. {detail}."


def describe_outcome(outcome: IntakeOutcome) -> str:
    record = outcome.record
    if record.date and record.time:
        what = f"{record.service} " if record.service else ""
        sentence = f"You're booked in. {record.name}, your {what}appointment is on {record.date} at {record.time}."
    else:
        sentence = f"Thanks {record.name}, I've passed your request on and the team will confirm a time with you."
    if outcome.customer_notified:
        sentence += " A confirmation text is on its way."
    return sentence


# ────────────────────────────────────────────────────────────────
# Security
# ────────────────────────────────────────────────────────────────


async def verify_vapi_secret(
    x_vapi_secret: Optional[str] = Header(None, alias="x-vapi-secret"),
    settings: Settings = Depends(get_settings),
) -> None:
    """Check the shared secret header when VAPI_SECRET is configured."""
    if not settings.vapi_secret:
        return None
    if not x_vapi_secret or not secrets.compare_digest(x_vapi_secret, settings.vapi_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid voice assistant secret",
        )
    return None


# ────────────────────────────────────────────────────────────────
# Endpoints
# ────────────────────────────────────────────────────────────────


async def handle_tool_call(
    tool_call: ToolCall,
    call: CallInfo,
    store: Optional[BookingStore],
    mirror: Optional[SheetMirror],
    notifier: Notifier,
    settings: Settings,
) -> tuple[bool, str, Optional[dict]]:
    """Returns (ok, sentence for the assistant, booking summary)."""
    args = build_booking_arguments(tool_call.arguments, call, settings)
    try:
        booking_request = BookingRequest.model_validate(args)
    except ValidationError as e:
        logger.info(f"Voice booking rejected (call={call.call_id}): {e.errors()}")
        return False, describe_validation_error(e), None

    try:
        outcome = await process_booking(booking_request, store, mirror, notifier, settings)
    except SlotConflictError as e:
        logger.info(f"Voice booking conflict for slot {e.booking_id} (call={call.call_id})")
        sentence = (
            f"Sorry, {booking_request.time} on {booking_request.date} is already taken. "
            "Could you choose another time?"
        )
        return False, sentence, {"bookingId": e.booking_id, "conflict": True}
    except StoreUnavailableError:
        logger.error("Voice booking failed: Firestore not initialized")
        return False, "Sorry, I can't save bookings right now. Please call back a little later.", None
    except Exception as e:
        logger.exception(f"Error processing voice booking (call={call.call_id}): {e}")
        return False, "Sorry, something went wrong while booking. Please try again.", None

    return True, describe_outcome(outcome), outcome.to_response()


@router.post(
    "/vapi/booking",
    dependencies=[Depends(verify_vapi_secret), Depends(intake_rate_limit)],
)
async def voice_booking(
    request: Request,
    store: Optional[BookingStore] = Depends(get_booking_store),
    mirror: Optional[SheetMirror] = Depends(get_sheet_mirror),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
):
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Body must be a JSON object")

    call = extract_call_info(payload)
    tool_calls = extract_tool_calls(payload)
    logger.info(f"Voice booking request: call={call.call_id}, tool_calls={len(tool_calls)}")

    results = []
    bookings = []
    all_ok = bool(tool_calls)
    for tool_call in tool_calls:
        ok, sentence, summary = await handle_tool_call(tool_call, call, store, mirror, notifier, settings)
        all_ok = all_ok and ok
        results.append({"toolCallId": tool_call.id, "result": sentence})
        if summary:
            bookings.append(summary)

    return JSONResponse(content={"ok": all_ok, "results": results, "bookings": bookings})


@router.get("/vapi-debug")
async def vapi_debug_get():
    return {
        "ok": True,
        "marker": "VAPI-DEBUG-GET",
        "message": "GET /api/vapi-debug is working",
    }


@router.post("/vapi-debug")
async def vapi_debug_post(request: Request):
    """Echo whatever the voice assistant sends, for wiring up tools."""
    raw_body = ""
    try:
        raw_body = (await request.body()).decode("utf-8", errors="replace")
    except Exception as e:
        logger.error(f"[/api/vapi-debug] Failed to read body: {e}")

    logger.info(f"[/api/vapi-debug] RAW BODY: {raw_body or '<empty>'}")

    parsed: Any = {}
    if raw_body:
        try:
            parsed = json.loads(raw_body)
        except json.JSONDecodeError:
            parsed = {"rawBody": raw_body}

    logger.info(f"[/api/vapi-debug] PARSED BODY: {parsed}")

    return {
        "ok": True,
        "marker": "VAPI-DEBUG-POST",
        "message": "Debug echo from /api/vapi-debug",
        "received": parsed,
    }
