"""
SMS notifications using Twilio Programmable SMS.
"""

import asyncio
import logging
import re
from typing import Optional

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from .core.config import Settings, get_settings
from .models import BookingRecord, BookingStatus

logger = logging.getLogger(__name__)

_E164_PATTERN = re.compile(r"\+\d{8,15}")


def normalize_phone(phone: Optional[str], default_country_code: str = "+61") -> Optional[str]:
    """
    Normalize a phone number to E.164 (+61400111222).

    National numbers with a leading trunk 0 get the default country code.
    Returns None if the result is not a plausible E.164 number.
    """
    if not phone:
        return None

    # Remove spaces, dashes, dots, parentheses
    cleaned = re.sub(r"[\s\-().]", "", phone)

    if cleaned.startswith("00"):
        cleaned = f"+{cleaned[2:]}"
    elif not cleaned.startswith("+"):
        if default_country_code == "+1" and cleaned.startswith("1") and len(cleaned) == 11:
            cleaned = f"+{cleaned}"
        elif cleaned.startswith("0"):
            cleaned = f"{default_country_code}{cleaned[1:]}"
        else:
            cleaned = f"{default_country_code}{cleaned}"

    if not _E164_PATTERN.fullmatch(cleaned):
        return None
    return cleaned


def mask_phone(phone: str) -> str:
    return f"{phone[:6]}***"


async def send_sms(to_phone: str, body: str, settings: Optional[Settings] = None) -> bool:
    """
    Send an SMS using Twilio.

    Args:
        to_phone: Destination number, normalized to E.164 here
        body: SMS message body

    Returns:
        True if SMS was sent successfully, False otherwise

    Note:
        Never raises: a failed SMS must not fail the booking.
    """
    settings = settings or get_settings()
    try:
        if not settings.twilio_configured:
            logger.warning("Twilio SMS not configured. Skipping SMS send.")
            return False

        to_phone_formatted = normalize_phone(to_phone, settings.sms_default_country_code)
        from_number_formatted = normalize_phone(settings.twilio_from_number, settings.sms_default_country_code)

        if not to_phone_formatted:
            logger.error(f"Invalid phone number format: {to_phone}")
            return False

        client = Client(settings.twilio_account_sid, settings.twilio_auth_token)

        # The Twilio client is blocking
        message = await asyncio.to_thread(
            client.messages.create,
            body=body,
            from_=from_number_formatted,
            to=to_phone_formatted,
        )

        logger.info(f"SMS sent successfully to {mask_phone(to_phone_formatted)}. SID: {message.sid}")
        return True

    except TwilioRestException as e:
        logger.error(f"Twilio API error sending SMS to {mask_phone(to_phone)}: {e.code} - {e.msg}")
        return False
    except Exception as e:
        logger.exception(f"Unexpected error sending SMS to {mask_phone(to_phone)}: {e}")
        return False


def describe_slot(record: BookingRecord) -> str:
    service = record.service or "appointment"
    if record.date and record.time:
        return f"{service} on {record.date} at {record.time}"
    return service


class Notifier:
    """Owner and customer SMS for new bookings."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    async def notify_owner(self, record: BookingRecord) -> bool:
        if not self.settings.owner_phone_number:
            logger.warning("OWNER_PHONE_NUMBER not set. Skipping owner SMS.")
            return False

        body = f"New booking: {record.name} ({record.phone}) - {describe_slot(record)}."
        if record.status == BookingStatus.PENDING:
            body = f"New booking request: {record.name} ({record.phone}) - {describe_slot(record)}. No time chosen yet."
        if record.notes:
            body += f" Notes: {record.notes}"
        return await send_sms(self.settings.owner_phone_number, body, self.settings)

    async def notify_customer(self, record: BookingRecord) -> bool:
        """SMS the caller, but only for reserved slots and reachable numbers."""
        if not self.settings.sms_notify_customer:
            return False
        if record.status != BookingStatus.BOOKED:
            return False

        country = self.settings.sms_default_country_code
        customer = normalize_phone(record.phone, country)
        if not customer:
            logger.warning(f"Customer phone {record.phone!r} is not a valid number. Skipping customer SMS.")
            return False
        if customer == normalize_phone(self.settings.owner_phone_number, country):
            return False

        body = (
            f"Hi {record.name}, your {describe_slot(record)} with "
            f"{self.settings.business_name} is booked. Reply to this message if you need to change it."
        )
        return await send_sms(customer, body, self.settings)
