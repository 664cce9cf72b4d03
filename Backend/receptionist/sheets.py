"""
Google Sheets mirror for bookings.

Appends to the Bookings tab using a service account.
Columns: Name | Phone | Service | Date | Time | Status
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional, Sequence

from dotenv import dotenv_values
from google.oauth2 import service_account
from googleapiclient.discovery import build

from .core.config import Settings
from .models import BookingRecord, BookingStatus

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

SPREADSHEET_ID_VARS = ("GOOGLE_SHEETS_ID", "GOOGLE_SHEET_ID", "SPREADSHEET_ID", "SHEET_ID")
CLIENT_EMAIL_VARS = ("GOOGLE_CLIENT_EMAIL", "GOOGLE_SERVICE_ACCOUNT_EMAIL")
PRIVATE_KEY_VARS = ("GOOGLE_PRIVATE_KEY", "GOOGLE_SERVICE_ACCOUNT_KEY")

# Column positions in the sheet layout
DATE_COLUMN = 3
TIME_COLUMN = 4
STATUS_COLUMN = 5


class SheetsConfigError(Exception):
    """Raised when spreadsheet id or service-account credentials are missing."""

    def __init__(self, status: dict[str, Any]):
        super().__init__(f"Missing Google Sheets env vars: {status}")
        self.status = status


def _configured_env(env_files: Sequence[str]) -> dict[str, str]:
    """Process environment layered over the .env files Settings reads."""
    values: dict[str, str] = {}
    for path in env_files:
        if Path(path).is_file():
            values.update({name: value for name, value in dotenv_values(path).items() if value})
    values.update(os.environ)
    return values


def _env_var_in_use(names: tuple[str, ...], env: dict[str, str]) -> str:
    for name in names:
        if env.get(name):
            return name
    return "NONE"


def sheets_config_status(settings: Settings, env_files: Optional[Sequence[str]] = None) -> dict[str, Any]:
    """Which Sheets settings are present and which env var supplied each."""
    if env_files is None:
        env_files = Settings.model_config.get("env_file") or ()
    if isinstance(env_files, (str, Path)):
        env_files = (env_files,)
    env = _configured_env(env_files)
    return {
        "hasSpreadsheetId": bool(settings.google_sheets_id),
        "hasClientEmail": bool(settings.google_client_email),
        "hasPrivateKey": bool(settings.google_private_key),
        "spreadsheetIdVar": _env_var_in_use(SPREADSHEET_ID_VARS, env),
        "clientEmailVar": _env_var_in_use(CLIENT_EMAIL_VARS, env),
        "privateKeyVar": _env_var_in_use(PRIVATE_KEY_VARS, env),
    }


class SheetMirror:
    def __init__(self, service: Any, spreadsheet_id: str, range_: str = "Bookings!A:F"):
        self.service = service
        self.spreadsheet_id = spreadsheet_id
        self.range = range_

    def append_booking_row(self, record: BookingRecord) -> None:
        # businessId is not part of the sheet layout
        values = [[
            record.name,
            record.phone,
            record.service or "",
            record.date or "",
            record.time or "",
            record.status.value,
        ]]
        self.service.spreadsheets().values().append(
            spreadsheetId=self.spreadsheet_id,
            range=self.range,
            valueInputOption="USER_ENTERED",
            body={"values": values},
        ).execute()
        logger.info(f"Appended booking row for {record.date} {record.time} to sheet")

    def find_slot_row(self, date: str, time: str) -> Optional[list[str]]:
        """Return the first active row booked for the same date and time."""
        result = self.service.spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=self.range,
        ).execute()
        rows = result.get("values", [])

        for row in rows[1:]:  # header row
            if len(row) <= TIME_COLUMN:
                continue
            status = row[STATUS_COLUMN].strip().lower() if len(row) > STATUS_COLUMN else ""
            if status == BookingStatus.CANCELLED.value:
                continue
            if row[DATE_COLUMN].strip() == date and _same_time(row[TIME_COLUMN], time):
                return row
        return None


def _same_time(cell: str, time: str) -> bool:
    # Sheets may render USER_ENTERED times as "9:00" rather than "09:00"
    cell = cell.strip()
    if cell == time:
        return True
    parts = cell.split(":")
    if len(parts) < 2 or not parts[0].isdigit() or not parts[1][:2].isdigit():
        return False
    return f"{int(parts[0]):02d}:{parts[1][:2]}" == time


def build_sheet_mirror(settings: Settings) -> SheetMirror:
    """
    Build a Sheets v4 client for the configured spreadsheet.

    Raises:
        SheetsConfigError: spreadsheet id or credentials are missing
    """
    status = sheets_config_status(settings)
    if not (status["hasSpreadsheetId"] and status["hasClientEmail"] and status["hasPrivateKey"]):
        raise SheetsConfigError(status)

    credentials = service_account.Credentials.from_service_account_info(
        {
            "type": "service_account",
            "client_email": settings.google_client_email,
            "private_key": settings.google_private_key_pem,
            "token_uri": "https://oauth2.googleapis.com/token",
        },
        scopes=SCOPES,
    )
    service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
    return SheetMirror(service, settings.google_sheets_id, settings.google_sheets_range)
