"""
Tests for the Google Sheets mirror with a mocked Sheets v4 service.
"""

from unittest.mock import MagicMock

import pytest

from receptionist.core.config import Settings
from receptionist.models import BookingRecord, BookingStatus
from receptionist.sheets import (
    SheetMirror,
    SheetsConfigError,
    build_sheet_mirror,
    sheets_config_status,
)

SHEETS_ENV_VARS = (
    "GOOGLE_SHEETS_ID", "GOOGLE_SHEET_ID", "SPREADSHEET_ID", "SHEET_ID",
    "GOOGLE_CLIENT_EMAIL", "GOOGLE_SERVICE_ACCOUNT_EMAIL",
    "GOOGLE_PRIVATE_KEY", "GOOGLE_SERVICE_ACCOUNT_KEY",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in SHEETS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def make_service(rows=None) -> MagicMock:
    service = MagicMock()
    values = service.spreadsheets.return_value.values.return_value
    values.get.return_value.execute.return_value = {"values": rows or []}
    return service


def make_record() -> BookingRecord:
    return BookingRecord(
        business_id="demo-barbershop",
        name="Jane",
        phone="+61400111222",
        service="Haircut",
        date="2030-01-02",
        time="15:00",
        status=BookingStatus.BOOKED,
        created_at="2030-01-01T00:00:00+00:00",
        updated_at="2030-01-01T00:00:00+00:00",
    )


def test_append_booking_row_writes_sheet_columns():
    service = make_service()
    mirror = SheetMirror(service, "sheet-123", "Bookings!A:F")

    mirror.append_booking_row(make_record())

    values = service.spreadsheets.return_value.values.return_value
    values.append.assert_called_once_with(
        spreadsheetId="sheet-123",
        range="Bookings!A:F",
        valueInputOption="USER_ENTERED",
        body={"values": [["Jane", "+61400111222", "Haircut", "2030-01-02", "15:00", "booked"]]},
    )
    values.append.return_value.execute.assert_called_once()


def test_find_slot_row_skips_header_and_cancelled_rows():
    rows = [
        ["Name", "Phone", "Service", "Date", "Time", "Status"],
        ["Old", "+61400000001", "Cut", "2030-01-02", "15:00", "cancelled"],
        ["Sam", "+61400000002", "Cut", "2030-01-02", "15:00", "booked"],
    ]
    mirror = SheetMirror(make_service(rows), "sheet-123")

    assert mirror.find_slot_row("2030-01-02", "15:00")[0] == "Sam"


def test_find_slot_row_matches_unpadded_times():
    rows = [
        ["Name", "Phone", "Service", "Date", "Time", "Status"],
        ["Sam", "+61400000002", "Cut", "2030-01-02", "9:00", "booked"],
    ]
    mirror = SheetMirror(make_service(rows), "sheet-123")

    assert mirror.find_slot_row("2030-01-02", "09:00") is not None
    assert mirror.find_slot_row("2030-01-02", "10:00") is None


def test_find_slot_row_tolerates_short_rows():
    rows = [["Name"], ["Sam", "+61400000002"], []]
    mirror = SheetMirror(make_service(rows), "sheet-123")

    assert mirror.find_slot_row("2030-01-02", "09:00") is None


def test_config_status_reports_env_var_names(clean_env):
    clean_env.setenv("SHEET_ID", "sheet-123")
    clean_env.setenv("GOOGLE_SERVICE_ACCOUNT_EMAIL", "bot@example.iam.gserviceaccount.com")

    status = sheets_config_status(Settings(_env_file=None), env_files=())

    assert status == {
        "hasSpreadsheetId": True,
        "hasClientEmail": True,
        "hasPrivateKey": False,
        "spreadsheetIdVar": "SHEET_ID",
        "clientEmailVar": "GOOGLE_SERVICE_ACCOUNT_EMAIL",
        "privateKeyVar": "NONE",
    }


def test_config_status_reports_env_file_var_names(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "GOOGLE_SHEET_ID=sheet-123\n"
        "GOOGLE_CLIENT_EMAIL=bot@example.iam.gserviceaccount.com\n"
        "GOOGLE_PRIVATE_KEY=\"-----BEGIN KEY-----\\nabc\\n-----END KEY-----\"\n"
    )

    status = sheets_config_status(Settings(_env_file=env_file), env_files=(env_file,))

    assert status == {
        "hasSpreadsheetId": True,
        "hasClientEmail": True,
        "hasPrivateKey": True,
        "spreadsheetIdVar": "GOOGLE_SHEET_ID",
        "clientEmailVar": "GOOGLE_CLIENT_EMAIL",
        "privateKeyVar": "GOOGLE_PRIVATE_KEY",
    }


def test_build_sheet_mirror_requires_configuration(clean_env):
    with pytest.raises(SheetsConfigError) as exc_info:
        build_sheet_mirror(Settings(_env_file=None))

    assert exc_info.value.status["hasSpreadsheetId"] is False


def test_private_key_alias_is_unescaped(clean_env):
    clean_env.setenv("GOOGLE_SERVICE_ACCOUNT_KEY", "-----BEGIN KEY-----\\nabc\\n-----END KEY-----")

    settings = Settings(_env_file=None)

    assert settings.google_private_key_pem == "-----BEGIN KEY-----\nabc\n-----END KEY-----"
