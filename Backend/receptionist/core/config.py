from functools import lru_cache
from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    allowed_origins: str = Field(default="*", alias="ALLOWED_ORIGINS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    business_name: str = Field(default="AI Receptionist", alias="BUSINESS_NAME")
    default_business_id: str = Field(default="demo-barbershop", alias="DEFAULT_BUSINESS_ID")
    business_timezone: str = Field(default="Australia/Sydney", alias="BUSINESS_TIMEZONE")

    # Firestore
    firestore_bookings_collection: str = Field(default="bookings", alias="FIRESTORE_BOOKINGS_COLLECTION")
    firebase_project_id: str = Field(default="", alias="FIREBASE_PROJECT_ID")
    firebase_client_email: str = Field(default="", alias="FIREBASE_CLIENT_EMAIL")
    firebase_private_key: str = Field(default="", alias="FIREBASE_PRIVATE_KEY")

    # Google Sheets (a few common env var names are accepted)
    google_sheets_id: str = Field(
        default="",
        validation_alias=AliasChoices("GOOGLE_SHEETS_ID", "GOOGLE_SHEET_ID", "SPREADSHEET_ID", "SHEET_ID"),
    )
    google_client_email: str = Field(
        default="",
        validation_alias=AliasChoices("GOOGLE_CLIENT_EMAIL", "GOOGLE_SERVICE_ACCOUNT_EMAIL"),
    )
    google_private_key: str = Field(
        default="",
        validation_alias=AliasChoices("GOOGLE_PRIVATE_KEY", "GOOGLE_SERVICE_ACCOUNT_KEY"),
    )
    google_sheets_range: str = Field(default="Bookings!A:F", alias="GOOGLE_SHEETS_RANGE")
    sheets_conflict_check: bool = Field(default=False, alias="SHEETS_CONFLICT_CHECK")

    # Twilio SMS
    twilio_account_sid: str = Field(default="", alias="TWILIO_ACCOUNT_SID")
    twilio_auth_token: str = Field(default="", alias="TWILIO_AUTH_TOKEN")
    twilio_from_number: str = Field(default="", alias="TWILIO_FROM_NUMBER")
    owner_phone_number: str = Field(default="", alias="OWNER_PHONE_NUMBER")
    sms_default_country_code: str = Field(default="+61", alias="SMS_DEFAULT_COUNTRY_CODE")
    sms_notify_customer: bool = Field(default=True, alias="SMS_NOTIFY_CUSTOMER")

    vapi_secret: str = Field(default="", alias="VAPI_SECRET")
    intake_rate_limit_per_minute: int = Field(default=30, alias="INTAKE_RATE_LIMIT_PER_MINUTE")

    model_config = SettingsConfigDict(
        env_file=(".env", "Backend/.env", "backend/.env"),
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def allowed_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def firebase_private_key_pem(self) -> str:
        # Keys pasted into env vars keep their newlines escaped
        return self.firebase_private_key.replace("\\n", "\n")

    @property
    def google_private_key_pem(self) -> str:
        return self.google_private_key.replace("\\n", "\n")

    @property
    def firebase_configured(self) -> bool:
        return bool(self.firebase_project_id and self.firebase_client_email and self.firebase_private_key)

    @property
    def twilio_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_from_number)


@lru_cache
def get_settings() -> Settings:
    return Settings()
