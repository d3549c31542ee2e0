from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str

    # JWT
    secret_key: str
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Bootstrap admin account (created on startup if missing)
    admin_email: str = ""
    admin_password: str = ""

    # Availability policy. Rule labels are wall-clock times in business_timezone.
    business_timezone: str = "America/Toronto"
    booking_lead_time_hours: int = 2
    consultation_duration_minutes: int = 15
    max_availability_range_days: int = 93

    # Shared secret for the keep-alive endpoint; empty disables it
    cron_secret: str = ""

    # Env
    env: str = "development"

    # Email (SMTP). Leave smtp_host empty to disable sending.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = "Dayspring Booking"
    # Receives new-booking notices; falls back to from_email, then contact_email
    admin_notification_email: str = ""
    email_logo_url: str = ""
    # Branding, contact and links
    site_name: str = "Dayspring Behavioural Therapeutic Services"
    site_url: str = "http://localhost:3000"
    contact_email: str = "info@dayspringaba.ca"
    calendar_uid_domain: str = "dayspringaba.ca"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.from_email)

    @property
    def notification_recipient(self) -> str:
        return self.admin_notification_email or self.from_email or self.contact_email


settings = Settings()
