"""Runtime configuration loaded from environment variables."""

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

# Load environment variables from .env (for local development)
load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str
    max_daily_spots: int
    daily_rate_cents: int
    currency: str
    lot_timezone: str
    checkout_hour: int

    stripe_secret_key: str | None
    stripe_webhook_secret: str | None

    twilio_account_sid: str | None
    twilio_auth_token: str | None
    twilio_phone_number: str | None
    partner_sms_number: str

    email_webhook_secret: str
    cron_secret: str

    site_url: str
    google_review_url: str
    business_name: str
    business_phone: str
    business_address: str
    gate_code: str

    enable_scheduler: bool
    cors_origins: tuple[str, ...]

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./apex_parking.db"),
            max_daily_spots=_env_int("MAX_DAILY_SPOTS", 4),
            daily_rate_cents=_env_int("DAILY_RATE_CENTS", 2000),
            currency=os.getenv("CURRENCY", "usd"),
            lot_timezone=os.getenv("LOT_TIMEZONE", "America/New_York"),
            checkout_hour=_env_int("CHECKOUT_HOUR", 12),
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET"),
            twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID"),
            twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN"),
            twilio_phone_number=os.getenv("TWILIO_PHONE_NUMBER"),
            partner_sms_number=os.getenv("PARTNER_SMS_NUMBER", "+12058523087"),
            email_webhook_secret=os.getenv("EMAIL_WEBHOOK_SECRET", ""),
            cron_secret=os.getenv("CRON_SECRET", ""),
            site_url=os.getenv("SITE_URL", "https://apextruckparking.com").rstrip("/"),
            google_review_url=os.getenv(
                "GOOGLE_REVIEW_URL",
                "https://g.page/r/CdoDNoSfz0r6EAI/review",
            ),
            business_name=os.getenv("BUSINESS_NAME", "Apex Truck Parking"),
            business_phone=os.getenv("BUSINESS_PHONE", "(470) 838-2281"),
            business_address=os.getenv(
                "BUSINESS_ADDRESS",
                "6759 Marbut Rd, Lithonia, GA 30058",
            ),
            gate_code=os.getenv("GATE_CODE", "1234"),
            enable_scheduler=_env_bool("ENABLE_SCHEDULER", True),
            cors_origins=tuple(
                origin.strip()
                for origin in os.getenv("CORS_ORIGINS", "*").split(",")
                if origin.strip()
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return process-wide settings. Call `get_settings.cache_clear()` after changing env."""
    return Settings.from_env()
