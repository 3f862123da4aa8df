# backend/petstay/core/config.py
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment")
    is_testing: bool = Field(default=False, description="Set by the test harness")

    database_url: str = Field(
        default="sqlite:///./petstay.db",
        alias="DATABASE_URL",
        description="SQLAlchemy database URL",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")

    # Bookings
    booking_timezone: str = Field(
        default="UTC",
        description="Time zone used to resolve start-of-day for stays",
    )
    order_number_prefix: str = Field(
        default="PF",
        description="Prefix for generated order numbers (2-4 uppercase letters)",
    )
    entity_lock_timeout_seconds: float = Field(
        default=30.0,
        description="Seconds to wait for a booking/wallet mutex before giving up",
    )

    # Refund policy
    full_refund_notice_hours: int = Field(
        default=48,
        description="Cancellations strictly earlier than this get a full refund",
    )
    late_cancel_refund_rate: str = Field(
        default="0.7",
        description="Refund rate applied inside the notice window and after check-in",
    )

    # Wallet
    wallet_seed_balance_cents: int = Field(
        default=10000,
        description="Balance granted to a wallet when it is first opened",
    )
    withdrawal_fee_rate_bps: int = Field(
        default=100,
        description="Withdrawal fee in basis points (100 = 1%)",
    )
    withdrawal_min_fee_cents: int = Field(
        default=100,
        description="Minimum withdrawal fee in minor units",
    )
    recharge_order_ttl_minutes: int = Field(
        default=30,
        description="Minutes a recharge order stays valid",
    )

    # Use ConfigDict instead of Config class (Pydantic V2 style)
    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("order_number_prefix")
    @classmethod
    def _validate_prefix(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not (2 <= len(cleaned) <= 4) or not cleaned.isalpha() or not cleaned.isupper():
            raise ValueError("order_number_prefix must be 2-4 uppercase letters")
        return cleaned

    @field_validator("booking_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            pytz.timezone(value)
        except pytz.UnknownTimeZoneError as exc:
            raise ValueError(f"Unknown time zone: {value}") from exc
        return value

    @field_validator("wallet_seed_balance_cents", "withdrawal_min_fee_cents")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("value must be non-negative")
        return value

    @property
    def booking_tz(self) -> pytz.BaseTzInfo:
        return pytz.timezone(self.booking_timezone)


settings = Settings()
