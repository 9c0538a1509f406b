"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly. Business constants that the order
engine depends on (flat tax rate, paid tolerance, loyalty defaults) live here
too so every terminal reads the same values.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Shared store
    database_url: str = "sqlite:///./data/dinepos.db"

    # Security
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 720  # one service day

    # Restaurant-local timezone, used for the daily KOT counter key
    timezone: str = "Asia/Kolkata"

    # Seeded when the staff list is empty; cannot be removed
    super_admin_id: str = "ADMIN123"
    super_admin_name: str = "Super Admin"
    super_admin_pin: str = "1234"

    # ==========================================================================
    # Billing
    # ==========================================================================
    tax_rate: Decimal = Decimal("0.05")
    paid_epsilon: Decimal = Decimal("0.01")

    # ==========================================================================
    # Loyalty programme defaults (seeded into the settings row on first use)
    # ==========================================================================
    loyalty_enabled: bool = True
    loyalty_earning_rate: Decimal = Decimal("100")  # currency spent per point
    loyalty_redemption_value: Decimal = Decimal("1")  # currency value of one point
    loyalty_min_points_to_redeem: int = 10
    loyalty_min_order_value_to_redeem: Decimal = Decimal("0")
    loyalty_expiry_months: int = 12

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # Rate limiting
    rate_limit_enabled: bool = True

    @field_validator("tax_rate")
    @classmethod
    def validate_tax_rate(cls, v: Decimal) -> Decimal:
        if v < 0 or v >= 1:
            raise ValueError(f"tax_rate must be a fraction in [0, 1), got {v}")
        return v

    @field_validator("loyalty_earning_rate", "loyalty_redemption_value")
    @classmethod
    def validate_loyalty_rates(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("loyalty rates must be positive")
        return v

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Refuse to run outside debug mode with the default secret key."""
        if not self.debug and self.secret_key == "change-me-in-production":
            raise ValueError(
                "FATAL: Cannot start in production mode with default SECRET_KEY. "
                "Set a secure SECRET_KEY environment variable (minimum 32 characters)."
            )
        return self

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
