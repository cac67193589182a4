"""
Environment configuration.
Values come from environment variables or a .env file, with defaults
suitable for local development.
"""
from decimal import Decimal
from functools import lru_cache

from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    APP_NAME: str = "Hotel Booking API"
    ENVIRONMENT: str = "development"

    # Security
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Hotel defaults seeded into the settings store
    HOTEL_NAME: str = "LuxuryStay"
    CURRENCY: str = "Rs"
    TAX_PERCENT: Decimal = Field(default=Decimal("10"), ge=0, le=100)

    # Booking numbers: prefix + zero-padded sequence
    BOOKING_NUMBER_PREFIX: str = "LS"
    BOOKING_NUMBER_WIDTH: int = Field(default=6, ge=1)

    # Refund policy; off means refunds are not checked against payments
    CAP_REFUNDS_AT_PAYMENTS: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "standard"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @validator("LOG_FORMAT")
    def validate_log_format(cls, v):
        if v not in ("standard", "json"):
            raise ValueError("LOG_FORMAT must be 'standard' or 'json'")
        return v

    @validator("LOG_LEVEL")
    def normalize_log_level(cls, v):
        return v.upper()

    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
