"""
Application Configuration — Environment & Settings
Centralizes all config from .env with Pydantic Settings for validation.
"""
from pathlib import Path
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings

# Resolve paths relative to backend/ directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Core ---
    APP_NAME: str = "CourseHub Marketplace API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development | test | production
    SERVER_URL: str = "http://localhost:8000"

    # --- Database ---
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'coursehub.db'}"

    # --- Security ---
    JWT_SECRET: str = "coursehub-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_MINUTES: int = 7 * 24 * 60
    BCRYPT_ROUNDS: int = 12
    ALLOW_STUDENT_PASSWORD_LOGIN: bool = False
    CORS_ORIGINS: list[str] = ["*"]

    # --- OTP ---
    OTP_EXPIRY_MINUTES: int = 5
    OTP_MAX_REQUESTS: int = 5
    OTP_WINDOW_MINUTES: int = 5

    # --- Payment gateway (PayU) ---
    PAYU_MERCHANT_KEY: Optional[str] = None
    PAYU_SALT: Optional[str] = None
    PAYU_BASE_URL: Optional[str] = None
    PAYU_SUCCESS_URL: Optional[str] = None
    PAYU_FAILURE_URL: Optional[str] = None
    PAYU_CANCEL_URL: Optional[str] = None
    PAYMENT_CURRENCY: str = "INR"
    IDEMPOTENCY_BUCKET_SECONDS: int = 60

    # --- Maintenance ---
    TRANSACTION_RETENTION_DAYS: int = 90
    CLEANUP_INTERVAL_HOURS: float = 6.0

    # --- File storage ---
    STORAGE_BACKEND: str = "local"  # local | s3
    UPLOAD_DIR: str = str(BASE_DIR / "uploads")
    MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024
    S3_BUCKET: Optional[str] = None
    AWS_REGION: Optional[str] = None

    # --- SMS (Twilio) ---
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_FROM_NUMBER: Optional[str] = None
    TWILIO_BASE_URL: str = "https://api.twilio.com"
    SMS_TIMEOUT_SECONDS: float = 10.0

    # --- Logging ---
    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def payment_callback_url(self) -> str:
        return f"{self.SERVER_URL.rstrip('/')}/api/payment/callback"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
