"""
Application Configuration — Environment & Settings
Centralizes all config from .env with Pydantic Settings for validation.
"""
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings

# Resolve paths relative to backend/ directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Core ---
    APP_NAME: str = "PeopleMetrics HR Analytics API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # --- Database ---
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'peoplemetrics.db'}"

    # --- M-Pesa (Daraja) ---
    MPESA_BASE_URL: str = "https://sandbox.safaricom.co.ke"
    MPESA_CONSUMER_KEY: str = ""
    MPESA_CONSUMER_SECRET: str = ""
    MPESA_SHORTCODE: str = "174379"
    MPESA_PASSKEY: str = "bfb279f9aa9bdbcf158e97dd71a467cd2e0c893059b10f78e6b72ada1ed2c919"
    MPESA_CALLBACK_URL: str = "http://localhost:8000/api/mpesa/callback"
    MPESA_ACCOUNT_REFERENCE: str = "PeopleMetrics"
    MPESA_HTTP_TIMEOUT: float = 30.0
    MPESA_TOKEN_REFRESH_MARGIN: int = 60   # seconds before expiry to refetch

    # --- Checkout polling (client side) ---
    POLL_INITIAL_DELAY_SECONDS: float = 3.0
    POLL_INTERVAL_SECONDS: float = 5.0
    POLL_MAX_ATTEMPTS: int = 24
    CHECKOUT_TIMEOUT_SECONDS: int = 120

    # --- Plans (price per interval, whole KES) ---
    PLAN_PRICES: dict[str, dict[str, int]] = {
        "Basic": {"month": 20, "year": 200},
        "Pro": {"month": 50, "year": 500},
        "Enterprise": {"month": 70, "year": 700},
    }

    # --- AI / Reports ---
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash-latest"
    REPORT_MAX_OUTPUT_TOKENS: int = 2500

    # --- Security ---
    CORS_ORIGINS: list[str] = ["*"]
    STK_PUSH_RATE_LIMIT: int = 5
    STK_PUSH_RATE_WINDOW: int = 60

    # --- Logging ---
    LOG_DIR: str = str(BASE_DIR / "logs")

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
