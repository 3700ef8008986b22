import logging
import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

# Required: fails fast if missing
API_KEY: str = os.environ["API_KEY"]

APP_ENV: str = os.getenv("APP_ENV", "development")
PORT: int = int(os.getenv("PORT", "8000"))
CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Defaults for the admin-editable platform settings. The live values are held
# by the settings provider and may be changed at runtime.
DEFAULT_PLATFORM_FEE_PERCENT: Decimal = Decimal(os.getenv("DEFAULT_PLATFORM_FEE_PERCENT", "5"))
DEFAULT_MIN_DONATION: Decimal = Decimal(os.getenv("DEFAULT_MIN_DONATION", "100"))
DEFAULT_MIN_NET_AMOUNT: Decimal = Decimal(os.getenv("DEFAULT_MIN_NET_AMOUNT", "50"))
DEFAULT_CHANNEL_LIMIT: Decimal = Decimal(os.getenv("DEFAULT_CHANNEL_LIMIT", "100000"))
DEFAULT_DECISION_WINDOW_DAYS: int = int(os.getenv("DEFAULT_DECISION_WINDOW_DAYS", "14"))
DEFAULT_MIN_CAMPAIGN_DAYS_REMAINING: int = int(os.getenv("DEFAULT_MIN_CAMPAIGN_DAYS_REMAINING", "7"))
DEFAULT_MINIMUM_REFUND_AMOUNT: Decimal = Decimal(os.getenv("DEFAULT_MINIMUM_REFUND_AMOUNT", "50"))
DEFAULT_EXPIRATION_GRACE_DAYS: int = int(os.getenv("DEFAULT_EXPIRATION_GRACE_DAYS", "7"))


def is_production() -> bool:
    return APP_ENV == "production"


def get_cors_origins() -> list[str]:
    if not CORS_ORIGINS:
        return []
    return [origin.strip() for origin in CORS_ORIGINS.split(",") if origin.strip()]


def configure_logging() -> None:
    """Configure root logging once; access logs are emitted as JSON by the middleware."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
