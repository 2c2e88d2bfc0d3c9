import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return float(value)


# "production" enables real delivery and bot-score verification; anything else is log-only
APP_ENV = os.getenv("APP_ENV", "production")
IS_PRODUCTION = APP_ENV.lower() == "production"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# SMTP relay - missing host, user or password leaves email delivery unconfigured
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
SMTP_FROM = os.getenv("SMTP_FROM", "")
SMTP_TIMEOUT_SECONDS = float(os.getenv("SMTP_TIMEOUT_SECONDS", "30"))

# Where form notifications are delivered
NOTIFICATION_EMAIL = os.getenv("NOTIFICATION_EMAIL") or SMTP_USER or "test@example.com"
SUPPORT_EMAIL = os.getenv("SUPPORT_EMAIL", "support@carlora.com")

# Google reCAPTCHA v3
RECAPTCHA_SECRET_KEY = os.getenv("RECAPTCHA_SECRET_KEY")
# Falls back to Google's public test key so the frontend widget still loads in development
RECAPTCHA_SITE_KEY = os.getenv("RECAPTCHA_SITE_KEY", "6LeIxAcTAAAAAJcZVRqyHh71UMIEGNQ_MXjiZKhI")
RECAPTCHA_MIN_SCORE = _optional_float("RECAPTCHA_MIN_SCORE")
RECAPTCHA_TIMEOUT_SECONDS = float(os.getenv("RECAPTCHA_TIMEOUT_SECONDS", "10"))

# Rate limiting (per client IP)
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "10"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
# Optional - counters stay in memory when unset
REDIS_URL = os.getenv("REDIS_URL")
