"""
Runtime configuration getters.

Every value is read from the environment at call time (``.env`` is loaded by
``app.db`` via python-dotenv) so tests can patch ``os.environ`` without
reloading modules.

Environment variables
---------------------
FORM_UPLOADS_BUCKET   Supabase Storage bucket for attachments (default: "form-uploads").
RATE_LIMIT_PER_HOUR   Accepted submissions per table per clock hour (default: 20).
FORM_TIMEZONE         IANA zone for hour buckets and timestamps (default: "Europe/Madrid").
RESEND_API_KEY        Resend API key used to send notification emails.
MAIL_FROM_ADDRESS     Sender address for notifications (default: "forms@formrelay.app").
MAIL_DAILY_QUOTA      Emails allowed per day (default: 100).
ALERT_EMAIL           Operator address that receives processing-error alerts.
ADMIN_API_KEY         Shared key for the table export endpoint (X-Admin-Key header).
"""

import logging
import os
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_UPLOADS_BUCKET = "form-uploads"
DEFAULT_RATE_LIMIT_PER_HOUR = 20
DEFAULT_TIMEZONE = "Europe/Madrid"
DEFAULT_MAIL_FROM_ADDRESS = "forms@formrelay.app"
DEFAULT_MAIL_DAILY_QUOTA = 100


def _get_int(name: str, default: int) -> int:
    """Parse an integer env var, falling back to ``default`` on blank or garbage."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}, using {default}")
        return default


def get_uploads_bucket() -> str:
    return os.getenv("FORM_UPLOADS_BUCKET", "").strip() or DEFAULT_UPLOADS_BUCKET


def get_rate_limit_per_hour() -> int:
    return _get_int("RATE_LIMIT_PER_HOUR", DEFAULT_RATE_LIMIT_PER_HOUR)


def get_timezone() -> ZoneInfo:
    """Return the configured zone; unknown names fall back to the default."""
    name = os.getenv("FORM_TIMEZONE", "").strip() or DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        logger.warning(f"Unknown FORM_TIMEZONE {name!r}, using {DEFAULT_TIMEZONE}")
        return ZoneInfo(DEFAULT_TIMEZONE)


def get_resend_api_key() -> Optional[str]:
    return os.getenv("RESEND_API_KEY", "").strip() or None


def get_mail_from_address() -> str:
    return os.getenv("MAIL_FROM_ADDRESS", "").strip() or DEFAULT_MAIL_FROM_ADDRESS


def get_mail_daily_quota() -> int:
    return _get_int("MAIL_DAILY_QUOTA", DEFAULT_MAIL_DAILY_QUOTA)


def get_alert_email() -> Optional[str]:
    return os.getenv("ALERT_EMAIL", "").strip() or None


def get_admin_api_key() -> str:
    return os.getenv("ADMIN_API_KEY", "").strip()
