"""
Spam gate.

Decides whether a submission is accepted before anything is persisted.
Layers run in a fixed order and stop at the first rejection:

  1. honeypot       the hidden _gotcha field must be empty
  2. token          optional _token freshness check (base64 "nonce:minute")
  3. content        URL count, non-Latin scripts, blocklisted keywords
  4. email          applicant email must look like local@domain.tld
  5. rate_limit     per-table hourly counter

Callers must answer a rejected submission exactly like an accepted one.

Public API:
  SpamGate(counters, max_per_hour=None, clock=None).evaluate(fields, rate_key, file_fields=()) -> SpamVerdict
"""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from app import config
from app.services.file_ingester import looks_like_file_payload
from app.services.form_data import (
    EMAIL_FIELDS,
    HONEYPOT_FIELD,
    RESERVED_FIELDS,
    TOKEN_FIELD,
    FormFields,
)
from app.services.interfaces import CounterStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Accepted token age in minutes: up to 2 minutes ahead (clock skew) and
# 30 minutes behind.
TOKEN_MAX_AGE_MINUTES = 30
TOKEN_MAX_SKEW_MINUTES = 2

MAX_URLS = 2

# Fields left out of the content scan
CONTENT_SKIP_FIELDS = RESERVED_FIELDS | {"CC", "URL", "Timestamp"}

_URL_PATTERN = re.compile(r"https?://", re.IGNORECASE)

# Cyrillic and CJK unified ideographs: uncommon in the forms we serve
_FOREIGN_SCRIPT_PATTERN = re.compile(r"[\u0400-\u04FF\u4E00-\u9FFF]")

SPAM_KEYWORDS = (
    "viagra",
    "cialis",
    "casino",
    "poker",
    "lottery",
    "winner",
    "click here",
    "buy now",
    "free money",
    "seo service",
    "web traffic",
    "backlink",
)

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ---------------------------------------------------------------------------
# Verdict
# ---------------------------------------------------------------------------

@dataclass
class SpamVerdict:
    """Result of SpamGate.evaluate(). ``layer`` names the rejecting layer."""
    accepted: bool
    layer: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def accept(cls) -> "SpamVerdict":
        return cls(accepted=True)

    @classmethod
    def reject(cls, layer: str, reason: str) -> "SpamVerdict":
        return cls(accepted=False, layer=layer, reason=reason)


# ---------------------------------------------------------------------------
# Individual layers
# ---------------------------------------------------------------------------

def check_honeypot(fields: FormFields) -> Optional[str]:
    # Any value rejects, whitespace included
    if any(v for v in fields.values(HONEYPOT_FIELD)):
        return "honeypot field filled"
    return None


def check_token(token: str, now_minute: int) -> Optional[str]:
    """
    Validate a freshness token. Returns a rejection reason or None.

    The token is base64("nonce:minute") where minute is epoch seconds // 60
    at the time the form was rendered.
    """
    try:
        decoded = base64.b64decode(token, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return "token not decodable"

    parts = decoded.split(":")
    if len(parts) != 2:
        return "token malformed"

    try:
        token_minute = int(parts[1])
    except ValueError:
        return "token minute not numeric"

    diff = now_minute - token_minute
    if diff > TOKEN_MAX_AGE_MINUTES:
        return "token expired"
    if diff < -TOKEN_MAX_SKEW_MINUTES:
        return "token from the future"
    return None


def check_content(fields: FormFields, file_fields: Iterable[str] = ()) -> Optional[str]:
    """
    Scan the visitor's text for spam markers.

    Attachments are left out: fields declared as files and any value in the
    inline "data:<mime>;base64,..." encoding.
    """
    skip = CONTENT_SKIP_FIELDS | set(file_fields)
    values: list[str] = []
    for name in fields.names():
        if name in skip:
            continue
        values.extend(v for v in fields.values(name) if not looks_like_file_payload(v))
    text = " ".join(values)

    if not text.strip():
        return None

    url_count = len(_URL_PATTERN.findall(text))
    if url_count > MAX_URLS:
        return f"{url_count} URLs in content"

    if _FOREIGN_SCRIPT_PATTERN.search(text):
        return "unexpected script in content"

    lower = text.lower()
    for keyword in SPAM_KEYWORDS:
        if keyword in lower:
            return f"blocklisted keyword {keyword!r}"

    return None


def check_email(fields: FormFields) -> Optional[str]:
    email = next((fields.first(n) for n in EMAIL_FIELDS if fields.first(n)), "")
    if email and not _EMAIL_PATTERN.match(email):
        return "invalid email format"
    return None


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------

def rate_bucket_key(rate_key: str, hour: int) -> str:
    return f"rate_{rate_key}_{hour}"


class SpamGate:
    """
    Multi-layer spam filter.

    Args:
        counters:     store holding the hourly rate buckets
        max_per_hour: hourly cap; defaults to RATE_LIMIT_PER_HOUR
        clock:        returns the current aware datetime (tests inject one)
    """

    def __init__(
        self,
        counters: CounterStore,
        max_per_hour: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.counters = counters
        self.max_per_hour = max_per_hour if max_per_hour is not None else config.get_rate_limit_per_hour()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def evaluate(
        self,
        fields: FormFields,
        rate_key: str,
        file_fields: Iterable[str] = (),
    ) -> SpamVerdict:
        """``file_fields`` names the fields declared as file columns."""
        now = self.clock()

        reason = check_honeypot(fields)
        if reason:
            return SpamVerdict.reject("honeypot", reason)

        token = fields.first(TOKEN_FIELD)
        if token:
            now_minute = int(now.timestamp() // 60)
            reason = check_token(token, now_minute)
            if reason:
                return SpamVerdict.reject("token", reason)

        reason = check_content(fields, file_fields)
        if reason:
            return SpamVerdict.reject("content", reason)

        reason = check_email(fields)
        if reason:
            return SpamVerdict.reject("email", reason)

        if self.is_rate_limited(rate_key, now):
            return SpamVerdict.reject(
                "rate_limit", f"more than {self.max_per_hour} submissions this hour"
            )

        return SpamVerdict.accept()

    def is_rate_limited(self, rate_key: str, now: datetime) -> bool:
        """
        Increment the current hour's bucket and compare against the cap.

        The hour is taken in the configured form timezone. The previous
        hour's bucket is removed on every call; removal failures are ignored.
        """
        hour = now.astimezone(config.get_timezone()).hour
        key = rate_bucket_key(rate_key, hour)

        try:
            count = self.counters.increment(key)
        except Exception as e:
            logger.warning(f"Rate counter unavailable for {rate_key!r}, skipping limit: {e}")
            return False

        previous_key = rate_bucket_key(rate_key, (hour + 23) % 24)
        try:
            self.counters.delete(previous_key)
        except Exception as e:
            logger.warning(f"Failed to delete rate bucket {previous_key!r}: {e}")

        return count > self.max_per_hour
