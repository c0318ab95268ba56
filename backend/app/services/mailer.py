"""
Resend-backed mail sender.

Sends notification and alert emails through the Resend HTTP API. Resend
requires a "to" address, so every message is addressed to the sender itself
and the real recipients go in "bcc". Recipients never see each other's
addresses.

Daily usage is counted in the counter store under mail_sent_{YYYY-MM-DD}
(form timezone) and checked against MAIL_DAILY_QUOTA before each send.

Environment variables
---------------------
RESEND_API_KEY      API key (required to send).
MAIL_FROM_ADDRESS   Verified sender address.
MAIL_DAILY_QUOTA    Emails allowed per day (default: 100).
"""

import logging
import re
from datetime import datetime
from typing import Callable, Optional

import httpx

from app import config
from app.services.interfaces import CounterStore

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_TIMEOUT_SECONDS = 20.0


class MailDeliveryError(Exception):
    """Raised when an email cannot be sent (quota, configuration or API error)."""


def split_addresses(value: str) -> list[str]:
    """Split a comma/semicolon separated address list, dropping blanks."""
    return [a.strip() for a in re.split(r"[,;]", value or "") if a.strip()]


class ResendMailSender:

    def __init__(
        self,
        counters: CounterStore,
        api_key: Optional[str] = None,
        from_address: Optional[str] = None,
        daily_quota: Optional[int] = None,
        http_client: Optional[httpx.Client] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.counters = counters
        self.api_key = api_key or config.get_resend_api_key()
        self.from_address = from_address or config.get_mail_from_address()
        self.daily_quota = daily_quota if daily_quota is not None else config.get_mail_daily_quota()
        self._http_client = http_client
        self.clock = clock or (lambda: datetime.now(config.get_timezone()))

    def _usage_key(self) -> str:
        return f"mail_sent_{self.clock().strftime('%Y-%m-%d')}"

    def remaining_quota(self) -> int:
        return max(self.daily_quota - self.counters.get(self._usage_key()), 0)

    def send(
        self,
        bcc: str,
        reply_to: str,
        subject: str,
        html_body: str,
        sender_name: str,
    ) -> None:
        """
        Send one email.

        Raises:
            MailDeliveryError: no API key, quota exhausted, or Resend error.
        """
        if not self.api_key:
            raise MailDeliveryError("RESEND_API_KEY is not configured")

        recipients = split_addresses(bcc)
        if not recipients:
            raise MailDeliveryError("No recipients to send to")

        if self.remaining_quota() <= 0:
            raise MailDeliveryError(
                f"Daily email quota of {self.daily_quota} exhausted"
            )

        payload: dict[str, object] = {
            "from": f"{sender_name} <{self.from_address}>" if sender_name else self.from_address,
            "to": [self.from_address],
            "bcc": recipients,
            "subject": subject,
            "html": html_body,
        }
        reply_to_addresses = split_addresses(reply_to)
        if reply_to_addresses:
            payload["reply_to"] = reply_to_addresses

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            if self._http_client is not None:
                response = self._http_client.post(RESEND_SEND_URL, headers=headers, json=payload)
            else:
                with httpx.Client(timeout=RESEND_TIMEOUT_SECONDS) as client:
                    response = client.post(RESEND_SEND_URL, headers=headers, json=payload)
        except httpx.TimeoutException:
            raise MailDeliveryError("Connection timeout")
        except httpx.HTTPError as e:
            raise MailDeliveryError(f"Connection error: {e.__class__.__name__}")

        if not 200 <= response.status_code < 300:
            error_detail = None
            try:
                data = response.json()
                if isinstance(data, dict):
                    error_detail = data.get("message") or data.get("error")
            except ValueError:
                pass
            error_msg = f"Resend API error: {response.status_code}"
            if error_detail:
                error_msg = f"{error_msg} ({error_detail})"
            raise MailDeliveryError(error_msg)

        logger.info(f"Sent email {subject!r} to {len(recipients)} recipient(s)")
        try:
            self.counters.increment(self._usage_key())
        except Exception as e:
            logger.warning(f"Failed to record mail usage: {e}")
