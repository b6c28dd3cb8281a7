"""
Out-of-band delivery of account messages.

EmailNotifier posts a transactional email to an HTTP mail API
(Brevo-compatible payload). Env vars:
- MAIL_API_URL
- MAIL_API_KEY
- MAIL_SENDER
"""

import logging
from typing import Optional

import requests
from fastapi.concurrency import run_in_threadpool

from learnhub.errors import DeliveryFailed

logger = logging.getLogger(__name__)


class EmailNotifier:
    def __init__(self, api_url: str, api_key: str, sender: str,
                 sender_name: str = "LearnHub", timeout: float = 10,
                 session: Optional[requests.Session] = None):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.sender_name = sender_name
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_url and self.api_key and self.sender)

    async def deliver(self, email: str, subject: str, message: str) -> None:
        await run_in_threadpool(self._send, email, subject, message)

    def _send(self, email: str, subject: str, message: str) -> None:
        if not self.configured:
            raise DeliveryFailed("Email not configured on server")

        headers = {
            "accept": "application/json",
            "api-key": self.api_key,
            "content-type": "application/json",
        }
        data = {
            "sender": {"email": self.sender, "name": self.sender_name},
            "to": [{"email": email}],
            "subject": subject,
            "textContent": message,
        }

        try:
            r = self.session.post(self.api_url, json=data, headers=headers, timeout=self.timeout)
        except requests.Timeout:
            logger.error("Mail API timeout after %ss", self.timeout)
            raise DeliveryFailed("Email service timeout")
        except requests.RequestException as e:
            logger.error("Mail API request failed: %s", e)
            raise DeliveryFailed(f"Email service error: {e}")

        if r.status_code not in (200, 201, 202):
            logger.error("Mail API rejected message status=%s body=%s", r.status_code, r.text[:200])
            raise DeliveryFailed(f"Email service rejected the message ({r.status_code})")
        logger.info("Mail sent subject=%r", subject)
