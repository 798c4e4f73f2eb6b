"""Email notifications through the SendGrid v3 mail API."""

import asyncio
import html

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from registerer.errors import ClassifiedError
from registerer.logging import get_logger

log = get_logger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"


class NotificationError(Exception):
    """The notification was attempted but not accepted for delivery."""

    pass


class EmailNotifier:
    """Sends success and failure emails. Every call is a no-op when disabled."""

    def __init__(
        self,
        *,
        enabled: bool,
        api_key: str,
        to_email: str,
        from_email: str,
        timeout: float = 10.0,
    ) -> None:
        self.enabled = enabled
        self.api_key = api_key
        self.to_email = to_email
        self.from_email = from_email
        self.timeout = timeout

    async def send_failure(self, error: BaseException) -> bool:
        """Email the fatal error. Returns False if disabled, True once delivered."""
        text = error.diagnostics if isinstance(error, ClassifiedError) else repr(error)
        return await self._send("Minerva Registerer: Critical Error", text)

    async def send_success(self, course_id: str) -> bool:
        """Email a registration confirmation for ``course_id``."""
        text = f"Successfully registered to course with CRN: {course_id}"
        return await self._send("Minerva Registerer: Registration Success", text)

    async def _send(self, subject: str, text: str) -> bool:
        if not self.enabled:
            log.debug("notification_skipped", subject=subject, reason="disabled")
            return False

        await asyncio.to_thread(self._post, subject, text)
        log.info("notification_sent", subject=subject, to=self.to_email)
        return True

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_fixed(2),
        retry=retry_if_exception_type(requests.ConnectionError),
        reraise=True,
    )
    def _post(self, subject: str, text: str) -> None:
        payload = {
            "personalizations": [{"to": [{"email": self.to_email}]}],
            "from": {"email": self.from_email},
            "subject": subject,
            "content": [
                {"type": "text/plain", "value": text},
                {"type": "text/html", "value": f"<pre>{html.escape(text)}</pre>"},
            ],
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        resp = requests.post(
            SENDGRID_URL, headers=headers, json=payload, timeout=self.timeout
        )
        if resp.status_code != 202:
            raise NotificationError(
                f"SendGrid rejected '{subject}': {resp.status_code} {resp.text}"
            )
