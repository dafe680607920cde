import asyncio
import logging
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Sequence

import aiosmtplib

from settings.config import Settings, get_settings

logger = logging.getLogger(__name__)

# SMTP replies worth retrying: service not available / mailbox busy / local error / storage
TRANSIENT_SMTP_CODES = {421, 450, 451, 452}


class EmailClient:
    """
    SMTP-based email client.
    Reads configuration from settings and sends HTML emails asynchronously.

    Sends from one client instance are spaced by EMAIL_MIN_INTERVAL_MS and transient
    SMTP replies are retried up to EMAIL_MAX_RETRIES times.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._throttle = asyncio.Lock()
        self._last_sent = 0.0

    async def _wait_turn(self) -> None:
        interval = self.settings.EMAIL_MIN_INTERVAL_MS / 1000.0
        async with self._throttle:
            delay = self._last_sent + interval - time.monotonic()
            if delay > 0:
                await asyncio.sleep(delay)
            self._last_sent = time.monotonic()

    def _build_message(self, to: Sequence[str], subject: str, html_body: str, from_email: Optional[str]) -> MIMEMultipart:
        settings = self.settings
        sender_email = from_email or settings.SMTP_FROM_EMAIL or settings.SMTP_USERNAME or "no-reply@localhost"
        sender_name = settings.SMTP_FROM_NAME or settings.COMPANY_NAME or settings.PRODUCT_NAME or "PO System"

        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{sender_name} <{sender_email}>"
        message["To"] = ", ".join(to)

        # HTML part (no plain text variant for brevity)
        message.attach(MIMEText(html_body, "html", "utf-8"))
        return message

    async def _deliver(self, message: MIMEMultipart) -> None:
        settings = self.settings
        host = settings.SMTP_HOST or ""
        port = settings.SMTP_PORT or 587
        username = settings.SMTP_USERNAME or None
        password = settings.SMTP_PASSWORD or None

        # Prefer SSL if explicitly enabled; otherwise use STARTTLS when SMTP_USE_TLS is True
        if settings.SMTP_USE_SSL:
            await aiosmtplib.send(
                message,
                hostname=host,
                port=port,
                username=username,
                password=password,
                use_tls=True,
            )
            return None

        # STARTTLS flow
        await aiosmtplib.send(
            message,
            hostname=host,
            port=port,
            start_tls=settings.SMTP_USE_TLS,
            username=username,
            password=password,
        )
        return None

    async def send_email(
        self,
        to: Sequence[str],
        subject: str,
        html_body: str,
        from_email: Optional[str] = None,
    ) -> None:
        if not to:
            return None

        message = self._build_message(to, subject, html_body, from_email)
        retries = max(0, self.settings.EMAIL_MAX_RETRIES)
        attempt = 0
        while True:
            await self._wait_turn()
            try:
                await self._deliver(message)
                return None
            except aiosmtplib.SMTPResponseException as exc:
                if exc.code not in TRANSIENT_SMTP_CODES or attempt >= retries:
                    raise
                attempt += 1
                logger.warning("SMTP busy (%s) sending to %s, retry %d/%d", exc.code, ", ".join(to), attempt, retries)
                await asyncio.sleep(self.settings.EMAIL_RETRY_DELAY_SECONDS)
