"""
Notifier implementations: SMTP delivery, or logging when SMTP is not configured.
"""

import smtplib
from email.message import EmailMessage

from starlette.concurrency import run_in_threadpool

from reservation_api.core.config import Settings
from reservation_api.core.logging import get_logger
from reservation_api.services.interfaces.notifier import Notifier

logger = get_logger(__name__)


class SmtpNotifier(Notifier):
    def __init__(self, settings: Settings):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.user = settings.SMTP_USER
        self.password = settings.SMTP_PASSWORD
        self.sender = settings.SMTP_FROM
        self.use_ssl = settings.SMTP_USE_SSL

    def _send_sync(self, message: EmailMessage) -> None:
        smtp_cls = smtplib.SMTP_SSL if self.use_ssl else smtplib.SMTP
        with smtp_cls(self.host, self.port, timeout=30) as smtp:
            if not self.use_ssl:
                smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password)
            smtp.send_message(message)

    async def send(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body)
        await run_in_threadpool(self._send_sync, message)


class LogOnlyNotifier(Notifier):
    """Logs the message instead of sending it."""

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info("notification_logged", to=to, subject=subject, body_preview=body[:200])


def build_notifier(settings: Settings) -> Notifier:
    if settings.SMTP_HOST:
        return SmtpNotifier(settings)
    return LogOnlyNotifier()
