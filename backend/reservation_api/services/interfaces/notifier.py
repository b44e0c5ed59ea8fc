"""
Outbound notification transport interface.
"""

from abc import ABC, abstractmethod


class Notifier(ABC):
    """
    Delivers one rendered message to one recipient.

    Implementations:
    - SmtpNotifier: sends email over SMTP
    - LogOnlyNotifier: logs instead of sending (no SMTP configured)
    """

    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> None:
        """Send a message. May raise; callers treat delivery as best-effort."""
