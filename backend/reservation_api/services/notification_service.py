"""
Fire-and-forget reservation notifications.

Sends are scheduled as background tasks so a lifecycle transition never waits
on, or fails because of, email delivery. Every failure is logged and counted.
When the caller passes its session, the send is held until that session
commits, so a rolled-back transition never produces an email.
"""

import asyncio
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from reservation_api.core.logging import get_logger
from reservation_api.core.metrics import record_notification
from reservation_api.db.session import call_after_commit
from reservation_api.models.event import Event
from reservation_api.models.reservation import Reservation
from reservation_api.models.user import User
from reservation_api.services.interfaces.notifier import Notifier

logger = get_logger(__name__)

JST = ZoneInfo("Asia/Tokyo")

KIND_CONFIRMATION = "confirmation"
KIND_CANCELLATION = "cancellation"


def format_date_jst(value: datetime) -> str:
    return value.astimezone(JST).strftime("%Y年%m月%d日 %H:%M")


def format_amount(amount: int) -> str:
    return "無料" if amount == 0 else f"¥{amount:,}"


def render_confirmation(user: User, event: Event, reservation: Reservation) -> tuple[str, str]:
    subject = f"【予約確定】{event.title}"
    body = (
        f"{user.display_name} 様\n\n"
        "以下のイベントのご予約が確定しました。\n\n"
        f"イベント: {event.title}\n"
        f"日時: {format_date_jst(event.event_date)}\n"
        f"会場: {event.venue}\n"
        f"金額: {format_amount(reservation.amount)}\n\n"
        "※ このメールは自動送信です。ご不明な点がございましたら、主催者までお問い合わせください。\n"
    )
    return subject, body


def render_cancellation(user: User, event: Event, refunded: bool) -> tuple[str, str]:
    subject = f"【予約キャンセル】{event.title}"
    refund_note = (
        "お支払い済みの金額は返金処理が行われます。返金の反映には数日かかる場合があります。\n\n"
        if refunded
        else ""
    )
    body = (
        f"{user.display_name} 様\n\n"
        "以下のイベントの予約がキャンセルされました。\n\n"
        f"イベント: {event.title}\n"
        f"日時: {format_date_jst(event.event_date)}\n\n"
        f"{refund_note}"
        "※ このメールは自動送信です。\n"
    )
    return subject, body


class NotificationDispatcher:
    def __init__(self, notifier: Notifier):
        self.notifier = notifier
        self._pending: set[asyncio.Task] = set()

    def reservation_confirmed(
        self,
        user: User,
        event: Event,
        reservation: Reservation,
        db: Optional[AsyncSession] = None,
    ) -> None:
        subject, body = render_confirmation(user, event, reservation)
        self._queue(db, KIND_CONFIRMATION, user.email, subject, body, reservation.id)

    def reservation_cancelled(
        self,
        user: User,
        event: Event,
        reservation: Reservation,
        refunded: bool,
        db: Optional[AsyncSession] = None,
    ) -> None:
        subject, body = render_cancellation(user, event, refunded)
        self._queue(db, KIND_CANCELLATION, user.email, subject, body, reservation.id)

    def _queue(
        self,
        db: Optional[AsyncSession],
        kind: str,
        to: str | None,
        subject: str,
        body: str,
        reservation_id: int,
    ) -> None:
        if db is None:
            self._dispatch(kind, to, subject, body, reservation_id)
        else:
            call_after_commit(db, lambda: self._dispatch(kind, to, subject, body, reservation_id))

    def _dispatch(self, kind: str, to: str | None, subject: str, body: str, reservation_id: int) -> None:
        if not to:
            record_notification(kind, "skipped")
            logger.info("notification_skipped", kind=kind, reason="no_email", reservation_id=reservation_id)
            return
        task = asyncio.create_task(self._send(kind, to, subject, body, reservation_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, kind: str, to: str, subject: str, body: str, reservation_id: int) -> None:
        try:
            await self.notifier.send(to, subject, body)
        except Exception as e:
            record_notification(kind, "failed")
            logger.error("notification_failed", kind=kind, reservation_id=reservation_id, error=str(e))
            return
        record_notification(kind, "sent")
        logger.info("notification_sent", kind=kind, reservation_id=reservation_id)

    async def drain(self) -> None:
        """Wait for in-flight sends to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
