"""
Ledger of processed payment provider webhook events.

The provider redelivers events; the unique provider_event_id lets a
redelivery be acknowledged without being applied twice.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from reservation_api.db.base import Base, utc_now


class PaymentWebhookEvent(Base):
    __tablename__ = "payment_webhook_events"

    id = Column(Integer, primary_key=True)
    provider_event_id = Column(String(255), unique=True, nullable=False, index=True)
    event_type = Column(String(100), nullable=False)
    reservation_id = Column(Integer, ForeignKey("reservations.id"), nullable=True)
    received_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    def __repr__(self) -> str:
        return f"<PaymentWebhookEvent(id={self.provider_event_id}, type={self.event_type})>"
