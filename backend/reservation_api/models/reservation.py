"""
Reservation model: one user's ticket for one event.

Key design decisions:
- Partial unique index on (user_id, event_id) WHERE status <> 'cancelled':
  at most one active reservation per user per event, enforced by the database
- Rows are never deleted; cancellation is a terminal status
- Stripe references are only populated on the paid path
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint, text
from sqlalchemy.orm import relationship

from reservation_api.db.base import Base, TimestampMixin

STATUS_PENDING = "pending"
STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"
STATUS_CHECKED_IN = "checked_in"

PAYMENT_UNPAID = "unpaid"
PAYMENT_PAID = "paid"
PAYMENT_REFUNDED = "refunded"

# Statuses that hold a capacity slot and count against uniqueness
ACTIVE_STATUSES = (STATUS_PENDING, STATUS_CONFIRMED, STATUS_CHECKED_IN)

_ACTIVE_PREDICATE = text("status <> 'cancelled'")


class Reservation(Base, TimestampMixin):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=STATUS_PENDING)
    payment_status = Column(String(20), nullable=False, default=PAYMENT_UNPAID)
    amount = Column(Integer, nullable=False, default=0)
    stripe_session_id = Column(String(255), nullable=True, unique=True)
    stripe_payment_intent_id = Column(String(255), nullable=True)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    user = relationship("User", back_populates="reservations")
    event = relationship("Event", back_populates="reservations")

    __table_args__ = (
        Index(
            "uq_reservations_active_user_event",
            "user_id",
            "event_id",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
        # Capacity count: WHERE event_id = ? AND status IN (...)
        Index("ix_reservations_event_status", "event_id", "status"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'checked_in')",
            name="check_reservation_status",
        ),
        CheckConstraint(
            "payment_status IN ('unpaid', 'paid', 'refunded')",
            name="check_reservation_payment_status",
        ),
        CheckConstraint("amount >= 0", name="check_reservation_amount_non_negative"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Reservation(id={self.id}, user={self.user_id}, event={self.event_id}, "
            f"status={self.status}, payment={self.payment_status})>"
        )
