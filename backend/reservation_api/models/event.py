"""
Event model.

Key design decisions:
- No denormalized seat counter: the active reservation count is always
  recomputed from the reservations table (see services/capacity.py)
- `capacity = 0` means unlimited, `price = 0` means free
- `version` is bumped by every reservation writer, which serializes
  concurrent reservations for the same event (optimistic locking)
- Index on `event_date` for the upcoming-events listing
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship

from reservation_api.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    image_url = Column(String(1024), nullable=True)
    event_date = Column(DateTime(timezone=True), nullable=False)
    venue = Column(String(255), nullable=False, default="")
    price = Column(Integer, nullable=False, default=0)
    capacity = Column(Integer, nullable=False, default=0)
    is_published = Column(Boolean, nullable=False, default=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    reservations = relationship("Reservation", back_populates="event")

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_event_price_non_negative"),
        CheckConstraint("capacity >= 0", name="check_event_capacity_non_negative"),
        Index("ix_events_event_date", "event_date"),
        Index("ix_events_published_date", "is_published", "event_date"),
    )

    @property
    def is_free(self) -> bool:
        return self.price == 0

    @property
    def is_limited(self) -> bool:
        return self.capacity > 0

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, price={self.price}, capacity={self.capacity})>"
