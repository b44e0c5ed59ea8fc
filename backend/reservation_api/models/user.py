"""
User profile bridged from LINE Login.

The LINE user id is the external identity; `role` grants organizer access.
"""

from sqlalchemy import Column, Integer, String, CheckConstraint
from sqlalchemy.orm import relationship

from reservation_api.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    line_user_id = Column(String(64), unique=True, index=True, nullable=True)
    display_name = Column(String(255), nullable=False, default="")
    picture_url = Column(String(1024), nullable=True)
    email = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default="user")

    # Relationships
    reservations = relationship("Reservation", back_populates="user")

    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin')", name="check_user_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, line_user_id={self.line_user_id}, role={self.role})>"
