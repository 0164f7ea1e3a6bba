# src/community_trust/models/attendance.py
"""Event check-ins used as the participation source for vouch eligibility."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from community_trust.db.session import Base
from community_trust.db.time import UTCDateTime, utcnow
from community_trust.models.user import new_id


class EventAttendance(Base):
    """A user checked in to one event hosted by a community."""

    __tablename__ = "event_attendance"
    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_event_attendance"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    community_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("community.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Events live in the surrounding application; only the reference is kept.
    event_id: Mapped[str] = mapped_column(String(64), nullable=False)
    checked_in_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
