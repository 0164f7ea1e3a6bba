"""Models tracking time-limited community vouch offers."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Boolean, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from community_trust.db.session import Base
from community_trust.db.time import UTCDateTime, utcnow
from community_trust.models.user import new_id


class VouchOfferStatus(str, enum.Enum):
    """PENDING moves to ACCEPTED, REJECTED or (lazily) EXPIRED."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class VouchOffer(Base):
    """Offer of a community vouch to a member found eligible."""

    __tablename__ = "community_vouch_offer"

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
    eligibility_reason: Mapped[str] = mapped_column(Text, nullable=False)
    # Snapshot of the facts the offer was based on.
    events_attended: Mapped[int] = mapped_column(Integer, nullable=False)
    membership_days: Mapped[int] = mapped_column(Integer, nullable=False)
    has_negative_feedback: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[VouchOfferStatus] = mapped_column(
        Enum(VouchOfferStatus, name="vouch_offer_status"),
        nullable=False,
        default=VouchOfferStatus.PENDING,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    vouch_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("vouch.id", ondelete="SET NULL"),
        nullable=True,
    )

    def is_expired(self, now: datetime) -> bool:
        """Return True once the acceptance window has closed."""
        return self.expires_at < now
