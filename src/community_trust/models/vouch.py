"""Models for the vouch ledger."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Enum, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from community_trust.db.session import Base
from community_trust.db.time import UTCDateTime, utcnow
from community_trust.models.user import new_id


class VouchType(str, enum.Enum):
    """Who stands behind a vouch."""

    INDIVIDUAL = "INDIVIDUAL"
    COMMUNITY = "COMMUNITY"


class VouchStatus(str, enum.Enum):
    """Lifecycle status of a vouch."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    ACTIVE = "ACTIVE"
    REVOKED = "REVOKED"
    REJECTED = "REJECTED"


# Statuses that count towards the community vouch cap.
LIVE_VOUCH_STATUSES = (VouchStatus.APPROVED, VouchStatus.ACTIVE)


class Vouch(Base):
    """Trust credential extended by a voucher to a vouchee.

    Rows are never deleted by the engine; revocation flips the status so the
    ledger keeps an audit trail.
    """

    __tablename__ = "vouch"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    voucher_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
    )
    vouchee_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    vouch_type: Mapped[VouchType] = mapped_column(
        Enum(VouchType, name="vouch_type"),
        nullable=False,
    )
    weight_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_community_vouch: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Set iff is_community_vouch.
    community_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("community.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    vouched_by_admin_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=True,
    )
    status: Mapped[VouchStatus] = mapped_column(
        Enum(VouchStatus, name="vouch_status"),
        nullable=False,
        default=VouchStatus.PENDING,
    )
    requires_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_auto_vouched: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Serialized AutoVouchCriteria; see schemas.vouch.
    auto_vouch_criteria: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    activated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    revoke_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_live(self) -> bool:
        """Return True when the vouch counts towards trust standing."""
        return self.status in LIVE_VOUCH_STATUSES
