"""SQLAlchemy models for communities and their memberships."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, Enum, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from community_trust.db.session import Base
from community_trust.db.time import UTCDateTime, utcnow
from community_trust.models.user import new_id

if TYPE_CHECKING:
    from community_trust.models.attendance import EventAttendance
    from community_trust.models.vouch import Vouch
    from community_trust.models.vouch_offer import VouchOffer


class CommunityRole(str, enum.Enum):
    """Role held by an approved member inside a community."""

    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"
    MEMBER = "MEMBER"


class Community(Base):
    """Community metadata; owns memberships, vouches and offers."""

    __tablename__ = "community"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    interests: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requires_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    members: Mapped[list[CommunityMember]] = relationship(
        "CommunityMember",
        back_populates="community",
        cascade="all, delete-orphan",
    )
    vouches: Mapped[list[Vouch]] = relationship(
        "Vouch",
        cascade="all, delete-orphan",
    )
    vouch_offers: Mapped[list[VouchOffer]] = relationship(
        "VouchOffer",
        cascade="all, delete-orphan",
    )
    attendance: Mapped[list[EventAttendance]] = relationship(
        "EventAttendance",
        cascade="all, delete-orphan",
    )


class CommunityMember(Base):
    """Membership of a user in a community, pending until approved."""

    __tablename__ = "community_member"
    __table_args__ = (
        UniqueConstraint("user_id", "community_id", name="uq_community_member"),
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
    role: Mapped[CommunityRole] = mapped_column(
        Enum(CommunityRole, name="community_role"),
        nullable=False,
        default=CommunityRole.MEMBER,
    )
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    community: Mapped[Community] = relationship("Community", back_populates="members")

