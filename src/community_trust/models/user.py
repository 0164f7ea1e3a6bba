# src/community_trust/models/user.py
"""SQLAlchemy model for the user identities the engine references."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from community_trust.db.session import Base
from community_trust.db.time import UTCDateTime, utcnow


def new_id() -> str:
    """Return a fresh string identifier for primary keys."""
    return str(uuid.uuid4())


class User(Base):
    """Identity owned by the surrounding application.

    The engine only reads it to resolve callers and to lock a vouchee while
    checking the community vouch cap.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
