# src/community_trust/models/__init__.py
"""SQLAlchemy models for the community trust engine."""

from .attendance import EventAttendance
from .community import Community, CommunityMember, CommunityRole
from .user import User
from .vouch import LIVE_VOUCH_STATUSES, Vouch, VouchStatus, VouchType
from .vouch_offer import VouchOffer, VouchOfferStatus

__all__ = [
    "EventAttendance",
    "Community", "CommunityMember", "CommunityRole",
    "User",
    "LIVE_VOUCH_STATUSES", "Vouch", "VouchStatus", "VouchType",
    "VouchOffer", "VouchOfferStatus",
]
