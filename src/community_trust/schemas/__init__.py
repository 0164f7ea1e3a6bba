# src/community_trust/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .community import (
    CommunityCreate,
    CommunityDetail,
    CommunityPage,
    CommunityResponse,
    CommunityStats,
    CommunityUpdate,
    MemberPage,
    MemberResponse,
    ReasonPayload,
    RoleUpdate,
    ViewerStatus,
)
from .vouch import (
    AcceptedVouchOffer,
    AutoVouchCriteria,
    EligibilityCriteriaOut,
    EligibilityResponse,
    OfferSweepResult,
    PendingVouchOffer,
    PendingVouchOfferList,
    VouchOfferPage,
    VouchOfferResponse,
    VouchResponse,
)

__all__ = [
    "CommunityCreate", "CommunityDetail", "CommunityPage", "CommunityResponse",
    "CommunityStats", "CommunityUpdate", "MemberPage", "MemberResponse",
    "ReasonPayload", "RoleUpdate", "ViewerStatus",
    "AcceptedVouchOffer", "AutoVouchCriteria", "EligibilityCriteriaOut",
    "EligibilityResponse", "OfferSweepResult", "PendingVouchOffer",
    "PendingVouchOfferList", "VouchOfferPage", "VouchOfferResponse", "VouchResponse",
]
