# src/community_trust/schemas/community.py
"""Community and membership Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from community_trust.models.community import CommunityRole


class CommunityCreate(BaseModel):
    """Schema for creating a new community."""

    name: str = Field(..., min_length=1, max_length=120)
    description: str | None = None
    category: str | None = Field(default=None, max_length=64)
    interests: list[str] = Field(default_factory=list)
    requires_approval: bool = True


class CommunityUpdate(BaseModel):
    """Partial update of community details; unset fields are left alone."""

    name: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = None
    category: str | None = Field(default=None, max_length=64)
    interests: list[str] | None = None
    is_verified: bool | None = None
    requires_approval: bool | None = None


class CommunityResponse(BaseModel):
    """Schema for community information returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None
    category: str | None
    interests: list[str]
    is_verified: bool
    requires_approval: bool
    created_by_id: str
    created_at: datetime
    updated_at: datetime


class ViewerStatus(BaseModel):
    """Membership status of the caller in a community."""

    is_member: bool = False
    is_admin: bool = False
    is_moderator: bool = False
    is_pending: bool = False
    role: CommunityRole | None = None


class CommunityDetail(BaseModel):
    """A community with its approved member count and the viewer's status."""

    community: CommunityResponse
    member_count: int
    viewer: ViewerStatus


class CommunityPage(BaseModel):
    """One page of communities."""

    communities: list[CommunityResponse]
    total_count: int
    page: int
    limit: int
    total_pages: int


class MemberResponse(BaseModel):
    """Membership record as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    community_id: str
    role: CommunityRole
    is_approved: bool
    joined_at: datetime


class MemberPage(BaseModel):
    """One page of community members."""

    members: list[MemberResponse]
    total_count: int
    page: int
    limit: int
    total_pages: int


class RoleUpdate(BaseModel):
    """Request body for changing a member's role."""

    role: CommunityRole


class ReasonPayload(BaseModel):
    """Optional free-text reason attached to rejections, removals and revocations."""

    reason: str | None = Field(default=None, max_length=500)


class CommunityStats(BaseModel):
    """Aggregate membership and vouch counts for one community."""

    total_members: int
    admin_count: int
    moderator_count: int
    member_count: int
    pending_approvals: int
    total_events: int
    total_vouches: int
