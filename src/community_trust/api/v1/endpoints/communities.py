# src/community_trust/api/v1/endpoints/communities.py
"""Community and membership endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, Response, status

from community_trust.models import Community, CommunityMember, CommunityRole
from community_trust.schemas.community import (
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
)
from community_trust.services.membership import MembershipService
from community_trust.services.store import Page

from ..dependencies import CurrentUserDep, NotifierDep, OptionalUserDep, SessionDep

router = APIRouter(prefix="/communities", tags=["communities"])


def _community_page(page: Page[Community]) -> dict[str, Any]:
    return {
        "communities": page.items,
        "total_count": page.total,
        "page": page.page,
        "limit": page.limit,
        "total_pages": page.total_pages,
    }


def _member_page(page: Page[CommunityMember]) -> dict[str, Any]:
    return {
        "members": page.items,
        "total_count": page.total,
        "page": page.page,
        "limit": page.limit,
        "total_pages": page.total_pages,
    }


@router.post("/", response_model=CommunityResponse, status_code=status.HTTP_201_CREATED)
async def create_community(
    community_data: CommunityCreate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Community:
    """Create a new community with the caller as its first admin."""
    return MembershipService(db).create_community(current_user.id, community_data)


@router.get("/", response_model=CommunityPage)
async def list_communities(
    db: SessionDep,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: str | None = None,
    search: str | None = None,
    is_verified: bool | None = None,
) -> dict[str, Any]:
    """List communities, newest first."""
    result = MembershipService(db).list_communities(
        page=page,
        limit=limit,
        category=category,
        search=search,
        is_verified=is_verified,
    )
    return _community_page(result)


@router.get("/mine", response_model=CommunityPage)
async def list_my_communities(
    current_user: CurrentUserDep,
    db: SessionDep,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> dict[str, Any]:
    """List communities the caller is an approved member of."""
    result = MembershipService(db).list_my_communities(current_user.id, page=page, limit=limit)
    return _community_page(result)


@router.get("/{community_id}", response_model=CommunityDetail)
async def get_community(
    community_id: str,
    db: SessionDep,
    viewer: OptionalUserDep,
) -> dict[str, Any]:
    """Get a community, its member count and the caller's status in it."""
    return MembershipService(db).get_community(
        community_id, viewer.id if viewer is not None else None
    )


@router.put("/{community_id}", response_model=CommunityResponse)
async def update_community(
    community_id: str,
    changes: CommunityUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Community:
    """Update community details; admins and moderators only."""
    return MembershipService(db).update_community(current_user.id, community_id, changes)


@router.delete(
    "/{community_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_community(
    community_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Response:
    """Delete a community; admins only."""
    MembershipService(db).delete_community(current_user.id, community_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{community_id}/stats", response_model=CommunityStats)
async def get_community_stats(community_id: str, db: SessionDep) -> CommunityStats:
    return MembershipService(db).get_community_stats(community_id)


@router.post(
    "/{community_id}/join",
    response_model=MemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def join_community(
    community_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> CommunityMember:
    """Join a community, or request to when it requires approval."""
    return MembershipService(db).join(current_user.id, community_id)


@router.delete(
    "/{community_id}/leave",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def leave_community(
    community_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> Response:
    """Leave a community."""
    MembershipService(db).leave(current_user.id, community_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{community_id}/members", response_model=MemberPage)
async def list_members(
    community_id: str,
    db: SessionDep,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    role: CommunityRole | None = None,
    is_approved: bool | None = None,
) -> dict[str, Any]:
    """List members, most recent first."""
    result = MembershipService(db).list_members(
        community_id,
        page=page,
        limit=limit,
        role=role,
        is_approved=is_approved,
    )
    return _member_page(result)


@router.post("/{community_id}/members/{user_id}/approve", response_model=MemberResponse)
async def approve_member(
    community_id: str,
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    notifier: NotifierDep,
) -> CommunityMember:
    """Approve a pending join request."""
    return MembershipService(db, notifier=notifier).approve(current_user.id, community_id, user_id)


@router.post(
    "/{community_id}/members/{user_id}/reject",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def reject_member(
    community_id: str,
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    notifier: NotifierDep,
    payload: ReasonPayload | None = None,
) -> Response:
    """Reject a pending join request."""
    reason = payload.reason if payload is not None else None
    MembershipService(db, notifier=notifier).reject(
        current_user.id, community_id, user_id, reason=reason
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{community_id}/members/{user_id}/role", response_model=MemberResponse)
async def update_member_role(
    community_id: str,
    user_id: str,
    payload: RoleUpdate,
    current_user: CurrentUserDep,
    db: SessionDep,
    notifier: NotifierDep,
) -> CommunityMember:
    """Change a member's role; admins only."""
    return MembershipService(db, notifier=notifier).update_role(
        current_user.id, community_id, user_id, payload.role
    )


@router.delete(
    "/{community_id}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def remove_member(
    community_id: str,
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    notifier: NotifierDep,
    reason: str | None = Query(None, max_length=500),
) -> Response:
    """Remove a member from the community."""
    MembershipService(db, notifier=notifier).remove(
        current_user.id, community_id, user_id, reason=reason
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
