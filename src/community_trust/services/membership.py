# src/community_trust/services/membership.py
"""Community membership lifecycle and the last-admin rule."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from community_trust.core.errors import BadRequestError, ConflictError, NotFoundError
from community_trust.db.time import utcnow
from community_trust.models import (
    LIVE_VOUCH_STATUSES,
    Community,
    CommunityMember,
    CommunityRole,
    EventAttendance,
    Vouch,
)
from community_trust.schemas.community import (
    CommunityCreate,
    CommunityStats,
    CommunityUpdate,
    ViewerStatus,
)
from community_trust.services.notifications import (
    NotificationEvent,
    NotificationKind,
    Notifier,
    dispatch,
)
from community_trust.services.permissions import ADMINS, MANAGERS, PermissionGuard
from community_trust.services.store import Page, TrustStore

logger = logging.getLogger(__name__)

NAME_TAKEN = "Community name already exists"
ALREADY_MEMBER = "Already a member or request pending"

# Higher ranks outrank lower ones when deciding promotion vs demotion.
_ROLE_RANK = {
    CommunityRole.MEMBER: 0,
    CommunityRole.MODERATOR: 1,
    CommunityRole.ADMIN: 2,
}


class MembershipService:
    """Owns community creation and every membership state change.

    Operations that can lower the approved-admin count lock the community row
    and re-count admins inside the transaction that performs the change.
    """

    def __init__(
        self,
        db: Session,
        *,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = TrustStore(db)
        self.guard = PermissionGuard(self.store)
        self.notifier = notifier
        self.clock = clock

    # ------------------------------------------------------------------
    # Community management
    # ------------------------------------------------------------------

    def create_community(self, creator_id: str, data: CommunityCreate) -> Community:
        """Create a community with its creator as approved ADMIN."""
        if self.store.get_community_by_name(data.name) is not None:
            raise ConflictError(NAME_TAKEN)

        def work() -> Community:
            community = Community(
                name=data.name,
                description=data.description,
                category=data.category,
                interests=list(data.interests),
                requires_approval=data.requires_approval,
                created_by_id=creator_id,
            )
            self.store.add(community)
            self.store.flush()
            self.store.add(
                CommunityMember(
                    user_id=creator_id,
                    community_id=community.id,
                    role=CommunityRole.ADMIN,
                    is_approved=True,
                    joined_at=self.clock(),
                )
            )
            return community

        community = self.store.atomic(work, conflict_message=NAME_TAKEN)
        logger.info("Community created: community=%s creator=%s", community.id, creator_id)
        return community

    def update_community(
        self,
        user_id: str,
        community_id: str,
        changes: CommunityUpdate,
    ) -> Community:
        """Apply a partial update; admins and moderators only."""
        update_data = changes.model_dump(exclude_unset=True)

        def work() -> Community:
            community = self.store.require_community(community_id)
            self.guard.require_role(user_id, community_id, MANAGERS)
            new_name = update_data.get("name")
            if new_name and new_name != community.name:
                if self.store.get_community_by_name(new_name) is not None:
                    raise ConflictError(NAME_TAKEN)
            for key, value in update_data.items():
                if value is None and key in {"name", "interests", "is_verified", "requires_approval"}:
                    continue
                setattr(community, key, value)
            return community

        community = self.store.atomic(work, conflict_message=NAME_TAKEN)
        logger.info("Community updated: community=%s user=%s", community_id, user_id)
        return community

    def delete_community(self, user_id: str, community_id: str) -> None:
        """Delete a community with its memberships, vouches and offers."""

        def work() -> int:
            community = self.store.lock_community(community_id)
            self.guard.require_role(user_id, community_id, ADMINS)
            member_count = len(community.members)
            self.store.delete(community)
            return member_count

        member_count = self.store.atomic(work)
        logger.info(
            "Community deleted: community=%s user=%s members=%d",
            community_id,
            user_id,
            member_count,
        )

    def get_community(self, community_id: str, viewer_id: str | None = None) -> dict[str, Any]:
        """Return a community, its approved member count and the viewer's status."""
        community = self.store.require_community(community_id)
        viewer = ViewerStatus()
        if viewer_id is not None:
            membership = self.store.get_membership(viewer_id, community_id)
            if membership is not None:
                viewer = ViewerStatus(
                    is_member=membership.is_approved,
                    is_admin=membership.is_approved and membership.role == CommunityRole.ADMIN,
                    is_moderator=(
                        membership.is_approved and membership.role == CommunityRole.MODERATOR
                    ),
                    is_pending=not membership.is_approved,
                    role=membership.role,
                )
        return {
            "community": community,
            "member_count": self.store.count_members(community_id, is_approved=True),
            "viewer": viewer,
        }

    def list_communities(
        self,
        *,
        page: int = 1,
        limit: int = 20,
        category: str | None = None,
        search: str | None = None,
        is_verified: bool | None = None,
    ) -> Page[Community]:
        query = self.store.db.query(Community)
        if category:
            query = query.filter(Community.category == category)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(
                or_(
                    func.lower(Community.name).like(pattern),
                    func.lower(Community.description).like(pattern),
                )
            )
        if is_verified is not None:
            query = query.filter(Community.is_verified.is_(is_verified))
        query = query.order_by(Community.created_at.desc(), Community.name)
        return self.store.paginate(query, page, limit)

    def list_my_communities(self, user_id: str, *, page: int = 1, limit: int = 20) -> Page[Community]:
        query = (
            self.store.db.query(Community)
            .join(CommunityMember, CommunityMember.community_id == Community.id)
            .filter(
                CommunityMember.user_id == user_id,
                CommunityMember.is_approved.is_(True),
            )
            .order_by(Community.created_at.desc(), Community.name)
        )
        return self.store.paginate(query, page, limit)

    def list_members(
        self,
        community_id: str,
        *,
        page: int = 1,
        limit: int = 20,
        role: CommunityRole | None = None,
        is_approved: bool | None = None,
    ) -> Page[CommunityMember]:
        self.store.require_community(community_id)
        query = self.store.db.query(CommunityMember).filter(
            CommunityMember.community_id == community_id
        )
        if role is not None:
            query = query.filter(CommunityMember.role == role)
        if is_approved is not None:
            query = query.filter(CommunityMember.is_approved.is_(is_approved))
        query = query.order_by(CommunityMember.joined_at.desc())
        return self.store.paginate(query, page, limit)

    def get_community_stats(self, community_id: str) -> CommunityStats:
        """Count members by role, pending requests, attended events and live vouches."""
        self.store.require_community(community_id)
        db = self.store.db
        total_events = (
            db.query(func.count(func.distinct(EventAttendance.event_id)))
            .filter(EventAttendance.community_id == community_id)
            .scalar()
            or 0
        )
        total_vouches = (
            db.query(func.count(Vouch.id))
            .filter(
                Vouch.community_id == community_id,
                Vouch.is_community_vouch.is_(True),
                Vouch.status.in_(LIVE_VOUCH_STATUSES),
            )
            .scalar()
            or 0
        )
        return CommunityStats(
            total_members=self.store.count_members(community_id, is_approved=True),
            admin_count=self.store.count_members(
                community_id, role=CommunityRole.ADMIN, is_approved=True
            ),
            moderator_count=self.store.count_members(
                community_id, role=CommunityRole.MODERATOR, is_approved=True
            ),
            member_count=self.store.count_members(
                community_id, role=CommunityRole.MEMBER, is_approved=True
            ),
            pending_approvals=self.store.count_members(community_id, is_approved=False),
            total_events=total_events,
            total_vouches=total_vouches,
        )

    # ------------------------------------------------------------------
    # Membership lifecycle
    # ------------------------------------------------------------------

    def join(self, user_id: str, community_id: str) -> CommunityMember:
        """Request membership; the request stays pending until a manager approves it."""

        def work() -> CommunityMember:
            self.store.require_community(community_id)
            if self.store.get_membership(user_id, community_id) is not None:
                raise ConflictError(ALREADY_MEMBER)
            member = CommunityMember(
                user_id=user_id,
                community_id=community_id,
                role=CommunityRole.MEMBER,
                is_approved=False,
                joined_at=self.clock(),
            )
            self.store.add(member)
            return member

        member = self.store.atomic(work, conflict_message=ALREADY_MEMBER)
        logger.info(
            "Community join request: community=%s user=%s approved=%s",
            community_id,
            user_id,
            member.is_approved,
        )
        return member

    def approve(self, admin_id: str, community_id: str, user_id: str) -> CommunityMember:
        """Approve a pending join request."""

        def work() -> CommunityMember:
            self.guard.require_role(admin_id, community_id, MANAGERS)
            member = self._require_member(user_id, community_id)
            if member.is_approved:
                raise BadRequestError("Member already approved")
            member.is_approved = True
            return member

        member = self.store.atomic(work)
        logger.info("Member approved: community=%s user=%s admin=%s", community_id, user_id, admin_id)
        self._notify(NotificationKind.MEMBER_APPROVED, user_id, community_id, admin_id)
        return member

    def reject(
        self,
        admin_id: str,
        community_id: str,
        user_id: str,
        reason: str | None = None,
    ) -> None:
        """Reject a pending join request by deleting it."""

        def work() -> None:
            self.guard.require_role(admin_id, community_id, MANAGERS)
            member = self._require_member(user_id, community_id)
            if member.is_approved:
                raise BadRequestError("Cannot reject an approved member. Use remove instead.")
            self.store.delete(member)

        self.store.atomic(work)
        logger.info(
            "Member rejected: community=%s user=%s admin=%s reason=%s",
            community_id,
            user_id,
            admin_id,
            reason,
        )
        self._notify(
            NotificationKind.MEMBER_REJECTED, user_id, community_id, admin_id, reason=reason
        )

    def leave(self, user_id: str, community_id: str) -> None:
        """Leave a community; the last approved admin may not."""

        def work() -> None:
            self.store.lock_community(community_id)
            member = self.store.get_membership(user_id, community_id, lock=True)
            if member is None:
                raise NotFoundError("Not a member of this community")
            self._ensure_not_last_admin(
                member,
                "Cannot leave as the last admin. Transfer admin role first or delete the community.",
            )
            self.store.delete(member)

        self.store.atomic(work)
        logger.info("User left community: community=%s user=%s", community_id, user_id)

    def update_role(
        self,
        admin_id: str,
        community_id: str,
        user_id: str,
        new_role: CommunityRole,
    ) -> CommunityMember:
        """Change an approved member's role; admins only."""

        def work() -> tuple[CommunityMember, CommunityRole]:
            self.store.lock_community(community_id)
            self.guard.require_role(admin_id, community_id, ADMINS)
            member = self._require_member(user_id, community_id)
            if not member.is_approved:
                raise BadRequestError("Member must be approved before role change")
            previous = member.role
            if previous == CommunityRole.ADMIN and new_role != CommunityRole.ADMIN:
                self._ensure_not_last_admin(member, "Cannot demote the last admin")
            member.role = new_role
            return member, previous

        member, previous = self.store.atomic(work)
        logger.info(
            "Member role updated: community=%s user=%s admin=%s role=%s->%s",
            community_id,
            user_id,
            admin_id,
            previous.value,
            new_role.value,
        )
        if _ROLE_RANK[new_role] > _ROLE_RANK[previous]:
            self._notify(
                NotificationKind.ROLE_PROMOTED, user_id, community_id, admin_id, role=new_role.value
            )
        elif _ROLE_RANK[new_role] < _ROLE_RANK[previous]:
            self._notify(
                NotificationKind.ROLE_DEMOTED, user_id, community_id, admin_id, role=new_role.value
            )
        return member

    def remove(
        self,
        admin_id: str,
        community_id: str,
        user_id: str,
        reason: str | None = None,
    ) -> None:
        """Remove a member; admins and moderators only."""

        def work() -> None:
            self.store.lock_community(community_id)
            self.guard.require_role(admin_id, community_id, MANAGERS)
            member = self._require_member(user_id, community_id)
            self._ensure_not_last_admin(member, "Cannot remove the last admin")
            self.store.delete(member)

        self.store.atomic(work)
        logger.info(
            "Member removed: community=%s user=%s admin=%s reason=%s",
            community_id,
            user_id,
            admin_id,
            reason,
        )
        self._notify(NotificationKind.MEMBER_REMOVED, user_id, community_id, admin_id, reason=reason)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_member(self, user_id: str, community_id: str) -> CommunityMember:
        member = self.store.get_membership(user_id, community_id, lock=True)
        if member is None:
            raise NotFoundError("Member not found")
        return member

    def _ensure_not_last_admin(self, member: CommunityMember, message: str) -> None:
        """Refuse a change that would leave the community without an approved admin.

        Must run after ``lock_community`` in the transaction making the change.
        """
        if member.role != CommunityRole.ADMIN or not member.is_approved:
            return
        if self.store.count_approved_admins(member.community_id) <= 1:
            raise BadRequestError(message)

    def _notify(
        self,
        kind: NotificationKind,
        user_id: str,
        community_id: str,
        actor_id: str | None,
        **detail: Any,
    ) -> None:
        dispatch(
            self.notifier,
            NotificationEvent(
                kind=kind,
                user_id=user_id,
                community_id=community_id,
                actor_id=actor_id,
                detail={key: value for key, value in detail.items() if value is not None},
            ),
        )
