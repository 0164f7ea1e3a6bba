# src/community_trust/services/permissions.py
"""Role checks that guard privileged community operations."""

from __future__ import annotations

from collections.abc import Collection

from community_trust.core.errors import ForbiddenError
from community_trust.models import CommunityMember, CommunityRole
from community_trust.services.store import TrustStore

MANAGERS = (CommunityRole.ADMIN, CommunityRole.MODERATOR)
ADMINS = (CommunityRole.ADMIN,)


class PermissionGuard:
    """Answer whether a user holds a role among their approved memberships."""

    def __init__(self, store: TrustStore) -> None:
        self.store = store

    def require_role(
        self,
        user_id: str,
        community_id: str,
        allowed_roles: Collection[CommunityRole],
    ) -> CommunityMember:
        """Return the caller's membership or raise ``ForbiddenError``.

        Read-only; callers run it inside the transaction it guards.
        """
        member = self.store.get_membership(user_id, community_id)
        if member is None or not member.is_approved:
            raise ForbiddenError("Not a member of this community")
        if member.role not in allowed_roles:
            raise ForbiddenError("Insufficient permissions")
        return member

    def has_role(
        self,
        user_id: str,
        community_id: str,
        allowed_roles: Collection[CommunityRole],
    ) -> bool:
        try:
            self.require_role(user_id, community_id, allowed_roles)
        except ForbiddenError:
            return False
        return True
