"""Tests for role checks."""

import pytest

from community_trust.core.errors import ForbiddenError
from community_trust.models import CommunityRole
from community_trust.services.permissions import ADMINS, MANAGERS, PermissionGuard
from community_trust.services.store import TrustStore


def test_admin_passes_admin_check(db_session, community, admin) -> None:
    guard = PermissionGuard(TrustStore(db_session))
    member = guard.require_role(admin.id, community.id, ADMINS)
    assert member.role == CommunityRole.ADMIN


def test_non_member_is_forbidden(db_session, community, member_user) -> None:
    guard = PermissionGuard(TrustStore(db_session))
    with pytest.raises(ForbiddenError, match="Not a member of this community"):
        guard.require_role(member_user.id, community.id, MANAGERS)


def test_pending_admin_role_does_not_count(db_session, community, member_user, add_member) -> None:
    """Roles only take effect once the membership is approved."""
    add_member(member_user, community, role=CommunityRole.ADMIN, is_approved=False)
    guard = PermissionGuard(TrustStore(db_session))
    with pytest.raises(ForbiddenError, match="Not a member of this community"):
        guard.require_role(member_user.id, community.id, ADMINS)


def test_moderator_lacks_admin_permissions(db_session, community, member_user, add_member) -> None:
    add_member(member_user, community, role=CommunityRole.MODERATOR)
    guard = PermissionGuard(TrustStore(db_session))

    assert guard.has_role(member_user.id, community.id, MANAGERS)
    assert not guard.has_role(member_user.id, community.id, ADMINS)
    with pytest.raises(ForbiddenError, match="Insufficient permissions"):
        guard.require_role(member_user.id, community.id, ADMINS)
