"""Tests for the transactional store."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from community_trust.core.errors import BadRequestError, ConflictError, NotFoundError
from community_trust.models import CommunityMember, CommunityRole
from community_trust.services.store import TrustStore, is_transient_conflict


class _Orig(Exception):
    def __init__(self, message: str, sqlstate: str | None = None) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


def _operational(message: str, sqlstate: str | None = None) -> OperationalError:
    return OperationalError("UPDATE ...", {}, _Orig(message, sqlstate))


def test_serialization_failures_are_transient() -> None:
    assert is_transient_conflict(_operational("could not serialize access", "40001"))
    assert is_transient_conflict(_operational("deadlock detected", "40P01"))
    assert is_transient_conflict(_operational("database is locked"))
    assert not is_transient_conflict(_operational("no such table: vouch"))


def test_atomic_retries_transient_contention() -> None:
    """The whole unit of work is re-run after a serialization failure."""
    db = MagicMock()
    store = TrustStore(db, max_retries=2)
    attempts = []

    def work() -> str:
        attempts.append(1)
        if len(attempts) < 3:
            raise _operational("could not serialize access", "40001")
        return "done"

    assert store.atomic(work) == "done"
    assert len(attempts) == 3
    assert db.rollback.call_count == 2
    db.commit.assert_called_once()


def test_atomic_gives_up_after_max_retries() -> None:
    db = MagicMock()
    store = TrustStore(db, max_retries=1)

    def work() -> None:
        raise _operational("could not serialize access", "40001")

    with pytest.raises(OperationalError):
        store.atomic(work)
    assert db.rollback.call_count == 2
    db.commit.assert_not_called()


def test_atomic_does_not_retry_domain_errors() -> None:
    db = MagicMock()
    store = TrustStore(db, max_retries=3)
    attempts = []

    def work() -> None:
        attempts.append(1)
        raise BadRequestError("Member already approved")

    with pytest.raises(BadRequestError):
        store.atomic(work)
    assert len(attempts) == 1
    db.rollback.assert_called_once()
    db.commit.assert_not_called()


def test_atomic_maps_unique_violations_to_conflict(db_session, community, member_user) -> None:
    """A duplicate insert that slips past the pre-check surfaces as ConflictError."""
    store = TrustStore(db_session)

    def work() -> None:
        for _ in range(2):
            store.add(
                CommunityMember(
                    user_id=member_user.id,
                    community_id=community.id,
                    role=CommunityRole.MEMBER,
                )
            )
        store.flush()

    with pytest.raises(ConflictError) as excinfo:
        store.atomic(work, conflict_message="Already a member or request pending")
    assert excinfo.value.message == "Already a member or request pending"
    assert store.get_membership(member_user.id, community.id) is None


def test_atomic_reraises_integrity_error_without_message(db_session, community, admin) -> None:
    store = TrustStore(db_session)

    def work() -> None:
        store.add(CommunityMember(user_id=admin.id, community_id=community.id))
        store.flush()

    with pytest.raises(IntegrityError):
        store.atomic(work)


def test_require_community_raises_not_found(db_session) -> None:
    with pytest.raises(NotFoundError, match="Community not found"):
        TrustStore(db_session).require_community("missing")


def test_paginate_counts_and_slices(db_session, community, make_user, add_member) -> None:
    for index in range(4):
        add_member(make_user(f"user-{index}"), community)
    store = TrustStore(db_session)
    query = db_session.query(CommunityMember).filter(
        CommunityMember.community_id == community.id
    )

    page = store.paginate(query, page=2, limit=2)

    assert page.total == 5
    assert page.total_pages == 3
    assert len(page.items) == 2
    assert page.page == 2
