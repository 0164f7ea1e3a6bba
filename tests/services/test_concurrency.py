"""Concurrent callers against a file-backed SQLite database.

Each race pauses both callers right after the read their invariant depends
on. When the engine serializes writers the first caller holds the database
until it commits, the pause times out, and the second caller re-reads the
committed state.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from datetime import timedelta
from typing import Any

import pytest
from sqlalchemy.orm import Session, sessionmaker

from community_trust.core.errors import BadRequestError, ConflictError, TrustError
from community_trust.db.session import Base, build_engine
from community_trust.db.time import utcnow
from community_trust.models import (
    Community,
    CommunityMember,
    CommunityRole,
    EventAttendance,
    User,
    Vouch,
    VouchOffer,
    VouchStatus,
)
from community_trust.services.membership import MembershipService
from community_trust.services.store import TrustStore
from community_trust.services.vouch_ledger import VouchLedger
from community_trust.services.vouch_offers import VouchOfferWorkflow

PAUSE_SECONDS = 0.5


@pytest.fixture()
def session_factory(tmp_path) -> Iterator[sessionmaker]:
    engine = build_engine(f"sqlite:///{tmp_path / 'trust.db'}")
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    finally:
        engine.dispose()


def _seed(factory: sessionmaker, *objects: Any) -> None:
    with factory() as db:
        db.add_all(objects)
        db.commit()


def _community(factory: sessionmaker, name: str, owner: User, *members: User) -> Community:
    community = Community(name=name, created_by_id=owner.id)
    _seed(factory, community)
    joined = utcnow() - timedelta(days=120)
    rows = [
        CommunityMember(
            user_id=owner.id,
            community_id=community.id,
            role=CommunityRole.ADMIN,
            is_approved=True,
            joined_at=joined,
        )
    ]
    rows += [
        CommunityMember(
            user_id=member.id,
            community_id=community.id,
            role=CommunityRole.MEMBER,
            is_approved=True,
            joined_at=joined,
        )
        for member in members
    ]
    _seed(factory, *rows)
    return community


def _race(monkeypatch, pause_after: str, *calls: Callable[[], Any]) -> list[Any]:
    """Run ``calls`` on threads that rendezvous after ``TrustStore.<pause_after>``."""
    barrier = threading.Barrier(len(calls), timeout=PAUSE_SECONDS)
    original = getattr(TrustStore, pause_after)

    def paused(self, *args, **kwargs):
        result = original(self, *args, **kwargs)
        try:
            barrier.wait()
        except threading.BrokenBarrierError:
            pass
        return result

    monkeypatch.setattr(TrustStore, pause_after, paused)

    outcomes: list[Any] = [None] * len(calls)

    def run(index: int, call: Callable[[], Any]) -> None:
        try:
            outcomes[index] = call()
        except TrustError as exc:
            outcomes[index] = exc

    threads = [threading.Thread(target=run, args=(i, call)) for i, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
        assert not thread.is_alive()
    return outcomes


def _in_session(factory: sessionmaker, action: Callable[[Session], Any]) -> Callable[[], Any]:
    def call() -> Any:
        with factory() as db:
            return action(db)

    return call


def test_two_admins_leaving_at_once_keep_one_admin(session_factory, monkeypatch) -> None:
    first, second = User(display_name="First"), User(display_name="Second")
    _seed(session_factory, first, second)
    community = _community(session_factory, "Harbour Rowers", first)
    _seed(
        session_factory,
        CommunityMember(
            user_id=second.id,
            community_id=community.id,
            role=CommunityRole.ADMIN,
            is_approved=True,
        ),
    )

    outcomes = _race(
        monkeypatch,
        "count_approved_admins",
        _in_session(session_factory, lambda db: MembershipService(db).leave(first.id, community.id)),
        _in_session(session_factory, lambda db: MembershipService(db).leave(second.id, community.id)),
    )

    failures = [o for o in outcomes if isinstance(o, TrustError)]
    assert len(failures) == 1
    assert isinstance(failures[0], BadRequestError)
    with session_factory() as db:
        assert TrustStore(db).count_approved_admins(community.id) == 1


def test_concurrent_grants_respect_vouch_cap(session_factory, monkeypatch) -> None:
    member = User(display_name="Member")
    owners = [User(display_name=f"Owner {index}") for index in range(3)]
    _seed(session_factory, member, *owners)
    communities = [
        _community(session_factory, f"Club {index}", owner, member)
        for index, owner in enumerate(owners)
    ]
    with session_factory() as db:
        VouchLedger(db).grant(owners[0].id, communities[0].id, member.id)

    outcomes = _race(
        monkeypatch,
        "count_live_community_vouches",
        _in_session(
            session_factory,
            lambda db: VouchLedger(db).grant(owners[1].id, communities[1].id, member.id),
        ),
        _in_session(
            session_factory,
            lambda db: VouchLedger(db).grant(owners[2].id, communities[2].id, member.id),
        ),
    )

    assert sum(isinstance(o, Vouch) for o in outcomes) == 1
    assert sum(isinstance(o, BadRequestError) for o in outcomes) == 1
    with session_factory() as db:
        live = (
            db.query(Vouch)
            .filter(Vouch.vouchee_id == member.id, Vouch.status == VouchStatus.APPROVED)
            .count()
        )
    assert live == 2


def test_concurrent_offers_create_one_pending_offer(session_factory, monkeypatch) -> None:
    owner, member = User(display_name="Owner"), User(display_name="Veteran")
    _seed(session_factory, owner, member)
    community = _community(session_factory, "Night Cyclists", owner, member)
    _seed(
        session_factory,
        *[
            EventAttendance(user_id=member.id, community_id=community.id, event_id=f"ride-{index}")
            for index in range(6)
        ],
    )

    def offer(db: Session) -> VouchOffer:
        workflow = VouchOfferWorkflow(db)
        return workflow.create_offer(member.id, community.id, workflow.evaluator.check(member.id, community.id))

    outcomes = _race(
        monkeypatch,
        "offers_for",
        _in_session(session_factory, offer),
        _in_session(session_factory, offer),
    )

    assert sum(isinstance(o, VouchOffer) for o in outcomes) == 1
    assert sum(isinstance(o, ConflictError) for o in outcomes) == 1
    with session_factory() as db:
        assert db.query(VouchOffer).filter(VouchOffer.user_id == member.id).count() == 1
