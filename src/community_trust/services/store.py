# src/community_trust/services/store.py
"""Transactional data access for the membership and vouch engine.

Every invariant check (approved-admin count, live community vouch count,
pending offer presence) is a plain re-query executed inside the same
transaction as the write that depends on it. ``TrustStore.atomic`` is that
transaction boundary. The ``lock_*`` helpers take row locks that serialize
competing writers on backends supporting ``SELECT ... FOR UPDATE``; on SQLite
the engine holds the database write lock for the whole transaction instead
(see ``community_trust.db.session.enable_sqlite_write_locks``).
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Query, Session

from community_trust.core.errors import ConflictError, NotFoundError
from community_trust.core.settings import settings
from community_trust.models import (
    LIVE_VOUCH_STATUSES,
    Community,
    CommunityMember,
    CommunityRole,
    User,
    Vouch,
    VouchOffer,
    VouchOfferStatus,
)

__all__ = ["Page", "TrustStore", "is_transient_conflict"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

# SQLSTATE codes for serialization failure and deadlock.
_RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


def is_transient_conflict(exc: OperationalError) -> bool:
    """Return True when the store rejected a transaction due to contention."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _RETRYABLE_SQLSTATES:
        return True
    return "database is locked" in str(orig).lower()


@dataclass
class Page(Generic[T]):
    """A slice of a larger result set."""

    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class TrustStore:
    """Repository over a SQLAlchemy session for engine-owned records."""

    def __init__(self, db: Session, *, max_retries: int | None = None) -> None:
        self.db = db
        self.max_retries = settings.store_max_retries if max_retries is None else max_retries

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def atomic(self, work: Callable[[], T], *, conflict_message: str | None = None) -> T:
        """Run ``work`` in one transaction and commit it.

        The whole read-then-write is re-executed when the store reports
        transient contention. Domain errors roll back and propagate untouched.

        Args:
            work: Callable performing reads, checks and writes on this session.
            conflict_message: When given, a unique-constraint violation is
                reported as ``ConflictError(conflict_message)``.
        """
        attempt = 0
        while True:
            try:
                result = work()
                self.db.commit()
                return result
            except OperationalError as exc:
                self.db.rollback()
                if attempt < self.max_retries and is_transient_conflict(exc):
                    attempt += 1
                    logger.warning(
                        "Retrying transaction after store contention (attempt %d): %s",
                        attempt,
                        exc.orig,
                    )
                    continue
                raise
            except IntegrityError as exc:
                self.db.rollback()
                if conflict_message is not None:
                    raise ConflictError(conflict_message) from exc
                raise
            except BaseException:
                self.db.rollback()
                raise

    def add(self, obj: object) -> None:
        self.db.add(obj)

    def delete(self, obj: object) -> None:
        self.db.delete(obj)

    def flush(self) -> None:
        self.db.flush()

    # ------------------------------------------------------------------
    # Users and communities
    # ------------------------------------------------------------------

    def get_user(self, user_id: str) -> User | None:
        return self.db.get(User, user_id)

    def lock_user(self, user_id: str) -> User | None:
        """Lock the user row; scopes per-user vouch cap and offer checks."""
        return (
            self.db.query(User)
            .filter(User.id == user_id)
            .with_for_update()
            .first()
        )

    def get_community(self, community_id: str, *, lock: bool = False) -> Community | None:
        query = self.db.query(Community).filter(Community.id == community_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def require_community(self, community_id: str, *, lock: bool = False) -> Community:
        community = self.get_community(community_id, lock=lock)
        if community is None:
            raise NotFoundError("Community not found")
        return community

    def lock_community(self, community_id: str) -> Community:
        """Lock the community row; scopes admin-floor checks for its members."""
        return self.require_community(community_id, lock=True)

    def get_community_by_name(self, name: str) -> Community | None:
        return self.db.query(Community).filter(Community.name == name).first()

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    def get_membership(
        self,
        user_id: str,
        community_id: str,
        *,
        lock: bool = False,
    ) -> CommunityMember | None:
        query = self.db.query(CommunityMember).filter(
            CommunityMember.user_id == user_id,
            CommunityMember.community_id == community_id,
        )
        if lock:
            query = query.with_for_update()
        return query.first()

    def count_members(
        self,
        community_id: str,
        *,
        role: CommunityRole | None = None,
        is_approved: bool | None = None,
    ) -> int:
        query = self.db.query(func.count(CommunityMember.id)).filter(
            CommunityMember.community_id == community_id
        )
        if role is not None:
            query = query.filter(CommunityMember.role == role)
        if is_approved is not None:
            query = query.filter(CommunityMember.is_approved.is_(is_approved))
        return query.scalar() or 0

    def count_approved_admins(self, community_id: str) -> int:
        return self.count_members(community_id, role=CommunityRole.ADMIN, is_approved=True)

    def approved_members(self, community_id: str) -> list[CommunityMember]:
        return (
            self.db.query(CommunityMember)
            .filter(
                CommunityMember.community_id == community_id,
                CommunityMember.is_approved.is_(True),
            )
            .order_by(CommunityMember.joined_at)
            .all()
        )

    # ------------------------------------------------------------------
    # Vouches
    # ------------------------------------------------------------------

    def count_live_community_vouches(self, user_id: str) -> int:
        return (
            self.db.query(func.count(Vouch.id))
            .filter(
                Vouch.vouchee_id == user_id,
                Vouch.is_community_vouch.is_(True),
                Vouch.status.in_(LIVE_VOUCH_STATUSES),
            )
            .scalar()
            or 0
        )

    def find_live_community_vouch(self, user_id: str, community_id: str) -> Vouch | None:
        return (
            self.db.query(Vouch)
            .filter(
                Vouch.vouchee_id == user_id,
                Vouch.community_id == community_id,
                Vouch.is_community_vouch.is_(True),
                Vouch.status.in_(LIVE_VOUCH_STATUSES),
            )
            .first()
        )

    # ------------------------------------------------------------------
    # Vouch offers
    # ------------------------------------------------------------------

    def get_offer(self, offer_id: str, *, lock: bool = False) -> VouchOffer | None:
        query = self.db.query(VouchOffer).filter(VouchOffer.id == offer_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def offers_for(
        self,
        user_id: str,
        community_id: str,
        statuses: Iterable[VouchOfferStatus],
    ) -> list[VouchOffer]:
        return (
            self.db.query(VouchOffer)
            .filter(
                VouchOffer.user_id == user_id,
                VouchOffer.community_id == community_id,
                VouchOffer.status.in_(list(statuses)),
            )
            .order_by(VouchOffer.created_at.desc())
            .all()
        )

    def pending_offers(
        self,
        *,
        user_id: str | None = None,
        community_id: str | None = None,
    ) -> list[VouchOffer]:
        query = self.db.query(VouchOffer).filter(VouchOffer.status == VouchOfferStatus.PENDING)
        if user_id is not None:
            query = query.filter(VouchOffer.user_id == user_id)
        if community_id is not None:
            query = query.filter(VouchOffer.community_id == community_id)
        return query.all()

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    @staticmethod
    def paginate(query: Query[T], page: int, limit: int) -> Page[T]:
        """Return one page of ``query`` together with the total row count."""
        page = max(page, 1)
        limit = max(limit, 1)
        total = query.order_by(None).count()
        items = query.offset((page - 1) * limit).limit(limit).all()
        return Page(items=items, total=total, page=page, limit=limit)
