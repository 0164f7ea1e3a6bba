# src/community_trust/services/vouch_ledger.py
"""Community vouch ledger: grants, revocations and the per-user cap."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.orm import Session

from community_trust.core.errors import BadRequestError, ConflictError, NotFoundError, TrustError
from community_trust.core.settings import settings
from community_trust.db.time import utcnow
from community_trust.models import Community, Vouch, VouchStatus, VouchType
from community_trust.schemas.vouch import AutoVouchCriteria
from community_trust.services.notifications import (
    NotificationEvent,
    NotificationKind,
    Notifier,
    dispatch,
)
from community_trust.services.permissions import ADMINS, PermissionGuard
from community_trust.services.store import TrustStore

logger = logging.getLogger(__name__)


class VouchLedger:
    """Create and revoke community vouches under the ledger invariants.

    A user holds at most ``max_vouches`` APPROVED/ACTIVE community vouches,
    and at most one of them per community. Both checks run after locking the
    vouchee inside the transaction that inserts the vouch.
    """

    def __init__(
        self,
        db: Session,
        *,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = utcnow,
        max_vouches: int | None = None,
        weight: float | None = None,
    ) -> None:
        self.store = TrustStore(db)
        self.guard = PermissionGuard(self.store)
        self.notifier = notifier
        self.clock = clock
        self.max_vouches = (
            settings.vouch_max_community_vouches if max_vouches is None else max_vouches
        )
        self.weight = settings.community_vouch_weight if weight is None else weight

    def grant(self, admin_id: str, community_id: str, vouchee_id: str) -> Vouch:
        """Vouch for an approved member on behalf of the community."""

        def work() -> Vouch:
            self.guard.require_role(admin_id, community_id, ADMINS)
            member = self.store.get_membership(vouchee_id, community_id)
            if member is None or not member.is_approved:
                raise NotFoundError("Member not found or not approved")
            self.store.lock_user(vouchee_id)
            self.ensure_below_cap(vouchee_id)
            if self.store.find_live_community_vouch(vouchee_id, community_id) is not None:
                raise ConflictError("Community has already vouched for this user")
            now = self.clock()
            vouch = Vouch(
                voucher_id=admin_id,
                vouchee_id=vouchee_id,
                vouch_type=VouchType.COMMUNITY,
                weight_percentage=self.weight,
                is_community_vouch=True,
                community_id=community_id,
                vouched_by_admin_id=admin_id,
                status=VouchStatus.APPROVED,
                requires_approval=False,
                is_auto_vouched=False,
                created_at=now,
                approved_at=now,
                activated_at=now,
            )
            self.store.add(vouch)
            return vouch

        vouch = self.store.atomic(work)
        logger.info(
            "Community vouch granted: community=%s user=%s admin=%s",
            community_id,
            vouchee_id,
            admin_id,
        )
        self._notify(NotificationKind.VOUCH_GRANTED, vouch, admin_id)
        return vouch

    def revoke(
        self,
        admin_id: str,
        community_id: str,
        vouchee_id: str,
        reason: str | None = None,
    ) -> Vouch:
        """Mark the community's live vouch for ``vouchee_id`` as REVOKED."""

        def work() -> Vouch:
            self.guard.require_role(admin_id, community_id, ADMINS)
            vouch = self.store.find_live_community_vouch(vouchee_id, community_id)
            if vouch is None:
                raise NotFoundError("Community vouch not found")
            vouch.status = VouchStatus.REVOKED
            vouch.revoked_at = self.clock()
            vouch.revoke_reason = reason
            return vouch

        vouch = self.store.atomic(work)
        logger.info(
            "Community vouch revoked: community=%s user=%s admin=%s reason=%s",
            community_id,
            vouchee_id,
            admin_id,
            reason,
        )
        self._notify(NotificationKind.VOUCH_REVOKED, vouch, admin_id, reason=reason)
        return vouch

    def mint_auto_vouch(
        self,
        community: Community,
        vouchee_id: str,
        criteria: AutoVouchCriteria,
        *,
        reason: str,
        duplicate_error: TrustError | None = None,
    ) -> Vouch:
        """Insert an auto-vouch inside the caller's open transaction.

        The community's creator stands as voucher. Does not commit.
        """
        self.store.lock_user(vouchee_id)
        if self.store.find_live_community_vouch(vouchee_id, community.id) is not None:
            raise duplicate_error or ConflictError("Community has already vouched for this user")
        self.ensure_below_cap(vouchee_id)
        now = self.clock()
        vouch = Vouch(
            voucher_id=community.created_by_id,
            vouchee_id=vouchee_id,
            vouch_type=VouchType.COMMUNITY,
            weight_percentage=self.weight,
            is_community_vouch=True,
            community_id=community.id,
            status=VouchStatus.APPROVED,
            requires_approval=False,
            is_auto_vouched=True,
            auto_vouch_criteria=criteria.model_dump(),
            message=f"Community vouch granted based on: {reason}",
            created_at=now,
            approved_at=now,
        )
        self.store.add(vouch)
        self.store.flush()
        return vouch

    def ensure_below_cap(self, vouchee_id: str) -> None:
        """Raise when the vouchee already holds the maximum live community vouches."""
        if self.store.count_live_community_vouches(vouchee_id) >= self.max_vouches:
            raise BadRequestError(
                f"User already has maximum community vouches ({self.max_vouches})"
            )

    def list_community_vouches(
        self,
        community_id: str,
        status: VouchStatus | None = None,
    ) -> list[Vouch]:
        self.store.require_community(community_id)
        query = self.store.db.query(Vouch).filter(
            Vouch.community_id == community_id,
            Vouch.is_community_vouch.is_(True),
        )
        if status is not None:
            query = query.filter(Vouch.status == status)
        return query.order_by(Vouch.created_at.desc()).all()

    def list_user_vouches(self, user_id: str) -> list[Vouch]:
        return (
            self.store.db.query(Vouch)
            .filter(Vouch.vouchee_id == user_id)
            .order_by(Vouch.created_at.desc())
            .all()
        )

    def _notify(
        self,
        kind: NotificationKind,
        vouch: Vouch,
        actor_id: str | None,
        reason: str | None = None,
    ) -> None:
        detail: dict[str, str] = {"vouch_id": vouch.id}
        if reason:
            detail["reason"] = reason
        dispatch(
            self.notifier,
            NotificationEvent(
                kind=kind,
                user_id=vouch.vouchee_id,
                community_id=vouch.community_id or "",
                actor_id=actor_id,
                detail=detail,
            ),
        )
