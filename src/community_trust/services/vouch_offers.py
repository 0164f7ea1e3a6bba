# src/community_trust/services/vouch_offers.py
"""Time-limited community vouch offers.

An offer is PENDING until its owner accepts or rejects it. Expiry is pulled,
not pushed: any call touching an offer first marks PENDING offers whose
``expires_at`` has passed as EXPIRED. No background process keeps statuses
current.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from community_trust.core.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    TrustError,
)
from community_trust.core.settings import settings
from community_trust.db.time import utcnow
from community_trust.models import Vouch, VouchOffer, VouchOfferStatus
from community_trust.schemas.vouch import AutoVouchCriteria
from community_trust.services.eligibility import (
    EligibilityCriteria,
    EligibilityEvaluator,
    EligibilityResult,
)
from community_trust.services.notifications import (
    NotificationEvent,
    NotificationKind,
    Notifier,
    dispatch,
)
from community_trust.services.store import Page, TrustStore
from community_trust.services.vouch_ledger import VouchLedger

logger = logging.getLogger(__name__)

PENDING_OFFER_EXISTS = "A pending vouch offer already exists for this member"
_DAY = timedelta(days=1)


@dataclass(frozen=True)
class OfferSweep:
    """Outcome of one eligibility pass over a community."""

    community_id: str
    members_checked: int
    offers_created: int


def days_remaining(offer: VouchOffer, now: datetime) -> int:
    """Whole days left before the offer expires, rounded up."""
    return max(0, math.ceil((offer.expires_at - now) / _DAY))


class VouchOfferWorkflow:
    """Create, list, accept and reject vouch offers."""

    def __init__(
        self,
        db: Session,
        *,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] = utcnow,
        window_days: int | None = None,
        criteria: EligibilityCriteria | None = None,
        evaluator: EligibilityEvaluator | None = None,
    ) -> None:
        self.store = TrustStore(db)
        self.notifier = notifier
        self.clock = clock
        self.window = timedelta(
            days=settings.vouch_offer_window_days if window_days is None else window_days
        )
        self.evaluator = evaluator or EligibilityEvaluator(db, criteria=criteria, clock=clock)
        self.ledger = VouchLedger(
            db,
            clock=clock,
            max_vouches=self.evaluator.criteria.max_vouches,
        )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_offer(
        self,
        user_id: str,
        community_id: str,
        eligibility: EligibilityResult,
    ) -> VouchOffer:
        """Open an offer for a member found eligible.

        Raises:
            BadRequestError: If ``eligibility`` is not a positive decision.
            ConflictError: If the pair already has a live pending offer.
        """
        if not eligibility.is_eligible:
            raise BadRequestError(eligibility.reason)

        def work() -> VouchOffer:
            self.store.require_community(community_id)
            self.store.lock_user(user_id)
            now = self.clock()
            self._expire_stale(now, user_id=user_id, community_id=community_id)
            if self.store.offers_for(user_id, community_id, [VouchOfferStatus.PENDING]):
                raise ConflictError(PENDING_OFFER_EXISTS)
            offer = VouchOffer(
                user_id=user_id,
                community_id=community_id,
                eligibility_reason=eligibility.summary,
                events_attended=eligibility.facts.events_attended,
                membership_days=eligibility.facts.membership_days,
                has_negative_feedback=eligibility.facts.has_negative_feedback,
                status=VouchOfferStatus.PENDING,
                created_at=now,
                expires_at=now + self.window,
            )
            self.store.add(offer)
            return offer

        offer = self.store.atomic(work)
        logger.info(
            "Vouch offer created: offer=%s community=%s user=%s expires=%s",
            offer.id,
            community_id,
            user_id,
            offer.expires_at.isoformat(),
        )
        self._notify(NotificationKind.VOUCH_OFFERED, offer)
        return offer

    def offer_if_eligible(
        self,
        community_id: str,
        user_id: str,
    ) -> tuple[VouchOffer | None, EligibilityResult]:
        """Evaluate a member and open an offer when eligible."""
        eligibility = self.evaluator.check(user_id, community_id)
        if not eligibility.is_eligible:
            return None, eligibility
        return self.create_offer(user_id, community_id, eligibility), eligibility

    def offer_to_eligible_members(self, community_id: str) -> OfferSweep:
        """Run one on-demand eligibility pass over a community's approved members.

        Members with a pending or accepted offer, or already holding a vouch
        from this community, are skipped. A failure for one member is logged
        and the pass continues with the next.
        """
        self.store.require_community(community_id)
        self.expire_stale(community_id=community_id)
        members = self.store.approved_members(community_id)
        created = 0
        for member in members:
            user_id = member.user_id
            existing = self.store.offers_for(
                user_id,
                community_id,
                [VouchOfferStatus.PENDING, VouchOfferStatus.ACCEPTED],
            )
            if existing:
                logger.debug("User %s already has an offer in %s", user_id, community_id)
                continue
            if self.store.find_live_community_vouch(user_id, community_id) is not None:
                logger.debug("User %s already has a vouch from %s", user_id, community_id)
                continue
            try:
                offer, _ = self.offer_if_eligible(community_id, user_id)
            except TrustError as exc:
                logger.warning(
                    "Skipping user %s in community %s: %s", user_id, community_id, exc.message
                )
                continue
            if offer is not None:
                created += 1

        logger.info(
            "Eligibility pass completed: community=%s members=%d offers=%d",
            community_id,
            len(members),
            created,
        )
        return OfferSweep(
            community_id=community_id,
            members_checked=len(members),
            offers_created=created,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_mine(self, user_id: str, community_id: str) -> list[tuple[VouchOffer, int]]:
        """Return the caller's live pending offers with their days remaining."""

        def work() -> list[VouchOffer]:
            now = self.clock()
            self._expire_stale(now, user_id=user_id, community_id=community_id)
            return [
                offer
                for offer in self.store.offers_for(
                    user_id, community_id, [VouchOfferStatus.PENDING]
                )
                if offer.expires_at > now
            ]

        offers = self.store.atomic(work)
        now = self.clock()
        return [(offer, days_remaining(offer, now)) for offer in offers]

    def list_offers(
        self,
        *,
        status: VouchOfferStatus | None = None,
        community_id: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page[VouchOffer]:
        """Paginated listing of offers for administrators."""
        self.expire_stale(community_id=community_id)
        query = self.store.db.query(VouchOffer)
        if status is not None:
            query = query.filter(VouchOffer.status == status)
        if community_id is not None:
            query = query.filter(VouchOffer.community_id == community_id)
        query = query.order_by(VouchOffer.created_at.desc())
        return self.store.paginate(query, page, limit)

    # ------------------------------------------------------------------
    # Owner actions
    # ------------------------------------------------------------------

    def accept(
        self,
        user_id: str,
        offer_id: str,
        community_id: str | None = None,
    ) -> tuple[VouchOffer, Vouch]:
        """Accept an offer, minting the vouch and closing the offer together.

        An offer found past its expiry is marked EXPIRED (and that is
        committed) before the expiry error is raised.
        """

        def work() -> tuple[VouchOffer, Vouch | None]:
            offer = self._owned_offer(user_id, offer_id, "accept")
            if community_id is not None and offer.community_id != community_id:
                raise BadRequestError("Offer does not match community")
            _require_pending(offer)
            now = self.clock()
            if offer.is_expired(now):
                offer.status = VouchOfferStatus.EXPIRED
                return offer, None
            community = self.store.require_community(offer.community_id)
            vouch = self.ledger.mint_auto_vouch(
                community,
                user_id,
                AutoVouchCriteria(
                    events_attended=offer.events_attended,
                    membership_days=offer.membership_days,
                    offer_id=offer.id,
                ),
                reason=offer.eligibility_reason,
                duplicate_error=BadRequestError(
                    "You already have a community vouch for this community"
                ),
            )
            offer.status = VouchOfferStatus.ACCEPTED
            offer.accepted_at = now
            offer.vouch_id = vouch.id
            return offer, vouch

        offer, vouch = self.store.atomic(work)
        if vouch is None:
            logger.info("Vouch offer expired on accept: offer=%s user=%s", offer_id, user_id)
            raise BadRequestError("Offer has expired")

        logger.info(
            "Vouch offer accepted: offer=%s community=%s user=%s vouch=%s",
            offer.id,
            offer.community_id,
            user_id,
            vouch.id,
        )
        self._notify(NotificationKind.VOUCH_OFFER_ACCEPTED, offer, vouch_id=vouch.id)
        return offer, vouch

    def reject(
        self,
        user_id: str,
        offer_id: str,
        community_id: str | None = None,
    ) -> VouchOffer:
        """Decline an offer.

        Declining carries no trust consequence, so an offer still PENDING past
        its expiry may be declined.
        """

        def work() -> VouchOffer:
            offer = self._owned_offer(user_id, offer_id, "reject")
            if community_id is not None and offer.community_id != community_id:
                raise BadRequestError("Offer does not match community")
            _require_pending(offer)
            offer.status = VouchOfferStatus.REJECTED
            offer.rejected_at = self.clock()
            return offer

        offer = self.store.atomic(work)
        logger.info("Vouch offer rejected: offer=%s user=%s", offer.id, user_id)
        return offer

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    def expire_stale(
        self,
        *,
        user_id: str | None = None,
        community_id: str | None = None,
    ) -> int:
        """Mark overdue PENDING offers EXPIRED and commit; returns how many."""
        return self.store.atomic(
            lambda: self._expire_stale(self.clock(), user_id=user_id, community_id=community_id)
        )

    def _expire_stale(
        self,
        now: datetime,
        *,
        user_id: str | None = None,
        community_id: str | None = None,
    ) -> int:
        expired = 0
        for offer in self.store.pending_offers(user_id=user_id, community_id=community_id):
            if offer.is_expired(now):
                offer.status = VouchOfferStatus.EXPIRED
                expired += 1
        if expired:
            self.store.flush()
            logger.info("Expired %d stale vouch offers", expired)
        return expired

    def _owned_offer(self, user_id: str, offer_id: str, action: str) -> VouchOffer:
        offer = self.store.get_offer(offer_id, lock=True)
        if offer is None:
            raise NotFoundError("Vouch offer not found")
        if offer.user_id != user_id:
            raise ForbiddenError(f"Not authorized to {action} this offer")
        return offer

    def _notify(self, kind: NotificationKind, offer: VouchOffer, **detail: str) -> None:
        dispatch(
            self.notifier,
            NotificationEvent(
                kind=kind,
                user_id=offer.user_id,
                community_id=offer.community_id,
                detail={"offer_id": offer.id, **detail},
            ),
        )


def _require_pending(offer: VouchOffer) -> None:
    if offer.status != VouchOfferStatus.PENDING:
        raise BadRequestError(f"Offer is already {offer.status.value.lower()}")
