# src/community_trust/api/v1/endpoints/vouches.py
"""Community vouch, eligibility and vouch-offer endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, status

from community_trust.models import Vouch, VouchOffer, VouchOfferStatus, VouchStatus
from community_trust.schemas.vouch import (
    AcceptedVouchOffer,
    EligibilityResponse,
    OfferSweepResult,
    PendingVouchOffer,
    PendingVouchOfferList,
    VouchOfferPage,
    VouchOfferResponse,
    VouchResponse,
)
from community_trust.services.eligibility import EligibilityEvaluator
from community_trust.services.permissions import ADMINS, MANAGERS, PermissionGuard
from community_trust.services.store import TrustStore
from community_trust.services.vouch_ledger import VouchLedger
from community_trust.services.vouch_offers import VouchOfferWorkflow

from ..dependencies import CurrentUserDep, NotifierDep, SessionDep

router = APIRouter(prefix="/communities", tags=["vouches"])


@router.get(
    "/{community_id}/members/{user_id}/vouch-eligibility",
    response_model=EligibilityResponse,
)
async def check_vouch_eligibility(
    community_id: str,
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> EligibilityResponse:
    """Report whether a member qualifies for an automatic community vouch.

    Members may check themselves; admins and moderators may check anyone.
    """
    store = TrustStore(db)
    store.require_community(community_id)
    if current_user.id != user_id:
        PermissionGuard(store).require_role(current_user.id, community_id, MANAGERS)
    return EligibilityEvaluator(db).check(user_id, community_id).to_response()


@router.post(
    "/{community_id}/members/{user_id}/vouch",
    response_model=VouchResponse,
    status_code=status.HTTP_201_CREATED,
)
async def grant_community_vouch(
    community_id: str,
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    notifier: NotifierDep,
) -> Vouch:
    """Vouch for a member on behalf of the community; admins only."""
    return VouchLedger(db, notifier=notifier).grant(current_user.id, community_id, user_id)


@router.delete("/{community_id}/members/{user_id}/vouch", response_model=VouchResponse)
async def revoke_community_vouch(
    community_id: str,
    user_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    notifier: NotifierDep,
    reason: str | None = Query(None, max_length=500),
) -> Vouch:
    """Revoke the community's vouch for a member; admins only."""
    return VouchLedger(db, notifier=notifier).revoke(
        current_user.id, community_id, user_id, reason=reason
    )


@router.get("/{community_id}/vouches", response_model=list[VouchResponse])
async def list_community_vouches(
    community_id: str,
    _current_user: CurrentUserDep,
    db: SessionDep,
    vouch_status: VouchStatus | None = Query(None, alias="status"),
) -> list[Vouch]:
    """List vouches granted by the community, newest first."""
    return VouchLedger(db).list_community_vouches(community_id, status=vouch_status)


@router.get("/{community_id}/vouch-offers", response_model=PendingVouchOfferList)
async def list_my_vouch_offers(
    community_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> dict[str, Any]:
    """List the caller's pending vouch offers in a community."""
    offers = [
        PendingVouchOffer.model_validate(
            {**VouchOfferResponse.model_validate(offer).model_dump(), "days_remaining": days}
        )
        for offer, days in VouchOfferWorkflow(db).list_mine(current_user.id, community_id)
    ]
    return {"offers": offers, "count": len(offers)}


@router.get("/{community_id}/vouch-offers/all", response_model=VouchOfferPage)
async def list_community_vouch_offers(
    community_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    offer_status: VouchOfferStatus | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> dict[str, Any]:
    """List every vouch offer in a community; admins only."""
    store = TrustStore(db)
    store.require_community(community_id)
    PermissionGuard(store).require_role(current_user.id, community_id, ADMINS)
    result = VouchOfferWorkflow(db).list_offers(
        status=offer_status,
        community_id=community_id,
        page=page,
        limit=limit,
    )
    return {
        "offers": result.items,
        "total": result.total,
        "page": result.page,
        "limit": result.limit,
        "total_pages": result.total_pages,
    }


@router.post(
    "/{community_id}/vouch-offers/sweep",
    response_model=OfferSweepResult,
)
async def offer_vouches_to_eligible_members(
    community_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    notifier: NotifierDep,
) -> OfferSweepResult:
    """Offer vouches to every currently eligible member; admins only."""
    store = TrustStore(db)
    store.require_community(community_id)
    PermissionGuard(store).require_role(current_user.id, community_id, ADMINS)
    sweep = VouchOfferWorkflow(db, notifier=notifier).offer_to_eligible_members(community_id)
    return OfferSweepResult(
        community_id=sweep.community_id,
        members_checked=sweep.members_checked,
        offers_created=sweep.offers_created,
    )


@router.post(
    "/{community_id}/vouch-offers/{offer_id}/accept",
    response_model=AcceptedVouchOffer,
)
async def accept_vouch_offer(
    community_id: str,
    offer_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
    notifier: NotifierDep,
) -> dict[str, VouchOffer | Vouch]:
    """Accept a pending vouch offer, receiving the community vouch."""
    offer, vouch = VouchOfferWorkflow(db, notifier=notifier).accept(
        current_user.id, offer_id, community_id
    )
    return {"offer": offer, "vouch": vouch}


@router.post(
    "/{community_id}/vouch-offers/{offer_id}/reject",
    response_model=VouchOfferResponse,
)
async def reject_vouch_offer(
    community_id: str,
    offer_id: str,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> VouchOffer:
    """Decline a pending vouch offer."""
    return VouchOfferWorkflow(db).reject(current_user.id, offer_id, community_id)
