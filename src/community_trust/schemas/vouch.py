# src/community_trust/schemas/vouch.py
"""Vouch, eligibility and vouch-offer Pydantic schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from community_trust.models.vouch import VouchStatus, VouchType
from community_trust.models.vouch_offer import VouchOfferStatus


class AutoVouchCriteria(BaseModel):
    """Snapshot stored on a vouch minted from an accepted offer.

    The shape is closed: unknown keys are rejected so stored snapshots stay
    checkable. Bump ``version`` when the shape changes.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    version: Literal[1] = 1
    source: Literal["community_eligibility"] = "community_eligibility"
    events_attended: int = Field(..., ge=0)
    membership_days: int = Field(..., ge=0)
    offer_id: str


class EligibilityCriteriaOut(BaseModel):
    """Raw eligibility values alongside their thresholds."""

    events_attended: int
    required_events: int
    membership_days: int
    required_days: int
    has_negative_feedback: bool
    current_vouches: int
    max_vouches: int


class EligibilityResponse(BaseModel):
    """Outcome of an auto-vouch eligibility check."""

    is_eligible: bool
    reason: str
    criteria: EligibilityCriteriaOut


class VouchResponse(BaseModel):
    """Vouch record as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    voucher_id: str
    vouchee_id: str
    vouch_type: VouchType
    weight_percentage: float
    is_community_vouch: bool
    community_id: str | None
    vouched_by_admin_id: str | None
    status: VouchStatus
    requires_approval: bool
    is_auto_vouched: bool
    auto_vouch_criteria: AutoVouchCriteria | None
    message: str | None
    created_at: datetime
    approved_at: datetime | None
    activated_at: datetime | None
    revoked_at: datetime | None
    revoke_reason: str | None


class VouchOfferResponse(BaseModel):
    """Vouch offer as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    community_id: str
    eligibility_reason: str
    events_attended: int
    membership_days: int
    status: VouchOfferStatus
    created_at: datetime
    expires_at: datetime
    accepted_at: datetime | None
    rejected_at: datetime | None
    vouch_id: str | None


class PendingVouchOffer(VouchOfferResponse):
    """A pending offer annotated with the whole days left to act on it."""

    days_remaining: int


class PendingVouchOfferList(BaseModel):
    """Pending offers of the caller in one community."""

    offers: list[PendingVouchOffer]
    count: int


class VouchOfferPage(BaseModel):
    """One page of vouch offers for administrators."""

    offers: list[VouchOfferResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class AcceptedVouchOffer(BaseModel):
    """Result of accepting an offer: the closed offer and the new vouch."""

    offer: VouchOfferResponse
    vouch: VouchResponse


class OfferSweepResult(BaseModel):
    """Counts produced by an on-demand eligibility pass over a community."""

    community_id: str
    members_checked: int
    offers_created: int
