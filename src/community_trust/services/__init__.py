# src/community_trust/services/__init__.py
"""Membership, eligibility and vouch services for the community trust engine."""

from .eligibility import EligibilityEvaluator
from .membership import MembershipService
from .permissions import PermissionGuard
from .store import TrustStore
from .vouch_ledger import VouchLedger
from .vouch_offers import VouchOfferWorkflow

__all__ = [
    "EligibilityEvaluator",
    "MembershipService",
    "PermissionGuard",
    "TrustStore",
    "VouchLedger",
    "VouchOfferWorkflow",
]
