# src/community_trust/services/eligibility.py
"""Auto-vouch eligibility.

``evaluate`` is a pure function of membership facts. ``EligibilityEvaluator``
gathers those facts from the store and never writes.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from community_trust.core.settings import settings
from community_trust.db.time import utcnow
from community_trust.models import EventAttendance
from community_trust.schemas.vouch import EligibilityCriteriaOut, EligibilityResponse
from community_trust.services.store import TrustStore

# (user_id, community_id) -> number of attended events in that community.
AttendanceSource = Callable[[str, str], int]
# user_id -> whether the user has received negative feedback.
FeedbackSource = Callable[[str], bool]


@dataclass(frozen=True)
class EligibilityCriteria:
    """Thresholds a member must meet for an automatic community vouch."""

    required_events: int = 5
    required_days: int = 90
    max_vouches: int = 2


@dataclass(frozen=True)
class MembershipFacts:
    """Inputs to the eligibility decision for one (user, community) pair."""

    is_approved_member: bool
    events_attended: int = 0
    membership_days: int = 0
    current_vouches: int = 0
    has_negative_feedback: bool = False


@dataclass(frozen=True)
class EligibilityResult:
    """Decision plus every raw value and threshold behind it."""

    is_eligible: bool
    reason: str
    facts: MembershipFacts
    criteria: EligibilityCriteria

    @property
    def summary(self) -> str:
        """Short description of the facts, stored on offers."""
        feedback = "negative feedback" if self.facts.has_negative_feedback else "no negative feedback"
        return (
            f"{self.facts.events_attended} events attended, "
            f"{self.facts.membership_days} days of membership, {feedback}"
        )

    def to_response(self) -> EligibilityResponse:
        return EligibilityResponse(
            is_eligible=self.is_eligible,
            reason=self.reason,
            criteria=EligibilityCriteriaOut(
                events_attended=self.facts.events_attended,
                required_events=self.criteria.required_events,
                membership_days=self.facts.membership_days,
                required_days=self.criteria.required_days,
                has_negative_feedback=self.facts.has_negative_feedback,
                current_vouches=self.facts.current_vouches,
                max_vouches=self.criteria.max_vouches,
            ),
        )


DEFAULT_CRITERIA = EligibilityCriteria()


def membership_days(joined_at: datetime, now: datetime) -> int:
    """Whole days elapsed since ``joined_at``."""
    return max(0, (now - joined_at) // timedelta(days=1))


def evaluate(facts: MembershipFacts, criteria: EligibilityCriteria = DEFAULT_CRITERIA) -> EligibilityResult:
    """Decide auto-vouch eligibility, listing every unmet condition."""
    if not facts.is_approved_member:
        return EligibilityResult(
            is_eligible=False,
            reason="Not an approved member of this community",
            facts=MembershipFacts(is_approved_member=False),
            criteria=criteria,
        )

    unmet: list[str] = []
    if facts.events_attended < criteria.required_events:
        unmet.append(
            f"only {facts.events_attended}/{criteria.required_events} events attended"
        )
    if facts.membership_days < criteria.required_days:
        unmet.append(
            f"only {facts.membership_days}/{criteria.required_days} days of membership"
        )
    if facts.has_negative_feedback:
        unmet.append("has negative feedback")
    if facts.current_vouches >= criteria.max_vouches:
        unmet.append(f"maximum community vouches reached ({criteria.max_vouches})")

    if unmet:
        reason = "Member does not meet criteria: " + "; ".join(unmet)
    else:
        reason = "Member meets all auto-vouch criteria"
    return EligibilityResult(
        is_eligible=not unmet,
        reason=reason,
        facts=facts,
        criteria=criteria,
    )


def count_attended_events(db: Session) -> AttendanceSource:
    """Attendance source backed by the ``event_attendance`` table."""

    def count(user_id: str, community_id: str) -> int:
        return (
            db.query(func.count(func.distinct(EventAttendance.event_id)))
            .filter(
                EventAttendance.user_id == user_id,
                EventAttendance.community_id == community_id,
            )
            .scalar()
            or 0
        )

    return count


def no_negative_feedback(user_id: str) -> bool:
    """Feedback source used until a feedback signal is wired in."""
    return False


class EligibilityEvaluator:
    """Collect membership facts for a pair and evaluate them."""

    def __init__(
        self,
        db: Session,
        *,
        criteria: EligibilityCriteria | None = None,
        attendance: AttendanceSource | None = None,
        feedback: FeedbackSource = no_negative_feedback,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = TrustStore(db)
        self.criteria = criteria or settings.eligibility_criteria
        self.attendance = attendance or count_attended_events(db)
        self.feedback = feedback
        self.clock = clock

    def gather_facts(self, user_id: str, community_id: str) -> MembershipFacts:
        member = self.store.get_membership(user_id, community_id)
        if member is None or not member.is_approved:
            return MembershipFacts(is_approved_member=False)
        return MembershipFacts(
            is_approved_member=True,
            events_attended=self.attendance(user_id, community_id),
            membership_days=membership_days(member.joined_at, self.clock()),
            current_vouches=self.store.count_live_community_vouches(user_id),
            has_negative_feedback=self.feedback(user_id),
        )

    def check(self, user_id: str, community_id: str) -> EligibilityResult:
        return evaluate(self.gather_facts(user_id, community_id), self.criteria)
