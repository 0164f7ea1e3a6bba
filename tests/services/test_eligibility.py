"""Tests for auto-vouch eligibility."""

from datetime import UTC, datetime, timedelta

from community_trust.models import Community
from community_trust.services.eligibility import (
    EligibilityCriteria,
    EligibilityEvaluator,
    MembershipFacts,
    evaluate,
    membership_days,
)
from community_trust.services.vouch_ledger import VouchLedger

CRITERIA = EligibilityCriteria(required_events=5, required_days=90, max_vouches=2)


def test_member_meeting_every_threshold_is_eligible() -> None:
    facts = MembershipFacts(
        is_approved_member=True,
        events_attended=6,
        membership_days=120,
        current_vouches=0,
        has_negative_feedback=False,
    )

    result = evaluate(facts, CRITERIA)

    assert result.is_eligible is True
    assert result.reason == "Member meets all auto-vouch criteria"
    assert result.facts == facts


def test_exact_thresholds_are_enough() -> None:
    facts = MembershipFacts(
        is_approved_member=True,
        events_attended=5,
        membership_days=90,
        current_vouches=1,
    )
    assert evaluate(facts, CRITERIA).is_eligible is True


def test_every_unmet_condition_is_listed() -> None:
    facts = MembershipFacts(
        is_approved_member=True,
        events_attended=2,
        membership_days=30,
        current_vouches=2,
        has_negative_feedback=True,
    )

    result = evaluate(facts, CRITERIA)

    assert result.is_eligible is False
    assert result.reason == (
        "Member does not meet criteria: only 2/5 events attended; "
        "only 30/90 days of membership; has negative feedback; "
        "maximum community vouches reached (2)"
    )
    # Raw values are reported alongside the thresholds.
    response = result.to_response()
    assert response.criteria.events_attended == 2
    assert response.criteria.required_days == 90
    assert response.criteria.current_vouches == 2


def test_non_member_short_circuits_with_zeroed_facts() -> None:
    result = evaluate(
        MembershipFacts(is_approved_member=False, events_attended=9, membership_days=400),
        CRITERIA,
    )

    assert result.is_eligible is False
    assert result.reason == "Not an approved member of this community"
    assert result.facts.events_attended == 0
    assert result.facts.membership_days == 0


def test_membership_days_counts_whole_days() -> None:
    joined = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    assert membership_days(joined, joined + timedelta(days=89, hours=23)) == 89
    assert membership_days(joined, joined + timedelta(days=90)) == 90
    assert membership_days(joined, joined - timedelta(days=1)) == 0


def test_evaluator_gathers_facts_from_store(db_session, community, admin, member_user, add_member, attend_events, clock) -> None:
    add_member(member_user, community, joined_at=clock() - timedelta(days=120))
    attend_events(member_user, community, 6)
    evaluator = EligibilityEvaluator(db_session, criteria=CRITERIA, clock=clock)

    facts = evaluator.gather_facts(member_user.id, community.id)

    assert facts == MembershipFacts(
        is_approved_member=True,
        events_attended=6,
        membership_days=120,
        current_vouches=0,
        has_negative_feedback=False,
    )
    assert evaluator.check(member_user.id, community.id).is_eligible is True


def test_pending_member_is_not_eligible(db_session, community, member_user, add_member, attend_events, clock) -> None:
    add_member(member_user, community, is_approved=False, joined_at=clock() - timedelta(days=200))
    attend_events(member_user, community, 10)

    result = EligibilityEvaluator(db_session, criteria=CRITERIA, clock=clock).check(
        member_user.id, community.id
    )

    assert result.is_eligible is False
    assert result.reason == "Not an approved member of this community"


def test_attendance_in_other_communities_is_ignored(db_session, community, admin, member_user, add_member, attend_events, clock) -> None:
    other = Community(name="Elsewhere", created_by_id=admin.id)
    db_session.add(other)
    db_session.commit()
    add_member(member_user, community, joined_at=clock() - timedelta(days=120))
    attend_events(member_user, other, 6)

    facts = EligibilityEvaluator(db_session, criteria=CRITERIA, clock=clock).gather_facts(
        member_user.id, community.id
    )

    assert facts.events_attended == 0


def test_live_vouches_from_any_community_count(db_session, community, admin, member_user, add_member, clock) -> None:
    add_member(member_user, community, joined_at=clock() - timedelta(days=120))
    VouchLedger(db_session).grant(admin.id, community.id, member_user.id)

    facts = EligibilityEvaluator(db_session, criteria=CRITERIA, clock=clock).gather_facts(
        member_user.id, community.id
    )

    assert facts.current_vouches == 1


def test_injected_sources_are_used(db_session, community, member_user, add_member, clock) -> None:
    add_member(member_user, community, joined_at=clock() - timedelta(days=120))
    evaluator = EligibilityEvaluator(
        db_session,
        criteria=CRITERIA,
        attendance=lambda user_id, community_id: 7,
        feedback=lambda user_id: True,
        clock=clock,
    )

    result = evaluator.check(member_user.id, community.id)

    assert result.facts.events_attended == 7
    assert result.is_eligible is False
    assert result.reason.endswith("has negative feedback")
