# src/community_trust/scripts/offer_vouches.py
"""Offer community vouches to members who currently meet the criteria.

Runs one eligibility pass per community and exits; schedule it externally
(cron or similar) if offers should be made periodically.
"""

from __future__ import annotations

import argparse
import logging
import sys

from community_trust.core.errors import TrustError
from community_trust.core.settings import settings
from community_trust.db.session import SessionLocal
from community_trust.models import Community
from community_trust.services.notifications import get_notifier
from community_trust.services.vouch_offers import OfferSweep, VouchOfferWorkflow

logger = logging.getLogger("community_trust.scripts.offer_vouches")


def offer_vouches(community_ids: list[str] | None = None) -> list[OfferSweep]:
    """Run the eligibility pass for the given communities, or all of them."""
    results: list[OfferSweep] = []
    with SessionLocal() as db:
        if not community_ids:
            community_ids = [row.id for row in db.query(Community.id).order_by(Community.name)]
        workflow = VouchOfferWorkflow(db, notifier=get_notifier())
        for community_id in community_ids:
            try:
                results.append(workflow.offer_to_eligible_members(community_id))
            except TrustError as exc:
                logger.error("Community %s skipped: %s", community_id, exc.message)
    return results


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Offer community vouches to eligible members")
    parser.add_argument(
        "--community",
        action="append",
        dest="communities",
        default=None,
        help="Community ID to process (repeatable). Defaults to every community.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level.upper())
    results = offer_vouches(args.communities)
    created = sum(result.offers_created for result in results)
    print(f"Processed {len(results)} communities, created {created} vouch offers")
    return 0


if __name__ == "__main__":
    sys.exit(main())
