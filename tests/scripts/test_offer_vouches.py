"""Tests for the on-demand vouch offer script."""

from datetime import timedelta

from sqlalchemy.orm import sessionmaker

from community_trust.db.time import utcnow
from community_trust.models import VouchOffer
from community_trust.scripts import offer_vouches


def test_script_offers_vouches_in_every_community(monkeypatch, engine, db_session, community, make_user, add_member, attend_events, capsys) -> None:
    veteran = make_user("Veteran")
    add_member(veteran, community, joined_at=utcnow() - timedelta(days=120))
    attend_events(veteran, community, 6)
    monkeypatch.setattr(offer_vouches, "SessionLocal", sessionmaker(bind=engine))

    exit_code = offer_vouches.main([])

    assert exit_code == 0
    assert "created 1 vouch offers" in capsys.readouterr().out
    [offer] = db_session.query(VouchOffer).all()
    assert offer.user_id == veteran.id


def test_script_reports_unknown_community(monkeypatch, engine, caplog) -> None:
    monkeypatch.setattr(offer_vouches, "SessionLocal", sessionmaker(bind=engine))

    results = offer_vouches.offer_vouches(["missing"])

    assert results == []
    assert "Community not found" in caplog.text
