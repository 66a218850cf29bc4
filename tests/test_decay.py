"""Tests for relationship decay alerts."""
from datetime import timedelta

import pytest

from be import models
from be.pipelines.decay import DecayLevel, calculate_decay, estimate_days_to_zero, find_decaying_contacts


class TestCalculateDecay:
    """Tiered decay from the start of the current tier."""

    @pytest.mark.parametrize("days,level,rate,strength", [
        (10, DecayLevel.NORMAL, 0.0, 50.0),
        (30, DecayLevel.NORMAL, 0.5, 50.0),
        (40, DecayLevel.NORMAL, 0.5, 45.0),
        (65, DecayLevel.WARNING, 1.0, 45.0),
        (95, DecayLevel.CRITICAL, 2.0, 40.0),
        (999, DecayLevel.CRITICAL, 2.0, 0.0),
    ])
    def test_tiers(self, days, level, rate, strength):
        result = calculate_decay(days, 50.0)
        assert result.decay_level == level
        assert result.decay_rate == rate
        assert result.current_strength == strength


class TestEstimateDaysToZero:
    @pytest.mark.parametrize("strength,rate,expected", [(40, 2, 20), (45, 1, 45), (49.5, 0.5, 99), (0, 2, 0), (50, 0, 0)])
    def test_estimate(self, strength, rate, expected):
        assert estimate_days_to_zero(strength, rate) == expected


class TestFindDecayingContacts:
    """Decay report for a user's contacts."""

    @pytest.fixture
    async def contacts(self, session, make_contact, now):
        stale = await make_contact("Stale Interaction", created_by="user-1")
        never = await make_contact("Never Contacted", created_by="user-1")
        fresh = await make_contact("Fresh Contact", created_by="user-1")
        await make_contact("Someone Else's", created_by="user-2")
        stored = await make_contact("Stored Strength", created_by="user-1")
        zero = await make_contact("Zero Strength", created_by="user-1")

        session.add_all([
            models.Interaction(contact_id=stale.id, type="call", date=now - timedelta(days=100)),
            models.Interaction(contact_id=stale.id, type="call", date=now - timedelta(days=300)),
            models.Interaction(contact_id=fresh.id, type="coffee", date=now - timedelta(days=5)),
            models.ContactNetworkValue(
                contact_id=stored.id,
                relationship_strength=80,
                last_interaction_date=now - timedelta(days=45),
            ),
            models.ContactNetworkValue(
                contact_id=zero.id,
                relationship_strength=0,
                last_interaction_date=now - timedelta(days=70),
            ),
        ])
        await session.commit()
        return {"stale": stale, "never": never, "stored": stored, "zero": zero}

    async def test_report(self, session, contacts, now):
        report = await find_decaying_contacts(session, "user-1", now=now)

        assert [c.contact_id for c in report.contacts] == [
            contacts["never"].id,
            contacts["stale"].id,
            contacts["zero"].id,
            contacts["stored"].id,
        ]
        assert report.critical_count == 2
        assert report.warning_count == 1

    async def test_latest_interaction_is_used(self, session, contacts, now):
        report = await find_decaying_contacts(session, "user-1", now=now)
        stale = next(c for c in report.contacts if c.contact_id == contacts["stale"].id)

        assert stale.days_since_last_interaction == 100
        assert stale.current_strength == 30.0
        assert stale.estimated_days_to_zero == 15

    async def test_never_contacted(self, session, contacts, now):
        report = await find_decaying_contacts(session, "user-1", now=now)
        never = report.contacts[0]

        assert never.last_interaction_date is None
        assert never.days_since_last_interaction == 999
        assert never.current_strength == 0.0
        assert never.estimated_days_to_zero == 0

    async def test_stored_strength(self, session, contacts, now):
        report = await find_decaying_contacts(session, "user-1", now=now)
        by_id = {c.contact_id: c for c in report.contacts}

        stored = by_id[contacts["stored"].id]
        assert stored.original_strength == 80
        assert stored.current_strength == 72.5
        assert stored.estimated_days_to_zero == 145

        zero = by_id[contacts["zero"].id]
        assert zero.original_strength == 50.0
        assert zero.current_strength == 40.0

    async def test_unknown_user(self, session, contacts, now):
        report = await find_decaying_contacts(session, "nobody", now=now)
        assert report.contacts == []
        assert report.critical_count == 0
