"""Tests for per-contact network value."""
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from be import models
from be.pipelines import NotFoundError
from be.pipelines.network_value import (
    calculate_network_value,
    get_network_value,
    list_network_values,
    score_network_value,
)


class TestScoreNetworkValue:
    """Pure scoring."""

    def test_neutral_reciprocity_until_something_received(self, now):
        assert score_network_value(2, 0, 0, 0, None, now).reciprocity_score == 50.0

    @pytest.mark.parametrize("given,received,expected", [(1, 1, 50.0), (1, 2, 25.0), (3, 1, 100.0)])
    def test_reciprocity(self, now, given, received, expected):
        assert score_network_value(given, received, 0, 0, None, now).reciprocity_score == expected

    def test_recency_loses_a_point_per_month(self, now):
        scores = score_network_value(0, 0, 10_000, 0, now - timedelta(days=65), now)

        assert scores.interaction_recency == 98
        assert scores.business_factor == 10.0
        assert scores.relationship_strength == 59

    def test_no_interactions(self, now):
        scores = score_network_value(0, 0, 0, 0, None, now)
        assert scores.interaction_recency == 0
        assert scores.relationship_strength == 0

    def test_business_factor_capped(self, now):
        scores = score_network_value(0, 0, 80_000, 40_000, now, now)

        assert scores.business_factor == 50.0
        assert scores.relationship_strength == 100
        assert scores.lifetime_value == 120_000


class TestCalculateNetworkValue:
    """Loading, scoring and upserting the stored row."""

    @pytest.fixture
    async def bob(self, session, make_contact, now):
        bob = await make_contact("Bob Stone")
        session.add_all([
            models.ReferralGiven(
                given_by="user-1",
                contact_id=bob.id,
                service_description="Bookkeeping",
                status="completed",
                closed_value=2000,
            ),
            models.ReferralGiven(given_by="user-1", contact_id=bob.id, service_description="Legal"),
            models.ReferralReceived(
                received_by="user-1",
                from_contact_id=bob.id,
                client_name="Erin",
                service_description="Design",
                status="completed",
                closed_value=1000,
            ),
            models.Interaction(contact_id=bob.id, type="call", date=now - timedelta(days=40)),
            models.Interaction(contact_id=bob.id, type="coffee", date=now - timedelta(days=10)),
        ])
        await session.commit()
        return bob

    async def test_values(self, session, bob, now):
        row = await calculate_network_value(session, bob.id, now=now)

        assert row.total_referrals_given == 2
        assert row.total_referrals_received == 1
        assert row.total_business_generated == 2000
        assert row.total_business_received == 1000
        assert row.reciprocity_score == 100.0
        assert row.relationship_strength == 53
        assert row.lifetime_value == 3000
        assert row.last_interaction_date == now - timedelta(days=10)
        assert row.calculated_at == now

    async def test_upsert_keeps_one_row(self, session, bob, now):
        await calculate_network_value(session, bob.id, now=now)
        await calculate_network_value(session, bob.id, now=now + timedelta(days=1))

        count = (await session.execute(select(func.count()).select_from(models.ContactNetworkValue))).scalar()
        assert count == 1

    async def test_get_calculates_on_first_access(self, session, bob):
        row = await get_network_value(session, bob.id)
        assert row.lifetime_value == 3000

    async def test_unknown_contact(self, session):
        with pytest.raises(NotFoundError):
            await calculate_network_value(session, 404)

    async def test_list_by_lifetime_value(self, session, bob, make_contact, now):
        quiet = await make_contact("Quiet Contact")
        await calculate_network_value(session, quiet.id, now=now)
        await calculate_network_value(session, bob.id, now=now)

        assert [r.contact_id for r in await list_network_values(session)] == [bob.id, quiet.id]
