"""Tests for per-contact BNI metrics and follow-up actions."""
from datetime import timedelta

import pytest

from be import models
from be.pipelines import NotFoundError
from be.pipelines.bni_metrics import calculate_bni_metrics, givers_gain_score, relationship_strength
from be.rules import Priority


class TestScores:
    @pytest.mark.parametrize("given,received,expected", [(0, 0, 0), (3, 0, 100), (1, 2, 50), (5, 1, 100), (1, 3, 33)])
    def test_givers_gain_score(self, given, received, expected):
        assert givers_gain_score(given, received) == expected

    def test_strength_components_are_capped(self):
        assert relationship_strength(10, 10, 10, 50_000, 0) == 100

    def test_strength_recency_fades_after_a_month(self):
        assert relationship_strength(0, 0, 0, 0, 30) == 0
        assert relationship_strength(0, 0, 0, 0, 15) == 5


class TestCalculateBNIMetrics:
    """Metrics assembled from the database."""

    async def test_new_contact_needs_attention(self, session, make_contact, now):
        dana = await make_contact("Dana Lee", last_contact=now - timedelta(days=40))

        metrics = await calculate_bni_metrics(session, dana.id, now=now)

        assert metrics.days_since_last_contact == 40
        assert metrics.relationship_strength == 0
        assert metrics.givers_gain_score == 0
        assert not metrics.gains_completed
        assert [a.action for a in metrics.follow_up_actions] == [
            "Schedule catch-up meeting",
            "Conduct GAINS meeting",
            "Schedule first meeting",
        ]
        assert all(a.priority == Priority.HIGH for a in metrics.follow_up_actions)
        assert len(metrics.rule_traces) == 6

    async def test_never_contacted_counts_as_today(self, session, make_contact, now):
        dana = await make_contact("Dana Lee")
        metrics = await calculate_bni_metrics(session, dana.id, now=now)

        assert metrics.days_since_last_contact == 0
        assert metrics.relationship_strength == 10

    async def test_active_relationship(self, session, make_contact, now):
        bob = await make_contact("Bob Stone")
        dana = await make_contact("Dana Lee", last_contact=now - timedelta(days=3))
        meeting_date = now - timedelta(days=3)
        session.add_all([
            models.ReferralGiven(
                given_by="user-1",
                contact_id=bob.id,
                referred_to_contact_id=dana.id,
                service_description="Bookkeeping",
                status="completed",
                closed_value=5000,
            ),
            models.ReferralGiven(
                given_by="user-1",
                contact_id=bob.id,
                referred_to_contact_id=dana.id,
                service_description="Payroll",
            ),
            models.ReferralReceived(
                received_by="user-1",
                from_contact_id=dana.id,
                client_name="Erin",
                service_description="Design",
            ),
            models.Opportunity(contact_id=dana.id, title="1-2-1 with Dana", type="meeting", date=meeting_date),
            models.Opportunity(contact_id=dana.id, title="Chamber mixer", type="event", date=now - timedelta(days=20)),
            models.GainsMeeting(
                contact_id=dana.id,
                completed=True,
                ideal_referral="Restaurant owners",
                how_to_help="Intros to caterers",
            ),
        ])
        await session.commit()

        metrics = await calculate_bni_metrics(session, dana.id, now=now)

        assert metrics.referrals_given == 2
        assert metrics.referrals_received == 1
        assert metrics.business_generated == 5000
        assert metrics.business_received == 0
        assert metrics.givers_gain_score == 100
        # 1 meeting (5) + 2 given (10) + 1 received (5) + $5k (5) + 3 days ago (9)
        assert metrics.relationship_strength == 34
        assert metrics.total_meetings == 2
        assert metrics.last_one_to_one_meeting == meeting_date
        assert metrics.gains_completed
        assert metrics.ideal_referral == "Restaurant owners"
        assert metrics.how_to_help == "Intros to caterers"
        assert metrics.follow_up_actions == []

    async def test_unknown_contact(self, session):
        with pytest.raises(NotFoundError):
            await calculate_bni_metrics(session, 404)
