"""Tests for the referral ledger."""
import math
from datetime import timedelta

import pytest

from be import models
from be.models import utcnow
from be.pipelines import NotFoundError
from be.pipelines.referrals import (
    ReferralError,
    ensure_connect_project,
    give_referral,
    givers_gain_ratio,
    list_referrals_given,
    record_referral_received,
    summarize_referrals,
    update_referral_status,
)


class TestGiversGainRatio:
    def test_balanced(self):
        assert givers_gain_ratio(3, 2) == 1.5

    def test_nothing_received(self):
        assert math.isinf(givers_gain_ratio(2, 0))

    def test_no_activity(self):
        assert givers_gain_ratio(0, 0) == 0.0


class TestGiveReferral:
    """Referrals given and their follow-up goals."""

    async def test_goal_created_under_connect_project(self, session, make_contact):
        project = await ensure_connect_project(session)
        bob = await make_contact("Bob Stone")

        referral, goal = await give_referral(session, "user-1", {
            "contact_id": bob.id,
            "referred_to_name": "Dana",
            "service_description": "Bookkeeping",
            "estimated_value": 1500,
        })

        assert referral.status == "pending"
        assert referral.given_by == "user-1"
        assert goal.title == "Connect: Dana"
        assert goal.category == "referral"
        assert goal.status == "active"
        assert goal.project_id == project.id
        assert goal.contact_id == bob.id
        assert goal.target_date == (utcnow() + timedelta(days=30)).date()

    async def test_no_goal_without_project(self, session, make_contact):
        bob = await make_contact("Bob Stone")
        _, goal = await give_referral(session, "user-1", {
            "contact_id": bob.id,
            "referred_to_name": "Dana",
            "service_description": "Bookkeeping",
        })
        assert goal is None

    async def test_no_goal_without_referred_name(self, session, make_contact):
        await ensure_connect_project(session)
        bob = await make_contact("Bob Stone")
        referral, goal = await give_referral(session, "user-1", {
            "contact_id": bob.id,
            "service_description": "Bookkeeping",
        })

        assert goal is None
        assert referral.estimated_value == 0.0

    async def test_unknown_contact(self, session):
        with pytest.raises(NotFoundError):
            await give_referral(session, "user-1", {"contact_id": 404, "service_description": "x"})

    async def test_connect_project_created_once(self, session):
        first = await ensure_connect_project(session)
        second = await ensure_connect_project(session)
        assert first.id == second.id


class TestUpdateReferralStatus:
    """Status transitions and closed business."""

    @pytest.fixture
    async def referral(self, session, make_contact):
        bob = await make_contact("Bob Stone")
        referral, _ = await give_referral(session, "user-1", {
            "contact_id": bob.id,
            "service_description": "Bookkeeping",
        })
        return referral

    async def test_completed_with_value_closes(self, session, referral):
        updated = await update_referral_status(session, referral.id, "completed", closed_value=2500, outcome_notes="Won")

        assert updated.status == "completed"
        assert updated.closed_value == 2500
        assert updated.closed_at is not None
        assert updated.outcome_notes == "Won"

    async def test_notes_kept_when_not_resent(self, session, referral):
        await update_referral_status(session, referral.id, "accepted", outcome_notes="Met, promising")
        updated = await update_referral_status(session, referral.id, "completed", closed_value=500)

        assert updated.outcome_notes == "Met, promising"
        assert updated.closed_value == 500

    async def test_value_ignored_for_other_statuses(self, session, referral):
        updated = await update_referral_status(session, referral.id, "accepted", closed_value=2500)

        assert updated.closed_value == 0.0
        assert updated.closed_at is None

    @pytest.mark.parametrize("status,direction", [("lost", "given"), ("accepted", "received"), ("done", "given")])
    async def test_invalid_status_for_direction(self, session, referral, status, direction):
        with pytest.raises(ReferralError):
            await update_referral_status(session, referral.id, status, direction=direction)

    async def test_negative_value(self, session, referral):
        with pytest.raises(ReferralError):
            await update_referral_status(session, referral.id, "completed", closed_value=-1)

    async def test_missing_referral(self, session):
        with pytest.raises(NotFoundError):
            await update_referral_status(session, 404, "completed")


class TestSummary:
    async def test_totals_count_completed_only(self, session, make_contact):
        bob = await make_contact("Bob Stone")
        r1, _ = await give_referral(session, "user-1", {"contact_id": bob.id, "service_description": "a"})
        await give_referral(session, "user-1", {"contact_id": bob.id, "service_description": "b"})
        received = await record_referral_received(session, "user-1", {
            "from_contact_id": bob.id,
            "client_name": "Erin",
            "service_description": "Design",
        })
        await update_referral_status(session, r1.id, "completed", closed_value=1000)
        await update_referral_status(session, received.id, "completed", direction="received", closed_value=400)

        summary = await summarize_referrals(session, "user-1")

        assert summary.given_count == 2
        assert summary.received_count == 1
        assert summary.givers_gain_ratio == 2.0
        assert not summary.unbounded
        assert summary.total_business_generated == 1000
        assert summary.total_business_received == 400

    async def test_unbounded_when_nothing_received(self, session, make_contact):
        bob = await make_contact("Bob Stone")
        await give_referral(session, "user-1", {"contact_id": bob.id, "service_description": "a"})

        summary = await summarize_referrals(session, "user-1")
        assert summary.unbounded

    async def test_other_users_excluded(self, session, make_contact):
        bob = await make_contact("Bob Stone")
        session.add(models.ReferralGiven(given_by="user-2", contact_id=bob.id, service_description="x"))
        await session.commit()

        assert await list_referrals_given(session, "user-1") == []
