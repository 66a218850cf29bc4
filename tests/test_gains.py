"""Tests for GAINS meetings and their follow-up goals."""
from datetime import datetime, timedelta

import pytest

from be.pipelines import NotFoundError
from be.pipelines.gains import GainsError, list_gains_meetings, record_gains_meeting


class TestRecordGainsMeeting:
    """Recording a meeting creates its follow-up goals."""

    async def test_follow_up_goals(self, session, make_contact):
        dana = await make_contact("Dana Lee")
        meeting, goals = await record_gains_meeting(
            session,
            dana.id,
            {"goals": "Open second office", "ideal_referral": "Dentists", "how_to_help": "Share her newsletter"},
            conducted_by="user-1",
        )

        assert meeting.completed
        assert meeting.conducted_by == "user-1"
        assert meeting.meeting_date is not None
        assert [(g.title, g.category) for g in goals] == [
            ("Find referral for Dana Lee: Dentists", "referral"),
            ("Help Dana Lee: Share her newsletter", "networking"),
        ]
        assert all(g.id is not None and g.contact_id == dana.id for g in goals)

    async def test_no_goals_without_referral_or_help(self, session, make_contact):
        dana = await make_contact("Dana Lee")
        _, goals = await record_gains_meeting(session, dana.id, {"interests": "Sailing"})
        assert goals == []

    async def test_unknown_field(self, session, make_contact):
        dana = await make_contact("Dana Lee")
        with pytest.raises(GainsError):
            await record_gains_meeting(session, dana.id, {"completed": False})

    async def test_unknown_contact(self, session):
        with pytest.raises(NotFoundError):
            await record_gains_meeting(session, 404, {})

    async def test_listed_newest_first(self, session, make_contact):
        dana = await make_contact("Dana Lee")
        await record_gains_meeting(session, dana.id, {"meeting_date": datetime(2025, 1, 1), "goals": "first"})
        await record_gains_meeting(session, dana.id, {"meeting_date": datetime(2025, 3, 1), "goals": "second"})

        assert [m.goals for m in await list_gains_meetings(session, dana.id)] == ["second", "first"]
