"""GAINS meetings (Goals, Accomplishments, Interests, Networks, Skills) and their follow-up goals."""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from be import models
from be.config import settings
from be.models import utcnow
from be.pipelines import NotFoundError
from be.pipelines.normalization import as_naive_utc

logger = logging.getLogger(__name__)

GAINS_FIELDS = frozenset({
    "meeting_date", "goals", "accomplishments", "interests", "networks", "skills",
    "ideal_referral", "how_to_help", "target_market", "preparation_notes",
})


class GainsError(Exception):
    """Raised when a GAINS meeting cannot be recorded."""
    pass


def build_follow_up_goals(contact: models.Contact, meeting: models.GainsMeeting) -> list[models.Goal]:
    """Goals implied by a completed GAINS meeting: one for the ideal referral, one for how to help."""
    target_date = (utcnow() + timedelta(days=settings.referrals.goal_due_days)).date()
    goals = []

    if meeting.ideal_referral:
        goals.append(models.Goal(
            title=f"Find referral for {contact.name}: {meeting.ideal_referral}",
            description=f"Ideal referral: {meeting.ideal_referral}",
            category="referral",
            status="active",
            progress_percentage=0,
            target_date=target_date,
            contact_id=contact.id,
        ))

    if meeting.how_to_help:
        goals.append(models.Goal(
            title=f"Help {contact.name}: {meeting.how_to_help}",
            description=meeting.how_to_help,
            category="networking",
            status="active",
            progress_percentage=0,
            target_date=target_date,
            contact_id=contact.id,
        ))

    return goals


async def record_gains_meeting(
    session: AsyncSession,
    contact_id: int,
    data: Mapping[str, Any],
    *,
    conducted_by: str | None = None,
) -> tuple[models.GainsMeeting, list[models.Goal]]:
    """Store a completed GAINS meeting together with its follow-up goals.

    Returns:
        Tuple of (meeting, created goals)

    Raises:
        NotFoundError: If the contact does not exist
        GainsError: If the data is invalid or the insert fails
    """
    unknown = set(data) - GAINS_FIELDS
    if unknown:
        raise GainsError(f"Unknown fields: {', '.join(sorted(unknown))}")

    contact = await session.get(models.Contact, contact_id)
    if contact is None:
        raise NotFoundError(f"Contact {contact_id} not found")

    fields = dict(data)
    fields["meeting_date"] = as_naive_utc(fields.get("meeting_date") or utcnow())

    try:
        meeting = models.GainsMeeting(
            contact_id=contact_id,
            conducted_by=conducted_by,
            completed=True,
            **fields,
        )
        session.add(meeting)

        goals = build_follow_up_goals(contact, meeting)
        session.add_all(goals)

        await session.commit()
        logger.info(f"Recorded GAINS meeting {meeting.id} with contact {contact_id}, {len(goals)} follow-up goals")
        return meeting, goals
    except Exception as e:
        logger.error(f"Recording GAINS meeting failed for contact {contact_id}: {e}", exc_info=True)
        await session.rollback()
        raise GainsError(f"Failed to record GAINS meeting: {e}") from e


async def list_gains_meetings(session: AsyncSession, contact_id: int) -> list[models.GainsMeeting]:
    """GAINS meetings with a contact, newest first."""
    if await session.get(models.Contact, contact_id) is None:
        raise NotFoundError(f"Contact {contact_id} not found")

    result = await session.execute(
        select(models.GainsMeeting)
        .where(models.GainsMeeting.contact_id == contact_id)
        .order_by(models.GainsMeeting.meeting_date.desc())
    )
    return list(result.scalars().all())
