"""BNI relationship metrics for a single contact.

Gathers referrals exchanged with the contact, its opportunities and its
latest completed GAINS meeting, derives Giver's Gain and strength scores,
and asks the follow-up rule engine what to do next.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from be import models
from be.models import utcnow
from be.pipelines import NotFoundError
from be.pipelines.normalization import days_between, round_half_up
from be.rules import FollowUpAction, FollowUpRuleEngine, RuleTrace

logger = logging.getLogger(__name__)


class BNIMetricsError(Exception):
    """Raised when contact metrics cannot be computed."""
    pass


@dataclass
class BNIContactMetrics:
    """Relationship health of one contact from the user's point of view."""
    contact_id: int
    relationship_strength: int  # 0-100
    givers_gain_score: int  # 0-100
    referrals_given: int
    referrals_received: int
    business_generated: float
    business_received: float
    days_since_last_contact: int
    total_meetings: int
    gains_completed: bool
    last_one_to_one_meeting: datetime | None = None
    ideal_referral: str | None = None
    how_to_help: str | None = None
    follow_up_actions: list[FollowUpAction] = field(default_factory=list)
    rule_traces: list[RuleTrace] = field(default_factory=list)


def givers_gain_score(given: int, received: int) -> int:
    """100 for pure giving, 0 for no exchange, else given/received as a capped percentage."""
    if received == 0:
        return 100 if given > 0 else 0
    return round_half_up(min(100.0, given / received * 100))


def relationship_strength(
    meeting_count: int,
    given: int,
    received: int,
    business_generated: float,
    days_since_last_contact: int,
) -> int:
    """Strength in [0, 100] from meetings, referrals, closed business and recency."""
    strength = 0.0
    strength += min(30, meeting_count * 5)
    strength += min(25, given * 5)
    strength += min(25, received * 5)
    strength += min(10.0, business_generated / 1000)
    strength += max(0.0, 10 - days_since_last_contact / 3)
    return round_half_up(strength)


async def calculate_bni_metrics(
    session: AsyncSession,
    contact_id: int,
    now: datetime | None = None,
    engine: FollowUpRuleEngine | None = None,
) -> BNIContactMetrics:
    """Compute BNI metrics and follow-up actions for a contact.

    Args:
        session: Database session
        contact_id: Contact to evaluate
        now: Reference time (defaults to current UTC)
        engine: Follow-up rule engine (defaults to the standard rules)

    Raises:
        NotFoundError: If the contact does not exist
        BNIMetricsError: If loading related rows fails
    """
    now = now or utcnow()
    engine = engine or FollowUpRuleEngine()

    contact = await session.get(models.Contact, contact_id)
    if contact is None:
        raise NotFoundError(f"Contact {contact_id} not found")

    try:
        given = (await session.execute(
            select(models.ReferralGiven.status, models.ReferralGiven.closed_value)
            .where(models.ReferralGiven.referred_to_contact_id == contact_id)
        )).all()
        received = (await session.execute(
            select(models.ReferralReceived.status, models.ReferralReceived.closed_value)
            .where(models.ReferralReceived.from_contact_id == contact_id)
        )).all()
        opportunities = (await session.execute(
            select(models.Opportunity)
            .where(models.Opportunity.contact_id == contact_id)
            .order_by(models.Opportunity.date.desc())
        )).scalars().all()
        gains = (await session.execute(
            select(models.GainsMeeting)
            .where(models.GainsMeeting.contact_id == contact_id, models.GainsMeeting.completed.is_(True))
            .order_by(models.GainsMeeting.meeting_date.desc())
            .limit(1)
        )).scalars().first()
    except Exception as e:
        logger.error(f"Loading BNI data for contact {contact_id} failed: {e}", exc_info=True)
        raise BNIMetricsError(f"Failed to load BNI data for contact {contact_id}: {e}") from e

    business_generated = sum(value or 0.0 for status, value in given if status == "completed")
    business_received = sum(value or 0.0 for status, value in received if status == "completed")

    meetings = [o for o in opportunities if o.type == "meeting"]
    last_one_to_one = meetings[0].date if meetings else None

    if contact.last_contact is not None:
        days_since = days_between(contact.last_contact, now)
    elif opportunities:
        days_since = days_between(opportunities[0].created_at, now)
    else:
        days_since = 0

    actions, traces = engine.evaluate({
        "days_since_last_contact": days_since,
        "gains_completed": gains is not None,
        "meeting_count": len(meetings),
        "has_last_meeting": last_one_to_one is not None,
        "ideal_referral": gains.ideal_referral if gains else None,
        "referrals_given": len(given),
        "referrals_received": len(received),
    })

    metrics = BNIContactMetrics(
        contact_id=contact_id,
        relationship_strength=relationship_strength(
            len(meetings), len(given), len(received), business_generated, days_since,
        ),
        givers_gain_score=givers_gain_score(len(given), len(received)),
        referrals_given=len(given),
        referrals_received=len(received),
        business_generated=business_generated,
        business_received=business_received,
        days_since_last_contact=days_since,
        total_meetings=len(opportunities),
        gains_completed=gains is not None,
        last_one_to_one_meeting=last_one_to_one,
        ideal_referral=gains.ideal_referral if gains else None,
        how_to_help=gains.how_to_help if gains else None,
        follow_up_actions=actions,
        rule_traces=traces,
    )
    logger.debug(
        f"BNI metrics for contact {contact_id}: strength {metrics.relationship_strength}, "
        f"{len(actions)} follow-up actions"
    )
    return metrics
