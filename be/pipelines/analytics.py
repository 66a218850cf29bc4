"""Relationship analytics for a user's contact book.

Monthly relationship trajectories, an overall network health score,
per-contact referral reciprocity and prioritised recommendations. Each
aggregate has a pure scoring function and an async loader.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from be import models
from be.config import settings
from be.models import utcnow
from be.pipelines.normalization import days_between, round_half_up
from be.rules import Priority

logger = logging.getLogger(__name__)

NO_INTERACTION_DAYS = 999


class AnalyticsError(Exception):
    """Raised when relationship analytics cannot be loaded."""
    pass


class Trend(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class Balance(str, Enum):
    GIVER = "giver"
    TAKER = "taker"
    BALANCED = "balanced"


@dataclass
class TrajectoryPoint:
    month: str  # YYYY-MM
    strength: float
    business_value: float
    interactions: int


@dataclass
class RelationshipTrajectory:
    contact_id: int
    contact_name: str
    data_points: list[TrajectoryPoint]
    trend: Trend
    current_strength: float


@dataclass
class NetworkHealth:
    """Network-wide engagement, reciprocity and quality, each 0-100."""
    overall_score: int
    engagement_momentum: float
    reciprocity_balance: float
    interaction_quality: float
    active_contacts: int
    at_risk_contacts: int
    growing_relationships: int


@dataclass
class ReciprocityInsight:
    contact_id: int
    contact_name: str
    given: int
    received: int
    balance: Balance
    ratio: float


@dataclass
class Recommendation:
    type: str  # contact, referral
    priority: Priority
    contact_id: int
    contact_name: str
    reason: str
    potential_value: float
    confidence: float


@dataclass
class RelationshipAnalytics:
    trajectories: list[RelationshipTrajectory] = field(default_factory=list)
    network_health: NetworkHealth | None = None
    reciprocity_insights: list[ReciprocityInsight] = field(default_factory=list)
    recommendations: list[Recommendation] = field(default_factory=list)


PRIORITY_RANK = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}


def month_windows(now: datetime, months: int) -> list[tuple[datetime, datetime]]:
    """Calendar month ``[start, end)`` windows, oldest first, ending with the month of ``now``."""
    current = now.year * 12 + now.month - 1
    windows = []
    for back in range(months - 1, -1, -1):
        start_index, end_index = current - back, current - back + 1
        windows.append((
            datetime(start_index // 12, start_index % 12 + 1, 1),
            datetime(end_index // 12, end_index % 12 + 1, 1),
        ))
    return windows


def monthly_strength(interactions: int, business_value: float) -> float:
    """20 points per interaction plus one per 1000 of closed business (at most 50), capped at 100."""
    return min(100.0, interactions * 20 + min(50.0, business_value / 1000))


def classify_trend(previous: float, current: float) -> Trend:
    threshold = settings.analytics.trend_threshold
    if current > previous + threshold:
        return Trend.IMPROVING
    if current < previous - threshold:
        return Trend.DECLINING
    return Trend.STABLE


def build_trajectory(
    contact_id: int,
    contact_name: str,
    interaction_dates: list[datetime],
    completed_referrals: list[tuple[datetime, float]],
    stored_strength: float | None,
    now: datetime,
) -> RelationshipTrajectory:
    """Month-by-month strength for one contact.

    ``completed_referrals`` holds ``(created_at, closed_value)`` of completed
    referrals given to the contact. The current strength is the stored network
    value strength when non-zero, else the latest month's strength.
    """
    points = []
    for start, end in month_windows(now, settings.analytics.trajectory_months):
        count = sum(1 for d in interaction_dates if start <= d < end)
        business = sum(value for created, value in completed_referrals if start <= created < end)
        points.append(TrajectoryPoint(
            month=start.strftime("%Y-%m"),
            strength=monthly_strength(count, business),
            business_value=business,
            interactions=count,
        ))

    return RelationshipTrajectory(
        contact_id=contact_id,
        contact_name=contact_name,
        data_points=points,
        trend=classify_trend(points[-2].strength, points[-1].strength),
        current_strength=stored_strength or points[-1].strength,
    )


def score_network_health(
    contact_count: int,
    recent_interaction_contact_ids: list[int],
    reciprocity_scores: list[float],
    strengths: list[float],
) -> NetworkHealth:
    """Weighted health score: 30% engagement, 30% reciprocity, 40% relationship quality.

    Engagement is two points per interaction in the active window (at most
    100). Reciprocity is neutral (50) and quality 0 when no network values
    have been calculated.
    """
    cfg = settings.analytics
    active = len(set(recent_interaction_contact_ids))
    engagement = min(100.0, len(recent_interaction_contact_ids) * 2.0)
    reciprocity = sum(reciprocity_scores) / len(reciprocity_scores) if reciprocity_scores else 50.0
    quality = sum(strengths) / len(strengths) if strengths else 0.0

    return NetworkHealth(
        overall_score=round_half_up(engagement * 0.3 + reciprocity * 0.3 + quality * 0.4),
        engagement_momentum=engagement,
        reciprocity_balance=reciprocity,
        interaction_quality=quality,
        active_contacts=active,
        at_risk_contacts=contact_count - active,
        growing_relationships=sum(1 for s in strengths if s > cfg.growing_strength),
    )


def classify_reciprocity(given: int, received: int) -> tuple[float, Balance]:
    """Given/received ratio (``given`` when nothing was received) and who is giving more."""
    cfg = settings.analytics
    ratio = given / received if received > 0 else float(given)
    if ratio > cfg.giver_ratio:
        return ratio, Balance.GIVER
    if ratio < cfg.taker_ratio:
        return ratio, Balance.TAKER
    return ratio, Balance.BALANCED


def recommend(
    contact_id: int,
    contact_name: str,
    days_since_interaction: int,
    network_value: models.ContactNetworkValue | None,
) -> Recommendation | None:
    """Suggest reconnecting with a neglected high-value contact, or reciprocating to a strong giver."""
    cfg = settings.analytics
    value = network_value.lifetime_value if network_value is not None else 0.0

    if days_since_interaction > cfg.stale_days and value > cfg.high_value_threshold:
        return Recommendation(
            type="contact",
            priority=Priority.HIGH,
            contact_id=contact_id,
            contact_name=contact_name,
            reason=f"High-value contact ({value:,.0f} CHF) not contacted in {days_since_interaction} days",
            potential_value=value * 0.2,
            confidence=0.85,
        )

    if (
        network_value is not None
        and network_value.reciprocity_score < cfg.low_reciprocity_score
        and network_value.total_referrals_received > cfg.strong_giver_referrals
    ):
        return Recommendation(
            type="referral",
            priority=Priority.MEDIUM,
            contact_id=contact_id,
            contact_name=contact_name,
            reason=f"Strong giver ({network_value.total_referrals_received} referrals), consider reciprocating",
            potential_value=0.0,
            confidence=0.75,
        )

    return None


async def _load_contacts(session: AsyncSession, user_id: str, limit: int | None = None) -> list[tuple[int, str]]:
    query = (
        select(models.Contact.id, models.Contact.name)
        .where(models.Contact.created_by == user_id)
        .order_by(models.Contact.id)
    )
    if limit is not None:
        query = query.limit(limit)
    return [(row.id, row.name) for row in (await session.execute(query)).all()]


async def _load_network_values(session: AsyncSession, contact_ids: list[int]) -> dict[int, models.ContactNetworkValue]:
    result = await session.execute(
        select(models.ContactNetworkValue).where(models.ContactNetworkValue.contact_id.in_(contact_ids))
    )
    return {nv.contact_id: nv for nv in result.scalars().all()}


async def relationship_trajectories(
    session: AsyncSession,
    user_id: str,
    now: datetime | None = None,
) -> list[RelationshipTrajectory]:
    """Trajectories for the user's first ``trajectory_contact_limit`` contacts, strongest first."""
    cfg = settings.analytics
    now = now or utcnow()
    contacts = await _load_contacts(session, user_id, cfg.trajectory_contact_limit)
    ids = [contact_id for contact_id, _ in contacts]

    interactions: dict[int, list[datetime]] = defaultdict(list)
    for contact_id, date in (await session.execute(
        select(models.Interaction.contact_id, models.Interaction.date).where(models.Interaction.contact_id.in_(ids))
    )).all():
        interactions[contact_id].append(date)

    referrals: dict[int, list[tuple[datetime, float]]] = defaultdict(list)
    for contact_id, created_at, closed_value in (await session.execute(
        select(models.ReferralGiven.contact_id, models.ReferralGiven.created_at, models.ReferralGiven.closed_value)
        .where(models.ReferralGiven.contact_id.in_(ids), models.ReferralGiven.status == "completed")
    )).all():
        referrals[contact_id].append((created_at, closed_value or 0.0))

    values = await _load_network_values(session, ids)

    trajectories = [
        build_trajectory(
            contact_id,
            name,
            interactions[contact_id],
            referrals[contact_id],
            values[contact_id].relationship_strength if contact_id in values else None,
            now,
        )
        for contact_id, name in contacts
    ]
    trajectories.sort(key=lambda t: t.current_strength, reverse=True)
    return trajectories


async def network_health(session: AsyncSession, user_id: str, now: datetime | None = None) -> NetworkHealth:
    now = now or utcnow()
    contacts = await _load_contacts(session, user_id)
    ids = [contact_id for contact_id, _ in contacts]
    since = now - timedelta(days=settings.analytics.active_window_days)

    recent = (await session.execute(
        select(models.Interaction.contact_id)
        .where(models.Interaction.contact_id.in_(ids), models.Interaction.date >= since)
    )).scalars().all()
    values = list((await _load_network_values(session, ids)).values())

    return score_network_health(
        len(ids),
        list(recent),
        [nv.reciprocity_score for nv in values],
        [nv.relationship_strength for nv in values],
    )


async def reciprocity_insights(session: AsyncSession, user_id: str) -> list[ReciprocityInsight]:
    """Contacts with referral traffic in either direction, most unbalanced first."""
    contacts = await _load_contacts(session, user_id)
    ids = [contact_id for contact_id, _ in contacts]

    given = dict((await session.execute(
        select(models.ReferralGiven.contact_id, func.count())
        .where(models.ReferralGiven.contact_id.in_(ids))
        .group_by(models.ReferralGiven.contact_id)
    )).all())
    received = dict((await session.execute(
        select(models.ReferralReceived.from_contact_id, func.count())
        .where(models.ReferralReceived.from_contact_id.in_(ids))
        .group_by(models.ReferralReceived.from_contact_id)
    )).all())

    insights = []
    for contact_id, name in contacts:
        given_count, received_count = given.get(contact_id, 0), received.get(contact_id, 0)
        if given_count + received_count == 0:
            continue
        ratio, balance = classify_reciprocity(given_count, received_count)
        insights.append(ReciprocityInsight(
            contact_id=contact_id,
            contact_name=name,
            given=given_count,
            received=received_count,
            balance=balance,
            ratio=ratio,
        ))

    insights.sort(key=lambda i: abs(1 - i.ratio), reverse=True)
    return insights


async def recommendations(session: AsyncSession, user_id: str, now: datetime | None = None) -> list[Recommendation]:
    """At most ``max_recommendations`` suggestions, high priority first."""
    cfg = settings.analytics
    now = now or utcnow()
    contacts = await _load_contacts(session, user_id)
    ids = [contact_id for contact_id, _ in contacts]

    last_dates = dict((await session.execute(
        select(models.Interaction.contact_id, func.max(models.Interaction.date))
        .where(models.Interaction.contact_id.in_(ids))
        .group_by(models.Interaction.contact_id)
    )).all())
    values = await _load_network_values(session, ids)

    recs = []
    for contact_id, name in contacts:
        last = last_dates.get(contact_id)
        days_since = days_between(last, now) if last is not None else NO_INTERACTION_DAYS
        rec = recommend(contact_id, name, days_since, values.get(contact_id))
        if rec is not None:
            recs.append(rec)

    recs.sort(key=lambda r: PRIORITY_RANK[r.priority], reverse=True)
    return recs[:cfg.max_recommendations]


async def relationship_analytics(
    session: AsyncSession,
    user_id: str,
    now: datetime | None = None,
) -> RelationshipAnalytics:
    """All four analytics for the user's contacts.

    Raises:
        AnalyticsError: If loading any of them fails
    """
    now = now or utcnow()
    try:
        return RelationshipAnalytics(
            trajectories=await relationship_trajectories(session, user_id, now),
            network_health=await network_health(session, user_id, now),
            reciprocity_insights=await reciprocity_insights(session, user_id),
            recommendations=await recommendations(session, user_id, now),
        )
    except Exception as e:
        logger.error(f"Relationship analytics failed for {user_id}: {e}", exc_info=True)
        raise AnalyticsError(f"Failed to load relationship analytics: {e}") from e
