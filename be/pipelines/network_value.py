"""Per-contact lifetime value: referral volume, closed business, reciprocity and strength."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from be import models
from be.models import utcnow
from be.pipelines import NotFoundError
from be.pipelines.normalization import days_between, round_half_up

logger = logging.getLogger(__name__)

DAYS_PER_MONTH = 30


class NetworkValueError(Exception):
    """Raised when a network value cannot be calculated or stored."""
    pass


@dataclass
class NetworkValueScores:
    """Scores derived from a contact's referral and interaction history."""
    reciprocity_score: float
    interaction_recency: int
    business_factor: float
    relationship_strength: int
    lifetime_value: float


def score_network_value(
    referrals_given: int,
    referrals_received: int,
    business_generated: float,
    business_received: float,
    last_interaction: datetime | None,
    now: datetime,
) -> NetworkValueScores:
    """Pure scoring step of ``calculate_network_value``.

    Reciprocity is neutral (50) until something is received, then
    ``given / received * 50`` capped at 100. Interaction recency loses one
    point per whole 30-day month since the latest interaction.
    """
    reciprocity = 50.0
    if referrals_received > 0:
        reciprocity = min(100.0, referrals_given / referrals_received * 50)

    recency = 0
    if last_interaction is not None:
        months = days_between(last_interaction, now) // DAYS_PER_MONTH
        recency = max(0, 100 - months)

    business_factor = min(50.0, (business_generated + business_received) / 1000)
    strength = min(100, round_half_up(recency * 0.5 + business_factor))

    return NetworkValueScores(
        reciprocity_score=reciprocity,
        interaction_recency=recency,
        business_factor=business_factor,
        relationship_strength=strength,
        lifetime_value=business_generated + business_received,
    )


async def calculate_network_value(
    session: AsyncSession,
    contact_id: int,
    now: datetime | None = None,
) -> models.ContactNetworkValue:
    """Recalculate and upsert the network value row for a contact.

    Raises:
        NotFoundError: If the contact does not exist
        NetworkValueError: If loading or storing fails
    """
    now = now or utcnow()
    if await session.get(models.Contact, contact_id) is None:
        raise NotFoundError(f"Contact {contact_id} not found")

    try:
        given = (await session.execute(
            select(models.ReferralGiven.status, models.ReferralGiven.closed_value)
            .where(models.ReferralGiven.contact_id == contact_id)
        )).all()
        received = (await session.execute(
            select(models.ReferralReceived.status, models.ReferralReceived.closed_value)
            .where(models.ReferralReceived.from_contact_id == contact_id)
        )).all()
        last_interaction = (await session.execute(
            select(func.max(models.Interaction.date)).where(models.Interaction.contact_id == contact_id)
        )).scalar()

        business_generated = sum(value or 0.0 for status, value in given if status == "completed")
        business_received = sum(value or 0.0 for status, value in received if status == "completed")

        scores = score_network_value(
            len(given), len(received), business_generated, business_received, last_interaction, now,
        )

        row = (await session.execute(
            select(models.ContactNetworkValue).where(models.ContactNetworkValue.contact_id == contact_id)
        )).scalars().first()
        if row is None:
            row = models.ContactNetworkValue(contact_id=contact_id)
            session.add(row)

        row.total_referrals_given = len(given)
        row.total_referrals_received = len(received)
        row.total_business_generated = business_generated
        row.total_business_received = business_received
        row.reciprocity_score = scores.reciprocity_score
        row.relationship_strength = scores.relationship_strength
        row.lifetime_value = scores.lifetime_value
        row.last_interaction_date = last_interaction
        row.calculated_at = now

        await session.commit()
        logger.info(
            f"Network value for contact {contact_id}: lifetime {scores.lifetime_value}, "
            f"strength {scores.relationship_strength}, reciprocity {scores.reciprocity_score:.1f}"
        )
        return row
    except Exception as e:
        logger.error(f"Network value calculation failed for contact {contact_id}: {e}", exc_info=True)
        await session.rollback()
        raise NetworkValueError(f"Failed to calculate network value for contact {contact_id}: {e}") from e


async def get_network_value(session: AsyncSession, contact_id: int) -> models.ContactNetworkValue:
    """Stored network value, calculated on first access."""
    row = (await session.execute(
        select(models.ContactNetworkValue).where(models.ContactNetworkValue.contact_id == contact_id)
    )).scalars().first()
    if row is not None:
        return row
    return await calculate_network_value(session, contact_id)


async def list_network_values(session: AsyncSession) -> list[models.ContactNetworkValue]:
    """All stored network values, highest lifetime value first."""
    result = await session.execute(
        select(models.ContactNetworkValue).order_by(
            models.ContactNetworkValue.lifetime_value.desc(),
            models.ContactNetworkValue.contact_id,
        )
    )
    return list(result.scalars().all())
