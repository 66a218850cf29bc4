"""Relationship decay alerts for contacts the user has not interacted with lately."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from be import models
from be.config import settings
from be.models import utcnow
from be.pipelines.normalization import days_between

logger = logging.getLogger(__name__)


class DecayLevel(str, Enum):
    """Decay tiers, most severe first."""
    CRITICAL = "critical"
    WARNING = "warning"
    NORMAL = "normal"


LEVEL_ORDER = {DecayLevel.CRITICAL: 0, DecayLevel.WARNING: 1, DecayLevel.NORMAL: 2}


class DecayError(Exception):
    """Raised when decay analysis fails."""
    pass


@dataclass
class DecayResult:
    decay_rate: float
    current_strength: float
    decay_level: DecayLevel


@dataclass
class DecayingContact:
    """A contact whose relationship strength is fading."""
    contact_id: int
    contact_name: str
    last_interaction_date: datetime | None
    days_since_last_interaction: int
    decay_rate: float
    current_strength: float
    original_strength: float
    decay_level: DecayLevel
    estimated_days_to_zero: int


@dataclass
class DecayReport:
    contacts: list[DecayingContact] = field(default_factory=list)
    critical_count: int = 0
    warning_count: int = 0


def calculate_decay(days_since_interaction: int, original_strength: float) -> DecayResult:
    """Strength left after decaying from the start of the current tier.

    Tiers start at ``critical_days``, ``warning_days`` and ``normal_days``;
    below ``normal_days`` nothing decays.
    """
    cfg = settings.decay
    if days_since_interaction >= cfg.critical_days:
        rate, level, threshold = cfg.critical_rate, DecayLevel.CRITICAL, cfg.critical_days
    elif days_since_interaction >= cfg.warning_days:
        rate, level, threshold = cfg.warning_rate, DecayLevel.WARNING, cfg.warning_days
    elif days_since_interaction >= cfg.normal_days:
        rate, level, threshold = cfg.normal_rate, DecayLevel.NORMAL, cfg.normal_days
    else:
        rate, level, threshold = 0.0, DecayLevel.NORMAL, cfg.normal_days

    total_decay = rate * (days_since_interaction - threshold)
    return DecayResult(
        decay_rate=rate,
        current_strength=max(0.0, original_strength - total_decay),
        decay_level=level,
    )


def estimate_days_to_zero(current_strength: float, decay_rate: float) -> int:
    if current_strength <= 0 or decay_rate <= 0:
        return 0
    return math.ceil(current_strength / decay_rate)


async def find_decaying_contacts(
    session: AsyncSession,
    user_id: str,
    now: datetime | None = None,
) -> DecayReport:
    """Contacts created by the user with no interaction for at least ``normal_days``.

    The last interaction is the newest logged interaction, falling back to the
    stored network value's ``last_interaction_date``. Contacts with neither
    count as ``no_interaction_days`` old.

    Raises:
        DecayError: If loading contacts fails
    """
    cfg = settings.decay
    now = now or utcnow()

    latest = (
        select(
            models.Interaction.contact_id.label("contact_id"),
            func.max(models.Interaction.date).label("last_date"),
        )
        .group_by(models.Interaction.contact_id)
        .subquery()
    )

    try:
        rows = (await session.execute(
            select(
                models.Contact.id,
                models.Contact.name,
                latest.c.last_date,
                models.ContactNetworkValue.relationship_strength,
                models.ContactNetworkValue.last_interaction_date,
            )
            .outerjoin(latest, latest.c.contact_id == models.Contact.id)
            .outerjoin(models.ContactNetworkValue, models.ContactNetworkValue.contact_id == models.Contact.id)
            .where(models.Contact.created_by == user_id)
        )).all()
    except Exception as e:
        logger.error(f"Loading contacts for decay analysis failed: {e}", exc_info=True)
        raise DecayError(f"Failed to load contacts for user {user_id}: {e}") from e

    report = DecayReport()
    for contact_id, name, last_date, stored_strength, stored_last_date in rows:
        last = last_date or stored_last_date
        days_since = days_between(last, now) if last is not None else cfg.no_interaction_days
        if days_since < cfg.normal_days:
            continue

        # A stored strength of 0 counts as unknown
        original = stored_strength or cfg.default_strength
        decay = calculate_decay(days_since, original)

        report.contacts.append(DecayingContact(
            contact_id=contact_id,
            contact_name=name,
            last_interaction_date=last,
            days_since_last_interaction=days_since,
            decay_rate=decay.decay_rate,
            current_strength=decay.current_strength,
            original_strength=original,
            decay_level=decay.decay_level,
            estimated_days_to_zero=estimate_days_to_zero(decay.current_strength, decay.decay_rate),
        ))

    report.contacts.sort(key=lambda c: (LEVEL_ORDER[c.decay_level], -c.days_since_last_interaction))
    report.critical_count = sum(1 for c in report.contacts if c.decay_level == DecayLevel.CRITICAL)
    report.warning_count = sum(1 for c in report.contacts if c.decay_level == DecayLevel.WARNING)

    logger.info(
        f"Decay analysis for {user_id}: {len(report.contacts)} decaying, "
        f"{report.critical_count} critical, {report.warning_count} warning"
    )
    return report
