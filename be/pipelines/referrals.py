"""Giver's Gain referral ledger: referrals given, received, and the balance between them."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from be import models
from be.config import settings
from be.models import utcnow
from be.pipelines import NotFoundError

logger = logging.getLogger(__name__)

GIVEN_STATUSES = ("pending", "accepted", "completed", "declined")
RECEIVED_STATUSES = ("pending", "in_progress", "completed", "lost")

GIVEN_FIELDS = frozenset({
    "contact_id", "referred_to_contact_id", "referred_to_name", "referred_to_company",
    "service_description", "estimated_value",
})
RECEIVED_FIELDS = frozenset({
    "from_contact_id", "client_name", "client_company", "service_description", "estimated_value",
})


class ReferralError(Exception):
    """Raised when a referral operation fails."""
    pass


@dataclass
class ReferralSummary:
    """A user's referral balance."""
    given_count: int
    received_count: int
    givers_gain_ratio: float
    total_business_generated: float
    total_business_received: float

    @property
    def unbounded(self) -> bool:
        """True when referrals were given but none received."""
        return math.isinf(self.givers_gain_ratio)


def givers_gain_ratio(given: int, received: int) -> float:
    """Referrals given per referral received.

    ``inf`` when nothing was received but something was given, 0 when both are 0.
    """
    if received == 0:
        return math.inf if given > 0 else 0.0
    return given / received


def _check_fields(data: Mapping[str, Any], allowed: frozenset[str]) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ReferralError(f"Unknown fields: {', '.join(sorted(unknown))}")


async def _require_contact(session: AsyncSession, contact_id: int | None) -> None:
    if contact_id is not None and await session.get(models.Contact, contact_id) is None:
        raise NotFoundError(f"Contact {contact_id} not found")


async def _find_connect_project(session: AsyncSession) -> models.Project | None:
    cfg = settings.referrals
    result = await session.execute(
        select(models.Project)
        .where(
            models.Project.title == cfg.connect_project_title,
            models.Project.type == cfg.connect_project_type,
        )
        .order_by(models.Project.id)
        .limit(1)
    )
    return result.scalars().first()


async def ensure_connect_project(session: AsyncSession) -> models.Project:
    """Return the "Connect People" networking project, creating it if missing."""
    project = await _find_connect_project(session)
    if project is not None:
        return project

    cfg = settings.referrals
    try:
        project = models.Project(
            title=cfg.connect_project_title,
            type=cfg.connect_project_type,
            description="Giver's Gain: connecting people and creating value through referrals and introductions",
        )
        session.add(project)
        await session.commit()
        logger.info(f"Created default '{project.title}' project {project.id}")
        return project
    except Exception as e:
        logger.error(f"Creating the connect project failed: {e}", exc_info=True)
        await session.rollback()
        raise ReferralError(f"Failed to create project '{cfg.connect_project_title}': {e}") from e


async def give_referral(
    session: AsyncSession,
    user_id: str,
    data: Mapping[str, Any],
) -> tuple[models.ReferralGiven, models.Goal | None]:
    """Record a referral the user passed to a contact.

    When the "Connect People" networking project exists and the referral
    names who it is for, a follow-up goal is created under that project in
    the same transaction.

    Returns:
        Tuple of (referral, goal or None)

    Raises:
        NotFoundError: If a referenced contact does not exist
        ReferralError: If the insert fails
    """
    _check_fields(data, GIVEN_FIELDS)
    await _require_contact(session, data.get("contact_id"))
    await _require_contact(session, data.get("referred_to_contact_id"))

    try:
        referral = models.ReferralGiven(
            given_by=user_id,
            status="pending",
            **{**data, "estimated_value": data.get("estimated_value") or 0.0},
        )
        session.add(referral)

        goal = None
        project = await _find_connect_project(session)
        if project is not None and referral.referred_to_name:
            goal = models.Goal(
                title=f"Connect: {referral.referred_to_name}",
                description=(
                    f"Referral: {referral.service_description}\n"
                    f"Estimated Value: ${referral.estimated_value:g}"
                ),
                category="referral",
                status="active",
                progress_percentage=0,
                target_date=(utcnow() + timedelta(days=settings.referrals.goal_due_days)).date(),
                project_id=project.id,
                contact_id=referral.contact_id,
            )
            session.add(goal)

        await session.commit()
        logger.info(
            f"User {user_id} gave referral {referral.id} to contact {referral.contact_id}"
            f"{' with goal ' + str(goal.id) if goal else ''}"
        )
        return referral, goal
    except Exception as e:
        logger.error(f"Giving referral failed: {e}", exc_info=True)
        await session.rollback()
        raise ReferralError(f"Failed to give referral: {e}") from e


async def record_referral_received(
    session: AsyncSession,
    user_id: str,
    data: Mapping[str, Any],
) -> models.ReferralReceived:
    """Record a referral the user received from a contact."""
    _check_fields(data, RECEIVED_FIELDS)
    await _require_contact(session, data.get("from_contact_id"))

    try:
        referral = models.ReferralReceived(
            received_by=user_id,
            status="pending",
            **{**data, "estimated_value": data.get("estimated_value") or 0.0},
        )
        session.add(referral)
        await session.commit()
        logger.info(f"User {user_id} received referral {referral.id} from contact {referral.from_contact_id}")
        return referral
    except Exception as e:
        logger.error(f"Recording received referral failed: {e}", exc_info=True)
        await session.rollback()
        raise ReferralError(f"Failed to record referral: {e}") from e


async def update_referral_status(
    session: AsyncSession,
    referral_id: int,
    status: str,
    *,
    direction: str = "given",
    closed_value: float | None = None,
    outcome_notes: str | None = None,
) -> models.ReferralGiven | models.ReferralReceived:
    """Move a referral to a new status.

    Only a ``completed`` status with a ``closed_value`` records the closed
    value and closing time.

    Args:
        session: Database session
        referral_id: Referral to update
        status: New status, valid for the referral's direction
        direction: "given" or "received"
        closed_value: Business value when the referral closed
        outcome_notes: Free-text outcome

    Raises:
        ReferralError: If the direction or status is invalid or the update fails
        NotFoundError: If the referral does not exist
    """
    if direction == "given":
        model, allowed = models.ReferralGiven, GIVEN_STATUSES
    elif direction == "received":
        model, allowed = models.ReferralReceived, RECEIVED_STATUSES
    else:
        raise ReferralError(f"Invalid referral direction: {direction}")

    if status not in allowed:
        raise ReferralError(f"Invalid status '{status}' for {direction} referral (expected one of {', '.join(allowed)})")
    if closed_value is not None and closed_value < 0:
        raise ReferralError("closed_value must not be negative")

    referral = await session.get(model, referral_id)
    if referral is None:
        raise NotFoundError(f"Referral {referral_id} not found")

    try:
        referral.status = status
        if outcome_notes is not None:
            referral.outcome_notes = outcome_notes
        if status == "completed" and closed_value is not None:
            referral.closed_value = closed_value
            referral.closed_at = utcnow()

        await session.commit()
        logger.info(f"Referral {referral_id} ({direction}) -> {status}")
        return referral
    except Exception as e:
        logger.error(f"Referral status update failed for {referral_id}: {e}", exc_info=True)
        await session.rollback()
        raise ReferralError(f"Failed to update referral {referral_id}: {e}") from e


async def list_referrals_given(session: AsyncSession, user_id: str) -> list[models.ReferralGiven]:
    """Referrals the user gave, newest first."""
    result = await session.execute(
        select(models.ReferralGiven)
        .where(models.ReferralGiven.given_by == user_id)
        .order_by(models.ReferralGiven.created_at.desc(), models.ReferralGiven.id.desc())
    )
    return list(result.scalars().all())


async def list_referrals_received(session: AsyncSession, user_id: str) -> list[models.ReferralReceived]:
    """Referrals the user received, newest first."""
    result = await session.execute(
        select(models.ReferralReceived)
        .where(models.ReferralReceived.received_by == user_id)
        .order_by(models.ReferralReceived.created_at.desc(), models.ReferralReceived.id.desc())
    )
    return list(result.scalars().all())


def total_closed_value(referrals: list[models.ReferralGiven] | list[models.ReferralReceived]) -> float:
    """Sum of closed values over completed referrals."""
    return sum(r.closed_value or 0.0 for r in referrals if r.status == "completed")


async def summarize_referrals(session: AsyncSession, user_id: str) -> ReferralSummary:
    """Counts, Giver's Gain ratio and closed business for a user."""
    given = await list_referrals_given(session, user_id)
    received = await list_referrals_received(session, user_id)
    return ReferralSummary(
        given_count=len(given),
        received_count=len(received),
        givers_gain_ratio=givers_gain_ratio(len(given), len(received)),
        total_business_generated=total_closed_value(given),
        total_business_received=total_closed_value(received),
    )
