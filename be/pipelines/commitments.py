"""Weekly networking commitments: targets, progress and completion streaks.

Weeks start on Monday. Each user has at most one row per week, enforced by
the ``uq_weekly_commitments_user_week`` constraint.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from be import models
from be.config import settings
from be.models import utcnow
from be.pipelines.normalization import round_half_up

logger = logging.getLogger(__name__)

# increment kind -> counter column
INCREMENT_FIELDS = {
    "one_to_ones": "completed_one_to_ones",
    "referrals": "completed_referrals_given",
    "visibility": "completed_visibility_days",
    "follow_ups": "completed_follow_ups",
}

COUNTER_FIELDS = frozenset({
    "target_one_to_ones", "completed_one_to_ones",
    "target_referrals_given", "completed_referrals_given",
    "target_visibility_days", "completed_visibility_days",
    "target_follow_ups", "completed_follow_ups",
})

UPDATABLE_FIELDS = COUNTER_FIELDS | {"notes"}


class CommitmentError(Exception):
    """Raised when a weekly commitment cannot be read or updated."""
    pass


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def completion_percentage(commitment: models.WeeklyCommitment) -> int:
    """Share of the week's combined targets completed, as a rounded percentage."""
    total_targets = (
        commitment.target_one_to_ones
        + commitment.target_referrals_given
        + commitment.target_visibility_days
        + commitment.target_follow_ups
    )
    total_completed = (
        commitment.completed_one_to_ones
        + commitment.completed_referrals_given
        + commitment.completed_visibility_days
        + commitment.completed_follow_ups
    )
    if total_targets == 0:
        return 0
    return round_half_up(total_completed / total_targets * 100)


async def _get_week(session: AsyncSession, user_id: str, start: date) -> models.WeeklyCommitment | None:
    result = await session.execute(
        select(models.WeeklyCommitment).where(
            models.WeeklyCommitment.user_id == user_id,
            models.WeeklyCommitment.week_start_date == start,
        )
    )
    return result.scalars().first()


async def get_or_create_current_week(
    session: AsyncSession,
    user_id: str,
    today: date | None = None,
) -> models.WeeklyCommitment:
    """The user's commitment row for this week, created with default targets if missing.

    A new week continues the streak only when the previous week hit 100%.
    """
    start = week_start(today or utcnow().date())

    existing = await _get_week(session, user_id, start)
    if existing is not None:
        return existing

    previous = await _get_week(session, user_id, start - timedelta(weeks=1))
    streak = previous.streak_weeks + 1 if previous is not None and completion_percentage(previous) >= 100 else 0

    cfg = settings.commitments
    commitment = models.WeeklyCommitment(
        user_id=user_id,
        week_start_date=start,
        target_one_to_ones=cfg.target_one_to_ones,
        target_referrals_given=cfg.target_referrals_given,
        target_visibility_days=cfg.target_visibility_days,
        target_follow_ups=cfg.target_follow_ups,
        streak_weeks=streak,
    )

    try:
        session.add(commitment)
        await session.commit()
        logger.info(f"Created weekly commitment for {user_id}, week of {start.isoformat()} (streak {streak})")
        return commitment
    except IntegrityError:
        # Another request created the week first
        await session.rollback()
        existing = await _get_week(session, user_id, start)
        if existing is None:
            raise CommitmentError(f"Weekly commitment for {user_id} vanished after a conflicting insert")
        return existing
    except Exception as e:
        logger.error(f"Creating weekly commitment failed for {user_id}: {e}", exc_info=True)
        await session.rollback()
        raise CommitmentError(f"Failed to create weekly commitment: {e}") from e


async def update_progress(
    session: AsyncSession,
    user_id: str,
    field: str,
    value: int | str | None,
) -> models.WeeklyCommitment:
    """Set one target, counter or the notes on this week's commitment.

    Raises:
        CommitmentError: For unknown fields, negative or non-integer counters, or a failed update
    """
    if field not in UPDATABLE_FIELDS:
        raise CommitmentError(f"Field '{field}' cannot be updated")
    if field in COUNTER_FIELDS:
        if not isinstance(value, int) or isinstance(value, bool):
            raise CommitmentError(f"{field} must be an integer")
        if value < 0:
            raise CommitmentError(f"{field} must not be negative")

    commitment = await get_or_create_current_week(session, user_id)
    try:
        setattr(commitment, field, value)
        await session.commit()
        return commitment
    except Exception as e:
        logger.error(f"Updating {field} failed for {user_id}: {e}", exc_info=True)
        await session.rollback()
        raise CommitmentError(f"Failed to update {field}: {e}") from e


async def increment_progress(session: AsyncSession, user_id: str, kind: str) -> models.WeeklyCommitment:
    """Add one to a completed counter (``one_to_ones``, ``referrals``, ``visibility``, ``follow_ups``)."""
    column_name = INCREMENT_FIELDS.get(kind)
    if column_name is None:
        raise CommitmentError(f"Unknown progress kind '{kind}' (expected one of {', '.join(INCREMENT_FIELDS)})")

    commitment = await get_or_create_current_week(session, user_id)
    column = getattr(models.WeeklyCommitment, column_name)
    try:
        await session.execute(
            update(models.WeeklyCommitment)
            .where(models.WeeklyCommitment.id == commitment.id)
            .values({column: column + 1, models.WeeklyCommitment.updated_at: utcnow()})
        )
        await session.commit()
        await session.refresh(commitment)
        logger.debug(f"Incremented {column_name} for {user_id} to {getattr(commitment, column_name)}")
        return commitment
    except Exception as e:
        logger.error(f"Incrementing {column_name} failed for {user_id}: {e}", exc_info=True)
        await session.rollback()
        raise CommitmentError(f"Failed to increment {kind}: {e}") from e


async def get_history(
    session: AsyncSession,
    user_id: str,
    limit: int | None = None,
) -> list[models.WeeklyCommitment]:
    """The user's most recent weeks, newest first."""
    limit = settings.commitments.history_weeks if limit is None else limit
    result = await session.execute(
        select(models.WeeklyCommitment)
        .where(models.WeeklyCommitment.user_id == user_id)
        .order_by(models.WeeklyCommitment.week_start_date.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
