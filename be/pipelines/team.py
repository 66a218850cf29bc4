"""Team members who own contacts and work on projects, targets and goals."""
from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from be import models
from be.pipelines import NotFoundError
from be.pipelines.normalization import normalize_email

logger = logging.getLogger(__name__)

TEAM_MEMBER_FIELDS = frozenset({
    "first_name", "last_name", "email", "department", "role", "specializations", "bio", "is_active",
})


class TeamError(Exception):
    """Raised when a team member operation fails."""
    pass


def _clean(data: Mapping[str, Any]) -> dict[str, Any]:
    unknown = set(data) - TEAM_MEMBER_FIELDS
    if unknown:
        raise TeamError(f"Unknown fields: {', '.join(sorted(unknown))}")
    cleaned = dict(data)
    if cleaned.get("email") is not None:
        cleaned["email"] = normalize_email(cleaned["email"])
    return cleaned


async def get_team_member(session: AsyncSession, member_id: int) -> models.TeamMember:
    """Load a team member or raise ``NotFoundError``."""
    member = await session.get(models.TeamMember, member_id)
    if member is None:
        raise NotFoundError(f"Team member {member_id} not found")
    return member


async def list_team_members(
    session: AsyncSession,
    *,
    department: str | None = None,
    specialization: str | None = None,
    include_inactive: bool = False,
) -> list[models.TeamMember]:
    """Team members ordered by department then role.

    Args:
        session: Database session
        department: Only members of this department
        specialization: Only members listing this specialization
        include_inactive: Also return deactivated members
    """
    query = select(models.TeamMember).order_by(
        models.TeamMember.department,
        models.TeamMember.role,
        models.TeamMember.id,
    )
    if not include_inactive:
        query = query.where(models.TeamMember.is_active.is_(True))
    if department is not None:
        query = query.where(models.TeamMember.department == department)

    members = list((await session.execute(query)).scalars().all())
    # JSON list membership is filtered here so SQLite and Postgres agree
    if specialization is not None:
        members = [m for m in members if specialization in (m.specializations or [])]
    return members


async def create_team_member(session: AsyncSession, data: Mapping[str, Any]) -> models.TeamMember:
    """Insert a team member.

    Raises:
        TeamError: If the data is invalid or the email is already taken
    """
    try:
        member = models.TeamMember(**_clean(data))
        session.add(member)
        await session.commit()
        logger.info(f"Created team member {member.id}: {member.name}")
        return member
    except TeamError:
        raise
    except IntegrityError as e:
        await session.rollback()
        raise TeamError(f"A team member with email {data.get('email')} already exists") from e
    except Exception as e:
        logger.error(f"Team member creation failed: {e}", exc_info=True)
        await session.rollback()
        raise TeamError(f"Failed to create team member: {e}") from e


async def update_team_member(
    session: AsyncSession,
    member_id: int,
    changes: Mapping[str, Any],
) -> models.TeamMember:
    """Apply a partial update to a team member."""
    member = await get_team_member(session, member_id)
    try:
        for key, value in _clean(changes).items():
            setattr(member, key, value)
        await session.commit()
        return member
    except TeamError:
        raise
    except IntegrityError as e:
        await session.rollback()
        raise TeamError(f"A team member with email {changes.get('email')} already exists") from e
    except Exception as e:
        logger.error(f"Team member update failed for {member_id}: {e}", exc_info=True)
        await session.rollback()
        raise TeamError(f"Failed to update team member {member_id}: {e}") from e


async def delete_team_member(session: AsyncSession, member_id: int) -> None:
    """Delete a team member; their contacts become unassigned and their assignments are removed."""
    member = await get_team_member(session, member_id)
    try:
        await session.delete(member)
        await session.commit()
        logger.info(f"Deleted team member {member_id}")
    except Exception as e:
        logger.error(f"Team member deletion failed for {member_id}: {e}", exc_info=True)
        await session.rollback()
        raise TeamError(f"Failed to delete team member {member_id}: {e}") from e
