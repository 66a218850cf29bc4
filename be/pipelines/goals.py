"""Goals, the team members working on them, and the contacts linked to them."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from be import models
from be.pipelines import NotFoundError

logger = logging.getLogger(__name__)

GOAL_FIELDS = frozenset({
    "title", "description", "category", "status", "progress_percentage", "target_date",
    "project_id", "assigned_to", "linked_opportunity_id", "contact_id",
})


class GoalError(Exception):
    """Raised when a goal operation fails."""
    pass


def _check_fields(data: Mapping[str, Any]) -> None:
    unknown = set(data) - GOAL_FIELDS
    if unknown:
        raise GoalError(f"Unknown fields: {', '.join(sorted(unknown))}")
    progress = data.get("progress_percentage")
    if progress is not None and not 0 <= progress <= 100:
        raise GoalError("progress_percentage must be between 0 and 100")


async def _require(session: AsyncSession, model: type, row_id: int | None, label: str) -> None:
    if row_id is not None and await session.get(model, row_id) is None:
        raise NotFoundError(f"{label} {row_id} not found")


async def _check_references(session: AsyncSession, data: Mapping[str, Any]) -> None:
    await _require(session, models.Project, data.get("project_id"), "Project")
    await _require(session, models.TeamMember, data.get("assigned_to"), "Team member")
    await _require(session, models.Opportunity, data.get("linked_opportunity_id"), "Opportunity")
    await _require(session, models.Contact, data.get("contact_id"), "Contact")


def _goal_query():
    return select(models.Goal).options(
        selectinload(models.Goal.assignments).selectinload(models.GoalAssignment.team_member),
        selectinload(models.Goal.project),
    )


async def get_goal(session: AsyncSession, goal_id: int) -> models.Goal:
    """Load a goal with its assignments and project or raise ``NotFoundError``."""
    result = await session.execute(
        _goal_query()
        .where(models.Goal.id == goal_id)
        .execution_options(populate_existing=True)
    )
    goal = result.scalars().first()
    if goal is None:
        raise NotFoundError(f"Goal {goal_id} not found")
    return goal


async def list_goals(session: AsyncSession, project_id: int | None = None) -> list[models.Goal]:
    """Goals newest first, optionally only those under one project."""
    query = _goal_query().order_by(models.Goal.created_at.desc(), models.Goal.id.desc())
    if project_id is not None:
        query = query.where(models.Goal.project_id == project_id)
    result = await session.execute(query)
    return list(result.scalars().all())


async def create_goal(
    session: AsyncSession,
    data: Mapping[str, Any],
    team_member_ids: Iterable[int] = (),
) -> models.Goal:
    """Insert a goal and assign team members to it in the same transaction.

    Args:
        session: Database session
        data: Goal columns; ``status`` defaults to "active" and progress to 0
        team_member_ids: Team members to assign

    Raises:
        GoalError: If the data is invalid or the insert fails
        NotFoundError: If a referenced project, team member, opportunity or contact does not exist
    """
    _check_fields(data)
    await _check_references(session, data)
    member_ids = list(dict.fromkeys(team_member_ids))
    for member_id in member_ids:
        await _require(session, models.TeamMember, member_id, "Team member")

    try:
        goal = models.Goal(**data)
        goal.assignments = [models.GoalAssignment(team_member_id=member_id) for member_id in member_ids]
        session.add(goal)
        await session.commit()
        logger.info(f"Created goal {goal.id}: {goal.title} ({len(member_ids)} assignees)")
    except Exception as e:
        logger.error(f"Goal creation failed: {e}", exc_info=True)
        await session.rollback()
        raise GoalError(f"Failed to create goal: {e}") from e
    return await get_goal(session, goal.id)


async def update_goal(session: AsyncSession, goal_id: int, changes: Mapping[str, Any]) -> models.Goal:
    """Apply a partial update to a goal."""
    _check_fields(changes)
    goal = await get_goal(session, goal_id)
    await _check_references(session, changes)

    try:
        for key, value in changes.items():
            setattr(goal, key, value)
        await session.commit()
    except Exception as e:
        logger.error(f"Goal update failed for {goal_id}: {e}", exc_info=True)
        await session.rollback()
        raise GoalError(f"Failed to update goal {goal_id}: {e}") from e
    return await get_goal(session, goal_id)


async def delete_goal(session: AsyncSession, goal_id: int) -> None:
    """Delete a goal with its assignments and contact links."""
    goal = await get_goal(session, goal_id)
    try:
        await session.delete(goal)
        await session.commit()
        logger.info(f"Deleted goal {goal_id}")
    except Exception as e:
        logger.error(f"Goal deletion failed for {goal_id}: {e}", exc_info=True)
        await session.rollback()
        raise GoalError(f"Failed to delete goal {goal_id}: {e}") from e


async def assign_goal_member(session: AsyncSession, goal_id: int, member_id: int) -> models.GoalAssignment:
    """Assign a team member to a goal.

    Raises:
        NotFoundError: If the goal or team member does not exist
        GoalError: If the member is already assigned
    """
    await _require(session, models.Goal, goal_id, "Goal")
    await _require(session, models.TeamMember, member_id, "Team member")

    try:
        assignment = models.GoalAssignment(goal_id=goal_id, team_member_id=member_id)
        session.add(assignment)
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise GoalError(f"Team member {member_id} is already assigned to goal {goal_id}") from e

    result = await session.execute(
        select(models.GoalAssignment)
        .options(selectinload(models.GoalAssignment.team_member))
        .where(models.GoalAssignment.id == assignment.id)
    )
    return result.scalars().one()


async def remove_goal_member(session: AsyncSession, assignment_id: int) -> None:
    assignment = await session.get(models.GoalAssignment, assignment_id)
    if assignment is None:
        raise NotFoundError(f"Goal assignment {assignment_id} not found")
    await session.delete(assignment)
    await session.commit()


# Contact links

async def _load_link(session: AsyncSession, link_id: int) -> models.ContactGoal:
    result = await session.execute(
        select(models.ContactGoal)
        .options(selectinload(models.ContactGoal.goal))
        .where(models.ContactGoal.id == link_id)
        .execution_options(populate_existing=True)
    )
    link = result.scalars().first()
    if link is None:
        raise NotFoundError(f"Contact goal link {link_id} not found")
    return link


async def list_contact_goals(session: AsyncSession, contact_id: int) -> list[models.ContactGoal]:
    """Goals a contact is linked to, oldest link first."""
    await _require(session, models.Contact, contact_id, "Contact")
    result = await session.execute(
        select(models.ContactGoal)
        .options(selectinload(models.ContactGoal.goal))
        .where(models.ContactGoal.contact_id == contact_id)
        .order_by(models.ContactGoal.linked_at, models.ContactGoal.id)
    )
    return list(result.scalars().all())


async def link_contact_goal(
    session: AsyncSession,
    contact_id: int,
    goal_id: int,
    relevance_note: str | None = None,
    linked_by: str | None = None,
) -> models.ContactGoal:
    """Link a contact to a goal they can help with.

    Raises:
        NotFoundError: If the contact or goal does not exist
        GoalError: If the contact is already linked to the goal
    """
    await _require(session, models.Contact, contact_id, "Contact")
    await _require(session, models.Goal, goal_id, "Goal")

    try:
        link = models.ContactGoal(
            contact_id=contact_id,
            goal_id=goal_id,
            relevance_note=relevance_note,
            linked_by=linked_by,
        )
        session.add(link)
        await session.commit()
        logger.info(f"Linked contact {contact_id} to goal {goal_id}")
    except IntegrityError as e:
        await session.rollback()
        raise GoalError(f"Contact {contact_id} is already linked to goal {goal_id}") from e
    return await _load_link(session, link.id)


async def update_relevance_note(session: AsyncSession, link_id: int, relevance_note: str | None) -> models.ContactGoal:
    link = await _load_link(session, link_id)
    link.relevance_note = relevance_note
    await session.commit()
    return await _load_link(session, link_id)


async def unlink_contact_goal(session: AsyncSession, link_id: int) -> None:
    link = await session.get(models.ContactGoal, link_id)
    if link is None:
        raise NotFoundError(f"Contact goal link {link_id} not found")
    await session.delete(link)
    await session.commit()
