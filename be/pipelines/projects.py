"""Projects, their targets, and the team members assigned to each."""
from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from be import models
from be.config import settings
from be.pipelines import NotFoundError

logger = logging.getLogger(__name__)

PROJECT_FIELDS = frozenset({
    "title", "type", "description", "status", "priority", "owner_id",
    "target_value", "current_value", "deadline",
})
TARGET_FIELDS = frozenset({
    "project_id", "title", "description", "target_date", "status", "progress_percentage",
})


class ProjectError(Exception):
    """Raised when a project or target operation fails."""
    pass


def _check_fields(data: Mapping[str, Any], allowed: frozenset[str]) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise ProjectError(f"Unknown fields: {', '.join(sorted(unknown))}")
    progress = data.get("progress_percentage")
    if progress is not None and not 0 <= progress <= 100:
        raise ProjectError("progress_percentage must be between 0 and 100")


def is_connect_project(project: models.Project) -> bool:
    """True for the networking project that referral goals are filed under."""
    cfg = settings.referrals
    return project.title == cfg.connect_project_title and project.type == cfg.connect_project_type


async def _require_team_member(session: AsyncSession, member_id: int) -> None:
    if await session.get(models.TeamMember, member_id) is None:
        raise NotFoundError(f"Team member {member_id} not found")


# Projects

def _project_query():
    return select(models.Project).options(
        selectinload(models.Project.assignments).selectinload(models.ProjectAssignment.team_member)
    )


async def get_project(session: AsyncSession, project_id: int) -> models.Project:
    """Load a project with its assignments or raise ``NotFoundError``."""
    result = await session.execute(
        _project_query()
        .where(models.Project.id == project_id)
        .execution_options(populate_existing=True)
    )
    project = result.scalars().first()
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")
    return project


async def list_projects(session: AsyncSession) -> list[models.Project]:
    """Projects with their assignments, newest first."""
    result = await session.execute(
        _project_query().order_by(models.Project.created_at.desc(), models.Project.id.desc())
    )
    return list(result.scalars().all())


async def create_project(session: AsyncSession, data: Mapping[str, Any]) -> models.Project:
    """Insert a project.

    Raises:
        ProjectError: If the data is invalid or the insert fails
        NotFoundError: If the owner does not exist
    """
    _check_fields(data, PROJECT_FIELDS)
    if data.get("owner_id") is not None:
        await _require_team_member(session, data["owner_id"])

    try:
        project = models.Project(**data)
        session.add(project)
        await session.commit()
        logger.info(f"Created project {project.id}: {project.title}")
    except Exception as e:
        logger.error(f"Project creation failed: {e}", exc_info=True)
        await session.rollback()
        raise ProjectError(f"Failed to create project: {e}") from e
    return await get_project(session, project.id)


async def update_project(
    session: AsyncSession,
    project_id: int,
    changes: Mapping[str, Any],
) -> models.Project:
    """Apply a partial update to a project."""
    _check_fields(changes, PROJECT_FIELDS)
    project = await get_project(session, project_id)
    if changes.get("owner_id") is not None:
        await _require_team_member(session, changes["owner_id"])

    try:
        for key, value in changes.items():
            setattr(project, key, value)
        await session.commit()
    except Exception as e:
        logger.error(f"Project update failed for {project_id}: {e}", exc_info=True)
        await session.rollback()
        raise ProjectError(f"Failed to update project {project_id}: {e}") from e
    return await get_project(session, project_id)


async def delete_project(session: AsyncSession, project_id: int) -> None:
    """Delete a project with its targets and assignments; its goals are kept without a project.

    Raises:
        ProjectError: For the "Connect People" networking project, which referral tracking relies on
    """
    project = await get_project(session, project_id)
    if is_connect_project(project):
        raise ProjectError(
            f'The "{project.title}" project cannot be deleted as it is essential for referral tracking'
        )

    try:
        await session.delete(project)
        await session.commit()
        logger.info(f"Deleted project {project_id}")
    except Exception as e:
        logger.error(f"Project deletion failed for {project_id}: {e}", exc_info=True)
        await session.rollback()
        raise ProjectError(f"Failed to delete project {project_id}: {e}") from e


async def assign_project_member(
    session: AsyncSession,
    project_id: int,
    member_id: int,
    role: str = "contributor",
) -> models.ProjectAssignment:
    """Put a team member on a project.

    Raises:
        NotFoundError: If the project or team member does not exist
        ProjectError: If the member is already on the project
    """
    await get_project(session, project_id)
    await _require_team_member(session, member_id)

    try:
        assignment = models.ProjectAssignment(project_id=project_id, team_member_id=member_id, role=role)
        session.add(assignment)
        await session.commit()
        logger.info(f"Assigned team member {member_id} to project {project_id} as {role}")
    except IntegrityError as e:
        await session.rollback()
        raise ProjectError(f"Team member {member_id} is already assigned to project {project_id}") from e

    result = await session.execute(
        select(models.ProjectAssignment)
        .options(selectinload(models.ProjectAssignment.team_member))
        .where(models.ProjectAssignment.id == assignment.id)
    )
    return result.scalars().one()


async def remove_project_member(session: AsyncSession, assignment_id: int) -> None:
    """Take a team member off a project."""
    assignment = await session.get(models.ProjectAssignment, assignment_id)
    if assignment is None:
        raise NotFoundError(f"Project assignment {assignment_id} not found")
    await session.delete(assignment)
    await session.commit()


# Targets

def _target_query():
    return select(models.Target).options(
        selectinload(models.Target.assignments).selectinload(models.TargetAssignment.team_member)
    )


async def get_target(session: AsyncSession, target_id: int) -> models.Target:
    """Load a target with its assignments or raise ``NotFoundError``."""
    result = await session.execute(
        _target_query()
        .where(models.Target.id == target_id)
        .execution_options(populate_existing=True)
    )
    target = result.scalars().first()
    if target is None:
        raise NotFoundError(f"Target {target_id} not found")
    return target


async def list_targets(session: AsyncSession, project_id: int | None = None) -> list[models.Target]:
    """Targets, newest first, optionally for one project."""
    query = _target_query().order_by(models.Target.created_at.desc(), models.Target.id.desc())
    if project_id is not None:
        query = query.where(models.Target.project_id == project_id)
    result = await session.execute(query)
    return list(result.scalars().all())


async def create_target(session: AsyncSession, data: Mapping[str, Any]) -> models.Target:
    """Insert a target, optionally under a project."""
    _check_fields(data, TARGET_FIELDS)
    if data.get("project_id") is not None:
        await get_project(session, data["project_id"])

    try:
        target = models.Target(**data)
        session.add(target)
        await session.commit()
        logger.info(f"Created target {target.id}: {target.title}")
    except Exception as e:
        logger.error(f"Target creation failed: {e}", exc_info=True)
        await session.rollback()
        raise ProjectError(f"Failed to create target: {e}") from e
    return await get_target(session, target.id)


async def update_target(
    session: AsyncSession,
    target_id: int,
    changes: Mapping[str, Any],
) -> models.Target:
    _check_fields(changes, TARGET_FIELDS)
    target = await get_target(session, target_id)
    if changes.get("project_id") is not None:
        await get_project(session, changes["project_id"])

    try:
        for key, value in changes.items():
            setattr(target, key, value)
        await session.commit()
    except Exception as e:
        logger.error(f"Target update failed for {target_id}: {e}", exc_info=True)
        await session.rollback()
        raise ProjectError(f"Failed to update target {target_id}: {e}") from e
    return await get_target(session, target_id)


async def delete_target(session: AsyncSession, target_id: int) -> None:
    target = await get_target(session, target_id)
    try:
        await session.delete(target)
        await session.commit()
        logger.info(f"Deleted target {target_id}")
    except Exception as e:
        logger.error(f"Target deletion failed for {target_id}: {e}", exc_info=True)
        await session.rollback()
        raise ProjectError(f"Failed to delete target {target_id}: {e}") from e


async def assign_target_member(session: AsyncSession, target_id: int, member_id: int) -> models.TargetAssignment:
    """Make a team member responsible for a target.

    Raises:
        NotFoundError: If the target or team member does not exist
        ProjectError: If the member is already assigned
    """
    await get_target(session, target_id)
    await _require_team_member(session, member_id)

    try:
        assignment = models.TargetAssignment(target_id=target_id, team_member_id=member_id)
        session.add(assignment)
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise ProjectError(f"Team member {member_id} is already assigned to target {target_id}") from e

    result = await session.execute(
        select(models.TargetAssignment)
        .options(selectinload(models.TargetAssignment.team_member))
        .where(models.TargetAssignment.id == assignment.id)
    )
    return result.scalars().one()


async def remove_target_member(session: AsyncSession, assignment_id: int) -> None:
    assignment = await session.get(models.TargetAssignment, assignment_id)
    if assignment is None:
        raise NotFoundError(f"Target assignment {assignment_id} not found")
    await session.delete(assignment)
    await session.commit()
