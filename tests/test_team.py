"""Tests for team member management."""
import pytest

from be import models
from be.pipelines import NotFoundError
from be.pipelines.contacts import get_contact
from be.pipelines.team import (
    TeamError,
    create_team_member,
    delete_team_member,
    get_team_member,
    list_team_members,
    update_team_member,
)


@pytest.fixture
def make_member(session):
    async def _make(first_name, last_name="Muster", **kwargs):
        kwargs.setdefault("email", f"{first_name.lower()}@institute.org")
        return await create_team_member(session, {"first_name": first_name, "last_name": last_name, **kwargs})

    return _make


class TestTeamMembers:
    async def test_create_normalizes_email(self, make_member):
        member = await make_member("Anna", email=" Anna@Institute.org ")

        assert member.email == "anna@institute.org"
        assert member.name == "Anna Muster"
        assert member.is_active
        assert member.specializations == []

    async def test_duplicate_email_rejected(self, make_member):
        await make_member("Anna")
        with pytest.raises(TeamError, match="already exists"):
            await make_member("Anne", email="ANNA@institute.org")

    async def test_unknown_field_rejected(self, session):
        with pytest.raises(TeamError):
            await create_team_member(session, {"first_name": "A", "last_name": "B", "email": "a@b.c", "salary": 1})

    async def test_listed_by_department_then_role(self, session, make_member):
        await make_member("Cleo", department="Sales", role="Lead")
        await make_member("Ben", department="Research", role="Scientist")
        await make_member("Dora", department="Research", role="Director")

        names = [m.first_name for m in await list_team_members(session)]
        assert names == ["Dora", "Ben", "Cleo"]

    async def test_filters(self, session, make_member):
        await make_member("Anna", department="Research", specializations=["biotech", "ai"])
        await make_member("Ben", department="Research", specializations=["materials"])
        retired = await make_member("Carl", department="Research", specializations=["ai"])
        await update_team_member(session, retired.id, {"is_active": False})

        assert [m.first_name for m in await list_team_members(session, specialization="ai")] == ["Anna"]
        assert len(await list_team_members(session, department="Research", include_inactive=True)) == 3
        assert await list_team_members(session, department="Sales") == []

    async def test_delete_unassigns_contacts(self, session, make_member, make_contact):
        member = await make_member("Anna")
        contact = await make_contact("Bob Stone", assigned_to=member.id)

        await delete_team_member(session, member.id)

        with pytest.raises(NotFoundError):
            await get_team_member(session, member.id)
        assert (await get_contact(session, contact.id)).assigned_to is None

    async def test_missing_member(self, session):
        with pytest.raises(NotFoundError):
            await update_team_member(session, 404, {"role": "Lead"})

    async def test_assignments_removed_with_member(self, session, make_member):
        member = await make_member("Anna")
        project = models.Project(title="Outreach")
        session.add(project)
        await session.commit()
        assignment = models.ProjectAssignment(project_id=project.id, team_member_id=member.id)
        session.add(assignment)
        await session.commit()
        assignment_id = assignment.id

        await delete_team_member(session, member.id)

        assert await session.get(models.ProjectAssignment, assignment_id) is None
