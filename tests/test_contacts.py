"""Tests for the contact book pipeline."""
from datetime import datetime, timedelta

import pytest

from be import models
from be.pipelines import NotFoundError
from be.pipelines.contacts import (
    ContactError,
    check_for_duplicates,
    create_contact,
    delete_contact,
    get_contact,
    list_contacts,
    list_interactions,
    record_interaction,
    remove_duplicate_contacts,
    update_contact,
)


class TestContactCrud:
    """Create, read, update and delete."""

    async def test_create_and_get(self, session):
        contact = await create_contact(
            session,
            {"name": "Alice Ray", "email": "alice@example.com", "tags": ["bni"]},
            created_by="user-1",
        )

        loaded = await get_contact(session, contact.id)
        assert loaded.name == "Alice Ray"
        assert loaded.tags == ["bni"]
        assert loaded.created_by == "user-1"
        assert loaded.linkedin_connections == []

    async def test_unknown_field_rejected(self, session):
        with pytest.raises(ContactError, match="Unknown fields: id"):
            await create_contact(session, {"name": "Alice", "email": "a@example.com", "id": 5})

    async def test_update(self, session, make_contact):
        contact = await make_contact("Alice Ray")
        updated = await update_contact(session, contact.id, {"company": "Acme", "cooperation_rating": 4})

        assert updated.company == "Acme"
        assert updated.cooperation_rating == 4

    async def test_missing_contact(self, session):
        with pytest.raises(NotFoundError):
            await get_contact(session, 404)
        with pytest.raises(NotFoundError):
            await update_contact(session, 404, {"company": "Acme"})

    async def test_delete_cascades(self, session, make_contact, now):
        contact = await make_contact("Alice Ray")
        await record_interaction(session, contact.id, {"type": "call", "date": now})

        await delete_contact(session, contact.id)

        with pytest.raises(NotFoundError):
            await get_contact(session, contact.id)
        assert await session.get(models.Interaction, 1) is None

    async def test_list_filters(self, session, make_contact):
        await make_contact("Bob Stone", created_by="user-1")
        await make_contact("Alice Ray", created_by="user-1")
        await make_contact("Carol King", created_by="user-2")

        mine = await list_contacts(session, created_by="user-1")
        assert [c.name for c in mine] == ["Alice Ray", "Bob Stone"]
        assert len(await list_contacts(session)) == 3


class TestInteractions:
    """Interaction logging and ``last_contact`` tracking."""

    async def test_newer_interaction_moves_last_contact(self, session, make_contact, now):
        contact = await make_contact("Alice Ray", last_contact=now - timedelta(days=10))
        await record_interaction(session, contact.id, {"type": "coffee", "date": now})

        assert (await get_contact(session, contact.id)).last_contact == now

    async def test_older_interaction_keeps_last_contact(self, session, make_contact, now):
        contact = await make_contact("Alice Ray", last_contact=now)
        await record_interaction(session, contact.id, {"type": "email", "date": now - timedelta(days=3)})

        assert (await get_contact(session, contact.id)).last_contact == now

    async def test_listed_newest_first(self, session, make_contact, now):
        contact = await make_contact("Alice Ray")
        await record_interaction(session, contact.id, {"type": "call", "date": now - timedelta(days=2)})
        await record_interaction(session, contact.id, {"type": "meeting", "date": now})

        assert [i.type for i in await list_interactions(session, contact.id)] == ["meeting", "call"]

    async def test_unknown_contact(self, session, now):
        with pytest.raises(NotFoundError):
            await record_interaction(session, 404, {"type": "call", "date": now})


class TestDuplicateContacts:
    """Email de-duplication."""

    @pytest.fixture
    async def duplicates(self, make_contact):
        first = await make_contact("Alice Ray", email="alice@example.com", created_at=datetime(2024, 1, 1))
        second = await make_contact("Alice R.", email=" ALICE@example.com", created_at=datetime(2024, 2, 1))
        third = await make_contact("A. Ray", email="alice@example.com", created_at=datetime(2024, 3, 1))
        other = await make_contact("Bob Stone", created_at=datetime(2024, 1, 5))
        return first, second, third, other

    async def test_check_counts_without_deleting(self, session, duplicates):
        report = await check_for_duplicates(session)

        assert report.total_contacts == 4
        assert report.unique_emails == 2
        assert report.duplicate_count == 2
        assert len(await list_contacts(session)) == 4

    async def test_oldest_contact_is_kept(self, session, duplicates):
        first, _, _, other = duplicates
        report = await remove_duplicate_contacts(session)

        assert report.removed == 2
        assert report.errors == []
        assert {c.id for c in await list_contacts(session)} == {first.id, other.id}

    async def test_nothing_to_remove(self, session, make_contact):
        await make_contact("Alice Ray")
        report = await remove_duplicate_contacts(session)
        assert report.removed == 0

    async def test_failed_group_does_not_stop_others(self, session, make_contact, monkeypatch):
        alice = await make_contact("Alice Ray", email="alice@example.com", created_at=datetime(2024, 1, 1))
        alice_copy = await make_contact("Alice R.", email="alice@example.com", created_at=datetime(2024, 2, 1))
        bob = await make_contact("Bob Stone", email="bob@example.com", created_at=datetime(2024, 3, 1))
        await make_contact("B. Stone", email="bob@example.com", created_at=datetime(2024, 4, 1))
        # rollback expires loaded rows
        kept_ids = {alice.id, alice_copy.id, bob.id}
        locked_id = alice_copy.id

        delete = session.delete

        async def failing_delete(instance):
            if instance.id == locked_id:
                raise RuntimeError("row is locked")
            await delete(instance)

        monkeypatch.setattr(session, "delete", failing_delete)
        report = await remove_duplicate_contacts(session)

        assert report.removed == 1
        assert len(report.errors) == 1
        assert "alice@example.com" in report.errors[0]
        assert {c.id for c in await list_contacts(session)} == kept_ids

    async def test_blank_emails_are_not_duplicates(self, session, make_contact):
        await make_contact("Alice Ray", email="   ")
        await make_contact("Bob Stone", email="")

        report = await check_for_duplicates(session)
        assert report.duplicate_count == 0
        assert report.total_contacts == 2

        assert (await remove_duplicate_contacts(session)).removed == 0
        assert len(await list_contacts(session)) == 2
