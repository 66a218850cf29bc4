"""Contact book: CRUD, interaction logging and email de-duplication."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from be import models
from be.pipelines import NotFoundError
from be.pipelines.normalization import as_naive_utc, normalize_email

logger = logging.getLogger(__name__)

# Columns callers may set directly; ids and bookkeeping timestamps are not among them
CONTACT_FIELDS = frozenset({
    "name", "email", "phone", "company", "position", "avatar", "notes", "tags",
    "affiliation", "offering", "looking_for", "current_projects", "mutual_benefit",
    "referred_by", "linkedin_connections", "cooperation_rating", "potential_score",
    "last_contact", "assigned_to",
})

INTERACTION_FIELDS = frozenset({
    "type", "date", "description", "outcome", "contacted_by", "channel", "evaluation",
})


class ContactError(Exception):
    """Raised when a contact operation fails."""
    pass


@dataclass
class DuplicateRemovalReport:
    """Outcome of an email de-duplication run."""
    removed: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class DuplicateReport:
    """How many contacts share an email with an older one."""
    duplicate_count: int
    unique_emails: int
    total_contacts: int


def _clean(data: Mapping[str, Any], allowed: frozenset[str]) -> dict[str, Any]:
    unknown = set(data) - allowed
    if unknown:
        raise ContactError(f"Unknown fields: {', '.join(sorted(unknown))}")
    cleaned = dict(data)
    for key in ("last_contact", "date"):
        if cleaned.get(key) is not None:
            cleaned[key] = as_naive_utc(cleaned[key])
    return cleaned


async def get_contact(session: AsyncSession, contact_id: int) -> models.Contact:
    """Load a contact or raise ``NotFoundError``."""
    contact = await session.get(models.Contact, contact_id)
    if contact is None:
        raise NotFoundError(f"Contact {contact_id} not found")
    return contact


async def list_contacts(
    session: AsyncSession,
    *,
    assigned_to: int | None = None,
    created_by: str | None = None,
) -> list[models.Contact]:
    """Contacts ordered by name, optionally filtered by owner."""
    query = select(models.Contact).order_by(models.Contact.name, models.Contact.id)
    if assigned_to is not None:
        query = query.where(models.Contact.assigned_to == assigned_to)
    if created_by is not None:
        query = query.where(models.Contact.created_by == created_by)

    result = await session.execute(query)
    return list(result.scalars().all())


async def create_contact(
    session: AsyncSession,
    data: Mapping[str, Any],
    *,
    created_by: str | None = None,
) -> models.Contact:
    """Insert a contact.

    Raises:
        ContactError: If the data is invalid or the insert fails
    """
    try:
        contact = models.Contact(created_by=created_by, **_clean(data, CONTACT_FIELDS))
        session.add(contact)
        await session.commit()
        logger.info(f"Created contact {contact.id}: {contact.name}")
        return contact
    except ContactError:
        raise
    except Exception as e:
        logger.error(f"Contact creation failed: {e}", exc_info=True)
        await session.rollback()
        raise ContactError(f"Failed to create contact: {e}") from e


async def update_contact(
    session: AsyncSession,
    contact_id: int,
    changes: Mapping[str, Any],
) -> models.Contact:
    """Apply a partial update to a contact."""
    contact = await get_contact(session, contact_id)
    try:
        for key, value in _clean(changes, CONTACT_FIELDS).items():
            setattr(contact, key, value)
        await session.commit()
        return contact
    except ContactError:
        raise
    except Exception as e:
        logger.error(f"Contact update failed for {contact_id}: {e}", exc_info=True)
        await session.rollback()
        raise ContactError(f"Failed to update contact {contact_id}: {e}") from e


async def delete_contact(session: AsyncSession, contact_id: int) -> None:
    """Delete a contact together with its interactions, opportunities and referrals."""
    contact = await get_contact(session, contact_id)
    try:
        await session.delete(contact)
        await session.commit()
        logger.info(f"Deleted contact {contact_id}")
    except Exception as e:
        logger.error(f"Contact deletion failed for {contact_id}: {e}", exc_info=True)
        await session.rollback()
        raise ContactError(f"Failed to delete contact {contact_id}: {e}") from e


async def record_interaction(
    session: AsyncSession,
    contact_id: int,
    data: Mapping[str, Any],
) -> models.Interaction:
    """Log an interaction and move the contact's ``last_contact`` forward if it is newer."""
    contact = await get_contact(session, contact_id)
    try:
        interaction = models.Interaction(contact_id=contact_id, **_clean(data, INTERACTION_FIELDS))
        session.add(interaction)

        if contact.last_contact is None or interaction.date > contact.last_contact:
            contact.last_contact = interaction.date

        await session.commit()
        return interaction
    except ContactError:
        raise
    except Exception as e:
        logger.error(f"Interaction logging failed for contact {contact_id}: {e}", exc_info=True)
        await session.rollback()
        raise ContactError(f"Failed to record interaction: {e}") from e


async def list_interactions(session: AsyncSession, contact_id: int) -> list[models.Interaction]:
    """Interactions with a contact, newest first."""
    await get_contact(session, contact_id)
    result = await session.execute(
        select(models.Interaction)
        .where(models.Interaction.contact_id == contact_id)
        .order_by(models.Interaction.date.desc())
    )
    return list(result.scalars().all())


async def remove_duplicate_contacts(session: AsyncSession) -> DuplicateRemovalReport:
    """Delete contacts whose email already belongs to an older contact.

    Emails are compared case-insensitively. Within each group the contact
    with the earliest ``created_at`` (lowest id on ties) is kept. Each group
    is committed on its own; a failing group is reported in ``errors`` and
    the remaining groups still run.
    """
    logger.info("Starting duplicate contact removal")
    report = DuplicateRemovalReport()

    try:
        result = await session.execute(
            select(models.Contact).order_by(models.Contact.created_at, models.Contact.id)
        )
        contacts = list(result.scalars().all())
    except Exception as e:
        logger.error(f"Loading contacts for de-duplication failed: {e}", exc_info=True)
        raise ContactError(f"Failed to load contacts: {e}") from e

    groups: dict[str, list[models.Contact]] = {}
    for contact in contacts:
        email = normalize_email(contact.email)
        # Blank emails identify nobody
        if email:
            groups.setdefault(email, []).append(contact)

    # Ids are captured up front; a rollback expires every loaded contact
    duplicate_groups = [
        (email, group[0].id, [c.id for c in group[1:]])
        for email, group in groups.items()
        if len(group) > 1
    ]
    if not duplicate_groups:
        logger.info("No duplicate contacts found")
        return report

    logger.info(f"Found {len(duplicate_groups)} email addresses with duplicates")

    for email, keep_id, remove_ids in duplicate_groups:
        try:
            for contact_id in remove_ids:
                contact = await session.get(models.Contact, contact_id)
                if contact is not None:
                    await session.delete(contact)
            await session.commit()
            report.removed += len(remove_ids)
            logger.info(f"Email {email}: kept contact {keep_id}, removed {len(remove_ids)} duplicates")
        except Exception as e:
            await session.rollback()
            message = f"Failed to remove duplicates for {email}: {e}"
            logger.error(message)
            report.errors.append(message)

    logger.info(f"Duplicate removal completed: removed {report.removed}, errors {len(report.errors)}")
    return report


async def check_for_duplicates(session: AsyncSession) -> DuplicateReport:
    """Count contacts sharing an email without deleting anything."""
    result = await session.execute(select(models.Contact.email))
    all_emails = [normalize_email(email) for email in result.scalars().all()]
    emails = [email for email in all_emails if email]
    unique = set(emails)
    return DuplicateReport(
        duplicate_count=len(emails) - len(unique),
        unique_emails=len(unique),
        total_contacts=len(all_emails),
    )
