"""Opportunity duplicate detection and opportunity creation.

A new opportunity is compared against the contact's existing opportunities
and imported calendar events within a time window around its date. Titles
are compared fuzzily; date proximity and a shared contact add to the score.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping

from rapidfuzz.distance import Levenshtein
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from be import models
from be.config import settings
from be.pipelines import NotFoundError
from be.pipelines.normalization import as_naive_utc, hours_between, normalize_title
from config.opportunity_taxonomy import (
    DEFAULT_OPPORTUNITY_TYPE,
    OPPORTUNITY_TYPE_KEYWORDS,
    OPPORTUNITY_TYPES,
)

logger = logging.getLogger(__name__)

OPPORTUNITY_FIELDS = frozenset({
    "contact_id", "title", "type", "date", "location", "description",
    "registration_status", "source", "calendar_event_id", "synced_to_calendar",
})

TITLE_POINTS = 50
CONTACT_POINTS = 20
# (hours below which, points), checked in order
DATE_PROXIMITY_POINTS = [(2, 30), (6, 20), (24, 10)]


class DuplicateDetectionError(Exception):
    """Raised when duplicate detection or opportunity creation fails."""
    pass


@dataclass
class DuplicateMatch:
    """An existing opportunity or calendar event that looks like the new one."""
    id: int
    title: str
    date: datetime
    source: str
    match_score: float
    type: str | None


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings."""
    return Levenshtein.distance(a, b)


def fuzzy_title_match(title1: str, title2: str) -> bool:
    """Whether two opportunity titles name the same thing.

    Titles match when their normalized forms are equal, when the longer one
    contains the shorter and the shorter covers more than ``containment_ratio``
    of it, or when their edit distance is below ``max_title_distance``.

    >>> fuzzy_title_match("Team Meeting!", "team meeting")
    True
    """
    cfg = settings.duplicates
    t1 = normalize_title(title1)
    t2 = normalize_title(title2)

    if t1 == t2:
        return True

    longer, shorter = (t1, t2) if len(t1) > len(t2) else (t2, t1)
    if shorter in longer and len(shorter) / len(longer) > cfg.containment_ratio:
        return True

    return levenshtein_distance(t1, t2) < cfg.max_title_distance


def calculate_match_score(
    title1: str,
    date1: datetime,
    contact1: int | None,
    title2: str,
    date2: datetime,
    contact2: int | None,
) -> float:
    """Similarity of two opportunities in [0, 1].

    Title match is worth 50 points, date proximity up to 30 and a shared
    contact 20; the total is divided by 100.
    """
    score = TITLE_POINTS if fuzzy_title_match(title1, title2) else 0

    hours = hours_between(date1, date2)
    for limit, points in DATE_PROXIMITY_POINTS:
        if hours < limit:
            score += points
            break

    if contact1 is not None and contact2 is not None and contact1 == contact2:
        score += CONTACT_POINTS

    return score / 100


def infer_opportunity_type(title: str) -> str:
    """Opportunity type implied by keywords in the title."""
    text = (title or "").lower().strip()
    for entry in OPPORTUNITY_TYPE_KEYWORDS:
        if any(keyword in text for keyword in entry["keywords"]):
            return entry["type"]
    return DEFAULT_OPPORTUNITY_TYPE


async def detect_duplicate_opportunities(
    session: AsyncSession,
    title: str,
    date: datetime,
    contact_id: int | None = None,
) -> list[DuplicateMatch]:
    """Find existing opportunities and calendar events similar to a new one.

    Args:
        session: Database session
        title: Title of the opportunity about to be created
        date: Its start time
        contact_id: Contact it involves; when omitted every contact's
            opportunities in the window are candidates

    Returns:
        Matches scoring above ``match_threshold``, best first

    Raises:
        DuplicateDetectionError: If the opportunity lookup fails
    """
    cfg = settings.duplicates
    date = as_naive_utc(date)
    window = timedelta(hours=cfg.window_hours)
    start, end = date - window, date + window
    logger.info(f"Checking for duplicates of '{title}' at {date.isoformat()} (contact {contact_id})")

    query = select(models.Opportunity).where(
        models.Opportunity.date >= start,
        models.Opportunity.date <= end,
    )
    if contact_id is not None:
        query = query.where(models.Opportunity.contact_id == contact_id)

    try:
        opportunities = (await session.execute(query)).scalars().all()
    except Exception as e:
        logger.error(f"Error fetching opportunities: {e}", exc_info=True)
        raise DuplicateDetectionError(f"Failed to load opportunities: {e}") from e

    try:
        result = await session.execute(
            select(models.CalendarEvent).where(
                models.CalendarEvent.event_start >= start,
                models.CalendarEvent.event_start <= end,
            )
        )
        events = [
            event for event in result.scalars().all()
            if contact_id is None or contact_id in (event.contact_ids or [])
        ]
    except Exception as e:
        # Calendar data only refines the result
        logger.error(f"Error fetching calendar events: {e}")
        events = []

    duplicates: list[DuplicateMatch] = []

    for opp in opportunities:
        score = calculate_match_score(title, date, contact_id, opp.title, opp.date, opp.contact_id)
        if score > cfg.match_threshold:
            duplicates.append(DuplicateMatch(
                id=opp.id,
                title=opp.title,
                date=opp.date,
                source=opp.source or "manual",
                match_score=score,
                type=opp.type,
            ))

    for event in events:
        score = calculate_match_score(title, date, contact_id, event.event_title, event.event_start, contact_id)
        if score > cfg.match_threshold:
            duplicates.append(DuplicateMatch(
                id=event.id,
                title=event.event_title,
                date=event.event_start,
                source=event.source or "m365_sync",
                match_score=score,
                type=event.opportunity_type,
            ))

    duplicates.sort(key=lambda d: d.match_score, reverse=True)
    logger.info(f"Found {len(duplicates)} potential duplicates")
    return duplicates


async def create_opportunity(
    session: AsyncSession,
    data: Mapping[str, Any],
    *,
    created_by: str | None = None,
) -> models.Opportunity:
    """Insert an opportunity, inferring its type from the title when omitted."""
    unknown = set(data) - OPPORTUNITY_FIELDS
    if unknown:
        raise DuplicateDetectionError(f"Unknown fields: {', '.join(sorted(unknown))}")

    fields = dict(data)
    fields["date"] = as_naive_utc(fields["date"])
    if not fields.get("type"):
        fields["type"] = infer_opportunity_type(fields.get("title", ""))
    elif fields["type"] not in OPPORTUNITY_TYPES:
        raise DuplicateDetectionError(f"Invalid opportunity type: {fields['type']}")
    if not fields.get("source"):
        fields["source"] = "manual"

    contact_id = fields.get("contact_id")
    if contact_id is not None and await session.get(models.Contact, contact_id) is None:
        raise NotFoundError(f"Contact {contact_id} not found")

    try:
        opportunity = models.Opportunity(created_by=created_by, **fields)
        session.add(opportunity)
        await session.commit()
        logger.info(f"Created {opportunity.type} opportunity {opportunity.id}: {opportunity.title}")
        return opportunity
    except Exception as e:
        logger.error(f"Opportunity creation failed: {e}", exc_info=True)
        await session.rollback()
        raise DuplicateDetectionError(f"Failed to create opportunity: {e}") from e


async def list_opportunities(
    session: AsyncSession,
    contact_id: int | None = None,
) -> list[models.Opportunity]:
    """Opportunities ordered by date, newest first."""
    query = select(models.Opportunity).order_by(models.Opportunity.date.desc())
    if contact_id is not None:
        query = query.where(models.Opportunity.contact_id == contact_id)
    result = await session.execute(query)
    return list(result.scalars().all())
