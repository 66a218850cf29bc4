"""Text and timestamp normalization shared by the matching pipelines.

Names (for LinkedIn-connection matching), opportunity titles (for duplicate
detection), emails (for contact de-duplication) and datetimes (stored as
naive UTC) all pass through here.
"""
from __future__ import annotations

import math
import re
import unicodedata
from datetime import datetime, timezone

_HONORIFIC_RE = re.compile(r'^(?:dr\.|prof\.|mr\.|ms\.|mrs\.)\s+', re.IGNORECASE)
_PUNCTUATION_RE = re.compile(r'[^\w\s]')
_WHITESPACE_RE = re.compile(r'\s+')

SECONDS_PER_DAY = 60 * 60 * 24


def normalize_whitespace(text: str) -> str:
    """Normalize whitespace: collapse multiple spaces, remove leading/trailing."""
    return _WHITESPACE_RE.sub(' ', text).strip()


def remove_punctuation(text: str) -> str:
    """Drop every character that is neither a word character nor whitespace."""
    return _PUNCTUATION_RE.sub('', text)


def normalize_unicode(text: str) -> str:
    """Compose Unicode so accented names compare equal regardless of input form."""
    return unicodedata.normalize('NFC', text)


def normalize_name(name: str) -> str:
    """Normalize a person's name for matching.

    Lowercases, strips one leading honorific (``Dr.``, ``Prof.``, ``Mr.``,
    ``Ms.``, ``Mrs.``), removes punctuation and collapses whitespace.

    >>> normalize_name("  Dr. Jane   O'Neil ")
    'jane oneil'
    """
    if not name:
        return ""
    text = normalize_unicode(name).lower().strip()
    text = _HONORIFIC_RE.sub('', text)
    text = remove_punctuation(text)
    return _WHITESPACE_RE.sub(' ', text).strip()


def normalize_title(title: str) -> str:
    """Normalize an opportunity title: lowercase, trim, strip punctuation."""
    if not title:
        return ""
    return remove_punctuation(normalize_unicode(title).lower().strip())


def normalize_email(email: str | None) -> str:
    """Canonical form used to group contacts by email."""
    return (email or "").strip().lower()


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)."""
    return math.floor(value + 0.5)


def as_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed from ``earlier`` to ``later`` (floored)."""
    delta = as_naive_utc(later) - as_naive_utc(earlier)
    return math.floor(delta.total_seconds() / SECONDS_PER_DAY)


def hours_between(a: datetime, b: datetime) -> float:
    """Absolute distance between two instants in hours."""
    return abs((as_naive_utc(a) - as_naive_utc(b)).total_seconds()) / 3600.0
