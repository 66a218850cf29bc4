"""Resolve free-text LinkedIn connection names to known contacts.

Connection lists hold names as typed on LinkedIn ("Dr. Jane Doe", "jane doe",
"Jane"), not contact ids, so each reference is matched against the contact
book with exact, normalized and word-overlap fuzzy matching.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from be.config import settings
from be.pipelines.normalization import normalize_name

logger = logging.getLogger(__name__)


@dataclass
class NameMatch:
    """A resolved connection reference."""
    contact_id: int
    score: float
    method: str  # id, exact, fuzzy


def name_similarity(name1: str, name2: str) -> float:
    """Similarity of two names in [0, 1].

    1.0 for identical normalized names, 0.8 when one contains the other
    ("John Smith" vs "John"), otherwise the share of words they have in
    common relative to the longer name.
    """
    n1 = normalize_name(name1)
    n2 = normalize_name(name2)

    if not n1 or not n2:
        return 0.0
    if n1 == n2:
        return 1.0
    if n1 in n2 or n2 in n1:
        return 0.8

    words1 = n1.split(' ')
    words2 = n2.split(' ')
    matching = sum(1 for w in words1 if w in words2)
    return matching / max(len(words1), len(words2))


class ContactNameMatcher:
    """Lookup structure over the contact book.

    Supports:
    - Direct contact-id references
    - Exact normalized-name matching
    - Fuzzy word-overlap matching above a threshold
    """

    def __init__(
        self,
        contacts: Iterable[tuple[int, str]],
        *,
        threshold: float | None = None,
    ) -> None:
        """Initialize the matcher.

        Args:
            contacts: ``(contact_id, name)`` pairs
            threshold: Minimum fuzzy similarity (config default if None)
        """
        self.threshold = settings.network.name_match_threshold if threshold is None else threshold
        self._contacts: list[tuple[int, str]] = list(contacts)
        self._ids: dict[str, int] = {}
        self._names: dict[str, int] = {}  # normalized name -> contact id

        self._build_indices()

        logger.debug(f"Indexed {len(self._contacts)} contacts ({len(self._names)} distinct names)")

    def _build_indices(self) -> None:
        """Build internal lookup structures."""
        for contact_id, name in self._contacts:
            self._ids[str(contact_id)] = contact_id
            normalized = normalize_name(name)
            if normalized:
                # Later duplicates win, as with a plain name -> id map
                self._names[normalized] = contact_id

    def match(self, reference: str) -> NameMatch | None:
        """Resolve one connection reference, or ``None`` when nothing is close enough."""
        if not reference or not reference.strip():
            return None

        contact_id = self._ids.get(reference.strip())
        if contact_id is not None:
            return NameMatch(contact_id=contact_id, score=1.0, method="id")

        normalized = normalize_name(reference)
        if not normalized:
            return None

        contact_id = self._names.get(normalized)
        if contact_id is not None:
            return NameMatch(contact_id=contact_id, score=1.0, method="exact")

        best: NameMatch | None = None
        for candidate_id, name in self._contacts:
            score = name_similarity(reference, name)
            if score >= self.threshold and (best is None or score > best.score):
                best = NameMatch(contact_id=candidate_id, score=score, method="fuzzy")

        return best
