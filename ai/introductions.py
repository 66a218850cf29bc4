"""LLM-assisted introduction matching between contacts.

Every pair of contacts that states an offering or a need is described to an
OpenAI-compatible chat completions endpoint, which must answer through the
``analyze_match`` tool. Pairs are analysed concurrently in small batches and
a failing pair never fails the batch: it is scored as a non-match.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from itertools import combinations
from typing import Any, Literal, Sequence

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from be.config import settings
from be.network.graph import ContactRecord

logger = logging.getLogger(__name__)

MATCH_TYPES = [
    "need-offering",
    "business-synergy",
    "professional-alignment",
    "project-collaboration",
    "network-expansion",
]

SYSTEM_PROMPT = "You are a networking expert. Respond ONLY with valid JSON."

ANALYZE_MATCH_TOOL = {
    "type": "function",
    "function": {
        "name": "analyze_match",
        "description": "Analyze if two contacts should be introduced",
        "parameters": {
            "type": "object",
            "properties": {
                "isMatch": {"type": "boolean"},
                "confidence": {"type": "number", "minimum": 0, "maximum": 100},
                "reason": {"type": "string"},
                "matchType": {"type": "string", "enum": MATCH_TYPES},
                "interpretation": {"type": "string"},
            },
            "required": ["isMatch", "confidence", "reason", "matchType", "interpretation"],
            "additionalProperties": False,
        },
    },
}


class IntroductionMatchingError(Exception):
    """Raised when introduction matching cannot run at all."""
    pass


class MatchAnalysis(BaseModel):
    """The model's verdict on one pair, as returned by ``analyze_match``."""
    model_config = ConfigDict(populate_by_name=True)

    is_match: bool = Field(alias="isMatch")
    confidence: float = Field(ge=0, le=100)
    reason: str
    match_type: Literal[
        "need-offering",
        "business-synergy",
        "professional-alignment",
        "project-collaboration",
        "network-expansion",
        "none",
    ] = Field(alias="matchType")
    interpretation: str

    @classmethod
    def no_match(cls, reason: str, interpretation: str) -> MatchAnalysis:
        return cls(is_match=False, confidence=0, reason=reason, match_type="none", interpretation=interpretation)


@dataclass
class IntroductionMatch:
    """A pair worth introducing."""
    contact1: ContactRecord
    contact2: ContactRecord
    match_score: float
    match_reason: str
    match_type: str
    interpretation: str


def candidate_pairs(contacts: Sequence[ContactRecord], max_pairs: int | None = None) -> list[tuple[ContactRecord, ContactRecord]]:
    """Pairs (i < j, input order) of contacts with an offering or a need, capped at ``max_pairs``."""
    max_pairs = settings.matching.max_pairs if max_pairs is None else max_pairs
    valid = [c for c in contacts if c.offering or c.looking_for]
    return list(combinations(valid, 2))[:max_pairs]


def build_prompt(contact1: ContactRecord, contact2: ContactRecord) -> str:
    def describe(label: str, c: ContactRecord) -> str:
        return (
            f"{label}: {c.name} - {c.position or 'N/A'} at {c.company or 'N/A'}\n"
            f"Offering: {c.offering or 'N/A'}\n"
            f"Looking for: {c.looking_for or 'N/A'}"
        )

    return (
        "Analyze if these professionals should be introduced:\n\n"
        f"{describe('Contact 1', contact1)}\n\n"
        f"{describe('Contact 2', contact2)}\n\n"
        "Rate match confidence (0-100) and explain why. Focus on complementary needs/offerings."
    )


class IntroductionMatcher:
    """Scores contact pairs for introductions through an LLM gateway.

    Args:
        client: HTTP client to use; one is created per run when omitted
        api_key: Gateway API key (defaults to ``MATCHING_API_KEY``)
        gateway_url: Chat completions URL
        model: Model name sent with each request
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        api_key: str | None = None,
        gateway_url: str | None = None,
        model: str | None = None,
    ):
        cfg = settings.matching
        self.client = client
        self.api_key = api_key or cfg.api_key
        self.gateway_url = gateway_url or cfg.gateway_url
        self.model = model or cfg.model

        if not self.api_key:
            raise IntroductionMatchingError("No LLM API key configured (set MATCHING_API_KEY)")

    def _payload(self, contact1: ContactRecord, contact2: ContactRecord) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(contact1, contact2)},
            ],
            "tools": [ANALYZE_MATCH_TOOL],
            "tool_choice": {"type": "function", "function": {"name": "analyze_match"}},
        }

    @retry(
        stop=stop_after_attempt(settings.matching.retry_attempts),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _post(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> httpx.Response:
        return await client.post(
            self.gateway_url,
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

    async def analyze_pair(
        self,
        client: httpx.AsyncClient,
        contact1: ContactRecord,
        contact2: ContactRecord,
    ) -> MatchAnalysis:
        """Ask the model about one pair. Never raises; failures are non-matches."""
        try:
            response = await self._post(client, self._payload(contact1, contact2))

            if response.status_code == 429:
                logger.error("Rate limited by the LLM gateway")
                return MatchAnalysis.no_match("Rate limited", "Try again later")
            if response.status_code == 402:
                logger.error("LLM gateway requires payment")
                return MatchAnalysis.no_match("No credits", "Add credits")
            response.raise_for_status()

            tool_calls = response.json()["choices"][0]["message"].get("tool_calls") or []
            if not tool_calls or not tool_calls[0].get("function", {}).get("arguments"):
                return MatchAnalysis.no_match("No analysis", "Error")

            return MatchAnalysis.model_validate_json(tool_calls[0]["function"]["arguments"])

        except (httpx.HTTPError, ValidationError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Error analyzing pair {contact1.id}/{contact2.id}: {e}")
            return MatchAnalysis.no_match("Analysis failed", "Technical error")

    async def find_matches(self, contacts: Sequence[ContactRecord]) -> list[IntroductionMatch]:
        """Analyse candidate pairs and return confident matches, best first."""
        cfg = settings.matching
        pairs = candidate_pairs(contacts, cfg.max_pairs)
        logger.info(f"Analyzing {len(pairs)} contact pairs for introductions")

        if self.client is not None:
            return await self._run(self.client, pairs)

        async with httpx.AsyncClient(timeout=cfg.timeout) as client:
            return await self._run(client, pairs)

    async def _run(
        self,
        client: httpx.AsyncClient,
        pairs: list[tuple[ContactRecord, ContactRecord]],
    ) -> list[IntroductionMatch]:
        cfg = settings.matching
        matches: list[IntroductionMatch] = []

        for start in range(0, len(pairs), cfg.batch_size):
            batch = pairs[start:start + cfg.batch_size]
            results = await asyncio.gather(*(self.analyze_pair(client, a, b) for a, b in batch))

            for (contact1, contact2), analysis in zip(batch, results):
                if analysis.is_match and analysis.confidence > cfg.min_confidence:
                    matches.append(IntroductionMatch(
                        contact1=contact1,
                        contact2=contact2,
                        match_score=analysis.confidence,
                        match_reason=analysis.reason,
                        match_type=analysis.match_type,
                        interpretation=analysis.interpretation,
                    ))

        matches.sort(key=lambda m: m.match_score, reverse=True)
        logger.info(f"Found {len(matches)} introduction matches")
        return matches
