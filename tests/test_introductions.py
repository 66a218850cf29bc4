"""Tests for LLM-assisted introduction matching, against a mocked gateway."""
import json

import httpx
import pytest
from tenacity import wait_none

from ai.introductions import (
    IntroductionMatcher,
    IntroductionMatchingError,
    MatchAnalysis,
    build_prompt,
    candidate_pairs,
)
from be.config import settings
from be.network.graph import ContactRecord

GATEWAY = "https://llm.test/v1/chat/completions"


def contact(id, name, offering=None, looking_for=None):
    return ContactRecord(id=id, name=name, company="Acme", offering=offering, looking_for=looking_for)


def tool_response(**arguments):
    return httpx.Response(200, json={
        "choices": [{
            "message": {
                "tool_calls": [{
                    "type": "function",
                    "function": {"name": "analyze_match", "arguments": json.dumps(arguments)},
                }],
            },
        }],
    })


def match_arguments(confidence, is_match=True):
    return {
        "isMatch": is_match,
        "confidence": confidence,
        "reason": "Complementary services",
        "matchType": "need-offering",
        "interpretation": "One needs what the other offers",
    }


def make_matcher(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return IntroductionMatcher(client, api_key="test-key", gateway_url=GATEWAY, model="test-model")


@pytest.fixture
def alice():
    return contact(1, "Alice Ray", offering="Bookkeeping")


@pytest.fixture
def bob():
    return contact(2, "Bob Stone", looking_for="An accountant")


class TestCandidatePairs:
    def test_contacts_without_offering_or_need_are_skipped(self, alice, bob):
        pairs = candidate_pairs([alice, contact(3, "Carol King"), bob])
        assert [(a.id, b.id) for a, b in pairs] == [(1, 2)]

    def test_capped(self):
        contacts = [contact(i, f"Person {i}", offering="x") for i in range(1, 6)]
        pairs = candidate_pairs(contacts, max_pairs=3)
        assert [(a.id, b.id) for a, b in pairs] == [(1, 2), (1, 3), (1, 4)]

    def test_prompt_describes_both(self, alice, bob):
        prompt = build_prompt(alice, bob)
        assert "Contact 1: Alice Ray - N/A at Acme" in prompt
        assert "Looking for: An accountant" in prompt


class TestAnalyzePair:
    """Single pair analysis; failures become non-matches."""

    async def test_tool_call_parsed(self, alice, bob):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return tool_response(**match_arguments(85))

        matcher = make_matcher(handler)
        analysis = await matcher.analyze_pair(matcher.client, alice, bob)

        assert analysis.is_match
        assert analysis.confidence == 85
        assert analysis.match_type == "need-offering"
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"]["model"] == "test-model"
        assert seen["body"]["tool_choice"]["function"]["name"] == "analyze_match"

    @pytest.mark.parametrize("status,reason", [(429, "Rate limited"), (402, "No credits"), (500, "Analysis failed")])
    async def test_error_statuses(self, alice, bob, status, reason):
        matcher = make_matcher(lambda request: httpx.Response(status, json={}))
        analysis = await matcher.analyze_pair(matcher.client, alice, bob)

        assert not analysis.is_match
        assert analysis.confidence == 0
        assert analysis.reason == reason

    async def test_missing_tool_call(self, alice, bob):
        matcher = make_matcher(lambda request: httpx.Response(200, json={"choices": [{"message": {}}]}))
        analysis = await matcher.analyze_pair(matcher.client, alice, bob)
        assert analysis.reason == "No analysis"

    async def test_malformed_arguments(self, alice, bob):
        matcher = make_matcher(lambda request: tool_response(isMatch=True, confidence=500))
        analysis = await matcher.analyze_pair(matcher.client, alice, bob)
        assert analysis.reason == "Analysis failed"

    async def test_transport_errors_retried_then_non_match(self, alice, bob, monkeypatch):
        monkeypatch.setattr(IntroductionMatcher._post.retry, "wait", wait_none())
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        matcher = make_matcher(handler)
        analysis = await matcher.analyze_pair(matcher.client, alice, bob)

        assert len(attempts) == settings.matching.retry_attempts
        assert not analysis.is_match
        assert analysis.reason == "Analysis failed"

    async def test_recovers_after_transient_error(self, alice, bob, monkeypatch):
        monkeypatch.setattr(IntroductionMatcher._post.retry, "wait", wait_none())
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ReadTimeout("timed out", request=request)
            return tool_response(**match_arguments(70))

        matcher = make_matcher(handler)
        analysis = await matcher.analyze_pair(matcher.client, alice, bob)

        assert len(attempts) == 2
        assert analysis.confidence == 70


class TestFindMatches:
    async def test_confident_matches_best_first(self):
        confidences = {("Alice Ray", "Bob Stone"): 60, ("Alice Ray", "Carol King"): 90, ("Bob Stone", "Carol King"): 30}

        def handler(request):
            prompt = json.loads(request.content)["messages"][1]["content"]
            for (first, second), confidence in confidences.items():
                if f"Contact 1: {first}" in prompt and f"Contact 2: {second}" in prompt:
                    return tool_response(**match_arguments(confidence))
            return httpx.Response(500)

        contacts = [
            contact(1, "Alice Ray", offering="Bookkeeping"),
            contact(2, "Bob Stone", looking_for="Accountant"),
            contact(3, "Carol King", offering="Catering"),
        ]
        matches = await make_matcher(handler).find_matches(contacts)

        # confidence must exceed 30
        assert [(m.contact1.id, m.contact2.id, m.match_score) for m in matches] == [(1, 3, 90), (1, 2, 60)]

    async def test_non_matches_dropped(self, alice, bob):
        matcher = make_matcher(lambda request: tool_response(**match_arguments(95, is_match=False)))
        assert await matcher.find_matches([alice, bob]) == []


class TestConfiguration:
    def test_missing_api_key(self, monkeypatch):
        monkeypatch.setattr(settings.matching, "api_key", None)
        with pytest.raises(IntroductionMatchingError):
            IntroductionMatcher()

    def test_no_match_helper(self):
        analysis = MatchAnalysis.no_match("Rate limited", "Try again later")
        assert analysis.match_type == "none"
        assert not analysis.is_match
