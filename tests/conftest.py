"""
Shared fixtures for fairquote tests.

Provider calls never leave the process: the AI client is wired to an
httpx.MockTransport backed by FakeProvider.
"""

import json

import httpx
import pytest

from fairquote.services.pricing.assessment import AssessmentClient
from fairquote.services.pricing.catalog_store import InMemoryCatalogStore
from fairquote.services.pricing.learning import CrowdLearningWriter
from fairquote.services.pricing.resolver import RateResolver
from fairquote.utils.ai_client import AIClient

FAIR_REPLY = {
    "decision": "fair",
    "confidence": 0.8,
    "rationale": "In line with typical shop rates.",
    "inferred_fair_range": {"min": 80, "max": 120, "currency": "EUR"},
    "model_notes": "Assumed OEM parts.",
}


def provider_reply(payload) -> httpx.Response:
    """Wrap a payload in an Anthropic Messages API response."""
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return httpx.Response(
        200,
        json={"content": [{"type": "text", "text": text}]},
    )


class FakeProvider:
    """
    Scripted provider.

    Replies are consumed in order; the last one repeats. A reply may be a
    payload, an httpx.Response or an exception to raise.
    """

    def __init__(self, *replies):
        self.replies = list(replies) or [FAIR_REPLY]
        self.requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        return provider_reply(reply)

    @property
    def calls(self) -> int:
        return len(self.requests)


def make_ai_client(provider: FakeProvider | None = None, api_key: str | None = "test-key") -> AIClient:
    return AIClient(
        api_key=api_key,
        model="claude-test",
        transport=httpx.MockTransport(provider or FakeProvider()),
    )


@pytest.fixture
def fake_provider():
    """Provider answering every request with a fair verdict."""
    return FakeProvider()


@pytest.fixture
def assessor(fake_provider):
    """Configured assessment client backed by the fake provider."""
    return AssessmentClient(make_ai_client(fake_provider))


@pytest.fixture
def unconfigured_assessor():
    """Assessment client with no credential."""
    return AssessmentClient(make_ai_client(api_key=None))


@pytest.fixture
def memory_store():
    """Empty in-memory catalog store."""
    return InMemoryCatalogStore()


@pytest.fixture
def resolver(memory_store):
    return RateResolver(memory_store)


@pytest.fixture
def writer(memory_store):
    return CrowdLearningWriter(memory_store)
