"""Tests for the tag generation pipeline (cache, config check, fallback)."""

from __future__ import annotations

import asyncio

import pytest

from betterask.entities import TagRequest
from betterask.fallback_tags import FALLBACK_TAGS
from betterask.llm_client import GatewayError
from betterask.response_cache import ResponseCache
from betterask.tag_service import TagGenerationService, TagRequestError
from tests._fakes import GROUPED_OUTPUT, FakeClock, FakeGateway


def _request(**overrides) -> TagRequest:
    body = {"topic": "Photosynthesis for class 10", "intent": "Learn Concept", "persona": "Students", "stage": 1}
    body.update(overrides)
    return TagRequest(**body)


def test_missing_fields_raise_without_calling_the_model(cache: ResponseCache) -> None:
    gateway = FakeGateway([GROUPED_OUTPUT])
    service = TagGenerationService(gateway, cache=cache)

    with pytest.raises(TagRequestError):
        asyncio.run(service.generate(_request(topic="  ")))
    assert gateway.calls == []


def test_success_returns_groups_and_flat_tags(cache: ResponseCache) -> None:
    gateway = FakeGateway([GROUPED_OUTPUT])
    response = asyncio.run(TagGenerationService(gateway, cache=cache).generate(_request()))

    assert response.success is True
    assert response.fallback is False
    assert response.tags == ["Act As Friendly Teacher", "Use Class 10 Level", "Explain Key Concepts"]
    assert response.groups["personaStyle"] == ["Act As Friendly Teacher"]
    assert len(response.tags) <= 3


FIVE_GROUPED_TAGS = {
    "personaStyle": ["Act As Friendly Teacher", "Be Strict Exam Coach"],
    "addContext": ["Use Class 10 Level"],
    "taskInstruction": ["Explain Key Concepts", "Generate Practice Questions"],
    "formatConstraints": [],
    "reasoningHelp": [],
}


def test_stage_one_is_cut_to_three_tags_with_matching_groups(cache: ResponseCache) -> None:
    gateway = FakeGateway([FIVE_GROUPED_TAGS])
    response = asyncio.run(TagGenerationService(gateway, cache=cache).generate(_request()))

    assert response.tags == ["Act As Friendly Teacher", "Be Strict Exam Coach", "Use Class 10 Level"]
    assert response.groups["personaStyle"] == ["Act As Friendly Teacher", "Be Strict Exam Coach"]
    assert response.groups["addContext"] == ["Use Class 10 Level"]
    assert response.groups["taskInstruction"] == []

    cached = asyncio.run(TagGenerationService(gateway, cache=cache).generate(_request()))
    assert len(gateway.calls) == 1
    assert cached.tags == response.tags


def test_stage_two_keeps_five_tags(cache: ResponseCache) -> None:
    gateway = FakeGateway([FIVE_GROUPED_TAGS])
    response = asyncio.run(TagGenerationService(gateway, cache=cache).generate(_request(stage=2)))

    assert len(response.tags) == 5


def test_prompt_carries_count_and_existing_tags(cache: ResponseCache) -> None:
    gateway = FakeGateway([GROUPED_OUTPUT])
    req = _request(stage=2, selectedTags=["Give Exam Tips"], visibleTags=["Use Bullet Points"])
    asyncio.run(TagGenerationService(gateway, cache=cache).generate(req))

    call = gateway.calls[0]
    assert "exactly 5 tags" in call["system"]
    assert "Give Exam Tips, Use Bullet Points" in call["system"]
    assert '"Photosynthesis for class 10"' in call["user"]
    assert call["temperature"] == 0.7


def test_same_request_within_ttl_hits_cache(clock: FakeClock) -> None:
    cache = ResponseCache(ttl_seconds=600, clock=clock)
    gateway = FakeGateway([GROUPED_OUTPUT])
    service = TagGenerationService(gateway, cache=cache)

    asyncio.run(service.generate(_request()))
    clock.advance(300)
    second = asyncio.run(service.generate(_request()))

    assert len(gateway.calls) == 1
    assert second.success is True


def test_same_request_after_ttl_calls_the_model_again(clock: FakeClock) -> None:
    cache = ResponseCache(ttl_seconds=600, clock=clock)
    gateway = FakeGateway([GROUPED_OUTPUT])
    service = TagGenerationService(gateway, cache=cache)

    asyncio.run(service.generate(_request()))
    clock.advance(600)
    asyncio.run(service.generate(_request()))

    assert len(gateway.calls) == 2


def test_cache_hit_still_excludes_existing_tags(cache: ResponseCache) -> None:
    gateway = FakeGateway([GROUPED_OUTPUT])
    service = TagGenerationService(gateway, cache=cache)

    asyncio.run(service.generate(_request()))
    again = asyncio.run(service.generate(_request(selectedTags=["Act As Friendly Teacher"])))

    assert len(gateway.calls) == 1
    assert "Act As Friendly Teacher" not in again.tags


def test_missing_credential_serves_static_fallback(cache: ResponseCache) -> None:
    gateway = FakeGateway([GROUPED_OUTPUT], configured=False)
    response = asyncio.run(TagGenerationService(gateway, cache=cache).generate(_request()))

    assert gateway.calls == []
    assert response.success is False
    assert response.fallback is True
    assert response.tags == FALLBACK_TAGS["Students"]["Learn Concept"][:3]
    assert response.message == "Gemini API not configured"


@pytest.mark.parametrize(
    "output",
    [
        GatewayError("503 UNAVAILABLE"),
        "not json at all",
        {"taskInstruction": ["Hi"]},
    ],
)
def test_any_generation_failure_degrades_to_fallback(cache: ResponseCache, output) -> None:
    gateway = FakeGateway([output])
    response = asyncio.run(TagGenerationService(gateway, cache=cache).generate(_request(stage=2)))

    assert response.fallback is True
    assert response.success is False
    assert len(response.tags) == 5
    assert response.message
    assert len(cache) == 0


def test_fallback_skips_existing_tags(cache: ResponseCache) -> None:
    gateway = FakeGateway([GROUPED_OUTPUT], configured=False)
    req = _request(selectedTags=["Deep Dive Explanation"])
    response = asyncio.run(TagGenerationService(gateway, cache=cache).generate(req))

    assert "Deep Dive Explanation" not in response.tags
    assert response.tags == ["Brief Topic Summary", "Key Learning Points", "Quiz Me Now"]


def test_unknown_persona_and_intent_use_defaults(cache: ResponseCache) -> None:
    gateway = FakeGateway([GROUPED_OUTPUT], configured=False)
    req = _request(persona="Robot", intent="Anything")
    response = asyncio.run(TagGenerationService(gateway, cache=cache).generate(req))

    assert response.tags == FALLBACK_TAGS["Students"]["Homework Help"][:3]
