# tests/test_classifier.py
"""Tests for the content classifier and its heuristic fallback."""

import asyncio
import json

import httpx
import pytest

from mehfil.models import Category
from mehfil.services.classifier import (
    MAX_TAGS,
    SOURCE_HEURISTIC,
    SOURCE_MODEL,
    ClassifierConfig,
    ContentClassifier,
    clamp_score,
    classify_heuristically,
    normalize_category,
    parse_model_payload,
    sanitize_tags,
)

ACADEMIC_TEXT = "Does anyone have good notes for the physics exam next week?"


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _model_classifier(handler, timeout: float = 2.0) -> ContentClassifier:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="http://classifier.test",
    )
    config = ClassifierConfig(
        api_key="test-key",
        base_url="http://classifier.test",
        model="test-model",
        timeout_seconds=timeout,
    )
    return ContentClassifier(config, client=client)


def test_heuristic_flags_toxic_language() -> None:
    """Test that hostile phrasing is rejected and marked toxic."""
    result = classify_heuristically("I hate everyone in this whole place, honestly.")
    assert result.category == Category.REJECTED
    assert result.is_toxic is True
    assert result.is_rejected
    assert result.source == SOURCE_HEURISTIC


def test_short_hostile_phrase_is_toxic() -> None:
    result = classify_heuristically("I hate everyone")
    assert result.category == Category.REJECTED
    assert result.is_toxic is True


@pytest.mark.parametrize(
    "text",
    [
        "My examinations are coming up next month",
        "Anyone else dreading the chemistry exams tomorrow?",
        "Studying for midterm tests feels endless this year",
    ],
)
def test_heuristic_matches_inflected_academic_words(text: str) -> None:
    """Test that keywords match the start of longer words."""
    assert classify_heuristically(text).category == Category.ACADEMIC


def test_heuristic_ignores_keywords_inside_words() -> None:
    result = classify_heuristically("The latest sunset over the lake was lovely today")
    assert result.category == Category.REFLECTIVE
    assert result.tags == []


def test_heuristic_rejects_low_effort_text() -> None:
    """Test that very short filler is rejected without being called toxic."""
    result = classify_heuristically("hello there friend")
    assert result.category == Category.REJECTED
    assert result.is_toxic is False


def test_heuristic_detects_academic_topics() -> None:
    result = classify_heuristically(ACADEMIC_TEXT)
    assert result.category == Category.ACADEMIC
    assert not result.is_rejected
    assert "#exam" in result.tags
    assert len(result.tags) <= MAX_TAGS


def test_heuristic_detects_reflective_topics() -> None:
    result = classify_heuristically(
        "I have been feeling really lonely since moving away from home."
    )
    assert result.category == Category.REFLECTIVE
    assert "#lonely" in result.tags


def test_heuristic_defaults_to_reflective_without_signal() -> None:
    result = classify_heuristically("The sunset over the lake was something else today")
    assert result.category == Category.REFLECTIVE
    assert result.tags == []


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("ACADEMIC", Category.ACADEMIC),
        ("academic hall", Category.ACADEMIC),
        ("Thoughts", Category.REFLECTIVE),
        (" reflective ", Category.REFLECTIVE),
        ("low-effort", Category.REJECTED),
        ("spam", Category.REJECTED),
    ],
)
def test_normalize_category_accepts_known_spellings(raw: str, expected: Category) -> None:
    assert normalize_category(raw) == expected


@pytest.mark.parametrize("raw", ["memes", "", None, 42])
def test_normalize_category_rejects_unknown_values(raw) -> None:
    with pytest.raises(ValueError):
        normalize_category(raw)


def test_sanitize_tags_strips_dedupes_and_prefixes() -> None:
    assert sanitize_tags(["exam", "Exam", "c++", "", "a b", 7]) == ["#exam", "#c", "#ab"]


def test_sanitize_tags_caps_the_count() -> None:
    assert len(sanitize_tags([f"topic{i}" for i in range(10)])) == MAX_TAGS


def test_sanitize_tags_splits_comma_strings() -> None:
    assert sanitize_tags("stress, exams") == ["#stress", "#exams"]
    assert sanitize_tags(None) == []


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(1.7, 1.0), (-2, 0.0), ("0.3", 0.3), (True, 0.5), (float("nan"), 0.5), (None, 0.5)],
)
def test_clamp_score(raw, expected: float) -> None:
    assert clamp_score(raw) == pytest.approx(expected)


def test_parse_model_payload_requires_message_content() -> None:
    with pytest.raises(ValueError):
        parse_model_payload({"choices": []})
    with pytest.raises(ValueError):
        parse_model_payload(_completion("[1, 2]"))
    with pytest.raises(ValueError):
        parse_model_payload(_completion(json.dumps({"category": "ACADEMIC", "isToxic": "no"})))


@pytest.mark.asyncio
async def test_model_verdict_is_used_when_valid() -> None:
    """Test that a well-formed completion drives the classification."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        verdict = {
            "category": "REFLECTIVE",
            "isToxic": False,
            "tags": ["stress", "exams"],
            "score": 0.9,
            "rationale": "Shares exam stress.",
        }
        return httpx.Response(200, json=_completion(json.dumps(verdict)))

    classifier = _model_classifier(handler)
    result = await classifier.classify("  Exams are making me feel so anxious lately.  ")

    assert result.source == SOURCE_MODEL
    assert result.category == Category.REFLECTIVE
    assert result.tags == ["#stress", "#exams"]
    assert result.score == pytest.approx(0.9)

    request = seen[0]
    assert request.url.path == "/chat/completions"
    assert request.headers["Authorization"] == "Bearer test-key"
    body = json.loads(request.content)
    assert body["model"] == "test-model"
    assert body["messages"][-1]["content"] == "Exams are making me feel so anxious lately."


@pytest.mark.asyncio
async def test_model_toxic_flag_rejects_any_category() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        verdict = {"category": "ACADEMIC", "isToxic": True, "tags": [], "score": 0.2}
        return httpx.Response(200, json=_completion(json.dumps(verdict)))

    result = await _model_classifier(handler).classify(ACADEMIC_TEXT)
    assert result.source == SOURCE_MODEL
    assert result.is_rejected


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "upstream"}),
        httpx.Response(200, text="not json at all"),
        httpx.Response(200, json=_completion("definitely not json")),
        httpx.Response(200, json=_completion(json.dumps({"category": "MEMES"}))),
    ],
)
async def test_model_failures_fall_back_to_heuristics(response: httpx.Response) -> None:
    """Test that server errors and malformed verdicts never surface to the caller."""
    result = await _model_classifier(lambda request: response).classify(ACADEMIC_TEXT)
    assert result.source == SOURCE_HEURISTIC
    assert result.category == Category.ACADEMIC


@pytest.mark.asyncio
async def test_model_timeout_falls_back_to_heuristics() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json=_completion("{}"))

    result = await _model_classifier(handler, timeout=0.05).classify(ACADEMIC_TEXT)
    assert result.source == SOURCE_HEURISTIC


@pytest.mark.asyncio
async def test_network_error_falls_back_to_heuristics() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = await _model_classifier(handler).classify(ACADEMIC_TEXT)
    assert result.source == SOURCE_HEURISTIC


@pytest.mark.asyncio
async def test_disabled_classifier_never_calls_the_model(classifier: ContentClassifier) -> None:
    assert classifier.enabled is False
    result = await classifier.classify(ACADEMIC_TEXT)
    assert result.source == SOURCE_HEURISTIC
    await classifier.close()
