"""Content classification for Mehfil thoughts.

Every submission is classified as academic study content, emotionally
reflective content, or rejected (low-effort, toxic or spam). The primary path
asks an OpenAI-compatible chat completion endpoint for a strict JSON verdict.
Whenever that path is unavailable or misbehaves the deterministic heuristic
classifier answers instead, so posting never depends on the model being up.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from mehfil.core.settings import settings
from mehfil.models.thought import Category

logger = logging.getLogger(__name__)

MAX_TAGS = 5
TAG_MARKER = "#"
HEURISTIC_MIN_LENGTH = 20
HEURISTIC_MIN_TOKENS = 3

SOURCE_MODEL = "model"
SOURCE_HEURISTIC = "heuristic"

SYSTEM_PROMPT = (
    "You moderate Mehfil, a discussion feed for university students. "
    "Classify the user's post into exactly one category:\n"
    "- ACADEMIC: study questions, exams, courses, assignments, research, careers.\n"
    "- REFLECTIVE: feelings, personal reflection, stress, loneliness, asking for "
    "or offering emotional support.\n"
    "- REJECTED: low-effort filler, spam, advertising, harassment, hate or any "
    "toxic content.\n"
    "Respond with a single JSON object and nothing else, using the keys "
    '"category" (ACADEMIC|REFLECTIVE|REJECTED), "isToxic" (boolean), '
    '"tags" (up to 5 short topic tags), "score" (confidence 0..1) and '
    '"rationale" (one sentence).'
)

# Historical spellings seen in stored rows and model replies.
_CATEGORY_ALIASES: dict[str, Category] = {
    "ACADEMIC": Category.ACADEMIC,
    "ACADEMICS": Category.ACADEMIC,
    "ACADEMIC_HALL": Category.ACADEMIC,
    "STUDY": Category.ACADEMIC,
    "STUDIES": Category.ACADEMIC,
    "EDUCATION": Category.ACADEMIC,
    "REFLECTIVE": Category.REFLECTIVE,
    "REFLECTION": Category.REFLECTIVE,
    "THOUGHTS": Category.REFLECTIVE,
    "EMOTIONAL": Category.REFLECTIVE,
    "SUPPORT": Category.REFLECTIVE,
    "PERSONAL": Category.REFLECTIVE,
    "REJECTED": Category.REJECTED,
    "REJECT": Category.REJECTED,
    "SPAM": Category.REJECTED,
    "TOXIC": Category.REJECTED,
    "LOW_EFFORT": Category.REJECTED,
    "LOW_QUALITY": Category.REJECTED,
}

TOXIC_PATTERN = re.compile(
    r"\b("
    r"hate (you|u|everyone|everybody|all of you|this place)"
    r"|kill (yourself|urself|ur ?self)|kys"
    r"|go die|die in a"
    r"|idiots?|stupid|moron|dumbass|loser|retard(ed)?"
    r"|f+u+c+k+(ing|er|ers)?|sh[i1]t|bitch(es)?|bastard|asshole|slut|whore"
    r")\b",
    re.IGNORECASE,
)

ACADEMIC_KEYWORDS: tuple[str, ...] = (
    "exam", "exams", "test", "quiz", "assignment", "homework", "lecture",
    "lectures", "class", "course", "semester", "syllabus", "professor",
    "study", "studying", "notes", "revision", "project", "thesis", "research",
    "lab", "grade", "grades", "gpa", "marks", "internship", "placement",
    "college", "university", "math", "physics", "chemistry", "biology",
    "coding", "programming", "deadline", "tutorial",
)

REFLECTIVE_KEYWORDS: tuple[str, ...] = (
    "feel", "feeling", "feelings", "felt", "sad", "happy", "lonely", "alone",
    "anxious", "anxiety", "stress", "stressed", "overwhelmed", "tired",
    "burnout", "depressed", "grateful", "hope", "hopeful", "miss", "cry",
    "crying", "scared", "afraid", "worried", "heart", "myself", "life",
    "friends", "family", "relationship", "healing", "peace", "mood",
)

_TAG_STRIP = re.compile(r"[^A-Za-z0-9_-]")


@dataclass(frozen=True)
class Classification:
    """Result of classifying one thought."""

    category: Category
    is_toxic: bool
    tags: list[str] = field(default_factory=list)
    score: float = 0.5
    rationale: str = ""
    source: str = SOURCE_HEURISTIC

    @property
    def is_rejected(self) -> bool:
        """Return True if the thought must not be published."""
        return self.category == Category.REJECTED or self.is_toxic


@dataclass(frozen=True)
class ClassifierConfig:
    """Immutable configuration for the language-model path."""

    api_key: str | None
    base_url: str
    model: str
    timeout_seconds: float

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


def load_classifier_config() -> ClassifierConfig:
    """Build configuration object from global settings."""
    return ClassifierConfig(
        api_key=settings.classifier_api_key,
        base_url=settings.classifier_base_url.rstrip("/"),
        model=settings.classifier_model,
        timeout_seconds=float(settings.classifier_timeout_seconds),
    )


def normalize_category(raw: object) -> Category:
    """Map a raw category label onto the closed :class:`Category` set.

    Raises:
        ValueError: If the label is not a known spelling.
    """
    if not isinstance(raw, str):
        raise ValueError(f"Category must be a string, got {type(raw).__name__}")
    key = re.sub(r"[\s-]+", "_", raw.strip().upper())
    try:
        return _CATEGORY_ALIASES[key]
    except KeyError as err:
        raise ValueError(f"Unknown category {raw!r}") from err


def clamp_score(raw: object, default: float = 0.5) -> float:
    """Coerce ``raw`` into a float within [0, 1]."""
    if isinstance(raw, bool):
        return default
    try:
        value = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if value != value:  # NaN
        return default
    return min(1.0, max(0.0, value))


def sanitize_tags(raw: object) -> list[str]:
    """Return at most five unique, marker-prefixed, alphanumeric tags."""
    if isinstance(raw, str):
        candidates: Iterable[object] = raw.split(",")
    elif isinstance(raw, Iterable):
        candidates = raw
    else:
        return []

    tags: list[str] = []
    seen: set[str] = set()
    for candidate in candidates:
        if not isinstance(candidate, str):
            continue
        cleaned = _TAG_STRIP.sub("", candidate)
        if not cleaned:
            continue
        key = cleaned.lower()
        if key in seen:
            continue
        seen.add(key)
        tags.append(f"{TAG_MARKER}{cleaned}")
        if len(tags) == MAX_TAGS:
            break
    return tags


def _contains_keyword(words: set[str], keywords: Iterable[str]) -> list[str]:
    """Return the keywords that start any word, so "exam" also matches "examinations"."""
    return [keyword for keyword in keywords if any(word.startswith(keyword) for word in words)]


def classify_heuristically(text: str) -> Classification:
    """Deterministic rule-based classifier used when the model is unavailable."""
    content = text.strip()
    lowered = content.lower()
    words = set(re.findall(r"[a-z0-9']+", lowered))

    if TOXIC_PATTERN.search(content):
        return Classification(
            category=Category.REJECTED,
            is_toxic=True,
            tags=[],
            score=0.05,
            rationale="Matched the toxic language filter.",
        )

    if len(content) < HEURISTIC_MIN_LENGTH or len(content.split()) < HEURISTIC_MIN_TOKENS:
        return Classification(
            category=Category.REJECTED,
            is_toxic=False,
            tags=[],
            score=0.1,
            rationale="Too low-effort to publish.",
        )

    academic_hits = _contains_keyword(words, ACADEMIC_KEYWORDS)
    if academic_hits:
        return Classification(
            category=Category.ACADEMIC,
            is_toxic=False,
            tags=sanitize_tags(academic_hits),
            score=0.85,
            rationale="Mentions study-related topics.",
        )

    reflective_hits = _contains_keyword(words, REFLECTIVE_KEYWORDS)
    if reflective_hits:
        return Classification(
            category=Category.REFLECTIVE,
            is_toxic=False,
            tags=sanitize_tags(reflective_hits),
            score=0.8,
            rationale="Shares personal feelings or reflection.",
        )

    return Classification(
        category=Category.REFLECTIVE,
        is_toxic=False,
        tags=[],
        score=0.55,
        rationale="No strong signal; defaulted to reflective.",
    )


def parse_model_payload(body: Mapping[str, Any]) -> Classification:
    """Validate a chat completion response and build a classification.

    Raises:
        ValueError: If any part of the response is missing or malformed.
    """
    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as err:
        raise ValueError("Completion response has no message content") from err
    if not isinstance(content, str):
        raise ValueError("Completion content is not a string")

    try:
        verdict = json.loads(content)
    except json.JSONDecodeError as err:
        raise ValueError("Completion content is not valid JSON") from err
    if not isinstance(verdict, dict):
        raise ValueError("Completion JSON is not an object")

    category = normalize_category(verdict.get("category"))
    is_toxic = verdict.get("isToxic", verdict.get("is_toxic", False))
    if not isinstance(is_toxic, bool):
        raise ValueError("isToxic must be a boolean")
    rationale = verdict.get("rationale") or verdict.get("reason") or ""
    if not isinstance(rationale, str):
        rationale = str(rationale)

    return Classification(
        category=category,
        is_toxic=is_toxic,
        tags=sanitize_tags(verdict.get("tags", [])),
        score=clamp_score(verdict.get("score")),
        rationale=rationale.strip()[:500],
        source=SOURCE_MODEL,
    )


class ContentClassifier:
    """Classify thoughts with a language model and a heuristic safety net."""

    def __init__(
        self,
        config: ClassifierConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or load_classifier_config()
        self._client = client
        self._owns_client = client is None
        self._client_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                )
        return self._client

    async def classify(self, text: str) -> Classification:
        """Classify ``text``; never raises.

        Falls back to :func:`classify_heuristically` on missing credentials,
        network failure, timeout or any malformed response.
        """
        content = text.strip()
        if not self.enabled:
            return classify_heuristically(content)

        try:
            return await asyncio.wait_for(
                self._classify_with_model(content),
                timeout=self.config.timeout_seconds,
            )
        except TimeoutError:
            logger.warning(
                "Classifier timed out after %.1fs; using heuristic", self.config.timeout_seconds
            )
        except httpx.HTTPError as exc:
            logger.warning("Classifier request failed: %s; using heuristic", exc)
        except ValueError as exc:
            logger.warning("Classifier returned an unusable verdict: %s; using heuristic", exc)
        except Exception:
            logger.exception("Unexpected classifier failure; using heuristic")
        return classify_heuristically(content)

    async def _classify_with_model(self, content: str) -> Classification:
        client = await self._ensure_client()
        response = await client.post(
            "/chat/completions",
            headers={"Authorization": f"Bearer {self.config.api_key}"},
            json={
                "model": self.config.model,
                "temperature": 0,
                "response_format": {"type": "json_object"},
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": content},
                ],
            },
        )
        response.raise_for_status()
        try:
            body = response.json()
        except json.JSONDecodeError as err:
            raise ValueError("Completion response is not JSON") from err
        if not isinstance(body, dict):
            raise ValueError("Completion response is not an object")
        return parse_model_payload(body)

    async def close(self) -> None:
        """Release the HTTP client if this instance created it."""
        async with self._client_lock:
            if self._client is not None and self._owns_client:
                await self._client.aclose()
            self._client = None


class _ClassifierSingleton:
    """Singleton wrapper for ContentClassifier."""

    _instance: ContentClassifier | None = None

    @classmethod
    def get_instance(cls) -> ContentClassifier:
        """Get or create the singleton ContentClassifier instance."""
        if cls._instance is None:
            cls._instance = ContentClassifier()
        return cls._instance


def get_classifier() -> ContentClassifier:
    """Return a singleton classifier instance."""
    return _ClassifierSingleton.get_instance()
