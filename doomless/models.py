"""
Domain models for extracted content.

Facts and quiz questions are plain dataclasses; persisted identity (``id``)
is assigned by the storage collaborator.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

MAX_FACT_LENGTH = 200
QUIZ_OPTION_COUNT = 4
QUIZ_CONTENT_PREFIX = "Quiz: "


class FactSource(str, Enum):
    """Provenance of a fact."""

    PRIMARY = "primary"  # Extracted by the model
    FALLBACK = "fallback"  # Sentence segmentation
    USER_UPLOAD = "user_upload"  # Ingested from a user document


def normalize_fact_key(content: str) -> str:
    """Dedup key: trimmed, lowercased, whitespace collapsed."""
    return " ".join(content.split()).lower()


def clip_fact(content: str, limit: int = MAX_FACT_LENGTH) -> str:
    """Collapse whitespace and clip to ``limit`` characters."""
    return " ".join(content.split())[:limit].rstrip()


@dataclass
class QuizQuestion:
    """A multiple-choice question with exactly four options."""

    question: str
    options: list[str]
    correct_index: int = 0

    def __post_init__(self):
        self.correct_index = max(0, min(QUIZ_OPTION_COUNT - 1, self.correct_index))

    @classmethod
    def from_payload(cls, item: Any) -> QuizQuestion | None:
        """
        Build a question from one parsed model item.

        Returns None when the item does not have a non-empty question and
        exactly four non-empty options. The correct index is read from
        ``correct_answer``/``correctIndex``/``correct_index`` and clamped.
        """
        if not isinstance(item, dict):
            return None

        question = item.get("question")
        if not isinstance(question, str) or not question.strip():
            return None

        raw_options = item.get("options")
        if not isinstance(raw_options, list):
            return None
        options = [opt.strip() for opt in raw_options if isinstance(opt, str) and opt.strip()]
        if len(options) != QUIZ_OPTION_COUNT:
            return None

        raw_index = next(
            (item[key] for key in ("correct_answer", "correctIndex", "correct_index") if key in item),
            0,
        )
        return cls(
            question=question.strip(),
            options=options,
            correct_index=_coerce_index(raw_index),
        )

    def to_dict(self) -> dict[str, Any]:
        """Storage representation (``quiz_data`` column)."""
        return {
            "question": self.question,
            "options": list(self.options),
            "correct_answer": self.correct_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuizQuestion:
        return cls(
            question=data.get("question", ""),
            options=list(data.get("options", [])),
            correct_index=_coerce_index(data.get("correct_answer", 0)),
        )


def _coerce_index(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return math.floor(value) if math.isfinite(value) else 0
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return 0


@dataclass
class Fact:
    """A short text unit derived from source material."""

    content: str
    topic: str
    source: FactSource
    id: int | None = None
    created_at: datetime = field(default_factory=datetime.now)
    is_quiz: bool = False
    quiz_data: QuizQuestion | None = None


@dataclass
class FactInput:
    """Insert payload for the storage collaborator."""

    content: str
    topic: str
    source: FactSource
    is_quiz: bool = False
    quiz_data: QuizQuestion | None = None

    @classmethod
    def from_fact(cls, fact: Fact, source: FactSource | None = None) -> FactInput:
        return cls(
            content=fact.content,
            topic=fact.topic,
            source=source or fact.source,
            is_quiz=fact.is_quiz,
            quiz_data=fact.quiz_data,
        )

    @classmethod
    def for_quiz(cls, topic: str, quiz: QuizQuestion) -> FactInput:
        """Quiz facts carry the question as content and the full item as quiz_data."""
        return cls(
            content=clip_fact(f"{QUIZ_CONTENT_PREFIX}{quiz.question}"),
            topic=topic,
            source=FactSource.PRIMARY,
            is_quiz=True,
            quiz_data=quiz,
        )
