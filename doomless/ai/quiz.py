"""
Quiz Generation Stage.

Samples a few facts from a topic, asks the model for one multiple-choice
question per sampled fact in a single batched request, and keeps only the
structurally valid items.
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from doomless.config import Settings
from doomless.models import Fact, QuizQuestion

from .errors import InferenceError
from .events import ProgressBus, QuizComplete, QuizProgress, QuizStart
from .gateway import CompletionGateway
from .json_utils import parse_json_array
from .prompts import QUIZ_OPTIONS, build_quiz_messages


def compute_max_quizzes(fact_count: int, interval: int = 8, limit: int = 5) -> int:
    """
    Number of quizzes for a topic with ``fact_count`` facts.

    One quiz per ``interval`` facts, at least one once there are four facts,
    never more than ``limit``.
    """
    if fact_count <= 0:
        return 0
    return min(limit, max(fact_count // interval, 1 if fact_count >= 4 else 0))


def select_quiz_facts(facts: Sequence[Fact], max_quizzes: int) -> list[Fact]:
    """Evenly strided selection starting at index 0."""
    if max_quizzes <= 0 or not facts:
        return []
    step = max(1, len(facts) // max_quizzes)
    return list(facts[::step][:max_quizzes])


def parse_quiz_batch(raw: str, expected: int) -> list[QuizQuestion]:
    """Tolerant parse of a batched quiz reply; invalid items are dropped."""
    questions = [q for q in map(QuizQuestion.from_payload, parse_json_array(raw)) if q is not None]
    return questions[:expected] if expected > 0 else questions


class QuizGenerationStage:
    """Turns a topic's facts into validated quiz questions."""

    def __init__(self, gateway: CompletionGateway, bus: ProgressBus, settings: Settings):
        self.gateway = gateway
        self.bus = bus
        self.settings = settings

    async def generate_quizzes(self, topic: str, facts: Sequence[Fact]) -> list[QuizQuestion]:
        """
        Generate quizzes for ``topic``.

        Never raises on completion failures: they are logged and produce
        zero quizzes, with ``quiz-start``/``quiz-complete`` still emitted.
        """
        max_quizzes = compute_max_quizzes(
            len(facts),
            interval=self.settings.quiz_interval,
            limit=self.settings.max_quizzes,
        )
        if max_quizzes == 0:
            return []

        selected = select_quiz_facts(facts, max_quizzes)
        total = len(selected)
        self.bus.emit(QuizStart(topic=topic, total=total))

        try:
            raw = await self.gateway.complete(
                build_quiz_messages(topic, [fact.content for fact in selected]),
                QUIZ_OPTIONS,
            )
            questions = parse_quiz_batch(raw, total)
        except InferenceError as e:
            logger.warning(f"Quiz generation failed for {topic}; skipping quizzes: {e}")
            questions = []

        if not questions:
            logger.warning(f"Quiz generation returned no valid items for {topic}")

        for current, _ in enumerate(questions, 1):
            self.bus.emit(QuizProgress(topic=topic, current=current, total=total))
        self.bus.emit(QuizComplete(topic=topic, total=len(questions)))

        logger.info(f"Generated {len(questions)}/{total} quizzes for {topic}")
        return questions
