"""
Topic Processing Orchestrator.

Runs one topic end to end:

    Guarded -> Loading -> Extracting -> Saving -> QuizGenerating -> QuizSaving -> Complete

A topic is processed at most once at a time (in-flight guard) and is
skipped when non-quiz facts for it are already stored. Any exception moves
the topic to ``error``, releases the guard and propagates; facts saved
before the failure are kept.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from doomless.ai.errors import ModelInitializationFailed
from doomless.ai.events import ProgressBus, StorageComplete, StorageSaveProgress
from doomless.ai.extraction import FactExtractionPipeline
from doomless.ai.provisioning import ModelProvisioningManager
from doomless.ai.quiz import QuizGenerationStage
from doomless.db.fact_store import FactStore
from doomless.models import Fact, FactInput, FactSource

from .topic_source import TopicSource


class TopicState(str, Enum):
    IDLE = "idle"
    GUARDED = "guarded"
    LOADING = "loading"
    EXTRACTING = "extracting"
    SAVING = "saving"
    QUIZ_GENERATING = "quiz_generating"
    QUIZ_SAVING = "quiz_saving"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class TopicRunResult:
    """Outcome of a completed topic run."""

    topic: str
    facts_saved: int
    quizzes_saved: int


class TopicProcessor:
    """Drives topics through extraction, persistence and quiz generation."""

    def __init__(
        self,
        provisioning: ModelProvisioningManager,
        extraction: FactExtractionPipeline,
        quizzes: QuizGenerationStage,
        store: FactStore,
        source: TopicSource,
        bus: ProgressBus,
        default_topics: list[str] | None = None,
    ):
        self.provisioning = provisioning
        self.extraction = extraction
        self.quizzes = quizzes
        self.store = store
        self.source = source
        self.bus = bus
        self.default_topics = list(default_topics or [])

        self.states: dict[str, TopicState] = {}
        self._in_flight: set[str] = set()

    def is_processing(self, topic: str) -> bool:
        return topic in self._in_flight

    def state_of(self, topic: str) -> TopicState:
        return self.states.get(topic, TopicState.IDLE)

    async def process_topic_file(self, topic: str, *, allow_degraded: bool = False) -> TopicRunResult | None:
        """
        Process the bundled text file for ``topic``.

        Returns None when the run was skipped (already in flight, already
        stored, or no text available).

        Raises:
            ModelInitializationFailed: No model could be provisioned and
                ``allow_degraded`` is False
        """
        if topic in self._in_flight:
            logger.debug(f"Topic {topic} already in flight, skipping")
            return None

        # Claimed before the first await so concurrent callers see it
        self._in_flight.add(topic)
        try:
            if await self.store.get_fact_count_by_topic(topic, include_quizzes=False) >= 1:
                logger.info(f"Topic {topic} already processed, skipping")
                return None

            self.states[topic] = TopicState.GUARDED
            await self.ensure_model(allow_degraded)

            self.states[topic] = TopicState.LOADING
            text = await self.source.load(topic)
            if not text or not text.strip():
                logger.warning(f"No text file found for topic: {topic}")
                self.states[topic] = TopicState.IDLE
                return None

            self.states[topic] = TopicState.EXTRACTING
            facts = await self.extraction.extract(text, topic)

            self.states[topic] = TopicState.SAVING
            saved = await self._save_facts(topic, facts, report=True)

            self.states[topic] = TopicState.QUIZ_GENERATING
            questions = await self.quizzes.generate_quizzes(topic, saved)

            self.states[topic] = TopicState.QUIZ_SAVING
            for question in questions:
                await self.store.insert_fact(FactInput.for_quiz(topic, question))

            self.states[topic] = TopicState.COMPLETE
            logger.info(f"Processed {len(saved)} facts and {len(questions)} quizzes for topic: {topic}")
            return TopicRunResult(topic=topic, facts_saved=len(saved), quizzes_saved=len(questions))

        except Exception:
            self.states[topic] = TopicState.ERROR
            logger.exception(f"Error processing topic {topic}")
            raise
        finally:
            self._in_flight.discard(topic)

    async def ingest_text(
        self,
        text: str,
        topic: str,
        source: FactSource = FactSource.USER_UPLOAD,
        *,
        allow_degraded: bool = False,
    ) -> list[Fact]:
        """Extract facts from ad-hoc text and persist them with ``source``; no quizzes."""
        await self.ensure_model(allow_degraded)
        facts = await self.extraction.extract(text, topic)
        for fact in facts:
            fact.source = source
        return await self._save_facts(topic, facts, report=False)

    async def process_default_topics(
        self, topics: list[str] | None = None, *, allow_degraded: bool = False
    ) -> dict[str, TopicRunResult | None]:
        """Process every topic in turn; a failing topic does not stop the batch."""
        results: dict[str, TopicRunResult | None] = {}
        for topic in topics or self.default_topics:
            try:
                results[topic] = await self.process_topic_file(topic, allow_degraded=allow_degraded)
            except Exception as e:
                logger.error(f"Topic {topic} failed: {e}")
                results[topic] = None
        return results

    async def ensure_model(self, allow_degraded: bool = False) -> None:
        """Provision the model; with ``allow_degraded`` a failure falls back to sentences."""
        try:
            await self.provisioning.initialize()
        except ModelInitializationFailed as e:
            if not allow_degraded:
                raise
            logger.warning(f"{e}; continuing with sentence fallback")

    async def _save_facts(self, topic: str, facts: list[Fact], report: bool) -> list[Fact]:
        total = len(facts)
        saved: list[Fact] = []
        for fact in facts:
            fact.id = await self.store.insert_fact(FactInput.from_fact(fact))
            saved.append(fact)
            if report:
                self.bus.emit(StorageSaveProgress(topic=topic, saved=len(saved), total=total))
        if report:
            self.bus.emit(StorageComplete(topic=topic, total=total))
        return saved
