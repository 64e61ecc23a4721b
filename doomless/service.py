"""
Service facade.

``DoomlessService`` wires the gateway, provisioning manager, pipeline
stages, fact store and topic processor together. It is constructed once
(``build_service``) and passed by reference; there are no module-level
singletons.
"""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from doomless.ai.events import ProgressBus, ProgressListener
from doomless.ai.extraction import FactExtractionPipeline
from doomless.ai.gateway import CompletionGateway
from doomless.ai.provisioning import ModelProvisioningManager
from doomless.ai.quiz import QuizGenerationStage
from doomless.ai.runtime import LocalRuntime, detect_runtime
from doomless.config import Settings, get_settings
from doomless.db.fact_store import FactStore, SqlFactStore
from doomless.models import Fact, FactSource
from doomless.processing.topic_processor import TopicProcessor, TopicRunResult
from doomless.processing.topic_source import DirectoryTopicSource, TopicSource


class DoomlessService:
    def __init__(
        self,
        settings: Settings,
        store: FactStore,
        runtime: LocalRuntime | None,
        source: TopicSource | None = None,
        bus: ProgressBus | None = None,
    ):
        self.settings = settings
        self.store = store
        self.bus = bus or ProgressBus()
        self.gateway = CompletionGateway()
        self.provisioning = ModelProvisioningManager(
            self.gateway, self.bus, settings.get_model_candidates(), runtime
        )
        self.extraction = FactExtractionPipeline(self.gateway, self.bus, settings)
        self.quizzes = QuizGenerationStage(self.gateway, self.bus, settings)
        self.processor = TopicProcessor(
            provisioning=self.provisioning,
            extraction=self.extraction,
            quizzes=self.quizzes,
            store=store,
            source=source or DirectoryTopicSource(settings.topics_dir),
            bus=self.bus,
            default_topics=settings.default_topics,
        )

    async def prepare_storage(self) -> None:
        """Create storage tables when the store needs it (in-memory stores do not)."""
        initialize_store = getattr(self.store, "initialize", None)
        if initialize_store is not None:
            await initialize_store()

    async def initialize(self, *, allow_degraded: bool = False) -> None:
        """Prepare storage and provision the completion model."""
        await self.prepare_storage()
        await self.processor.ensure_model(allow_degraded)

    async def process_topic_file(self, topic: str, *, allow_degraded: bool = False) -> TopicRunResult | None:
        return await self.processor.process_topic_file(topic, allow_degraded=allow_degraded)

    async def process_default_topics(
        self, topics: list[str] | None = None, *, allow_degraded: bool = False
    ) -> dict[str, TopicRunResult | None]:
        return await self.processor.process_default_topics(topics, allow_degraded=allow_degraded)

    async def extract_facts(self, text: str, topic: str) -> list[Fact]:
        """Extract without persisting; uses whatever session is attached."""
        return await self.extraction.extract(text, topic)

    async def ingest_text(
        self,
        text: str,
        topic: str,
        source: FactSource = FactSource.USER_UPLOAD,
        *,
        allow_degraded: bool = False,
    ) -> list[Fact]:
        return await self.processor.ingest_text(text, topic, source, allow_degraded=allow_degraded)

    async def generate_related_facts(self, topic: str, content: str) -> list[str]:
        return await self.extraction.related(topic, content)

    def subscribe_progress(self, listener: ProgressListener) -> Callable[[], None]:
        return self.bus.subscribe(listener)

    async def shutdown(self) -> None:
        await self.provisioning.shutdown()
        close_store = getattr(self.store, "close", None)
        if close_store is not None:
            await close_store()
        logger.debug("Service shut down")


def build_service(settings: Settings | None = None) -> DoomlessService:
    """Construct the production service: SQLite store and the detected local runtime."""
    settings = settings or get_settings()
    store = SqlFactStore.from_url(settings.database_url, echo=settings.log_level == "DEBUG")
    return DoomlessService(settings, store, detect_runtime(settings))
