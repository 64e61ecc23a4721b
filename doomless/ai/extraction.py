"""
Fact Extraction Pipeline.

Turns source text into short, deduplicated facts:

1. Split the text into fixed-size, non-overlapping chunks
2. Ask the model for a JSON array of facts per chunk
3. On unparseable output, ask the model once to reformat its own reply
4. If that also fails, segment the chunk into sentences
5. Clip, deduplicate across the whole run and stop at the global cap

Progress is reported on the bus for every chunk.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from loguru import logger

from doomless.config import Settings
from doomless.models import Fact, FactSource, clip_fact, normalize_fact_key

from .errors import InferenceError
from .events import (
    ParseChunkComplete,
    ParseChunkStart,
    ParseComplete,
    ParseError,
    ParseStart,
    ProgressBus,
)
from .gateway import CompletionGateway
from .json_utils import parse_json_array
from .prompts import (
    FACT_EXTRACTION_OPTIONS,
    REFORMAT_OPTIONS,
    RELATED_FACTS_OPTIONS,
    build_fact_messages,
    build_reformat_messages,
    build_related_messages,
)

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
_LIST_MARKER = re.compile(r"^\s*(?:[-*•]+|\d+[.)])\s*")


def chunk_text(text: str, chunk_size: int) -> list[str]:
    """Fixed-size, in-order, non-overlapping chunks; the last may be shorter."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    return [text[i : i + chunk_size] for i in range(0, len(text), chunk_size)]


def split_sentences(text: str) -> list[str]:
    """Naive segmentation on sentence-terminal punctuation followed by whitespace."""
    return [s.strip() for s in _SENTENCE_BOUNDARY.split(text.strip()) if s.strip()]


def parse_fact_items(raw: str) -> list[str]:
    """
    Read fact strings out of a model reply.

    Accepts arrays of ``{"content": ...}`` objects (``fact``/``text`` keys
    are tolerated) or of plain strings. Returns [] when no valid item exists.
    """
    items = []
    for item in parse_json_array(raw):
        if isinstance(item, dict):
            item = item.get("content") or item.get("fact") or item.get("text")
        if isinstance(item, str) and item.strip():
            items.append(item.strip())
    return items


@dataclass
class _ExtractionRun:
    """Accumulator and dedup set owned by one ``extract`` call."""

    topic: str
    cap: int
    max_length: int
    facts: list[Fact] = field(default_factory=list)
    seen: set[str] = field(default_factory=set)

    @property
    def full(self) -> bool:
        return len(self.facts) >= self.cap

    def accept(self, candidates: list[str], source: FactSource) -> int:
        accepted = 0
        for candidate in candidates:
            if self.full:
                break
            content = clip_fact(candidate, self.max_length)
            if not content:
                continue
            key = normalize_fact_key(content)
            if key in self.seen:
                continue
            self.seen.add(key)
            self.facts.append(Fact(content=content, topic=self.topic, source=source))
            accepted += 1
        return accepted


class FactExtractionPipeline:
    """Extracts non-quiz facts from arbitrary text."""

    def __init__(self, gateway: CompletionGateway, bus: ProgressBus, settings: Settings):
        self.gateway = gateway
        self.bus = bus
        self.settings = settings

    async def extract(self, text: str, topic: str) -> list[Fact]:
        """
        Extract facts from ``text`` for ``topic``.

        Per-chunk completion failures are recovered locally; any other error
        emits ``parse-error`` and propagates.
        """
        normalized = text.strip()
        if not normalized:
            return []

        chunks = chunk_text(normalized, self.settings.chunk_size)
        total = len(chunks)
        model_mode = self.gateway.is_available
        run = _ExtractionRun(
            topic=topic,
            cap=self.settings.max_facts if model_mode else self.settings.fallback_max_facts,
            max_length=self.settings.max_fact_length,
        )

        logger.info(
            f"Extracting {topic}: {len(normalized)} chars, {total} chunks "
            f"({'model' if model_mode else 'sentence fallback'} mode)"
        )

        try:
            self.bus.emit(ParseStart(topic=topic, total_chunks=total))

            for index, chunk in enumerate(chunks, 1):
                self.bus.emit(ParseChunkStart(topic=topic, chunk_index=index, total_chunks=total))

                if model_mode:
                    candidates, source = await self._extract_chunk(chunk, topic, index)
                else:
                    candidates, source = split_sentences(chunk), FactSource.FALLBACK

                accepted = run.accept(candidates, source)
                self.bus.emit(
                    ParseChunkComplete(
                        topic=topic,
                        chunk_index=index,
                        total_chunks=total,
                        facts_generated=accepted,
                    )
                )

                if run.full:
                    logger.info(f"Fact cap ({run.cap}) reached for {topic} at chunk {index}/{total}")
                    break

            self.bus.emit(ParseComplete(topic=topic, total_chunks=total, facts_generated=len(run.facts)))
        except Exception as e:
            logger.exception(f"Error parsing text to facts for {topic}")
            self.bus.emit(ParseError(topic=topic, message=str(e) or type(e).__name__))
            raise

        return run.facts

    async def _extract_chunk(self, chunk: str, topic: str, index: int) -> tuple[list[str], FactSource]:
        try:
            raw = await self.gateway.complete(build_fact_messages(chunk, topic), FACT_EXTRACTION_OPTIONS)
        except InferenceError as e:
            logger.warning(f"Chunk {index} of {topic}: completion failed ({e}); using sentences")
            return split_sentences(chunk), FactSource.FALLBACK

        items = parse_fact_items(raw)
        if items:
            return items, FactSource.PRIMARY

        logger.debug(f"Chunk {index} of {topic}: unparseable reply, requesting reformat")
        try:
            repaired = await self.gateway.complete(build_reformat_messages(raw), REFORMAT_OPTIONS)
            items = parse_fact_items(repaired)
        except InferenceError as e:
            logger.warning(f"Chunk {index} of {topic}: reformat failed ({e})")
            items = []

        if items:
            return items, FactSource.PRIMARY

        logger.warning(f"Chunk {index} of {topic}: no valid facts from model; using sentences")
        return split_sentences(chunk), FactSource.FALLBACK

    async def related(self, topic: str, fact_content: str, limit: int | None = None) -> list[str]:
        """
        Generate up to ``limit`` facts related to one fact.

        Results are plain strings; nothing is persisted. Completion failures
        yield [].
        """
        limit = limit or self.settings.related_fact_count
        try:
            raw = await self.gateway.complete(
                build_related_messages(topic, fact_content, limit),
                RELATED_FACTS_OPTIONS,
            )
        except InferenceError as e:
            logger.warning(f"Related fact generation failed for {topic}: {e}")
            return []

        seen = {normalize_fact_key(fact_content)}
        related = []
        for line in raw.splitlines():
            content = clip_fact(_LIST_MARKER.sub("", line).strip().strip('"'), self.settings.max_fact_length)
            key = normalize_fact_key(content)
            if not content or key in seen:
                continue
            seen.add(key)
            related.append(content)
            if len(related) >= limit:
                break
        return related
