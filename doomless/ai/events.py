"""
Progress Event Bus.

Typed publish/subscribe channel for pipeline stage transitions. The tag set
is closed (ProgressEventType); every event serializes to the camelCase wire
shape consumed by the UI layer via ``to_dict()``.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Union

from loguru import logger


class ProgressEventType(str, Enum):
    """Closed set of progress event tags."""

    MODEL_DOWNLOAD = "model-download"
    PARSE_START = "parse-start"
    PARSE_CHUNK_START = "parse-chunk-start"
    PARSE_CHUNK_COMPLETE = "parse-chunk-complete"
    PARSE_COMPLETE = "parse-complete"
    PARSE_ERROR = "parse-error"
    STORAGE_SAVE_PROGRESS = "storage-save-progress"
    STORAGE_COMPLETE = "storage-complete"
    QUIZ_START = "quiz-start"
    QUIZ_PROGRESS = "quiz-progress"
    QUIZ_COMPLETE = "quiz-complete"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass(frozen=True)
class ProgressEvent:
    """Base class; subclasses set ``type``."""

    type: ClassVar[ProgressEventType]

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type.value}
        for f in fields(self):
            payload[_camel(f.name)] = getattr(self, f.name)
        return payload


@dataclass(frozen=True)
class ModelDownload(ProgressEvent):
    type: ClassVar[ProgressEventType] = ProgressEventType.MODEL_DOWNLOAD
    model_id: str
    progress: float  # 0..1


@dataclass(frozen=True)
class ParseStart(ProgressEvent):
    type: ClassVar[ProgressEventType] = ProgressEventType.PARSE_START
    topic: str
    total_chunks: int


@dataclass(frozen=True)
class ParseChunkStart(ProgressEvent):
    type: ClassVar[ProgressEventType] = ProgressEventType.PARSE_CHUNK_START
    topic: str
    chunk_index: int
    total_chunks: int


@dataclass(frozen=True)
class ParseChunkComplete(ProgressEvent):
    type: ClassVar[ProgressEventType] = ProgressEventType.PARSE_CHUNK_COMPLETE
    topic: str
    chunk_index: int
    total_chunks: int
    facts_generated: int


@dataclass(frozen=True)
class ParseComplete(ProgressEvent):
    type: ClassVar[ProgressEventType] = ProgressEventType.PARSE_COMPLETE
    topic: str
    total_chunks: int
    facts_generated: int


@dataclass(frozen=True)
class ParseError(ProgressEvent):
    type: ClassVar[ProgressEventType] = ProgressEventType.PARSE_ERROR
    topic: str
    message: str


@dataclass(frozen=True)
class StorageSaveProgress(ProgressEvent):
    type: ClassVar[ProgressEventType] = ProgressEventType.STORAGE_SAVE_PROGRESS
    topic: str
    saved: int
    total: int


@dataclass(frozen=True)
class StorageComplete(ProgressEvent):
    type: ClassVar[ProgressEventType] = ProgressEventType.STORAGE_COMPLETE
    topic: str
    total: int


@dataclass(frozen=True)
class QuizStart(ProgressEvent):
    type: ClassVar[ProgressEventType] = ProgressEventType.QUIZ_START
    topic: str
    total: int


@dataclass(frozen=True)
class QuizProgress(ProgressEvent):
    type: ClassVar[ProgressEventType] = ProgressEventType.QUIZ_PROGRESS
    topic: str
    current: int
    total: int


@dataclass(frozen=True)
class QuizComplete(ProgressEvent):
    type: ClassVar[ProgressEventType] = ProgressEventType.QUIZ_COMPLETE
    topic: str
    total: int


AnyProgressEvent = Union[
    ModelDownload,
    ParseStart,
    ParseChunkStart,
    ParseChunkComplete,
    ParseComplete,
    ParseError,
    StorageSaveProgress,
    StorageComplete,
    QuizStart,
    QuizProgress,
    QuizComplete,
]

ProgressListener = Callable[[AnyProgressEvent], None]


class ProgressBus:
    """Process-wide listener set; listeners are called synchronously per emission."""

    def __init__(self):
        self._listeners: list[ProgressListener] = []

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a listener and return its unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: ProgressEvent) -> None:
        # Snapshot: listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Progress listener failed on {event.type.value}")

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


def describe_event(event: ProgressEvent) -> str:
    """Human-readable status line for an event."""
    if isinstance(event, ModelDownload):
        return f"Downloading {event.model_id}... {round(event.progress * 100)}%"
    if isinstance(event, ParseStart):
        return f"Reading {event.topic} ({event.total_chunks} chunks)"
    if isinstance(event, ParseChunkStart):
        return f"Extracting {event.topic}: chunk {event.chunk_index}/{event.total_chunks}"
    if isinstance(event, ParseChunkComplete):
        return (
            f"Chunk {event.chunk_index}/{event.total_chunks} of {event.topic}: "
            f"{event.facts_generated} facts"
        )
    if isinstance(event, ParseComplete):
        return f"Extracted {event.facts_generated} facts from {event.topic}"
    if isinstance(event, ParseError):
        return f"Failed to process {event.topic}: {event.message}"
    if isinstance(event, StorageSaveProgress):
        return f"Saving {event.topic}: {event.saved}/{event.total}"
    if isinstance(event, StorageComplete):
        return f"Saved {event.total} facts for {event.topic}"
    if isinstance(event, QuizStart):
        return f"Writing {event.total} quizzes for {event.topic}"
    if isinstance(event, QuizProgress):
        return f"Quiz {event.current}/{event.total} for {event.topic}"
    if isinstance(event, QuizComplete):
        return f"Created {event.total} quizzes for {event.topic}"
    return event.type.value


class ProgressLog:
    """
    Bounded consumer of the progress bus.

    Keeps the last ``maxlen`` events plus the latest status line, which is
    all a UI needs to render a progress banner.
    """

    def __init__(self, maxlen: int = 25):
        self.events: deque[ProgressEvent] = deque(maxlen=maxlen)
        self.latest: ProgressEvent | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)
        self.latest = event

    @property
    def status(self) -> str:
        return describe_event(self.latest) if self.latest else "Idle"

    def attach(self, bus: ProgressBus) -> ProgressLog:
        self._unsubscribe = bus.subscribe(self)
        return self

    def detach(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
