"""
Unit tests for the progress event bus.
"""

from typing import get_args

import pytest

from doomless.ai.events import (
    AnyProgressEvent,
    ModelDownload,
    ParseChunkComplete,
    ParseError,
    ProgressBus,
    ProgressEventType,
    ProgressLog,
    QuizComplete,
    StorageSaveProgress,
)


class TestWireShape:
    def test_camel_case_keys(self):
        event = ParseChunkComplete(topic="animals", chunk_index=2, total_chunks=3, facts_generated=7)
        assert event.to_dict() == {
            "type": "parse-chunk-complete",
            "topic": "animals",
            "chunkIndex": 2,
            "totalChunks": 3,
            "factsGenerated": 7,
        }

    def test_model_download(self):
        assert ModelDownload(model_id="qwen3:0.6b", progress=0.42).to_dict() == {
            "type": "model-download",
            "modelId": "qwen3:0.6b",
            "progress": 0.42,
        }

    def test_closed_tag_set(self):
        assert len(ProgressEventType) == 11
        assert StorageSaveProgress.type is ProgressEventType.STORAGE_SAVE_PROGRESS

    def test_event_union_covers_every_tag_once(self):
        tags = [event_cls.type for event_cls in get_args(AnyProgressEvent)]
        assert sorted(tags) == sorted(ProgressEventType)

    def test_events_are_immutable(self):
        event = QuizComplete(topic="x", total=1)
        with pytest.raises(AttributeError):
            event.total = 2


class TestProgressBus:
    def test_delivers_in_subscription_order(self):
        bus = ProgressBus()
        seen = []
        bus.subscribe(lambda e: seen.append(("a", e.type)))
        bus.subscribe(lambda e: seen.append(("b", e.type)))

        bus.emit(QuizComplete(topic="x", total=0))
        assert seen == [("a", ProgressEventType.QUIZ_COMPLETE), ("b", ProgressEventType.QUIZ_COMPLETE)]

    def test_unsubscribe(self):
        bus = ProgressBus()
        seen = []
        unsubscribe = bus.subscribe(seen.append)
        unsubscribe()
        unsubscribe()  # second call is a no-op

        bus.emit(QuizComplete(topic="x", total=0))
        assert seen == []
        assert bus.listener_count == 0

    def test_failing_listener_does_not_affect_others(self):
        bus = ProgressBus()
        seen = []

        def broken(event):
            raise RuntimeError("ui crashed")

        bus.subscribe(broken)
        bus.subscribe(seen.append)

        bus.emit(ParseError(topic="x", message="boom"))
        assert len(seen) == 1

    def test_unsubscribe_during_emit_uses_snapshot(self):
        bus = ProgressBus()
        seen = []
        unsubscribe_second = None

        def first(event):
            unsubscribe_second()

        bus.subscribe(first)
        unsubscribe_second = bus.subscribe(seen.append)

        bus.emit(QuizComplete(topic="x", total=0))
        assert len(seen) == 1
        bus.emit(QuizComplete(topic="x", total=0))
        assert len(seen) == 1


class TestProgressLog:
    def test_bounded_and_tracks_latest(self):
        bus = ProgressBus()
        log = ProgressLog(maxlen=3).attach(bus)
        assert log.status == "Idle"

        for total in range(5):
            bus.emit(QuizComplete(topic="animals", total=total))

        assert [e.total for e in log.events] == [2, 3, 4]
        assert log.latest.total == 4
        assert log.status == "Created 4 quizzes for animals"

    def test_detach(self):
        bus = ProgressBus()
        log = ProgressLog().attach(bus)
        log.detach()
        bus.emit(QuizComplete(topic="x", total=1))
        assert log.latest is None
        assert bus.listener_count == 0

    def test_download_status(self):
        log = ProgressLog()
        log(ModelDownload(model_id="m", progress=0.5))
        assert log.status == "Downloading m... 50%"
