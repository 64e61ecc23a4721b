"""
Pytest Configuration and Fixtures.

Shared fakes for the pipeline collaborators: a scripted completion backend,
an in-memory fact store, a fake local runtime and a progress event recorder.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from doomless.ai.events import ProgressBus
from doomless.ai.gateway import CompletionBackend, CompletionGateway
from doomless.config import Settings
from doomless.models import Fact, FactInput


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (real SQLite file)")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


# =============================================================================
# Fakes
# =============================================================================


class ScriptedBackend(CompletionBackend):
    """
    Completion backend replaying a script.

    Each entry is either the text to return or an exception to raise. When
    the script runs out, ``default`` is returned.
    """

    name = "scripted"

    def __init__(self, script=None, default: str = "[]"):
        self.script = list(script or [])
        self.default = default
        self.calls = []
        self.closed = False

    async def complete(self, messages, options):
        self.calls.append((messages, options))
        if not self.script:
            return self.default
        step = self.script.pop(0)
        if isinstance(step, BaseException):
            raise step
        return step

    async def close(self):
        self.closed = True


class InMemoryFactStore:
    """Fact store keeping rows in a list; ``fail_on_insert`` raises on the n-th insert (1-based)."""

    def __init__(self, fail_on_insert: int | None = None):
        self.rows: list[Fact] = []
        self.fail_on_insert = fail_on_insert
        self.inserts = 0
        self._clock = datetime(2024, 1, 1)

    async def insert_fact(self, fact: FactInput) -> int:
        self.inserts += 1
        if self.fail_on_insert is not None and self.inserts == self.fail_on_insert:
            raise RuntimeError("disk full")
        self._clock += timedelta(seconds=1)
        row = Fact(
            id=len(self.rows) + 1,
            content=fact.content,
            topic=fact.topic,
            source=fact.source,
            created_at=self._clock,
            is_quiz=fact.is_quiz,
            quiz_data=fact.quiz_data,
        )
        self.rows.append(row)
        return row.id

    async def get_facts(self, topic=None, limit=None, offset=None):
        rows = [r for r in reversed(self.rows) if topic is None or r.topic == topic]
        start = offset or 0
        return rows[start : start + limit] if limit is not None else rows[start:]

    async def get_fact_count_by_topic(self, topic, include_quizzes=True):
        return sum(1 for r in self.rows if r.topic == topic and (include_quizzes or not r.is_quiz))


class FakeModelStore:
    def __init__(self, present=(), progress=(), fail_acquire=()):
        self.present = set(present)
        self.progress = list(progress)
        self.fail_acquire = set(fail_acquire)
        self.acquired: list[str] = []
        self.seeded: list[tuple[str, Path]] = []

    async def exists(self, model_id):
        return model_id in self.present

    async def acquire(self, model_id, on_progress):
        self.acquired.append(model_id)
        if model_id in self.fail_acquire:
            raise ConnectionError(f"download of {model_id} failed")
        for fraction in self.progress:
            on_progress(fraction)
        self.present.add(model_id)

    async def seed(self, model_id, path):
        self.seeded.append((model_id, path))
        self.present.add(model_id)


class FakeAssetSource:
    def __init__(self, available=()):
        self.available = set(available)
        self.requested: list[str] = []

    async def copy_asset(self, name):
        self.requested.append(name)
        return Path("/cache") / name if name in self.available else None


class FakeRuntime:
    """Local runtime whose sessions are ScriptedBackends."""

    def __init__(self, store=None, assets=None, fail_open=(), open_delay: float = 0.0, script=None):
        self.store = store or FakeModelStore()
        self.assets = assets
        self.fail_open = set(fail_open)
        self.open_delay = open_delay
        self.script = script
        self.opened: list[str] = []

    async def open_session(self, candidate):
        self.opened.append(candidate.model_id)
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        if candidate.model_id in self.fail_open:
            raise RuntimeError(f"cannot load {candidate.model_id}")
        backend = ScriptedBackend(self.script)
        backend.name = candidate.model_id
        return backend


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        topics_dir=tmp_path / "topics",
        assets_dir=tmp_path / "assets",
        model_cache_dir=tmp_path / "cache",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'facts.db'}",
    )


@pytest.fixture
def bus():
    return ProgressBus()


@pytest.fixture
def events(bus):
    """Every event emitted on ``bus``, in order."""
    recorded = []
    bus.subscribe(recorded.append)
    return recorded


@pytest.fixture
def backend():
    return ScriptedBackend()


@pytest.fixture
def gateway(backend):
    return CompletionGateway(backend)


@pytest.fixture
def store():
    return InMemoryFactStore()


def event_types(events) -> list[str]:
    return [event.type.value for event in events]
