"""
Model Provisioning Manager.

Resolves the ordered model candidates and brings exactly one of them to a
usable completion session:

1. Cache check (is the model already in the local store?)
2. Bundled-asset seeding (copy a shipped GGUF file and register it)
3. Network acquisition with download progress events
4. Session open; the backend is attached to the completion gateway

Candidates are tried in order until one succeeds. Without a local runtime
the manager initializes in degraded mode and the pipeline falls back to
sentence segmentation.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from .errors import ModelInitializationFailed
from .events import ModelDownload, ProgressBus
from .gateway import CompletionBackend, CompletionGateway
from .runtime import LocalRuntime


@dataclass(frozen=True)
class ModelCandidate:
    """One named configuration of the local completion model."""

    model_id: str
    context_size: int
    asset_seed_name: str | None = None
    is_primary: bool = False


class ProvisioningState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    READY = "ready"
    DEGRADED = "degraded"  # No runtime; sentence fallback only
    FAILED = "failed"


class ModelProvisioningManager:
    """
    Single-flight initializer for the shared completion session.

    Concurrent ``initialize()`` callers await one shared task and observe
    the same outcome. After a failure the next call starts a fresh attempt.
    """

    def __init__(
        self,
        gateway: CompletionGateway,
        bus: ProgressBus,
        candidates: list[ModelCandidate],
        runtime: LocalRuntime | None,
    ):
        self.gateway = gateway
        self.bus = bus
        self.candidates = _dedupe_candidates(candidates)
        self.runtime = runtime

        self.state = ProvisioningState.IDLE
        self.current_model: ModelCandidate | None = None
        self._pending: asyncio.Task | None = None
        self._download_pct: dict[str, int] = {}

    @property
    def is_initialized(self) -> bool:
        return self.state in (ProvisioningState.READY, ProvisioningState.DEGRADED)

    @property
    def is_degraded(self) -> bool:
        return self.state == ProvisioningState.DEGRADED

    async def initialize(self) -> None:
        """
        Provision a completion session (idempotent).

        Raises:
            ModelInitializationFailed: No candidate could be provisioned
        """
        if self.is_initialized:
            return

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._provision())
            self._pending.add_done_callback(self._clear_pending)

        # Shield so a cancelled caller does not cancel the shared attempt
        await asyncio.shield(self._pending)

    def _clear_pending(self, task: asyncio.Task) -> None:
        if self._pending is task:
            self._pending = None

    async def _provision(self) -> None:
        self.state = ProvisioningState.INITIALIZING

        if self.runtime is None:
            logger.warning("Local completion runtime unavailable; running in sentence-fallback mode")
            self.state = ProvisioningState.DEGRADED
            return

        last_error: Exception | None = None
        for candidate in self.candidates:
            try:
                backend = await self._prepare(candidate)
            except Exception as e:
                last_error = e
                logger.error(f"Failed to initialize model {candidate.model_id}: {e}")
                continue

            self.gateway.attach(backend)
            self.current_model = candidate
            self.state = ProvisioningState.READY
            logger.info(f"Model ready: {candidate.model_id}")
            return

        self.state = ProvisioningState.FAILED
        tried = ", ".join(c.model_id for c in self.candidates) or "none"
        raise ModelInitializationFailed(f"No usable model candidate (tried: {tried})") from last_error

    async def _prepare(self, candidate: ModelCandidate) -> CompletionBackend:
        store = self.runtime.store
        model_id = candidate.model_id

        if not await store.exists(model_id):
            if candidate.asset_seed_name:
                await self._seed(candidate)

            if not await store.exists(model_id):
                await store.acquire(
                    model_id,
                    on_progress=lambda fraction: self._report_download(model_id, fraction),
                )

        return await self.runtime.open_session(candidate)

    async def _seed(self, candidate: ModelCandidate) -> None:
        """Best-effort install of a bundled model file; failures only log."""
        assets = self.runtime.assets
        if assets is None:
            return
        try:
            path = await assets.copy_asset(candidate.asset_seed_name)
            if path is None:
                return
            await self.runtime.store.seed(candidate.model_id, path)
        except Exception as e:
            logger.warning(f"Failed to seed bundled asset {candidate.asset_seed_name}: {e}")

    def _report_download(self, model_id: str, fraction: float) -> None:
        if not math.isfinite(fraction):
            return

        pct = round(max(0.0, min(1.0, fraction)) * 100)
        # Only forward progress; per-layer restarts and repeats are dropped
        if pct <= self._download_pct.get(model_id, -1):
            return
        self._download_pct[model_id] = pct

        if pct % 5 == 0:
            logger.info(f"Downloading model {model_id}... {pct}%")
        self.bus.emit(ModelDownload(model_id=model_id, progress=pct / 100))

    async def shutdown(self) -> None:
        await self.gateway.close()
        self.current_model = None
        self.state = ProvisioningState.IDLE


def _dedupe_candidates(candidates: list[ModelCandidate]) -> list[ModelCandidate]:
    seen: set[str] = set()
    ordered = []
    for candidate in sorted(candidates, key=lambda c: not c.is_primary):
        if candidate.model_id in seen:
            continue
        seen.add(candidate.model_id)
        ordered.append(candidate)
    return ordered
