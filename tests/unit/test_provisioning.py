"""
Unit tests for the model provisioning manager.
"""

import asyncio
import math

import pytest

from conftest import FakeAssetSource, FakeModelStore, FakeRuntime
from doomless.ai.errors import ModelInitializationFailed
from doomless.ai.events import ModelDownload
from doomless.ai.gateway import CompletionGateway
from doomless.ai.provisioning import ModelCandidate, ModelProvisioningManager, ProvisioningState

PRIMARY = ModelCandidate("qwen3:0.6b", 4096, asset_seed_name="qwen3.gguf", is_primary=True)
FALLBACK = ModelCandidate("gemma3:270m", 2048)


def make_manager(bus, runtime, candidates=(PRIMARY, FALLBACK)):
    gateway = CompletionGateway()
    return gateway, ModelProvisioningManager(gateway, bus, list(candidates), runtime)


class TestCandidates:
    def test_primary_first_and_deduplicated(self, bus):
        duplicate = ModelCandidate("gemma3:270m", 1024)
        _, manager = make_manager(bus, None, [FALLBACK, PRIMARY, duplicate])
        assert [c.model_id for c in manager.candidates] == ["qwen3:0.6b", "gemma3:270m"]
        assert manager.candidates[1].context_size == 2048

    def test_settings_build_candidates(self, settings):
        candidates = settings.get_model_candidates()
        assert candidates[0].is_primary
        assert [c.model_id for c in candidates] == [settings.primary_model_id, settings.fallback_model_id]


class TestInitialize:
    @pytest.mark.asyncio
    async def test_degraded_without_runtime(self, bus, events):
        gateway, manager = make_manager(bus, None)
        await manager.initialize()

        assert manager.state == ProvisioningState.DEGRADED
        assert manager.is_initialized and manager.is_degraded
        assert not gateway.is_available
        assert events == []

    @pytest.mark.asyncio
    async def test_cached_model_opens_without_download(self, bus, events):
        runtime = FakeRuntime(store=FakeModelStore(present={"qwen3:0.6b"}))
        gateway, manager = make_manager(bus, runtime)
        await manager.initialize()

        assert manager.state == ProvisioningState.READY
        assert manager.current_model == PRIMARY
        assert gateway.is_available
        assert runtime.store.acquired == []
        assert events == []

    @pytest.mark.asyncio
    async def test_bundled_seed_skips_download(self, bus):
        assets = FakeAssetSource(available={"qwen3.gguf"})
        runtime = FakeRuntime(store=FakeModelStore(), assets=assets)
        _, manager = make_manager(bus, runtime)
        await manager.initialize()

        assert runtime.store.seeded[0][0] == "qwen3:0.6b"
        assert runtime.store.acquired == []

    @pytest.mark.asyncio
    async def test_missing_seed_falls_through_to_download(self, bus):
        runtime = FakeRuntime(store=FakeModelStore(), assets=FakeAssetSource())
        _, manager = make_manager(bus, runtime)
        await manager.initialize()

        assert runtime.assets.requested == ["qwen3.gguf"]
        assert runtime.store.acquired == ["qwen3:0.6b"]

    @pytest.mark.asyncio
    async def test_download_progress_is_monotonic_whole_percent(self, bus, events):
        progress = [0.0, 0.004, 0.1, 0.1, 0.05, float("nan"), 0.5, 0.499, math.inf, 1.0]
        runtime = FakeRuntime(store=FakeModelStore(progress=progress))
        _, manager = make_manager(bus, runtime)
        await manager.initialize()

        downloads = [e for e in events if isinstance(e, ModelDownload)]
        assert [e.progress for e in downloads] == [0.0, 0.1, 0.5, 1.0]
        assert {e.model_id for e in downloads} == {"qwen3:0.6b"}

    @pytest.mark.asyncio
    async def test_falls_back_to_next_candidate(self, bus):
        runtime = FakeRuntime(store=FakeModelStore(fail_acquire={"qwen3:0.6b"}))
        gateway, manager = make_manager(bus, runtime)
        await manager.initialize()

        assert manager.current_model == FALLBACK
        assert gateway.backend.name == "gemma3:270m"

    @pytest.mark.asyncio
    async def test_all_candidates_fail(self, bus):
        runtime = FakeRuntime(
            store=FakeModelStore(present={"qwen3:0.6b", "gemma3:270m"}),
            fail_open={"qwen3:0.6b", "gemma3:270m"},
        )
        gateway, manager = make_manager(bus, runtime)

        with pytest.raises(ModelInitializationFailed) as exc_info:
            await manager.initialize()

        assert manager.state == ProvisioningState.FAILED
        assert not gateway.is_available
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_retry_after_failure(self, bus):
        runtime = FakeRuntime(store=FakeModelStore(present={"qwen3:0.6b"}), fail_open={"qwen3:0.6b"})
        _, manager = make_manager(bus, runtime, [PRIMARY])

        with pytest.raises(ModelInitializationFailed):
            await manager.initialize()

        runtime.fail_open.clear()
        await manager.initialize()
        assert manager.state == ProvisioningState.READY

    @pytest.mark.asyncio
    async def test_single_flight(self, bus):
        runtime = FakeRuntime(store=FakeModelStore(present={"qwen3:0.6b"}), open_delay=0.01)
        _, manager = make_manager(bus, runtime)

        await asyncio.gather(*(manager.initialize() for _ in range(5)))

        assert runtime.opened == ["qwen3:0.6b"]
        assert manager.state == ProvisioningState.READY

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_failure(self, bus):
        runtime = FakeRuntime(
            store=FakeModelStore(present={"qwen3:0.6b"}),
            fail_open={"qwen3:0.6b"},
            open_delay=0.01,
        )
        _, manager = make_manager(bus, runtime, [PRIMARY])

        results = await asyncio.gather(*(manager.initialize() for _ in range(3)), return_exceptions=True)

        assert all(isinstance(r, ModelInitializationFailed) for r in results)
        assert runtime.opened == ["qwen3:0.6b"]

    @pytest.mark.asyncio
    async def test_idempotent_once_ready(self, bus):
        runtime = FakeRuntime(store=FakeModelStore(present={"qwen3:0.6b"}))
        _, manager = make_manager(bus, runtime)
        await manager.initialize()
        await manager.initialize()
        assert runtime.opened == ["qwen3:0.6b"]

    @pytest.mark.asyncio
    async def test_shutdown_closes_backend(self, bus):
        runtime = FakeRuntime(store=FakeModelStore(present={"qwen3:0.6b"}))
        gateway, manager = make_manager(bus, runtime)
        await manager.initialize()
        backend = gateway.backend

        await manager.shutdown()
        assert backend.closed
        assert manager.state == ProvisioningState.IDLE
        assert not gateway.is_available
