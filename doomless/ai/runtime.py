"""
Local completion runtime.

Capability probing and the adapters that talk to a local Ollama server:

- OllamaModelStore: local model cache (exists / pull with progress / seed
  from a bundled GGUF file)
- DirectoryAssetSource: copies bundled model files next to the cache
- OllamaBackend: chat completions for one provisioned model

The ``ollama`` package is an optional extra (``pip install doomless[local-ai]``).
``detect_runtime`` probes for it once at startup; when it is missing the
service runs in sentence-fallback mode.
"""

from __future__ import annotations

import asyncio
import importlib.util
import shutil
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import httpx
from loguru import logger

from .gateway import CompletionBackend, CompletionOptions, Message

if TYPE_CHECKING:
    from doomless.config import Settings

    from .provisioning import ModelCandidate

ProgressCallback = Callable[[float], None]


# =============================================================================
# Collaborator Protocols
# =============================================================================


class ModelStore(Protocol):
    """Local artifact cache for model weights."""

    async def exists(self, model_id: str) -> bool: ...

    async def acquire(self, model_id: str, on_progress: ProgressCallback) -> None: ...

    async def seed(self, model_id: str, path: Path) -> None: ...


class AssetSource(Protocol):
    """Bundled files shipped with the application."""

    async def copy_asset(self, name: str) -> Path | None: ...


class LocalRuntime(Protocol):
    """Everything provisioning needs from the local completion capability."""

    store: ModelStore
    assets: AssetSource | None

    async def open_session(self, candidate: ModelCandidate) -> CompletionBackend: ...


def probe_capability() -> bool:
    """True when the local runtime client library is importable."""
    return importlib.util.find_spec("ollama") is not None


# =============================================================================
# Bundled Assets
# =============================================================================


class DirectoryAssetSource:
    """Copies ``<assets_dir>/models/<name>`` into the model cache directory."""

    def __init__(self, assets_dir: Path, cache_dir: Path):
        self.assets_dir = Path(assets_dir)
        self.cache_dir = Path(cache_dir)

    async def copy_asset(self, name: str) -> Path | None:
        source = self.assets_dir / "models" / name
        if not source.is_file():
            logger.debug(f"Bundled asset not found: {source}")
            return None

        destination = self.cache_dir / name
        if destination.is_file() and destination.stat().st_size == source.stat().st_size:
            return destination

        destination.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.copyfile, source, destination)
        logger.info(f"Copied bundled model asset to {destination}")
        return destination


# =============================================================================
# Ollama Adapters
# =============================================================================


class OllamaModelStore:
    """Model cache backed by the Ollama server's local library."""

    def __init__(self, client: Any):
        self.client = client

    async def exists(self, model_id: str) -> bool:
        import ollama

        try:
            await self.client.show(model_id)
            return True
        except ollama.ResponseError as e:
            if e.status_code == 404:
                return False
            raise

    async def acquire(self, model_id: str, on_progress: ProgressCallback) -> None:
        logger.info(f"Pulling model {model_id}")
        async for part in await self.client.pull(model_id, stream=True):
            total = part.get("total")
            completed = part.get("completed")
            if total and completed is not None:
                on_progress(completed / total)
        on_progress(1.0)

    async def seed(self, model_id: str, path: Path) -> None:
        digest = await self.client.create_blob(path)
        await self.client.create(model=model_id, files={path.name: digest})
        logger.info(f"Seeded {model_id} from {path.name}")


class OllamaBackend(CompletionBackend):
    """Chat completions against one model on the Ollama server."""

    def __init__(self, client: Any, model_id: str, context_size: int, keep_alive: str = "10m"):
        self.client = client
        self.model_id = model_id
        self.context_size = context_size
        self.keep_alive = keep_alive
        self.name = f"ollama:{model_id}"

    async def load(self) -> None:
        """Load the model into memory (an empty prompt only loads it)."""
        await self.client.generate(model=self.model_id, keep_alive=self.keep_alive)

    async def complete(self, messages: list[Message], options: CompletionOptions) -> str:
        model_options: dict[str, Any] = {
            "temperature": options.temperature,
            "num_predict": options.max_tokens,
            "num_ctx": self.context_size,
        }
        if options.top_p is not None:
            model_options["top_p"] = options.top_p
        if options.top_k is not None:
            model_options["top_k"] = options.top_k
        if options.stop_sequences:
            model_options["stop"] = list(options.stop_sequences)

        response = await self.client.chat(
            model=self.model_id,
            messages=messages,
            options=model_options,
            keep_alive=self.keep_alive,
        )
        return response["message"]["content"]

    async def close(self) -> None:
        # keep_alive=0 unloads the model from server memory
        await self.client.generate(model=self.model_id, keep_alive=0)


class OllamaRuntime:
    """Local runtime served by Ollama."""

    def __init__(self, settings: Settings):
        import ollama

        self.settings = settings
        self.client = ollama.AsyncClient(
            host=settings.ollama_host,
            timeout=httpx.Timeout(settings.request_timeout_s, connect=10.0),
        )
        self.store: ModelStore = OllamaModelStore(self.client)
        self.assets: AssetSource | None = DirectoryAssetSource(
            settings.assets_dir, settings.model_cache_dir
        )

    async def open_session(self, candidate: ModelCandidate) -> CompletionBackend:
        backend = OllamaBackend(
            self.client,
            candidate.model_id,
            candidate.context_size,
            keep_alive=self.settings.keep_alive,
        )
        await backend.load()
        return backend


def detect_runtime(settings: Settings) -> LocalRuntime | None:
    """
    Select the local runtime once at startup.

    Returns None when the completion capability is absent; provisioning then
    initializes in degraded (sentence fallback) mode.
    """
    if not probe_capability():
        logger.warning(
            "ollama is not installed; AI extraction is disabled. "
            "Install with `pip install doomless[local-ai]`."
        )
        return None
    return OllamaRuntime(settings)
