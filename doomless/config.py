"""
Configuration settings for the doomless content pipeline.

Uses Pydantic Settings for environment variable management with .env file support.
All variables are prefixed with DOOMLESS_ (e.g. DOOMLESS_CHUNK_SIZE=4000).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from doomless.ai.provisioning import ModelCandidate


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="DOOMLESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Local Models
    # ========================================
    primary_model_id: str = Field(
        default="qwen3:0.6b",
        description="Preferred local completion model",
    )
    primary_context_size: int = Field(
        default=4096,
        description="Context window (tokens) for the primary model",
    )
    primary_model_asset: str | None = Field(
        default=None,
        description="Bundled GGUF file (under assets_dir/models) used to seed the primary model",
    )
    fallback_model_id: str | None = Field(
        default="gemma3:270m",
        description="Smaller model tried when the primary cannot be provisioned",
    )
    fallback_context_size: int = Field(
        default=2048,
        description="Context window (tokens) for the fallback model",
    )
    fallback_model_asset: str | None = Field(
        default=None,
        description="Bundled GGUF file used to seed the fallback model",
    )

    # ========================================
    # Local Runtime (Ollama)
    # ========================================
    ollama_host: str = Field(
        default="http://127.0.0.1:11434",
        description="Base URL of the local Ollama server",
    )
    request_timeout_s: float = Field(
        default=120.0,
        description="Timeout for a single completion request (seconds)",
    )
    keep_alive: str = Field(
        default="10m",
        description="How long the runtime keeps a loaded model in memory",
    )

    # ========================================
    # Paths
    # ========================================
    assets_dir: Path = Field(
        default=Path("assets"),
        description="Directory holding bundled assets (models/, topics/)",
    )
    model_cache_dir: Path = Field(
        default=Path.home() / ".doomless" / "models",
        description="Where bundled model files are copied before seeding",
    )
    topics_dir: Path = Field(
        default=Path("assets") / "topics",
        description="Directory of <topic>.txt source files",
    )
    default_topics: list[str] = Field(
        default_factory=lambda: ["animals", "history", "plants", "science", "sport"],
        description="Topics processed by `doomless process` without arguments",
    )

    # ========================================
    # Extraction Limits
    # ========================================
    chunk_size: int = Field(
        default=6000,
        description="Maximum characters per extraction request",
    )
    max_fact_length: int = Field(
        default=200,
        description="Maximum characters per fact",
    )
    max_facts: int = Field(
        default=120,
        description="Global fact cap per extraction run (model mode)",
    )
    fallback_max_facts: int = Field(
        default=60,
        description="Global fact cap per extraction run (sentence fallback mode)",
    )
    related_fact_count: int = Field(
        default=3,
        description="Related facts requested per liked fact",
    )

    # ========================================
    # Quiz Generation
    # ========================================
    quiz_interval: int = Field(
        default=8,
        description="One quiz per this many extracted facts",
    )
    max_quizzes: int = Field(
        default=5,
        description="Upper bound of quizzes per topic run",
    )

    # ========================================
    # Progress
    # ========================================
    progress_log_size: int = Field(
        default=25,
        description="Number of progress events kept by the rolling log",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite+aiosqlite:///doomless.db",
        description="SQLAlchemy async connection string for the fact store",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def get_model_candidates(self) -> list[ModelCandidate]:
        """Ordered model candidates: primary first, at most one fallback."""
        from doomless.ai.provisioning import ModelCandidate

        candidates = [
            ModelCandidate(
                model_id=self.primary_model_id,
                context_size=self.primary_context_size,
                asset_seed_name=self.primary_model_asset,
                is_primary=True,
            )
        ]
        if self.fallback_model_id and self.fallback_model_id != self.primary_model_id:
            candidates.append(
                ModelCandidate(
                    model_id=self.fallback_model_id,
                    context_size=self.fallback_context_size,
                    asset_seed_name=self.fallback_model_asset,
                )
            )
        return candidates


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
