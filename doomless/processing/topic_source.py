"""Topic text sources."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol

from loguru import logger


class TopicSource(Protocol):
    async def load(self, topic: str) -> str | None: ...


class DirectoryTopicSource:
    """Reads ``<directory>/<topic>.txt`` as UTF-8."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, topic: str) -> Path:
        return self.directory / f"{topic}.txt"

    async def load(self, topic: str) -> str | None:
        path = self.path_for(topic)
        if not path.is_file():
            logger.debug(f"No topic file at {path}")
            return None
        return await asyncio.to_thread(path.read_text, encoding="utf-8")
