"""
Fact store.

``FactStore`` is the storage contract used by the topic processor;
``SqlFactStore`` implements it on SQLAlchemy's asyncio extension.
"""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import func, select

from doomless.models import Fact, FactInput, FactSource, QuizQuestion

from .database import Database
from .models import FactRecord


class FactStore(Protocol):
    async def insert_fact(self, fact: FactInput) -> int: ...

    async def get_facts(
        self, topic: str | None = None, limit: int | None = None, offset: int | None = None
    ) -> list[Fact]: ...

    async def get_fact_count_by_topic(self, topic: str, include_quizzes: bool = True) -> int: ...


def _to_fact(record: FactRecord) -> Fact:
    return Fact(
        id=record.id,
        content=record.content,
        topic=record.topic,
        source=FactSource(record.source),
        created_at=record.created_at,
        is_quiz=record.is_quiz,
        quiz_data=QuizQuestion.from_dict(record.quiz_data) if record.quiz_data else None,
    )


class SqlFactStore:
    """Facts persisted in a relational database (SQLite by default)."""

    def __init__(self, database: Database):
        self.database = database

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> SqlFactStore:
        return cls(Database(database_url, echo=echo))

    async def initialize(self) -> None:
        await self.database.init_db()

    async def insert_fact(self, fact: FactInput) -> int:
        record = FactRecord(
            content=fact.content,
            topic=fact.topic,
            source=FactSource(fact.source).value,
            is_quiz=fact.is_quiz,
            quiz_data=fact.quiz_data.to_dict() if fact.quiz_data else None,
        )
        async with self.database.session_scope() as session:
            session.add(record)
            await session.flush()
            return record.id

    async def get_facts(
        self, topic: str | None = None, limit: int | None = None, offset: int | None = None
    ) -> list[Fact]:
        """Facts newest first, optionally filtered by topic and paginated."""
        stmt = select(FactRecord).order_by(FactRecord.created_at.desc(), FactRecord.id.desc())
        if topic is not None:
            stmt = stmt.where(FactRecord.topic == topic)
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset is not None:
            stmt = stmt.offset(offset)

        async with self.database.session_scope() as session:
            result = await session.execute(stmt)
            return [_to_fact(record) for record in result.scalars().all()]

    async def get_fact_count_by_topic(self, topic: str, include_quizzes: bool = True) -> int:
        stmt = select(func.count()).select_from(FactRecord).where(FactRecord.topic == topic)
        if not include_quizzes:
            stmt = stmt.where(FactRecord.is_quiz == False)  # noqa: E712

        async with self.database.session_scope() as session:
            return (await session.execute(stmt)).scalar_one()

    async def close(self) -> None:
        await self.database.dispose()
