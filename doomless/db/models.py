"""
Fact table.

One row per fact; quiz facts carry the serialized question in ``quiz_data``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class FactRecord(Base):
    __tablename__ = "facts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    topic: Mapped[str] = mapped_column(String(100), nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False)  # primary / fallback / user_upload
    is_quiz: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    quiz_data: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(default=datetime.now, nullable=False)

    __table_args__ = (
        Index("idx_facts_topic", "topic"),
        Index("idx_facts_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<FactRecord id={self.id} topic={self.topic} quiz={self.is_quiz}>"
