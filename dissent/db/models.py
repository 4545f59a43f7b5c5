"""SQLAlchemy ORM tables for the knowledge record store.

Dissent only reads these tables. They are written by the capture and
summarization side of the knowledge base:

- knowledge_records : distilled records (title, summary, decisions, insights, tags)
- topics            : topic groups; only their tags matter for conflict detection

List-valued fields are JSON columns so the same schema works on PostgreSQL and
SQLite.
"""

from __future__ import annotations

import datetime

import sqlalchemy as sa
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class KnowledgeRecordRow(Base):
    __tablename__ = "knowledge_records"

    id: Mapped[str] = mapped_column(sa.String(64), primary_key=True)
    topic_id: Mapped[str | None] = mapped_column(sa.String(64), nullable=True, index=True)
    title: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    summary_text: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    decisions: Mapped[list] = mapped_column(sa.JSON, nullable=False, default=list)
    key_insights: Mapped[list] = mapped_column(sa.JSON, nullable=False, default=list)
    tags: Mapped[list] = mapped_column(sa.JSON, nullable=False, default=list)
    created_at: Mapped[datetime.datetime | None] = mapped_column(
        sa.DateTime(timezone=True), nullable=True, index=True
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "topic_id": self.topic_id,
            "title": self.title,
            "summary_text": self.summary_text,
            "decisions": list(self.decisions or []),
            "key_insights": list(self.key_insights or []),
            "tags": list(self.tags or []),
            "created_at": self.created_at,
        }


class TopicRow(Base):
    __tablename__ = "topics"

    id: Mapped[str] = mapped_column(sa.String(64), primary_key=True)
    name: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    tags: Mapped[list] = mapped_column(sa.JSON, nullable=False, default=list)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "tags": list(self.tags or [])}
