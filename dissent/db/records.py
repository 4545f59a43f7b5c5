"""Record store adapters: read knowledge records and topics for the engine.

The engine only calls ``get_all("records" | "topics")`` and gets plain dicts
back, validated into KnowledgeRecord / Topic on its side.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dissent.db.models import KnowledgeRecordRow, TopicRow
from dissent.db.session import session_scope
from dissent.interfaces import Collection

logger = logging.getLogger(__name__)

_TABLES = {
    "records": KnowledgeRecordRow,
    "topics": TopicRow,
}


class SqlRecordStore:
    """Reads the ``knowledge_records`` and ``topics`` tables.

    Args:
        session_factory: An ``async_sessionmaker`` from
                         ``dissent.db.session.create_session_factory``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get_all(self, collection: Collection) -> list[dict[str, Any]]:
        table = _TABLES.get(collection)
        if table is None:
            raise ValueError(f"unknown collection '{collection}'")

        async with session_scope(self.session_factory) as session:
            result = await session.execute(sa.select(table))
            rows = result.scalars().all()

        logger.debug("Record store: loaded %d %s", len(rows), collection)
        return [row.to_dict() for row in rows]


class MemoryRecordStore:
    """In-process record store, for tests and for checking exported data."""

    def __init__(
        self,
        records: list[dict[str, Any]] | None = None,
        topics: list[dict[str, Any]] | None = None,
    ) -> None:
        self._data: dict[str, list[dict[str, Any]]] = {
            "records": list(records or []),
            "topics": list(topics or []),
        }

    async def get_all(self, collection: Collection) -> list[dict[str, Any]]:
        if collection not in self._data:
            raise ValueError(f"unknown collection '{collection}'")
        return copy.deepcopy(self._data[collection])
