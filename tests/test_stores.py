"""Tests for the Redis conflict store and the SQL record store."""

import datetime
import json

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from dissent.db.models import Base, KnowledgeRecordRow, TopicRow
from dissent.db.records import MemoryRecordStore, SqlRecordStore
from dissent.db.session import create_session_factory, session_scope
from dissent.exceptions import LedgerError
from dissent.ledger.ledger import ConflictLedger
from dissent.ledger.stores import MemoryConflictStore, RedisConflictStore
from dissent.models import KnowledgeRecord
from tests.conftest import make_conflict


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the conflict store."""

    def __init__(self, data=None) -> None:
        self.data = dict(data or {})
        self.closed = False

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value
        return True

    async def aclose(self):
        self.closed = True


class TestRedisConflictStore:
    @pytest.mark.asyncio
    async def test_missing_key_reads_as_empty(self):
        assert await RedisConflictStore(FakeRedis()).get() == []

    @pytest.mark.asyncio
    async def test_round_trip_through_ledger(self):
        client = FakeRedis()
        ledger = ConflictLedger(RedisConflictStore(client, key="dissent:conflicts"))
        conflict = await ledger.create(make_conflict())

        stored = json.loads(client.data["dissent:conflicts"])
        assert [row["id"] for row in stored] == [conflict.id]
        assert stored[0]["status"] == "open"
        assert (await ledger.get(conflict.id)).key == conflict.key

    @pytest.mark.asyncio
    async def test_non_list_value_raises(self):
        store = RedisConflictStore(FakeRedis({"conflicts": '{"oops": 1}'}))
        with pytest.raises(ValueError):
            await store.get()

    @pytest.mark.asyncio
    async def test_non_list_value_is_never_overwritten(self):
        client = FakeRedis({"conflicts": '{"oops": 1}'})
        ledger = ConflictLedger(RedisConflictStore(client))

        with pytest.raises(LedgerError):
            await ledger.create(make_conflict())
        assert client.data["conflicts"] == '{"oops": 1}'
        assert await ledger.list_all() == []

    @pytest.mark.asyncio
    async def test_close(self):
        client = FakeRedis()
        await RedisConflictStore(client).close()
        assert client.closed is True

    def test_from_url_does_not_connect(self):
        store = RedisConflictStore.from_url("redis://localhost:6379/0", key="k")
        assert store.key == "k"


class TestMemoryStores:
    @pytest.mark.asyncio
    async def test_conflict_store_copies(self):
        store = MemoryConflictStore()
        rows = [{"id": "a"}]
        await store.set(rows)
        rows[0]["id"] = "mutated"
        assert await store.get() == [{"id": "a"}]
        assert store.writes == 1

    @pytest.mark.asyncio
    async def test_record_store_rejects_unknown_collection(self):
        with pytest.raises(ValueError):
            await MemoryRecordStore().get_all("users")


class TestSqlRecordStore:
    @pytest.mark.asyncio
    async def test_reads_records_and_topics(self, tmp_path):
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'knowledge.db'}")
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            factory = create_session_factory(engine=engine)
            async with session_scope(factory) as session:
                session.add_all([
                    KnowledgeRecordRow(
                        id="r1",
                        topic_id="t1",
                        title="Storage choice",
                        decisions=["Use PostgreSQL for storage"],
                        key_insights=[],
                        tags=["database"],
                        created_at=datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc),
                    ),
                    TopicRow(id="t1", name="Databases", tags=["database", "backend"]),
                ])
                await session.commit()

            store = SqlRecordStore(factory)
            records = await store.get_all("records")
            topics = await store.get_all("topics")

            assert [row["id"] for row in records] == ["r1"]
            record = KnowledgeRecord.model_validate(records[0])
            assert record.decisions == ["Use PostgreSQL for storage"]
            assert record.created_at.tzinfo is not None
            assert topics == [{"id": "t1", "name": "Databases", "tags": ["database", "backend"]}]

            with pytest.raises(ValueError):
                await store.get_all("users")
        finally:
            await engine.dispose()

    def test_session_factory_requires_url_or_engine(self):
        with pytest.raises(ValueError):
            create_session_factory()
