"""Shared fixtures and fakes for the Dissent test suite."""

from __future__ import annotations

import asyncio
import datetime
import json
from collections.abc import Callable

import pytest

from dissent.config import Settings
from dissent.detection.engine import ConflictEngine
from dissent.db.records import MemoryRecordStore
from dissent.interfaces import Completion
from dissent.ledger.ledger import ConflictLedger
from dissent.ledger.stores import MemoryConflictStore
from dissent.models import Candidate, Conflict, ConflictMetadata, KnowledgeRecord

UTC = datetime.timezone.utc


def ts(year: int, month: int = 1, day: int = 1) -> datetime.datetime:
    return datetime.datetime(year, month, day, tzinfo=UTC)


def make_record(record_id: str, topic_id: str | None = "t1", created: datetime.datetime | None = None, **fields) -> KnowledgeRecord:
    return KnowledgeRecord(
        id=record_id,
        topic_id=topic_id,
        title=fields.pop("title", f"Record {record_id}"),
        created_at=created,
        **fields,
    )


def make_candidate(score: float = 0.9, older: str = "Use PostgreSQL for storage", newer: str = "Switched from PostgreSQL to MongoDB", **overrides) -> Candidate:
    values = dict(
        older_record_id="r1",
        newer_record_id="r2",
        older_topic_id="t1",
        newer_topic_id="t1",
        older_content=older,
        newer_content=newer,
        signals=["tech_switch: test"],
        heuristic_score=score,
    )
    values.update(overrides)
    return Candidate(**values)


def make_conflict(**overrides) -> Conflict:
    values = dict(
        older_record_id="r1",
        newer_record_id="r2",
        older_topic_id="t1",
        newer_topic_id="t1",
        older_content="Use PostgreSQL for storage",
        newer_content="Switched from PostgreSQL to MongoDB",
        metadata=ConflictMetadata(confidence_score=0.8, heuristic_score=0.7),
    )
    values.update(overrides)
    return Conflict(**values)


def verdict(is_conflict: bool = True, confidence: float = 0.9, **extra) -> str:
    body = {
        "isConflict": is_conflict,
        "type": "decision_conflict",
        "severity": "high",
        "analysis": "Opposite database choices.",
        "recommendation": "Keep the newer decision.",
        "confidenceScore": confidence,
    }
    body.update(extra)
    return json.dumps(body)


class FakeJudge:
    """In-process judgment service.

    *reply* is either a fixed string or a callable receiving the user prompt;
    a callable may raise to simulate a transport failure. *delay* works the
    same way and is awaited before replying.
    """

    def __init__(
        self,
        reply: str | Callable[[str], str] = "",
        enabled: bool = True,
        delay: float | Callable[[str], float] = 0.0,
    ) -> None:
        self.reply = reply or verdict()
        self.enabled = enabled
        self.delay = delay
        self.calls: list[list[dict[str, str]]] = []
        self.options: list[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def has_enabled_provider(self) -> bool:
        return self.enabled

    async def complete(self, messages, *, temperature=None, max_tokens=None, json_mode=False) -> Completion:
        self.calls.append(messages)
        self.options.append({"temperature": temperature, "max_tokens": max_tokens, "json_mode": json_mode})
        user_prompt = messages[-1]["content"]
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delay(user_prompt) if callable(self.delay) else self.delay
            await asyncio.sleep(delay)
            content = self.reply(user_prompt) if callable(self.reply) else self.reply
        finally:
            self.in_flight -= 1
        return Completion(content=content, model="fake-model", provider_type="fake", usage={"total_tokens": 42})


class FailingConflictStore:
    """Conflict store whose reads and/or writes raise."""

    def __init__(self, fail_get: bool = False, fail_set: bool = True) -> None:
        self.fail_get = fail_get
        self.fail_set = fail_set

    async def get(self):
        if self.fail_get:
            raise ConnectionError("store down")
        return []

    async def set(self, conflicts):
        if self.fail_set:
            raise ConnectionError("store down")


class FailingRecordStore:
    async def get_all(self, collection):
        raise ConnectionError("database unreachable")


# Corpus where one newer decision clearly reverses an older one
SWITCH_RECORDS = [
    {
        "id": "old",
        "topicId": "t-db",
        "title": "Storage choice",
        "decisions": ["Use PostgreSQL for storage"],
        "createdAt": "2024-01-01T00:00:00Z",
    },
    {
        "id": "new",
        "topicId": "t-db",
        "title": "Scaling review",
        "decisions": ["Actually switched from PostgreSQL to MongoDB after testing"],
        "createdAt": "2024-06-01T00:00:00Z",
    },
]
SWITCH_TOPICS = [{"id": "t-db", "name": "Databases", "tags": ["database", "backend"]}]


@pytest.fixture
def test_settings() -> Settings:
    return Settings(_env_file=None, judge_timeout_seconds=2.0)


@pytest.fixture
def conflict_store() -> MemoryConflictStore:
    return MemoryConflictStore()


@pytest.fixture
def ledger(conflict_store) -> ConflictLedger:
    return ConflictLedger(conflict_store)


@pytest.fixture
def record_store() -> MemoryRecordStore:
    return MemoryRecordStore(records=SWITCH_RECORDS, topics=SWITCH_TOPICS)


@pytest.fixture
def heuristic_engine(record_store, ledger, test_settings) -> ConflictEngine:
    return ConflictEngine(records=record_store, ledger=ledger, judge=None, settings=test_settings)
