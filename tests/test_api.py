"""Tests for the REST API, driven through FastAPI's TestClient."""

import pytest
from fastapi.testclient import TestClient

from dissent.api.app import create_app
from dissent.api.deps import get_engine
from dissent.db.records import MemoryRecordStore
from dissent.detection.engine import ConflictEngine
from dissent.ledger.ledger import ConflictLedger
from dissent.ledger.stores import MemoryConflictStore
from dissent.models import Severity
from tests.conftest import SWITCH_RECORDS, SWITCH_TOPICS, FailingRecordStore, make_conflict, ts


class ReadOnlyConflictStore(MemoryConflictStore):
    async def set(self, conflicts):
        raise ConnectionError("read-only replica")


def _client(engine: ConflictEngine) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_engine] = lambda: engine
    return TestClient(app)


def _engine(conflicts=(), store_cls=MemoryConflictStore, records=None, settings=None) -> ConflictEngine:
    store = store_cls([c.model_dump(mode="json") for c in conflicts])
    return ConflictEngine(
        records=records or MemoryRecordStore(records=SWITCH_RECORDS, topics=SWITCH_TOPICS),
        ledger=ConflictLedger(store),
        judge=None,
        settings=settings,
    )


@pytest.fixture
def seeded():
    high = make_conflict(severity=Severity.HIGH, older_topic_id="db", detected_at=ts(2024, 2))
    low = make_conflict(severity=Severity.LOW, older_record_id="r5", detected_at=ts(2024, 6))
    return high, low


def test_health():
    client = TestClient(create_app())
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "dissent"}


class TestQueries:
    def test_list_and_filters(self, seeded, test_settings):
        high, low = seeded
        client = _client(_engine(seeded, settings=test_settings))

        assert [c["id"] for c in client.get("/api/v1/conflicts").json()] == [high.id, low.id]
        assert [c["id"] for c in client.get("/api/v1/conflicts", params={"topic_id": "db"}).json()] == [high.id]
        assert [c["id"] for c in client.get("/api/v1/conflicts", params={"record_id": "r5"}).json()] == [low.id]
        assert client.get("/api/v1/conflicts", params={"status": "resolved"}).json() == []
        assert client.get("/api/v1/conflicts", params={"status": "nope"}).status_code == 422

    def test_open_is_sorted_by_severity(self, seeded, test_settings):
        high, low = seeded
        client = _client(_engine(seeded, settings=test_settings))
        assert [c["id"] for c in client.get("/api/v1/conflicts/open").json()] == [high.id, low.id]

    def test_stats(self, seeded, test_settings):
        client = _client(_engine(seeded, settings=test_settings))
        body = client.get("/api/v1/conflicts/stats").json()
        assert body["total"] == 2
        assert body["open"] == 2
        assert body["high_severity"] == 1
        assert body["low_severity"] == 1

    def test_get_one(self, seeded, test_settings):
        high, _ = seeded
        client = _client(_engine(seeded, settings=test_settings))

        response = client.get(f"/api/v1/conflicts/{high.id}")
        assert response.status_code == 200
        assert response.json()["severity"] == "high"
        assert client.get("/api/v1/conflicts/missing").status_code == 404


class TestLifecycle:
    def test_resolve(self, seeded, test_settings):
        high, _ = seeded
        client = _client(_engine(seeded, settings=test_settings))

        response = client.post(
            f"/api/v1/conflicts/{high.id}/resolve",
            json={"resolution": "keep_newer", "note": "moved to MongoDB"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "resolved"
        assert body["resolution"] == "keep_newer"
        assert body["resolution_note"] == "moved to MongoDB"
        assert body["resolved_at"] is not None

    def test_resolve_errors(self, seeded, test_settings):
        high, _ = seeded
        client = _client(_engine(seeded, settings=test_settings))

        bogus = client.post(f"/api/v1/conflicts/{high.id}/resolve", json={"resolution": "bogus"})
        assert bogus.status_code == 422
        missing = client.post("/api/v1/conflicts/missing/resolve", json={"resolution": "keep_older"})
        assert missing.status_code == 404
        assert client.get(f"/api/v1/conflicts/{high.id}").json()["status"] == "open"

    def test_dismiss(self, seeded, test_settings):
        _, low = seeded
        client = _client(_engine(seeded, settings=test_settings))

        response = client.post(f"/api/v1/conflicts/{low.id}/dismiss")
        assert response.status_code == 200
        assert response.json()["status"] == "dismissed"
        assert client.post("/api/v1/conflicts/missing/dismiss").status_code == 404

    def test_unwritable_store_returns_503(self, seeded, test_settings):
        high, _ = seeded
        client = _client(_engine(seeded, store_cls=ReadOnlyConflictStore, settings=test_settings))

        assert client.post(f"/api/v1/conflicts/{high.id}/resolve", json={"resolution": "keep_both"}).status_code == 503
        assert client.post(f"/api/v1/conflicts/{high.id}/dismiss").status_code == 503


class TestScans:
    def test_scan_without_body(self, test_settings):
        client = _client(_engine(settings=test_settings))

        body = client.post("/api/v1/conflicts/scan").json()
        assert body["found"] == 2
        assert body["verified"] == 1
        assert body["conflicts"][0]["newer_record_id"] == "new"

        again = client.post("/api/v1/conflicts/scan", json={}).json()
        assert again["verified"] == 0

    def test_scan_with_overrides(self, test_settings):
        client = _client(_engine(settings=test_settings))
        body = client.post("/api/v1/conflicts/scan", json={"heuristic_threshold": 0.9}).json()
        assert body["found"] == 1

    def test_scan_validates_body(self, test_settings):
        client = _client(_engine(settings=test_settings))
        assert client.post("/api/v1/conflicts/scan", json={"max_candidates": 0}).status_code == 422

    def test_check_record(self, test_settings):
        client = _client(_engine(settings=test_settings))

        response = client.post("/api/v1/conflicts/check/new", json={"use_ai": False})
        assert response.status_code == 200
        conflicts = response.json()
        assert [c["older_record_id"] for c in conflicts] == ["old"]
        assert client.post("/api/v1/conflicts/check/new").json() == []

    def test_check_unknown_record(self, test_settings):
        client = _client(_engine(settings=test_settings))
        assert client.post("/api/v1/conflicts/check/ghost").status_code == 404

    def test_check_with_record_store_down(self, test_settings):
        client = _client(_engine(records=FailingRecordStore(), settings=test_settings))
        assert client.post("/api/v1/conflicts/check/new").status_code == 503

    def test_check_malformed_record(self, test_settings):
        bad_row = {"id": "bad", "createdAt": "not a date", "decisions": ["Use PostgreSQL"]}
        records = MemoryRecordStore(records=SWITCH_RECORDS + [bad_row], topics=SWITCH_TOPICS)
        client = _client(_engine(records=records, settings=test_settings))

        response = client.post("/api/v1/conflicts/check/bad")
        assert response.status_code == 422
        assert response.json() == {"detail": "Record 'bad' is malformed."}
