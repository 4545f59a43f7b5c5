"""Tests for the Typer CLI, with the engine swapped for an in-memory one."""

import asyncio
import importlib
import re
from unittest.mock import AsyncMock, MagicMock

import pytest
from typer.testing import CliRunner

from dissent.cli import app
from dissent.db.records import MemoryRecordStore
from dissent.detection.engine import ConflictEngine
from dissent.ledger.ledger import ConflictLedger
from dissent.ledger.stores import MemoryConflictStore
from dissent.models import ConflictStatus
from tests.conftest import SWITCH_RECORDS, SWITCH_TOPICS, FailingRecordStore, make_conflict

# dissent.cli re-exports the review command under the module's name
review_module = importlib.import_module("dissent.cli.review")

runner = CliRunner()


@pytest.fixture
def engine(monkeypatch, test_settings):
    engine = ConflictEngine(
        records=MemoryRecordStore(records=SWITCH_RECORDS, topics=SWITCH_TOPICS),
        ledger=ConflictLedger(MemoryConflictStore()),
        judge=None,
        settings=test_settings,
    )
    monkeypatch.setattr("dissent.cli.context.get_engine", lambda: engine)
    return engine


@pytest.fixture
def seeded_engine(monkeypatch, test_settings):
    conflict = make_conflict()
    engine = ConflictEngine(
        records=MemoryRecordStore(records=SWITCH_RECORDS, topics=SWITCH_TOPICS),
        ledger=ConflictLedger(MemoryConflictStore([conflict.model_dump(mode="json")])),
        judge=None,
        settings=test_settings,
    )
    monkeypatch.setattr("dissent.cli.context.get_engine", lambda: engine)
    return engine, conflict


def _status(engine, conflict_id):
    return asyncio.run(engine.ledger.get(conflict_id)).status


def test_scan_then_list_and_stats(engine):
    result = runner.invoke(app, ["scan"])
    assert result.exit_code == 0, result.output
    assert "Scan complete" in result.output
    assert "Candidates found: 2" in result.output
    assert "New conflicts stored: 1" in result.output

    listed = runner.invoke(app, ["list"])
    assert listed.exit_code == 0
    assert "Open conflicts" in listed.output

    stats = runner.invoke(app, ["stats"])
    assert stats.exit_code == 0
    assert re.search(r"Total:\s+1", stats.output)


def test_list_empty(engine):
    result = runner.invoke(app, ["list", "--all"])
    assert result.exit_code == 0
    assert "No conflicts." in result.output


def test_check(engine):
    unknown = runner.invoke(app, ["check", "ghost"])
    assert unknown.exit_code == 1
    assert "not found" in unknown.output

    first = runner.invoke(app, ["check", "new", "--no-ai"])
    assert first.exit_code == 0
    assert "New conflicts for new" in first.output

    second = runner.invoke(app, ["check", "new", "--no-ai"])
    assert second.exit_code == 0
    assert "No new conflicts" in second.output


def test_check_reports_store_failure(monkeypatch, test_settings):
    engine = ConflictEngine(
        records=FailingRecordStore(),
        ledger=ConflictLedger(MemoryConflictStore()),
        judge=None,
        settings=test_settings,
    )
    monkeypatch.setattr("dissent.cli.context.get_engine", lambda: engine)

    result = runner.invoke(app, ["check", "new"])
    assert result.exit_code == 1
    assert "Could not read the record store" in result.output
    assert "Traceback" not in result.output


def test_check_reports_malformed_record(monkeypatch, test_settings):
    bad_row = {"id": "bad", "createdAt": "not a date", "decisions": ["Use PostgreSQL"]}
    engine = ConflictEngine(
        records=MemoryRecordStore(records=SWITCH_RECORDS + [bad_row], topics=SWITCH_TOPICS),
        ledger=ConflictLedger(MemoryConflictStore()),
        judge=None,
        settings=test_settings,
    )
    monkeypatch.setattr("dissent.cli.context.get_engine", lambda: engine)

    result = runner.invoke(app, ["check", "bad"])
    assert result.exit_code == 1
    assert "is malformed" in result.output


def test_resolve_and_dismiss(seeded_engine):
    engine, conflict = seeded_engine

    bogus = runner.invoke(app, ["resolve", conflict.id, "bogus"])
    assert bogus.exit_code == 2
    assert "Invalid resolution" in bogus.output

    missing = runner.invoke(app, ["resolve", "missing", "keep_newer"])
    assert missing.exit_code == 1

    ok = runner.invoke(app, ["resolve", conflict.id, "keep_newer", "--note", "MongoDB it is"])
    assert ok.exit_code == 0, ok.output
    assert "Resolved" in ok.output
    assert _status(engine, conflict.id) == ConflictStatus.RESOLVED

    assert runner.invoke(app, ["dismiss", "missing"]).exit_code == 1


def test_dismiss(seeded_engine):
    engine, conflict = seeded_engine
    result = runner.invoke(app, ["dismiss", conflict.id])
    assert result.exit_code == 0
    assert "Dismissed" in result.output
    assert _status(engine, conflict.id) == ConflictStatus.DISMISSED


def _fake_select(answer):
    prompt = MagicMock()
    prompt.ask_async = AsyncMock(return_value=answer)
    return MagicMock(return_value=prompt)


def test_review_resolves_with_choice(seeded_engine, monkeypatch):
    engine, conflict = seeded_engine
    monkeypatch.setattr(review_module.questionary, "select", _fake_select(review_module.KEEP_NEWER))

    result = runner.invoke(app, ["review"])
    assert result.exit_code == 0, result.output
    assert "Session Summary" in result.output
    assert _status(engine, conflict.id) == ConflictStatus.RESOLVED


def test_review_custom_note(seeded_engine, monkeypatch):
    engine, conflict = seeded_engine
    monkeypatch.setattr(review_module.questionary, "select", _fake_select(review_module.CUSTOM))
    monkeypatch.setattr(review_module.questionary, "text", _fake_select("depends on workload"))

    result = runner.invoke(app, ["review"])
    assert result.exit_code == 0, result.output
    stored = asyncio.run(engine.ledger.get(conflict.id))
    assert stored.resolution_note == "depends on workload"


def test_review_skip_and_interrupt(seeded_engine, monkeypatch):
    engine, conflict = seeded_engine
    monkeypatch.setattr(review_module.questionary, "select", _fake_select(review_module.SKIP))
    assert runner.invoke(app, ["review"]).exit_code == 0
    assert _status(engine, conflict.id) == ConflictStatus.OPEN

    monkeypatch.setattr(review_module.questionary, "select", _fake_select(None))
    result = runner.invoke(app, ["review"])
    assert result.exit_code == 0
    assert "interrupted" in result.output


def test_review_nothing_open(engine, monkeypatch):
    monkeypatch.setattr(review_module.questionary, "select", _fake_select(review_module.KEEP_NEWER))
    result = runner.invoke(app, ["review"])
    assert result.exit_code == 0
    assert "All caught up" in result.output
