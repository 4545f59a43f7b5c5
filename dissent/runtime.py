"""Wire a ConflictEngine from settings: SQL record store, Redis ledger, judge router.

Used by the REST API dependency and by the CLI. Tests build engines directly
from the in-memory adapters instead.
"""

from __future__ import annotations

import logging

from dissent.config import Settings
from dissent.db.records import SqlRecordStore
from dissent.db.session import create_session_factory
from dissent.detection.engine import ConflictEngine
from dissent.judge.router import build_judge
from dissent.ledger.ledger import ConflictLedger
from dissent.ledger.stores import RedisConflictStore

logger = logging.getLogger(__name__)


def build_engine(settings: Settings) -> ConflictEngine:
    """Production engine for *settings*. No connection is opened until first use."""
    records = SqlRecordStore(create_session_factory(settings.database_url))
    ledger = ConflictLedger(RedisConflictStore.from_url(settings.redis_url, settings.conflicts_key))
    judge = build_judge(settings)
    logger.debug(
        "Runtime: engine built (judge enabled=%s, conflicts key=%s)",
        judge.has_enabled_provider(),
        settings.conflicts_key,
    )
    return ConflictEngine(records=records, ledger=ledger, judge=judge, settings=settings)
