"""ConflictEngine: the contradiction-mining pipeline wired to its collaborators.

Two entry paths end in the same ledger write:

  run_full_scan      discovery over the whole corpus → threshold filter → drop
                     pairs already in the ledger → verify (or heuristic-only)
                     → persist
  check_new_record   discovery for one just-created record → same tail

Degradation, in the order a scan meets it:
  - record store unreachable     → logged, empty result
  - no judge / judge disabled    → heuristic-only acceptance (score >= 0.5)
  - one judge call fails         → that candidate is dropped, the rest go on
  - one ledger write fails       → logged, the remaining conflicts still persist

No failure here is fatal; the worst outcome is "no new conflicts this run",
and every run is idempotent because candidates already in the ledger are
skipped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pydantic import ValidationError

from dissent.config import Settings, settings as default_settings
from dissent.detection.candidates import find_candidates, find_candidates_for_record
from dissent.detection.verification import build_heuristic_conflicts, verify_conflicts
from dissent.exceptions import LedgerError
from dissent.heuristics.matcher import SignalMatcher
from dissent.interfaces import JudgeService, RecordStore
from dissent.ledger.ledger import ConflictLedger
from dissent.models import Candidate, Conflict, KnowledgeRecord, ScanResult, Topic

logger = logging.getLogger(__name__)


def _validate_rows(rows: list[dict[str, Any]], model: type[KnowledgeRecord] | type[Topic]) -> list:
    items = []
    for row in rows or []:
        try:
            items.append(model.model_validate(row))
        except ValidationError as exc:
            logger.warning("Engine: skipping malformed %s row — %s", model.__name__, exc)
    return items


class ConflictEngine:
    """Runs candidate discovery, verification and persistence.

    Args:
        records:  Read-only record store holding records and topics.
        ledger:   The conflict ledger new conflicts are written to.
        judge:    Optional judgment service. ``None`` means heuristic-only.
        settings: Thresholds and limits. Defaults to the module settings.
        matcher:  Signal matcher, e.g. one built with a custom PatternSet.
    """

    def __init__(
        self,
        records: RecordStore,
        ledger: ConflictLedger,
        judge: JudgeService | None = None,
        settings: Settings | None = None,
        matcher: SignalMatcher | None = None,
    ) -> None:
        self.records = records
        self.ledger = ledger
        self.judge = judge
        self.settings = settings or default_settings
        self.matcher = matcher or SignalMatcher()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def judge_available(self) -> bool:
        if self.judge is None:
            return False
        try:
            return bool(self.judge.has_enabled_provider())
        except Exception as exc:
            logger.warning("Engine: could not query judge providers — %s", exc)
            return False

    async def _load_records(self) -> list[KnowledgeRecord]:
        return _validate_rows(await self.records.get_all("records"), KnowledgeRecord)

    async def _load_corpus(self) -> tuple[list[KnowledgeRecord], list[Topic]]:
        record_rows, topic_rows = await asyncio.gather(
            self.records.get_all("records"),
            self.records.get_all("topics"),
        )
        return _validate_rows(record_rows, KnowledgeRecord), _validate_rows(topic_rows, Topic)

    async def _persist(self, conflicts: list[Conflict]) -> list[Conflict]:
        stored = []
        for conflict in conflicts:
            try:
                stored.append(await self.ledger.create(conflict))
            except LedgerError as exc:
                logger.error("Engine: failed to store conflict %s — %s", conflict.id, exc)
        return stored

    async def _accept(self, candidates: list[Candidate], max_candidates: int, use_ai: bool = True) -> list[Conflict]:
        if use_ai and self.judge_available():
            return await self.verify_conflicts(candidates, max_candidates=max_candidates)

        if use_ai:
            logger.warning("Engine: no judge provider configured — using heuristic-only acceptance")
        return build_heuristic_conflicts(
            candidates,
            accept_threshold=self.settings.heuristic_accept_threshold,
            high_threshold=self.settings.heuristic_high_severity_threshold,
        )

    # ------------------------------------------------------------------
    # Produced interface
    # ------------------------------------------------------------------

    async def find_candidate_conflicts(self) -> list[Candidate]:
        """Heuristic discovery over the whole corpus. Never raises."""
        try:
            records, topics = await self._load_corpus()
        except Exception:
            logger.exception("Engine: failed to read records for candidate discovery")
            return []

        return find_candidates(
            records,
            topics,
            self.matcher,
            threshold=self.settings.heuristic_score_threshold,
            tag_overlap_threshold=self.settings.cross_topic_tag_overlap,
        )

    async def verify_conflicts(
        self,
        candidates: list[Candidate],
        max_candidates: int | None = None,
    ) -> list[Conflict]:
        """Judge the top candidates. Returns [] when no judge is available."""
        return await verify_conflicts(
            candidates,
            self.judge,
            max_candidates=self.settings.scan_max_candidates if max_candidates is None else max_candidates,
            batch_size=self.settings.verify_batch_size,
            confidence_threshold=self.settings.ai_confidence_threshold,
            timeout=self.settings.judge_timeout_seconds,
            temperature=self.settings.judge_temperature,
            max_tokens=self.settings.judge_max_tokens,
        )

    async def check_new_record(
        self,
        record: KnowledgeRecord | dict[str, Any],
        use_ai: bool = True,
    ) -> list[Conflict]:
        """Check a just-created record against comparable existing ones.

        The record is always treated as the newer side. Accepted conflicts
        are persisted; pairs already in the ledger are skipped.

        Args:
            record: The new record, as a model or a raw store row.
            use_ai: Verify with the judge when one is available. With False,
                    or with no judge, heuristic-only acceptance applies.

        Returns:
            The conflicts persisted by this call.
        """
        try:
            if isinstance(record, dict):
                record = KnowledgeRecord.model_validate(record)
        except ValidationError as exc:
            logger.warning("Engine: check_new_record called with an invalid record — %s", exc)
            return []
        if not record.id:
            logger.warning("Engine: check_new_record called with a record without id")
            return []

        try:
            existing = await self._load_records()
        except Exception:
            logger.exception("Engine: failed to read records for new record check")
            return []

        candidates = find_candidates_for_record(
            record,
            existing,
            self.matcher,
            threshold=self.settings.heuristic_score_threshold,
            tag_overlap_threshold=self.settings.cross_topic_tag_overlap,
        )
        if not candidates:
            return []

        known = await self.ledger.existing_keys()
        candidates = [c for c in candidates if c.key not in known]
        if not candidates:
            return []

        conflicts = await self._accept(
            candidates,
            max_candidates=self.settings.record_check_max_candidates,
            use_ai=use_ai,
        )
        stored = await self._persist(conflicts)
        if stored:
            logger.info("Engine: record %s produced %d new conflicts", record.id, len(stored))
        return stored

    async def run_full_scan(
        self,
        max_candidates: int | None = None,
        heuristic_threshold: float | None = None,
    ) -> ScanResult:
        """Run discovery, verification and persistence over the whole corpus.

        Args:
            max_candidates:      Candidates sent to the judge (default 20).
            heuristic_threshold: Minimum heuristic score to consider (default 0.3).

        Returns:
            ScanResult with ``found`` (candidates passing the threshold) and
            ``verified`` (conflicts persisted by this run).
        """
        if max_candidates is None:
            max_candidates = self.settings.scan_max_candidates
        if heuristic_threshold is None:
            heuristic_threshold = self.settings.heuristic_score_threshold

        logger.info("Engine: starting full conflict scan")
        candidates = await self.find_candidate_conflicts()
        filtered = [c for c in candidates if c.heuristic_score >= heuristic_threshold]
        logger.info(
            "Engine: %d heuristic candidates (from %d total pairs)",
            len(filtered),
            len(candidates),
        )
        if not filtered:
            return ScanResult()

        known = await self.ledger.existing_keys()
        new_candidates = [c for c in filtered if c.key not in known]
        logger.info(
            "Engine: %d new candidates after deduplication against existing conflicts",
            len(new_candidates),
        )
        if not new_candidates:
            return ScanResult(found=len(filtered))

        conflicts = await self._accept(new_candidates, max_candidates=max_candidates)
        stored = await self._persist(conflicts)
        logger.info("Engine: scan complete — %d found, %d stored", len(filtered), len(stored))
        return ScanResult(found=len(filtered), verified=len(stored), conflicts=stored)
