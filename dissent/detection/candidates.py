"""Candidate discovery: decide which record pairs are worth comparing.

Comparing every record with every other record is quadratic in the corpus.
Discovery bounds the work to semantically related records:

  1. Records are partitioned into per-topic groups, sorted oldest first.
     Unassigned records (no topic) are never compared in a full scan.
  2. Intra-topic pass: every (older, newer) pair inside a group.
  3. Cross-topic pass: only for topic pairs whose tag overlap exceeds the
     configured threshold (0.5). Older/newer comes from the timestamps, not
     from iteration order.
  4. Matches scoring below the heuristic threshold (0.3) are dropped.
  5. Candidates are deduplicated by (older id, newer id, older content,
     newer content) and sorted by score, highest first.

Everything here is synchronous and deterministic: the same corpus yields the
same candidates in the same order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from dissent.heuristics.matcher import FragmentMatch, SignalMatcher
from dissent.heuristics.normalizer import tag_overlap
from dissent.models import Candidate, KnowledgeRecord, Topic

logger = logging.getLogger(__name__)

DEFAULT_SCORE_THRESHOLD = 0.3
DEFAULT_TAG_OVERLAP_THRESHOLD = 0.5

_default_matcher = SignalMatcher()


def _to_candidates(
    older: KnowledgeRecord,
    newer: KnowledgeRecord,
    matches: Iterable[FragmentMatch],
    threshold: float,
) -> list[Candidate]:
    return [
        Candidate(
            older_record_id=older.id,
            newer_record_id=newer.id,
            older_topic_id=older.topic_id,
            newer_topic_id=newer.topic_id,
            older_content=match.older_content,
            newer_content=match.newer_content,
            signals=match.signal_labels,
            heuristic_score=match.score,
        )
        for match in matches
        if match.score >= threshold
    ]


def deduplicate(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Keep the first candidate for each dedup key, preserving order."""
    seen: set[tuple[str, str, str, str]] = set()
    unique: list[Candidate] = []
    for candidate in candidates:
        if candidate.key in seen:
            continue
        seen.add(candidate.key)
        unique.append(candidate)
    return unique


def rank(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Deduplicate, then sort by heuristic score descending (stable)."""
    return sorted(deduplicate(candidates), key=lambda c: c.heuristic_score, reverse=True)


def group_by_topic(records: Iterable[KnowledgeRecord]) -> tuple[dict[str, list[KnowledgeRecord]], list[KnowledgeRecord]]:
    """Split records into chronological per-topic groups plus the unassigned bucket."""
    by_topic: dict[str, list[KnowledgeRecord]] = {}
    unassigned: list[KnowledgeRecord] = []
    for record in records:
        if record.topic_id:
            by_topic.setdefault(record.topic_id, []).append(record)
        else:
            unassigned.append(record)
    for group in by_topic.values():
        group.sort(key=lambda r: r.sort_key)
    return by_topic, unassigned


def find_candidates(
    records: list[KnowledgeRecord],
    topics: list[Topic],
    matcher: SignalMatcher | None = None,
    *,
    threshold: float = DEFAULT_SCORE_THRESHOLD,
    tag_overlap_threshold: float = DEFAULT_TAG_OVERLAP_THRESHOLD,
) -> list[Candidate]:
    """Scan a whole corpus for candidate contradictions. No external calls.

    Args:
        records:               Every knowledge record.
        topics:                Every topic (only their tags are used).
        matcher:               Signal matcher; the default pattern set when omitted.
        threshold:             Minimum heuristic score for a match to be kept.
        tag_overlap_threshold: Topic pairs must exceed this tag overlap to be
                               compared across topics.

    Returns:
        Deduplicated candidates sorted by heuristic score descending.
    """
    matcher = matcher or _default_matcher
    if len(records) < 2:
        return []

    topic_map = {topic.id: topic for topic in topics}
    by_topic, unassigned = group_by_topic(records)
    found: list[Candidate] = []

    # Intra-topic: every older/newer pair in each chronological group
    for group in by_topic.values():
        for i, older in enumerate(group):
            for newer in group[i + 1:]:
                found.extend(_to_candidates(older, newer, matcher.compare(older, newer), threshold))

    # Cross-topic: only between topics whose tags overlap enough
    topic_ids = list(by_topic)
    cross_pairs = 0
    for i, topic_a_id in enumerate(topic_ids):
        for topic_b_id in topic_ids[i + 1:]:
            topic_a = topic_map.get(topic_a_id)
            topic_b = topic_map.get(topic_b_id)
            if topic_a is None or topic_b is None:
                continue
            if tag_overlap(topic_a.tags, topic_b.tags) <= tag_overlap_threshold:
                continue

            cross_pairs += 1
            for record_a in by_topic[topic_a_id]:
                for record_b in by_topic[topic_b_id]:
                    if record_a.sort_key <= record_b.sort_key:
                        older, newer = record_a, record_b
                    else:
                        older, newer = record_b, record_a
                    found.extend(_to_candidates(older, newer, matcher.compare(older, newer), threshold))

    ranked = rank(found)
    logger.debug(
        "Discovery: %d topics, %d unassigned, %d cross-topic pairs, %d candidates",
        len(by_topic),
        len(unassigned),
        cross_pairs,
        len(ranked),
    )
    return ranked


def find_candidates_for_record(
    record: KnowledgeRecord,
    existing: list[KnowledgeRecord],
    matcher: SignalMatcher | None = None,
    *,
    threshold: float = DEFAULT_SCORE_THRESHOLD,
    tag_overlap_threshold: float = DEFAULT_TAG_OVERLAP_THRESHOLD,
) -> list[Candidate]:
    """Compare one newly created record against the comparable existing ones.

    Comparable means: same topic, or tag overlap with the new record above
    *tag_overlap_threshold*. The new record is always treated as the newer side,
    whatever its timestamp says.
    """
    matcher = matcher or _default_matcher
    found: list[Candidate] = []

    for other in existing:
        if other.id == record.id:
            continue
        same_topic = bool(record.topic_id) and other.topic_id == record.topic_id
        if not same_topic and tag_overlap(record.tags, other.tags) <= tag_overlap_threshold:
            continue
        found.extend(_to_candidates(other, record, matcher.compare(other, record), threshold))

    return rank(found)
