"""Tests for candidate discovery over a corpus and for a single new record."""

from dissent.detection.candidates import (
    deduplicate,
    find_candidates,
    find_candidates_for_record,
    group_by_topic,
    rank,
)
from dissent.models import KnowledgeRecord, Topic
from tests.conftest import SWITCH_RECORDS, SWITCH_TOPICS, make_candidate, make_record, ts


def _switch_corpus():
    records = [KnowledgeRecord.model_validate(row) for row in SWITCH_RECORDS]
    topics = [Topic.model_validate(row) for row in SWITCH_TOPICS]
    return records, topics


def test_switch_corpus_yields_ranked_candidates():
    records, topics = _switch_corpus()
    candidates = find_candidates(records, topics)

    assert [c.heuristic_score for c in candidates] == [1.0, 0.3]
    best = candidates[0]
    assert (best.older_record_id, best.newer_record_id) == ("old", "new")
    assert best.older_content == "Use PostgreSQL for storage"
    assert any(signal.startswith("tech_switch") for signal in best.signals)
    assert candidates[1].signals[0].startswith("record_tech_switch")


def test_discovery_is_deterministic():
    records, topics = _switch_corpus()
    first = find_candidates(records, topics)
    second = find_candidates(list(reversed(records)), topics)
    assert [c.key for c in first] == [c.key for c in second]
    assert [c.heuristic_score for c in first] == [c.heuristic_score for c in second]


def test_threshold_drops_low_scoring_matches():
    records, topics = _switch_corpus()
    candidates = find_candidates(records, topics, threshold=0.5)
    assert [c.heuristic_score for c in candidates] == [1.0]


def test_fewer_than_two_records():
    records, topics = _switch_corpus()
    assert find_candidates(records[:1], topics) == []
    assert find_candidates([], topics) == []


def test_unassigned_records_are_never_compared():
    records = [
        make_record("a", topic_id=None, created=ts(2024), decisions=["Use PostgreSQL for storage"]),
        make_record("b", topic_id=None, created=ts(2025), decisions=["Switched from PostgreSQL to MongoDB"]),
    ]
    assert find_candidates(records, []) == []


def test_cross_topic_pairs_are_ordered_by_timestamp():
    topics = [
        Topic(id="ta", tags=["db", "backend"]),
        Topic(id="tb", tags=["DB", "backend", "ops"]),
    ]
    records = [
        # Listed first and in the first topic, but chronologically newer
        make_record("x", topic_id="ta", created=ts(2024, 6), decisions=["Switched from PostgreSQL to MySQL"]),
        make_record("y", topic_id="tb", created=ts(2024, 1), decisions=["Use PostgreSQL for storage"]),
    ]
    candidates = find_candidates(records, topics)
    assert candidates
    assert all(c.older_record_id == "y" and c.newer_record_id == "x" for c in candidates)
    assert candidates[0].older_topic_id == "tb"
    assert candidates[0].newer_topic_id == "ta"


def test_cross_topic_requires_tag_overlap_above_threshold():
    topics = [Topic(id="ta", tags=["db", "frontend"]), Topic(id="tb", tags=["db", "mobile"])]
    records = [
        make_record("x", topic_id="ta", created=ts(2024, 6), decisions=["Switched from PostgreSQL to MySQL"]),
        make_record("y", topic_id="tb", created=ts(2024, 1), decisions=["Use PostgreSQL for storage"]),
    ]
    # Overlap is exactly 0.5, which does not exceed the threshold
    assert find_candidates(records, topics) == []
    assert find_candidates(records, topics, tag_overlap_threshold=0.4)


def test_missing_timestamps_sort_first_within_topic():
    records = [
        make_record("dated", created=ts(2024), decisions=["Switched from PostgreSQL to MongoDB"]),
        make_record("undated", created=None, decisions=["Use PostgreSQL for storage"]),
    ]
    by_topic, unassigned = group_by_topic(records)
    assert [r.id for r in by_topic["t1"]] == ["undated", "dated"]
    assert unassigned == []


def test_deduplicate_keeps_first_occurrence():
    first = make_candidate(score=0.4)
    duplicate = make_candidate(score=0.9)
    other = make_candidate(score=0.5, newer="Replace PostgreSQL with SQLite")
    assert deduplicate([first, duplicate, other]) == [first, other]


def test_rank_sorts_descending_and_is_stable():
    a = make_candidate(score=0.5, newer="a")
    b = make_candidate(score=0.8, newer="b")
    c = make_candidate(score=0.5, newer="c")
    assert rank([a, b, c]) == [b, a, c]


class TestSingleRecord:
    def test_new_record_is_always_the_newer_side(self):
        existing = [make_record("o", created=ts(2025), decisions=["Use PostgreSQL for storage"])]
        # Timestamp older than the existing record on purpose
        new = make_record("n", created=ts(2020), decisions=["Switched from PostgreSQL to MongoDB"])

        candidates = find_candidates_for_record(new, existing)
        assert candidates
        assert all(c.older_record_id == "o" and c.newer_record_id == "n" for c in candidates)

    def test_skips_itself(self):
        new = make_record("n", decisions=["Switched from PostgreSQL to MongoDB"])
        assert find_candidates_for_record(new, [new]) == []

    def test_other_topics_need_record_tag_overlap(self):
        older = make_record(
            "o", topic_id="t2", tags=["database", "backend"], decisions=["Use PostgreSQL for storage"]
        )
        tagged = make_record(
            "n", topic_id="t1", tags=["database", "backend"], decisions=["Switched from PostgreSQL to MongoDB"]
        )
        untagged = make_record("m", topic_id="t1", decisions=["Switched from PostgreSQL to MongoDB"])

        assert find_candidates_for_record(tagged, [older])
        assert find_candidates_for_record(untagged, [older]) == []

    def test_record_without_topic_only_matches_on_tags(self):
        older = make_record("o", topic_id=None, decisions=["Use PostgreSQL for storage"])
        new = make_record("n", topic_id=None, decisions=["Switched from PostgreSQL to MongoDB"])
        assert find_candidates_for_record(new, [older]) == []
