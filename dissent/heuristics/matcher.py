"""Pairwise signal matcher: the heuristic core of contradiction mining.

Given two text fragments (older, newer) the matcher emits named, weighted
signals explaining why the pair might contradict, plus a composite score
capped to [0, 1]:

  negation_pattern         +0.25 + 0.05 per phrase   newer negates, shares tokens
  reverse_negation         +0.15                     older negates, shares tokens
  tech_switch              +0.35 per switch          newer moves away from something older uses
  prior_switch             +0.15 per switch          older's own switch is referenced by newer
  contradictory_adjective  +0.20 per antonym pair    "fast" in one, "slow" in the other
  temporal_override        +0.20 + 0.05 per phrase   "changed my mind", "after testing", ...
  overlap boost            +overlap * 0.3            only when Jaccard > 0.15

Fragments whose Jaccard similarity is below 0.05 are rejected before any
pattern work. A pair with no signals is dropped even if the overlap boost
alone would be large.

Two granularities are exposed:
  compare_items:   every (decision|insight) × (decision|insight) pair of two records
  compare_records: whole-record text, gated more strictly since it is noisier
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from dissent.heuristics.normalizer import (
    extract_keywords,
    find_matching_phrases,
    jaccard_similarity,
    tokenize,
)
from dissent.heuristics.patterns import DEFAULT_PATTERNS, PatternSet
from dissent.models import KnowledgeRecord


# Fragments below this overlap are unrelated
_MIN_OVERLAP = 0.05
# Overlap above which the boost applies
_OVERLAP_BOOST_THRESHOLD = 0.15
_OVERLAP_BOOST_FACTOR = 0.3

_NEGATION_BASE = 0.25
_REVERSE_NEGATION_WEIGHT = 0.15
_TECH_SWITCH_WEIGHT = 0.35
_PRIOR_SWITCH_WEIGHT = 0.15
_ADJECTIVE_WEIGHT = 0.2
_TEMPORAL_BASE = 0.2
_PER_PHRASE_BONUS = 0.05

_RECORD_TECH_SWITCH_SCORE = 0.3
_RECORD_ADJECTIVE_MIN_HITS = 2
_RECORD_ADJECTIVE_BASE = 0.2
_RECORD_ADJECTIVE_STEP = 0.1
_RECORD_ADJECTIVE_CAP = 0.7


@dataclass(frozen=True)
class Signal:
    """A named, explainable reason a pair was flagged."""

    kind: str
    weight: float
    detail: str
    evidence: dict[str, Any] = field(default_factory=dict, compare=False)

    def __str__(self) -> str:
        return f"{self.kind}: {self.detail}"


@dataclass(frozen=True)
class TechSwitch:
    old: str
    new: str
    phrase: str


@dataclass
class FragmentComparison:
    signals: list[Signal] = field(default_factory=list)
    score: float = 0.0
    overlap: float = 0.0


@dataclass
class FragmentMatch:
    """A flagged fragment pair, ready to become a candidate."""

    older_content: str
    newer_content: str
    older_kind: str
    newer_kind: str
    signals: list[Signal]
    score: float

    @property
    def signal_labels(self) -> list[str]:
        return [str(signal) for signal in self.signals]


def _clamp(score: float) -> float:
    return max(0.0, min(1.0, score))


def _quote(phrases: list[str]) -> str:
    return ", ".join(f'"{phrase}"' for phrase in phrases)


def _record_items(record: KnowledgeRecord) -> list[tuple[str, str]]:
    return [(text, "decision") for text in record.decisions] + [
        (text, "insight") for text in record.key_insights
    ]


def _record_text(record: KnowledgeRecord) -> str:
    return " ".join([record.title, record.summary_text, *record.decisions, *record.key_insights])


class SignalMatcher:
    """Computes contradiction signals between fragments and records.

    Args:
        patterns: Phrase and regex tables to match against. Defaults to the
                  shipped ``DEFAULT_PATTERNS``.
    """

    def __init__(self, patterns: PatternSet = DEFAULT_PATTERNS) -> None:
        self.patterns = patterns

    # ------------------------------------------------------------------
    # Primitive detectors
    # ------------------------------------------------------------------

    def tokenize(self, text: str, split_camel: bool = True) -> set[str]:
        return tokenize(text, self.patterns.stopwords, split_camel)

    def names(self, text: str) -> set[str]:
        """Tokens plus whole mixed-case words, for matching technology names."""
        return self.tokenize(text) | self.tokenize(text, split_camel=False)

    def detect_tech_switches(self, text: str) -> list[TechSwitch]:
        """Every ``old → new`` technology move stated in *text*."""
        if not text:
            return []
        switches = []
        for pattern in self.patterns.tech_switch_patterns:
            for match in pattern.finditer(text):
                switches.append(
                    TechSwitch(
                        old=match.group("old").lower(),
                        new=match.group("new").lower(),
                        phrase=match.group(0),
                    )
                )
        return switches

    def find_contradictory_adjectives(self, older: str, newer: str) -> list[tuple[str, str]]:
        """Antonym pairs split across the two texts, as (older adj, newer adj)."""
        if not older or not newer:
            return []
        found = []
        for first, second in self.patterns.adjective_pairs:
            older_hits = set(find_matching_phrases(older, (first, second), inflect=False))
            newer_hits = set(find_matching_phrases(newer, (first, second), inflect=False))
            if first in older_hits and second in newer_hits:
                found.append((first, second))
            elif second in older_hits and first in newer_hits:
                found.append((second, first))
        return found

    # ------------------------------------------------------------------
    # Fragment level
    # ------------------------------------------------------------------

    def compare_fragments(self, older: str, newer: str) -> FragmentComparison:
        """Score one older/newer fragment pair.

        Returns:
            FragmentComparison with the emitted signals, the clamped score
            (0 when no signal fired) and the raw Jaccard overlap.
        """
        older_tokens = self.tokenize(older)
        newer_tokens = self.tokenize(newer)
        if not older_tokens or not newer_tokens:
            return FragmentComparison()

        overlap = jaccard_similarity(older_tokens, newer_tokens)
        if overlap < _MIN_OVERLAP:
            return FragmentComparison(overlap=overlap)

        older_names = self.names(older)
        newer_names = self.names(newer)
        shared = sorted(older_tokens & newer_tokens)
        shared_label = ", ".join(shared)
        signals: list[Signal] = []

        negations = find_matching_phrases(newer, self.patterns.negation_phrases)
        if negations and shared:
            signals.append(Signal(
                kind="negation_pattern",
                weight=_NEGATION_BASE + _PER_PHRASE_BONUS * len(negations),
                detail=f"{_quote(negations)} with shared keywords [{shared_label}]",
                evidence={"phrases": negations, "shared": shared},
            ))

        older_negations = find_matching_phrases(older, self.patterns.negation_phrases)
        if older_negations and shared:
            signals.append(Signal(
                kind="reverse_negation",
                weight=_REVERSE_NEGATION_WEIGHT,
                detail=f"older says {_quote(older_negations)} with shared keywords [{shared_label}]",
                evidence={"phrases": older_negations, "shared": shared},
            ))

        for switch in self.detect_tech_switches(newer):
            if switch.old in older_names:
                signals.append(Signal(
                    kind="tech_switch",
                    weight=_TECH_SWITCH_WEIGHT,
                    detail=f'"{switch.phrase}" (older mentions {switch.old})',
                    evidence={"from": switch.old, "to": switch.new},
                ))

        for switch in self.detect_tech_switches(older):
            if switch.old in newer_names or switch.new in newer_names:
                signals.append(Signal(
                    kind="prior_switch",
                    weight=_PRIOR_SWITCH_WEIGHT,
                    detail=f'older had "{switch.phrase}"',
                    evidence={"from": switch.old, "to": switch.new},
                ))

        for older_adj, newer_adj in self.find_contradictory_adjectives(older, newer):
            signals.append(Signal(
                kind="contradictory_adjective",
                weight=_ADJECTIVE_WEIGHT,
                detail=f'"{older_adj}" vs "{newer_adj}"',
                evidence={"older": older_adj, "newer": newer_adj},
            ))

        overrides = find_matching_phrases(newer, self.patterns.temporal_override_phrases)
        if overrides and shared:
            signals.append(Signal(
                kind="temporal_override",
                weight=_TEMPORAL_BASE + _PER_PHRASE_BONUS * len(overrides),
                detail=f"{_quote(overrides)} with shared keywords [{shared_label}]",
                evidence={"phrases": overrides, "shared": shared},
            ))

        if not signals:
            return FragmentComparison(overlap=overlap)

        score = sum(signal.weight for signal in signals)
        if overlap > _OVERLAP_BOOST_THRESHOLD:
            score += overlap * _OVERLAP_BOOST_FACTOR

        return FragmentComparison(signals=signals, score=_clamp(score), overlap=overlap)

    # ------------------------------------------------------------------
    # Record level
    # ------------------------------------------------------------------

    def compare_items(self, older: KnowledgeRecord, newer: KnowledgeRecord) -> list[FragmentMatch]:
        """Compare every decision/insight of *older* with every one of *newer*."""
        matches: list[FragmentMatch] = []
        newer_items = _record_items(newer)
        if not newer_items:
            return matches

        for older_text, older_kind in _record_items(older):
            for newer_text, newer_kind in newer_items:
                comparison = self.compare_fragments(older_text, newer_text)
                if comparison.signals:
                    matches.append(FragmentMatch(
                        older_content=older_text,
                        newer_content=newer_text,
                        older_kind=older_kind,
                        newer_kind=newer_kind,
                        signals=comparison.signals,
                        score=comparison.score,
                    ))
        return matches

    def compare_records(self, older: KnowledgeRecord, newer: KnowledgeRecord) -> list[FragmentMatch]:
        """Whole-record pass catching thematic conflicts no single item pair shows.

        Broader text is noisier, so this pass only fires on a tech switch in the
        newer record against the older record's aggregate keywords, or on two or
        more antonym pairs between records that already overlap (> 0.15).
        """
        matches: list[FragmentMatch] = []
        stopwords = self.patterns.stopwords
        older_keywords = extract_keywords(older, stopwords)
        older_names = older_keywords | extract_keywords(older, stopwords, split_camel=False)

        for switch in self.detect_tech_switches(_record_text(newer)):
            if switch.old in older_names:
                matches.append(FragmentMatch(
                    older_content=f'Record "{older.title}" discusses {switch.old}',
                    newer_content=f'Record "{newer.title}" suggests: {switch.phrase}',
                    older_kind="record",
                    newer_kind="record",
                    signals=[Signal(
                        kind="record_tech_switch",
                        weight=_RECORD_TECH_SWITCH_SCORE,
                        detail=f'"{switch.phrase}" contradicts older knowledge about {switch.old}',
                        evidence={"from": switch.old, "to": switch.new},
                    )],
                    score=_RECORD_TECH_SWITCH_SCORE,
                ))

        newer_keywords = extract_keywords(newer, stopwords)
        if jaccard_similarity(older_keywords, newer_keywords) > _OVERLAP_BOOST_THRESHOLD:
            adjectives = self.find_contradictory_adjectives(_record_text(older), _record_text(newer))
            if len(adjectives) >= _RECORD_ADJECTIVE_MIN_HITS:
                score = min(
                    _RECORD_ADJECTIVE_BASE + _RECORD_ADJECTIVE_STEP * len(adjectives),
                    _RECORD_ADJECTIVE_CAP,
                )
                matches.append(FragmentMatch(
                    older_content=f'Record "{older.title}"',
                    newer_content=f'Record "{newer.title}"',
                    older_kind="record",
                    newer_kind="record",
                    signals=[
                        Signal(
                            kind="record_adjective_conflict",
                            weight=_RECORD_ADJECTIVE_STEP,
                            detail=f'"{older_adj}" vs "{newer_adj}"',
                            evidence={"older": older_adj, "newer": newer_adj},
                        )
                        for older_adj, newer_adj in adjectives
                    ],
                    score=score,
                ))

        return matches

    def compare(self, older: KnowledgeRecord, newer: KnowledgeRecord) -> list[FragmentMatch]:
        """Item-level then record-level matches for one ordered record pair."""
        return self.compare_items(older, newer) + self.compare_records(older, newer)
