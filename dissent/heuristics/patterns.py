"""Static phrase and pattern tables for the contradiction heuristics.

The tables are plain data. ``SignalMatcher`` receives a ``PatternSet`` at
construction time, so tests (or a deployment tuned for another vocabulary) can
substitute their own tables without touching module state.

Tables:
  negation_phrases          — wording that negates or reverses a prior position
  tech_switch_patterns      — regexes capturing an ``old`` → ``new`` technology move
  adjective_pairs           — antonym pairs ("fast" vs "slow")
  temporal_override_phrases — wording that explicitly overrides an earlier opinion
  stopwords                 — tokens dropped by the normalizer
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

NEGATION_PHRASES: tuple[str, ...] = (
    "don't", "avoid", "instead", "rather than", "not", "never", "stop",
    "switch from", "migrate from", "replace", "drop", "remove", "abandon",
    "actually", "changed", "reconsidered", "on second thought", "turns out",
    "better alternative", "worse than expected", "doesn't work", "failed",
)

# Every pattern must expose the named groups ``old`` (what was moved away from)
# and ``new`` (what was moved to).
TECH_SWITCH_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"switch(?:ed|ing)?\s+(?:from\s+)?(?P<old>\w+)\s+to\s+(?P<new>\w+)", re.IGNORECASE),
    re.compile(r"migrat(?:e|ed|ing)\s+(?:from\s+)?(?P<old>\w+)\s+to\s+(?P<new>\w+)", re.IGNORECASE),
    re.compile(r"replac(?:e|ed|ing)\s+(?P<old>\w+)\s+with\s+(?P<new>\w+)", re.IGNORECASE),
    re.compile(r"(?P<new>\w+)\s+(?:is|was)\s+better\s+than\s+(?P<old>\w+)", re.IGNORECASE),
)

ADJECTIVE_PAIRS: tuple[tuple[str, str], ...] = (
    ("fast", "slow"),
    ("simple", "complex"),
    ("easy", "difficult"),
    ("lightweight", "heavy"),
    ("lightweight", "bloated"),
    ("secure", "insecure"),
    ("scalable", "unscalable"),
    ("reliable", "unreliable"),
    ("stable", "unstable"),
    ("performant", "slow"),
    ("modern", "outdated"),
    ("recommended", "deprecated"),
    ("good", "bad"),
    ("best", "worst"),
    ("better", "worse"),
    ("efficient", "inefficient"),
    ("clean", "messy"),
    ("maintainable", "unmaintainable"),
    ("readable", "unreadable"),
    ("flexible", "rigid"),
    ("mature", "immature"),
)

TEMPORAL_OVERRIDE_PHRASES: tuple[str, ...] = (
    "actually", "changed my mind", "on second thought", "after testing",
    "after trying", "after further review", "after more research",
    "i was wrong", "turns out", "in hindsight", "reconsidered",
    "updated my thinking", "revised my approach", "new approach",
    "better approach", "going forward", "instead we should", "no longer",
    "decided against", "backed off from", "moved away from",
    "pivoted to", "pivoting to", "switching to",
)

STOPWORDS: frozenset[str] = frozenset({
    "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "is", "it", "as", "be", "was", "were",
    "been", "are", "am", "do", "does", "did", "has", "had", "have", "will",
    "would", "could", "should", "may", "might", "can", "shall", "not", "no",
    "this", "that", "these", "those", "i", "you", "he", "she", "we", "they",
    "me", "him", "her", "us", "them", "my", "your", "his", "its", "our",
    "their", "what", "which", "who", "whom", "how", "when", "where", "why",
    "if", "then", "else", "so", "up", "out", "about", "into", "over",
    "after", "before", "between", "under", "again", "just", "also", "than",
    "very", "too", "some", "any", "all", "each", "every", "both", "few",
    "more", "most", "other", "such", "only", "same", "here", "there",
    "now", "once", "still", "already", "much", "many", "well",
    "back", "even", "new", "way", "use", "like", "get", "make", "go",
    "know", "take", "see", "come", "think", "look", "want", "give", "need",
    "tell", "say", "try", "ask", "work", "seem", "feel", "let", "keep",
    "help", "show", "put", "set", "run", "move", "play", "turn", "being",
    "thing", "things", "really", "using", "used", "one", "two", "first",
    "last", "long", "great", "little", "own", "old", "right", "while",
    "able", "done", "going", "something", "anything", "everything", "nothing",
})


@dataclass(frozen=True)
class PatternSet:
    """Bundle of the tables consulted by ``SignalMatcher``."""

    negation_phrases: tuple[str, ...] = NEGATION_PHRASES
    tech_switch_patterns: tuple[re.Pattern[str], ...] = TECH_SWITCH_PATTERNS
    adjective_pairs: tuple[tuple[str, str], ...] = ADJECTIVE_PAIRS
    temporal_override_phrases: tuple[str, ...] = TEMPORAL_OVERRIDE_PHRASES
    stopwords: frozenset[str] = field(default=STOPWORDS)


DEFAULT_PATTERNS = PatternSet()
