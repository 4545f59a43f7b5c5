"""Text normalization and set-similarity helpers.

Every comparison in the heuristic stage goes through ``tokenize``, so it is
kept pure and cheap: a couple of regex passes and one set construction per
call. No state, no I/O.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache
from typing import TYPE_CHECKING

from dissent.heuristics.patterns import STOPWORDS

if TYPE_CHECKING:
    from dissent.models import KnowledgeRecord

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")
_NON_TOKEN_CHARS = re.compile(r"[^a-z0-9\-]")
_TOKEN_SEPARATORS = re.compile(r"[\s\-]+")

_MIN_TOKEN_LENGTH = 2


def tokenize(
    text: object,
    stopwords: frozenset[str] = STOPWORDS,
    split_camel: bool = True,
) -> set[str]:
    """Split free text into a set of lowercase meaningful terms.

    camelCase boundaries are split before lowercasing (``fooBar`` → ``foo bar``),
    anything outside ``[a-z0-9-]`` becomes whitespace, and tokens shorter than
    two characters or present in *stopwords* are dropped.

    Args:
        text:        Raw input. Anything that is not a non-empty ``str`` yields
                     the empty set.
        stopwords:   Tokens to discard.
        split_camel: With False, mixed-case words stay whole (``PostgreSQL`` →
                     ``postgresql``). Technology names are matched this way.

    Returns:
        Deduplicated set of tokens (unordered).
    """
    if not text or not isinstance(text, str):
        return set()

    if split_camel:
        text = _CAMEL_BOUNDARY.sub(r"\1 \2", text)
    cleaned = _NON_TOKEN_CHARS.sub(" ", text.lower())
    return {
        word
        for word in _TOKEN_SEPARATORS.split(cleaned)
        if len(word) >= _MIN_TOKEN_LENGTH and word not in stopwords
    }


def jaccard_similarity(set_a: set[str] | frozenset[str], set_b: set[str] | frozenset[str]) -> float:
    """Return ``|A ∩ B| / |A ∪ B|``.

    Two empty sets score 0, not 1: empty fragments must never look similar.
    """
    if not set_a and not set_b:
        return 0.0
    intersection = len(set_a & set_b)
    union = len(set_a) + len(set_b) - intersection
    return intersection / union if union else 0.0


def tag_overlap(tags_a: Iterable[str] | None, tags_b: Iterable[str] | None) -> float:
    """Case-insensitive overlap coefficient ``|A ∩ B| / min(|A|, |B|)``.

    Returns 0 when either side is empty or missing.
    """
    set_a = {tag.lower() for tag in tags_a or ()}
    set_b = {tag.lower() for tag in tags_b or ()}
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / min(len(set_a), len(set_b))


def extract_keywords(
    record: KnowledgeRecord,
    stopwords: frozenset[str] = STOPWORDS,
    split_camel: bool = True,
) -> set[str]:
    """Aggregate keyword set of a record: title, decisions, insights and tags."""
    keywords: set[str] = set()
    for source in (record.title, *record.decisions, *record.key_insights, *record.tags):
        keywords |= tokenize(source, stopwords, split_camel)
    return keywords


# Phrases this short are matched verbatim ("not" must not match "noting")
_MIN_INFLECTED_LENGTH = 4


def _inflected(word: str) -> str:
    """Regex for *word* plus its regular verb/plural forms (stop → stopped)."""
    escaped = re.escape(word)
    if len(word) < _MIN_INFLECTED_LENGTH or not word[-1].isalpha():
        return escaped
    if word.endswith("e"):
        return rf"{escaped}(?:s|d)?|{re.escape(word[:-1])}ing"
    last = re.escape(word[-1])
    return rf"{escaped}(?:s|ed|ing|{last}ed|{last}ing)?"


@lru_cache(maxsize=512)
def _phrase_regex(phrase: str, inflect: bool) -> re.Pattern[str]:
    first, sep, rest = phrase.lower().partition(" ")
    head = _inflected(first) if inflect else re.escape(first)
    return re.compile(rf"(?<!\w)(?:{head}){re.escape(sep + rest)}(?!\w)")


def find_matching_phrases(
    text: str | None,
    phrases: Iterable[str],
    inflect: bool = True,
) -> list[str]:
    """Return the phrases that occur in *text* as whole words.

    Matching is case-insensitive and anchored on word boundaries. The first
    word of a phrase also matches its regular inflections, so ``remove``
    fires on ``removed`` and ``switch from`` on ``switched from``. ``not``
    does not fire inside ``note`` and ``reliable`` does not fire inside
    ``unreliable``. Pass ``inflect=False`` to match every phrase verbatim.
    """
    if not text:
        return []
    lower = text.lower()
    return [phrase for phrase in phrases if _phrase_regex(phrase, inflect).search(lower)]
