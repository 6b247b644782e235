"""Relevance scoring.

Two scorers live here:

* **Structured** (:func:`score_name`) — scores a symbol name against tokenized
  phrase groups.  Rewards matches at the start of the name, on word and
  camelCase boundaries, and on uppercase letters, so ``act loc`` ranks
  ``GetActorLocation`` by where a reader's eye would land.
* **Simple** (:func:`relevance_score`) — tiered scoring of a display label
  against the raw query string (exact > prefix > word start > substring >
  ordered words > all words), used for the final ranking of a result list.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from symbol_atlas.search.matcher import find_token

if TYPE_CHECKING:
    from collections.abc import Sequence

    from symbol_atlas.schema import SymbolResult
    from symbol_atlas.search.tokenizer import PhraseGroup

NO_MATCH = -1

# Structured-mode weights
_START_BONUS = 200
_BOUNDARY_BONUS = 150
_UPPER_CHAR_BONUS = 25
_UPPER_FIRST_BONUS = 40
_POSITION_DECAY = 100
_LENGTH_DECAY = 20
_EXACT_BONUS = 300
_SHORT_NAME_DECAY = 50
_SEPARATOR_BONUS = {"::": 60, ".": 40}

# Simple-mode tiers
TIER_EXACT = 1000
TIER_PREFIX = 900
TIER_WORD_START = 850
TIER_SUBSTRING = 700
TIER_ORDERED_WORDS = 650
TIER_ALL_WORDS = 600

_WORD_QUERY_RE = re.compile(r"^[a-z0-9_]+$")


def _is_word_char(char: str) -> bool:
    return char.isascii() and (char.isalnum() or char == "_")


def _is_upper(char: str) -> bool:
    return "A" <= char <= "Z"


def _is_lower(char: str) -> bool:
    return "a" <= char <= "z"


def is_boundary(name: str, index: int) -> bool:
    """Start of string, after a non-word char, or a lower→upper camelCase step."""
    if index <= 0:
        return True
    prev, curr = name[index - 1], name[index]
    if not _is_word_char(prev):
        return True
    return _is_lower(prev) and _is_upper(curr)


def _score_uppercase(name: str, index: int, length: int) -> int:
    score = sum(_UPPER_CHAR_BONUS for char in name[index : index + length] if _is_upper(char))
    if index < len(name) and _is_upper(name[index]):
        score += _UPPER_FIRST_BONUS
    return score


def score_token(name: str, index: int, length: int) -> int:
    """Score one word-token match of *length* chars at *index* in *name*."""
    score = 0
    if index == 0:
        score += _START_BONUS
    if is_boundary(name, index):
        score += _BOUNDARY_BONUS
    score += _score_uppercase(name, index, length)
    score += max(0, _POSITION_DECAY - index)
    score += max(0, _LENGTH_DECAY - length)
    return score


def score_group(name: str, group: PhraseGroup, lower_name: str | None = None) -> int:
    """Structured score of *name* for one phrase group, or :data:`NO_MATCH`."""
    if not group:
        return NO_MATCH
    if lower_name is None:
        lower_name = name.lower()

    cursor = 0
    score = 0
    for token in group:
        index = find_token(name, lower_name, token, cursor)
        if index == -1:
            return NO_MATCH
        if token.is_separator:
            score += _SEPARATOR_BONUS[token.value]
        else:
            score += score_token(name, index, len(token.value))
        cursor = index + len(token.value)

    if len(group) == 1 and not group[0].is_separator and lower_name == group[0].value:
        score += _EXACT_BONUS

    score += max(0, _SHORT_NAME_DECAY - len(name))
    return score


def score_name(name: str, groups: Sequence[PhraseGroup]) -> int:
    """Best structured score across *groups*; :data:`NO_MATCH` if none match."""
    if not name:
        return NO_MATCH
    lower_name = name.lower()
    return max((score_group(name, group, lower_name) for group in groups), default=NO_MATCH)


# ---------------------------------------------------------------------------
# Simple mode
# ---------------------------------------------------------------------------


def _tokens_in_order(text: str, tokens: list[str]) -> bool:
    cursor = 0
    for token in tokens:
        index = text.find(token, cursor)
        if index == -1:
            return False
        cursor = index + len(token)
    return True


def relevance_score(label: str, query: str) -> int:
    """Tiered relevance of *label* for the raw *query* (0 = no match)."""
    normalized_label = label.lower()
    normalized_query = query.lower()
    if not normalized_query:
        return 0
    if normalized_label == normalized_query:
        return TIER_EXACT

    score = 0
    if normalized_label.startswith(normalized_query):
        score = max(score, TIER_PREFIX)

    if _WORD_QUERY_RE.match(normalized_query):
        if re.search(rf"\b{re.escape(normalized_query)}", normalized_label):
            score = max(score, TIER_WORD_START)

    if normalized_query in normalized_label:
        score = max(score, TIER_SUBSTRING)

    tokens = normalized_query.split()
    if len(tokens) > 1:
        if _tokens_in_order(normalized_label, tokens):
            score = max(score, TIER_ORDERED_WORDS)
        elif all(token in normalized_label for token in tokens):
            score = max(score, TIER_ALL_WORDS)

    return score


def sort_by_relevance(results: Sequence[SymbolResult], query: str) -> list[SymbolResult]:
    """Rank by simple score, then shorter label, then original position."""
    scores = {id(result): relevance_score(result.label, query) for result in results}
    return sorted(
        results,
        key=lambda result: (-scores[id(result)], len(result.label), result.index),
    )
