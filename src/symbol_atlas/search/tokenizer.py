"""Query tokenizer.

A query is split on ``|`` into alternate phrase groups (OR).  Each group is an
ordered run of word tokens and structural separators (``.`` and ``::``).
Whitespace between tokens loosens matching: a separator typed directly after
the previous token (``UObject.``) must appear right where that token ended.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_TOKEN_RE = re.compile(r"::|\.|[A-Za-z0-9_]+")
_WHITESPACE_RE = re.compile(r"\s")

SEPARATORS = frozenset({".", "::"})


@dataclass(frozen=True)
class SearchToken:
    value: str  # lowercased for words, verbatim for separators
    is_separator: bool
    tight_prev: bool  # no whitespace between this token and the previous one


PhraseGroup = tuple[SearchToken, ...]


def tokenize_group(raw_group: str) -> PhraseGroup:
    """Tokenize one ``|``-free query fragment."""
    tokens: list[SearchToken] = []
    prev_end = -1
    for match in _TOKEN_RE.finditer(raw_group):
        text = match.group(0)
        is_separator = text in SEPARATORS
        tight = prev_end >= 0 and not _WHITESPACE_RE.search(raw_group, prev_end, match.start())
        tokens.append(
            SearchToken(
                value=text if is_separator else text.lower(),
                is_separator=is_separator,
                tight_prev=tight,
            )
        )
        prev_end = match.end()
    return tuple(tokens)


def tokenize(raw_query: str) -> list[PhraseGroup]:
    """Split *raw_query* into phrase groups, skipping empty ones."""
    groups: list[PhraseGroup] = []
    for raw_group in raw_query.split("|"):
        group = tokenize_group(raw_group)
        if group:
            groups.append(group)
    return groups
