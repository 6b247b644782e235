"""Phrase matcher: ordered, possibly non-contiguous token matching."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from symbol_atlas.search.tokenizer import PhraseGroup, SearchToken


def find_token(name: str, lower_name: str, token: SearchToken, cursor: int) -> int:
    """Index where *token* matches at or after *cursor*, or ``-1``.

    Separators are matched case-sensitively against *name*; a tight separator
    must start exactly at *cursor*.  Words are matched against *lower_name*.
    """
    if token.is_separator:
        index = name.find(token.value, cursor)
        if index != -1 and token.tight_prev and index != cursor:
            return -1
        return index
    return lower_name.find(token.value, cursor)


def group_matches(name: str, group: PhraseGroup) -> bool:
    """True if every token of *group* occurs in *name*, in order."""
    if not group:
        return False
    lower_name = name.lower()
    cursor = 0
    for token in group:
        index = find_token(name, lower_name, token, cursor)
        if index == -1:
            return False
        cursor = index + len(token.value)
    return True


class PhraseMatcher:
    """Predicate over names for a set of OR-ed phrase groups."""

    def __init__(self, groups: Sequence[PhraseGroup], *, accept_all: bool = False) -> None:
        self.groups = list(groups)
        self._accept_all = accept_all

    @classmethod
    def match_all(cls) -> PhraseMatcher:
        return cls([], accept_all=True)

    def can_complete(self, name: str) -> bool:
        if self._accept_all:
            return True
        return any(group_matches(name, group) for group in self.groups)
