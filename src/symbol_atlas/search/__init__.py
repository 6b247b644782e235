"""Search package — tokenizing, matching, ranking, caching and paging symbol results."""

from __future__ import annotations

from symbol_atlas.search.cache import SearchCache, make_cache_key
from symbol_atlas.search.details import BoundedPool, DetailFetcher, parse_details
from symbol_atlas.search.engine import (
    ApiSearchError,
    SearchRequest,
    build_search_page,
    error_payload,
    paginate,
    parse_regex,
    to_error_payload,
)
from symbol_atlas.search.matcher import PhraseMatcher
from symbol_atlas.search.scoring import relevance_score, score_name, sort_by_relevance
from symbol_atlas.search.tokenizer import SearchToken, tokenize
from symbol_atlas.search.walker import ExclusionRules, list_namespace, search_symbols

__all__ = [
    "ApiSearchError",
    "BoundedPool",
    "DetailFetcher",
    "ExclusionRules",
    "PhraseMatcher",
    "SearchCache",
    "SearchRequest",
    "SearchToken",
    "build_search_page",
    "error_payload",
    "list_namespace",
    "make_cache_key",
    "paginate",
    "parse_details",
    "parse_regex",
    "relevance_score",
    "score_name",
    "search_symbols",
    "sort_by_relevance",
    "to_error_payload",
    "tokenize",
]
