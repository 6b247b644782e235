"""Search engine: cache, filter, page and enrich symbol search results.

Consumed by both the MCP server and the CLI ``symatlas search`` command.

Flow: validate paging input → cached ranked list (or symbol provider →
relevance sort → kind filter → cache) → source / label-regex /
signature-regex post-filters → page slice → detail fetch → items.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger

from symbol_atlas.schema import (
    PageItem,
    ParsedDetail,
    SearchPage,
    SearchSource,
    normalize_kinds,
    payload_to_data,
    result_kind,
)
from symbol_atlas.search.cache import make_cache_key
from symbol_atlas.search.details import DetailFetcher
from symbol_atlas.search.scoring import sort_by_relevance

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from symbol_atlas.providers import DetailProvider, SymbolProvider
    from symbol_atlas.schema import SearchKind, SymbolResult
    from symbol_atlas.search.cache import SearchCache
    from symbol_atlas.settings import SearchSettings

DEFAULT_PAGE_SIZE = 200

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ApiSearchError(Exception):
    """Caller-correctable search error with a machine-readable code."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


def error_payload(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Structured error envelope ``{"ok": False, "error": {...}}``."""
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"ok": False, "error": error}


def to_error_payload(exc: BaseException) -> dict[str, Any] | None:
    """Error envelope for an :class:`ApiSearchError`, ``None`` for anything else."""
    if isinstance(exc, ApiSearchError):
        return error_payload(exc.code, exc.message, exc.details)
    return None


# ---------------------------------------------------------------------------
# Request validation
# ---------------------------------------------------------------------------


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def resolve_page_size(value: Any, default: int = DEFAULT_PAGE_SIZE) -> int:
    """Requested page size, or *default* when not given."""
    if value is None:
        return default
    if not _is_int(value) or value < 1:
        raise ApiSearchError(
            "INVALID_MAX_BATCH_RESULTS",
            f"Invalid maxBatchResults ({value!r}). Provide a positive integer.",
            {"receivedMaxBatchResults": value},
        )
    return value


def ensure_valid_search_index(search_index: Any, total: int) -> None:
    """Accept indices in ``[0, max(total - 1, 0)]``."""
    max_index = max(total - 1, 0)
    if _is_int(search_index) and 0 <= search_index <= max_index:
        return
    raise ApiSearchError(
        "INVALID_SEARCH_INDEX",
        f"Invalid searchIndex ({search_index!r}). Valid range is 0 to {max_index}. "
        "Use searchIndex=0 for the first query.",
        {
            "receivedSearchIndex": search_index,
            "validRange": {"min": 0, "max": max_index},
            "total": total,
        },
    )


_REGEX_LITERAL_RE = re.compile(r"^/(.*)/([a-z]*)$", re.DOTALL)
_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}
_IGNORED_FLAGS = frozenset("guy")


def parse_regex(text: str) -> re.Pattern[str]:
    """Compile ``/pattern/flags`` or a bare pattern (case-insensitive)."""
    literal = _REGEX_LITERAL_RE.match(text)
    if literal:
        pattern, flag_text = literal.groups()
        flags = 0
        for flag in flag_text:
            if flag in _REGEX_FLAGS:
                flags |= _REGEX_FLAGS[flag]
            elif flag not in _IGNORED_FLAGS:
                msg = f"Unsupported regex flag {flag!r} in {text!r}."
                raise ApiSearchError("INVALID_REGEX", msg, {"regex": text})
    else:
        pattern, flags = text, re.IGNORECASE
    try:
        return re.compile(pattern, flags)
    except re.error as exc:
        raise ApiSearchError("INVALID_REGEX", f"Invalid regex {text!r}: {exc}", {"regex": text}) from exc


def parse_source(value: Any) -> SearchSource:
    if value is None or value == "":
        return SearchSource.BOTH
    try:
        return SearchSource(str(value).strip().lower())
    except ValueError as exc:
        raise ApiSearchError(
            "INVALID_SOURCE",
            f"Invalid source ({value!r}). Supported values: native, script, both.",
            {"receivedSource": value},
        ) from exc


# ---------------------------------------------------------------------------
# Request / paging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SearchRequest:
    query: str
    search_index: Any = 0
    max_batch_results: Any = None
    include_docs: bool = False
    kinds: Sequence[str] | str = ()
    label_query_use_regex: bool = False
    signature_regex: str | None = None
    source: SearchSource | str | None = SearchSource.BOTH


@dataclass(frozen=True)
class PageSlice:
    results: list[SymbolResult]
    start_index: int
    end_index: int
    total: int
    next_start_index: int | None = None
    remaining_count: int = 0

    @property
    def truncated(self) -> bool:
        return self.end_index < self.total


def paginate(results: Sequence[SymbolResult], start_index: int, page_size: int) -> PageSlice:
    """Slice one page; ``next_start_index`` is ``None`` on the last page."""
    total = len(results)
    end_index = min(start_index + page_size, total)
    has_next = end_index < total
    return PageSlice(
        results=list(results[start_index:end_index]),
        start_index=start_index,
        end_index=end_index,
        total=total,
        next_start_index=end_index if has_next else None,
        remaining_count=max(0, total - end_index) if has_next else 0,
    )


def filter_by_kinds(results: Sequence[SymbolResult], kinds: frozenset[SearchKind]) -> list[SymbolResult]:
    """Keep results whose payload maps to a requested kind (all when *kinds* is empty)."""
    if not kinds:
        return list(results)
    return [result for result in results if result_kind(result.payload) in kinds]


def filter_by_source(results: Sequence[SymbolResult], source: SearchSource) -> list[SymbolResult]:
    if source is SearchSource.BOTH:
        return list(results)
    return [result for result in results if result.source.value == source.value]


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _ranked_results(
    query: str,
    kinds: frozenset[SearchKind],
    *,
    regex_mode: bool,
    symbols: SymbolProvider,
    cache: SearchCache,
) -> tuple[SymbolResult, ...]:
    key = make_cache_key(query, kinds, regex=regex_mode)
    cached = cache.get(key)
    if cached is not None:
        return cached

    if regex_mode:
        ranked = await symbols.search_all()
    else:
        ranked = sort_by_relevance(await symbols.search(query), query)
    filtered = filter_by_kinds(ranked, kinds)
    logger.debug("Search {!r}: {} results ({} after kind filter)", query, len(ranked), len(filtered))
    return cache.put(key, filtered)


def _empty_page(query: str, search_index: int) -> SearchPage:
    return SearchPage(
        query=query,
        start_index=search_index,
        next_start_index=None,
        remaining_count=0,
        total=0,
        returned=0,
        truncated=False,
        items=[],
    )


def _label_only(results: Sequence[SymbolResult]) -> list[ParsedDetail]:
    return [ParsedDetail(signature=result.label) for result in results]


async def build_search_page(
    request: SearchRequest,
    *,
    symbols: SymbolProvider,
    details: DetailProvider,
    cache: SearchCache,
    settings: SearchSettings | None = None,
    is_cancelled: Callable[[], bool] | None = None,
) -> SearchPage:
    """Serve one page of ranked, filtered, detail-enriched results.

    Raises :class:`ApiSearchError` for invalid paging/filter input.  Symbol
    provider failures propagate; detail provider failures degrade to labels.
    """
    default_size = settings.default_page_size if settings is not None else DEFAULT_PAGE_SIZE
    concurrency = settings.detail_concurrency if settings is not None else 10
    cancelled = is_cancelled or (lambda: False)

    query = request.query.strip()
    page_size = resolve_page_size(request.max_batch_results, default_size)
    source = parse_source(request.source)
    label_regex = parse_regex(query) if request.label_query_use_regex and query else None
    signature_text = (request.signature_regex or "").strip()
    signature_regex = parse_regex(signature_text) if signature_text else None

    if not query:
        ensure_valid_search_index(request.search_index, 0)
        return _empty_page(query, request.search_index)

    kinds = normalize_kinds(request.kinds)
    ranked = await _ranked_results(query, kinds, regex_mode=label_regex is not None, symbols=symbols, cache=cache)

    results = filter_by_source(ranked, source)
    if label_regex is not None:
        results = [result for result in results if label_regex.search(result.label)]

    fetcher = DetailFetcher(details, concurrency=concurrency)
    prefetched: list[ParsedDetail] | None = None
    if signature_regex is not None and results:
        # Signature filtering needs every candidate's details before paging.
        if cancelled():
            parsed = _label_only(results)
        else:
            parsed = await fetcher.fetch([result.payload for result in results])
        kept = [
            (result, detail)
            for result, detail in zip(results, parsed, strict=True)
            if signature_regex.search(detail.signature or result.label)
        ]
        results = [result for result, _ in kept]
        prefetched = [detail for _, detail in kept]

    ensure_valid_search_index(request.search_index, len(results))
    page = paginate(results, request.search_index, page_size)

    if not page.results:
        page_details: list[ParsedDetail] = []
    elif prefetched is not None:
        page_details = prefetched[page.start_index : page.end_index]
    elif cancelled():
        logger.debug("Search {!r} cancelled before detail fetch", query)
        page_details = _label_only(page.results)
    else:
        page_details = await fetcher.fetch([result.payload for result in page.results])

    items = [
        PageItem(
            signature=detail.signature or result.label,
            docs=detail.docs if request.include_docs else None,
            type=result.kind.value,
            data=payload_to_data(result.payload),
        )
        for result, detail in zip(page.results, page_details, strict=True)
    ]
    return SearchPage(
        query=query,
        start_index=page.start_index,
        next_start_index=page.next_start_index,
        remaining_count=page.remaining_count,
        total=page.total,
        returned=len(items),
        truncated=page.truncated,
        items=items,
    )
