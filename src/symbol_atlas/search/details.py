"""Detail fetching and parsing.

The detail provider renders each symbol as a text blob: a fenced
``angelscript_snippet`` block holding the declaration, followed by free-form
documentation.  :func:`parse_details` splits that blob back apart;
:class:`DetailFetcher` requests blobs for a page of payloads, in one batch
when the provider supports it, otherwise with bounded concurrency.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, TypeVar

from loguru import logger

from symbol_atlas.schema import ParsedDetail

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from symbol_atlas.providers import DetailProvider
    from symbol_atlas.schema import Payload

T = TypeVar("T")

FENCE = "```"
SNIPPET_HEADER = f"{FENCE}angelscript_snippet"

_EMPTY = ParsedDetail(signature="")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_details(details: Any) -> ParsedDetail:
    """Split a detail blob into signature and optional docs."""
    if not isinstance(details, str):
        return _EMPTY
    trimmed = details.strip()
    if not trimmed:
        return _EMPTY

    header_index = details.find(SNIPPET_HEADER)
    if header_index == -1:
        return ParsedDetail(signature=trimmed)

    snippet_start = details.find("\n", header_index + len(SNIPPET_HEADER))
    if snippet_start == -1:
        return ParsedDetail(signature=trimmed)

    snippet_end = details.find(f"\n{FENCE}", snippet_start + 1)
    if snippet_end == -1:
        return ParsedDetail(signature=details[snippet_start + 1 :].rstrip())

    signature = details[snippet_start + 1 : snippet_end].rstrip()
    docs = details[snippet_end + len(FENCE) + 1 :].strip()
    return ParsedDetail(signature=signature, docs=docs or None)


# ---------------------------------------------------------------------------
# Bounded concurrency
# ---------------------------------------------------------------------------


class BoundedPool:
    """Run coroutine factories with at most ``limit`` in flight.

    A permit is acquired before each dispatch and released when that call
    completes; results come back in submission order.
    """

    def __init__(self, limit: int) -> None:
        if limit < 1:
            msg = f"Pool limit must be positive, got {limit}"
            raise ValueError(msg)
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self.in_flight = 0
        self.peak_in_flight = 0

    async def _run(self, factory: Callable[[], Awaitable[T]]) -> T:
        async with self._semaphore:
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
            try:
                return await factory()
            finally:
                self.in_flight -= 1

    async def map(self, factories: Sequence[Callable[[], Awaitable[T]]]) -> list[T]:
        return list(await asyncio.gather(*(self._run(factory) for factory in factories)))


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class DetailFetcher:
    """Fetch and parse details for a page of payloads.

    Never raises for provider failures: a failed batch yields empty details for
    every item, a failed individual request yields an empty detail for that item.
    """

    def __init__(self, provider: DetailProvider, *, concurrency: int = 10) -> None:
        self.provider = provider
        self.concurrency = concurrency

    async def fetch(self, payloads: Sequence[Payload]) -> list[ParsedDetail]:
        if not payloads:
            return []
        if self.provider.supports_batch:
            blobs = await self._fetch_batch(payloads)
        else:
            blobs = await self._fetch_each(payloads)
        return [parse_details(blob) for blob in blobs]

    async def _fetch_batch(self, payloads: Sequence[Payload]) -> list[str | None]:
        try:
            response = await self.provider.get_details_batch(list(payloads))
        except Exception as exc:
            logger.warning("Detail batch request failed for {} items: {}", len(payloads), exc)
            return [None] * len(payloads)
        if not isinstance(response, list):
            logger.warning("Detail batch returned {}, expected a list", type(response).__name__)
            return [None] * len(payloads)
        return [response[i] if i < len(response) else None for i in range(len(payloads))]

    async def _fetch_each(self, payloads: Sequence[Payload]) -> list[str | None]:
        pool = BoundedPool(self.concurrency)

        def _request(payload: Payload) -> Callable[[], Awaitable[str | None]]:
            async def _call() -> str | None:
                try:
                    return await self.provider.get_details(payload)
                except Exception as exc:
                    logger.debug("Detail request failed for {}: {}", payload, exc)
                    return None

            return _call

        return await pool.map([_request(payload) for payload in payloads])
