"""
Fallback and bounded-scan combinators used by the proxy layer.

The content API has no "chapters in juz N" endpoint and several translation
resources that may be empty for a given chapter.  Both problems are solved by
trying upstream calls in a loop; the loops live here so they can be tested
without HTTP.

``first_success``
    Try an ordered list of candidates and keep the first acceptable result.

``BoundedScan``
    Walk numbered pages accumulating distinct ids until one of several
    stopping predicates fires.  Running out of time or pages is a normal
    outcome, reported through :class:`StopReason`, never an exception.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Awaitable,
    Callable,
    Hashable,
    Iterable,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from quran_proxy.errors import QuranApiError

logger = logging.getLogger(__name__)

C = TypeVar("C")
R = TypeVar("R")


async def first_success(
    candidates: Sequence[C],
    fetch: Callable[[C], Awaitable[R]],
    accept: Callable[[R], bool],
) -> Optional[Tuple[C, R]]:
    """
    Return the first candidate whose fetched result is accepted.

    Candidates are tried strictly in order and the loop stops at the first
    accepted result, so later candidates are never fetched.  A candidate whose
    fetch raises :class:`QuranApiError` is logged and skipped.

    Args:
        candidates: Ordered candidates, e.g. translation resource ids.
        fetch: Coroutine function producing a result for one candidate.
        accept: Predicate deciding whether a result is usable.

    Returns:
        ``(candidate, result)`` for the first accepted result, or ``None``
        when every candidate failed or was rejected.
    """
    for candidate in candidates:
        try:
            result = await fetch(candidate)
        except QuranApiError as exc:
            logger.warning("Candidate %r failed: %s", candidate, exc)
            continue

        if accept(result):
            logger.debug("Candidate %r accepted", candidate)
            return candidate, result

        logger.debug("Candidate %r rejected", candidate)
    return None


class StopReason(str, Enum):
    """Why a :class:`BoundedScan` stopped."""

    EXHAUSTED = "exhausted"      # upstream reported no further pages
    EMPTY_PAGE = "empty_page"    # a page came back with no items
    STALE = "stale"              # too many consecutive pages added nothing
    PAGE_LIMIT = "page_limit"
    TIME_BUDGET = "time_budget"
    COMPLETE = "complete"        # every possible id has been seen


@dataclass
class ScanPage:
    """One fetched page, reduced to what the scan needs."""

    ids: Iterable[Hashable]
    has_more: bool
    item_count: int


@dataclass
class ScanResult:
    ids: set = field(default_factory=set)
    pages_fetched: int = 0
    stop_reason: Optional[StopReason] = None
    elapsed: float = 0.0


class BoundedScan:
    """
    Accumulate distinct ids over numbered pages with hard bounds.

    Stops as soon as any of these holds:

    * ``max_stale_pages`` consecutive pages contributed no new id;
    * ``max_pages`` pages have been fetched;
    * ``time_budget`` seconds have elapsed (checked before each fetch);
    * ``target_size`` distinct ids have been collected;
    * the page was empty or upstream reports no next page.

    Fetch errors are not caught; they abort the scan.
    """

    def __init__(
        self,
        max_pages: int = 5,
        max_stale_pages: int = 2,
        time_budget: float = 10.0,
        target_size: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_pages < 1 or max_stale_pages < 1:
            raise ValueError("max_pages and max_stale_pages must be positive")
        self.max_pages = max_pages
        self.max_stale_pages = max_stale_pages
        self.time_budget = time_budget
        self.target_size = target_size
        self._clock = clock

    async def run(self, fetch_page: Callable[[int], Awaitable[ScanPage]]) -> ScanResult:
        result = ScanResult()
        started = self._clock()
        stale = 0
        page_number = 1

        while True:
            if result.pages_fetched >= self.max_pages:
                result.stop_reason = StopReason.PAGE_LIMIT
                break
            if self._clock() - started >= self.time_budget:
                result.stop_reason = StopReason.TIME_BUDGET
                break

            page = await fetch_page(page_number)
            result.pages_fetched += 1

            if page.item_count == 0:
                result.stop_reason = StopReason.EMPTY_PAGE
                break

            before = len(result.ids)
            result.ids.update(page.ids)
            new_ids = len(result.ids) - before
            stale = 0 if new_ids else stale + 1
            logger.debug(
                "Scan page %d: %d items, %d new ids (stale=%d)",
                page_number,
                page.item_count,
                new_ids,
                stale,
            )

            if self.target_size is not None and len(result.ids) >= self.target_size:
                result.stop_reason = StopReason.COMPLETE
                break
            if stale >= self.max_stale_pages:
                result.stop_reason = StopReason.STALE
                break
            if not page.has_more:
                result.stop_reason = StopReason.EXHAUSTED
                break

            page_number += 1

        result.elapsed = self._clock() - started
        return result
