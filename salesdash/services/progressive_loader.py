"""
Progressive Loader
Turns sequential page fetches into one "load everything" operation that
reports each page as it arrives.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Sequence, Tuple

from salesdash.core.config import settings
from salesdash.core.exceptions import LoadAbortedError
from salesdash.models.enums import Resource
from salesdash.services.dashboard_api import PageResult
from salesdash.services.progress import estimate_total

logger = logging.getLogger(__name__)

PageFetcher = Callable[[Resource, int, int], Awaitable[PageResult]]


@dataclass(frozen=True)
class LoadLimits:
    """Paging knobs for one resource"""
    limit: int
    max_pages: int
    min_estimate: int
    page_delay: float = 0.0

    @classmethod
    def for_resource(cls, resource: Resource) -> "LoadLimits":
        if resource == Resource.SALES:
            return cls(
                limit=settings.SALES_PAGE_LIMIT,
                max_pages=settings.SALES_MAX_PAGES,
                min_estimate=settings.SALES_MIN_ESTIMATE,
                page_delay=settings.PAGE_DELAY_SECONDS,
            )
        if resource == Resource.CLIENTS:
            return cls(
                limit=settings.CLIENTS_PAGE_LIMIT,
                max_pages=settings.CLIENTS_MAX_PAGES,
                min_estimate=settings.CLIENTS_MIN_ESTIMATE,
                page_delay=settings.PAGE_DELAY_SECONDS,
            )
        raise ValueError(f"{resource.value} is not loaded progressively")


class CancelToken:
    """Per-invocation flag checked before every request and after every response"""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        self._cancelled = True


class LoadEventType(str, enum.Enum):
    INITIAL = "initial"
    UPDATE = "update"
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class LoadEvent:
    """
    One step of a progressive load.

    `records` is the page that just arrived (INITIAL/UPDATE); `accumulated`
    is everything received so far (INITIAL/UPDATE/COMPLETE).
    """
    type: LoadEventType
    page: int = 0
    records: Tuple[Any, ...] = ()
    accumulated: Tuple[Any, ...] = ()
    current: int = 0
    total: int = 0
    error: Optional[Exception] = None
    capped: bool = False


@dataclass
class LoadCallbacks:
    """Optional listeners for `ProgressiveLoader.load_all`"""
    on_initial_data: Optional[Callable[[Sequence[Any]], None]] = None
    on_data_update: Optional[Callable[[Sequence[Any], Sequence[Any]], None]] = None
    on_progress: Optional[Callable[[int, int], None]] = None
    on_complete: Optional[Callable[[Sequence[Any]], None]] = None
    on_error: Optional[Callable[[Exception], None]] = None


class ProgressiveLoader:
    """
    Loads every page of one collection, strictly one page at a time.

    The total size is unknown up front: a page shorter than the page size
    marks the end, and a safety cap on the page count bounds the work against
    an API that never returns a short page. A failed page is reported and
    skipped; loading goes on with the next page.

    One loader instance serves one logical load.
    """

    def __init__(
        self,
        resource: Resource,
        fetch_page: PageFetcher,
        limits: Optional[LoadLimits] = None,
        token: Optional[CancelToken] = None,
    ):
        self.resource = resource
        self.limits = limits or LoadLimits.for_resource(resource)
        self.token = token or CancelToken()
        self._fetch_page = fetch_page

    async def events(self) -> AsyncIterator[LoadEvent]:
        """
        Yield INITIAL, UPDATE, PROGRESS and ERROR events as pages arrive,
        then exactly one COMPLETE.

        A cancelled load stops without COMPLETE; a page that resolves after
        cancellation is dropped. A failure outside the page fetcher's own
        error handling ends the stream with an ERROR carrying LoadAbortedError.
        """
        limits = self.limits
        name = self.resource.value
        accumulated: List[Any] = []
        initial_sent = False
        last_ok = False
        capped = False

        for page in range(1, limits.max_pages + 1):
            # Fixed throttle from the third request on
            if page > 2 and last_ok and limits.page_delay > 0:
                await asyncio.sleep(limits.page_delay)

            if self.token.cancelled:
                logger.info(f"{name} load cancelled before page {page}")
                return

            try:
                result = await self._fetch_page(self.resource, page, limits.limit)
            except Exception as e:
                logger.error(f"Error in progressive {name} fetching at page {page}: {e}")
                yield LoadEvent(
                    LoadEventType.ERROR,
                    page=page,
                    current=len(accumulated),
                    error=LoadAbortedError(name, e),
                )
                return

            if self.token.cancelled:
                logger.info(f"Discarding {name} page {page} received after cancellation")
                return

            if result.error is not None:
                last_ok = False
                logger.error(f"Error fetching {name} page {page}, continuing: {result.error}")
                yield LoadEvent(
                    LoadEventType.ERROR,
                    page=page,
                    current=len(accumulated),
                    error=result.error,
                )
                continue

            last_ok = True
            records = tuple(result.records)
            page_length = result.page_length
            accumulated.extend(records)
            snapshot = tuple(accumulated)

            if records:
                if not initial_sent:
                    initial_sent = True
                    event_type = LoadEventType.INITIAL
                else:
                    event_type = LoadEventType.UPDATE
                yield LoadEvent(event_type, page=page, records=records, accumulated=snapshot)

            total = estimate_total(len(snapshot), limits.limit, page_length, limits.min_estimate)
            yield LoadEvent(LoadEventType.PROGRESS, page=page, current=len(snapshot), total=total)

            logger.debug(f"Fetched {len(records)} {name} on page {page} (Total: {len(snapshot)})")

            if page_length < limits.limit:
                break
        else:
            capped = True
            logger.warning(
                f"Reached maximum page limit ({limits.max_pages}) when fetching all {name}"
            )

        logger.info(f"Loaded {len(accumulated)} {name}{' (capped)' if capped else ''}")
        yield LoadEvent(
            LoadEventType.COMPLETE,
            accumulated=tuple(accumulated),
            current=len(accumulated),
            total=len(accumulated),
            capped=capped,
        )

    async def load_all(self, callbacks: Optional[LoadCallbacks] = None) -> List[Any]:
        """
        Run the load to the end, dispatching events to `callbacks`.

        Never raises for loading problems: they reach `on_error`. Returns all
        records on completion, or whatever arrived before a cancellation or
        a fatal error.
        """
        callbacks = callbacks or LoadCallbacks()
        accumulated: Tuple[Any, ...] = ()

        try:
            async for event in self.events():
                if event.type == LoadEventType.INITIAL:
                    accumulated = event.accumulated
                    if callbacks.on_initial_data:
                        callbacks.on_initial_data(event.records)
                elif event.type == LoadEventType.UPDATE:
                    accumulated = event.accumulated
                    if callbacks.on_data_update:
                        callbacks.on_data_update(event.records, event.accumulated)
                elif event.type == LoadEventType.PROGRESS:
                    if callbacks.on_progress:
                        callbacks.on_progress(event.current, event.total)
                elif event.type == LoadEventType.ERROR:
                    if callbacks.on_error:
                        callbacks.on_error(event.error)
                elif event.type == LoadEventType.COMPLETE:
                    accumulated = event.accumulated
                    if callbacks.on_complete:
                        callbacks.on_complete(event.accumulated)
        except Exception as e:
            logger.error(f"Error in progressive {self.resource.value} loading: {e}")
            if callbacks.on_error:
                callbacks.on_error(LoadAbortedError(self.resource.value, e))

        return list(accumulated)
