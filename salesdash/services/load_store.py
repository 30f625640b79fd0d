"""
Progressive load store
Owns the load lifecycle of one resource and publishes immutable state
snapshots to any number of readers.
"""
import asyncio
import contextlib
import dataclasses
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from salesdash.core.config import settings
from salesdash.core.exceptions import InvalidTransitionError, LoadAbortedError
from salesdash.models.enums import LoadPhase, Resource
from salesdash.services.progress import BatchRecord, EtaTracker, Progress
from salesdash.services.progressive_loader import (
    CancelToken,
    LoadEvent,
    LoadEventType,
    LoadLimits,
    PageFetcher,
    ProgressiveLoader,
)

logger = logging.getLogger(__name__)

# Legal phase changes; refetch may restart from any phase and reset/cancel may idle any phase
TRANSITIONS: Dict[LoadPhase, FrozenSet[LoadPhase]] = {
    LoadPhase.IDLE: frozenset({LoadPhase.LOADING_INITIAL}),
    LoadPhase.LOADING_INITIAL: frozenset({
        LoadPhase.LOADING_INITIAL,
        LoadPhase.LOADING_MORE,
        LoadPhase.COMPLETE,
        LoadPhase.ERRORED,
        LoadPhase.IDLE,
    }),
    LoadPhase.LOADING_MORE: frozenset({
        LoadPhase.LOADING_INITIAL,
        LoadPhase.COMPLETE,
        LoadPhase.ERRORED,
        LoadPhase.IDLE,
    }),
    LoadPhase.COMPLETE: frozenset({LoadPhase.LOADING_INITIAL, LoadPhase.IDLE}),
    LoadPhase.ERRORED: frozenset({LoadPhase.LOADING_INITIAL, LoadPhase.IDLE}),
}


def can_transition(source: LoadPhase, target: LoadPhase) -> bool:
    return target in TRANSITIONS[source]


@dataclass(frozen=True)
class LoadState:
    """Snapshot of one resource's load as seen by readers"""
    resource: Resource
    phase: LoadPhase = LoadPhase.IDLE
    data: Tuple[Any, ...] = ()
    progress: Progress = Progress()
    error: Optional[Exception] = None
    capped: bool = False
    batch_count: int = 0
    batches: Tuple[BatchRecord, ...] = ()
    last_update: Optional[datetime] = None
    eta_seconds: float = 0.0
    average_batch_seconds: float = 0.0
    generation: int = 0

    @property
    def is_loading(self) -> bool:
        return self.phase == LoadPhase.LOADING_INITIAL

    @property
    def is_loading_more(self) -> bool:
        return self.phase == LoadPhase.LOADING_MORE

    @property
    def is_complete(self) -> bool:
        return self.phase == LoadPhase.COMPLETE

    @property
    def is_errored(self) -> bool:
        return self.phase == LoadPhase.ERRORED

    @property
    def is_active(self) -> bool:
        return self.phase in (LoadPhase.LOADING_INITIAL, LoadPhase.LOADING_MORE)


Listener = Callable[[LoadState], None]


class ProgressiveStore:
    """
    Binds progressive loads of one resource to observable state.

    - `start()` is a no-op while a load is running, so repeated mounts or
      clicks never fan out into parallel fetches.
    - `refetch()` cancels whatever is running and starts over from scratch.
    - Every load gets a generation number and a cancel token; updates from
      an older generation are discarded, so a page that lands after a
      cancel or refetch cannot touch the state.
    - Page errors are surfaced in `error` without stopping the load; only a
      failure of the load as a whole ends in ERRORED. Nothing is retried
      automatically.
    """

    def __init__(
        self,
        resource: Resource,
        fetch_page: PageFetcher,
        limits: Optional[LoadLimits] = None,
        clock: Callable[[], float] = time.monotonic,
        history_size: Optional[int] = None,
    ):
        self.resource = resource
        self.limits = limits or LoadLimits.for_resource(resource)
        self._fetch_page = fetch_page
        self._eta = EtaTracker(clock=clock, history_size=history_size or settings.BATCH_HISTORY_SIZE)
        self._state = LoadState(resource=resource)
        self._listeners: List[Listener] = []
        self._generation = 0
        self._token: Optional[CancelToken] = None
        self._task: Optional[asyncio.Task] = None
        self._running = False

    # ========================================
    # Readers
    # ========================================

    @property
    def state(self) -> LoadState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def started_at(self) -> Optional[float]:
        """Clock reading when the current (or last) load started"""
        return self._eta.started_at

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for every state change; returns the unsubscribe callable"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def wait(self) -> LoadState:
        """Wait for the current load task (if any) to finish"""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait([task])
        return self._state

    # ========================================
    # Lifecycle
    # ========================================

    def start(self) -> bool:
        """Begin a load unless one is already running; True when started"""
        if self._running:
            logger.debug(f"{self.resource.value} load already running, start ignored")
            return False

        self._generation += 1
        generation = self._generation
        token = CancelToken()
        self._token = token
        self._running = True
        self._eta.start()

        self._commit(
            generation,
            LoadPhase.LOADING_INITIAL,
            data=(),
            progress=Progress(),
            error=None,
            capped=False,
            batch_count=0,
            batches=(),
            last_update=None,
            eta_seconds=0.0,
            average_batch_seconds=0.0,
            generation=generation,
        )

        logger.info(f"Starting {self.resource.value} load (generation {generation})")
        self._task = asyncio.create_task(self._run(generation, token))
        return True

    def refetch(self) -> bool:
        """Drop everything and load again from page 1"""
        self.cancel()
        return self.start()

    def cancel(self):
        """
        Stop the running load. A request already in flight is allowed to
        finish, but its result is discarded. Data received so far is kept.
        """
        if self._token is not None:
            self._token.cancel()
        self._generation += 1
        self._running = False

        if self._state.is_active:
            logger.info(f"Cancelled {self.resource.value} load")
            self._commit(self._generation, LoadPhase.IDLE, eta_seconds=0.0)

    async def close(self):
        """Tear down: cancel the load, stop outstanding requests, forget listeners"""
        self.cancel()
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        phase = None if self._state.phase == LoadPhase.IDLE else LoadPhase.IDLE
        self._commit(self._generation, phase, data=(), progress=Progress(), error=None)
        self._listeners.clear()

    # ========================================
    # Load task
    # ========================================

    async def _run(self, generation: int, token: CancelToken):
        loader = ProgressiveLoader(self.resource, self._fetch_page, self.limits, token)
        try:
            async for event in loader.events():
                if generation != self._generation:
                    return
                self._apply(generation, event)
        except Exception as e:
            logger.error(f"Error in progressive {self.resource.value} loading: {e}")
            self._commit(generation, LoadPhase.ERRORED, error=LoadAbortedError(self.resource.value, e))
        finally:
            if generation == self._generation:
                self._running = False

    def _apply(self, generation: int, event: LoadEvent):
        if event.type in (LoadEventType.INITIAL, LoadEventType.UPDATE):
            self._eta.record_batch(len(event.records), len(event.accumulated))
            phase = LoadPhase.LOADING_MORE if event.type == LoadEventType.INITIAL else None
            self._commit(
                generation,
                phase,
                data=event.accumulated,
                batch_count=self._eta.batch_count,
                batches=self._eta.history,
                last_update=datetime.now(timezone.utc),
                average_batch_seconds=self._eta.average_batch_seconds(),
            )

        elif event.type == LoadEventType.PROGRESS:
            self._commit(
                generation,
                None,
                progress=Progress.of(event.current, event.total),
                eta_seconds=self._eta.seconds_remaining(event.current, event.total),
            )

        elif event.type == LoadEventType.ERROR:
            if isinstance(event.error, LoadAbortedError):
                self._commit(generation, LoadPhase.ERRORED, error=event.error, eta_seconds=0.0)
            else:
                self._commit(generation, None, error=event.error)

        elif event.type == LoadEventType.COMPLETE:
            self._commit(
                generation,
                LoadPhase.COMPLETE,
                data=event.accumulated,
                progress=Progress.finished(event.current),
                capped=event.capped,
                last_update=datetime.now(timezone.utc),
                eta_seconds=0.0,
            )

    # ========================================
    # State mutation (single entry point)
    # ========================================

    def _commit(self, for_generation: int, phase: Optional[LoadPhase], **changes) -> bool:
        """Apply a change for `for_generation`; stale generations are ignored"""
        if for_generation != self._generation:
            logger.debug(f"Ignoring stale {self.resource.value} update (generation {for_generation})")
            return False

        current = self._state.phase
        if phase is not None:
            if not can_transition(current, phase):
                raise InvalidTransitionError(current, phase)
            changes["phase"] = phase

        self._state = dataclasses.replace(self._state, **changes)
        self._notify()
        return True

    def _notify(self):
        state = self._state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception(f"{self.resource.value} state listener failed")
