"""
Progressive load endpoints
Status snapshots, manual refetch and a live NDJSON stream per resource.
"""
import asyncio
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from salesdash.core.context import DashboardContext
from salesdash.core.deps import get_context, require_admin
from salesdash.models.enums import Resource
from salesdash.schemas.common import DataResponse
from salesdash.schemas.loading import (
    BatchResponse,
    LoadStatusResponse,
    LoadsOverview,
    ProgressResponse,
)
from salesdash.services.load_store import LoadState, ProgressiveStore
from salesdash.services.progress import Progress

router = APIRouter(prefix="/loads", tags=["Loads"], dependencies=[Depends(require_admin)])


def _progress(progress: Progress) -> ProgressResponse:
    return ProgressResponse(
        current=progress.current,
        total=progress.total,
        percentage=progress.percentage,
        is_estimate=progress.is_estimate,
    )


def to_status(state: LoadState, started_at: Optional[float] = None) -> LoadStatusResponse:
    """Serialize a store snapshot"""
    origin = started_at if started_at is not None else 0.0
    return LoadStatusResponse(
        resource=state.resource,
        phase=state.phase,
        is_loading=state.is_loading,
        is_loading_more=state.is_loading_more,
        is_complete=state.is_complete,
        is_errored=state.is_errored,
        count=len(state.data),
        progress=_progress(state.progress),
        error=str(state.error) if state.error else None,
        capped=state.capped,
        batch_count=state.batch_count,
        batches=[
            BatchResponse(
                index=batch.index,
                size=batch.size,
                total=batch.total,
                seconds_since_start=max(batch.at - origin, 0.0),
            )
            for batch in state.batches
        ],
        last_update=state.last_update,
        eta_seconds=state.eta_seconds,
        average_batch_seconds=state.average_batch_seconds,
        generation=state.generation,
    )


def overview(context: DashboardContext) -> LoadsOverview:
    """Both loads plus combined progress (sum of currents over sum of totals)"""
    states = [store.state for store in context.stores.values()]
    combined = Progress()
    for state in states:
        combined = combined + state.progress
    return LoadsOverview(
        loads=[to_status(store.state, store.started_at) for store in context.stores.values()],
        combined=_progress(combined),
        all_complete=all(state.is_complete for state in states),
    )


def _store(context: DashboardContext, resource: Resource) -> ProgressiveStore:
    if resource not in context.stores:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource.value} is not loaded progressively"
        )
    return context.store(resource)


@router.get("", response_model=DataResponse[LoadsOverview])
def list_loads(context: DashboardContext = Depends(get_context)):
    """Status of every progressive load"""
    return DataResponse(data=overview(context))


@router.get("/{resource}", response_model=DataResponse[LoadStatusResponse])
def get_load(resource: Resource, context: DashboardContext = Depends(get_context)):
    """Status of one progressive load"""
    store = _store(context, resource)
    return DataResponse(data=to_status(store.state, store.started_at))


@router.post("/{resource}/refetch", response_model=DataResponse[LoadStatusResponse])
async def refetch_load(resource: Resource, context: DashboardContext = Depends(get_context)):
    """Drop the loaded data and load again from the first page"""
    store = _store(context, resource)
    store.refetch()
    return DataResponse(
        data=to_status(store.state, store.started_at),
        message=f"{resource.value} reload started"
    )


@router.post("/{resource}/cancel", response_model=DataResponse[LoadStatusResponse])
async def cancel_load(resource: Resource, context: DashboardContext = Depends(get_context)):
    """Stop the running load, keeping what already arrived"""
    store = _store(context, resource)
    store.cancel()
    return DataResponse(data=to_status(store.state, store.started_at))


async def stream_states(store: ProgressiveStore) -> AsyncIterator[str]:
    """
    One JSON line per state change, ending once the load is no longer active.

    `refetch()` passes through IDLE before the new load starts; that IDLE is
    followed by an already queued LOADING_INITIAL, so the stream continues.
    """
    queue: "asyncio.Queue[LoadState]" = asyncio.Queue()
    unsubscribe = store.subscribe(queue.put_nowait)
    try:
        state = store.state
        yield to_status(state, store.started_at).model_dump_json() + "\n"
        while state.is_active or not queue.empty():
            state = await queue.get()
            yield to_status(state, store.started_at).model_dump_json() + "\n"
    finally:
        unsubscribe()


@router.get("/{resource}/stream")
def stream_load(resource: Resource, context: DashboardContext = Depends(get_context)):
    """Follow a load live as newline-delimited JSON"""
    store = _store(context, resource)
    return StreamingResponse(stream_states(store), media_type="application/x-ndjson")
