"""
Client directory and offer commission toggle
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from salesdash.core.context import DashboardContext
from salesdash.core.deps import get_context, require_admin
from salesdash.core.exceptions import MutationConflictError, NotFoundError
from salesdash.models.enums import DateFilter
from salesdash.schemas.analytics import ClientDirectory
from salesdash.schemas.common import DataResponse
from salesdash.schemas.mutations import UseTaxToggleResponse
from salesdash.services import aggregation

router = APIRouter(prefix="/clients", tags=["Clients"], dependencies=[Depends(require_admin)])


@router.get("", response_model=DataResponse[ClientDirectory])
def list_clients(
    search: Optional[str] = Query(None, max_length=200),
    date_filter: DateFilter = Query(DateFilter.ALL),
    context: DashboardContext = Depends(get_context),
):
    """Clients grouped by base name, with pending commission changes applied"""
    directory = aggregation.group_clients(
        context.clients.state.data,
        search=search,
        date_filter=date_filter,
        overlay=context.overlay.values(),
        pending=context.overlay.pending,
    )
    return DataResponse(data=directory)


@router.post("/offers/{offer_id}/use-tax/toggle", response_model=DataResponse[UseTaxToggleResponse])
async def toggle_use_tax(offer_id: str, context: DashboardContext = Depends(get_context)):
    """Flip an offer's commission flag"""
    try:
        outcome = await context.offer_tax.toggle(offer_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except MutationConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    if not outcome.accepted:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to update offer, change reverted"
        )

    return DataResponse(
        data=UseTaxToggleResponse(offer_id=outcome.offer_id, use_tax=outcome.use_tax),
        message="Offer updated"
    )
