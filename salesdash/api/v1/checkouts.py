"""
Checkout link endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from salesdash.core.context import DashboardContext
from salesdash.core.deps import get_context, require_admin
from salesdash.core.exceptions import DashboardError
from salesdash.models.records import Checkout
from salesdash.schemas.common import DataResponse, ListResponse
from salesdash.schemas.mutations import CheckoutRow, CheckoutSummary, CheckoutUpdateRequest
from salesdash.services.checkout_service import CheckoutService

router = APIRouter(prefix="/checkouts", tags=["Checkouts"], dependencies=[Depends(require_admin)])


def to_row(checkout: Checkout, service: CheckoutService) -> CheckoutRow:
    badge = service.board.get(checkout.id)
    return CheckoutRow(
        id=checkout.id,
        offer=checkout.offer,
        my_checkout=checkout.my_checkout,
        last_client_checkout=checkout.last_client_checkout,
        offer_id=checkout.offer_id,
        client_id=checkout.client_id,
        created_at=checkout.created_at,
        updated_at=checkout.updated_at,
        status=badge.status if badge else None,
        status_message=badge.message if badge else None,
    )


@router.get("", response_model=ListResponse[CheckoutRow])
async def list_checkouts(
    search: Optional[str] = Query(None, max_length=200),
    refresh: bool = Query(False),
    context: DashboardContext = Depends(get_context),
):
    """Checkout links; the list is fetched on first use or when `refresh` is set"""
    service = context.checkouts
    if refresh or not service.loaded:
        await service.load()

    rows = [to_row(checkout, service) for checkout in service.search(search)]
    return ListResponse(
        data=rows,
        total=len(rows),
        page_size=max(len(rows), 1),
        message=str(service.error) if service.error else None,
    )


@router.get("/summary", response_model=DataResponse[CheckoutSummary])
def checkout_summary(context: DashboardContext = Depends(get_context)):
    service = context.checkouts
    return DataResponse(
        data=CheckoutSummary(total=len(service.checkouts), configured=service.configured_count())
    )


@router.put("/{checkout_id}", response_model=DataResponse[CheckoutRow])
async def update_checkout(
    checkout_id: str,
    request: CheckoutUpdateRequest,
    context: DashboardContext = Depends(get_context),
):
    """Save the operator link of one checkout"""
    service = context.checkouts
    try:
        success = await service.save(checkout_id, request.my_checkout)
        if not success:
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Failed to update checkout"
            )
        checkout = service.get(checkout_id)
    except DashboardError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return DataResponse(
        data=to_row(checkout, service),
        message="Checkout updated"
    )
