"""
Sales table endpoint
"""
from fastapi import APIRouter, Depends, Query

from salesdash.api.v1.analytics import analytics_filters
from salesdash.core.context import DashboardContext
from salesdash.core.deps import get_context, require_admin
from salesdash.schemas.analytics import AnalyticsFilters, SaleRow
from salesdash.schemas.common import ListResponse
from salesdash.services import aggregation

router = APIRouter(prefix="/sales", tags=["Sales"], dependencies=[Depends(require_admin)])


@router.get("", response_model=ListResponse[SaleRow])
def list_sales(
    page: int = Query(1, ge=1),
    page_size: int = Query(aggregation.SALES_TABLE_PAGE_SIZE, ge=1, le=100),
    filters: AnalyticsFilters = Depends(analytics_filters),
    context: DashboardContext = Depends(get_context),
):
    """
    Visible sales, newest first.

    Search matches product, customer, client and offer names.
    """
    clients = context.clients.state.data
    filtered = aggregation.filter_sales(context.sales.state.data, filters, clients)
    items, pages = aggregation.paginate(filtered, page, page_size)

    return ListResponse(
        data=aggregation.sale_rows(items, clients),
        total=len(filtered),
        page=page,
        page_size=page_size,
        pages=max(pages, 1),
    )
