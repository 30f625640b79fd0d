"""
Analytics API endpoints
Every view is recomputed from the current store snapshots on each request.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from salesdash.core.context import DashboardContext
from salesdash.core.deps import get_context, require_admin
from salesdash.models.enums import DateFilter, ProductCategory, RollupBucket, StatusFilter
from salesdash.schemas.analytics import (
    AnalyticsFilters,
    AnalyticsReport,
    ClientRankingEntry,
    ClientRevenueRow,
    DashboardOverview,
    OfferRankingEntry,
    RollupPoint,
)
from salesdash.schemas.common import DataResponse, ListResponse
from salesdash.services import aggregation

router = APIRouter(prefix="/analytics", tags=["Analytics"], dependencies=[Depends(require_admin)])


def analytics_filters(
    date_filter: DateFilter = Query(DateFilter.TODAY),
    category: Optional[ProductCategory] = Query(None),
    status: StatusFilter = Query(StatusFilter.ALL),
    search: Optional[str] = Query(None, max_length=200),
) -> AnalyticsFilters:
    """Filter query parameters shared by the analytics and sales views"""
    return AnalyticsFilters(date_filter=date_filter, category=category, status=status, search=search)


@router.get("/dashboard", response_model=DataResponse[DashboardOverview])
def get_dashboard(
    date_filter: DateFilter = Query(DateFilter.TODAY),
    top: int = Query(5, ge=1, le=50),
    context: DashboardContext = Depends(get_context),
):
    """Headline metrics and top offers"""
    sales = context.sales.state.data
    clients = context.clients.state.data

    return DataResponse(
        data=DashboardOverview(
            date_filter=date_filter,
            metrics=aggregation.dashboard_metrics(sales, date_filter),
            top_offers=aggregation.offer_ranking(sales, clients, date_filter, size=top),
            sales_loaded=len(sales),
            clients_loaded=len(clients),
            data_complete=context.sales.state.is_complete and context.clients.state.is_complete,
        )
    )


@router.get("/report", response_model=DataResponse[AnalyticsReport])
def get_report(
    filters: AnalyticsFilters = Depends(analytics_filters),
    context: DashboardContext = Depends(get_context),
):
    """Full analytics page for the given filters"""
    report = aggregation.analytics_report(
        context.sales.state.data,
        context.clients.state.data,
        filters,
    )
    return DataResponse(data=report)


@router.get("/rollup", response_model=ListResponse[RollupPoint])
def get_rollup(
    bucket: RollupBucket = Query(RollupBucket.DAY),
    last: Optional[int] = Query(None, ge=1, le=366),
    filters: AnalyticsFilters = Depends(analytics_filters),
    context: DashboardContext = Depends(get_context),
):
    """Approved revenue per day, week or month"""
    filtered = aggregation.filter_sales(context.sales.state.data, filters, context.clients.state.data)
    points = aggregation.revenue_rollup(filtered, bucket, last)
    return ListResponse(data=points, total=len(points), page_size=max(len(points), 1))


@router.get("/clients/ranking", response_model=ListResponse[ClientRankingEntry])
def get_client_ranking(
    filters: AnalyticsFilters = Depends(analytics_filters),
    context: DashboardContext = Depends(get_context),
):
    """Top clients by approved revenue"""
    clients = context.clients.state.data
    filtered = aggregation.filter_sales(context.sales.state.data, filters, clients)
    entries = aggregation.client_ranking(filtered, clients)
    return ListResponse(data=entries, total=len(entries), page_size=aggregation.CLIENT_RANKING_SIZE)


@router.get("/clients/revenue", response_model=ListResponse[ClientRevenueRow])
def get_client_revenue(
    filters: AnalyticsFilters = Depends(analytics_filters),
    context: DashboardContext = Depends(get_context),
):
    """Every client with sales in the filtered window"""
    clients = context.clients.state.data
    filtered = aggregation.filter_sales(context.sales.state.data, filters, clients)
    rows = aggregation.client_revenue_table(filtered, clients)
    return ListResponse(data=rows, total=len(rows), page_size=max(len(rows), 1))


@router.get("/offers/ranking", response_model=ListResponse[OfferRankingEntry])
def get_offer_ranking(
    date_filter: DateFilter = Query(DateFilter.TODAY),
    top: int = Query(aggregation.OFFER_RANKING_SIZE, ge=1, le=100),
    context: DashboardContext = Depends(get_context),
):
    """Offers by approved revenue"""
    entries: List[OfferRankingEntry] = aggregation.offer_ranking(
        context.sales.state.data,
        context.clients.state.data,
        date_filter,
        size=top,
    )
    return ListResponse(data=entries, total=len(entries), page_size=top)
