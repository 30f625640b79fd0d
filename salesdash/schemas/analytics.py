"""
Schemas for derived dashboard views (all amounts in minor currency units)
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel

from salesdash.models.enums import DateFilter, ProductCategory, RollupBucket, StatusFilter


class AnalyticsFilters(BaseModel):
    """Filters shared by every derived view"""
    date_filter: DateFilter = DateFilter.TODAY
    category: Optional[ProductCategory] = None
    status: StatusFilter = StatusFilter.ALL
    search: Optional[str] = None


class DashboardMetrics(BaseModel):
    """Headline cards: operator revenue plus today's conversion"""
    my_total_revenue: int = 0
    my_total_sales: int = 0
    my_avg_ticket: float = 0.0
    total_filtered_revenue: int = 0
    daily_conversion_pct: float = 0.0
    daily_paid_count: int = 0
    daily_total_count: int = 0


class RevenueSplit(BaseModel):
    """Approved revenue routed to the operator vs. to clients"""
    admin_revenue: int = 0
    client_revenue: int = 0
    total_revenue: int = 0
    admin_sales_count: int = 0
    client_sales_count: int = 0
    estimated_commission: float = 0.0
    admin_avg_ticket: float = 0.0
    client_avg_ticket: float = 0.0
    admin_growth: float = 0.0
    client_growth: float = 0.0


class CategoryMetrics(BaseModel):
    category: ProductCategory
    total_revenue: int = 0
    approved_revenue: int = 0
    pending_revenue: int = 0
    total_sales: int = 0
    approved_sales: int = 0
    pending_sales: int = 0
    avg_ticket_approved: float = 0.0
    growth: float = 0.0


class CategoryShare(BaseModel):
    category: ProductCategory
    value: int
    percentage: float


class RollupPoint(BaseModel):
    """Approved revenue of one calendar bucket"""
    start: date
    revenue: int = 0
    count: int = 0
    revenue_percentage: float = 0.0
    count_percentage: float = 0.0


class PerformanceSummary(BaseModel):
    today_revenue: int = 0
    today_sales_count: int = 0
    this_week_revenue: int = 0
    this_week_sales_count: int = 0
    this_month_revenue: int = 0
    this_month_sales_count: int = 0
    monthly_growth: float = 0.0
    conversion_rate: float = 0.0
    best_day_name: Optional[str] = None
    best_day_revenue: int = 0
    monthly_goal: float = 0.0
    goal_progress: float = 0.0
    avg_daily_revenue_this_month: float = 0.0


class TopOffer(BaseModel):
    name: str
    revenue: int


class ClientRankingEntry(BaseModel):
    rank: int
    client_id: Optional[str] = None
    client_name: str
    known: bool = True
    total_revenue: int = 0
    total_sales: int = 0
    approved_revenue: int = 0
    approved_sales: int = 0
    active_offers: int = 0
    total_offers: int = 0
    avg_ticket: float = 0.0
    top_offer: Optional[TopOffer] = None


class ClientRevenueRow(BaseModel):
    client_id: Optional[str] = None
    client_name: str
    known: bool = True
    total_revenue: int = 0
    total_sales: int = 0
    approved_revenue: int = 0
    approved_sales: int = 0
    pending_revenue: int = 0
    pending_sales: int = 0
    avg_ticket: float = 0.0


class OfferRankingEntry(BaseModel):
    rank: int
    offer_id: Optional[str] = None
    offer_name: str
    client_id: Optional[str] = None
    client_name: str
    total_revenue: int = 0
    admin_revenue: int = 0
    total_sales: int = 0
    admin_sales: int = 0


class OfferSummary(BaseModel):
    offer_id: str
    name: str
    use_tax: bool
    pending_change: bool = False
    total_revenue: int = 0
    total_sales: int = 0
    pending_sales: int = 0
    avg_ticket: float = 0.0


class ClientSummary(BaseModel):
    client_id: str
    name: str
    token_preview: Optional[str] = None
    total_revenue: int = 0
    total_sales: int = 0
    active_offers: int = 0
    total_offers: int = 0
    avg_ticket: float = 0.0
    offers: List[OfferSummary] = []


class ClientGroup(BaseModel):
    """Clients sharing a base name once a trailing "- N" is stripped"""
    base_name: str
    clients: List[ClientSummary] = []
    total_revenue: int = 0
    total_sales: int = 0
    total_offers: int = 0
    active_offers: int = 0


class ClientDirectory(BaseModel):
    groups: List[ClientGroup] = []
    total_clients: int = 0
    total_offers: int = 0
    active_offers: int = 0


class SaleRow(BaseModel):
    """Sales table line with resolved names"""
    id: str
    product_name: str
    customer_name: str
    amount: int
    approved: bool
    to_client: bool
    created_at: Optional[datetime] = None
    amount_display: str = ""
    created_display: str = ""
    category: ProductCategory
    client_id: Optional[str] = None
    client_name: str
    offer_id: Optional[str] = None
    offer_name: str


class RollupRequest(BaseModel):
    bucket: RollupBucket = RollupBucket.DAY
    last: Optional[int] = None


class AnalyticsReport(BaseModel):
    """Everything the analytics page shows, computed from one filtered sale set"""
    filters: AnalyticsFilters
    sales_considered: int = 0
    performance: PerformanceSummary
    revenue: RevenueSplit
    categories: List[CategoryMetrics] = []
    distribution: List[CategoryShare] = []
    daily: List[RollupPoint] = []
    trend: List[RollupPoint] = []
    client_ranking: List[ClientRankingEntry] = []


class DashboardOverview(BaseModel):
    """Real-time dashboard: headline cards and the offer leaderboard"""
    date_filter: DateFilter
    metrics: DashboardMetrics
    top_offers: List[OfferRankingEntry] = []
    sales_loaded: int = 0
    clients_loaded: int = 0
    data_complete: bool = False
