"""
Aggregation Engine
Derived views over whatever sales and clients have arrived so far.

Every function here is pure: same inputs (records, filters, `now`, tz) give
the same output, and the fetched collections are never modified. Callers
pass `now` explicitly; it defaults to the current time in `tz` only for
convenience.
"""
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from salesdash.core.config import settings
from salesdash.models.enums import DateFilter, ProductCategory, RollupBucket, StatusFilter
from salesdash.models.records import Client, Offer, Sale
from salesdash.schemas.analytics import (
    AnalyticsFilters,
    AnalyticsReport,
    CategoryMetrics,
    CategoryShare,
    ClientDirectory,
    ClientGroup,
    ClientRankingEntry,
    ClientRevenueRow,
    ClientSummary,
    DashboardMetrics,
    OfferRankingEntry,
    OfferSummary,
    PerformanceSummary,
    RevenueSplit,
    RollupPoint,
    SaleRow,
    TopOffer,
)
from salesdash.services.formatting import format_currency, format_datetime, truncate_token

UNKNOWN_OFFER = "Oferta Desconhecida"
UNKNOWN_CLIENT = "Cliente Desconhecido"

COMMISSION_RATE = 0.10
DEFAULT_MONTHLY_GOAL = 1_000_000
GOAL_GROWTH_FROM_LAST_MONTH = 1.5
GOAL_GROWTH_FROM_THIS_MONTH = 1.2
CLIENT_RANKING_SIZE = 10
OFFER_RANKING_SIZE = 10
SALES_TABLE_PAGE_SIZE = 10

# Sunday-first, as the weekday index is reported to the dashboard
WEEKDAY_NAMES = ("Domingo", "Segunda", "Terça", "Quarta", "Quinta", "Sexta", "Sábado")

# First matching rule wins; anything unmatched is OUTROS
CATEGORY_RULES: Tuple[Tuple[ProductCategory, Tuple[str, ...]], ...] = (
    (ProductCategory.PANDORA, ("bracelete",)),
    (ProductCategory.PIX_DO_MILHAO, ("ebook",)),
    (ProductCategory.CROCS, ("sandália", "crocs", "jibbitz")),
    (ProductCategory.SEPHORA, ("kit labia",)),
)

_SUFFIX = re.compile(r"\s*-\s*\d+$")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


# ========================================
# Time helpers
# ========================================

def _tz(tz: Optional[tzinfo]) -> tzinfo:
    return tz or settings.tz


def _now(now: Optional[datetime], tz: tzinfo) -> datetime:
    if now is None:
        return datetime.now(tz)
    return _localize(now, tz)


def _localize(moment: datetime, tz: tzinfo) -> datetime:
    # Naive upstream timestamps are UTC
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz)


def sale_day(sale: Sale, tz: tzinfo) -> Optional[date]:
    """Calendar day of a sale in the viewer's timezone"""
    if sale.created_at is None:
        return None
    return _localize(sale.created_at, tz).date()


def window_start(date_filter: DateFilter, today: date) -> Optional[date]:
    """First calendar day included by a window; None means unbounded"""
    if date_filter == DateFilter.TODAY:
        return today
    if date_filter == DateFilter.LAST_7_DAYS:
        return today - timedelta(days=7)
    if date_filter == DateFilter.LAST_30_DAYS:
        return today - timedelta(days=30)
    return None


def month_bounds(today: date) -> Tuple[date, date]:
    """(first day of the previous month, first day of this month)"""
    current_start = today.replace(day=1)
    previous_start = (current_start - timedelta(days=1)).replace(day=1)
    return previous_start, current_start


def week_start(day: date) -> date:
    """Monday of the week containing `day`"""
    return day - timedelta(days=day.weekday())


def _bucket_start(day: date, bucket: RollupBucket) -> date:
    if bucket == RollupBucket.WEEK:
        return week_start(day)
    if bucket == RollupBucket.MONTH:
        return day.replace(day=1)
    return day


def _newest_first_key(tz: tzinfo):
    def key(sale: Sale) -> datetime:
        if sale.created_at is None:
            return _EPOCH
        return _localize(sale.created_at, tz)
    return key


# ========================================
# Scalar rules
# ========================================

def classify_product(product_name: Optional[str]) -> ProductCategory:
    """Map a product name to its category (case-insensitive substring rules)"""
    name = (product_name or "").lower()
    for category, needles in CATEGORY_RULES:
        if any(needle in name for needle in needles):
            return category
    return ProductCategory.OUTROS


def growth_rate(current: float, prior: float) -> float:
    """
    Period-over-period growth in percent.

    0 when both periods are empty, +100 when only the current one has
    revenue; never NaN or infinite.
    """
    if prior > 0:
        return (current - prior) / prior * 100
    if current > 0:
        return 100.0
    return 0.0


def conversion_rate(sales: Sequence[Sale]) -> float:
    """Approved share of the given (already visible) sales, in percent"""
    if not sales:
        return 0.0
    approved = sum(1 for sale in sales if sale.approved)
    return approved / len(sales) * 100


def _average(total: float, count: int) -> float:
    return total / count if count > 0 else 0.0


def _revenue(sales: Iterable[Sale]) -> int:
    return sum(sale.amount for sale in sales)


# ========================================
# Filters
# ========================================

def visible_only(sales: Iterable[Sale]) -> List[Sale]:
    return [sale for sale in sales if sale.visible]


def filter_by_date(
    sales: Iterable[Sale],
    date_filter: DateFilter,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> List[Sale]:
    """
    Keep sales inside a calendar window.

    "today" is an exact calendar-day match, the other windows start at
    midnight N days ago. Sales without a timestamp only survive ALL.
    """
    if date_filter == DateFilter.ALL:
        return list(sales)

    tz = _tz(tz)
    today = _now(now, tz).date()
    start = window_start(date_filter, today)
    result = []
    for sale in sales:
        day = sale_day(sale, tz)
        if day is None:
            continue
        if date_filter == DateFilter.TODAY:
            if day == today:
                result.append(sale)
        elif day >= start:
            result.append(sale)
    return result


@dataclass
class Catalog:
    """Offer and client lookup built from the clients collection"""
    clients: Dict[str, Client] = field(default_factory=dict)
    offers: Dict[str, Tuple[Offer, Client]] = field(default_factory=dict)

    @classmethod
    def build(cls, clients: Iterable[Client]) -> "Catalog":
        catalog = cls()
        for client in clients:
            catalog.clients.setdefault(client.id, client)
            for offer in client.offers:
                # First owner wins when an offer id shows up twice
                catalog.offers.setdefault(offer.id, (offer, client))
        return catalog

    def client_name(self, client_id: Optional[str]) -> str:
        client = self.clients.get(client_id) if client_id else None
        return client.name if client else UNKNOWN_CLIENT

    def offer_name(self, offer_id: Optional[str]) -> str:
        entry = self.offers.get(offer_id) if offer_id else None
        return entry[0].name if entry else UNKNOWN_OFFER

    def offer_owner(self, offer_id: Optional[str]) -> Optional[Client]:
        entry = self.offers.get(offer_id) if offer_id else None
        return entry[1] if entry else None


def _matches_search(sale: Sale, term: str, catalog: Catalog) -> bool:
    haystacks = (
        sale.product_name,
        sale.customer_name,
        catalog.client_name(sale.client_id),
        catalog.offer_name(sale.offer_id),
    )
    return any(term in (text or "").lower() for text in haystacks)


def filter_sales(
    sales: Iterable[Sale],
    filters: Optional[AnalyticsFilters] = None,
    clients: Sequence[Client] = (),
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> List[Sale]:
    """
    Apply visibility, then the date window, search, status and category.

    Returns newest first; sales with equal timestamps keep input order.
    """
    filters = filters or AnalyticsFilters()
    tz = _tz(tz)

    result = filter_by_date(visible_only(sales), filters.date_filter, now, tz)

    term = (filters.search or "").strip().lower()
    if term:
        catalog = Catalog.build(clients)
        result = [sale for sale in result if _matches_search(sale, term, catalog)]

    if filters.status == StatusFilter.APPROVED:
        result = [sale for sale in result if sale.approved]
    elif filters.status == StatusFilter.PENDING:
        result = [sale for sale in result if not sale.approved]

    if filters.category is not None:
        result = [sale for sale in result if classify_product(sale.product_name) == filters.category]

    return sorted(result, key=_newest_first_key(tz), reverse=True)


def _month_periods(
    sales: Iterable[Sale], now: Optional[datetime], tz: tzinfo
) -> Tuple[List[Sale], List[Sale]]:
    """Split sales into (this calendar month, previous calendar month)"""
    previous_start, current_start = month_bounds(_now(now, tz).date())
    current, previous = [], []
    for sale in sales:
        day = sale_day(sale, tz)
        if day is None:
            continue
        if day >= current_start:
            current.append(sale)
        elif day >= previous_start:
            previous.append(sale)
    return current, previous


# ========================================
# Dashboard cards
# ========================================

def dashboard_metrics(
    sales: Sequence[Sale],
    date_filter: DateFilter = DateFilter.TODAY,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> DashboardMetrics:
    tz = _tz(tz)
    visible = visible_only(sales)
    in_window = [sale for sale in filter_by_date(visible, date_filter, now, tz) if sale.approved]
    mine = [sale for sale in in_window if not sale.to_client]

    today = filter_by_date(visible, DateFilter.TODAY, now, tz)
    paid_today = sum(1 for sale in today if sale.approved)

    my_revenue = _revenue(mine)
    return DashboardMetrics(
        my_total_revenue=my_revenue,
        my_total_sales=len(mine),
        my_avg_ticket=_average(my_revenue, len(mine)),
        total_filtered_revenue=_revenue(in_window),
        daily_conversion_pct=conversion_rate(today),
        daily_paid_count=paid_today,
        daily_total_count=len(today),
    )


def revenue_split(
    sales: Sequence[Sale],
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> RevenueSplit:
    """Operator vs. client revenue over already-filtered sales"""
    tz = _tz(tz)
    approved = [sale for sale in sales if sale.approved]
    admin = [sale for sale in approved if not sale.to_client]
    routed = [sale for sale in approved if sale.to_client]

    current, previous = _month_periods(approved, now, tz)

    admin_revenue = _revenue(admin)
    client_revenue = _revenue(routed)
    return RevenueSplit(
        admin_revenue=admin_revenue,
        client_revenue=client_revenue,
        total_revenue=admin_revenue + client_revenue,
        admin_sales_count=len(admin),
        client_sales_count=len(routed),
        estimated_commission=client_revenue * COMMISSION_RATE,
        admin_avg_ticket=_average(admin_revenue, len(admin)),
        client_avg_ticket=_average(client_revenue, len(routed)),
        admin_growth=growth_rate(
            _revenue(s for s in current if not s.to_client),
            _revenue(s for s in previous if not s.to_client),
        ),
        client_growth=growth_rate(
            _revenue(s for s in current if s.to_client),
            _revenue(s for s in previous if s.to_client),
        ),
    )


# ========================================
# Categories
# ========================================

def category_breakdown(
    sales: Sequence[Sale],
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> List[CategoryMetrics]:
    """Per-category totals for every category, in declaration order"""
    tz = _tz(tz)
    metrics = OrderedDict((category, CategoryMetrics(category=category)) for category in ProductCategory)

    for sale in sales:
        metric = metrics[classify_product(sale.product_name)]
        metric.total_revenue += sale.amount
        metric.total_sales += 1
        if sale.approved:
            metric.approved_revenue += sale.amount
            metric.approved_sales += 1
        else:
            metric.pending_revenue += sale.amount
            metric.pending_sales += 1

    current, previous = _month_periods([s for s in sales if s.approved], now, tz)
    for category, metric in metrics.items():
        metric.avg_ticket_approved = _average(metric.approved_revenue, metric.approved_sales)
        metric.growth = growth_rate(
            _revenue(s for s in current if classify_product(s.product_name) == category),
            _revenue(s for s in previous if classify_product(s.product_name) == category),
        )

    return list(metrics.values())


def category_distribution(sales: Sequence[Sale]) -> List[CategoryShare]:
    """Share of approved revenue per category; empty categories are left out"""
    totals: Dict[ProductCategory, int] = OrderedDict((category, 0) for category in ProductCategory)
    for sale in sales:
        if sale.approved:
            totals[classify_product(sale.product_name)] += sale.amount

    grand_total = sum(totals.values())
    shares = [
        CategoryShare(
            category=category,
            value=value,
            percentage=value / grand_total * 100 if grand_total > 0 else 0.0,
        )
        for category, value in totals.items()
        if value > 0
    ]
    return sorted(shares, key=lambda share: share.value, reverse=True)


# ========================================
# Time rollups
# ========================================

def revenue_rollup(
    sales: Sequence[Sale],
    bucket: RollupBucket = RollupBucket.DAY,
    last: Optional[int] = None,
    tz: Optional[tzinfo] = None,
) -> List[RollupPoint]:
    """
    Approved revenue per calendar day, week (Monday start) or month.

    Only buckets that have sales appear, oldest first; `last` keeps the most
    recent N. Percentages are relative to the largest bucket kept.
    """
    tz = _tz(tz)
    buckets: Dict[date, List[int]] = {}
    for sale in sales:
        if not sale.approved:
            continue
        day = sale_day(sale, tz)
        if day is None:
            continue
        totals = buckets.setdefault(_bucket_start(day, bucket), [0, 0])
        totals[0] += sale.amount
        totals[1] += 1

    ordered = sorted(buckets.items())
    if last is not None:
        ordered = ordered[-last:] if last > 0 else []

    max_revenue = max((revenue for _, (revenue, _) in ordered), default=0)
    max_count = max((count for _, (_, count) in ordered), default=0)

    return [
        RollupPoint(
            start=start,
            revenue=revenue,
            count=count,
            revenue_percentage=revenue / max_revenue * 100 if max_revenue > 0 else 0.0,
            count_percentage=count / max_count * 100 if max_count > 0 else 0.0,
        )
        for start, (revenue, count) in ordered
    ]


def performance_summary(
    sales: Sequence[Sale],
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> PerformanceSummary:
    tz = _tz(tz)
    today = _now(now, tz).date()
    monday = week_start(today)
    previous_start, current_start = month_bounds(today)

    approved = [sale for sale in sales if sale.approved]
    today_sales, week_sales, month_sales, last_month_sales = [], [], [], []
    by_weekday = [0] * 7

    for sale in approved:
        day = sale_day(sale, tz)
        if day is None:
            continue
        if day == today:
            today_sales.append(sale)
        if day >= monday:
            week_sales.append(sale)
        if day >= current_start:
            month_sales.append(sale)
        elif day >= previous_start:
            last_month_sales.append(sale)
        # Python weekday() is Monday=0; the report index is Sunday=0
        by_weekday[(day.weekday() + 1) % 7] += sale.amount

    best_index, best_revenue = 0, 0
    for index, revenue in enumerate(by_weekday):
        if revenue > best_revenue:
            best_index, best_revenue = index, revenue

    month_revenue = _revenue(month_sales)
    last_month_revenue = _revenue(last_month_sales)
    if last_month_revenue > 0:
        goal = last_month_revenue * GOAL_GROWTH_FROM_LAST_MONTH
    elif month_revenue > 0:
        goal = month_revenue * GOAL_GROWTH_FROM_THIS_MONTH
    else:
        goal = float(DEFAULT_MONTHLY_GOAL)

    return PerformanceSummary(
        today_revenue=_revenue(today_sales),
        today_sales_count=len(today_sales),
        this_week_revenue=_revenue(week_sales),
        this_week_sales_count=len(week_sales),
        this_month_revenue=month_revenue,
        this_month_sales_count=len(month_sales),
        monthly_growth=growth_rate(month_revenue, last_month_revenue),
        conversion_rate=conversion_rate(sales),
        best_day_name=WEEKDAY_NAMES[best_index] if best_revenue > 0 else None,
        best_day_revenue=best_revenue,
        monthly_goal=goal,
        goal_progress=min(month_revenue / goal * 100, 100.0),
        avg_daily_revenue_this_month=month_revenue / today.day,
    )


# ========================================
# Rankings
# ========================================

class _ClientTally:
    def __init__(self, client_id: Optional[str], name: str, known: bool, offers: Sequence[Offer] = ()):
        self.client_id = client_id
        self.name = name
        self.known = known
        self.total_revenue = 0
        self.total_sales = 0
        self.approved_revenue = 0
        self.approved_sales = 0
        self.total_offers = len(offers)
        self.active_offers = sum(1 for offer in offers if offer.use_tax)

    def add(self, sale: Sale):
        self.total_revenue += sale.amount
        self.total_sales += 1
        if sale.approved:
            self.approved_revenue += sale.amount
            self.approved_sales += 1


def _tally_clients(sales: Sequence[Sale], clients: Sequence[Client]) -> "OrderedDict[str, _ClientTally]":
    tallies: "OrderedDict[str, _ClientTally]" = OrderedDict()
    for client in clients:
        if client.id not in tallies:
            tallies[client.id] = _ClientTally(client.id, client.name, True, client.offers)

    for sale in sales:
        key = sale.client_id or ""
        tally = tallies.get(key)
        if tally is None:
            tally = tallies[key] = _ClientTally(sale.client_id, UNKNOWN_CLIENT, False)
        tally.add(sale)
    return tallies


def _rank_desc(items: List, key) -> List:
    # sorted() is stable, so ties keep first-seen order
    return sorted(items, key=key, reverse=True)


def client_ranking(
    sales: Sequence[Sale],
    clients: Sequence[Client],
    size: int = CLIENT_RANKING_SIZE,
) -> List[ClientRankingEntry]:
    """
    Top clients by approved revenue over already-filtered sales.

    Sales pointing at an unknown client are kept under a placeholder name.
    Each entry names the client's best offer by approved revenue.
    """
    catalog = Catalog.build(clients)
    tallies = _tally_clients(sales, clients)

    offer_revenue: "OrderedDict[str, int]" = OrderedDict()
    offer_client: Dict[str, str] = {}
    for sale in sales:
        if not sale.approved or not sale.offer_id:
            continue
        offer_revenue[sale.offer_id] = offer_revenue.get(sale.offer_id, 0) + sale.amount
        offer_client.setdefault(sale.offer_id, sale.client_id or "")

    top_offers: Dict[str, TopOffer] = {}
    for offer_id, revenue in offer_revenue.items():
        client_key = offer_client[offer_id]
        best = top_offers.get(client_key)
        if best is None or revenue > best.revenue:
            top_offers[client_key] = TopOffer(name=catalog.offer_name(offer_id), revenue=revenue)

    ranked = _rank_desc(
        [tally for tally in tallies.values() if tally.approved_sales > 0],
        key=lambda tally: tally.approved_revenue,
    )[:size]

    return [
        ClientRankingEntry(
            rank=index + 1,
            client_id=tally.client_id,
            client_name=tally.name,
            known=tally.known,
            total_revenue=tally.total_revenue,
            total_sales=tally.total_sales,
            approved_revenue=tally.approved_revenue,
            approved_sales=tally.approved_sales,
            active_offers=tally.active_offers,
            total_offers=tally.total_offers,
            avg_ticket=_average(tally.approved_revenue, tally.approved_sales),
            top_offer=top_offers.get(tally.client_id or ""),
        )
        for index, tally in enumerate(ranked)
    ]


def client_revenue_table(sales: Sequence[Sale], clients: Sequence[Client]) -> List[ClientRevenueRow]:
    """Every client with at least one sale in the filtered set"""
    rows = [
        ClientRevenueRow(
            client_id=tally.client_id,
            client_name=tally.name,
            known=tally.known,
            total_revenue=tally.total_revenue,
            total_sales=tally.total_sales,
            approved_revenue=tally.approved_revenue,
            approved_sales=tally.approved_sales,
            pending_revenue=tally.total_revenue - tally.approved_revenue,
            pending_sales=tally.total_sales - tally.approved_sales,
            avg_ticket=_average(tally.approved_revenue, tally.approved_sales),
        )
        for tally in _tally_clients(sales, clients).values()
        if tally.total_sales > 0
    ]
    return _rank_desc(rows, key=lambda row: row.approved_revenue)


def offer_ranking(
    sales: Sequence[Sale],
    clients: Sequence[Client],
    date_filter: DateFilter = DateFilter.ALL,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
    size: Optional[int] = OFFER_RANKING_SIZE,
) -> List[OfferRankingEntry]:
    """Offers by approved revenue, with the operator-routed share of each"""
    if not sales or not clients:
        return []

    catalog = Catalog.build(clients)
    approved = [
        sale
        for sale in filter_by_date(visible_only(sales), date_filter, now, tz)
        if sale.approved
    ]

    entries: "OrderedDict[str, OfferRankingEntry]" = OrderedDict()
    for sale in approved:
        key = sale.offer_id or ""
        entry = entries.get(key)
        if entry is None:
            owner = catalog.offer_owner(sale.offer_id)
            entry = entries[key] = OfferRankingEntry(
                rank=0,
                offer_id=sale.offer_id,
                offer_name=catalog.offer_name(sale.offer_id),
                client_id=owner.id if owner else None,
                client_name=owner.name if owner else UNKNOWN_CLIENT,
            )
        entry.total_revenue += sale.amount
        entry.total_sales += 1
        if not sale.to_client:
            entry.admin_revenue += sale.amount
            entry.admin_sales += 1

    ranked = _rank_desc(list(entries.values()), key=lambda entry: entry.total_revenue)
    if size is not None:
        ranked = ranked[:size]
    for index, entry in enumerate(ranked):
        entry.rank = index + 1
    return ranked


# ========================================
# Client directory
# ========================================

def base_name(name: str) -> str:
    """Strip a trailing "- N" so numbered accounts group together"""
    return _SUFFIX.sub("", name or "").strip()


def effective_use_tax(offer: Offer, overlay: Mapping[str, bool]) -> bool:
    """Fetched flag unless a pending or confirmed local change overrides it"""
    return overlay.get(offer.id, offer.use_tax)


def _client_matches(client: Client, term: str) -> bool:
    if term in client.name.lower():
        return True
    return any(term in offer.name.lower() for offer in client.offers)


def _counted_sales(sales: Iterable[Sale], date_filter: DateFilter, now, tz) -> List[Sale]:
    return [
        sale
        for sale in filter_by_date(sales, date_filter, now, tz)
        if sale.approved and sale.visible
    ]


def _summarize_client(
    client: Client,
    date_filter: DateFilter,
    overlay: Mapping[str, bool],
    pending: Iterable[str],
    now: Optional[datetime],
    tz: tzinfo,
) -> ClientSummary:
    pending = set(pending)
    counted = _counted_sales(client.sales, date_filter, now, tz)
    revenue = _revenue(counted)

    offers = []
    for offer in client.offers:
        in_window = [s for s in filter_by_date(offer.sales, date_filter, now, tz) if s.visible]
        approved = [s for s in in_window if s.approved]
        offer_revenue = _revenue(approved)
        offers.append(OfferSummary(
            offer_id=offer.id,
            name=offer.name,
            use_tax=effective_use_tax(offer, overlay),
            pending_change=offer.id in pending,
            total_revenue=offer_revenue,
            total_sales=len(approved),
            pending_sales=len(in_window) - len(approved),
            avg_ticket=_average(offer_revenue, len(approved)),
        ))

    return ClientSummary(
        client_id=client.id,
        name=client.name,
        token_preview=truncate_token(client.token),
        total_revenue=revenue,
        total_sales=len(counted),
        active_offers=sum(1 for offer in offers if offer.use_tax),
        total_offers=len(offers),
        avg_ticket=_average(revenue, len(counted)),
        offers=offers,
    )


def group_clients(
    clients: Sequence[Client],
    search: Optional[str] = None,
    date_filter: DateFilter = DateFilter.ALL,
    overlay: Optional[Mapping[str, bool]] = None,
    pending: Iterable[str] = (),
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> ClientDirectory:
    """
    Client directory grouped by base name.

    Search matches the client name or any of its offer names. Clients are
    sorted by name inside a group and groups by base name; the active offer
    count reads `use_tax` through the optimistic overlay.
    """
    tz = _tz(tz)
    overlay = overlay or {}
    pending = tuple(pending)
    term = (search or "").strip().lower()

    matching = [client for client in clients if not term or _client_matches(client, term)]

    groups: Dict[str, List[ClientSummary]] = {}
    for client in sorted(matching, key=lambda c: c.name.casefold()):
        summary = _summarize_client(client, date_filter, overlay, pending, now, tz)
        groups.setdefault(base_name(client.name), []).append(summary)

    directory = ClientDirectory()
    for name in sorted(groups, key=str.casefold):
        members = groups[name]
        group = ClientGroup(
            base_name=name,
            clients=members,
            total_revenue=sum(m.total_revenue for m in members),
            total_sales=sum(m.total_sales for m in members),
            total_offers=sum(m.total_offers for m in members),
            active_offers=sum(m.active_offers for m in members),
        )
        directory.groups.append(group)
        directory.total_clients += len(members)
        directory.total_offers += group.total_offers
        directory.active_offers += group.active_offers
    return directory


# ========================================
# Sales table
# ========================================

def sale_rows(sales: Iterable[Sale], clients: Sequence[Client]) -> List[SaleRow]:
    catalog = Catalog.build(clients)
    return [
        SaleRow(
            id=sale.id,
            product_name=sale.product_name,
            customer_name=sale.customer_name,
            amount=sale.amount,
            approved=sale.approved,
            to_client=sale.to_client,
            created_at=sale.created_at,
            amount_display=format_currency(sale.amount),
            created_display=format_datetime(sale.created_at),
            category=classify_product(sale.product_name),
            client_id=sale.client_id,
            client_name=catalog.client_name(sale.client_id),
            offer_id=sale.offer_id,
            offer_name=catalog.offer_name(sale.offer_id),
        )
        for sale in sales
    ]


def paginate(items: Sequence, page: int = 1, page_size: int = SALES_TABLE_PAGE_SIZE) -> Tuple[List, int]:
    """Slice one 1-based page; returns (items, total pages)"""
    page_size = max(page_size, 1)
    pages = (len(items) + page_size - 1) // page_size
    page = max(page, 1)
    start = (page - 1) * page_size
    return list(items[start:start + page_size]), pages


# ========================================
# Analytics page
# ========================================

def analytics_report(
    sales: Sequence[Sale],
    clients: Sequence[Client],
    filters: Optional[AnalyticsFilters] = None,
    now: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> AnalyticsReport:
    """Every analytics view computed from one filtered sale set"""
    filters = filters or AnalyticsFilters()
    tz = _tz(tz)
    now = _now(now, tz)

    filtered = filter_sales(sales, filters, clients, now, tz)

    return AnalyticsReport(
        filters=filters,
        sales_considered=len(filtered),
        performance=performance_summary(filtered, now, tz),
        revenue=revenue_split(filtered, now, tz),
        categories=category_breakdown(filtered, now, tz),
        distribution=category_distribution(filtered),
        daily=revenue_rollup(filtered, RollupBucket.DAY, last=7, tz=tz),
        trend=revenue_rollup(filtered, RollupBucket.DAY, last=14, tz=tz),
        client_ranking=client_ranking(filtered, clients),
    )
