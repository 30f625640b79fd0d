import math
from datetime import date, datetime, timedelta, timezone

import pytest

from salesdash.models.enums import DateFilter, ProductCategory, RollupBucket, StatusFilter
from salesdash.schemas.analytics import AnalyticsFilters
from salesdash.services import aggregation
from salesdash.services.aggregation import (
    UNKNOWN_CLIENT,
    UNKNOWN_OFFER,
    base_name,
    classify_product,
    growth_rate,
)


def _local(tz, year, month, day, hour=12, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=tz)


# =============================================================================
# Scalar rules
# =============================================================================

def test_growth_rate_guards_division_by_zero():
    assert growth_rate(0, 0) == 0
    assert growth_rate(500, 0) == 100
    assert growth_rate(300, 200) == 50
    assert growth_rate(100, 200) == -50


def test_growth_rate_is_always_finite():
    values = [0, 1, 250, 10 ** 9]
    for current in values:
        for prior in values:
            assert math.isfinite(growth_rate(current, prior))


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Bracelete Prata", ProductCategory.PANDORA),
        ("Ebook Pix do Milhão", ProductCategory.PIX_DO_MILHAO),
        ("Sandália Crocs Classic", ProductCategory.CROCS),
        ("JIBBITZ kit", ProductCategory.CROCS),
        ("Kit Labia Sephora", ProductCategory.SEPHORA),
        ("Camiseta", ProductCategory.OUTROS),
        ("", ProductCategory.OUTROS),
        (None, ProductCategory.OUTROS),
        # several rules match: the earlier rule wins
        ("Crocs + eBook bonus", ProductCategory.PIX_DO_MILHAO),
        ("Bracelete Crocs", ProductCategory.PANDORA),
        ("crocs kit labia", ProductCategory.CROCS),
    ],
)
def test_classify_product(name, expected):
    assert classify_product(name) == expected


def test_conversion_rate():
    assert aggregation.conversion_rate([]) == 0.0


def test_base_name_strips_numeric_suffix():
    assert base_name("Loja Centro - 2") == "Loja Centro"
    assert base_name("Loja Centro-15") == "Loja Centro"
    assert base_name("Loja Centro") == "Loja Centro"
    assert base_name("Loja 2") == "Loja 2"
    assert base_name("  Loja - 3") == "Loja"


# =============================================================================
# Filters
# =============================================================================

def test_today_is_calendar_day_in_viewer_timezone(make_sale, now, tz):
    this_morning = make_sale(created_at=_local(tz, 2026, 10, 19, 0, 5))
    late_yesterday_local = make_sale(created_at=datetime(2026, 10, 19, 2, 0, tzinfo=timezone.utc))
    yesterday = make_sale(created_at=_local(tz, 2026, 10, 18, 23, 59))

    result = aggregation.filter_by_date(
        [this_morning, late_yesterday_local, yesterday], DateFilter.TODAY, now, tz
    )

    assert result == [this_morning]


def test_rolling_windows_start_at_midnight(make_sale, now, tz):
    inside = make_sale(created_at=_local(tz, 2026, 10, 12, 0, 30))
    outside = make_sale(created_at=_local(tz, 2026, 10, 11, 23, 30))
    month_edge = make_sale(created_at=_local(tz, 2026, 9, 19, 8))
    undated = make_sale(created_at=None)
    sales = [inside, outside, month_edge, undated]

    assert aggregation.filter_by_date(sales, DateFilter.LAST_7_DAYS, now, tz) == [inside]
    assert aggregation.filter_by_date(sales, DateFilter.LAST_30_DAYS, now, tz) == [inside, outside, month_edge]
    assert aggregation.filter_by_date(sales, DateFilter.ALL, now, tz) == sales


def test_naive_timestamps_are_utc(make_sale, now, tz):
    # 02:00 UTC is 23:00 the previous day in Sao Paulo
    sale = make_sale(created_at=datetime(2026, 10, 19, 2, 0))
    assert aggregation.filter_by_date([sale], DateFilter.TODAY, now, tz) == []


def test_filter_sales_hides_invisible_and_sorts_newest_first(make_sale, now, tz):
    older = make_sale(id="older", created_at=now - timedelta(hours=2))
    hidden = make_sale(id="hidden", visible=False)
    newest = make_sale(id="newest", created_at=now)
    tie = make_sale(id="tie", created_at=now)

    result = aggregation.filter_sales([older, hidden, newest, tie], AnalyticsFilters(), now=now, tz=tz)

    assert [sale.id for sale in result] == ["newest", "tie", "older"]


def test_filter_sales_status_category_and_search(make_sale, make_client, make_offer, now, tz):
    clients = [make_client("c1", "Loja Centro", offers=[make_offer("o1", "Oferta Verão")])]
    crocs = make_sale(id="crocs", product_name="Crocs Azul", approved=True, client_id="c1", offer_id="o1")
    pending = make_sale(id="pending", product_name="Crocs Rosa", approved=False, customer_name="Bruna")
    other = make_sale(id="other", product_name="Camiseta", approved=True)
    sales = [crocs, pending, other]

    def ids(**filters):
        result = aggregation.filter_sales(sales, AnalyticsFilters(**filters), clients, now, tz)
        return sorted(sale.id for sale in result)

    assert ids(status=StatusFilter.APPROVED) == ["crocs", "other"]
    assert ids(status=StatusFilter.PENDING) == ["pending"]
    assert ids(category=ProductCategory.CROCS) == ["crocs", "pending"]
    assert ids(search="verão") == ["crocs"]
    assert ids(search="LOJA") == ["crocs"]
    assert ids(search="bruna") == ["pending"]
    assert ids(search="   ") == ["crocs", "other", "pending"]


# =============================================================================
# Dashboard and revenue
# =============================================================================

def test_dashboard_metrics(make_sale, now, tz):
    sales = [
        make_sale(amount=1000, to_client=False),
        make_sale(amount=3000, to_client=False),
        make_sale(amount=5000, to_client=True),
        make_sale(amount=700, approved=False),
        make_sale(amount=9999, visible=False),
        make_sale(amount=4000, created_at=now - timedelta(days=3)),
    ]

    today = aggregation.dashboard_metrics(sales, DateFilter.TODAY, now, tz)
    week = aggregation.dashboard_metrics(sales, DateFilter.LAST_7_DAYS, now, tz)

    assert today.my_total_revenue == 4000
    assert today.my_total_sales == 2
    assert today.my_avg_ticket == 2000
    assert today.total_filtered_revenue == 9000
    assert today.daily_paid_count == 3
    assert today.daily_total_count == 4
    assert today.daily_conversion_pct == 75.0
    assert week.my_total_revenue == 8000
    assert week.daily_total_count == 4


def test_revenue_split_and_month_over_month_growth(make_sale, now, tz):
    sales = [
        make_sale(amount=3000, to_client=False),
        make_sale(amount=1000, to_client=True),
        make_sale(amount=2000, to_client=False, created_at=_local(tz, 2026, 9, 30, 20)),
        make_sale(amount=1000, to_client=True, created_at=_local(tz, 2026, 9, 1, 1)),
        make_sale(amount=8000, to_client=True, approved=False),
        make_sale(amount=5000, to_client=False, created_at=_local(tz, 2026, 8, 31, 12)),
    ]

    split = aggregation.revenue_split(sales, now, tz)

    assert split.admin_revenue == 10000
    assert split.client_revenue == 2000
    assert split.total_revenue == 12000
    assert split.admin_sales_count == 3
    assert split.client_sales_count == 2
    assert split.estimated_commission == pytest.approx(200)
    assert split.client_avg_ticket == 1000
    # October vs September: admin 3000 vs 2000, client 1000 vs 1000
    assert split.admin_growth == pytest.approx(50)
    assert split.client_growth == 0


def test_category_breakdown_and_distribution(make_sale, now, tz):
    sales = [
        make_sale(product_name="Crocs", amount=1000),
        make_sale(product_name="Crocs", amount=500, approved=False),
        make_sale(product_name="Bracelete", amount=4000),
        make_sale(product_name="Bracelete", amount=2000, created_at=_local(tz, 2026, 9, 5)),
    ]

    breakdown = {metric.category: metric for metric in aggregation.category_breakdown(sales, now, tz)}

    assert list(breakdown) == list(ProductCategory)
    crocs = breakdown[ProductCategory.CROCS]
    assert (crocs.total_revenue, crocs.approved_revenue, crocs.pending_revenue) == (1500, 1000, 500)
    assert (crocs.total_sales, crocs.approved_sales, crocs.pending_sales) == (2, 1, 1)
    assert crocs.growth == 100
    assert breakdown[ProductCategory.PANDORA].growth == pytest.approx(100)
    assert breakdown[ProductCategory.PANDORA].avg_ticket_approved == 3000
    assert breakdown[ProductCategory.SEPHORA].growth == 0

    shares = aggregation.category_distribution(sales)
    assert [share.category for share in shares] == [ProductCategory.PANDORA, ProductCategory.CROCS]
    assert shares[0].percentage == pytest.approx(6000 / 7000 * 100)


# =============================================================================
# Rollups and performance
# =============================================================================

def test_revenue_rollup_by_day_week_and_month(make_sale, tz):
    sales = [
        make_sale(amount=100, created_at=_local(tz, 2026, 10, 13)),
        make_sale(amount=200, created_at=_local(tz, 2026, 10, 14)),
        make_sale(amount=300, created_at=_local(tz, 2026, 10, 19)),
        make_sale(amount=50, approved=False, created_at=_local(tz, 2026, 10, 19)),
    ]

    days = aggregation.revenue_rollup(sales, RollupBucket.DAY, tz=tz)
    assert [(point.start, point.revenue) for point in days] == [
        (date(2026, 10, 13), 100),
        (date(2026, 10, 14), 200),
        (date(2026, 10, 19), 300),
    ]

    last_two = aggregation.revenue_rollup(sales, RollupBucket.DAY, last=2, tz=tz)
    assert [point.start for point in last_two] == [date(2026, 10, 14), date(2026, 10, 19)]
    assert last_two[0].revenue_percentage == pytest.approx(200 / 300 * 100)
    assert last_two[1].revenue_percentage == 100

    weeks = aggregation.revenue_rollup(sales, RollupBucket.WEEK, tz=tz)
    assert [(point.start, point.revenue, point.count) for point in weeks] == [
        (date(2026, 10, 12), 300, 2),
        (date(2026, 10, 19), 300, 1),
    ]

    months = aggregation.revenue_rollup(sales, RollupBucket.MONTH, tz=tz)
    assert [(point.start, point.revenue) for point in months] == [(date(2026, 10, 1), 600)]

    assert aggregation.revenue_rollup([], RollupBucket.DAY, tz=tz) == []


def test_performance_summary(make_sale, now, tz):
    sales = [
        make_sale(amount=1000),
        make_sale(amount=2000, created_at=_local(tz, 2026, 10, 18)),  # Sunday, last week
        make_sale(amount=3000, created_at=_local(tz, 2026, 9, 10)),  # Thursday, last month
        make_sale(amount=500, approved=False),
    ]

    summary = aggregation.performance_summary(sales, now, tz)

    assert summary.today_revenue == 1000
    assert summary.today_sales_count == 1
    assert summary.this_week_revenue == 1000
    assert summary.this_month_revenue == 3000
    assert summary.this_month_sales_count == 2
    assert summary.monthly_growth == 0
    assert summary.conversion_rate == 75
    assert summary.best_day_name == "Quinta"
    assert summary.best_day_revenue == 3000
    assert summary.monthly_goal == 4500
    assert summary.goal_progress == pytest.approx(3000 / 4500 * 100)
    assert summary.avg_daily_revenue_this_month == pytest.approx(3000 / 19)


def test_monthly_goal_fallbacks(make_sale, now, tz):
    empty = aggregation.performance_summary([], now, tz)
    assert empty.monthly_goal == 1_000_000
    assert empty.goal_progress == 0
    assert empty.best_day_name is None

    only_this_month = aggregation.performance_summary([make_sale(amount=1000)], now, tz)
    assert only_this_month.monthly_goal == pytest.approx(1200)

    beat_goal = aggregation.performance_summary(
        [make_sale(amount=1000), make_sale(amount=100, created_at=_local(tz, 2026, 9, 2))],
        now,
        tz,
    )
    assert beat_goal.monthly_goal == pytest.approx(150)
    assert beat_goal.goal_progress == 100


# =============================================================================
# Rankings
# =============================================================================

@pytest.fixture
def ranking_data(make_sale, make_client, make_offer):
    clients = [
        make_client("c1", "Alpha", offers=[make_offer("o1", "A1", use_tax=True), make_offer("o2", "A2")]),
        make_client("c2", "Beta", offers=[make_offer("o3", "B1")]),
        make_client("c3", "Gamma"),
    ]
    sales = [
        make_sale(client_id="c1", offer_id="o1", amount=1000),
        make_sale(client_id="c1", offer_id="o2", amount=3000, to_client=True),
        make_sale(client_id="c1", offer_id="o1", amount=500, approved=False),
        make_sale(client_id="c2", offer_id="o3", amount=4000),
        make_sale(client_id="cX", offer_id="oX", amount=4000, to_client=True),
    ]
    return sales, clients


def test_client_ranking_ties_keep_input_order(ranking_data):
    sales, clients = ranking_data

    ranking = aggregation.client_ranking(sales, clients)

    assert [(entry.rank, entry.client_name) for entry in ranking] == [
        (1, "Alpha"),
        (2, "Beta"),
        (3, UNKNOWN_CLIENT),
    ]
    alpha = ranking[0]
    assert (alpha.total_revenue, alpha.total_sales) == (4500, 3)
    assert (alpha.approved_revenue, alpha.approved_sales) == (4000, 2)
    assert alpha.avg_ticket == 2000
    assert (alpha.active_offers, alpha.total_offers) == (1, 2)
    assert alpha.top_offer.name == "A2" and alpha.top_offer.revenue == 3000
    unknown = ranking[2]
    assert unknown.known is False
    assert unknown.top_offer.name == UNKNOWN_OFFER


def test_client_ranking_keeps_top_ten(make_sale, make_client):
    clients = [make_client(f"c{i}", f"Client {i}") for i in range(12)]
    sales = [make_sale(client_id=f"c{i}", amount=100 + i) for i in range(12)]

    ranking = aggregation.client_ranking(sales, clients)

    assert len(ranking) == 10
    assert ranking[0].client_id == "c11"


def test_client_revenue_table(ranking_data):
    sales, clients = ranking_data

    rows = aggregation.client_revenue_table(sales, clients)

    assert [row.client_name for row in rows] == ["Alpha", "Beta", UNKNOWN_CLIENT]
    assert rows[0].pending_revenue == 500
    assert rows[0].pending_sales == 1


def test_offer_ranking(ranking_data, now, tz):
    sales, clients = ranking_data

    ranking = aggregation.offer_ranking(sales, clients, DateFilter.ALL, now, tz)

    assert [(entry.rank, entry.offer_id) for entry in ranking] == [
        (1, "o3"),
        (2, "oX"),
        (3, "o2"),
        (4, "o1"),
    ]
    unknown = ranking[1]
    assert unknown.offer_name == UNKNOWN_OFFER
    assert unknown.client_name == UNKNOWN_CLIENT
    assert unknown.admin_revenue == 0
    o2 = ranking[2]
    assert (o2.client_name, o2.total_revenue, o2.admin_revenue) == ("Alpha", 3000, 0)
    assert ranking[3].admin_sales == 1

    assert aggregation.offer_ranking(sales, [], DateFilter.ALL, now, tz) == []
    assert len(aggregation.offer_ranking(sales, clients, DateFilter.ALL, now, tz, size=2)) == 2


# =============================================================================
# Client directory
# =============================================================================

def test_group_clients_sorts_groups_and_members(make_client):
    clients = [
        make_client("1", "Loja Centro - 2"),
        make_client("2", "Zeta"),
        make_client("3", "Loja Centro - 1"),
        make_client("4", "alpha store"),
        make_client("5", "Loja Centro"),
    ]

    directory = aggregation.group_clients(clients)

    assert [group.base_name for group in directory.groups] == ["alpha store", "Loja Centro", "Zeta"]
    assert [member.name for member in directory.groups[1].clients] == [
        "Loja Centro",
        "Loja Centro - 1",
        "Loja Centro - 2",
    ]
    assert directory.total_clients == 5


def test_group_clients_metrics_overlay_and_search(make_sale, make_client, make_offer, now, tz):
    nested = [
        make_sale(amount=1000),
        make_sale(amount=500, visible=False),
        make_sale(amount=700, approved=False),
        make_sale(amount=800, created_at=_local(tz, 2026, 1, 1)),
    ]
    client = make_client(
        "c1",
        "Loja",
        offers=[make_offer("o1", "Oferta A1", sales=nested), make_offer("o2", "Oferta B", use_tax=True)],
        sales=nested,
        token="abcdefghijklmnop",
    )
    other = make_client("c2", "Outra Loja", offers=[make_offer("o3", "Combo")])

    today = aggregation.group_clients(
        [client, other], date_filter=DateFilter.TODAY, overlay={"o1": True}, pending=["o1"], now=now, tz=tz
    )
    summary = next(member for group in today.groups for member in group.clients if member.client_id == "c1")

    assert summary.total_revenue == 1000
    assert summary.total_sales == 1
    assert summary.active_offers == 2
    assert summary.token_preview == "abcdefgh..."
    first_offer = summary.offers[0]
    assert first_offer.use_tax is True and first_offer.pending_change is True
    assert first_offer.pending_sales == 1
    assert today.active_offers == 2
    assert today.total_offers == 3

    everything = aggregation.group_clients([client], date_filter=DateFilter.ALL, now=now, tz=tz)
    assert everything.groups[0].total_revenue == 1800
    assert everything.active_offers == 1

    found = aggregation.group_clients([client, other], search="a1", now=now, tz=tz)
    assert [member.client_id for group in found.groups for member in group.clients] == ["c1"]
    assert aggregation.group_clients([client, other], search="outra").total_clients == 1


# =============================================================================
# Sales table and whole report
# =============================================================================

def test_sale_rows_and_pagination(make_sale, make_client, make_offer):
    clients = [make_client("c1", "Loja", offers=[make_offer("o1", "Oferta")])]
    sales = [make_sale(client_id="c1", offer_id="o1", amount=123456), make_sale(client_id="zz")]

    rows = aggregation.sale_rows(sales, clients)

    assert rows[0].client_name == "Loja" and rows[0].offer_name == "Oferta"
    assert rows[0].amount_display == "R$\u00a01.234,56"
    assert rows[1].client_name == UNKNOWN_CLIENT and rows[1].offer_name == UNKNOWN_OFFER

    items, pages = aggregation.paginate(list(range(25)), page=3)
    assert items == [20, 21, 22, 23, 24]
    assert pages == 3
    assert aggregation.paginate([], page=1) == ([], 0)


def test_report_is_idempotent(ranking_data, now, tz):
    sales, clients = ranking_data
    snapshot = [sale.model_dump() for sale in sales]
    filters = AnalyticsFilters(date_filter=DateFilter.ALL)

    first = aggregation.analytics_report(sales, clients, filters, now, tz)
    second = aggregation.analytics_report(sales, clients, filters, now, tz)

    assert first.model_dump_json() == second.model_dump_json()
    assert [sale.model_dump() for sale in sales] == snapshot
    assert first.sales_considered == 5
    assert len(first.daily) == 1
