import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo

import httpx
import pytest

from salesdash.core.config import settings
from salesdash.core.exceptions import PageFetchError
from salesdash.models.enums import Resource
from salesdash.models.records import Client, Offer, Sale
from salesdash.services.dashboard_api import DashboardAPI, PageResult

SAO_PAULO = ZoneInfo("America/Sao_Paulo")

# Monday, mid-afternoon local time
NOW = datetime(2026, 10, 19, 15, 0, tzinfo=SAO_PAULO)


class FakeFetcher:
    """
    Page fetcher driven by a script of page sizes.

    Each entry is an int (that many records), an Exception instance (raised)
    or the string "error" (fail-soft page with PageFetchError attached).
    Pages beyond the script repeat `default` (None means an empty page).
    """

    def __init__(self, script, default=None, gate: asyncio.Event = None):
        self.script = list(script)
        self.default = default
        self.gate = gate
        self.calls = []

    async def __call__(self, resource: Resource, page: int, limit: int) -> PageResult:
        self.calls.append((page, limit))
        if self.gate is not None:
            await self.gate.wait()

        entry = self.script[page - 1] if page <= len(self.script) else self.default
        if entry is None:
            entry = 0
        if isinstance(entry, Exception):
            raise entry
        if entry == "error":
            return PageResult(resource, page, limit, error=PageFetchError(resource.value, page))
        records = [f"{resource.value}-{page}-{index}" for index in range(entry)]
        return PageResult(resource, page, limit, records=records)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def tz():
    return SAO_PAULO


@pytest.fixture
def fake_fetcher():
    return FakeFetcher


@pytest.fixture
def no_page_delay(monkeypatch):
    monkeypatch.setattr(settings, "PAGE_DELAY_SECONDS", 0.0)


@pytest.fixture
def make_sale():
    counter = {"n": 0}

    def _make(**fields) -> Sale:
        counter["n"] += 1
        fields.setdefault("id", f"sale-{counter['n']}")
        fields.setdefault("product_name", "Produto")
        fields.setdefault("amount", 1000)
        fields.setdefault("approved", True)
        fields.setdefault("created_at", NOW)
        return Sale(**fields)

    return _make


@pytest.fixture
def make_client():
    def _make(client_id: str, name: str, offers=(), sales=(), token=None) -> Client:
        return Client(id=client_id, name=name, offers=list(offers), sales=list(sales), token=token)

    return _make


@pytest.fixture
def make_offer():
    def _make(offer_id: str, name: str, use_tax: bool = False, sales=()) -> Offer:
        return Offer(id=offer_id, name=name, use_tax=use_tax, sales=list(sales))

    return _make


@pytest.fixture
def mock_api():
    """Build a DashboardAPI whose requests go to `handler`"""
    def _make(handler) -> DashboardAPI:
        return DashboardAPI(base_url="https://upstream.test", transport=httpx.MockTransport(handler))

    return _make
