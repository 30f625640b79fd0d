"""
Per-application dashboard state
Everything the routes read lives here, created once by the lifespan.
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List

from salesdash.models.enums import Resource
from salesdash.services.checkout_service import CheckoutService
from salesdash.services.dashboard_api import DashboardAPI
from salesdash.services.load_store import ProgressiveStore
from salesdash.services.optimistic import OfferTaxService, OptimisticOverlay, OverlaySync


@dataclass
class DashboardContext:
    api: DashboardAPI
    sales: ProgressiveStore
    clients: ProgressiveStore
    overlay: OptimisticOverlay
    offer_tax: OfferTaxService
    checkouts: CheckoutService
    _unsubscribers: List[Callable[[], None]] = field(default_factory=list)

    @classmethod
    def build(cls, api: DashboardAPI) -> "DashboardContext":
        sales = ProgressiveStore(Resource.SALES, api.fetch_page)
        clients = ProgressiveStore(Resource.CLIENTS, api.fetch_page)
        overlay = OptimisticOverlay()
        context = cls(
            api=api,
            sales=sales,
            clients=clients,
            overlay=overlay,
            offer_tax=OfferTaxService(api, overlay, clients),
            checkouts=CheckoutService(api),
        )
        context._unsubscribers.append(clients.subscribe(OverlaySync(overlay)))
        return context

    @property
    def stores(self) -> Dict[Resource, ProgressiveStore]:
        return {Resource.SALES: self.sales, Resource.CLIENTS: self.clients}

    def store(self, resource: Resource) -> ProgressiveStore:
        return self.stores[resource]

    def start(self):
        for store in self.stores.values():
            store.start()

    async def close(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        for store in self.stores.values():
            await store.close()
        await self.api.close()
