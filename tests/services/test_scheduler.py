import asyncio
from types import SimpleNamespace

from salesdash.models.enums import Resource
from salesdash.tasks.scheduler import refresh_loads_job


class FakeStore:
    def __init__(self, running):
        self.is_running = running
        self.refetched = 0

    def refetch(self):
        self.refetched += 1
        return True


def test_refresh_skips_store_that_is_still_loading():
    sales, clients = FakeStore(running=True), FakeStore(running=False)
    context = SimpleNamespace(stores={Resource.SALES: sales, Resource.CLIENTS: clients})

    restarted = asyncio.run(refresh_loads_job(context))

    assert restarted == 1
    assert sales.refetched == 0
    assert clients.refetched == 1
