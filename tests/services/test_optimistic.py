import asyncio
from types import SimpleNamespace

import pytest

from salesdash.core.exceptions import MutationConflictError, NotFoundError
from salesdash.models.enums import LoadPhase
from salesdash.services.optimistic import OfferTaxService, OptimisticOverlay, OverlaySync


class FakeTaxAPI:
    def __init__(self, result=True, gate: asyncio.Event = None):
        self.result = result
        self.gate = gate
        self.calls = []

    async def toggle_offer_use_tax(self, offer_id, current_use_tax):
        self.calls.append((offer_id, current_use_tax))
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def _clients_store(clients):
    return SimpleNamespace(state=SimpleNamespace(data=tuple(clients)))


@pytest.fixture
def clients(make_client, make_offer):
    return [make_client("c1", "Loja", offers=[make_offer("o1", "Oferta", use_tax=False)])]


def test_overlay_set_confirm_revert():
    overlay = OptimisticOverlay()

    overlay.set("o1", True)
    assert overlay.get("o1") is True
    assert overlay.is_pending("o1")

    with pytest.raises(MutationConflictError):
        overlay.set("o1", False)

    overlay.confirm("o1")
    assert not overlay.is_pending("o1")
    assert overlay.confirmed() == frozenset({"o1"})

    overlay.set("o2", False)
    overlay.revert("o2")
    assert "o2" not in overlay
    assert overlay.values() == {"o1": True}


def test_reconcile_drops_only_entries_confirmed_before_reload():
    overlay = OptimisticOverlay()
    overlay.set("old", True)
    overlay.confirm("old")
    overlay.set("new", True)

    assert overlay.reconcile(["old", "new"]) == 1
    assert overlay.values() == {"new": True}


def test_overlay_sync_follows_clients_reloads():
    overlay = OptimisticOverlay()
    sync = OverlaySync(overlay)

    overlay.set("o1", True)
    overlay.confirm("o1")

    sync(SimpleNamespace(phase=LoadPhase.LOADING_INITIAL))
    # confirmed while the reload was already running: must survive it
    overlay.set("o2", True)
    overlay.confirm("o2")
    sync(SimpleNamespace(phase=LoadPhase.LOADING_MORE))
    sync(SimpleNamespace(phase=LoadPhase.COMPLETE))

    assert overlay.values() == {"o2": True}


def test_toggle_success_keeps_new_value(clients):
    overlay = OptimisticOverlay()
    api = FakeTaxAPI(result=True)
    service = OfferTaxService(api, overlay, _clients_store(clients))

    outcome = asyncio.run(service.toggle("o1"))

    assert outcome.accepted is True
    assert outcome.use_tax is True
    assert api.calls == [("o1", False)]
    assert overlay.get("o1") is True
    assert not overlay.is_pending("o1")


def test_toggle_failure_reverts(clients):
    overlay = OptimisticOverlay()
    service = OfferTaxService(FakeTaxAPI(result=False), overlay, _clients_store(clients))

    outcome = asyncio.run(service.toggle("o1"))

    assert outcome.accepted is False
    assert outcome.use_tax is False

    assert "o1" not in overlay
    assert service.overlay.effective(clients[0].offers[0]) is False


def test_toggle_exception_reverts_and_propagates(clients):
    overlay = OptimisticOverlay()
    service = OfferTaxService(FakeTaxAPI(result=RuntimeError("bug")), overlay, _clients_store(clients))

    with pytest.raises(RuntimeError):
        asyncio.run(service.toggle("o1"))

    assert "o1" not in overlay


def test_value_is_visible_while_request_is_pending(clients):
    gate = asyncio.Event()
    overlay = OptimisticOverlay()
    service = OfferTaxService(FakeTaxAPI(result=True, gate=gate), overlay, _clients_store(clients))

    async def _run():
        task = asyncio.create_task(service.toggle("o1"))
        await asyncio.sleep(0)
        during = overlay.effective(clients[0].offers[0])
        with pytest.raises(MutationConflictError):
            await service.toggle("o1")
        gate.set()
        await task
        return during

    assert asyncio.run(_run()) is True


def test_second_toggle_flips_back(clients):
    overlay = OptimisticOverlay()
    api = FakeTaxAPI(result=True)
    service = OfferTaxService(api, overlay, _clients_store(clients))

    asyncio.run(service.toggle("o1"))
    asyncio.run(service.toggle("o1"))

    assert api.calls == [("o1", False), ("o1", True)]
    assert overlay.get("o1") is False


def test_unknown_offer(clients):
    service = OfferTaxService(FakeTaxAPI(), OptimisticOverlay(), _clients_store(clients))

    with pytest.raises(NotFoundError):
        asyncio.run(service.toggle("missing"))


def test_clients_reload_during_request_does_not_break_outcome(clients):
    gate = asyncio.Event()
    overlay = OptimisticOverlay()
    store = _clients_store(clients)
    service = OfferTaxService(FakeTaxAPI(result=True, gate=gate), overlay, store)

    async def _run():
        task = asyncio.create_task(service.toggle("o1"))
        await asyncio.sleep(0)
        # a refetch empties the collection while the request is in flight
        store.state = SimpleNamespace(data=())
        gate.set()
        return await task

    outcome = asyncio.run(_run())

    assert outcome.offer_id == "o1"
    assert outcome.accepted is True
    assert outcome.use_tax is True
    assert overlay.get("o1") is True
