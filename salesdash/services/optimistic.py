"""
Optimistic offer updates
Local `use_tax` values layered over the fetched clients collection until the
server and a later reload agree with them.
"""
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Set

from salesdash.core.exceptions import MutationConflictError, NotFoundError
from salesdash.models.enums import LoadPhase
from salesdash.models.records import Offer
from salesdash.services.aggregation import Catalog

logger = logging.getLogger(__name__)


class OptimisticOverlay:
    """
    Keyed map offer id -> local `use_tax` value, consulted at read time.

    An entry is pending from `set()` until `confirm()` or `revert()`. A
    confirmed entry stays until `reconcile()` is given proof that a reload
    read the server after the confirmation. The fetched collection itself is
    never modified.
    """

    def __init__(self):
        self._values: Dict[str, bool] = {}
        self._pending: Set[str] = set()

    def __contains__(self, offer_id: str) -> bool:
        return offer_id in self._values

    def __len__(self) -> int:
        return len(self._values)

    def get(self, offer_id: str, default: Optional[bool] = None) -> Optional[bool]:
        return self._values.get(offer_id, default)

    def values(self) -> Dict[str, bool]:
        """Copy of the overlay, suitable for the aggregation functions"""
        return dict(self._values)

    @property
    def pending(self) -> FrozenSet[str]:
        return frozenset(self._pending)

    def is_pending(self, offer_id: str) -> bool:
        return offer_id in self._pending

    def effective(self, offer: Offer) -> bool:
        return self._values.get(offer.id, offer.use_tax)

    def set(self, offer_id: str, value: bool):
        if offer_id in self._pending:
            raise MutationConflictError(f"Offer {offer_id} already has a change waiting for the server")
        self._values[offer_id] = value
        self._pending.add(offer_id)

    def confirm(self, offer_id: str):
        self._pending.discard(offer_id)

    def revert(self, offer_id: str):
        self._pending.discard(offer_id)
        self._values.pop(offer_id, None)

    def confirmed(self) -> FrozenSet[str]:
        """Entries the server has accepted"""
        return frozenset(key for key in self._values if key not in self._pending)

    def reconcile(self, confirmed_before_load: Iterable[str]) -> int:
        """
        Drop entries confirmed before a clients reload started; that reload
        already carries the server's value. Returns how many were dropped.
        """
        dropped = 0
        for offer_id in confirmed_before_load:
            if offer_id in self._values and offer_id not in self._pending:
                del self._values[offer_id]
                dropped += 1
        if dropped:
            logger.debug(f"Reconciled {dropped} optimistic offer update(s)")
        return dropped

    def clear(self):
        self._values.clear()
        self._pending.clear()


class OverlaySync:
    """
    Clients-store listener that reconciles the overlay after each reload.

    Remembers which entries were already confirmed when a load started and
    hands exactly those to `reconcile()` once that load completes.
    """

    def __init__(self, overlay: OptimisticOverlay):
        self.overlay = overlay
        self._snapshot: FrozenSet[str] = frozenset()
        self._phase: Optional[LoadPhase] = None

    def __call__(self, state):
        phase = state.phase
        if phase == LoadPhase.LOADING_INITIAL and self._phase != LoadPhase.LOADING_INITIAL:
            self._snapshot = self.overlay.confirmed()
        elif phase == LoadPhase.COMPLETE and self._phase != LoadPhase.COMPLETE:
            self.overlay.reconcile(self._snapshot)
            self._snapshot = frozenset()
        self._phase = phase


@dataclass(frozen=True)
class ToggleOutcome:
    """Result of one toggle; `use_tax` is the value in effect afterwards"""
    offer_id: str
    use_tax: bool
    accepted: bool


class OfferTaxService:
    """Toggles an offer's commission flag with an optimistic local value"""

    def __init__(self, api, overlay: OptimisticOverlay, clients_store):
        self.api = api
        self.overlay = overlay
        self.clients_store = clients_store

    def find_offer(self, offer_id: str) -> Offer:
        entry = Catalog.build(self.clients_store.state.data).offers.get(offer_id)
        if entry is None:
            raise NotFoundError(f"Offer {offer_id} not found")
        return entry[0]

    async def toggle(self, offer_id: str) -> ToggleOutcome:
        """
        Flip `use_tax` for one offer.

        The new value is visible immediately; it is reverted if the server
        rejects the change. The outcome is derived from the value read before
        the request, not from a second lookup.
        """
        offer = self.find_offer(offer_id)
        current = self.overlay.effective(offer)
        self.overlay.set(offer_id, not current)

        try:
            success = await self.api.toggle_offer_use_tax(offer_id, current)
        except Exception:
            self.overlay.revert(offer_id)
            raise

        if success:
            self.overlay.confirm(offer_id)
            logger.info(f"useTax for offer {offer_id} is now {not current}")
        else:
            self.overlay.revert(offer_id)
            logger.warning(f"useTax toggle rejected for offer {offer_id}, reverted to {current}")
        return ToggleOutcome(
            offer_id=offer_id,
            use_tax=(not current) if success else current,
            accepted=bool(success),
        )
