"""
Checkout link management
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from salesdash.core.config import settings
from salesdash.core.exceptions import DashboardError, NotFoundError
from salesdash.models.enums import RowStatus
from salesdash.models.records import Checkout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowBadge:
    status: RowStatus
    at: float
    message: Optional[str] = None


class RowStatusBoard:
    """
    Inline feedback per edited row.

    An error badge stays until the next successful action on the same row;
    a success badge expires after `success_ttl` seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, success_ttl: Optional[float] = None):
        self._clock = clock
        self.success_ttl = settings.SUCCESS_BADGE_SECONDS if success_ttl is None else success_ttl
        self._badges: Dict[str, RowBadge] = {}

    def mark_success(self, row_id: str):
        self._badges[row_id] = RowBadge(RowStatus.SUCCESS, self._clock())

    def mark_error(self, row_id: str, message: Optional[str] = None):
        self._badges[row_id] = RowBadge(RowStatus.ERROR, self._clock(), message)

    def get(self, row_id: str) -> Optional[RowBadge]:
        badge = self._badges.get(row_id)
        if badge is None:
            return None
        if badge.status == RowStatus.SUCCESS and self._clock() - badge.at >= self.success_ttl:
            del self._badges[row_id]
            return None
        return badge

    def snapshot(self) -> Dict[str, RowBadge]:
        result = {}
        for row_id in list(self._badges):
            badge = self.get(row_id)
            if badge is not None:
                result[row_id] = badge
        return result


class CheckoutService:
    """
    Cached checkout list plus the save action for `myCheckout`.

    Saves are not optimistic: the cached row changes only after the server
    accepted the new link.
    """

    def __init__(self, api, clock: Callable[[], float] = time.monotonic):
        self.api = api
        self.board = RowStatusBoard(clock=clock)
        self._checkouts: List[Checkout] = []
        self.error: Optional[Exception] = None
        self.loaded = False

    @property
    def checkouts(self) -> List[Checkout]:
        return list(self._checkouts)

    async def load(self) -> List[Checkout]:
        """Fetch all checkouts; on failure the previous list is kept and `error` set"""
        result = await self.api.fetch_checkouts()
        if result.ok:
            self._checkouts = list(result.records)
            self.error = None
            self.loaded = True
            logger.info(f"Loaded {len(self._checkouts)} checkouts")
        else:
            self.error = result.error
            logger.error(f"Error loading checkouts: {result.error}")
        return self.checkouts

    def get(self, checkout_id: str) -> Checkout:
        for checkout in self._checkouts:
            if checkout.id == checkout_id:
                return checkout
        raise NotFoundError(f"Checkout {checkout_id} not found")

    def search(self, term: Optional[str] = None) -> List[Checkout]:
        """Match the offer name, the operator link or the client's last link"""
        needle = (term or "").strip().lower()
        if not needle:
            return self.checkouts
        return [
            checkout
            for checkout in self._checkouts
            if needle in checkout.offer.lower()
            or needle in checkout.my_checkout.lower()
            or needle in (checkout.last_client_checkout or "").lower()
        ]

    def configured_count(self) -> int:
        return sum(1 for checkout in self._checkouts if checkout.my_checkout.strip())

    async def save(self, checkout_id: str, my_checkout: str) -> bool:
        """
        Store a new operator link for one checkout.

        Blank values and unknown ids are rejected before any request is made.
        Returns False when the server refused the update.
        """
        value = (my_checkout or "").strip()
        if not value:
            self.board.mark_error(checkout_id, "Checkout link cannot be empty")
            raise DashboardError("Checkout link cannot be empty", 422)

        try:
            checkout = self.get(checkout_id)
        except NotFoundError:
            self.board.mark_error(checkout_id, "Unknown checkout")
            raise

        success = await self.api.update_checkout(checkout_id, value, checkout.offer)
        if not success:
            self.board.mark_error(checkout_id, "Update rejected by server")
            return False

        # The list may have been reloaded while the request was in flight
        latest = next((row for row in self._checkouts if row.id == checkout_id), None)
        if latest is not None:
            updated = latest.model_copy(update={"my_checkout": value})
            self._checkouts = [updated if row.id == checkout_id else row for row in self._checkouts]
        self.board.mark_success(checkout_id)
        return True
