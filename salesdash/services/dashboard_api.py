"""
Collaborator REST API Client
Paginated collections (sales, clients, checkouts) and the two mutations
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Type

import httpx

from salesdash.core.config import settings
from salesdash.core.exceptions import PageFetchError
from salesdash.models.enums import Resource
from salesdash.models.records import Checkout, Client, RecordBase, Sale, coerce_visible

logger = logging.getLogger(__name__)

ENDPOINTS: Dict[Resource, str] = {
    Resource.SALES: "/sales",
    Resource.CLIENTS: "/clients",
    Resource.CHECKOUTS: "/checkout",
}

RECORD_TYPES: Dict[Resource, Type[RecordBase]] = {
    Resource.SALES: Sale,
    Resource.CLIENTS: Client,
    Resource.CHECKOUTS: Checkout,
}

# Sales of this product routed to a client arrive in reais instead of cents
BURGERLAB_MARKER = "burgerlab"
BURGERLAB_FACTOR = 100


def default_limit(resource: Resource) -> int:
    """Page size used when the caller does not pick one"""
    if resource == Resource.CLIENTS:
        return settings.CLIENTS_PAGE_LIMIT
    return settings.SALES_PAGE_LIMIT


def unwrap_collection(payload: Any) -> List[Any]:
    """
    Accept both `{"data": [...], "pagination": {...}}` and a bare array.
    """
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    if isinstance(payload, list):
        return payload
    raise ValueError(f"Unexpected collection payload: {type(payload).__name__}")


def normalize_sale(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply ingestion rules to one raw sale.

    - `visible` becomes a definite boolean (absent/null -> True, "false" -> False)
    - BurgerLab sales routed to a client get `amount` multiplied by 100
    """
    sale = dict(raw)
    sale["visible"] = coerce_visible(sale.get("visible"))

    product_name = str(sale.get("productName") or "")
    if BURGERLAB_MARKER in product_name.lower() and sale.get("toClient") is True:
        sale["amount"] = round(float(sale.get("amount") or 0) * BURGERLAB_FACTOR)
        logger.debug(
            f"BurgerLab sale {sale.get('id')} for client, amount corrected to {sale['amount']}"
        )

    return sale


@dataclass
class PageResult:
    """Outcome of one page request; `error` is set instead of raising"""
    resource: Resource
    page: int
    limit: int
    records: List[Any] = field(default_factory=list)
    error: Optional[PageFetchError] = None
    # Items in the response before invalid records were skipped
    received: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def page_length(self) -> int:
        """Size of the page as served, used for the short-page check"""
        return len(self.records) if self.received is None else self.received

    def __len__(self) -> int:
        return len(self.records)


class DashboardAPI:
    """
    Client for the dashboard's collaborator API.

    Page reads are fail-soft: a failed page comes back empty with its error
    attached, so one bad page never aborts a longer progressive load.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    # ========================================
    # Collections
    # ========================================

    async def fetch_page(
        self,
        resource: Resource,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> PageResult:
        """
        Fetch one 1-based page of a collection.

        Args:
            resource: Collection to read
            page: Page number, starting at 1
            limit: Page size (defaults per resource)

        Returns:
            PageResult with typed records, or empty records and `error` set
        """
        limit = limit or default_limit(resource)
        params = {"page": str(page), "limit": str(limit)}
        return await self._fetch_collection(resource, page, limit, params)

    async def fetch_checkouts(self) -> PageResult:
        """Fetch every checkout configuration (the endpoint is not paginated)"""
        return await self._fetch_collection(Resource.CHECKOUTS, 1, 0, None)

    async def _fetch_collection(
        self,
        resource: Resource,
        page: int,
        limit: int,
        params: Optional[Dict[str, str]],
    ) -> PageResult:
        result = PageResult(resource=resource, page=page, limit=limit)
        name = resource.value

        try:
            response = await self.client.get(ENDPOINTS[resource], params=params)
            response.raise_for_status()
            items = unwrap_collection(response.json())
            result.received = len(items)
            result.records = self._parse_records(resource, page, items)

            if items and not result.records:
                raise ValueError(f"none of the {len(items)} records could be read")

        except httpx.HTTPError as e:
            logger.error(f"HTTP Error fetching {name} page {page}: {e}")
            result.records = []
            result.error = PageFetchError(name, page, e)
        except ValueError as e:
            # Malformed JSON or no readable record in the page
            logger.error(f"Invalid {name} page {page}: {e}")
            result.records = []
            result.error = PageFetchError(name, page, e)
        except Exception as e:
            logger.exception(f"Unexpected error reading {name} page {page}")
            result.records = []
            result.error = PageFetchError(name, page, e)

        return result

    @staticmethod
    def _parse_records(resource: Resource, page: int, items: List[Any]) -> List[RecordBase]:
        """Validate records one by one; a bad record is logged and skipped"""
        record_type = RECORD_TYPES[resource]
        records = []
        for index, item in enumerate(items):
            try:
                if resource == Resource.SALES:
                    item = normalize_sale(item)
                records.append(record_type.model_validate(item))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping invalid {resource.value} record {index} on page {page}: {e}")
        return records

    # ========================================
    # Mutations
    # ========================================

    async def toggle_offer_use_tax(self, offer_id: str, current_use_tax: bool) -> bool:
        """Flip the commission flag of one offer; True when the server accepted it"""
        new_use_tax = not current_use_tax
        logger.info(f"Toggling useTax for offer {offer_id}: {current_use_tax} -> {new_use_tax}")

        return await self._post(
            "/use-tax",
            {"offerId": offer_id, "useTax": new_use_tax},
            f"toggle_offer_use_tax({offer_id})",
        )

    async def update_checkout(self, checkout_id: str, my_checkout: str, offer: str) -> bool:
        """Save the operator checkout link for the offer; True when accepted"""
        logger.info(f"Updating checkout {checkout_id} with myCheckout: {my_checkout}")

        return await self._post(
            "/checkout/update",
            {"checkout": my_checkout, "offer": offer},
            f"update_checkout({checkout_id})",
        )

    async def _post(self, path: str, body: Dict[str, Any], action: str) -> bool:
        try:
            response = await self.client.post(path, json=body)
        except httpx.HTTPError as e:
            logger.error(f"Network error in {action}: {e}")
            return False

        logger.info(f"Response status for {action}: {response.status_code}")
        if not response.is_success:
            logger.error(f"Error ({response.status_code}) for {action}: {response.text}")
        return response.is_success
