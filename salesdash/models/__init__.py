# Domain records and enums
from salesdash.models.enums import (
    DateFilter,
    LoadPhase,
    ProductCategory,
    Resource,
    RollupBucket,
    RowStatus,
    StatusFilter,
)
from salesdash.models.records import Checkout, Client, Offer, Sale

__all__ = [
    "Checkout",
    "Client",
    "DateFilter",
    "LoadPhase",
    "Offer",
    "ProductCategory",
    "Resource",
    "RollupBucket",
    "RowStatus",
    "Sale",
    "StatusFilter",
]
