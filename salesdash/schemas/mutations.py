"""
Schemas for the two operator mutations
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from salesdash.models.enums import RowStatus


class UseTaxToggleResponse(BaseModel):
    offer_id: str
    use_tax: bool


class CheckoutUpdateRequest(BaseModel):
    """New operator link for one checkout"""
    my_checkout: str = Field(..., alias="myCheckout")

    class Config:
        populate_by_name = True


class CheckoutRow(BaseModel):
    """Checkout with its inline status badge"""
    id: str
    offer: str
    my_checkout: str
    last_client_checkout: Optional[str] = None
    offer_id: Optional[str] = None
    client_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    status: Optional[RowStatus] = None
    status_message: Optional[str] = None


class CheckoutSummary(BaseModel):
    total: int = 0
    configured: int = 0
