"""
Records fetched from the collaborator API.

Field names follow Python conventions; aliases match the camelCase wire
format so records validate straight from JSON and serialize back the same way.
Records are frozen: the dashboard never mutates what it fetched.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


def coerce_visible(value) -> bool:
    """
    Turn the loosely typed upstream `visible` flag into a definite boolean.

    Missing or null means visible; any string is visible unless it reads
    "false" in any case.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() != "false"
    return bool(value)


class RecordBase(BaseModel):
    """Common config for upstream records"""

    class Config:
        populate_by_name = True
        frozen = True
        extra = "ignore"
        coerce_numbers_to_str = True

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data):
        # Upstream sends explicit nulls for unset fields; let defaults apply
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class Sale(RecordBase):
    """One transaction; amount is in minor currency units (cents)"""
    id: str
    ghost_id: Optional[str] = Field(None, alias="ghostId")
    approved: bool = False
    product_name: str = Field("", alias="productName")
    customer_name: str = Field("", alias="customerName")
    amount: int = 0
    to_client: bool = Field(False, alias="toClient")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    client_id: Optional[str] = Field(None, alias="clientId")
    offer_id: Optional[str] = Field(None, alias="offerId")
    visible: bool = True

    @field_validator("visible", mode="before")
    @classmethod
    def _visible(cls, value):
        return coerce_visible(value)


class Offer(RecordBase):
    """Sellable variant owned by a client"""
    id: str
    name: str = ""
    use_tax: bool = Field(False, alias="useTax")
    client_id: Optional[str] = Field(None, alias="clientId")
    sales: List[Sale] = Field(default_factory=list)
    created_at: Optional[datetime] = Field(None, alias="createdAt")


class Client(RecordBase):
    """Referrer/reseller account"""
    id: str
    name: str = ""
    token: Optional[str] = None
    offers: List[Offer] = Field(default_factory=list)
    sales: List[Sale] = Field(default_factory=list)
    created_at: Optional[datetime] = Field(None, alias="createdAt")


class Checkout(RecordBase):
    """Checkout-link configuration of one offer"""
    id: str
    offer: str = ""
    my_checkout: str = Field("", alias="myCheckout")
    last_client_checkout: Optional[str] = Field(None, alias="lastClientCheckout")
    offer_id: Optional[str] = Field(None, alias="offerId")
    client_id: Optional[str] = Field(None, alias="clientId")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
