"""
Paywall API schemas.
"""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from paygate.paywall.models import PurchaseDuration


class SupportedTokensOut(BaseModel):
    tokens: list[str]


class PriceOut(BaseModel):
    token: str
    month_price: int
    year_price: int


class PurchaseIn(BaseModel):
    token: str = Field(..., min_length=1)
    duration: PurchaseDuration


class TokenIn(BaseModel):
    token: str = Field(..., min_length=1)
    month_price: int = Field(..., ge=0)
    year_price: int = Field(..., ge=0)


class PricesIn(BaseModel):
    month_price: int = Field(..., ge=0)
    year_price: int = Field(..., ge=0)


class WithdrawIn(BaseModel):
    token: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0)


class OwnershipIn(BaseModel):
    new_owner: str = Field(..., min_length=1)


class EventOut(BaseModel):
    """Journal entry."""
    id: str
    event_name: str
    token: str | None
    account: str | None
    payload: dict[str, Any]
    created_at: datetime

    model_config = {"from_attributes": True}


class PaginatedEvents(BaseModel):
    items: list[EventOut]
    total: int
    page: int
    page_size: int
    pages: int
