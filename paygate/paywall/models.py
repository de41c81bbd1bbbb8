"""
Paywall DTOs: TokenEntry, PurchaseDuration and the events emitted by the registry.
"""
from __future__ import annotations

from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

MONTH_SECONDS = 30 * 24 * 60 * 60
YEAR_SECONDS = 365 * 24 * 60 * 60


class PurchaseDuration(str, Enum):
    MONTH = "month"
    YEAR = "year"

    @property
    def seconds(self) -> int:
        return YEAR_SECONDS if self is PurchaseDuration.YEAR else MONTH_SECONDS


class TokenEntry(BaseModel):
    """One accepted payment instrument. Absent and inactive mean the same thing."""

    token_id: str
    active: bool = True
    month_price: int = Field(..., ge=0)
    year_price: int = Field(..., ge=0)

    model_config = {"frozen": True}

    def price_for(self, duration: PurchaseDuration) -> int:
        return self.year_price if duration is PurchaseDuration.YEAR else self.month_price


# ----- Events (one per successful state change) -----


class PaywallEvent(BaseModel):
    event_name: ClassVar[str] = ""

    model_config = {"frozen": True}

    def to_payload(self) -> dict:
        return {"event_name": self.event_name, **self.model_dump()}


class NewPaidUser(PaywallEvent):
    event_name: ClassVar[str] = "NewPaidUser"

    user: str
    token: str
    is_yearly: bool
    expiry_ts: int = Field(..., description="Advisory expiry, unix seconds; not stored by the registry")


class Withdraw(PaywallEvent):
    event_name: ClassVar[str] = "Withdraw"

    amount: int
    token: str


class TokenAdded(PaywallEvent):
    event_name: ClassVar[str] = "TokenAdded"

    token: str
    month_price: int
    year_price: int


class TokenRemoved(PaywallEvent):
    event_name: ClassVar[str] = "TokenRemoved"

    token: str


class PricesUpdated(PaywallEvent):
    event_name: ClassVar[str] = "PricesUpdated"

    token: str
    month_price: int
    year_price: int


class OwnershipTransferred(PaywallEvent):
    event_name: ClassVar[str] = "OwnershipTransferred"

    previous_owner: str
    new_owner: str


EVENT_TYPES: dict[str, type[PaywallEvent]] = {
    cls.event_name: cls
    for cls in (NewPaidUser, Withdraw, TokenAdded, TokenRemoved, PricesUpdated, OwnershipTransferred)
}
