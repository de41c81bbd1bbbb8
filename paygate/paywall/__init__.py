"""
Paywall registry: accepted tokens, MONTH/YEAR prices, purchase and withdrawal.
Decision and value movement are separate; the Transfer Service moves value.
"""
from paygate.paywall.access import AccessControl
from paygate.paywall.errors import (
    InsufficientBalance,
    LengthMismatch,
    PaywallError,
    TokenNotSupported,
    TransferFailed,
    Unauthorized,
    ZeroAddress,
)
from paygate.paywall.events import EventDispatcher, log_event
from paygate.paywall.models import (
    ZERO_ADDRESS,
    NewPaidUser,
    OwnershipTransferred,
    PaywallEvent,
    PricesUpdated,
    PurchaseDuration,
    TokenAdded,
    TokenEntry,
    TokenRemoved,
    Withdraw,
)
from paygate.paywall.registry import PaywallRegistry

__all__ = [
    "ZERO_ADDRESS",
    "AccessControl",
    "EventDispatcher",
    "InsufficientBalance",
    "LengthMismatch",
    "NewPaidUser",
    "OwnershipTransferred",
    "PaywallError",
    "PaywallEvent",
    "PaywallRegistry",
    "PricesUpdated",
    "PurchaseDuration",
    "TokenAdded",
    "TokenEntry",
    "TokenNotSupported",
    "TokenRemoved",
    "TransferFailed",
    "Unauthorized",
    "Withdraw",
    "ZeroAddress",
    "log_event",
]
