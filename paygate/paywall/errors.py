"""
Paywall error taxonomy. Every error aborts the whole operation: no state change, no event.
"""
from __future__ import annotations

from typing import Any


class PaywallError(Exception):
    """Base class; `code` is the stable kind exposed to API callers."""

    code = "paywall_error"

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "detail": str(self)}


class LengthMismatch(PaywallError):
    """Initial batch lists are not aligned."""

    code = "length_mismatch"

    def __init__(self, left: str, right: str, left_len: int, right_len: int):
        self.left = left
        self.right = right
        self.left_len = left_len
        self.right_len = right_len
        super().__init__(f"Length mismatch: {left} ({left_len}) vs {right} ({right_len})")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "left": self.left, "right": self.right}


class TokenNotSupported(PaywallError):
    code = "token_not_supported"

    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Token not supported: {token}")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "token": self.token}


class InsufficientBalance(PaywallError):
    """Withdrawal exceeds the registry custody balance."""

    code = "insufficient_balance"

    def __init__(self, token: str, balance: int, requested: int):
        self.token = token
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Insufficient custody balance of {token}: have {balance}, requested {requested}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "token": self.token}


class ZeroAddress(PaywallError):
    code = "zero_address"

    def __init__(self, field: str = "token"):
        self.field = field
        super().__init__(f"Zero address is not allowed for {field}")


class Unauthorized(PaywallError):
    code = "unauthorized"

    def __init__(self, caller: str):
        self.caller = caller
        super().__init__(f"Caller {caller} is not the administrator")


class TransferFailed(PaywallError):
    """Raised when the Transfer Service rejects or cannot perform a movement."""

    code = "transfer_failed"

    def __init__(self, token: str, reason: str, message: str = ""):
        self.token = token
        self.reason = reason  # insufficient_balance / insufficient_allowance / unavailable
        super().__init__(f"Transfer of {token} failed ({reason}){': ' + message if message else ''}")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "token": self.token, "reason": self.reason}
