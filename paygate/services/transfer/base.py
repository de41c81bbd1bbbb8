"""
Base classes and error kinds for the Value Transfer Service.
Used by the registry and by every backend (sql, memory, http).
"""
from abc import ABC, abstractmethod


class TransferError(Exception):
    """Base class for transfer-level failures; `reason` is mapped by the registry."""

    reason = "transfer_error"

    def __init__(self, message: str, *, account: str | None = None, token: str | None = None):
        super().__init__(message)
        self.account = account
        self.token = token


class InsufficientFunds(TransferError):
    reason = "insufficient_balance"


class InsufficientAllowance(TransferError):
    reason = "insufficient_allowance"


class TransferServiceUnavailable(TransferError):
    reason = "unavailable"


class TransferService(ABC):
    """
    Atomic token movement between accounts.

    The service is bound to an operator account (the registry custody account).
    Moving funds out of any other account consumes an allowance that account
    granted to the operator; moving the operator's own funds does not.
    """

    def __init__(self, operator: str):
        self.operator = operator

    @abstractmethod
    def balance_of(self, account: str, token: str) -> int:
        """Current balance of `account` in `token`'s smallest unit."""

    @abstractmethod
    def transfer_from(self, payer: str, payee: str, token: str, amount: int) -> None:
        """
        Move exactly `amount` from payer to payee, or nothing at all.

        Raises:
            InsufficientFunds, InsufficientAllowance, TransferServiceUnavailable
        """

    def close(self) -> None:
        """Release backend resources (connections, clients)."""
