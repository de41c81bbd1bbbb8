"""
In-process token ledger: balances and allowances in dicts behind one lock.
For local development (transfer_backend=memory) and tests.
"""
import logging
import threading

from paygate.services.transfer.base import InsufficientAllowance, InsufficientFunds, TransferService

logger = logging.getLogger(__name__)


class InMemoryTokenLedger(TransferService):
    def __init__(self, operator: str) -> None:
        super().__init__(operator)
        self._lock = threading.Lock()
        self._balances: dict[tuple[str, str], int] = {}
        self._allowances: dict[tuple[str, str, str], int] = {}

    def balance_of(self, account: str, token: str) -> int:
        with self._lock:
            return self._balances.get((account, token), 0)

    def allowance(self, owner: str, spender: str, token: str) -> int:
        with self._lock:
            return self._allowances.get((owner, spender, token), 0)

    def mint(self, account: str, token: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        with self._lock:
            key = (account, token)
            self._balances[key] = self._balances.get(key, 0) + amount

    def approve(self, owner: str, spender: str, token: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        with self._lock:
            self._allowances[(owner, spender, token)] = amount

    def transfer_from(self, payer: str, payee: str, token: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        allowance_key = (payer, self.operator, token)
        with self._lock:
            balance = self._balances.get((payer, token), 0)
            allowed = self._allowances.get(allowance_key, 0)
            if payer != self.operator and allowed < amount:
                raise InsufficientAllowance(
                    f"allowance {allowed} < {amount}", account=payer, token=token
                )
            if balance < amount:
                raise InsufficientFunds(f"balance {balance} < {amount}", account=payer, token=token)

            # All checks passed: apply every write together.
            if payer != self.operator:
                self._allowances[allowance_key] = allowed - amount
            self._balances[(payer, token)] = balance - amount
            self._balances[(payee, token)] = self._balances.get((payee, token), 0) + amount
        logger.debug(
            "ledger_transfer",
            extra={"user": payer, "token": token, "amount": amount, "backend": "memory"},
        )
