"""
PaywallRegistry: supported tokens, per-token MONTH/YEAR prices, purchase and withdrawal.

Every public method runs under one registry lock, so operations are atomic and
totally ordered by arrival. Transfers go through the Transfer Service inside the
lock; an event is emitted only after the transfer is confirmed.

Inherited list semantics:
- adding a token that is already supported overwrites its prices and appends a
  second list slot;
- removal swaps the removed slot with the last one, so residual order is not
  insertion order ([A, B, C] minus A -> [C, B]).
"""
from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterable, Sequence

from paygate.paywall.access import AccessControl
from paygate.paywall.errors import (
    InsufficientBalance,
    LengthMismatch,
    PaywallError,
    TokenNotSupported,
    TransferFailed,
    ZeroAddress,
)
from paygate.paywall.events import EventDispatcher, EventSink
from paygate.paywall.models import (
    ZERO_ADDRESS,
    NewPaidUser,
    OwnershipTransferred,
    PricesUpdated,
    PurchaseDuration,
    TokenAdded,
    TokenEntry,
    TokenRemoved,
    Withdraw,
)
from paygate.services.transfer.base import TransferError, TransferService
from paygate.utils.metrics import (
    purchases_total,
    registry_errors_total,
    registry_mutations_total,
    supported_tokens,
    withdrawals_total,
)

logger = logging.getLogger(__name__)


def _check_prices(month_price: int, year_price: int) -> None:
    if month_price < 0 or year_price < 0:
        raise ValueError("prices must be non-negative integers")


def _coerce_duration(duration: PurchaseDuration | str) -> PurchaseDuration:
    if isinstance(duration, PurchaseDuration):
        return duration
    try:
        return PurchaseDuration(duration.lower() if isinstance(duration, str) else duration)
    except ValueError:
        raise ValueError(f"invalid purchase duration: {duration!r}") from None


class PaywallRegistry:
    def __init__(
        self,
        tokens: Sequence[str],
        month_prices: Sequence[int],
        year_prices: Sequence[int],
        *,
        owner: str,
        custody_account: str,
        transfer_service: TransferService,
        sinks: Iterable[EventSink] = (),
        clock: Callable[[], float] = time.time,
    ) -> None:
        if len(tokens) != len(month_prices):
            raise LengthMismatch("tokens", "month_prices", len(tokens), len(month_prices))
        if len(month_prices) != len(year_prices):
            raise LengthMismatch("month_prices", "year_prices", len(month_prices), len(year_prices))
        # Validate the whole batch before writing anything: construction is all-or-nothing.
        for token, month_price, year_price in zip(tokens, month_prices, year_prices):
            if token == ZERO_ADDRESS:
                raise ZeroAddress("token")
            _check_prices(month_price, year_price)

        self._lock = threading.RLock()
        self._events = EventDispatcher(sinks)
        self._access = AccessControl(owner, on_transfer=self._events.emit)
        self._entries: dict[str, TokenEntry] = {}
        self._tokens: list[str] = []
        self._custody = custody_account
        self._transfers = transfer_service
        self._clock = clock

        for token, month_price, year_price in zip(tokens, month_prices, year_prices):
            self._add(token, int(month_price), int(year_price))
        logger.info("paywall_registry_created", extra={"caller": owner, "amount": len(self._tokens)})

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def owner(self) -> str:
        with self._lock:
            return self._access.owner

    @property
    def custody_account(self) -> str:
        return self._custody

    def is_supported(self, token: str) -> bool:
        with self._lock:
            entry = self._entries.get(token)
            return entry is not None and entry.active

    def get_token_entry(self, token: str) -> TokenEntry:
        with self._lock:
            return self._active_entry(token)

    def get_price(self, token: str) -> tuple[int, int]:
        """(month_price, year_price) of an active token."""
        with self._lock:
            entry = self._active_entry(token)
            return entry.month_price, entry.year_price

    def get_supported_tokens(self) -> list[str]:
        with self._lock:
            return list(self._tokens)

    def custody_balance(self, token: str) -> int:
        with self._lock:
            return self._balance(token)

    def require_administrator(self, caller: str) -> None:
        with self._lock:
            self._access.require_administrator(caller)

    def close(self) -> None:
        self._transfers.close()

    # ------------------------------------------------------------------
    # Purchase
    # ------------------------------------------------------------------

    def purchase(self, caller: str, token: str, duration: PurchaseDuration | str) -> NewPaidUser:
        """Charge the caller the price for `duration` and emit NewPaidUser."""
        with self._lock, self._track("purchase"):
            entry = self._active_entry(token)
            duration = _coerce_duration(duration)
            price = entry.price_for(duration)

            self._transfer(caller, self._custody, token, price)

            event = NewPaidUser(
                user=caller,
                token=token,
                is_yearly=duration is PurchaseDuration.YEAR,
                expiry_ts=int(self._clock()) + duration.seconds,
            )
            purchases_total.labels(token=token, duration=duration.value).inc()
            self._events.emit(event)
            return event

    # ------------------------------------------------------------------
    # Admin: registry mutation
    # ------------------------------------------------------------------

    def add_supported_token(self, caller: str, token: str, month_price: int, year_price: int) -> TokenAdded:
        with self._lock, self._track("add"):
            self._access.require_administrator(caller)
            if token == ZERO_ADDRESS:
                raise ZeroAddress("token")
            _check_prices(month_price, year_price)
            return self._add(token, month_price, year_price)

    def remove_supported_token(self, caller: str, token: str) -> TokenRemoved | None:
        """
        Drop the entry and swap-remove the first list slot holding `token`.
        Returns None (no event) when the entry was active but no slot matched.
        """
        with self._lock, self._track("remove"):
            self._access.require_administrator(caller)
            self._active_entry(token)
            del self._entries[token]

            try:
                index = self._tokens.index(token)
            except ValueError:
                logger.warning("paywall_token_missing_from_list", extra={"token": token})
                return None
            self._tokens[index] = self._tokens[-1]
            self._tokens.pop()

            registry_mutations_total.labels(operation="remove").inc()
            supported_tokens.set(len(self._tokens))
            event = TokenRemoved(token=token)
            self._events.emit(event)
            return event

    def update_prices(self, caller: str, token: str, month_price: int, year_price: int) -> PricesUpdated:
        with self._lock, self._track("update_prices"):
            self._access.require_administrator(caller)
            self._active_entry(token)
            _check_prices(month_price, year_price)
            self._entries[token] = TokenEntry(
                token_id=token, active=True, month_price=month_price, year_price=year_price
            )

            registry_mutations_total.labels(operation="update_prices").inc()
            event = PricesUpdated(token=token, month_price=month_price, year_price=year_price)
            self._events.emit(event)
            return event

    # ------------------------------------------------------------------
    # Admin: withdrawals
    # ------------------------------------------------------------------

    def withdraw_token(self, caller: str, token: str, amount: int) -> Withdraw:
        """Works for any non-zero token, supported or not, to recover stray deposits."""
        with self._lock, self._track("withdraw"):
            self._access.require_administrator(caller)
            if token == ZERO_ADDRESS:
                raise ZeroAddress("token")
            if amount < 0:
                raise ValueError("amount must be non-negative")
            balance = self._balance(token)
            if balance < amount:
                raise InsufficientBalance(token, balance, amount)
            return self._withdraw(token, amount)

    def withdraw_all(self, caller: str) -> list[Withdraw]:
        """
        Withdraw the full custody balance of every listed token, in list order.
        Not all-or-nothing: if one transfer fails, earlier ones stay committed.
        """
        with self._lock, self._track("withdraw_all"):
            self._access.require_administrator(caller)
            withdrawals = []
            for token in list(self._tokens):
                balance = self._balance(token)
                if balance > 0:
                    withdrawals.append(self._withdraw(token, balance))
            return withdrawals

    # ------------------------------------------------------------------
    # Admin: authority
    # ------------------------------------------------------------------

    def transfer_ownership(self, caller: str, new_owner: str) -> OwnershipTransferred:
        with self._lock, self._track("transfer_ownership"):
            event = self._access.transfer_ownership(caller, new_owner)
            registry_mutations_total.labels(operation="transfer_ownership").inc()
            return event

    def renounce_ownership(self, caller: str) -> OwnershipTransferred:
        with self._lock, self._track("renounce_ownership"):
            event = self._access.renounce_ownership(caller)
            registry_mutations_total.labels(operation="renounce_ownership").inc()
            return event

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _active_entry(self, token: str) -> TokenEntry:
        entry = self._entries.get(token)
        if entry is None or not entry.active:
            raise TokenNotSupported(token)
        return entry

    def _add(self, token: str, month_price: int, year_price: int) -> TokenAdded:
        self._entries[token] = TokenEntry(
            token_id=token, active=True, month_price=month_price, year_price=year_price
        )
        self._tokens.append(token)

        registry_mutations_total.labels(operation="add").inc()
        supported_tokens.set(len(self._tokens))
        event = TokenAdded(token=token, month_price=month_price, year_price=year_price)
        self._events.emit(event)
        return event

    def _withdraw(self, token: str, amount: int) -> Withdraw:
        self._transfer(self._custody, self._access.owner, token, amount)
        withdrawals_total.labels(token=token).inc()
        event = Withdraw(amount=amount, token=token)
        self._events.emit(event)
        return event

    def _balance(self, token: str) -> int:
        try:
            return self._transfers.balance_of(self._custody, token)
        except TransferError as e:
            raise TransferFailed(token, e.reason, str(e)) from e

    def _transfer(self, payer: str, payee: str, token: str, amount: int) -> None:
        try:
            self._transfers.transfer_from(payer, payee, token, amount)
        except TransferError as e:
            raise TransferFailed(token, e.reason, str(e)) from e

    @contextmanager
    def _track(self, operation: str):
        try:
            yield
        except (PaywallError, ValueError) as e:
            error = getattr(e, "code", "invalid_argument")
            registry_errors_total.labels(operation=operation, error=error).inc()
            logger.info("paywall_operation_rejected", extra={"reason": operation, "error": error})
            raise
