"""
SqlTokenLedger: balances and allowances in SQL tables.
Each transfer runs in its own transaction with row locks on the touched rows.
"""
import logging
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as DBSession

from paygate.models.token_ledger import TokenAllowance, TokenBalance
from paygate.services.transfer.base import (
    InsufficientAllowance,
    InsufficientFunds,
    TransferService,
    TransferServiceUnavailable,
)

logger = logging.getLogger(__name__)


class SqlTokenLedger(TransferService):
    def __init__(self, session_factory: Callable[[], DBSession], operator: str) -> None:
        super().__init__(operator)
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def balance_of(self, account: str, token: str) -> int:
        try:
            with self._session_factory() as db:
                row = (
                    db.query(TokenBalance)
                    .filter(TokenBalance.account == account, TokenBalance.token == token)
                    .one_or_none()
                )
                return row.amount if row else 0
        except SQLAlchemyError as e:
            raise self._unavailable(e, account, token) from e

    def allowance(self, owner: str, spender: str, token: str) -> int:
        with self._session_factory() as db:
            row = self._allowance_row(db, owner, spender, token)
            return row.amount if row else 0

    # ------------------------------------------------------------------
    # Funding (minting into accounts, granting allowances)
    # ------------------------------------------------------------------

    def mint(self, account: str, token: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        with self._session_factory() as db:
            row = self._locked_balance(db, account, token, create=True)
            row.amount = (row.amount or 0) + amount
            db.commit()
        logger.info("ledger_mint", extra={"user": account, "token": token, "amount": amount})

    def approve(self, owner: str, spender: str, token: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        with self._session_factory() as db:
            row = self._allowance_row(db, owner, spender, token, lock=True)
            if row is None:
                row = TokenAllowance(owner=owner, spender=spender, token=token, amount=0)
                db.add(row)
            row.amount = amount
            db.commit()

    # ------------------------------------------------------------------
    # Transfer
    # ------------------------------------------------------------------

    def transfer_from(self, payer: str, payee: str, token: str, amount: int) -> None:
        """Atomically move amount; on any failure the transaction is rolled back."""
        if amount < 0:
            raise ValueError("amount must be non-negative")
        with self._session_factory() as db:
            try:
                allowance = None
                if payer != self.operator:
                    allowance = self._allowance_row(db, payer, self.operator, token, lock=True)
                    allowed = allowance.amount if allowance else 0
                    if allowed < amount:
                        raise InsufficientAllowance(
                            f"allowance {allowed} < {amount}", account=payer, token=token
                        )

                source = self._locked_balance(db, payer, token, create=True)
                balance = source.amount or 0
                if balance < amount:
                    raise InsufficientFunds(f"balance {balance} < {amount}", account=payer, token=token)

                if allowance is not None:
                    allowance.amount -= amount
                source.amount = balance - amount
                db.flush()
                target = self._locked_balance(db, payee, token, create=True)
                target.amount = (target.amount or 0) + amount
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise self._unavailable(e, payer, token) from e
            except Exception:
                db.rollback()
                raise
        logger.info(
            "ledger_transfer",
            extra={"user": payer, "token": token, "amount": amount, "backend": "sql"},
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _locked_balance(db: DBSession, account: str, token: str, create: bool = False) -> TokenBalance | None:
        row = (
            db.query(TokenBalance)
            .filter(TokenBalance.account == account, TokenBalance.token == token)
            .with_for_update()
            .one_or_none()
        )
        if row is None and create:
            row = TokenBalance(account=account, token=token, amount=0)
            db.add(row)
            db.flush()
        return row

    @staticmethod
    def _allowance_row(
        db: DBSession, owner: str, spender: str, token: str, lock: bool = False
    ) -> TokenAllowance | None:
        q = db.query(TokenAllowance).filter(
            TokenAllowance.owner == owner,
            TokenAllowance.spender == spender,
            TokenAllowance.token == token,
        )
        if lock:
            q = q.with_for_update()
        return q.one_or_none()

    @staticmethod
    def _unavailable(exc: SQLAlchemyError, account: str, token: str) -> TransferServiceUnavailable:
        # Covers lost connections and unique-key races on first-time balance rows.
        logger.warning(
            "ledger_db_error",
            extra={"user": account, "token": token, "error": type(exc).__name__, "backend": "sql"},
        )
        return TransferServiceUnavailable(f"ledger database error: {type(exc).__name__}", account=account, token=token)
