from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import BigInteger, Column, DateTime, String, UniqueConstraint

from paygate.db.base import Base


class TokenBalance(Base):
    __tablename__ = "token_balances"
    __table_args__ = (UniqueConstraint("account", "token", name="uq_balance_account_token"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    account = Column(String, nullable=False, index=True)
    token = Column(String, nullable=False, index=True)
    amount = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class TokenAllowance(Base):
    __tablename__ = "token_allowances"
    __table_args__ = (
        UniqueConstraint("owner", "spender", "token", name="uq_allowance_owner_spender_token"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    owner = Column(String, nullable=False, index=True)
    spender = Column(String, nullable=False)
    token = Column(String, nullable=False)
    amount = Column(BigInteger, nullable=False, default=0)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
