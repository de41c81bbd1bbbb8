"""
PaywallEventRecord: journal of every event emitted by the registry.
payload holds the event fields as emitted (see paygate.paywall.models).
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB

from paygate.db.base import Base


class PaywallEventRecord(Base):
    __tablename__ = "paywall_events"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    event_name = Column(String, nullable=False, index=True)
    token = Column(String, nullable=True, index=True)
    account = Column(String, nullable=True, index=True)  # user / new owner, where the event has one
    payload = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
