from typing import Any, Callable

from sqlalchemy.orm import Session

from paygate.models.paywall_event import PaywallEventRecord
from paygate.paywall.models import PaywallEvent


def _account_of(payload: dict[str, Any]) -> str | None:
    return payload.get("user") or payload.get("new_owner")


class EventJournal:
    """Registry sink: persists each emitted event in its own short transaction."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def __call__(self, event: PaywallEvent) -> None:
        with self._session_factory() as db:
            EventJournalService(db).record(event)


class EventJournalService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def record(self, event: PaywallEvent) -> PaywallEventRecord:
        payload = event.model_dump()
        entry = PaywallEventRecord(
            event_name=event.event_name,
            token=payload.get("token"),
            account=_account_of(payload),
            payload=payload,
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def list(
        self,
        page: int = 1,
        page_size: int = 50,
        event_name: str | None = None,
        token: str | None = None,
        account: str | None = None,
    ) -> tuple[list[PaywallEventRecord], int]:
        q = self.db.query(PaywallEventRecord)
        if event_name:
            q = q.filter(PaywallEventRecord.event_name == event_name)
        if token:
            q = q.filter(PaywallEventRecord.token == token)
        if account:
            q = q.filter(PaywallEventRecord.account == account)
        total = q.count()
        items = (
            q.order_by(PaywallEventRecord.created_at.desc(), PaywallEventRecord.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total
