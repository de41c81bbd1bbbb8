"""
Admin API: supported tokens, prices, withdrawals, ownership, event journal.
Authorization is enforced by the registry itself (single owner), not by the router.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from paygate.api.deps import get_caller
from paygate.db.session import get_db
from paygate.paywall.registry import PaywallRegistry
from paygate.schemas.paywall import OwnershipIn, PaginatedEvents, PricesIn, TokenIn, WithdrawIn
from paygate.services.events.service import EventJournalService
from paygate.services.registry.runtime import get_registry

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------- Supported tokens ----------
@router.post("/tokens")
def tokens_add(
    body: TokenIn,
    caller: str = Depends(get_caller),
    registry: PaywallRegistry = Depends(get_registry),
):
    event = registry.add_supported_token(caller, body.token, body.month_price, body.year_price)
    return event.to_payload()


@router.delete("/tokens/{token}")
def tokens_remove(
    token: str,
    caller: str = Depends(get_caller),
    registry: PaywallRegistry = Depends(get_registry),
):
    event = registry.remove_supported_token(caller, token)
    if event is None:
        return {"removed": False, "token": token}
    return event.to_payload()


@router.put("/tokens/{token}/prices")
def tokens_update_prices(
    token: str,
    body: PricesIn,
    caller: str = Depends(get_caller),
    registry: PaywallRegistry = Depends(get_registry),
):
    event = registry.update_prices(caller, token, body.month_price, body.year_price)
    return event.to_payload()


# ---------- Withdrawals ----------
@router.post("/withdraw")
def withdraw(
    body: WithdrawIn,
    caller: str = Depends(get_caller),
    registry: PaywallRegistry = Depends(get_registry),
):
    event = registry.withdraw_token(caller, body.token, body.amount)
    return event.to_payload()


@router.post("/withdraw-all")
def withdraw_all(
    caller: str = Depends(get_caller),
    registry: PaywallRegistry = Depends(get_registry),
):
    events = registry.withdraw_all(caller)
    return {"withdrawals": [e.to_payload() for e in events]}


@router.get("/custody/{token}")
def custody_balance(
    token: str,
    caller: str = Depends(get_caller),
    registry: PaywallRegistry = Depends(get_registry),
):
    registry.require_administrator(caller)
    return {"token": token, "balance": registry.custody_balance(token)}


# ---------- Ownership ----------
@router.post("/ownership")
def ownership_transfer(
    body: OwnershipIn,
    caller: str = Depends(get_caller),
    registry: PaywallRegistry = Depends(get_registry),
):
    event = registry.transfer_ownership(caller, body.new_owner)
    return event.to_payload()


# ---------- Event journal ----------
@router.get("/events", response_model=PaginatedEvents)
def events_list(
    db: Session = Depends(get_db),
    caller: str = Depends(get_caller),
    registry: PaywallRegistry = Depends(get_registry),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    event_name: str | None = None,
    token: str | None = None,
    account: str | None = None,
):
    registry.require_administrator(caller)
    items, total = EventJournalService(db).list(
        page=page, page_size=page_size, event_name=event_name, token=token, account=account
    )
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "pages": (total + page_size - 1) // page_size,
    }
