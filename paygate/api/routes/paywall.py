"""
Public paywall API: supported tokens, prices, purchase.
"""
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status

from paygate.api.deps import get_caller, get_idempotency_store
from paygate.paywall.registry import PaywallRegistry
from paygate.schemas.paywall import PriceOut, PurchaseIn, SupportedTokensOut
from paygate.services.idempotency import IdempotencyStore
from paygate.services.registry.runtime import get_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/paywall", tags=["paywall"])


@router.get("/tokens", response_model=SupportedTokensOut)
def supported_tokens(registry: PaywallRegistry = Depends(get_registry)):
    return {"tokens": registry.get_supported_tokens()}


@router.get("/tokens/{token}/price", response_model=PriceOut)
def token_price(token: str, registry: PaywallRegistry = Depends(get_registry)):
    month_price, year_price = registry.get_price(token)
    return {"token": token, "month_price": month_price, "year_price": year_price}


@router.post("/purchase")
def purchase(
    body: PurchaseIn,
    caller: str = Depends(get_caller),
    registry: PaywallRegistry = Depends(get_registry),
    idempotency: IdempotencyStore = Depends(get_idempotency_store),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
):
    """
    Charge the caller for MONTH or YEAR access and return the NewPaidUser event.
    A repeated Idempotency-Key is rejected; the key is freed again if the purchase fails.
    """
    key = f"purchase:{caller}:{idempotency_key}" if idempotency_key else None
    if key and not idempotency.check_and_set(key):
        raise HTTPException(status.HTTP_409_CONFLICT, "Duplicate purchase request")
    try:
        event = registry.purchase(caller, body.token, body.duration)
    except Exception:
        if key:
            idempotency.release(key)
        raise
    return event.to_payload()
