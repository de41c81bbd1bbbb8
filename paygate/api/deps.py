import redis
from fastapi import Depends, HTTPException, Request, status

from paygate.core.config import settings
from paygate.services.idempotency import IdempotencyStore


def get_caller(request: Request) -> str:
    """Caller account id from the configured header; authentication happens upstream."""
    caller = (request.headers.get(settings.caller_header) or "").strip()
    if not caller:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {settings.caller_header} header",
        )
    return caller


_redis: redis.Redis | None = None


def get_redis() -> redis.Redis:
    # redis-py connects lazily, so creating the client here does no I/O.
    global _redis
    if _redis is None:
        _redis = redis.Redis.from_url(settings.redis_url, decode_responses=True)
    return _redis


def get_idempotency_store(client: redis.Redis = Depends(get_redis)) -> IdempotencyStore:
    return IdempotencyStore(client=client)
