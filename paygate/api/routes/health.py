"""
Probes: liveness is unconditional; readiness reports each dependency separately.
"""
import redis
from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.orm import Session

from paygate.api.deps import get_redis
from paygate.db.session import get_db
from paygate.paywall.registry import PaywallRegistry
from paygate.services.registry.runtime import get_registry

router = APIRouter()


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.get("/ready")
def readiness(
    response: Response,
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
    registry: PaywallRegistry = Depends(get_registry),
) -> dict:
    """503 with per-check errors if the database or redis is unreachable."""
    checks: dict[str, str] = {}
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = str(e)
    try:
        redis_client.ping()
        checks["redis"] = "ok"
    except redis.RedisError as e:
        checks["redis"] = str(e)

    ready = all(v == "ok" for v in checks.values())
    if not ready:
        response.status_code = 503
    return {
        "status": "ready" if ready else "not_ready",
        "checks": checks,
        "supported_tokens": len(registry.get_supported_tokens()),
    }
