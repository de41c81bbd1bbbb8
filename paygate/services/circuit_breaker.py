"""
pybreaker circuit breakers whose state lives in redis, so every API worker
trips and recovers together. Used around calls to the remote transfer service.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable

import pybreaker
import redis

from paygate.core.config import settings
from paygate.utils.metrics import circuit_breaker_failures_total, circuit_breaker_state


logger = logging.getLogger("circuit_breaker")

KEY_PREFIX = "paygate:cb"


class RedisCircuitBreakerStorage(pybreaker.CircuitBreakerStorage):
    """
    Keys per breaker: state, failure counter, half-open success counter and
    opened_at (unix seconds). Counters expire after cb_open_seconds so a quiet
    breaker forgets old failures.
    """

    def __init__(self, name: str, client: redis.Redis | None = None) -> None:
        super().__init__(name)
        self._name = name
        self.client = client or redis.Redis.from_url(settings.redis_url, decode_responses=True)
        self._keys = {
            part: f"{KEY_PREFIX}:{name}:{part}"
            for part in ("state", "counter", "success", "opened_at")
        }

    def _get_int(self, part: str) -> int:
        raw = self.client.get(self._keys[part])
        return int(raw) if raw else 0

    def _incr(self, part: str) -> None:
        pipe = self.client.pipeline()
        pipe.incr(self._keys[part])
        pipe.expire(self._keys[part], settings.cb_open_seconds)
        pipe.execute()

    @property
    def state(self) -> str:
        return self.client.get(self._keys["state"]) or pybreaker.STATE_CLOSED

    @state.setter
    def state(self, value: str) -> None:
        self.client.set(self._keys["state"], value, ex=settings.cb_open_seconds * 2)
        circuit_breaker_state.labels(name=self._name).set(1 if value == pybreaker.STATE_OPEN else 0)

    @property
    def counter(self) -> int:
        return self._get_int("counter")

    def increment_counter(self) -> None:
        self._incr("counter")

    def reset_counter(self) -> None:
        self.client.delete(self._keys["counter"])

    @property
    def success_counter(self) -> int:
        return self._get_int("success")

    def increment_success_counter(self) -> None:
        self._incr("success")

    def reset_success_counter(self) -> None:
        self.client.delete(self._keys["success"])

    @property
    def opened_at(self) -> datetime | None:
        raw = self.client.get(self._keys["opened_at"])
        return datetime.fromtimestamp(float(raw), tz=timezone.utc) if raw else None

    @opened_at.setter
    def opened_at(self, value: datetime) -> None:
        self.client.set(self._keys["opened_at"], str(value.timestamp()), ex=settings.cb_open_seconds * 2)


class CircuitBreakerListener(pybreaker.CircuitBreakerListener):
    """Logs state changes and counts failures per breaker."""

    def __init__(self, name: str) -> None:
        self.name = name

    def state_change(self, cb: pybreaker.CircuitBreaker, old_state, new_state) -> None:
        logger.warning(
            "circuit_breaker_state_change",
            extra={
                "breaker_name": self.name,
                "old_state": getattr(old_state, "name", str(old_state)),
                "new_state": getattr(new_state, "name", str(new_state)),
            },
        )

    def failure(self, cb: pybreaker.CircuitBreaker, exc: BaseException) -> None:
        circuit_breaker_failures_total.labels(name=self.name).inc()
        logger.warning(
            "circuit_breaker_failure",
            extra={"breaker_name": self.name, "error": type(exc).__name__},
        )


_breakers: dict[str, pybreaker.CircuitBreaker] = {}


def get_circuit_breaker(name: str, exclude: Iterable[type[BaseException]] = ()) -> pybreaker.CircuitBreaker:
    """
    Get or create a circuit breaker by name.
    Exceptions listed in `exclude` are business outcomes and do not count as failures.
    """
    if name not in _breakers:
        _breakers[name] = pybreaker.CircuitBreaker(
            fail_max=settings.cb_failure_threshold,
            reset_timeout=settings.cb_open_seconds,
            exclude=list(exclude),
            state_storage=RedisCircuitBreakerStorage(name),
            listeners=[CircuitBreakerListener(name)],
            name=name,
        )
    return _breakers[name]
