from unittest.mock import MagicMock

from paygate.core.config import settings
from paygate.services.idempotency import IdempotencyStore


def test_first_use_of_key_wins():
    client = MagicMock()
    client.set.side_effect = [True, None]
    store = IdempotencyStore(client=client)

    assert store.check_and_set("purchase:u:1") is True
    assert store.check_and_set("purchase:u:1") is False
    client.set.assert_called_with(
        "idempotency:purchase:u:1", "1", nx=True, ex=settings.idempotency_ttl
    )


def test_explicit_ttl_and_release():
    client = MagicMock()
    client.set.return_value = True
    store = IdempotencyStore(client=client)

    store.check_and_set("k", ttl_seconds=5)
    client.set.assert_called_once_with("idempotency:k", "1", nx=True, ex=5)
    store.release("k")
    client.delete.assert_called_once_with("idempotency:k")
