"""
Remote Value Transfer Service client using httpx sync client.
Every call goes through a circuit breaker; business rejections (409) do not trip it.
"""
import logging
import time
from urllib.parse import quote

import httpx
import pybreaker

from paygate.services.transfer.base import (
    InsufficientAllowance,
    InsufficientFunds,
    TransferError,
    TransferService,
    TransferServiceUnavailable,
)
from paygate.utils.metrics import transfer_request_duration_seconds, transfer_requests_total

logger = logging.getLogger(__name__)

_REJECTIONS = {
    InsufficientFunds.reason: InsufficientFunds,
    InsufficientAllowance.reason: InsufficientAllowance,
}


class HttpTransferService(TransferService):
    """
    Client for an external transfer service:

        GET  {base}/balances/{account}/{token}  -> {"balance": int}
        POST {base}/transfers                   -> 2xx on success,
             409 {"error": "insufficient_balance" | "insufficient_allowance"} on rejection
    """

    def __init__(
        self,
        base_url: str,
        operator: str,
        breaker: pybreaker.CircuitBreaker,
        api_key: str | None = None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(operator)
        if not base_url:
            raise ValueError("transfer_service_url is required for the http backend")
        self._base_url = base_url.rstrip("/")
        self._breaker = breaker
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.Client(
            base_url=self._base_url, timeout=timeout, headers=headers, transport=transport
        )

    def _record_request(self, method: str, status: str, duration: float) -> None:
        transfer_requests_total.labels(method=method, status=status).inc()
        transfer_request_duration_seconds.labels(method=method).observe(duration)

    def _call(self, method: str, func, *args):
        start = time.time()
        try:
            result = self._breaker.call(func, *args)
        except pybreaker.CircuitBreakerError as e:
            self._record_request(method, "circuit_open", time.time() - start)
            raise TransferServiceUnavailable(f"circuit open: {e}") from e
        except (InsufficientFunds, InsufficientAllowance):
            self._record_request(method, "rejected", time.time() - start)
            raise
        except TransferError:
            self._record_request(method, "error", time.time() - start)
            raise
        self._record_request(method, "success", time.time() - start)
        return result

    def _request(self, verb: str, path: str, **kwargs) -> httpx.Response:
        try:
            resp = self._client.request(verb, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("transfer_service_transport_error", extra={"path": path, "error": str(e)})
            raise TransferServiceUnavailable(f"transport error: {e}") from e
        if resp.status_code >= 500:
            raise TransferServiceUnavailable(f"transfer service returned {resp.status_code}")
        return resp

    def _get_balance(self, account: str, token: str) -> int:
        resp = self._request("GET", f"/balances/{quote(account, safe='')}/{quote(token, safe='')}")
        if resp.status_code != 200:
            raise TransferServiceUnavailable(f"unexpected status {resp.status_code} on balance query")
        try:
            return int(resp.json()["balance"])
        except (ValueError, KeyError, TypeError) as e:
            raise TransferServiceUnavailable(f"malformed balance reply: {e!r}") from e

    @staticmethod
    def _rejection_kind(resp: httpx.Response) -> str:
        """The `error` field of a 409 body; empty when the body is not a JSON object."""
        try:
            body = resp.json()
        except ValueError:
            return ""
        error = body.get("error") if isinstance(body, dict) else None
        return error if isinstance(error, str) else ""

    def _post_transfer(self, payer: str, payee: str, token: str, amount: int) -> None:
        resp = self._request(
            "POST",
            "/transfers",
            json={
                "operator": self.operator,
                "payer": payer,
                "payee": payee,
                "token": token,
                "amount": amount,
            },
        )
        if resp.status_code == 409:
            error = self._rejection_kind(resp)
            kind = _REJECTIONS.get(error)
            if kind is None:
                raise TransferServiceUnavailable(f"unknown rejection '{error}'")
            raise kind(f"transfer rejected: {error}", account=payer, token=token)
        if resp.status_code >= 300:
            raise TransferServiceUnavailable(f"unexpected status {resp.status_code} on transfer")

    def balance_of(self, account: str, token: str) -> int:
        return self._call("balance_of", self._get_balance, account, token)

    def transfer_from(self, payer: str, payee: str, token: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must be non-negative")
        self._call("transfer_from", self._post_transfer, payer, payee, token, amount)
        logger.info(
            "ledger_transfer",
            extra={"user": payer, "token": token, "amount": amount, "backend": "http"},
        )

    def close(self) -> None:
        self._client.close()
