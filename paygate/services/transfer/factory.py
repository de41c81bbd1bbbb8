"""
Factory for creating the Value Transfer Service backend based on configuration.
"""
import logging

from paygate.core.config import settings
from paygate.services.transfer.base import InsufficientAllowance, InsufficientFunds, TransferService

logger = logging.getLogger(__name__)

TRANSFER_BREAKER_NAME = "transfer_service"


class TransferServiceFactory:
    """Builds the backend named by settings.transfer_backend (sql, memory, http)."""

    @classmethod
    def create(cls, backend: str, operator: str) -> TransferService:
        backend = backend.lower().strip()
        if backend == "sql":
            from paygate.db.session import SessionLocal, init_db
            from paygate.services.transfer.sql import SqlTokenLedger

            init_db()
            service: TransferService = SqlTokenLedger(SessionLocal, operator=operator)
        elif backend == "memory":
            from paygate.services.transfer.memory import InMemoryTokenLedger

            service = InMemoryTokenLedger(operator=operator)
        elif backend == "http":
            from paygate.services.circuit_breaker import get_circuit_breaker
            from paygate.services.transfer.http import HttpTransferService

            service = HttpTransferService(
                base_url=settings.transfer_service_url,
                operator=operator,
                breaker=get_circuit_breaker(
                    TRANSFER_BREAKER_NAME, exclude=(InsufficientFunds, InsufficientAllowance)
                ),
                api_key=settings.transfer_service_api_key,
                timeout=settings.transfer_service_timeout,
            )
        else:
            raise ValueError(f"Unknown transfer backend: {backend}")
        logger.info("transfer_service_created", extra={"backend": backend})
        return service

    @classmethod
    def from_settings(cls) -> TransferService:
        return cls.create(settings.transfer_backend, operator=settings.custody_account)
