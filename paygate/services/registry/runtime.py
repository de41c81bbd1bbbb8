import logging
import threading

from paygate.paywall.config import get_admin_account, get_custody_account, get_initial_batch
from paygate.paywall.events import log_event
from paygate.paywall.registry import PaywallRegistry
from paygate.services.transfer.factory import TransferServiceFactory

logger = logging.getLogger(__name__)


class RegistryRuntime:
    """
    Process-wide registry holder for the API.
    The registry is built once from settings on first use and lives until shutdown.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._registry: PaywallRegistry | None = None

    def get(self) -> PaywallRegistry:
        with self._lock:
            if self._registry is None:
                self._registry = self._build()
            return self._registry

    def shutdown(self) -> None:
        with self._lock:
            if self._registry is not None:
                self._registry.close()
                self._registry = None

    @staticmethod
    def _build() -> PaywallRegistry:
        from paygate.db.session import SessionLocal, init_db
        from paygate.services.events.service import EventJournal

        init_db()
        tokens, month_prices, year_prices = get_initial_batch()
        registry = PaywallRegistry(
            tokens,
            month_prices,
            year_prices,
            owner=get_admin_account(),
            custody_account=get_custody_account(),
            transfer_service=TransferServiceFactory.from_settings(),
            sinks=[log_event, EventJournal(SessionLocal)],
        )
        logger.info("paywall_registry_ready", extra={"caller": registry.owner})
        return registry


runtime = RegistryRuntime()


def get_registry() -> PaywallRegistry:
    return runtime.get()
