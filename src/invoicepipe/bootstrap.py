# SPDX-License-Identifier: Apache-2.0
"""Process wiring for InvoicePipe.

Builds repositories, transports and services from an ``InvoicingConfig``.
Nothing here runs at import time; CLI commands call into it lazily so that
``--help`` stays free of side effects.
"""

from __future__ import annotations

__all__ = [
    "bootstrap",
    "is_bootstrapped",
    "reset_bootstrap_state",
    "get_event_publisher",
    "setup_logging",
    "Services",
    "build_services",
    "build_order_source",
    "build_ingestion",
]

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from invoicepipe.application import (
    InvoiceBatchService,
    MonthlyReportService,
    OrderIngestionService,
    OrderTracker,
    SequentialSubmissionOrchestrator,
    SubmissionSettings,
    VoucherReconciliationService,
)
from invoicepipe.config import InvoicingConfig
from invoicepipe.domain.ports import IInvoicingTransport, IOrderSource
from invoicepipe.domain.services import OrderEligibilityPolicy
from invoicepipe.infrastructure.events import InMemoryEventPublisher
from invoicepipe.infrastructure.repositories import SqliteOrderRepository
from invoicepipe.infrastructure.transports import create_transport
from invoicepipe.settings import BinanceCredentials

# Global flag to ensure bootstrap only runs once per process
_BOOTSTRAPPED = False
_BOOTSTRAP_LOCK = threading.Lock()

# Global event publisher instance
_EVENT_PUBLISHER: Optional[InMemoryEventPublisher] = None

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once; later calls only adjust the level."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=numeric, format=LOG_FORMAT)
    root.setLevel(numeric)


def get_event_publisher() -> InMemoryEventPublisher:
    """Return the process-wide event publisher."""
    global _EVENT_PUBLISHER
    if _EVENT_PUBLISHER is None:
        _EVENT_PUBLISHER = InMemoryEventPublisher()
    return _EVENT_PUBLISHER


def bootstrap() -> None:
    """Register monitoring handlers on the shared publisher.

    Idempotent and thread-safe.
    """
    global _BOOTSTRAPPED
    if _BOOTSTRAPPED:
        return

    with _BOOTSTRAP_LOCK:
        if _BOOTSTRAPPED:
            return
        from invoicepipe.infrastructure.monitoring import register

        register(get_event_publisher())
        _BOOTSTRAPPED = True
        logger.debug("InvoicePipe bootstrap complete")


def is_bootstrapped() -> bool:
    return _BOOTSTRAPPED


def reset_bootstrap_state() -> None:
    """Forget the shared publisher and bootstrap flag (for tests)."""
    global _BOOTSTRAPPED, _EVENT_PUBLISHER
    with _BOOTSTRAP_LOCK:
        _BOOTSTRAPPED = False
        _EVENT_PUBLISHER = None


@dataclass
class Services:
    """Everything a command needs for one configured point of sale."""

    config: InvoicingConfig
    repository: SqliteOrderRepository
    tracker: OrderTracker
    transport: IInvoicingTransport
    batch: InvoiceBatchService
    reports: MonthlyReportService
    reconciliation: VoucherReconciliationService

    async def close(self) -> None:
        await self.transport.close()


def build_services(
    config: InvoicingConfig, transport: Optional[IInvoicingTransport] = None
) -> Services:
    """Wire the invoicing services for ``config``.

    Args:
        config: Validated invoicing configuration
        transport: Use this transport instead of the configured one
    """
    bootstrap()
    publisher = get_event_publisher()

    repository = SqliteOrderRepository(config.database_path)
    tracker = OrderTracker(repository, event_publisher=publisher)
    if transport is None:
        transport = create_transport(config.transport, config.transport_options)
    settings = SubmissionSettings.from_config(config)
    orchestrator = SequentialSubmissionOrchestrator(
        transport, settings, event_publisher=publisher
    )
    batch = InvoiceBatchService(
        tracker,
        orchestrator,
        OrderEligibilityPolicy(window_days=config.eligibility_window_days),
        tz=config.tzinfo,
        event_publisher=publisher,
    )
    return Services(
        config=config,
        repository=repository,
        tracker=tracker,
        transport=transport,
        batch=batch,
        reports=MonthlyReportService(repository),
        reconciliation=VoucherReconciliationService(transport, repository, settings),
    )


def build_order_source(
    config: InvoicingConfig, credentials: Optional[BinanceCredentials] = None
) -> IOrderSource:
    """Create the Binance P2P source from environment credentials.

    Raises:
        ConfigurationError: If the Binance API key or secret is missing
    """
    from invoicepipe.infrastructure.sources import BinanceP2POrderSource

    creds = (credentials or BinanceCredentials()).require()
    return BinanceP2POrderSource(
        api_key=creds.api_key,
        secret_key=creds.secret_key,
        tz=config.tzinfo,
        base_url=creds.base_url,
    )


def build_ingestion(services: Services, source: IOrderSource) -> OrderIngestionService:
    return OrderIngestionService(source, services.tracker)
