# SPDX-License-Identifier: Apache-2.0
"""Event handlers for metrics collection.

Subscribes to invoicing domain events and records them as Prometheus
metrics and log lines, keeping those concerns out of the domain.
"""

from __future__ import annotations

import logging

from invoicepipe.domain.events import (
    InvoiceBatchCompleted,
    InvoiceIssued,
    InvoiceSubmissionFailed,
    ManualInvoiceRecorded,
)
from invoicepipe.infrastructure.events import InMemoryEventPublisher
from invoicepipe.metrics import INVOICE_FAILURES, INVOICES_ISSUED, LAST_VOUCHER_NUMBER

logger = logging.getLogger(__name__)


def _handle_invoice_issued(event: InvoiceIssued) -> None:
    pos = str(event.point_of_sale)
    INVOICES_ISSUED.labels(point_of_sale=pos, method="automatic").inc()
    LAST_VOUCHER_NUMBER.labels(point_of_sale=pos, invoice_type=str(event.invoice_type)).set(
        event.voucher_number
    )
    logger.info(
        "Invoice issued for order %s: voucher %d, CAE %s",
        event.order_number,
        event.voucher_number,
        event.authorization_code,
    )


def _handle_submission_failed(event: InvoiceSubmissionFailed) -> None:
    INVOICE_FAILURES.labels(kind=event.failure_kind).inc()
    logger.warning(
        "Invoice for order %s failed (%s): %s",
        event.order_number,
        event.failure_kind,
        event.error_message,
    )


def _handle_manual_recorded(event: ManualInvoiceRecorded) -> None:
    INVOICES_ISSUED.labels(point_of_sale="manual", method="manual").inc()
    logger.debug("Recorded metrics for manual invoice: %s", event.order_number)


def _handle_batch_completed(event: InvoiceBatchCompleted) -> None:
    logger.debug("Batch completed: %s", event.to_dict()["data"])


def register(publisher: InMemoryEventPublisher) -> None:
    """Register the metrics handlers with ``publisher``.

    Safe to call more than once; handlers are only added the first time.
    """
    if publisher.has_handlers("invoice_issued"):
        return
    publisher.register_handler("invoice_issued", _handle_invoice_issued)
    publisher.register_handler("invoice_submission_failed", _handle_submission_failed)
    publisher.register_handler("manual_invoice_recorded", _handle_manual_recorded)
    publisher.register_handler("invoice_batch_completed", _handle_batch_completed)
    logger.debug("Monitoring event handlers registered")


__all__ = [
    "register",
]
