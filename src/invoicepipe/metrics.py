# SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for InvoicePipe."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, start_http_server

INVOICES_ISSUED = Counter(
    "ip_invoices_issued_total", "Invoices accepted by the authority", ["point_of_sale", "method"]
)
INVOICE_FAILURES = Counter(
    "ip_invoice_failures_total", "Invoicing attempts that failed", ["kind"]
)
SUBMISSION_LATENCY = Histogram(
    "ip_submission_latency_seconds",
    "Duration of one transport submit call",
    ["transport"],
    buckets=[0.1, 0.25, 0.5, 1, 2, 5, 10, 30],
)
LAST_VOUCHER_NUMBER = Gauge(
    "ip_last_voucher_number",
    "Last voucher number confirmed by the authority",
    ["point_of_sale", "invoice_type"],
)
BATCH_ORDERS = Counter(
    "ip_batch_orders_total", "Orders considered by batch runs", ["outcome"]
)
ORDERS_INGESTED = Counter(
    "ip_orders_ingested_total", "Orders fetched from the trading venue", ["result"]
)
PERSISTENCE_ERRORS = Counter(
    "ip_persistence_errors_total", "Results that could not be written to the store", ["success"]
)


def start_metrics_server(port: int) -> None:
    """Expose ``/metrics`` on ``port`` for the lifetime of the process."""
    start_http_server(port)


__all__ = [
    "INVOICES_ISSUED",
    "INVOICE_FAILURES",
    "SUBMISSION_LATENCY",
    "LAST_VOUCHER_NUMBER",
    "BATCH_ORDERS",
    "ORDERS_INGESTED",
    "PERSISTENCE_ERRORS",
    "start_metrics_server",
]
