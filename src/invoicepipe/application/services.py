# SPDX-License-Identifier: Apache-2.0
"""Invoicing application services."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from typing import Any, Callable, Dict, List, Optional

from invoicepipe.domain.entities import Order
from invoicepipe.domain.events import IEventPublisher, InvoiceBatchCompleted
from invoicepipe.domain.ports import IOrderSource
from invoicepipe.domain.results import InvoiceResult, PersistenceFailure
from invoicepipe.domain.services import EligibilityReason, OrderEligibilityPolicy
from invoicepipe.domain.value_objects import TradeDirection
from invoicepipe.metrics import BATCH_ORDERS, ORDERS_INGESTED

from .submission import SequentialSubmissionOrchestrator
from .tracker import OrderFilterResult, OrderTracker

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BatchReport:
    """Summary of one ``process_unprocessed`` run.

    ``total_eligible`` counts the orders that were attempted. Orders skipped
    for being outside the date window are counted in ``not_ready`` only.
    """

    run_date: date
    total_eligible: int
    succeeded: int
    failed: int
    not_ready: int
    results: List[InvoiceResult] = field(default_factory=list)
    unpersisted: List[PersistenceFailure] = field(default_factory=list)

    @property
    def per_order_results(self) -> List[InvoiceResult]:
        return self.results

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_date": self.run_date.isoformat(),
            "total_eligible": self.total_eligible,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "not_ready": self.not_ready,
            "unpersisted": [str(p.order_number) for p in self.unpersisted],
            "results": [
                {
                    "order_number": str(r.order_number),
                    "success": r.success,
                    "voucher_number": r.voucher_number,
                    "authorization_code": (
                        str(r.authorization_code) if r.authorization_code else None
                    ),
                    "invoice_date": r.invoice_date.isoformat() if r.invoice_date else None,
                    "failure_kind": r.failure.kind if r.failure else None,
                    "errors": list(r.errors),
                }
                for r in self.results
            ],
        }


class InvoiceBatchService:
    """Runs the order-to-invoice pipeline once over the stored candidates."""

    def __init__(
        self,
        tracker: OrderTracker,
        orchestrator: SequentialSubmissionOrchestrator,
        policy: OrderEligibilityPolicy,
        tz: tzinfo = timezone.utc,
        clock: Callable[[], datetime] = _utcnow,
        event_publisher: Optional[IEventPublisher] = None,
    ):
        self._tracker = tracker
        self._orchestrator = orchestrator
        self._policy = policy
        self._tz = tz
        self._clock = clock
        self._event_publisher = event_publisher

    def today(self) -> date:
        return self._clock().astimezone(self._tz).date()

    async def process_unprocessed(
        self, limit: Optional[int] = None, direction: Optional[TradeDirection] = None
    ) -> BatchReport:
        """Invoice every eligible stored order.

        Args:
            limit: Maximum number of orders to attempt, oldest first
            direction: Only consider orders on this side

        Returns:
            BatchReport with one result per attempted order
        """
        if limit is not None and limit < 1:
            raise ValueError(f"limit must be positive: {limit}")

        # One reference date for eligibility, date clamping and validation.
        today = self.today()
        candidates = await self._tracker.candidates(direction)
        eligible, rejected = self._policy.partition(candidates, today)
        not_ready = sum(1 for d in rejected if d.reason is EligibilityReason.OUTSIDE_WINDOW)
        if limit is not None:
            eligible = eligible[:limit]

        logger.info(
            "Batch %s: %d candidates, %d eligible, %d outside the window",
            today.isoformat(),
            len(candidates),
            len(eligible),
            not_ready,
        )

        # Each result is stored before the next order is submitted, so an
        # interrupted run loses at most the invoice in flight.
        unpersisted: List[PersistenceFailure] = []

        async def record(order: Order, result: InvoiceResult) -> None:
            problem = await self._tracker.apply_result(order, result, self._clock())
            if problem is not None:
                unpersisted.append(problem)

        batch = await self._orchestrator.submit_all(eligible, today, on_result=record)

        report = BatchReport(
            run_date=today,
            total_eligible=len(eligible),
            succeeded=len(batch.succeeded),
            failed=len(batch.failed),
            not_ready=not_ready,
            results=list(batch.results),
            unpersisted=unpersisted,
        )

        BATCH_ORDERS.labels(outcome="succeeded").inc(report.succeeded)
        BATCH_ORDERS.labels(outcome="failed").inc(report.failed)
        BATCH_ORDERS.labels(outcome="not_ready").inc(report.not_ready)

        if unpersisted:
            logger.error(
                "%d results were not saved; invoices may exist at the authority "
                "but not locally: %s",
                len(unpersisted),
                ", ".join(str(p.order_number) for p in unpersisted),
            )
        logger.info(
            "Batch %s finished: %d eligible, %d succeeded, %d failed",
            today.isoformat(),
            report.total_eligible,
            report.succeeded,
            report.failed,
        )

        if self._event_publisher is not None:
            try:
                await self._event_publisher.publish(
                    InvoiceBatchCompleted(
                        run_date=today,
                        total_eligible=report.total_eligible,
                        succeeded=report.succeeded,
                        failed=report.failed,
                        not_ready=report.not_ready,
                        unpersisted=len(unpersisted),
                    )
                )
            except Exception as e:
                logger.warning("Failed to publish batch completion event: %s", e)

        return report


class OrderIngestionService:
    """Pulls orders from the trading venue into the order store."""

    def __init__(self, source: IOrderSource, tracker: OrderTracker):
        self._source = source
        self._tracker = tracker

    async def sync(
        self, since_days: int, direction: Optional[TradeDirection] = TradeDirection.SELL
    ) -> OrderFilterResult:
        """Fetch recent orders and store the unseen ones.

        Raises:
            OrderSourceError: If the venue cannot be queried
        """
        orders = await self._source.fetch(since_days, direction)
        logger.info("Fetched %d orders from the last %d days", len(orders), since_days)

        result = await self._tracker.register(orders)
        ORDERS_INGESTED.labels(result="new").inc(result.inserted)
        ORDERS_INGESTED.labels(result="retryable").inc(len(result.retryable))
        ORDERS_INGESTED.labels(result="duplicate").inc(len(result.duplicates))
        return result
