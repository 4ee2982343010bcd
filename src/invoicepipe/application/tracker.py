# SPDX-License-Identifier: Apache-2.0
"""Order tracking: duplicate detection, retry eligibility and result recording.

An order is a duplicate only when its stored outcome is a success. Orders
that failed stay in the candidate set and are picked up again by the next
run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Iterable, List, Optional

from invoicepipe.domain.entities import Order
from invoicepipe.domain.events import IEventPublisher, ManualInvoiceRecorded
from invoicepipe.domain.repositories import IOrderRepository, NotFoundError
from invoicepipe.domain.results import InvoiceResult, PersistenceFailure
from invoicepipe.domain.value_objects import (
    AuthorizationCode,
    InvoiceType,
    OrderNumber,
    TradeDirection,
)
from invoicepipe.metrics import PERSISTENCE_ERRORS

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OrderFilterResult:
    """Incoming orders split by what the store already knows about them."""

    new: List[Order] = field(default_factory=list)
    retryable: List[Order] = field(default_factory=list)
    duplicates: List[Order] = field(default_factory=list)
    inserted: int = 0


@dataclass(frozen=True)
class TrackerStats:
    total: int
    pending: int
    succeeded: int
    failed: int


class OrderTracker:
    """Persistence-backed view of which orders still need an invoice."""

    def __init__(
        self,
        repository: IOrderRepository,
        clock: Callable[[], datetime] = _utcnow,
        event_publisher: Optional[IEventPublisher] = None,
    ):
        self._repository = repository
        self._clock = clock
        self._event_publisher = event_publisher

    async def filter_new(self, orders: Iterable[Order]) -> OrderFilterResult:
        """Classify orders as new, retryable (stored, failed or pending) or duplicate."""
        incoming = list(orders)
        stored = await self._repository.get_many(o.order_number for o in incoming)

        new: List[Order] = []
        retryable: List[Order] = []
        duplicates: List[Order] = []
        seen: set[str] = set()
        for order in incoming:
            key = order.order_number.value
            if key in seen:
                duplicates.append(order)
                continue
            seen.add(key)

            existing = stored.get(key)
            if existing is None:
                new.append(order)
            elif existing.is_successful:
                duplicates.append(order)
            else:
                retryable.append(existing)
        return OrderFilterResult(new=new, retryable=retryable, duplicates=duplicates)

    async def register(self, orders: Iterable[Order]) -> OrderFilterResult:
        """Store orders that were never seen before."""
        filtered = await self.filter_new(orders)
        inserted = await self._repository.add_many(filtered.new) if filtered.new else 0
        logger.info(
            "Registered %d new orders (%d retryable, %d duplicates)",
            inserted,
            len(filtered.retryable),
            len(filtered.duplicates),
        )
        return OrderFilterResult(
            new=filtered.new,
            retryable=filtered.retryable,
            duplicates=filtered.duplicates,
            inserted=inserted,
        )

    async def candidates(self, direction: Optional[TradeDirection] = None) -> List[Order]:
        """Stored orders that are not yet successfully invoiced."""
        return await self._repository.list_candidates(direction)

    async def is_duplicate(self, order_number: OrderNumber) -> bool:
        existing = await self._repository.get(order_number)
        return existing is not None and existing.is_successful

    async def apply_result(
        self, order: Order, result: InvoiceResult, processed_at: Optional[datetime] = None
    ) -> Optional[PersistenceFailure]:
        """Record a submission result against its order.

        Never raises. A write that fails is logged and returned so the caller
        can report it; a successful invoice is not undone by it.
        """
        try:
            stored = await self._repository.get(order.order_number)
            if stored is None:
                raise NotFoundError(f"Order {order.order_number} is not stored")
            if stored.is_successful and self._same_success(stored, result):
                return None
            updated = stored.with_result(result, processed_at or self._clock())
            await self._repository.save_outcome(updated)
            return None
        except Exception as e:
            level = logging.ERROR if result.success else logging.WARNING
            logger.log(
                level,
                "Could not record %s result for order %s: %s",
                "successful" if result.success else "failed",
                order.order_number,
                e,
            )
            PERSISTENCE_ERRORS.labels(success=str(result.success).lower()).inc()
            return PersistenceFailure(result=result, message=str(e))

    @staticmethod
    def _same_success(stored: Order, result: InvoiceResult) -> bool:
        outcome = stored.outcome
        return (
            result.success
            and outcome.authorization_code == result.authorization_code
            and outcome.voucher_number == result.voucher_number
        )

    async def record_manual_invoice(
        self,
        order_number: OrderNumber,
        authorization_code: AuthorizationCode,
        voucher_number: Optional[int] = None,
        invoice_date: Optional[date] = None,
        notes: Optional[str] = None,
        point_of_sale: Optional[int] = None,
        invoice_type: Optional[InvoiceType] = None,
    ) -> Order:
        """Mark an order as invoiced outside the pipeline.

        This bypasses voucher bookkeeping and must not run concurrently with
        a batch on the same point of sale.

        A voucher number only counts toward reconciliation of the sequence
        named by ``point_of_sale`` and ``invoice_type``.

        Raises:
            NotFoundError: If the order is not stored
            DomainError: If the order is already invoiced
        """
        stored = await self._repository.get(order_number)
        if stored is None:
            raise NotFoundError(f"Order {order_number} is not stored")

        updated = stored.mark_manual(
            authorization_code,
            processed_at=self._clock(),
            voucher_number=voucher_number,
            invoice_date=invoice_date,
            notes=notes,
            point_of_sale=point_of_sale,
            invoice_type=invoice_type,
        )
        await self._repository.save_outcome(updated)
        logger.info(
            "Recorded manual invoice for order %s (CAE %s)", order_number, authorization_code
        )

        if self._event_publisher is not None:
            await self._event_publisher.publish(
                ManualInvoiceRecorded(
                    order_number=order_number,
                    authorization_code=authorization_code,
                    voucher_number=voucher_number,
                )
            )
        return updated

    async def stats(self) -> TrackerStats:
        counts = await self._repository.count_by_status()
        pending = counts.get("pending", 0)
        succeeded = counts.get("success", 0)
        failed = counts.get("failed", 0)
        return TrackerStats(
            total=pending + succeeded + failed, pending=pending, succeeded=succeeded, failed=failed
        )
