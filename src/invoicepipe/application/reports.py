# SPDX-License-Identifier: Apache-2.0
"""Monthly invoicing report."""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List

from invoicepipe.domain.entities import Order
from invoicepipe.domain.errors import ValidationError
from invoicepipe.domain.repositories import IOrderRepository
from invoicepipe.domain.value_objects import Money, ProcessingMethod, TradeDirection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonthlyReport:
    year: int
    month: int
    total_orders: int = 0
    succeeded: int = 0
    failed: int = 0
    pending: int = 0
    manual: int = 0
    by_direction: Dict[str, int] = field(default_factory=dict)
    totals_by_currency: Dict[str, Money] = field(default_factory=dict)
    invoiced_by_currency: Dict[str, Money] = field(default_factory=dict)
    orders: List[Order] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed

    @property
    def period(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def average_by_currency(self) -> Dict[str, Money]:
        averages = {}
        for currency, total in self.totals_by_currency.items():
            count = sum(1 for o in self.orders if o.total_amount.currency == currency)
            averages[currency] = total.divide(count)
        return averages

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "total_orders": self.total_orders,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "pending": self.pending,
            "manual": self.manual,
            "by_direction": dict(self.by_direction),
            "totals_by_currency": {c: str(m.amount) for c, m in self.totals_by_currency.items()},
            "invoiced_by_currency": {
                c: str(m.amount) for c, m in self.invoiced_by_currency.items()
            },
        }


class MonthlyReportService:
    """Summarizes the orders of one calendar month."""

    def __init__(self, repository: IOrderRepository):
        self._repository = repository

    async def generate(self, year: int, month: int) -> MonthlyReport:
        if not 2000 <= year <= 2100:
            raise ValidationError(f"Year must be between 2000 and 2100: {year}", field="year")
        if not 1 <= month <= 12:
            raise ValidationError(f"Month must be between 1 and 12: {month}", field="month")

        start = date(year, month, 1)
        end = date(year, month, calendar.monthrange(year, month)[1])
        orders = await self._repository.list_by_date_range(start, end)
        logger.info("Generating report for %04d-%02d over %d orders", year, month, len(orders))

        by_direction = {d.value: 0 for d in TradeDirection}
        totals: Dict[str, List[Money]] = {}
        invoiced: Dict[str, List[Money]] = {}
        succeeded = failed = pending = manual = 0

        for order in orders:
            by_direction[order.direction.value] += 1
            totals.setdefault(order.total_amount.currency, []).append(order.total_amount)
            if order.is_successful:
                succeeded += 1
                invoiced.setdefault(order.total_amount.currency, []).append(order.total_amount)
                if order.outcome.method is ProcessingMethod.MANUAL:
                    manual += 1
            elif order.is_failed:
                failed += 1
            else:
                pending += 1

        return MonthlyReport(
            year=year,
            month=month,
            total_orders=len(orders),
            succeeded=succeeded,
            failed=failed,
            pending=pending,
            manual=manual,
            by_direction=by_direction,
            totals_by_currency={c: Money.sum(v) for c, v in totals.items()},
            invoiced_by_currency={c: Money.sum(v) for c, v in invoiced.items()},
            orders=orders,
        )
