# SPDX-License-Identifier: Apache-2.0
"""Domain services for InvoicePipe.

Domain services contain business logic that doesn't naturally belong to a
single entity: deciding which orders may be invoiced and which date an
invoice may legally carry.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Iterable, List

from .calculator import InvoiceAmounts, InvoiceCalculator
from .entities import Order
from .errors import ValidationError

REGULATORY_WINDOW_DAYS = 10

__all__ = [
    "REGULATORY_WINDOW_DAYS",
    "EligibilityDecision",
    "EligibilityReason",
    "InvoiceAmounts",
    "InvoiceCalculator",
    "InvoiceDateCalculator",
    "OrderEligibilityPolicy",
]


class InvoiceDateCalculator:
    """Clamps an order's calendar date into the allowed backdating window.

    - order date within the last ``window_days`` days (inclusive): unchanged
    - older: exactly ``window_days`` days before today
    - after today: today

    ``tz`` decides the calendar date of the order timestamp; callers pass a
    ``today`` computed in the same zone.
    """

    def __init__(self, window_days: int = REGULATORY_WINDOW_DAYS, tz: tzinfo = timezone.utc):
        if window_days < 0:
            raise ValidationError(f"Window must not be negative: {window_days}")
        self.window_days = window_days
        self.tz = tz

    def earliest_allowed(self, today: date) -> date:
        return today - timedelta(days=self.window_days)

    def calculate(self, order_created_at: datetime, today: date) -> date:
        if order_created_at.tzinfo is None:
            order_created_at = order_created_at.replace(tzinfo=timezone.utc)
        return self.clamp(order_created_at.astimezone(self.tz).date(), today)

    def clamp(self, order_date: date, today: date) -> date:
        if order_date > today:
            return today
        earliest = self.earliest_allowed(today)
        if order_date < earliest:
            return earliest
        return order_date

    def for_order(self, order: Order, today: date) -> date:
        return self.clamp(order.order_date, today)


class EligibilityReason(str, Enum):
    ELIGIBLE = "eligible"
    NOT_SELL = "not_sell"
    ALREADY_INVOICED = "already_invoiced"
    OUTSIDE_WINDOW = "outside_window"


@dataclass(frozen=True)
class EligibilityDecision:
    order: Order
    reason: EligibilityReason

    @property
    def eligible(self) -> bool:
        return self.reason is EligibilityReason.ELIGIBLE


class OrderEligibilityPolicy:
    """Decides whether an order may enter the invoicing pipeline.

    An order is eligible when it is a SELL, has not been invoiced
    successfully, and its order date is no more than ``window_days`` days
    before ``today``. Failed orders stay eligible.
    """

    def __init__(self, window_days: int = REGULATORY_WINDOW_DAYS):
        self.window_days = window_days

    def evaluate(self, order: Order, today: date) -> EligibilityDecision:
        if not order.is_sell:
            return EligibilityDecision(order, EligibilityReason.NOT_SELL)
        if not order.can_be_processed():
            return EligibilityDecision(order, EligibilityReason.ALREADY_INVOICED)
        if order.days_since_order(today) > self.window_days:
            return EligibilityDecision(order, EligibilityReason.OUTSIDE_WINDOW)
        return EligibilityDecision(order, EligibilityReason.ELIGIBLE)

    def is_eligible(self, order: Order, today: date) -> bool:
        return self.evaluate(order, today).eligible

    def partition(
        self, orders: Iterable[Order], today: date
    ) -> tuple[List[Order], List[EligibilityDecision]]:
        """Split orders into (eligible, rejected decisions), preserving order."""
        eligible: List[Order] = []
        rejected: List[EligibilityDecision] = []
        for order in orders:
            decision = self.evaluate(order, today)
            if decision.eligible:
                eligible.append(order)
            else:
                rejected.append(decision)
        return eligible, rejected
