# SPDX-License-Identifier: Apache-2.0
"""Builders for valid domain objects with reasonable defaults."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Union

from invoicepipe.domain.entities import Order
from invoicepipe.domain.value_objects import TradeDirection

TODAY = date(2024, 3, 15)


def utc(year: int, month: int, day: int, hour: int = 12, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def make_order(
    order_number: str = "22612345678901234567",
    total: Union[str, int] = "15000.00",
    quantity: Union[str, int] = "10",
    direction: Union[str, TradeDirection] = TradeDirection.SELL,
    created_at: Optional[datetime] = None,
    days_ago: int = 0,
    today: date = TODAY,
    fiat: str = "ARS",
    asset: str = "USDT",
    tz: tzinfo = timezone.utc,
) -> Order:
    """Build an unprocessed order created ``days_ago`` days before ``today`` at noon UTC."""
    if created_at is None:
        day = today - timedelta(days=days_ago)
        created_at = datetime.combine(day, time(12), tzinfo=timezone.utc)
    return Order.from_trade(
        order_number=order_number,
        quantity=quantity,
        total_price=total,
        asset=asset,
        fiat=fiat,
        direction=direction,
        created_at=created_at,
        tz=tz,
        buyer_nickname="buyer",
        seller_nickname="seller",
    )
