# SPDX-License-Identifier: Apache-2.0
"""SQLite implementation of the order repository.

Uses aiosqlite so store access does not block the event loop. The schema is
created by the migrations in ``invoicepipe.migrations`` on first use.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import aiosqlite

from invoicepipe.domain.entities import Order, ProcessingOutcome
from invoicepipe.domain.repositories import (
    ORDER_STATUSES,
    DuplicateKeyError,
    IOrderRepository,
    NotFoundError,
    RepositoryError,
)
from invoicepipe.domain.value_objects import (
    AuthorizationCode,
    InvoiceType,
    Money,
    OrderNumber,
    ProcessingMethod,
    TradeDirection,
)
from invoicepipe.infrastructure.sqlite_async_mixin import SqliteAsyncMixin
from invoicepipe.migrations import apply_pending

_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"

_INSERT_SQL = """
    INSERT INTO orders (
        order_number, quantity, unit_price, total_amount, currency, asset, fiat,
        direction, created_at, order_date, buyer_nickname, seller_nickname
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_SELECT_SQL = """
    SELECT order_number, quantity, unit_price, total_amount, currency, asset, fiat,
           direction, created_at, order_date, buyer_nickname, seller_nickname,
           processed_at, processing_method, success, authorization_code,
           authorization_expires_on, voucher_number, invoice_date, error_message, notes,
           point_of_sale, invoice_type
    FROM orders
"""


def _ts(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _opt_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


class SqliteOrderRepository(SqliteAsyncMixin, IOrderRepository):
    """Order store backed by a single SQLite file."""

    def __init__(self, db_path: str = "data/invoicepipe.db"):
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = str(self._db_path)  # Required by SqliteAsyncMixin
        apply_pending(self._db_path)

    @staticmethod
    def _insert_params(order: Order) -> tuple:
        return (
            order.order_number.value,
            str(order.quantity),
            str(order.unit_price),
            str(order.total_amount.amount),
            order.total_amount.currency,
            order.asset,
            order.fiat,
            order.direction.value,
            _ts(order.created_at),
            order.order_date.isoformat(),
            order.buyer_nickname,
            order.seller_nickname,
        )

    @staticmethod
    def _outcome_params(order: Order) -> tuple:
        outcome = order.outcome
        if outcome is None:
            return (None, None, None, None, None, None, None, None, order.notes, None, None)
        code = outcome.authorization_code
        return (
            _ts(outcome.processed_at),
            outcome.method.value,
            int(outcome.success),
            code.value if code else None,
            code.expires_on.isoformat() if code and code.expires_on else None,
            outcome.voucher_number,
            outcome.invoice_date.isoformat() if outcome.invoice_date else None,
            outcome.error_message,
            order.notes,
            outcome.point_of_sale,
            int(outcome.invoice_type) if outcome.invoice_type is not None else None,
        )

    @staticmethod
    def _row_to_order(row: Any) -> Order:
        outcome = None
        if row["processing_method"] is not None:
            code = None
            if row["authorization_code"]:
                code = AuthorizationCode(
                    row["authorization_code"], _opt_date(row["authorization_expires_on"])
                )
            outcome = ProcessingOutcome(
                success=bool(row["success"]),
                method=ProcessingMethod(row["processing_method"]),
                processed_at=_parse_ts(row["processed_at"]),
                authorization_code=code,
                voucher_number=row["voucher_number"],
                invoice_date=_opt_date(row["invoice_date"]),
                error_message=row["error_message"],
                point_of_sale=row["point_of_sale"],
                invoice_type=row["invoice_type"],
            )

        return Order(
            order_number=OrderNumber(row["order_number"]),
            quantity=Decimal(row["quantity"]),
            unit_price=Decimal(row["unit_price"]),
            total_amount=Money(Decimal(row["total_amount"]), row["currency"]),
            asset=row["asset"],
            fiat=row["fiat"],
            direction=TradeDirection(row["direction"]),
            created_at=_parse_ts(row["created_at"]),
            order_date=date.fromisoformat(row["order_date"]),
            buyer_nickname=row["buyer_nickname"],
            seller_nickname=row["seller_nickname"],
            outcome=outcome,
            notes=row["notes"],
        )

    async def _select(self, where: str = "", params: Sequence[Any] = ()) -> List[Order]:
        async with self._conn() as db:
            cursor = await db.execute(f"{_SELECT_SQL} {where}", tuple(params))
            rows = await cursor.fetchall()
        return [self._row_to_order(row) for row in rows]

    async def add(self, order: Order) -> None:
        try:
            async with self._conn() as db:
                await db.execute(_INSERT_SQL, self._insert_params(order))
                if order.outcome is not None or order.notes:
                    await self._write_outcome(db, order)
                await db.commit()
        except aiosqlite.IntegrityError as e:
            if "UNIQUE constraint failed" in str(e):
                raise DuplicateKeyError(f"Order {order.order_number} already exists") from e
            raise RepositoryError(f"Database integrity error: {e}") from e
        except Exception as e:
            raise RepositoryError(f"Failed to add order {order.order_number}: {e}") from e

    async def add_many(self, orders: Iterable[Order]) -> int:
        batch = list(orders)
        if not batch:
            return 0
        try:
            async with self._conn() as db:
                inserted = 0
                for order in batch:
                    cursor = await db.execute(
                        _INSERT_SQL.replace("INSERT INTO", "INSERT OR IGNORE INTO"),
                        self._insert_params(order),
                    )
                    if cursor.rowcount > 0:
                        inserted += 1
                        if order.outcome is not None or order.notes:
                            await self._write_outcome(db, order)
                await db.commit()
                return inserted
        except Exception as e:
            raise RepositoryError(f"Failed to add {len(batch)} orders: {e}") from e

    async def get(self, order_number: OrderNumber) -> Optional[Order]:
        try:
            orders = await self._select("WHERE order_number = ?", (str(order_number),))
        except Exception as e:
            raise RepositoryError(f"Failed to load order {order_number}: {e}") from e
        return orders[0] if orders else None

    async def get_many(self, order_numbers: Iterable[OrderNumber]) -> Dict[str, Order]:
        keys = list(dict.fromkeys(str(n) for n in order_numbers))
        found: Dict[str, Order] = {}
        try:
            # Stay well below SQLite's bound-parameter limit.
            for start in range(0, len(keys), 500):
                chunk = keys[start : start + 500]
                placeholders = ", ".join("?" for _ in chunk)
                for order in await self._select(f"WHERE order_number IN ({placeholders})", chunk):
                    found[order.order_number.value] = order
        except Exception as e:
            raise RepositoryError(f"Failed to load orders: {e}") from e
        return found

    async def list_candidates(self, direction: Optional[TradeDirection] = None) -> List[Order]:
        where = "WHERE (success IS NULL OR success = 0)"
        params: List[Any] = []
        if direction is not None:
            where += " AND direction = ?"
            params.append(TradeDirection(direction).value)
        try:
            return await self._select(f"{where} ORDER BY created_at, id", params)
        except Exception as e:
            raise RepositoryError(f"Failed to list candidate orders: {e}") from e

    async def list_by_date_range(self, start: date, end: date) -> List[Order]:
        try:
            return await self._select(
                "WHERE order_date >= ? AND order_date <= ? ORDER BY created_at, id",
                (start.isoformat(), end.isoformat()),
            )
        except Exception as e:
            raise RepositoryError(f"Failed to list orders by date: {e}") from e

    async def list_by_status(self, status: str) -> List[Order]:
        if status not in ORDER_STATUSES:
            raise ValueError(f"Unknown order status: {status}. Valid: {list(ORDER_STATUSES)}")
        where = {
            "pending": "WHERE success IS NULL",
            "success": "WHERE success = 1",
            "failed": "WHERE success = 0",
        }[status]
        try:
            return await self._select(f"{where} ORDER BY created_at, id")
        except Exception as e:
            raise RepositoryError(f"Failed to list {status} orders: {e}") from e

    async def _write_outcome(self, db: aiosqlite.Connection, order: Order) -> int:
        cursor = await db.execute(
            """
            UPDATE orders
            SET processed_at = ?, processing_method = ?, success = ?,
                authorization_code = ?, authorization_expires_on = ?, voucher_number = ?,
                invoice_date = ?, error_message = ?, notes = ?, point_of_sale = ?,
                invoice_type = ?, updated_at = CURRENT_TIMESTAMP
            WHERE order_number = ?
            """,
            self._outcome_params(order) + (order.order_number.value,),
        )
        return cursor.rowcount

    async def save_outcome(self, order: Order) -> None:
        try:
            async with self._conn() as db:
                updated = await self._write_outcome(db, order)
                if updated == 0:
                    raise NotFoundError(f"Order {order.order_number} is not stored")
                await db.commit()
        except NotFoundError:
            raise
        except Exception as e:
            raise RepositoryError(f"Failed to save outcome for {order.order_number}: {e}") from e

    async def max_voucher_number(
        self,
        point_of_sale: Optional[int] = None,
        invoice_type: Optional[InvoiceType] = None,
    ) -> Optional[int]:
        where = "WHERE success = 1 AND voucher_number IS NOT NULL"
        params: List[Any] = []
        if point_of_sale is not None:
            where += " AND point_of_sale = ?"
            params.append(point_of_sale)
        if invoice_type is not None:
            where += " AND invoice_type = ?"
            params.append(int(invoice_type))
        try:
            return await self._scalar(f"SELECT MAX(voucher_number) FROM orders {where}", params)
        except Exception as e:
            raise RepositoryError(f"Failed to read max voucher number: {e}") from e

    async def count_by_status(self) -> Dict[str, int]:
        try:
            async with self._conn() as db:
                cursor = await db.execute(
                    """
                    SELECT
                        SUM(CASE WHEN success IS NULL THEN 1 ELSE 0 END),
                        SUM(CASE WHEN success = 1 THEN 1 ELSE 0 END),
                        SUM(CASE WHEN success = 0 THEN 1 ELSE 0 END)
                    FROM orders
                    """
                )
                row = await cursor.fetchone()
        except Exception as e:
            raise RepositoryError(f"Failed to count orders: {e}") from e
        pending, succeeded, failed = (value or 0 for value in row)
        return {"pending": pending, "success": succeeded, "failed": failed}
