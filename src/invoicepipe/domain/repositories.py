# SPDX-License-Identifier: Apache-2.0
"""Repository interfaces for the InvoicePipe domain.

Repositories provide a domain-focused interface for data access,
abstracting the underlying persistence mechanism. They are defined
in the domain layer as interfaces and implemented in infrastructure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, Iterable, List, Optional

from .entities import Order
from .errors import InvoicePipeError
from .value_objects import InvoiceType, OrderNumber, TradeDirection

ORDER_STATUSES = ("pending", "success", "failed")


class IOrderRepository(ABC):
    """Persistent store of orders and their processing outcome.

    Order numbers are unique. Writing an outcome that is already stored is
    a no-op.
    """

    @abstractmethod
    async def add(self, order: Order) -> None:
        """Insert a new order.

        Raises:
            DuplicateKeyError: If the order number is already stored
        """
        ...

    @abstractmethod
    async def add_many(self, orders: Iterable[Order]) -> int:
        """Insert orders, skipping existing order numbers.

        Returns:
            Number of orders actually inserted
        """
        ...

    @abstractmethod
    async def get(self, order_number: OrderNumber) -> Optional[Order]:
        ...

    @abstractmethod
    async def get_many(self, order_numbers: Iterable[OrderNumber]) -> Dict[str, Order]:
        """Load the stored orders among ``order_numbers``, keyed by number."""
        ...

    @abstractmethod
    async def list_candidates(self, direction: Optional[TradeDirection] = None) -> List[Order]:
        """Orders without a successful outcome, oldest first.

        Args:
            direction: Restrict to one trade side, or all when None
        """
        ...

    @abstractmethod
    async def list_by_date_range(self, start: date, end: date) -> List[Order]:
        """Orders whose order date lies in ``[start, end]``, oldest first."""
        ...

    @abstractmethod
    async def list_by_status(self, status: str) -> List[Order]:
        """Orders in one of ``ORDER_STATUSES``, oldest first.

        Raises:
            ValueError: If ``status`` is not a known status
        """
        ...

    @abstractmethod
    async def save_outcome(self, order: Order) -> None:
        """Persist the processing fields of ``order``.

        Raises:
            NotFoundError: If the order was never stored
        """
        ...

    @abstractmethod
    async def max_voucher_number(
        self,
        point_of_sale: Optional[int] = None,
        invoice_type: Optional[InvoiceType] = None,
    ) -> Optional[int]:
        """Highest voucher number recorded for a successful invoice, automatic or manual.

        When ``point_of_sale`` or ``invoice_type`` is given only outcomes
        recorded against that voucher sequence count.
        """
        ...

    @abstractmethod
    async def count_by_status(self) -> Dict[str, int]:
        """Counts keyed by ``pending``, ``success`` and ``failed``."""
        ...


class RepositoryError(InvoicePipeError):
    """Base exception for repository operations."""


class DuplicateKeyError(RepositoryError):
    """Raised when trying to insert an order number that already exists."""


class NotFoundError(RepositoryError):
    """Raised when a requested order is not stored."""
