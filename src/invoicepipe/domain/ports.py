# SPDX-License-Identifier: Apache-2.0
"""Interfaces to the external collaborators of the invoicing core.

The core never parses wire formats. A transport receives the structured
request produced by ``Invoice.to_request`` and answers with a
``TransportResponse``; an order source returns ready-made ``Order``
aggregates.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from .entities import Order
from .value_objects import InvoiceType, TradeDirection


@dataclass(frozen=True)
class TransportResponse:
    """Structured answer from the invoicing authority for one voucher."""

    success: bool
    authorization_code: Optional[str] = None
    expiration: Optional[date] = None
    voucher_number: Optional[int] = None
    errors: tuple[str, ...] = field(default_factory=tuple)
    observations: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "errors", tuple(self.errors))
        object.__setattr__(self, "observations", tuple(self.observations))

    @classmethod
    def accepted(
        cls,
        authorization_code: str,
        voucher_number: int,
        expiration: Optional[date] = None,
        observations: tuple[str, ...] = (),
    ) -> TransportResponse:
        return cls(
            success=True,
            authorization_code=authorization_code,
            expiration=expiration,
            voucher_number=voucher_number,
            observations=observations,
        )

    @classmethod
    def rejected(cls, *errors: str) -> TransportResponse:
        return cls(success=False, errors=tuple(errors))


class IInvoicingTransport(ABC):
    """Performs the remote calls to the invoicing authority.

    Timeouts and retries are resolved inside the transport. Failures to
    complete a call raise ``TransportError``; a completed call that the
    authority refuses returns a response with ``success=False``.
    """

    @abstractmethod
    async def submit(self, request: dict[str, Any], voucher_number: int) -> TransportResponse:
        """Submit one voucher request under ``voucher_number``."""
        ...

    @abstractmethod
    async def get_last_voucher_number(self, point_of_sale: int, invoice_type: InvoiceType) -> int:
        """Return the last voucher number used for the point of sale and type (0 if none)."""
        ...

    async def close(self) -> None:
        """Release any held connections."""
        return None


class IOrderSource(ABC):
    """Fetches trade orders from the trading venue."""

    @abstractmethod
    async def fetch(
        self, since_days: int, direction: Optional[TradeDirection] = TradeDirection.SELL
    ) -> list[Order]:
        """Return unprocessed orders created in the last ``since_days`` days.

        Args:
            since_days: How far back to look
            direction: Only orders on this side, or both when None
        """
        ...
