# SPDX-License-Identifier: Apache-2.0
"""Domain events for InvoicePipe.

Domain events represent important business occurrences that other parts
of the system (metrics, logging, notifications) may react to without the
core depending on them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

from .value_objects import AuthorizationCode, OrderNumber


class DomainEvent(ABC):
    """Base class for all domain events.

    Concrete events are frozen dataclasses that declare ``event_id``,
    ``occurred_at`` and ``version`` fields.
    """

    @property
    @abstractmethod
    def event_type(self) -> str:
        """Unique identifier for the event type."""
        pass

    @property
    @abstractmethod
    def aggregate_id(self) -> str:
        """Identifier of the aggregate that generated this event."""
        pass

    @abstractmethod
    def _get_event_data(self) -> dict[str, Any]:
        """Event-specific data for serialization."""
        pass

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": str(self.event_id),
            "event_type": self.event_type,
            "aggregate_id": self.aggregate_id,
            "occurred_at": self.occurred_at.isoformat(),
            "version": self.version,
            "data": self._get_event_data(),
        }

    def __str__(self) -> str:
        return f"{self.event_type}(id={self.event_id}, aggregate={self.aggregate_id})"


@dataclass(frozen=True)
class InvoiceIssued(DomainEvent):
    """Event raised when the authority accepts an invoice."""

    order_number: OrderNumber
    authorization_code: AuthorizationCode
    voucher_number: int
    point_of_sale: int
    invoice_date: date
    invoice_type: int = 0
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 1

    @property
    def event_type(self) -> str:
        return "invoice_issued"

    @property
    def aggregate_id(self) -> str:
        return str(self.order_number)

    def _get_event_data(self) -> dict[str, Any]:
        return {
            "order_number": str(self.order_number),
            "authorization_code": str(self.authorization_code),
            "voucher_number": self.voucher_number,
            "point_of_sale": self.point_of_sale,
            "invoice_date": self.invoice_date.isoformat(),
            "invoice_type": self.invoice_type,
        }


@dataclass(frozen=True)
class InvoiceSubmissionFailed(DomainEvent):
    """Event raised when an order could not be invoiced."""

    order_number: OrderNumber
    failure_kind: str
    error_message: str
    attempted_voucher_number: Optional[int] = None
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 1

    @property
    def event_type(self) -> str:
        return "invoice_submission_failed"

    @property
    def aggregate_id(self) -> str:
        return str(self.order_number)

    def _get_event_data(self) -> dict[str, Any]:
        return {
            "order_number": str(self.order_number),
            "failure_kind": self.failure_kind,
            "error_message": self.error_message,
            "attempted_voucher_number": self.attempted_voucher_number,
        }


@dataclass(frozen=True)
class ManualInvoiceRecorded(DomainEvent):
    """Event raised when an externally obtained invoice is attached to an order."""

    order_number: OrderNumber
    authorization_code: AuthorizationCode
    voucher_number: Optional[int] = None
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 1

    @property
    def event_type(self) -> str:
        return "manual_invoice_recorded"

    @property
    def aggregate_id(self) -> str:
        return str(self.order_number)

    def _get_event_data(self) -> dict[str, Any]:
        return {
            "order_number": str(self.order_number),
            "authorization_code": str(self.authorization_code),
            "voucher_number": self.voucher_number,
        }


@dataclass(frozen=True)
class InvoiceBatchCompleted(DomainEvent):
    """Event raised at the end of a processing run."""

    run_date: date
    total_eligible: int
    succeeded: int
    failed: int
    not_ready: int
    unpersisted: int = 0
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 1

    @property
    def event_type(self) -> str:
        return "invoice_batch_completed"

    @property
    def aggregate_id(self) -> str:
        return f"batch_{self.run_date.isoformat()}"

    def _get_event_data(self) -> dict[str, Any]:
        return {
            "run_date": self.run_date.isoformat(),
            "total_eligible": self.total_eligible,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "not_ready": self.not_ready,
            "unpersisted": self.unpersisted,
        }


class IEventPublisher(ABC):
    """Interface for publishing domain events."""

    @abstractmethod
    async def publish(self, event: DomainEvent) -> None:
        """
        Publish a domain event.

        Args:
            event: The domain event to publish
        """
        pass

    @abstractmethod
    async def publish_many(self, events: list[DomainEvent]) -> None:
        """
        Publish multiple domain events.

        Args:
            events: List of domain events to publish
        """
        pass
