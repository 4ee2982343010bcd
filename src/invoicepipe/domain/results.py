# SPDX-License-Identifier: Apache-2.0
"""Result values produced by invoice submission.

A submission attempt ends in an ``InvoiceResult`` that is either a success
(authorization code, voucher number, invoice date) or carries exactly one
``SubmissionFailure``. The failure union is closed so callers can dispatch
on it with ``match``::

    match result.failure:
        case None: ...
        case ValidationFailure(messages=msgs): ...
        case AuthorityRejection(messages=msgs): ...
        case TransportFailure(messages=msgs): ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import ClassVar, Iterable, Optional, Union

from .errors import ValidationError
from .value_objects import AuthorizationCode, InvoiceType, OrderNumber


@dataclass(frozen=True)
class _Failure:
    messages: tuple[str, ...]

    kind: ClassVar[str] = "failure"
    retryable: ClassVar[bool] = False

    def __post_init__(self):
        messages = tuple(str(m) for m in self.messages if m is not None and str(m).strip())
        if not messages:
            raise ValidationError(f"{type(self).__name__} requires at least one message")
        object.__setattr__(self, "messages", messages)

    @classmethod
    def of(cls, *messages: str):
        return cls(tuple(messages))

    @property
    def message(self) -> str:
        return "; ".join(self.messages)


@dataclass(frozen=True)
class ValidationFailure(_Failure):
    """Local data broke a domain rule; nothing was sent to the authority."""

    kind: ClassVar[str] = "validation"


@dataclass(frozen=True)
class AuthorityRejection(_Failure):
    """The authority answered and refused the invoice."""

    kind: ClassVar[str] = "rejection"


@dataclass(frozen=True)
class TransportFailure(_Failure):
    """The call did not complete (network, authentication, service down)."""

    kind: ClassVar[str] = "transport"
    retryable: ClassVar[bool] = True


SubmissionFailure = Union[ValidationFailure, AuthorityRejection, TransportFailure]


@dataclass(frozen=True)
class InvoiceResult:
    """Outcome of one submission attempt for one order."""

    order_number: OrderNumber
    authorization_code: Optional[AuthorizationCode] = None
    voucher_number: Optional[int] = None
    invoice_date: Optional[date] = None
    failure: Optional[SubmissionFailure] = None
    attempted_voucher_number: Optional[int] = None
    observations: tuple[str, ...] = field(default_factory=tuple)
    # Voucher sequence the attempt was made against, set by the orchestrator.
    point_of_sale: Optional[int] = None
    invoice_type: Optional[InvoiceType] = None

    def __post_init__(self):
        if not isinstance(self.order_number, OrderNumber):
            object.__setattr__(self, "order_number", OrderNumber(self.order_number))
        object.__setattr__(self, "observations", tuple(self.observations))
        if self.invoice_type is not None:
            object.__setattr__(self, "invoice_type", InvoiceType(self.invoice_type))

        if self.failure is None:
            missing = [
                name
                for name in ("authorization_code", "voucher_number", "invoice_date")
                if getattr(self, name) is None
            ]
            if missing:
                raise ValidationError(
                    f"Successful result requires {', '.join(missing)}", field=missing[0]
                )
            if self.voucher_number <= 0:
                raise ValidationError(
                    f"Voucher number must be positive: {self.voucher_number}",
                    field="voucher_number",
                )
        elif self.authorization_code is not None or self.voucher_number is not None:
            raise ValidationError(
                "Failed result cannot carry an authorization code or voucher number"
            )

    @classmethod
    def succeeded(
        cls,
        order_number: OrderNumber,
        authorization_code: AuthorizationCode,
        voucher_number: int,
        invoice_date: date,
        observations: Iterable[str] = (),
        point_of_sale: Optional[int] = None,
        invoice_type: Optional[InvoiceType] = None,
    ) -> InvoiceResult:
        return cls(
            order_number=order_number,
            authorization_code=authorization_code,
            voucher_number=voucher_number,
            invoice_date=invoice_date,
            attempted_voucher_number=voucher_number,
            observations=tuple(observations),
            point_of_sale=point_of_sale,
            invoice_type=invoice_type,
        )

    @classmethod
    def failed(
        cls,
        order_number: OrderNumber,
        failure: SubmissionFailure,
        invoice_date: Optional[date] = None,
        attempted_voucher_number: Optional[int] = None,
        observations: Iterable[str] = (),
        point_of_sale: Optional[int] = None,
        invoice_type: Optional[InvoiceType] = None,
    ) -> InvoiceResult:
        return cls(
            order_number=order_number,
            invoice_date=invoice_date,
            failure=failure,
            attempted_voucher_number=attempted_voucher_number,
            observations=tuple(observations),
            point_of_sale=point_of_sale,
            invoice_type=invoice_type,
        )

    @property
    def success(self) -> bool:
        return self.failure is None

    @property
    def errors(self) -> tuple[str, ...]:
        return self.failure.messages if self.failure is not None else ()

    @property
    def error_message(self) -> Optional[str]:
        return self.failure.message if self.failure is not None else None

    @property
    def retryable(self) -> bool:
        return self.failure is not None and self.failure.retryable


@dataclass(frozen=True)
class PersistenceFailure:
    """A result that could not be written to the order store.

    When ``result`` is a success the invoice exists at the authority but not
    locally; voucher reconciliation reports it until fixed manually.
    """

    result: InvoiceResult
    message: str

    @property
    def order_number(self) -> OrderNumber:
        return self.result.order_number
