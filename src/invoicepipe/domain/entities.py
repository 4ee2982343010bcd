# SPDX-License-Identifier: Apache-2.0
"""Domain entities for InvoicePipe.

``Order`` is the aggregate that tracks one P2P trade through invoicing and
``Invoice`` is the short-lived document derived from it right before
submission. Both are frozen: every state change returns a new instance.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal
from typing import Any, Optional, Union

from .calculator import GENERAL_VAT_RATE, InvoiceCalculator
from .errors import DomainError, ValidationError
from .results import InvoiceResult
from .value_objects import (
    AuthorizationCode,
    DocumentType,
    InvoiceConcept,
    InvoiceType,
    Money,
    OrderNumber,
    ProcessingMethod,
    TaxId,
    TradeDirection,
    _to_decimal,
)

_CURRENCY_IDS = {"ARS": "PES", "USD": "DOL"}

# Receiver VAT condition: final consumer
_RECEIVER_VAT_CONDITION = 5


@dataclass(frozen=True)
class ProcessingOutcome:
    """Terminal state recorded against an order after an invoicing attempt."""

    success: bool
    method: ProcessingMethod
    processed_at: datetime
    authorization_code: Optional[AuthorizationCode] = None
    voucher_number: Optional[int] = None
    invoice_date: Optional[date] = None
    error_message: Optional[str] = None
    point_of_sale: Optional[int] = None
    invoice_type: Optional[InvoiceType] = None

    def __post_init__(self):
        object.__setattr__(self, "method", ProcessingMethod(self.method))
        if self.invoice_type is not None:
            object.__setattr__(self, "invoice_type", InvoiceType(self.invoice_type))
        if self.success:
            if self.authorization_code is None:
                raise ValidationError("Successful outcome requires an authorization code")
            if self.method is ProcessingMethod.AUTOMATIC and (
                self.voucher_number is None or self.invoice_date is None
            ):
                raise ValidationError(
                    "Automatic success requires voucher number and invoice date"
                )
        elif not self.error_message:
            raise ValidationError("Failed outcome requires an error message")

    @classmethod
    def from_result(cls, result: InvoiceResult, processed_at: datetime) -> ProcessingOutcome:
        return cls(
            success=result.success,
            method=ProcessingMethod.AUTOMATIC,
            processed_at=processed_at,
            authorization_code=result.authorization_code,
            voucher_number=result.voucher_number,
            invoice_date=result.invoice_date,
            error_message=result.error_message,
            point_of_sale=result.point_of_sale,
            invoice_type=result.invoice_type,
        )


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class Order:
    """A P2P trade order and its invoicing state."""

    order_number: OrderNumber
    quantity: Decimal
    unit_price: Decimal
    total_amount: Money
    asset: str
    fiat: str
    direction: TradeDirection
    created_at: datetime
    order_date: date
    buyer_nickname: Optional[str] = None
    seller_nickname: Optional[str] = None
    outcome: Optional[ProcessingOutcome] = None
    notes: Optional[str] = None

    def __post_init__(self):
        """Normalize inputs and enforce trade invariants."""
        if not isinstance(self.order_number, OrderNumber):
            object.__setattr__(self, "order_number", OrderNumber(self.order_number))

        quantity = _to_decimal(self.quantity, "quantity")
        unit_price = _to_decimal(self.unit_price, "unit_price")
        if quantity <= 0:
            raise ValidationError(f"Quantity must be positive: {quantity}", field="quantity")
        if unit_price <= 0:
            raise ValidationError(f"Unit price must be positive: {unit_price}", field="unit_price")
        object.__setattr__(self, "quantity", quantity)
        object.__setattr__(self, "unit_price", unit_price)

        if not isinstance(self.total_amount, Money):
            raise ValidationError("Total amount must be Money", field="total_amount")
        if not self.total_amount.is_positive():
            raise ValidationError(
                f"Total amount must be positive: {self.total_amount}", field="total_amount"
            )

        try:
            direction = self.direction
            if isinstance(direction, str) and not isinstance(direction, TradeDirection):
                direction = direction.strip().upper()
            object.__setattr__(self, "direction", TradeDirection(direction))
        except ValueError as e:
            raise ValidationError(
                f"Invalid trade direction: {self.direction!r}. Must be BUY or SELL",
                field="direction",
            ) from e

        for name in ("asset", "fiat"):
            value = getattr(self, name)
            if not value or not str(value).strip():
                raise ValidationError(f"{name.capitalize()} cannot be empty", field=name)
            object.__setattr__(self, name, str(value).strip().upper())

        if not isinstance(self.created_at, datetime):
            raise ValidationError("created_at must be a datetime", field="created_at")
        object.__setattr__(self, "created_at", _aware(self.created_at))

        if isinstance(self.order_date, datetime) or not isinstance(self.order_date, date):
            raise ValidationError("order_date must be a calendar date", field="order_date")

    @classmethod
    def from_trade(
        cls,
        order_number: Union[str, OrderNumber],
        quantity: Any,
        total_price: Any,
        asset: str,
        fiat: str,
        direction: Union[str, TradeDirection],
        created_at: datetime,
        tz: tzinfo,
        buyer_nickname: Optional[str] = None,
        seller_nickname: Optional[str] = None,
    ) -> Order:
        """Build an unprocessed order from raw trade fields.

        The unit price is derived from total / quantity and the order date is
        the calendar date of ``created_at`` in ``tz``.
        """
        quantity_dec = _to_decimal(quantity, "quantity")
        if quantity_dec <= 0:
            raise ValidationError(f"Quantity must be positive: {quantity}", field="quantity")
        total = Money(_to_decimal(total_price, "total_price"), fiat)
        created = _aware(created_at)
        return cls(
            order_number=(
                OrderNumber(order_number) if isinstance(order_number, str) else order_number
            ),
            quantity=quantity_dec,
            unit_price=total.amount / quantity_dec,
            total_amount=total,
            asset=asset,
            fiat=fiat,
            direction=direction,
            created_at=created,
            order_date=created.astimezone(tz).date(),
            buyer_nickname=buyer_nickname,
            seller_nickname=seller_nickname,
        )

    @property
    def is_processed(self) -> bool:
        return self.outcome is not None

    @property
    def is_successful(self) -> bool:
        return self.outcome is not None and self.outcome.success

    @property
    def is_failed(self) -> bool:
        return self.outcome is not None and not self.outcome.success

    @property
    def is_sell(self) -> bool:
        return self.direction is TradeDirection.SELL

    def can_be_processed(self) -> bool:
        """Unprocessed and failed orders may be (re)submitted; successful ones never."""
        return not self.is_successful

    def days_since_order(self, today: date) -> int:
        return (today - self.order_date).days

    def service_period(self) -> tuple[date, date]:
        return self.order_date, self.order_date

    def with_outcome(self, outcome: ProcessingOutcome) -> Order:
        """Return a copy carrying ``outcome``.

        Raises:
            DomainError: If the order is already successfully invoiced.
        """
        if self.is_successful:
            raise DomainError(f"Order {self.order_number} is already invoiced")
        return dataclasses.replace(self, outcome=outcome)

    def with_result(self, result: InvoiceResult, processed_at: datetime) -> Order:
        if result.order_number != self.order_number:
            raise DomainError(
                f"Result for {result.order_number} applied to order {self.order_number}"
            )
        return self.with_outcome(ProcessingOutcome.from_result(result, processed_at))

    def mark_manual(
        self,
        authorization_code: AuthorizationCode,
        processed_at: datetime,
        voucher_number: Optional[int] = None,
        invoice_date: Optional[date] = None,
        notes: Optional[str] = None,
        point_of_sale: Optional[int] = None,
        invoice_type: Optional[InvoiceType] = None,
    ) -> Order:
        """Record an invoice obtained outside the pipeline."""
        order = self.with_outcome(
            ProcessingOutcome(
                success=True,
                method=ProcessingMethod.MANUAL,
                processed_at=processed_at,
                authorization_code=authorization_code,
                voucher_number=voucher_number,
                invoice_date=invoice_date,
                point_of_sale=point_of_sale,
                invoice_type=invoice_type,
            )
        )
        return order.with_notes(notes) if notes else order

    def with_notes(self, notes: str) -> Order:
        """Append free-text notes."""
        if not notes or not notes.strip():
            return self
        combined = f"{self.notes}\n{notes.strip()}" if self.notes else notes.strip()
        return dataclasses.replace(self, notes=combined)

    def to_dict(self) -> dict[str, Any]:
        outcome = self.outcome
        return {
            "order_number": self.order_number.value,
            "quantity": str(self.quantity),
            "unit_price": str(self.unit_price),
            "total_amount": self.total_amount.to_dict(),
            "asset": self.asset,
            "fiat": self.fiat,
            "direction": self.direction.value,
            "created_at": self.created_at.isoformat(),
            "order_date": self.order_date.isoformat(),
            "buyer_nickname": self.buyer_nickname,
            "seller_nickname": self.seller_nickname,
            "processed_at": outcome.processed_at.isoformat() if outcome else None,
            "processing_method": outcome.method.value if outcome else None,
            "success": outcome.success if outcome else None,
            "authorization_code": (
                outcome.authorization_code.value
                if outcome and outcome.authorization_code
                else None
            ),
            "voucher_number": outcome.voucher_number if outcome else None,
            "point_of_sale": outcome.point_of_sale if outcome else None,
            "invoice_type": (
                int(outcome.invoice_type) if outcome and outcome.invoice_type else None
            ),
            "invoice_date": (
                outcome.invoice_date.isoformat() if outcome and outcome.invoice_date else None
            ),
            "error_message": outcome.error_message if outcome else None,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class Invoice:
    """Invoice document built from an order immediately before submission."""

    order_number: OrderNumber
    net_amount: Money
    tax_amount: Money
    total_amount: Money
    invoice_date: date
    concept: InvoiceConcept = InvoiceConcept.SERVICES
    vat_rate: Decimal = Decimal("0")
    buyer_tax_id: Optional[TaxId] = None
    service_from: Optional[date] = None
    service_to: Optional[date] = None
    payment_due: Optional[date] = None

    def __post_init__(self):
        if not isinstance(self.order_number, OrderNumber):
            object.__setattr__(self, "order_number", OrderNumber(self.order_number))
        try:
            object.__setattr__(self, "concept", InvoiceConcept(self.concept))
        except ValueError as e:
            raise ValidationError(
                f"Invalid invoice concept: {self.concept!r}", field="concept"
            ) from e
        object.__setattr__(self, "vat_rate", _to_decimal(self.vat_rate, "vat_rate"))
        if self.buyer_tax_id is not None and not isinstance(self.buyer_tax_id, TaxId):
            object.__setattr__(self, "buyer_tax_id", TaxId(self.buyer_tax_id))

        errors = self.structural_errors()
        if errors:
            raise ValidationError(f"Invalid invoice: {'; '.join(errors)}", field="invoice")

    @classmethod
    def from_order(
        cls,
        order: Order,
        invoice_date: date,
        concept: InvoiceConcept = InvoiceConcept.SERVICES,
        include_vat: bool = False,
        vat_rate: Decimal = GENERAL_VAT_RATE,
        buyer_tax_id: Optional[TaxId] = None,
    ) -> Invoice:
        amounts = InvoiceCalculator.amounts_for(order.total_amount, include_vat, vat_rate)
        service_from, service_to = order.service_period()
        return cls(
            order_number=order.order_number,
            net_amount=amounts.net,
            tax_amount=amounts.tax,
            total_amount=amounts.total,
            invoice_date=invoice_date,
            concept=concept,
            vat_rate=vat_rate if include_vat else Decimal("0"),
            buyer_tax_id=buyer_tax_id,
            service_from=service_from if concept.requires_service_dates else None,
            service_to=service_to if concept.requires_service_dates else None,
            payment_due=invoice_date if concept.requires_service_dates else None,
        )

    def structural_errors(self) -> list[str]:
        """Amount and field checks that do not depend on the current date."""
        errors: list[str] = []
        currencies = {
            self.net_amount.currency, self.tax_amount.currency, self.total_amount.currency
        }
        if len(currencies) > 1:
            errors.append("All amounts must be in the same currency")
            return errors

        if not self.net_amount.is_positive():
            errors.append("Net amount must be positive")
        if self.tax_amount.is_negative():
            errors.append("Tax amount cannot be negative")
        if not self.total_amount.is_positive():
            errors.append("Total amount must be positive")
        if not InvoiceCalculator.amounts_consistent(
            self.net_amount, self.tax_amount, self.total_amount
        ):
            errors.append(
                f"Total {self.total_amount} does not equal net {self.net_amount} "
                f"plus tax {self.tax_amount}"
            )

        if not isinstance(self.invoice_date, date) or isinstance(self.invoice_date, datetime):
            errors.append("Invoice date must be a calendar date")
        if self.concept.requires_service_dates:
            if self.service_from is None or self.service_to is None or self.payment_due is None:
                errors.append("Service dates are required for service invoices")
            elif self.service_from > self.service_to:
                errors.append("Service period start is after its end")
        return errors

    def date_errors(self, today: date) -> list[str]:
        errors: list[str] = []
        days_back = (today - self.invoice_date).days
        if days_back < 0:
            errors.append(f"Invoice date {self.invoice_date} cannot be in the future")
        elif days_back > self.concept.max_backdating_days:
            errors.append(
                f"Invoice date {self.invoice_date} is {days_back} days old "
                f"(max {self.concept.max_backdating_days})"
            )
        return errors

    def validate(self, today: date) -> None:
        """Re-check all invariants against ``today``.

        Raises:
            ValidationError: Listing every violated rule.
        """
        errors = self.structural_errors() + self.date_errors(today)
        if errors:
            raise ValidationError(f"Invalid invoice: {'; '.join(errors)}", field="invoice")

    @property
    def has_tax(self) -> bool:
        return self.tax_amount.is_positive()

    @property
    def invoice_type(self) -> InvoiceType:
        return InvoiceType.B if self.has_tax else InvoiceType.C

    @property
    def is_final_consumer(self) -> bool:
        return self.buyer_tax_id is None

    @property
    def document_type(self) -> DocumentType:
        return DocumentType.UNIDENTIFIED if self.is_final_consumer else DocumentType.CUIT

    def to_request(self, point_of_sale: int, voucher_number: int) -> dict[str, Any]:
        """Map the invoice to the authority's voucher request fields."""
        currency_id = _CURRENCY_IDS.get(self.total_amount.currency)
        if currency_id is None:
            raise ValidationError(
                f"Unsupported invoice currency: {self.total_amount.currency}", field="currency"
            )

        request: dict[str, Any] = {
            "CantReg": 1,
            "PtoVta": point_of_sale,
            "CbteTipo": int(self.invoice_type),
            "Concepto": int(self.concept),
            "DocTipo": int(self.document_type),
            "DocNro": int(self.buyer_tax_id.value) if self.buyer_tax_id else 0,
            "CbteDesde": voucher_number,
            "CbteHasta": voucher_number,
            "CbteFch": _compact(self.invoice_date),
            "ImpTotal": float(self.total_amount.amount),
            "ImpTotConc": 0,
            "ImpNeto": float(self.net_amount.amount),
            "ImpOpEx": 0,
            "ImpIVA": float(self.tax_amount.amount),
            "ImpTrib": 0,
            "MonId": currency_id,
            "MonCotiz": 1,
            "CondicionIVAReceptorId": _RECEIVER_VAT_CONDITION,
        }
        if self.concept.requires_service_dates:
            request["FchServDesde"] = _compact(self.service_from)
            request["FchServHasta"] = _compact(self.service_to)
            request["FchVtoPago"] = _compact(self.payment_due)
        if self.invoice_type is InvoiceType.B:
            request["Iva"] = [
                {
                    "Id": InvoiceCalculator.vat_rate_code(self.vat_rate),
                    "BaseImp": float(self.net_amount.amount),
                    "Importe": float(self.tax_amount.amount),
                }
            ]
        return request


def _compact(value: Optional[date]) -> Optional[str]:
    return value.strftime("%Y%m%d") if value is not None else None
