# SPDX-License-Identifier: Apache-2.0
"""Sequential voucher submission.

The authority keeps one gap-free voucher sequence per point of sale and
invoice type. The orchestrator reads the last used number once per batch,
then submits orders one at a time. A confirmed success moves the local
counter to the number the authority returned; any failure leaves it where
it was, so the next order retries the same number.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, Sequence

from invoicepipe.domain.calculator import GENERAL_VAT_RATE
from invoicepipe.domain.entities import Invoice, Order
from invoicepipe.domain.errors import InvoicePipeError, TransportError, ValidationError
from invoicepipe.domain.events import (
    DomainEvent,
    IEventPublisher,
    InvoiceIssued,
    InvoiceSubmissionFailed,
)
from invoicepipe.domain.ports import IInvoicingTransport, TransportResponse
from invoicepipe.domain.results import (
    AuthorityRejection,
    InvoiceResult,
    TransportFailure,
    ValidationFailure,
)
from invoicepipe.domain.services import REGULATORY_WINDOW_DAYS, InvoiceDateCalculator
from invoicepipe.domain.value_objects import AuthorizationCode, InvoiceConcept, InvoiceType
from invoicepipe.metrics import SUBMISSION_LATENCY

if TYPE_CHECKING:
    from invoicepipe.config.invoicing import InvoicingConfig

logger = logging.getLogger(__name__)

# Awaited after each order, before the next submission starts.
ResultCallback = Callable[[Order, InvoiceResult], Awaitable[None]]


@dataclass(frozen=True)
class SubmissionSettings:
    """Fixed parameters of one submission run."""

    point_of_sale: int
    invoice_type: InvoiceType = InvoiceType.C
    concept: InvoiceConcept = InvoiceConcept.SERVICES
    include_vat: bool = False
    vat_rate: Decimal = GENERAL_VAT_RATE
    backdating_days: int = REGULATORY_WINDOW_DAYS
    transport_name: str = "transport"

    def __post_init__(self):
        if self.point_of_sale < 1:
            raise ValidationError(f"Point of sale must be positive: {self.point_of_sale}")
        if self.backdating_days > self.concept.max_backdating_days:
            raise ValidationError(
                f"Backdating of {self.backdating_days} days exceeds the "
                f"{self.concept.max_backdating_days}-day limit for {self.concept.name}"
            )

    @classmethod
    def from_config(cls, config: InvoicingConfig) -> SubmissionSettings:
        return cls(
            point_of_sale=config.point_of_sale,
            invoice_type=config.invoice_type,
            concept=config.concept,
            include_vat=config.include_vat,
            vat_rate=config.vat_rate,
            backdating_days=config.effective_backdating_days,
            transport_name=config.transport,
        )


@dataclass(frozen=True)
class SubmissionBatch:
    """Results of one orchestrator run, in input order."""

    results: List[InvoiceResult] = field(default_factory=list)
    starting_voucher_number: Optional[int] = None
    final_voucher_number: Optional[int] = None

    @property
    def succeeded(self) -> List[InvoiceResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[InvoiceResult]:
        return [r for r in self.results if not r.success]


class SequentialSubmissionOrchestrator:
    """Submits invoices for a batch of orders in strict voucher order."""

    def __init__(
        self,
        transport: IInvoicingTransport,
        settings: SubmissionSettings,
        event_publisher: Optional[IEventPublisher] = None,
    ):
        self._transport = transport
        self._settings = settings
        self._event_publisher = event_publisher
        self._dates = InvoiceDateCalculator(window_days=settings.backdating_days)

    @property
    def settings(self) -> SubmissionSettings:
        return self._settings

    async def submit_all(
        self,
        orders: Sequence[Order],
        today: date,
        on_result: Optional[ResultCallback] = None,
    ) -> SubmissionBatch:
        """Submit every order, never stopping early.

        Args:
            orders: Orders to invoice, in submission order
            today: Calendar date of the run in the configured timezone
            on_result: Awaited with each order and its result as soon as the
                result is known, so it can be stored before the next submission

        Returns:
            SubmissionBatch with one result per order
        """
        if not orders:
            return SubmissionBatch()

        pos = self._settings.point_of_sale
        invoice_type = self._settings.invoice_type
        try:
            last_voucher = await self._transport.get_last_voucher_number(pos, invoice_type)
        except Exception as e:
            logger.error(
                "Could not read last voucher number for POS %d type %d: %s",
                pos,
                int(invoice_type),
                e,
            )
            failure = TransportFailure.of(f"Could not obtain last voucher number: {e}")
            results = []
            for order in orders:
                result = self._stamp(InvoiceResult.failed(order.order_number, failure))
                await self._deliver(on_result, order, result)
                results.append(result)
            await self._publish(self._failure_event(r) for r in results)
            return SubmissionBatch(results=results)

        logger.info(
            "Submitting %d invoices for POS %d type %d starting after voucher %d",
            len(orders),
            pos,
            int(invoice_type),
            last_voucher,
        )

        counter = last_voucher
        results: List[InvoiceResult] = []
        for order in orders:
            result = self._stamp(await self._submit_one(order, counter + 1, today))
            await self._deliver(on_result, order, result)
            if result.success:
                counter = result.voucher_number
                logger.info(
                    "Order %s invoiced: voucher %d CAE %s",
                    order.order_number.truncated,
                    result.voucher_number,
                    result.authorization_code,
                )
                await self._publish([self._issued_event(result)])
            else:
                logger.warning(
                    "Order %s not invoiced (%s): %s",
                    order.order_number.truncated,
                    result.failure.kind,
                    result.error_message,
                )
                await self._publish([self._failure_event(result)])
            results.append(result)

        return SubmissionBatch(
            results=results,
            starting_voucher_number=last_voucher,
            final_voucher_number=counter,
        )

    async def _submit_one(self, order: Order, candidate: int, today: date) -> InvoiceResult:
        invoice_date = self._dates.for_order(order, today)

        # Local validation runs before the transport so a bad order never uses a number.
        try:
            request = self._build_request(order, invoice_date, candidate, today)
        except InvoicePipeError as e:
            return InvoiceResult.failed(
                order.order_number, ValidationFailure.of(str(e)), invoice_date=invoice_date
            )

        started = time.perf_counter()
        try:
            response = await self._transport.submit(request, candidate)
        except TransportError as e:
            return InvoiceResult.failed(
                order.order_number,
                TransportFailure.of(str(e)),
                invoice_date=invoice_date,
                attempted_voucher_number=candidate,
            )
        except Exception as e:
            logger.exception("Unexpected transport error for order %s", order.order_number)
            return InvoiceResult.failed(
                order.order_number,
                TransportFailure.of(f"Unexpected transport error: {e}"),
                invoice_date=invoice_date,
                attempted_voucher_number=candidate,
            )
        finally:
            SUBMISSION_LATENCY.labels(transport=self._settings.transport_name).observe(
                time.perf_counter() - started
            )

        return self._to_result(order, response, candidate, invoice_date)

    def _build_request(self, order: Order, invoice_date: date, candidate: int, today: date) -> dict:
        invoice = Invoice.from_order(
            order,
            invoice_date,
            concept=self._settings.concept,
            include_vat=self._settings.include_vat,
            vat_rate=self._settings.vat_rate,
        )
        invoice.validate(today)
        if invoice.invoice_type is not self._settings.invoice_type:
            raise ValidationError(
                f"Invoice type {invoice.invoice_type.name} does not match configured "
                f"type {self._settings.invoice_type.name}"
            )
        return invoice.to_request(self._settings.point_of_sale, candidate)

    def _to_result(
        self, order: Order, response: TransportResponse, candidate: int, invoice_date: date
    ) -> InvoiceResult:
        if not response.success:
            errors = response.errors or ("Authority rejected the invoice without a message",)
            return InvoiceResult.failed(
                order.order_number,
                AuthorityRejection(errors),
                invoice_date=invoice_date,
                attempted_voucher_number=candidate,
                observations=response.observations,
            )

        try:
            code = AuthorizationCode(response.authorization_code, response.expiration)
        except ValidationError as e:
            logger.error(
                "Authority accepted voucher %d for order %s but returned a bad code: %s",
                candidate,
                order.order_number,
                e,
            )
            return InvoiceResult.failed(
                order.order_number,
                TransportFailure.of(f"Malformed authorization code in response: {e}"),
                invoice_date=invoice_date,
                attempted_voucher_number=candidate,
            )

        try:
            return InvoiceResult.succeeded(
                order.order_number,
                code,
                response.voucher_number or candidate,
                invoice_date,
                observations=response.observations,
            )
        except ValidationError as e:
            logger.error(
                "Authority accepted voucher %d for order %s but the response is invalid: %s",
                candidate,
                order.order_number,
                e,
            )
            return InvoiceResult.failed(
                order.order_number,
                TransportFailure.of(f"Invalid acceptance response: {e}"),
                invoice_date=invoice_date,
                attempted_voucher_number=candidate,
            )

    def _stamp(self, result: InvoiceResult) -> InvoiceResult:
        return dataclasses.replace(
            result,
            point_of_sale=self._settings.point_of_sale,
            invoice_type=self._settings.invoice_type,
        )

    @staticmethod
    async def _deliver(
        on_result: Optional[ResultCallback], order: Order, result: InvoiceResult
    ) -> None:
        if on_result is None:
            return
        try:
            await on_result(order, result)
        except Exception:
            # The remaining orders must still be attempted.
            logger.exception("Result handler failed for order %s", order.order_number)

    def _issued_event(self, result: InvoiceResult) -> InvoiceIssued:
        return InvoiceIssued(
            order_number=result.order_number,
            authorization_code=result.authorization_code,
            voucher_number=result.voucher_number,
            point_of_sale=self._settings.point_of_sale,
            invoice_date=result.invoice_date,
            invoice_type=int(self._settings.invoice_type),
        )

    @staticmethod
    def _failure_event(result: InvoiceResult) -> InvoiceSubmissionFailed:
        return InvoiceSubmissionFailed(
            order_number=result.order_number,
            failure_kind=result.failure.kind,
            error_message=result.error_message,
            attempted_voucher_number=result.attempted_voucher_number,
        )

    async def _publish(self, events) -> None:
        if self._event_publisher is None:
            return
        batch: List[DomainEvent] = list(events)
        try:
            await self._event_publisher.publish_many(batch)
        except Exception as e:
            logger.warning("Failed to publish %d submission events: %s", len(batch), e)
