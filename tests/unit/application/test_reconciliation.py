# SPDX-License-Identifier: Apache-2.0
"""Unit tests for voucher reconciliation."""

from __future__ import annotations

import pytest

from invoicepipe.application import ReconciliationStatus, VoucherReconciliationService
from invoicepipe.domain.errors import TransportError
from invoicepipe.domain.results import InvoiceResult
from invoicepipe.domain.value_objects import AuthorizationCode, InvoiceType
from tests.fakes import FakeInvoicingTransport, make_order


async def store_success(repository, now, number: str, voucher: int, point_of_sale: int = 2):
    order = make_order(order_number=number)
    result = InvoiceResult.succeeded(
        order.order_number,
        AuthorizationCode(str(voucher)),
        voucher,
        order.order_date,
        point_of_sale=point_of_sale,
        invoice_type=InvoiceType.C,
    )
    await repository.add(order.with_result(result, now))


@pytest.mark.asyncio
async def test_in_sync(repository, settings, now):
    await store_success(repository, now, "A", 40)
    service = VoucherReconciliationService(FakeInvoicingTransport(40), repository, settings)

    check = await service.check()

    assert check.in_sync
    assert check.gap == 0
    assert check.point_of_sale == 2


@pytest.mark.asyncio
async def test_remote_ahead_after_lost_write(repository, settings, now):
    await store_success(repository, now, "A", 40)
    service = VoucherReconciliationService(FakeInvoicingTransport(42), repository, settings)

    check = await service.check()

    assert check.status is ReconciliationStatus.REMOTE_AHEAD
    assert check.gap == 2


@pytest.mark.asyncio
async def test_empty_store_counts_as_zero(repository, settings):
    service = VoucherReconciliationService(FakeInvoicingTransport(5), repository, settings)
    check = await service.check()
    assert check.local_last == 0
    assert check.status is ReconciliationStatus.REMOTE_AHEAD


@pytest.mark.asyncio
async def test_local_ahead(repository, settings, now):
    await store_success(repository, now, "A", 9)
    service = VoucherReconciliationService(FakeInvoicingTransport(3), repository, settings)
    assert (await service.check()).status is ReconciliationStatus.LOCAL_AHEAD


@pytest.mark.asyncio
async def test_transport_errors_propagate(repository, settings):
    transport = FakeInvoicingTransport(last_voucher_error=TransportError("down"))
    service = VoucherReconciliationService(transport, repository, settings)
    with pytest.raises(TransportError):
        await service.check()


@pytest.mark.asyncio
async def test_other_point_of_sale_is_not_counted(repository, settings, now):
    await store_success(repository, now, "A", 40)
    await store_success(repository, now, "B", 900, point_of_sale=7)
    service = VoucherReconciliationService(FakeInvoicingTransport(40), repository, settings)

    check = await service.check()

    assert check.local_last == 40
    assert check.in_sync


@pytest.mark.asyncio
async def test_manual_entry_closes_gap_for_its_sequence(repository, tracker, settings, now):
    await store_success(repository, now, "A", 40)
    await repository.add(make_order(order_number="B"))
    service = VoucherReconciliationService(FakeInvoicingTransport(41), repository, settings)
    assert (await service.check()).gap == 1

    await tracker.record_manual_invoice(
        make_order(order_number="B").order_number,
        AuthorizationCode("74000000000041"),
        voucher_number=41,
        point_of_sale=2,
        invoice_type=InvoiceType.C,
    )

    assert (await service.check()).in_sync
