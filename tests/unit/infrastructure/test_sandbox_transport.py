# SPDX-License-Identifier: Apache-2.0
"""Tests for the sandbox invoicing authority."""

from __future__ import annotations

import json
from datetime import date

import pytest

from invoicepipe.domain.entities import Invoice
from invoicepipe.domain.errors import TransportError
from invoicepipe.domain.value_objects import InvoiceType
from invoicepipe.infrastructure.transports.sandbox import SandboxInvoicingTransport
from tests.fakes import make_order

TODAY = date(2024, 3, 15)


def request_for(voucher: int, total: str = "15000.00", pos: int = 2) -> dict:
    invoice = Invoice.from_order(make_order(total=total), TODAY)
    return invoice.to_request(pos, voucher)


@pytest.fixture
def sandbox():
    return SandboxInvoicingTransport(last_vouchers={(2, int(InvoiceType.C)): 40})


@pytest.mark.asyncio
async def test_last_voucher_defaults_to_zero(sandbox):
    assert await sandbox.get_last_voucher_number(2, InvoiceType.C) == 40
    assert await sandbox.get_last_voucher_number(2, InvoiceType.B) == 0
    assert await sandbox.get_last_voucher_number(9, InvoiceType.C) == 0


@pytest.mark.asyncio
async def test_accepts_next_voucher(sandbox):
    response = await sandbox.submit(request_for(41), 41)

    assert response.success
    assert response.voucher_number == 41
    assert len(response.authorization_code) == 14
    assert response.authorization_code.isdigit()
    assert response.expiration is not None
    assert await sandbox.get_last_voucher_number(2, InvoiceType.C) == 41
    assert sandbox.issued[0]["CAE"] == response.authorization_code


@pytest.mark.asyncio
async def test_codes_are_deterministic():
    first = SandboxInvoicingTransport()
    second = SandboxInvoicingTransport()
    a = await first.submit(request_for(1), 1)
    b = await second.submit(request_for(1), 1)
    assert a.authorization_code == b.authorization_code


@pytest.mark.asyncio
@pytest.mark.parametrize("voucher", [40, 42])
async def test_rejects_out_of_sequence(sandbox, voucher):
    response = await sandbox.submit(request_for(voucher), voucher)
    assert not response.success
    assert "expected 41" in response.errors[0]
    assert await sandbox.get_last_voucher_number(2, InvoiceType.C) == 40


@pytest.mark.asyncio
async def test_rejects_mismatched_range(sandbox):
    response = await sandbox.submit(request_for(42), 41)
    assert not response.success
    assert "CbteDesde" in response.errors[0]


@pytest.mark.asyncio
async def test_rejects_inconsistent_amounts(sandbox):
    request = dict(request_for(41), ImpTotal=99.0)
    response = await sandbox.submit(request, 41)
    assert not response.success
    assert "sum of its parts" in response.errors[0]


@pytest.mark.asyncio
async def test_rejects_missing_fields(sandbox):
    request = request_for(41)
    del request["CbteFch"]
    response = await sandbox.submit(request, 41)
    assert response.errors == ("Missing fields: CbteFch",)


@pytest.mark.asyncio
async def test_large_anonymous_invoices_need_identification():
    sandbox = SandboxInvoicingTransport(identification_threshold=1000)
    response = await sandbox.submit(request_for(1, total="1500.00"), 1)
    assert not response.success
    assert "identified" in response.errors[0]


@pytest.mark.asyncio
async def test_offline_raises_transport_error():
    sandbox = SandboxInvoicingTransport(offline=True)
    with pytest.raises(TransportError):
        await sandbox.get_last_voucher_number(1, InvoiceType.C)
    with pytest.raises(TransportError):
        await sandbox.submit(request_for(1), 1)


@pytest.mark.asyncio
async def test_state_survives_restart(tmp_path):
    state = tmp_path / "state" / "sandbox.json"
    sandbox = SandboxInvoicingTransport(state_path=str(state))
    await sandbox.submit(request_for(1), 1)
    await sandbox.submit(request_for(2), 2)

    assert json.loads(state.read_text()) == {"2:11": 2}
    restarted = SandboxInvoicingTransport(state_path=str(state))
    assert await restarted.get_last_voucher_number(2, InvoiceType.C) == 2


def test_from_config_parses_counters():
    sandbox = SandboxInvoicingTransport.from_config(
        {"last_vouchers": {"2:6": 10, "3": 4}, "offline": True}
    )
    assert sandbox.offline
    assert sandbox._last == {(2, 6): 10, (3, 11): 4}
