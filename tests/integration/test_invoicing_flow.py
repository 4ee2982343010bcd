# SPDX-License-Identifier: Apache-2.0
"""End-to-end invoicing scenarios.

Runs the wired services against a real SQLite store and the sandbox
authority: ingestion, batch submission, retries, lost writes and their
reconciliation.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from invoicepipe.application import (
    InvoiceBatchService,
    OrderTracker,
    ReconciliationStatus,
    SequentialSubmissionOrchestrator,
    SubmissionSettings,
    VoucherReconciliationService,
)
from invoicepipe.bootstrap import build_ingestion, build_services, get_event_publisher
from invoicepipe.config import InvoicingConfig
from invoicepipe.domain.entities import Order
from invoicepipe.domain.events import InvoiceBatchCompleted, InvoiceIssued
from invoicepipe.domain.repositories import RepositoryError
from invoicepipe.domain.services import OrderEligibilityPolicy
from invoicepipe.domain.value_objects import AuthorizationCode, InvoiceType, OrderNumber
from invoicepipe.infrastructure.repositories import SqliteOrderRepository
from invoicepipe.infrastructure.transports.sandbox import SandboxInvoicingTransport
from tests.fakes import FakeOrderSource, make_order

pytestmark = pytest.mark.integration

UTC = timezone.utc


def recent_order(number: str, minutes_ago: int = 30, **kwargs) -> Order:
    created = datetime.now(UTC) - timedelta(minutes=minutes_ago)
    return make_order(order_number=number, created_at=created, **kwargs)


@pytest.fixture
def config(tmp_path):
    return InvoicingConfig(
        database_path=str(tmp_path / "orders.db"),
        timezone="UTC",
        transport_options={
            "last_vouchers": {"2:11": 100},
            "state_path": str(tmp_path / "sandbox.json"),
        },
    )


class FlakyRepository(SqliteOrderRepository):
    """Store that loses the outcome write for selected orders."""

    def __init__(self, db_path: str, lose: set[str]):
        super().__init__(db_path)
        self.lose = lose

    async def save_outcome(self, order: Order) -> None:
        if order.order_number.value in self.lose:
            raise RepositoryError("disk I/O error")
        await super().save_outcome(order)


@pytest.mark.asyncio
async def test_sync_then_process(config):
    services = build_services(config)
    source = FakeOrderSource(
        [
            recent_order("A", minutes_ago=90),
            recent_order("B", minutes_ago=60),
            recent_order("C", minutes_ago=30, direction="BUY"),
        ]
    )

    synced = await build_ingestion(services, source).sync(7)
    report = await services.batch.process_unprocessed()

    assert synced.inserted == 2
    assert (report.total_eligible, report.succeeded, report.failed) == (2, 2, 0)
    assert [r.voucher_number for r in report.results] == [101, 102]
    stored = await services.repository.get(OrderNumber("B"))
    assert stored.outcome.voucher_number == 102
    assert len(stored.outcome.authorization_code.value) == 14

    check = await services.reconciliation.check()
    assert check.in_sync
    assert check.remote_last == 102

    again = await services.batch.process_unprocessed()
    assert again.total_eligible == 0


@pytest.mark.asyncio
async def test_events_reach_the_shared_publisher(config):
    services = build_services(config)
    await services.repository.add(recent_order("A"))

    await services.batch.process_unprocessed()

    events = get_event_publisher().get_published_events()
    assert [type(e) for e in events] == [InvoiceIssued, InvoiceBatchCompleted]
    assert events[0].voucher_number == 101


@pytest.mark.asyncio
async def test_bad_order_does_not_consume_a_voucher(config):
    services = build_services(config)
    await services.repository.add_many(
        [
            recent_order("A", minutes_ago=90),
            recent_order("EUR", minutes_ago=60, fiat="EUR"),
            recent_order("C", minutes_ago=30),
        ]
    )

    report = await services.batch.process_unprocessed()

    assert [r.voucher_number for r in report.results] == [101, None, 102]
    failed = await services.repository.get(OrderNumber("EUR"))
    assert failed.is_failed
    assert "Unsupported invoice currency" in failed.outcome.error_message
    assert (await services.reconciliation.check()).in_sync


@pytest.mark.asyncio
async def test_counter_survives_restart(config):
    first = build_services(config)
    await first.repository.add(recent_order("A"))
    await first.batch.process_unprocessed()

    second = build_services(config)
    await second.repository.add(recent_order("B"))
    report = await second.batch.process_unprocessed()

    assert report.results[0].voucher_number == 102


@pytest.mark.asyncio
async def test_authority_outage_keeps_orders_pending(tmp_path):
    config = InvoicingConfig(
        database_path=str(tmp_path / "orders.db"),
        timezone="UTC",
        transport_options={"offline": True},
    )
    services = build_services(config)
    await services.repository.add(recent_order("A"))

    report = await services.batch.process_unprocessed()

    assert report.failed == 1
    assert report.results[0].failure.kind == "transport"
    candidates = await services.tracker.candidates()
    assert [o.order_number.value for o in candidates] == ["A"]


@pytest.mark.asyncio
async def test_lost_write_is_detected_and_repaired(tmp_path):
    repository = FlakyRepository(str(tmp_path / "orders.db"), lose={"B"})
    transport = SandboxInvoicingTransport(last_vouchers={(2, int(InvoiceType.C)): 0})
    settings = SubmissionSettings(point_of_sale=2)
    tracker = OrderTracker(repository)
    batch = InvoiceBatchService(
        tracker,
        SequentialSubmissionOrchestrator(transport, settings),
        OrderEligibilityPolicy(),
    )
    reconciliation = VoucherReconciliationService(transport, repository, settings)
    await repository.add_many([recent_order("A", minutes_ago=60), recent_order("B")])

    report = await batch.process_unprocessed()

    assert report.succeeded == 2
    assert [str(p.order_number) for p in report.unpersisted] == ["B"]
    lost = report.unpersisted[0].result
    assert (lost.point_of_sale, lost.invoice_type) == (2, InvoiceType.C)

    check = await reconciliation.check()
    assert check.status is ReconciliationStatus.REMOTE_AHEAD
    assert check.gap == 1

    repository.lose.clear()
    await tracker.record_manual_invoice(
        OrderNumber("B"),
        AuthorizationCode(lost.authorization_code.value),
        voucher_number=lost.voucher_number,
        point_of_sale=lost.point_of_sale,
        invoice_type=lost.invoice_type,
        notes="Recovered after lost write",
    )

    assert (await reconciliation.check()).in_sync
    assert await tracker.candidates() == []
