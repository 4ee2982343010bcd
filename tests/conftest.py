# SPDX-License-Identifier: Apache-2.0
"""Shared fixtures for the InvoicePipe test suite.

FIXTURES PROVIDED:
- today / now: the fixed reference date used across tests (2024-03-15)
- repository / transport / publisher: in-memory fakes of the ports
- tracker / orchestrator / batch_service: application services wired to the fakes
- sqlite_repository: a real SQLite order store in a temporary directory
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from invoicepipe.application import (
    InvoiceBatchService,
    OrderTracker,
    SequentialSubmissionOrchestrator,
    SubmissionSettings,
)
from invoicepipe.domain.services import OrderEligibilityPolicy
from invoicepipe.infrastructure.repositories import SqliteOrderRepository
from tests.fakes import FakeEventPublisher, FakeInvoicingTransport, FakeOrderRepository
from tests.fakes.builders import TODAY

NOW = datetime(2024, 3, 15, 18, 30, tzinfo=timezone.utc)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def repository():
    return FakeOrderRepository()


@pytest.fixture
def transport():
    return FakeInvoicingTransport(last_voucher=40)


@pytest.fixture
def publisher():
    return FakeEventPublisher()


@pytest.fixture
def settings():
    return SubmissionSettings(point_of_sale=2)


@pytest.fixture
def tracker(repository, clock, publisher):
    return OrderTracker(repository, clock=clock, event_publisher=publisher)


@pytest.fixture
def orchestrator(transport, settings, publisher):
    return SequentialSubmissionOrchestrator(transport, settings, event_publisher=publisher)


@pytest.fixture
def batch_service(tracker, orchestrator, clock, publisher):
    return InvoiceBatchService(
        tracker,
        orchestrator,
        OrderEligibilityPolicy(),
        clock=clock,
        event_publisher=publisher,
    )


@pytest.fixture
def sqlite_repository(tmp_path):
    return SqliteOrderRepository(str(tmp_path / "orders.db"))


@pytest.fixture(autouse=True)
def _reset_bootstrap():
    """Each test starts without a shared event publisher."""
    from invoicepipe.bootstrap import reset_bootstrap_state

    reset_bootstrap_state()
    yield
    reset_bootstrap_state()
