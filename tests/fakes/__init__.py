# SPDX-License-Identifier: Apache-2.0
"""Fake implementations of the invoicing ports for tests."""

from __future__ import annotations

from .builders import make_order, utc
from .events import FakeEventPublisher
from .repositories import FakeOrderRepository
from .sources import FakeOrderSource
from .transports import FakeInvoicingTransport

__all__ = [
    "FakeEventPublisher",
    "FakeInvoicingTransport",
    "FakeOrderRepository",
    "FakeOrderSource",
    "make_order",
    "utc",
]
