# SPDX-License-Identifier: Apache-2.0
"""Tests for the invoicing transport registry."""

from __future__ import annotations

import pytest

from invoicepipe.domain.ports import IInvoicingTransport, TransportResponse
from invoicepipe.infrastructure.transports import registry
from invoicepipe.infrastructure.transports.sandbox import SandboxInvoicingTransport


class DummyTransport(IInvoicingTransport):
    def __init__(self, **options):
        self.options = options

    @classmethod
    def from_config(cls, config):
        return cls(**config)

    async def submit(self, request, voucher_number):
        return TransportResponse.rejected("dummy")

    async def get_last_voucher_number(self, point_of_sale, invoice_type):
        return 0


@pytest.fixture(autouse=True)
def clean_registry():
    registry.clear_registry()
    yield
    registry.clear_registry()


def test_sandbox_is_built_in():
    assert registry.get("sandbox") is SandboxInvoicingTransport
    assert "sandbox" in registry.list_transports()


def test_register_and_lookup_is_case_insensitive():
    registry.register("Dummy", DummyTransport)
    assert registry.get("DUMMY") is DummyTransport
    assert registry.is_registered("dummy")


def test_decorator_registers():
    @registry.transport("decorated")
    class Decorated(DummyTransport):
        pass

    assert registry.get("decorated") is Decorated


def test_unknown_name_lists_available():
    with pytest.raises(KeyError, match="sandbox"):
        registry.get("wsfe-nope")


def test_rejects_non_transport_classes():
    with pytest.raises(ValueError):
        registry.register("bad", dict)


def test_create_transport_passes_options():
    registry.register("dummy", DummyTransport)
    created = registry.create_transport("dummy", {"endpoint": "https://example.test"})
    assert isinstance(created, DummyTransport)
    assert created.options == {"endpoint": "https://example.test"}


def test_create_sandbox_from_options():
    created = registry.create_transport(
        "sandbox", {"last_vouchers": {"3:11": 17}, "expiry_days": 5}
    )
    assert isinstance(created, SandboxInvoicingTransport)
    assert created.expiry_days == 5


def test_entry_points_are_loaded(monkeypatch):
    class FakeEntryPoint:
        name = "plugin"

        def load(self):
            return DummyTransport

    class BrokenEntryPoint:
        name = "broken"

        def load(self):
            raise ImportError("missing dependency")

    monkeypatch.setattr(
        registry, "_discover_entry_points", lambda: [FakeEntryPoint(), BrokenEntryPoint()]
    )

    assert registry.get("plugin") is DummyTransport
    assert not registry.is_registered("broken")
