# SPDX-License-Identifier: Apache-2.0
"""CLI tests using typer's CliRunner against a temporary SQLite store."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from textwrap import dedent
from zoneinfo import ZoneInfo

import pytest
from typer.testing import CliRunner

from invoicepipe import __version__
from invoicepipe.cli import app
from invoicepipe.domain.value_objects import InvoiceType, OrderNumber
from invoicepipe.infrastructure.repositories import SqliteOrderRepository
from tests.fakes import FakeOrderSource, make_order

BUENOS_AIRES = ZoneInfo("America/Argentina/Buenos_Aires")

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Run every command from an empty directory with a known environment."""
    for name in (
        "AFIP_CUIT",
        "AFIP_ENVIRONMENT",
        "AFIP_CERT_PATH",
        "AFIP_KEY_PATH",
        "BINANCE_API_KEY",
        "BINANCE_SECRET_KEY",
        "INVOICEPIPE_CONFIG",
        "INVOICEPIPE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("AFIP_CUIT", "20123456786")


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "data" / "orders.db"


@pytest.fixture
def config_file(tmp_path, db_path):
    path = tmp_path / "invoicepipe.yaml"
    path.write_text(
        dedent(
            f"""
            config_version: "1"
            point_of_sale: 2
            database_path: {db_path}
            transport: sandbox
            """
        )
    )
    return str(path)


def seed(db_path, *numbers: str, days_ago: int = 0):
    now = datetime.now(timezone.utc) - timedelta(days=days_ago, minutes=5)
    orders = [make_order(order_number=n, created_at=now, tz=BUENOS_AIRES) for n in numbers]
    repository = SqliteOrderRepository(str(db_path))
    asyncio.run(repository.add_many(orders))
    return repository


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"invoicepipe {__version__}" in result.output


def test_help_lists_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("process", "manual", "report", "reconcile", "status", "orders"):
        assert command in result.output


def test_invalid_log_level(config_file):
    result = runner.invoke(app, ["--log-level", "LOUD", "status", "--config", config_file])
    assert result.exit_code == 1
    assert "Unknown log level" in result.output


def test_missing_config_file():
    result = runner.invoke(app, ["status", "--config", "missing.yaml"])
    assert result.exit_code == 1
    assert "Configuration error" in result.output


class TestProcess:
    def test_invoices_pending_orders(self, config_file, db_path):
        repository = seed(db_path, "A", "B")

        result = runner.invoke(app, ["process", "--config", config_file])

        assert result.exit_code == 0, result.output
        assert "Succeeded:  2" in result.output
        assert "voucher 1" in result.output and "voucher 2" in result.output
        stored = asyncio.run(repository.get(OrderNumber("B")))
        assert stored.is_successful
        assert stored.outcome.voucher_number == 2

    def test_json_output(self, config_file, db_path):
        seed(db_path, "A")

        result = runner.invoke(app, ["process", "--json", "--config", config_file])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["succeeded"] == 1
        assert data["results"][0]["order_number"] == "A"

    def test_limit(self, config_file, db_path):
        seed(db_path, "A", "B", "C")
        result = runner.invoke(app, ["process", "-l", "1", "--config", config_file])
        assert result.exit_code == 0, result.output
        assert "Eligible:   1" in result.output

    def test_nothing_to_do(self, config_file):
        result = runner.invoke(app, ["process", "--config", config_file])
        assert result.exit_code == 0, result.output
        assert "Eligible:   0" in result.output

    def test_missing_issuer_tax_id(self, config_file, monkeypatch):
        monkeypatch.delenv("AFIP_CUIT")
        result = runner.invoke(app, ["process", "--config", config_file])
        assert result.exit_code == 1
        assert "AFIP_CUIT" in result.output

    def test_invalid_direction(self, config_file):
        result = runner.invoke(app, ["process", "--direction", "sideways", "--config", config_file])
        assert result.exit_code == 1
        assert "Invalid direction" in result.output

    def test_config_from_environment(self, config_file, db_path, monkeypatch):
        seed(db_path, "A")
        monkeypatch.setenv("INVOICEPIPE_CONFIG", config_file)
        result = runner.invoke(app, ["process"])
        assert result.exit_code == 0, result.output
        assert "Succeeded:  1" in result.output


class TestManual:
    def test_marks_order_as_invoiced(self, config_file, db_path):
        repository = seed(db_path, "A")

        result = runner.invoke(
            app,
            [
                "manual", "A", "74123456789012",
                "--voucher", "9", "--notes", "portal", "-c", config_file,
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Order A marked as invoiced (CAE 74123456789012)" in result.output
        stored = asyncio.run(repository.get(OrderNumber("A")))
        assert stored.outcome.method.value == "manual"
        assert stored.notes == "portal"
        assert stored.outcome.point_of_sale == 2
        assert stored.outcome.invoice_type is InvoiceType.C

    def test_unknown_order(self, config_file):
        result = runner.invoke(app, ["manual", "NOPE", "74123456789012", "-c", config_file])
        assert result.exit_code == 1
        assert "not in the order store" in result.output

    def test_invalid_code(self, config_file):
        result = runner.invoke(app, ["manual", "A", "not-a-cae", "-c", config_file])
        assert result.exit_code == 1
        assert "Invalid input" in result.output

    def test_already_invoiced(self, config_file, db_path):
        seed(db_path, "A")
        runner.invoke(app, ["manual", "A", "74123456789012", "-c", config_file])
        result = runner.invoke(app, ["manual", "A", "74123456789013", "-c", config_file])
        assert result.exit_code == 1
        assert "already invoiced" in result.output


class TestReports:
    def test_report_json(self, config_file, db_path):
        seed(db_path, "A", "B")
        runner.invoke(app, ["process", "-l", "1", "-c", config_file])
        now = datetime.now(BUENOS_AIRES)

        result = runner.invoke(
            app,
            [
                "report", "--year", str(now.year), "--month", str(now.month),
                "--json", "-c", config_file,
            ],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["total_orders"] == 2
        assert data["succeeded"] == 1
        assert data["period"] == f"{now.year:04d}-{now.month:02d}"

    def test_report_rejects_bad_month(self, config_file):
        result = runner.invoke(app, ["report", "--month", "13", "-c", config_file])
        assert result.exit_code == 1
        assert "Month must be between 1 and 12" in result.output

    def test_reconcile_in_sync(self, config_file):
        result = runner.invoke(app, ["reconcile", "-c", config_file])
        assert result.exit_code == 0, result.output
        assert "In sync" in result.output

    def test_reconcile_detects_gap(self, tmp_path, db_path):
        path = tmp_path / "ahead.yaml"
        path.write_text(
            dedent(
                f"""
                config_version: "1"
                database_path: {db_path}
                transport_options:
                  last_vouchers:
                    "2:11": 3
                """
            )
        )

        result = runner.invoke(app, ["reconcile", "-c", str(path)])

        assert result.exit_code == 1
        assert "remote_ahead, gap 3" in result.output

    def test_reconcile_transport_failure(self, tmp_path, db_path):
        path = tmp_path / "offline.yaml"
        path.write_text(
            dedent(
                f"""
                config_version: "1"
                database_path: {db_path}
                transport_options:
                  offline: true
                """
            )
        )
        result = runner.invoke(app, ["reconcile", "-c", str(path)])
        assert result.exit_code == 1
        assert "Reconciliation failed" in result.output

    def test_status_masks_credentials(self, config_file, db_path):
        seed(db_path, "A")
        result = runner.invoke(app, ["status", "-c", config_file])
        assert result.exit_code == 0, result.output
        assert "20123456786" not in result.output
        assert "*******6786" in result.output
        assert "Total:     1" in result.output
        assert "Binance key:    missing" in result.output


class TestOrders:
    def test_list_shows_pending_orders(self, config_file, db_path):
        seed(db_path, "A", days_ago=1)
        result = runner.invoke(app, ["orders", "list", "--status", "pending", "-c", config_file])
        assert result.exit_code == 0, result.output
        assert "A" in result.output
        assert "pending" in result.output

    def test_list_empty(self, config_file):
        result = runner.invoke(app, ["orders", "list", "-c", config_file])
        assert result.exit_code == 0
        assert "No orders found" in result.output

    def test_list_rejects_unknown_status(self, config_file):
        result = runner.invoke(app, ["orders", "list", "--status", "weird", "-c", config_file])
        assert result.exit_code == 1

    def test_sync_requires_binance_credentials(self, config_file):
        result = runner.invoke(app, ["orders", "sync", "-c", config_file])
        assert result.exit_code == 1
        assert "BINANCE_API_KEY" in result.output

    def test_sync_stores_fetched_orders(self, config_file, db_path, monkeypatch):
        source = FakeOrderSource([make_order(order_number="X1"), make_order(order_number="X2")])
        monkeypatch.setattr("invoicepipe.bootstrap.build_order_source", lambda cfg: source)

        result = runner.invoke(app, ["orders", "sync", "--days", "3", "-c", config_file])

        assert result.exit_code == 0, result.output
        assert "New:        2" in result.output
        assert source.calls[0][0] == 3
        counts = asyncio.run(SqliteOrderRepository(str(db_path)).count_by_status())
        assert counts["pending"] == 2
