# SPDX-License-Identifier: Apache-2.0
"""Invoice processing commands."""

from __future__ import annotations

import json
from datetime import date
from typing import Optional

import typer

from invoicepipe.cli.common import CONFIG_OPTION, load_config_or_exit, parse_direction, run
from invoicepipe.domain.errors import ConfigurationError, DomainError, ValidationError
from invoicepipe.domain.repositories import NotFoundError, RepositoryError


def process(
    limit: Optional[int] = typer.Option(
        None, "--limit", "-l", min=1, help="Maximum number of orders to invoice"
    ),
    direction: Optional[str] = typer.Option(
        None, "--direction", "-d", help="Trade side to invoice: sell, buy or all"
    ),
    config: Optional[str] = CONFIG_OPTION,
    metrics_port: Optional[int] = typer.Option(
        None, "--metrics-port", help="Expose Prometheus metrics on this port during the run"
    ),
    json_output: bool = typer.Option(False, "--json", help="Print the batch report as JSON"),
):
    """Invoice every stored order that is eligible today.

    Orders are submitted oldest first in strict voucher order. Failed orders
    stay pending and are retried on the next run.

    Examples:
        invoicepipe process
        invoicepipe process --limit 5 --config config/pos2.yaml
    """
    from invoicepipe.bootstrap import build_services
    from invoicepipe.metrics import start_metrics_server
    from invoicepipe.settings import AuthorityCredentials

    cfg = load_config_or_exit(config)
    side = parse_direction(direction, cfg.direction)

    try:
        AuthorityCredentials().require()
    except ConfigurationError as e:
        typer.echo(f"❌ {e}", err=True)
        for name in e.missing:
            typer.echo(f"   • {name}", err=True)
        raise typer.Exit(1)

    if metrics_port is not None:
        start_metrics_server(metrics_port)
        typer.echo(f"📊 Metrics available on http://localhost:{metrics_port}/metrics")

    services = build_services(cfg)

    async def _run():
        try:
            return await services.batch.process_unprocessed(limit=limit, direction=side)
        finally:
            await services.close()

    try:
        report = run(_run())
    except RepositoryError as e:
        typer.echo(f"❌ Could not read the order store: {e}", err=True)
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        typer.echo(f"🧾 Batch {report.run_date.isoformat()}")
        typer.echo(f"   Eligible:   {report.total_eligible}")
        typer.echo(f"   Succeeded:  {report.succeeded}")
        typer.echo(f"   Failed:     {report.failed}")
        typer.echo(f"   Not ready:  {report.not_ready}")
        for result in report.results:
            if result.success:
                typer.echo(
                    f"   ✅ {result.order_number.truncated} voucher {result.voucher_number} "
                    f"CAE {result.authorization_code}"
                )
            else:
                typer.echo(
                    f"   ❌ {result.order_number.truncated} [{result.failure.kind}] "
                    f"{result.error_message}"
                )

    if report.unpersisted:
        typer.echo(
            f"⚠️  {len(report.unpersisted)} results were not saved locally. "
            "Run 'invoicepipe reconcile' and record them with 'invoicepipe manual'.",
            err=True,
        )
        raise typer.Exit(1)


def manual(
    order_number: str = typer.Argument(..., help="Order number to mark as invoiced"),
    authorization_code: str = typer.Argument(..., help="CAE obtained outside the pipeline"),
    voucher: Optional[int] = typer.Option(None, "--voucher", help="Voucher number, if known"),
    invoice_date: Optional[str] = typer.Option(
        None, "--date", help="Invoice date (YYYY-MM-DD)"
    ),
    notes: Optional[str] = typer.Option(None, "--notes", help="Free-text note for the order"),
    config: Optional[str] = CONFIG_OPTION,
):
    """Record an invoice that was issued outside the pipeline.

    Do not run this while a batch is processing the same point of sale.

    Example:
        invoicepipe manual 22712345678901234567 74123456789012 --voucher 41
    """
    from invoicepipe.bootstrap import build_services
    from invoicepipe.domain.value_objects import AuthorizationCode, OrderNumber

    cfg = load_config_or_exit(config)

    try:
        number = OrderNumber(order_number)
        code = AuthorizationCode(authorization_code)
        issued_on = date.fromisoformat(invoice_date) if invoice_date else None
    except ValueError as e:
        typer.echo(f"❌ Invalid input: {e}", err=True)
        raise typer.Exit(1)

    services = build_services(cfg)

    async def _run():
        try:
            return await services.tracker.record_manual_invoice(
                number,
                code,
                voucher_number=voucher,
                invoice_date=issued_on,
                notes=notes,
                point_of_sale=cfg.point_of_sale,
                invoice_type=cfg.invoice_type,
            )
        finally:
            await services.close()

    try:
        run(_run())
    except NotFoundError:
        typer.echo(f"❌ Order {number} is not in the order store", err=True)
        raise typer.Exit(1)
    except (DomainError, ValidationError, RepositoryError) as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"✅ Order {number} marked as invoiced (CAE {code})")
