# SPDX-License-Identifier: Apache-2.0
"""Reporting and health commands."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

import typer

from invoicepipe.cli.common import CONFIG_OPTION, load_config_or_exit, run
from invoicepipe.domain.errors import TransportError, ValidationError
from invoicepipe.domain.repositories import RepositoryError


def report(
    year: Optional[int] = typer.Option(None, "--year", "-y", help="Report year (default current)"),
    month: Optional[int] = typer.Option(
        None, "--month", "-m", help="Report month 1-12 (default current)"
    ),
    json_output: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    config: Optional[str] = CONFIG_OPTION,
):
    """Summarize the orders and invoices of one month."""
    from invoicepipe.bootstrap import build_services

    cfg = load_config_or_exit(config)
    now = datetime.now(cfg.tzinfo)
    services = build_services(cfg)

    async def _run():
        try:
            return await services.reports.generate(year or now.year, month or now.month)
        finally:
            await services.close()

    try:
        monthly = run(_run())
    except (ValidationError, RepositoryError) as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps(monthly.to_dict(), indent=2))
        return

    typer.echo(f"📅 Report for {monthly.period}")
    typer.echo("=" * 40)
    typer.echo(f"Orders:     {monthly.total_orders}")
    typer.echo(f"Invoiced:   {monthly.succeeded} ({monthly.manual} manual)")
    typer.echo(f"Failed:     {monthly.failed}")
    typer.echo(f"Pending:    {monthly.pending}")
    for side, count in monthly.by_direction.items():
        typer.echo(f"  {side:<5} {count}")
    for currency, total in monthly.totals_by_currency.items():
        invoiced = monthly.invoiced_by_currency.get(currency)
        typer.echo(
            f"💰 {currency}: total {total.amount}, invoiced {invoiced.amount if invoiced else 0}"
        )


def reconcile(config: Optional[str] = CONFIG_OPTION):
    """Compare the authority's last voucher number with the local store.

    Exits with status 1 when the two disagree.
    """
    from invoicepipe.bootstrap import build_services

    cfg = load_config_or_exit(config)
    services = build_services(cfg)

    async def _run():
        try:
            return await services.reconciliation.check()
        finally:
            await services.close()

    try:
        result = run(_run())
    except (TransportError, RepositoryError) as e:
        typer.echo(f"❌ Reconciliation failed: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"🔢 POS {result.point_of_sale} type {int(result.invoice_type)}")
    typer.echo(f"   Authority last voucher: {result.remote_last}")
    typer.echo(f"   Local last voucher:     {result.local_last}")
    if result.in_sync:
        typer.echo("✅ In sync")
        return
    typer.echo(f"⚠️  Out of sync ({result.status.value}, gap {result.gap})")
    raise typer.Exit(1)


def status(config: Optional[str] = CONFIG_OPTION):
    """Show configuration, credential presence and order counts."""
    from invoicepipe.bootstrap import build_services
    from invoicepipe.security.mask import mask
    from invoicepipe.settings import AuthorityCredentials, BinanceCredentials

    cfg = load_config_or_exit(config)
    afip = AuthorityCredentials()
    binance = BinanceCredentials()

    typer.echo("⚙️  Configuration")
    typer.echo(f"   Point of sale:  {cfg.point_of_sale}")
    typer.echo(f"   Invoice type:   {cfg.invoice_type.name} ({int(cfg.invoice_type)})")
    typer.echo(f"   Concept:        {cfg.concept.name}")
    typer.echo(f"   Window:         {cfg.eligibility_window_days} days")
    typer.echo(f"   Timezone:       {cfg.timezone}")
    typer.echo(f"   Transport:      {cfg.transport}")
    typer.echo(f"   Database:       {cfg.database_path}")
    typer.echo("🔑 Credentials")
    typer.echo(f"   AFIP_CUIT:      {mask(afip.cuit) if afip.cuit else 'missing'}")
    typer.echo(f"   Environment:    {afip.environment}")
    typer.echo(f"   Binance key:    {mask(binance.api_key) if binance.api_key else 'missing'}")

    services = build_services(cfg)

    async def _run():
        try:
            return await services.tracker.stats()
        finally:
            await services.close()

    try:
        stats = run(_run())
    except RepositoryError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    typer.echo("📦 Orders")
    typer.echo(f"   Total:     {stats.total}")
    typer.echo(f"   Pending:   {stats.pending}")
    typer.echo(f"   Invoiced:  {stats.succeeded}")
    typer.echo(f"   Failed:    {stats.failed}")
