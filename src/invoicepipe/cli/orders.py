# SPDX-License-Identifier: Apache-2.0
"""Order store commands."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

import typer

from invoicepipe.cli.common import CONFIG_OPTION, load_config_or_exit, parse_direction, run
from invoicepipe.domain.errors import ConfigurationError, OrderSourceError
from invoicepipe.domain.repositories import ORDER_STATUSES, RepositoryError

app = typer.Typer(name="orders", help="Fetch and inspect stored orders", add_completion=False)

_STATUSES = ("all",) + ORDER_STATUSES


@app.command("sync")
def sync(
    days: Optional[int] = typer.Option(
        None, "--days", min=1, max=30, help="Days of history to fetch (default from config)"
    ),
    direction: Optional[str] = typer.Option(
        None, "--direction", "-d", help="Trade side to fetch: sell, buy or all"
    ),
    config: Optional[str] = CONFIG_OPTION,
):
    """Fetch recent P2P orders from Binance into the order store."""
    from invoicepipe.bootstrap import build_ingestion, build_order_source, build_services

    cfg = load_config_or_exit(config)
    side = parse_direction(direction, cfg.direction)
    since_days = days or cfg.sync_days

    try:
        source = build_order_source(cfg)
    except ConfigurationError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    services = build_services(cfg)
    ingestion = build_ingestion(services, source)

    async def _run():
        try:
            return await ingestion.sync(since_days, side)
        finally:
            await services.close()

    try:
        result = run(_run())
    except (OrderSourceError, RepositoryError) as e:
        typer.echo(f"❌ Sync failed: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"📥 Fetched orders from the last {since_days} days")
    typer.echo(f"   New:        {result.inserted}")
    typer.echo(f"   Retryable:  {len(result.retryable)}")
    typer.echo(f"   Duplicates: {len(result.duplicates)}")


@app.command("list")
def list_orders(
    status: str = typer.Option("all", "--status", "-s", help="all, pending, failed or success"),
    days: int = typer.Option(30, "--days", min=1, help="Only orders from the last N days"),
    limit: int = typer.Option(50, "--limit", "-l", min=1, help="Maximum rows to show"),
    config: Optional[str] = CONFIG_OPTION,
):
    """List stored orders with their invoicing state."""
    from invoicepipe.bootstrap import build_services

    status = status.lower()
    if status not in _STATUSES:
        typer.echo(f"❌ Invalid status: {status}. Use one of {', '.join(_STATUSES)}", err=True)
        raise typer.Exit(1)

    cfg = load_config_or_exit(config)
    services = build_services(cfg)
    today = datetime.now(cfg.tzinfo).date()
    start = today - timedelta(days=days)

    async def _run():
        try:
            if status == "all":
                return await services.repository.list_by_date_range(start, today)
            return await services.repository.list_by_status(status)
        finally:
            await services.close()

    try:
        orders = run(_run())
    except RepositoryError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)

    orders = [o for o in orders if start <= o.order_date <= today]

    if not orders:
        typer.echo("📭 No orders found")
        return

    shown = orders[-limit:]
    if len(orders) > limit:
        typer.echo(f"🔍 Showing last {limit} of {len(orders)} orders:")
    for order in shown:
        if order.is_successful:
            state = f"✅ CAE {order.outcome.authorization_code} ({order.outcome.method.value})"
        elif order.is_failed:
            state = f"❌ {order.outcome.error_message}"
        else:
            state = "⏳ pending"
        typer.echo(
            f"{order.order_date.isoformat()}  {order.order_number.truncated:<20}  "
            f"{order.direction.value:<4}  {str(order.total_amount):>16}  {state}"
        )
