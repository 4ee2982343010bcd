# SPDX-License-Identifier: Apache-2.0
"""InvoicePipe command line interface."""

from __future__ import annotations

from typing import Optional

import typer

from invoicepipe import __version__

from .orders import app as orders_app
from .process import manual, process
from .reports import reconcile, report, status

app = typer.Typer(
    add_completion=False,
    help="Issue electronic invoices for P2P crypto orders",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"invoicepipe {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    log_level: str = typer.Option(
        "INFO", "--log-level", envvar="INVOICEPIPE_LOG_LEVEL", help="Logging level"
    ),
    version: Optional[bool] = typer.Option(
        None, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
):
    """Issue electronic invoices for P2P crypto orders."""
    from invoicepipe.bootstrap import setup_logging

    try:
        setup_logging(log_level)
    except ValueError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)


app.command(name="process")(process)
app.command(name="manual")(manual)
app.command(name="report")(report)
app.command(name="reconcile")(reconcile)
app.command(name="status")(status)
app.add_typer(orders_app, name="orders")

__all__ = ["app"]
