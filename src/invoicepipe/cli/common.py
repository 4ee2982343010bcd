# SPDX-License-Identifier: Apache-2.0
"""Shared option handling for CLI commands."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

import typer

from invoicepipe.config import ConfigVersionError, InvoicingConfig, load_config
from invoicepipe.domain.value_objects import TradeDirection

T = TypeVar("T")

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    envvar="INVOICEPIPE_CONFIG",
    help="Path to YAML configuration file",
)


def load_config_or_exit(path: Optional[str]) -> InvoicingConfig:
    """Load configuration, printing the problem and exiting 1 when it is invalid."""
    try:
        return load_config(path)
    except (FileNotFoundError, ValueError, ConfigVersionError) as e:
        typer.echo(f"❌ Configuration error: {e}", err=True)
        raise typer.Exit(1)


def parse_direction(
    value: Optional[str], default: Optional[TradeDirection]
) -> Optional[TradeDirection]:
    """Map ``buy``/``sell``/``all`` to a trade direction (``all`` means both)."""
    if value is None:
        return default
    normalized = value.strip().upper()
    if normalized == "ALL":
        return None
    try:
        return TradeDirection(normalized)
    except ValueError:
        typer.echo(f"❌ Invalid direction: {value}. Use buy, sell or all", err=True)
        raise typer.Exit(1)


def run(coro: Awaitable[T]) -> T:
    return asyncio.run(coro)
