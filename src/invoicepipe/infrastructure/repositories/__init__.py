# SPDX-License-Identifier: Apache-2.0
"""Repository implementations for the domain interfaces."""

from __future__ import annotations

from .sqlite_orders import SqliteOrderRepository

__all__ = ["SqliteOrderRepository"]
