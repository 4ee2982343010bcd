# SPDX-License-Identifier: Apache-2.0
"""Invoicing transports and their registry."""

from .registry import (
    clear_registry,
    create_transport,
    get,
    is_registered,
    list_transports,
    register,
    transport,
)

__all__ = [
    "clear_registry",
    "create_transport",
    "get",
    "is_registered",
    "list_transports",
    "register",
    "transport",
]
