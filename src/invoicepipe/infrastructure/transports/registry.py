# SPDX-License-Identifier: Apache-2.0
"""Registry for pluggable invoicing transports.

Transports register under a short name, either with the ``@transport``
decorator or through the ``invoicepipe.transports`` entry point group.
"""

from __future__ import annotations

import logging
from importlib.metadata import EntryPoint, entry_points
from typing import Any, Mapping, Optional

from invoicepipe.domain.ports import IInvoicingTransport

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "invoicepipe.transports"

# Global registry of transports
_REGISTRY: dict[str, type[IInvoicingTransport]] = {}
_AUTO_REGISTERED = False


def _discover_entry_points() -> list[EntryPoint]:
    return list(entry_points(group=ENTRY_POINT_GROUP))


def _auto_register() -> None:
    """Register the built-in transports and those published via entry points."""
    global _AUTO_REGISTERED
    if _AUTO_REGISTERED:
        return

    from . import sandbox

    _REGISTRY.setdefault("sandbox", sandbox.SandboxInvoicingTransport)

    for ep in _discover_entry_points():
        if ep.name in _REGISTRY:
            continue
        try:
            _REGISTRY[ep.name] = ep.load()
            logger.info("Auto-registered transport '%s' from entry point", ep.name)
        except Exception as e:
            logger.warning("Failed to load transport '%s' from entry point: %s", ep.name, e)

    _AUTO_REGISTERED = True


def register(name: str, cls: type[IInvoicingTransport]) -> None:
    """
    Register a transport class under ``name``.

    Args:
        name: Unique transport identifier (e.g., "sandbox", "wsfe")
        cls: Class implementing IInvoicingTransport
    """
    if not isinstance(cls, type) or not issubclass(cls, IInvoicingTransport):
        raise ValueError(f"Transport class {cls} must implement IInvoicingTransport")

    _REGISTRY[name.lower()] = cls
    logger.debug("Registered transport '%s': %s", name, cls)


def get(name: str) -> type[IInvoicingTransport]:
    """
    Get a transport class by name.

    Raises:
        KeyError: If no transport is registered under ``name``
    """
    _auto_register()

    key = name.lower()
    if key not in _REGISTRY:
        available = sorted(_REGISTRY)
        raise KeyError(f"Transport '{name}' not found. Available transports: {available}")
    return _REGISTRY[key]


def list_transports() -> list[str]:
    _auto_register()
    return sorted(_REGISTRY)


def is_registered(name: str) -> bool:
    _auto_register()
    return name.lower() in _REGISTRY


def clear_registry() -> None:
    """Clear the registry (mainly for testing); built-ins return on next lookup."""
    global _AUTO_REGISTERED
    _REGISTRY.clear()
    _AUTO_REGISTERED = False


def transport(name: str):
    """
    Decorator to register a transport class.

    Usage:
        @transport("myauthority")
        class MyTransport(IInvoicingTransport):
            ...
    """

    def decorator(cls: type[IInvoicingTransport]) -> type[IInvoicingTransport]:
        register(name, cls)
        return cls

    return decorator


def create_transport(name: str, options: Optional[Mapping[str, Any]] = None) -> IInvoicingTransport:
    """Instantiate the transport registered under ``name`` from its options."""
    cls = get(name)
    return cls.from_config(dict(options or {}))
