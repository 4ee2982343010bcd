# SPDX-License-Identifier: Apache-2.0
"""Exception hierarchy for InvoicePipe.

Exceptions are raised inside the domain and infrastructure layers. The batch
boundary converts them into result values (see ``domain.results``); only
``ConfigurationError`` is allowed to escape a batch run.
"""

from __future__ import annotations


class InvoicePipeError(Exception):
    """Base class for all InvoicePipe errors."""


class ValidationError(InvoicePipeError, ValueError):
    """Local data failed a domain rule (malformed amount, bad checksum, date window)."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class DomainError(InvoicePipeError):
    """An operation violated a business invariant."""


class CurrencyMismatchError(DomainError):
    """Arithmetic or comparison attempted between different currencies."""

    def __init__(self, left: str, right: str):
        super().__init__(f"Currency mismatch: {left} vs {right}")
        self.left = left
        self.right = right


class ConfigurationError(InvoicePipeError):
    """Missing or invalid configuration; aborts a batch before any order is attempted."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = missing or []


class TransportError(InvoicePipeError):
    """The invoicing transport could not complete a call (network, auth, availability)."""


class OrderSourceError(InvoicePipeError):
    """The trading venue could not be queried for orders."""
