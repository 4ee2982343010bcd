# SPDX-License-Identifier: Apache-2.0
"""Configuration management for InvoicePipe."""

from .invoicing import (
    CURRENT_CONFIG_VERSION,
    DEFAULT_TIMEZONE,
    MIN_SUPPORTED_VERSION,
    InvoicingConfig,
)
from .loader import ConfigVersionError, load_config

__all__ = [
    "InvoicingConfig",
    "CURRENT_CONFIG_VERSION",
    "MIN_SUPPORTED_VERSION",
    "DEFAULT_TIMEZONE",
    "load_config",
    "ConfigVersionError",
]
