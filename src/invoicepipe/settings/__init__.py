# SPDX-License-Identifier: Apache-2.0
"""InvoicePipe settings package."""

from .credentials import AuthorityCredentials, BinanceCredentials

__all__ = ["AuthorityCredentials", "BinanceCredentials"]
