# SPDX-License-Identifier: Apache-2.0
"""InvoicePipe: electronic invoicing for P2P crypto orders."""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
