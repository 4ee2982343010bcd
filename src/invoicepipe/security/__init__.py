# SPDX-License-Identifier: Apache-2.0
"""Security utilities for InvoicePipe."""

from .mask import mask, mask_signature, safe_for_log

__all__ = ["mask", "mask_signature", "safe_for_log"]
