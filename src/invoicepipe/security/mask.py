# SPDX-License-Identifier: Apache-2.0
"""Masking helpers that keep secrets and signatures out of log lines."""

from __future__ import annotations

import re
from typing import Optional

_SIGNATURE_PARAM = re.compile(r"(signature=)[0-9a-fA-F]+")


def mask(value: Optional[str], show: int = 4) -> str:
    """Mask a secret, keeping only its last ``show`` characters.

    Examples:
        >>> mask("ABCD1234EFGH")
        '********EFGH'
        >>> mask("short")
        '***'
    """
    if not value or len(value) <= show + 2:
        return "***"
    if show == 0:
        return "*" * len(value)
    return "*" * (len(value) - show) + value[-show:]


def mask_signature(text: str) -> str:
    """Replace the hex value of any ``signature=`` query parameter."""
    return _SIGNATURE_PARAM.sub(r"\1***", text)


def safe_for_log(msg: str, *secrets: Optional[str]) -> str:
    """Return ``msg`` with every given secret masked and request signatures hidden.

    Examples:
        >>> safe_for_log("key ABCD1234EFGH rejected", "ABCD1234EFGH")
        'key ********EFGH rejected'
    """
    for secret in secrets:
        if secret:
            msg = msg.replace(secret, mask(secret))
    return mask_signature(msg)
