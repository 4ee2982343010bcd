# SPDX-License-Identifier: Apache-2.0
"""Event publishing infrastructure."""

from .publishers import InMemoryEventPublisher

__all__ = [
    "InMemoryEventPublisher",
]
