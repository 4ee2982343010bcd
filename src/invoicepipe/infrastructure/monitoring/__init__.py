# SPDX-License-Identifier: Apache-2.0
"""Metrics and logging reactions to domain events."""

from __future__ import annotations

from .event_handlers import register

__all__ = ["register"]
