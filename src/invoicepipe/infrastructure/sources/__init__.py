# SPDX-License-Identifier: Apache-2.0
"""Order sources for trading venues."""

from .binance_p2p import BinanceP2POrderSource

__all__ = ["BinanceP2POrderSource"]
