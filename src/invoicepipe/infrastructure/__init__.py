# SPDX-License-Identifier: Apache-2.0
"""Infrastructure package for InvoicePipe.

Contains concrete implementations of domain interfaces: the SQLite order
store, invoicing transports, the Binance order source, event publishing and
monitoring.
"""
