# SPDX-License-Identifier: Apache-2.0
"""Scriptable invoicing transport for testing."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Tuple, Union

from invoicepipe.domain.ports import IInvoicingTransport, TransportResponse
from invoicepipe.domain.value_objects import InvoiceType

ACCEPT = "accept"
REJECT = "reject"

Step = Union[str, TransportResponse, BaseException]


class FakeInvoicingTransport(IInvoicingTransport):
    """Answers submissions from a script of steps.

    Each ``submit`` consumes one step: ``"accept"``, ``"reject"``, a ready
    ``TransportResponse`` or an exception to raise. With the script exhausted
    every submission is accepted.
    """

    def __init__(
        self,
        last_voucher: int = 0,
        script: Optional[List[Step]] = None,
        last_voucher_error: Optional[Exception] = None,
    ):
        self.last_voucher = last_voucher
        self.script: List[Step] = list(script or [])
        self.last_voucher_error = last_voucher_error
        self.submissions: List[Tuple[Dict[str, Any], int]] = []
        self.last_voucher_calls = 0
        self.closed = False

    @staticmethod
    def code_for(voucher_number: int) -> str:
        return str(74000000000000 + voucher_number)

    async def get_last_voucher_number(self, point_of_sale: int, invoice_type: InvoiceType) -> int:
        self.last_voucher_calls += 1
        if self.last_voucher_error is not None:
            raise self.last_voucher_error
        return self.last_voucher

    async def submit(self, request: Dict[str, Any], voucher_number: int) -> TransportResponse:
        self.submissions.append((request, voucher_number))
        step = self.script.pop(0) if self.script else ACCEPT
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, TransportResponse):
            return step
        if step == REJECT:
            return TransportResponse.rejected("10016: voucher rejected by authority")
        self.last_voucher = voucher_number
        return TransportResponse.accepted(
            self.code_for(voucher_number),
            voucher_number,
            expiration=date(2024, 3, 25),
        )

    async def close(self) -> None:
        self.closed = True

    @property
    def submitted_vouchers(self) -> List[int]:
        return [voucher for _, voucher in self.submissions]
