# SPDX-License-Identifier: Apache-2.0
"""Cross-check of the authority's voucher counter against the local store.

A result that was accepted by the authority but never saved leaves the
remote counter ahead of the highest locally recorded voucher. Running this
check after a batch reports that gap so it can be fixed by hand (for
example with ``invoicepipe manual``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from invoicepipe.domain.ports import IInvoicingTransport
from invoicepipe.domain.repositories import IOrderRepository
from invoicepipe.domain.value_objects import InvoiceType

from .submission import SubmissionSettings

logger = logging.getLogger(__name__)


class ReconciliationStatus(str, Enum):
    IN_SYNC = "in_sync"
    REMOTE_AHEAD = "remote_ahead"
    LOCAL_AHEAD = "local_ahead"


@dataclass(frozen=True)
class VoucherReconciliation:
    point_of_sale: int
    invoice_type: InvoiceType
    remote_last: int
    local_last: int

    @property
    def gap(self) -> int:
        return self.remote_last - self.local_last

    @property
    def status(self) -> ReconciliationStatus:
        if self.gap > 0:
            return ReconciliationStatus.REMOTE_AHEAD
        if self.gap < 0:
            return ReconciliationStatus.LOCAL_AHEAD
        return ReconciliationStatus.IN_SYNC

    @property
    def in_sync(self) -> bool:
        return self.status is ReconciliationStatus.IN_SYNC


class VoucherReconciliationService:
    def __init__(
        self,
        transport: IInvoicingTransport,
        repository: IOrderRepository,
        settings: SubmissionSettings,
    ):
        self._transport = transport
        self._repository = repository
        self._settings = settings

    async def check(self) -> VoucherReconciliation:
        """Compare remote and local last voucher numbers.

        Raises:
            TransportError: If the authority cannot be queried
            RepositoryError: If the store cannot be read
        """
        remote = await self._transport.get_last_voucher_number(
            self._settings.point_of_sale, self._settings.invoice_type
        )
        local = (
            await self._repository.max_voucher_number(
                self._settings.point_of_sale, self._settings.invoice_type
            )
            or 0
        )
        result = VoucherReconciliation(
            point_of_sale=self._settings.point_of_sale,
            invoice_type=self._settings.invoice_type,
            remote_last=remote,
            local_last=local,
        )
        if result.in_sync:
            logger.info("Voucher counters in sync at %d", remote)
        else:
            logger.warning(
                "Voucher counters differ for POS %d: authority %d, local %d (%s)",
                result.point_of_sale,
                remote,
                local,
                result.status.value,
            )
        return result
