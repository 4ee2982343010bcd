# SPDX-License-Identifier: Apache-2.0
"""In-process stand-in for the electronic invoicing authority.

Keeps one voucher sequence per point of sale and invoice type and applies
the checks the authority applies to a single-voucher request: the voucher
must be the next number in the sequence and the amounts must add up.
Accepted vouchers receive a deterministic 14-digit authorization code.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from invoicepipe.domain.errors import TransportError
from invoicepipe.domain.ports import IInvoicingTransport, TransportResponse
from invoicepipe.domain.value_objects import DocumentType, InvoiceType

from .registry import transport

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = (
    "PtoVta",
    "CbteTipo",
    "Concepto",
    "DocTipo",
    "DocNro",
    "CbteDesde",
    "CbteHasta",
    "CbteFch",
    "ImpTotal",
    "ImpNeto",
    "ImpIVA",
    "MonId",
)

# Above this total a final-consumer invoice must identify the buyer.
DEFAULT_IDENTIFICATION_THRESHOLD = Decimal("10000000")


@transport("sandbox")
class SandboxInvoicingTransport(IInvoicingTransport):
    """Authority simulator used for local runs and tests.

    Args:
        last_vouchers: Starting last-used voucher per ``(point_of_sale, invoice_type)``
        expiry_days: Validity of issued authorization codes
        identification_threshold: Total above which ``DocTipo`` 99 is refused
        offline: Raise ``TransportError`` on every call
        state_path: JSON file that keeps the counters between processes
    """

    def __init__(
        self,
        last_vouchers: Optional[Dict[Tuple[int, int], int]] = None,
        expiry_days: int = 10,
        identification_threshold: Decimal = DEFAULT_IDENTIFICATION_THRESHOLD,
        offline: bool = False,
        state_path: Optional[str] = None,
    ):
        self._last: Dict[Tuple[int, int], int] = dict(last_vouchers or {})
        self.state_path = Path(state_path) if state_path else None
        if self.state_path is not None and self.state_path.exists():
            self._last.update(_parse_counters(json.loads(self.state_path.read_text())))
        self.expiry_days = expiry_days
        self.identification_threshold = Decimal(str(identification_threshold))
        self.offline = offline
        self.issued: List[Dict[str, Any]] = []

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> SandboxInvoicingTransport:
        """Build from ``transport_options``.

        ``last_vouchers`` keys are ``"<point_of_sale>:<invoice_type>"`` strings.
        """
        return cls(
            last_vouchers=_parse_counters(config.get("last_vouchers") or {}),
            expiry_days=int(config.get("expiry_days", 10)),
            identification_threshold=Decimal(
                str(config.get("identification_threshold", DEFAULT_IDENTIFICATION_THRESHOLD))
            ),
            offline=bool(config.get("offline", False)),
            state_path=config.get("state_path"),
        )

    def _check_online(self) -> None:
        if self.offline:
            raise TransportError("Sandbox authority is offline")

    async def get_last_voucher_number(self, point_of_sale: int, invoice_type: InvoiceType) -> int:
        self._check_online()
        return self._last.get((int(point_of_sale), int(invoice_type)), 0)

    async def submit(self, request: Dict[str, Any], voucher_number: int) -> TransportResponse:
        self._check_online()

        missing = [name for name in _REQUIRED_FIELDS if name not in request]
        if missing:
            return TransportResponse.rejected(f"Missing fields: {', '.join(missing)}")

        key = (int(request["PtoVta"]), int(request["CbteTipo"]))
        expected = self._last.get(key, 0) + 1
        errors = []
        if request["CbteDesde"] != voucher_number or request["CbteHasta"] != voucher_number:
            errors.append(f"CbteDesde/CbteHasta do not match voucher {voucher_number}")
        if voucher_number != expected:
            errors.append(
                f"Voucher {voucher_number} is not the next in sequence; expected {expected}"
            )

        total = Decimal(str(request["ImpTotal"]))
        parts = sum(
            Decimal(str(request.get(name, 0)))
            for name in ("ImpNeto", "ImpIVA", "ImpTotConc", "ImpOpEx", "ImpTrib")
        )
        if abs(total - parts) > Decimal("0.01"):
            errors.append(f"ImpTotal {total} does not equal the sum of its parts {parts}")
        if (
            request["DocTipo"] == int(DocumentType.UNIDENTIFIED)
            and total > self.identification_threshold
        ):
            errors.append(
                f"Buyer must be identified for totals above {self.identification_threshold}"
            )

        if errors:
            logger.info("Sandbox rejected voucher %d: %s", voucher_number, "; ".join(errors))
            return TransportResponse.rejected(*errors)

        self._last[key] = voucher_number
        self._save_state()
        code = self._authorization_code(key, voucher_number, request["CbteFch"])
        expiration = self._today() + timedelta(days=self.expiry_days)
        self.issued.append(dict(request, CAE=code))
        logger.info("Sandbox issued voucher %d for POS %d type %d", voucher_number, *key)
        return TransportResponse.accepted(code, voucher_number, expiration=expiration)

    @staticmethod
    def _authorization_code(key: Tuple[int, int], voucher_number: int, issued_on: str) -> str:
        digest = hashlib.sha256(f"{key[0]}:{key[1]}:{voucher_number}:{issued_on}".encode())
        return str(int(digest.hexdigest(), 16) % 10**14).zfill(14)

    @staticmethod
    def _today() -> date:
        return datetime.now(timezone.utc).date()

    def _save_state(self) -> None:
        if self.state_path is None:
            return
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        counters = {f"{pos}:{invoice_type}": n for (pos, invoice_type), n in self._last.items()}
        self.state_path.write_text(json.dumps(counters, indent=2, sort_keys=True))


def _parse_counters(raw: Dict[str, Any]) -> Dict[Tuple[int, int], int]:
    """Parse ``{"<point_of_sale>:<invoice_type>": last}``; type defaults to C."""
    counters = {}
    for key, value in raw.items():
        pos, _, invoice_type = str(key).partition(":")
        counters[(int(pos), int(invoice_type or InvoiceType.C))] = int(value)
    return counters
