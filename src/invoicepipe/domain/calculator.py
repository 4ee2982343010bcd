# SPDX-License-Identifier: Apache-2.0
"""VAT arithmetic for invoice amounts."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from .errors import ValidationError
from .value_objects import Money

Rate = Union[Decimal, int, float, str]

GENERAL_VAT_RATE = Decimal("0.21")
REDUCED_VAT_RATE = Decimal("0.105")

# Authority codes for the VAT rate applied to an invoice line
VAT_RATE_CODES = {
    Decimal("0"): 3,
    Decimal("0.105"): 4,
    Decimal("0.21"): 5,
    Decimal("0.27"): 6,
    Decimal("0.05"): 8,
    Decimal("0.025"): 9,
}


def _rate(value: Rate) -> Decimal:
    rate = Decimal(str(value))
    if rate < 0 or rate >= 1:
        raise ValidationError(f"VAT rate must be in [0, 1): {value}", field="vat_rate")
    return rate


@dataclass(frozen=True)
class InvoiceAmounts:
    net: Money
    tax: Money
    total: Money


class InvoiceCalculator:
    """Splits and combines net, tax and total amounts."""

    @staticmethod
    def calculate_vat(net: Money, rate: Rate = GENERAL_VAT_RATE) -> Money:
        return net.multiply(_rate(rate))

    @staticmethod
    def net_from_total(total: Money, rate: Rate = GENERAL_VAT_RATE) -> Money:
        return total.divide(Decimal(1) + _rate(rate))

    @classmethod
    def split_total(cls, total: Money, rate: Rate = GENERAL_VAT_RATE) -> tuple[Money, Money]:
        """Split a VAT-inclusive total into (net, tax).

        Tax is taken as the difference so that net + tax == total exactly.
        """
        net = cls.net_from_total(total, rate)
        return net, total.subtract(net)

    @classmethod
    def amounts_for(
        cls, total: Money, include_vat: bool = False, rate: Rate = GENERAL_VAT_RATE
    ) -> InvoiceAmounts:
        if not include_vat or _rate(rate) == 0:
            return InvoiceAmounts(net=total, tax=Money.zero(total.currency), total=total)
        net, tax = cls.split_total(total, rate)
        return InvoiceAmounts(net=net, tax=tax, total=total)

    @staticmethod
    def amounts_consistent(
        net: Money, tax: Money, total: Money, tolerance: Rate = Decimal("0.01")
    ) -> bool:
        return net.add(tax).is_close_to(total, tolerance)

    @staticmethod
    def vat_rate_code(rate: Rate) -> int:
        code = VAT_RATE_CODES.get(_rate(rate))
        if code is None:
            raise ValidationError(f"Unsupported VAT rate: {rate}", field="vat_rate")
        return code
