# SPDX-License-Identifier: Apache-2.0
"""Domain value objects for InvoicePipe.

Value Objects are immutable objects that are defined by their values rather
than their identity. Each one validates itself on construction, so an
instance that exists is always well formed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum, IntEnum
from typing import Any, Iterable, Optional, Union

from .errors import CurrencyMismatchError, ValidationError

Numeric = Union[Decimal, int, float, str]

_CENTS = Decimal("0.01")
_DEFAULT_TOLERANCE = Decimal("0.01")


def _to_decimal(value: Any, what: str = "amount") -> Decimal:
    """Convert a numeric-like value to Decimal without float artefacts."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {what}: {value!r}", field=what)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValidationError(f"Invalid {what}: {value!r}", field=what) from e
    else:
        raise ValidationError(f"Invalid {what} type: {type(value).__name__}", field=what)

    if not result.is_finite():
        raise ValidationError(f"{what.capitalize()} must be a finite number: {value!r}", field=what)
    return result


class TradeDirection(str, Enum):
    """Side of a P2P trade from the account owner's point of view."""

    BUY = "BUY"
    SELL = "SELL"


class ProcessingMethod(str, Enum):
    """How an order reached its processed state."""

    AUTOMATIC = "automatic"
    MANUAL = "manual"


class InvoiceConcept(IntEnum):
    """Authority classification of what is being invoiced."""

    PRODUCTS = 1
    SERVICES = 2
    PRODUCTS_AND_SERVICES = 3

    @property
    def max_backdating_days(self) -> int:
        """Days an invoice date may lie before the submission date."""
        return 5 if self is InvoiceConcept.PRODUCTS else 10

    @property
    def requires_service_dates(self) -> bool:
        return self is not InvoiceConcept.PRODUCTS


class InvoiceType(IntEnum):
    """Voucher type codes. B itemises VAT, C is issued by non-VAT registrants."""

    B = 6
    C = 11


class DocumentType(IntEnum):
    """Buyer identification document codes."""

    CUIT = 80
    CUIL = 86
    CDI = 87
    PASSPORT = 94
    DNI = 96
    UNIDENTIFIED = 99


@dataclass(frozen=True)
class Money:
    """Monetary amount with fixed 2-decimal precision.

    Every instance is rounded half-up to cents at construction. Operations
    between two Money values require the same currency.
    """

    amount: Decimal
    currency: str = "ARS"

    def __post_init__(self):
        """Validate and normalize amount and currency."""
        amount = _to_decimal(self.amount).quantize(_CENTS, rounding=ROUND_HALF_UP)
        object.__setattr__(self, "amount", amount)

        if not isinstance(self.currency, str):
            raise ValidationError(f"Invalid currency: {self.currency!r}", field="currency")
        currency = self.currency.strip().upper()
        if not re.match(r"^[A-Z]{3}$", currency):
            raise ValidationError(
                f"Invalid currency code: {self.currency!r}. Must be a 3-letter ISO code",
                field="currency",
            )
        object.__setattr__(self, "currency", currency)

    @classmethod
    def of(cls, amount: Numeric, currency: str = "ARS") -> Money:
        return cls(_to_decimal(amount), currency)

    @classmethod
    def from_float(cls, value: float, currency: str = "ARS") -> Money:
        """Create Money from a float, going through ``str`` to avoid binary artefacts."""
        return cls(Decimal(str(value)), currency)

    @classmethod
    def zero(cls, currency: str = "ARS") -> Money:
        return cls(Decimal("0"), currency)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Money:
        if not isinstance(data, dict) or "amount" not in data:
            raise ValidationError("Money data must be a mapping with an 'amount' key")
        return cls(_to_decimal(data["amount"]), data.get("currency", "ARS"))

    @classmethod
    def sum(cls, values: Iterable[Money]) -> Money:
        """Add up a non-empty collection of same-currency amounts."""
        items = list(values)
        if not items:
            raise ValidationError("Cannot sum an empty collection of Money")
        total = items[0]
        for item in items[1:]:
            total = total.add(item)
        return total

    @classmethod
    def min(cls, values: Iterable[Money]) -> Money:
        items = list(values)
        if not items:
            raise ValidationError("Cannot take the minimum of an empty collection")
        result = items[0]
        for item in items[1:]:
            if item < result:
                result = item
        return result

    @classmethod
    def max(cls, values: Iterable[Money]) -> Money:
        items = list(values)
        if not items:
            raise ValidationError("Cannot take the maximum of an empty collection")
        result = items[0]
        for item in items[1:]:
            if item > result:
                result = item
        return result

    def _require_same_currency(self, other: Money) -> None:
        if not isinstance(other, Money):
            raise ValidationError(f"Expected Money, got {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def add(self, other: Money) -> Money:
        self._require_same_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def subtract(self, other: Money) -> Money:
        self._require_same_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def multiply(self, factor: Numeric) -> Money:
        return Money(self.amount * _to_decimal(factor, "factor"), self.currency)

    def divide(self, divisor: Numeric) -> Money:
        value = _to_decimal(divisor, "divisor")
        if value == 0:
            raise ValidationError("Cannot divide Money by zero", field="divisor")
        return Money(self.amount / value, self.currency)

    def percentage(self, percent: Numeric) -> Money:
        """Return ``percent`` percent of this amount (``percentage(21)`` is 21%)."""
        return Money(self.amount * _to_decimal(percent, "percent") / Decimal(100), self.currency)

    def convert_to(self, currency: str, rate: Numeric) -> Money:
        """Convert to another currency at ``rate`` units of target per unit of source."""
        value = _to_decimal(rate, "rate")
        if value <= 0:
            raise ValidationError(f"Exchange rate must be positive: {rate}", field="rate")
        return Money(self.amount * value, currency)

    def compare_to(self, other: Money) -> int:
        self._require_same_currency(other)
        if self.amount < other.amount:
            return -1
        if self.amount > other.amount:
            return 1
        return 0

    def abs(self) -> Money:
        return Money(abs(self.amount), self.currency)

    def negate(self) -> Money:
        return Money(-self.amount, self.currency)

    def is_zero(self) -> bool:
        return self.amount == 0

    def is_positive(self) -> bool:
        return self.amount > 0

    def is_negative(self) -> bool:
        return self.amount < 0

    def is_close_to(self, other: Money, tolerance: Numeric = _DEFAULT_TOLERANCE) -> bool:
        self._require_same_currency(other)
        return abs(self.amount - other.amount) <= _to_decimal(tolerance, "tolerance")

    def to_dict(self) -> dict[str, Any]:
        return {"amount": str(self.amount), "currency": self.currency}

    def __add__(self, other: Money) -> Money:
        return self.add(other)

    def __sub__(self, other: Money) -> Money:
        return self.subtract(other)

    def __mul__(self, factor: Numeric) -> Money:
        if isinstance(factor, Money):
            return NotImplemented
        return self.multiply(factor)

    __rmul__ = __mul__

    def __truediv__(self, divisor: Numeric) -> Money:
        if isinstance(divisor, Money):
            return NotImplemented
        return self.divide(divisor)

    def __neg__(self) -> Money:
        return self.negate()

    def __abs__(self) -> Money:
        return self.abs()

    def __lt__(self, other: Money) -> bool:
        return self.compare_to(other) < 0

    def __le__(self, other: Money) -> bool:
        return self.compare_to(other) <= 0

    def __gt__(self, other: Money) -> bool:
        return self.compare_to(other) > 0

    def __ge__(self, other: Money) -> bool:
        return self.compare_to(other) >= 0

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"


@dataclass(frozen=True)
class OrderNumber:
    """Identifier of a trade order as assigned by the trading venue."""

    value: str

    MAX_LENGTH = 255

    def __post_init__(self):
        """Validate order number format on creation."""
        if self.value is None:
            raise ValidationError("Order number cannot be empty", field="order_number")

        normalized = str(self.value).strip()
        if not normalized:
            raise ValidationError("Order number cannot be empty", field="order_number")
        if len(normalized) > self.MAX_LENGTH:
            raise ValidationError(
                f"Order number too long: {len(normalized)} characters (max {self.MAX_LENGTH})",
                field="order_number",
            )
        if not re.match(r"^[A-Za-z0-9_-]+$", normalized):
            raise ValidationError(
                f"Invalid order number: {normalized!r}. Only letters, digits, '_' and '-' allowed",
                field="order_number",
            )
        object.__setattr__(self, "value", normalized)

    @property
    def truncated(self) -> str:
        """Short form for console output (first and last 8 characters)."""
        if len(self.value) <= 20:
            return self.value
        return f"{self.value[:8]}...{self.value[-8:]}"

    @property
    def is_numeric(self) -> bool:
        return self.value.isdigit()

    def __str__(self) -> str:
        return self.value


_TAX_ID_WEIGHTS = (5, 4, 3, 2, 7, 6, 5, 4, 3, 2)

_TAX_ID_KINDS = {
    "20": "individual",
    "23": "individual",
    "24": "individual",
    "27": "individual",
    "30": "company",
    "33": "company",
    "34": "company",
}


@dataclass(frozen=True)
class TaxId:
    """Argentine taxpayer identifier (CUIT), 11 digits with a mod-11 check digit."""

    value: str

    def __post_init__(self):
        """Validate digits and checksum on creation."""
        if self.value is None:
            raise ValidationError("Tax ID cannot be empty", field="tax_id")

        digits = re.sub(r"[\s-]", "", str(self.value))
        if not re.match(r"^\d{11}$", digits):
            raise ValidationError(
                f"Invalid tax ID: {self.value!r}. Must contain exactly 11 digits",
                field="tax_id",
            )
        expected = self.check_digit_for(digits[:10])
        if int(digits[10]) != expected:
            raise ValidationError(
                f"Invalid tax ID checksum: {self.value!r} (expected check digit {expected})",
                field="tax_id",
            )
        object.__setattr__(self, "value", digits)

    @staticmethod
    def check_digit_for(first_ten: str) -> int:
        """Compute the check digit for the first 10 digits of a tax ID."""
        total = sum(int(d) * w for d, w in zip(first_ten, _TAX_ID_WEIGHTS))
        remainder = total % 11
        if remainder == 0:
            return 0
        if remainder == 1:
            return 9
        return 11 - remainder

    @classmethod
    def is_valid(cls, value: str) -> bool:
        try:
            cls(value)
        except ValidationError:
            return False
        return True

    @property
    def formatted(self) -> str:
        return f"{self.value[:2]}-{self.value[2:10]}-{self.value[10]}"

    @property
    def kind(self) -> str:
        return _TAX_ID_KINDS.get(self.value[:2], "unknown")

    @property
    def is_company(self) -> bool:
        return self.kind == "company"

    @property
    def is_individual(self) -> bool:
        return self.kind == "individual"

    def __str__(self) -> str:
        return self.formatted


@dataclass(frozen=True)
class AuthorizationCode:
    """Authorization code (CAE) issued by the tax authority for an accepted invoice.

    Stored as 14 zero-padded digits. Expiry is derived from ``expires_on``
    and the caller's notion of today; it is never stored.
    """

    value: str
    expires_on: Optional[date] = None

    LENGTH = 14

    def __post_init__(self):
        """Validate and pad the code."""
        if self.value is None:
            raise ValidationError("Authorization code cannot be empty", field="authorization_code")

        digits = re.sub(r"[\s-]", "", str(self.value))
        if not digits or not digits.isdigit() or len(digits) > self.LENGTH:
            raise ValidationError(
                f"Invalid authorization code: {self.value!r}. Must be up to {self.LENGTH} digits",
                field="authorization_code",
            )
        object.__setattr__(self, "value", digits.zfill(self.LENGTH))

        if self.expires_on is not None and not isinstance(self.expires_on, date):
            raise ValidationError(
                f"Invalid expiration date: {self.expires_on!r}", field="expires_on"
            )

    def is_expired(self, today: date) -> bool:
        return self.expires_on is not None and today > self.expires_on

    def is_usable(self, today: date) -> bool:
        return not self.is_expired(today)

    def days_until_expiration(self, today: date) -> Optional[int]:
        if self.expires_on is None:
            return None
        return (self.expires_on - today).days

    @property
    def formatted(self) -> str:
        return f"{self.value[:5]}-{self.value[5:10]}-{self.value[10:]}"

    def __str__(self) -> str:
        return self.value
