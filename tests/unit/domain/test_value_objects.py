# SPDX-License-Identifier: Apache-2.0
"""Unit tests for value objects."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from invoicepipe.domain.errors import CurrencyMismatchError, ValidationError
from invoicepipe.domain.value_objects import AuthorizationCode, Money, OrderNumber, TaxId


class TestMoney:
    def test_rounds_half_up_to_cents(self):
        assert Money(Decimal("10.005")).amount == Decimal("10.01")
        assert Money(Decimal("10.004")).amount == Decimal("10.00")
        assert Money(Decimal("-10.005")).amount == Decimal("-10.01")

    def test_from_float_avoids_binary_artefacts(self):
        assert Money.from_float(0.1 + 0.2).amount == Decimal("0.30")
        assert Money.from_float(1.005).amount == Decimal("1.01")

    def test_currency_is_normalized_and_validated(self):
        assert Money.of("1", "usd").currency == "USD"
        with pytest.raises(ValidationError):
            Money.of("1", "US")
        with pytest.raises(ValidationError):
            Money.of("1", "U5D")

    @pytest.mark.parametrize("bad", ["abc", "NaN", "Infinity", None, True])
    def test_rejects_non_numeric_amounts(self, bad):
        with pytest.raises(ValidationError):
            Money.of(bad)

    def test_arithmetic(self):
        a = Money.of("100.50")
        b = Money.of("0.25")
        assert (a + b).amount == Decimal("100.75")
        assert (a - b).amount == Decimal("100.25")
        assert (a * 2).amount == Decimal("201.00")
        assert (2 * a).amount == Decimal("201.00")
        assert (a / 3).amount == Decimal("33.50")
        assert (-a).amount == Decimal("-100.50")
        assert abs(Money.of("-3")).amount == Decimal("3.00")

    @pytest.mark.parametrize(
        "a, b",
        [
            ("100.50", "0.25"),
            ("0.01", "999999999.99"),
            ("-250.75", "250.75"),
            ("0", "-0.01"),
            ("1234.56", "1234.56"),
        ],
    )
    def test_adding_then_subtracting_restores_the_amount(self, a, b):
        a, b = Money.of(a), Money.of(b)
        assert a.add(b).subtract(b) == a
        assert a.subtract(b).add(b) == a

    def test_divide_by_zero_is_rejected(self):
        with pytest.raises(ValidationError):
            Money.of("10").divide(0)

    def test_percentage_and_conversion(self):
        assert Money.of("200").percentage(21).amount == Decimal("42.00")
        converted = Money.of("10", "USD").convert_to("ARS", "850.5")
        assert converted == Money.of("8505.00", "ARS")
        with pytest.raises(ValidationError):
            Money.of("10").convert_to("USD", 0)

    def test_currency_mismatch_raises(self):
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "ARS") + Money.of("1", "USD")
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "ARS") < Money.of("1", "USD")

    def test_comparisons_and_predicates(self):
        assert Money.of("1") < Money.of("2") <= Money.of("2")
        assert Money.of("3").compare_to(Money.of("2")) == 1
        assert Money.zero().is_zero()
        assert Money.of("0.01").is_positive()
        assert Money.of("-0.01").is_negative()
        assert Money.of("100.00").is_close_to(Money.of("100.01"))
        assert not Money.of("100.00").is_close_to(Money.of("100.02"))

    def test_aggregates(self):
        values = [Money.of("3"), Money.of("1"), Money.of("2")]
        assert Money.sum(values).amount == Decimal("6.00")
        assert Money.min(values).amount == Decimal("1.00")
        assert Money.max(values).amount == Decimal("3.00")
        with pytest.raises(ValidationError):
            Money.sum([])

    def test_dict_and_string_forms(self):
        money = Money.of("12.3", "ARS")
        assert money.to_dict() == {"amount": "12.30", "currency": "ARS"}
        assert Money.from_dict(money.to_dict()) == money
        assert str(money) == "12.30 ARS"


class TestOrderNumber:
    def test_trims_and_accepts_allowed_characters(self):
        assert OrderNumber("  ABC_123-x ").value == "ABC_123-x"

    @pytest.mark.parametrize("bad", ["", "   ", "has space", "semi;colon", "x" * 256])
    def test_rejects_invalid(self, bad):
        with pytest.raises(ValidationError):
            OrderNumber(bad)

    def test_truncated_form(self):
        long_number = "22612345678901234567890"
        assert OrderNumber(long_number).truncated == "22612345...34567890"
        assert OrderNumber("SHORT").truncated == "SHORT"

    def test_is_numeric(self):
        assert OrderNumber("123456").is_numeric
        assert not OrderNumber("A123").is_numeric


VALID_TAX_IDS = [
    "20123456786",
    "20172543597",
    "30712345671",
    "33693450239",
    "20000000019",
    "20000000060",
]


class TestTaxId:
    @pytest.mark.parametrize("value", VALID_TAX_IDS)
    def test_accepts_valid_checksums(self, value):
        assert TaxId(value).value == value
        assert TaxId.is_valid(value)

    def test_strips_separators_and_formats(self):
        tax_id = TaxId("20-12345678-6")
        assert tax_id.value == "20123456786"
        assert tax_id.formatted == "20-12345678-6"
        assert str(tax_id) == "20-12345678-6"

    def test_check_digit_special_remainders(self):
        # remainder 0 maps to 0 and remainder 1 maps to 9
        assert TaxId.check_digit_for("2000000006") == 0
        assert TaxId.check_digit_for("2000000001") == 9

    # None of these end in 9, the only check digit two remainders share, so
    # changing any single digit must break the checksum.
    @pytest.mark.parametrize("value", ["20123456786", "20172543597", "30712345671", "20000000060"])
    @pytest.mark.parametrize("position", range(11))
    def test_any_single_digit_change_fails(self, value, position):
        for digit in "0123456789":
            if digit == value[position]:
                continue
            mutated = value[:position] + digit + value[position + 1 :]
            assert not TaxId.is_valid(mutated), mutated

    @pytest.mark.parametrize("bad", ["2012345678", "201234567860", "2012345678X", ""])
    def test_rejects_wrong_shape(self, bad):
        with pytest.raises(ValidationError):
            TaxId(bad)

    def test_kind(self):
        assert TaxId("20123456786").is_individual
        assert TaxId("30712345671").is_company
        assert TaxId("33693450239").kind == "company"


class TestAuthorizationCode:
    def test_pads_to_fourteen_digits(self):
        assert AuthorizationCode("123").value == "00000000000123"
        assert str(AuthorizationCode("74123456789012")) == "74123456789012"

    @pytest.mark.parametrize("bad", ["", "ABC", "123456789012345", "12.3"])
    def test_rejects_invalid(self, bad):
        with pytest.raises(ValidationError):
            AuthorizationCode(bad)

    def test_expiry_is_relative_to_today(self):
        code = AuthorizationCode("74123456789012", expires_on=date(2024, 3, 25))
        assert not code.is_expired(date(2024, 3, 25))
        assert code.is_expired(date(2024, 3, 26))
        assert code.is_usable(date(2024, 3, 20))
        assert code.days_until_expiration(date(2024, 3, 20)) == 5

    def test_without_expiry_never_expires(self):
        code = AuthorizationCode("1")
        assert not code.is_expired(date(2099, 1, 1))
        assert code.days_until_expiration(date(2024, 1, 1)) is None

    def test_formatted(self):
        assert AuthorizationCode("74123456789012").formatted == "74123-45678-9012"
