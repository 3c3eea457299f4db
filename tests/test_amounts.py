"""
Tests for ledger amount helpers
"""

import pytest
from decimal import Decimal

from loan_ledger.amounts import to_amount, to_money, to_rate, parse_amount, format_amount


class TestToAmount:
    """Test conversion to whole-unit Decimals"""

    def test_rounds_half_up(self):
        assert to_amount(Decimal('9833.5')) == Decimal('9834')
        assert to_amount(Decimal('9833.49')) == Decimal('9833')
        assert to_amount("2.5") == Decimal('3')

    def test_accepts_int_and_string(self):
        assert to_amount(100000) == Decimal('100000')
        assert to_amount("118000") == Decimal('118000')

    def test_rejects_float(self):
        """Binary floats never enter the ledger"""
        with pytest.raises(TypeError):
            to_amount(9833.0)

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            to_amount("abc")

    def test_money_keeps_satang(self):
        assert to_money("9933.40") == Decimal('9933.40')
        assert to_money(9833) == Decimal('9833')

    @pytest.mark.parametrize("value", ["9833.405", Decimal('0.001'), "NaN"])
    def test_money_finer_than_satang_rejected(self, value):
        with pytest.raises(ValueError):
            to_money(value)

    def test_money_rejects_float(self):
        with pytest.raises(TypeError):
            to_money(9833.4)

    def test_rate_keeps_precision(self):
        assert to_rate("1.25") == Decimal('1.25')
        with pytest.raises(TypeError):
            to_rate(1.5)


class TestParseAmount:
    """Test parsing amounts as printed on slips"""

    def test_currency_symbol_and_thousands(self):
        assert parse_amount("฿9,833.00") == Decimal('9833')

    def test_spaces_and_code(self):
        assert parse_amount("THB 9 833") == Decimal('9833')

    def test_decimal_comma(self):
        assert parse_amount("9833,50") == Decimal('9833.50')

    def test_comma_thousands_only(self):
        assert parse_amount("118,000") == Decimal('118000')

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            parse_amount("")

    def test_no_digits_rejected(self):
        with pytest.raises(ValueError):
            parse_amount("THB")


def test_format_amount():
    assert format_amount(Decimal('118000')) == "THB 118,000"
    assert format_amount(Decimal('9833'), "USD") == "USD 9,833"
    assert format_amount(Decimal('9833.4')) == "THB 9,833.40"
