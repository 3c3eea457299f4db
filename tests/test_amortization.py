"""
Test suite for amortization module

Tests flat-rate totals, installment rounding and due date arithmetic. The
installments must always add back up to the total due exactly.
"""

import pytest
from decimal import Decimal
from datetime import date

from loan_ledger.amortization import (
    validate_terms, calculate_total_interest, calculate_total_due,
    calculate_monthly_payment, calculate_final_installment, add_months,
    calculate_due_date, calculate_end_date, quote_loan
)


class TestFlatRateTotals:
    """Test total interest and total due"""

    def test_reference_loan(self):
        """100,000 at 1.5% per month over 12 months"""
        assert calculate_total_interest(100000, "1.5", 12) == Decimal('18000')
        assert calculate_total_due(100000, "1.5", 12) == Decimal('118000')
        assert calculate_monthly_payment(100000, "1.5", 12) == Decimal('9833')
        assert calculate_final_installment(100000, "1.5", 12) == Decimal('9837')

    def test_interest_rounds_half_up(self):
        # 15,050 x 1% x 3 = 451.5
        assert calculate_total_interest(15050, "1", 3) == Decimal('452')

    def test_single_installment(self):
        assert calculate_monthly_payment(50000, "2", 1) == Decimal('51000')
        assert calculate_final_installment(50000, "2", 1) == Decimal('51000')

    @pytest.mark.parametrize("principal,rate,term", [
        (100000, "1.5", 12),
        (33333, "0.7", 7),
        (250000, "3.25", 24),
        (10000, "10", 60),
        (999999, "0.1", 13),
    ])
    def test_installments_sum_to_total_due(self, principal, rate, term):
        total_due = calculate_total_due(principal, rate, term)
        monthly = calculate_monthly_payment(principal, rate, term)
        final = calculate_final_installment(principal, rate, term)
        assert monthly * (term - 1) + final == total_due
        assert final > 0


class TestValidation:
    """Test rejection of unusable terms"""

    @pytest.mark.parametrize("principal,rate,term,day", [
        (Decimal('0'), Decimal('1.5'), 12, 15),
        (Decimal('-100'), Decimal('1.5'), 12, 15),
        (Decimal('100000'), Decimal('0'), 12, 15),
        (Decimal('100000'), Decimal('1.5'), 0, 15),
        (Decimal('100000'), Decimal('1.5'), 12, 0),
        (Decimal('100000'), Decimal('1.5'), 12, 29),
    ])
    def test_invalid_terms(self, principal, rate, term, day):
        with pytest.raises(ValueError):
            validate_terms(principal, rate, term, day)

    def test_float_principal_rejected(self):
        with pytest.raises(TypeError):
            quote_loan(100000.0, "1.5", 12, 15, date(2024, 1, 15))

    def test_total_too_small_to_split(self):
        """9 units over 6 installments rounds each up to 2, leaving a negative last one"""
        with pytest.raises(ValueError):
            quote_loan(9, "0.5", 6, 1, date(2024, 1, 1))


class TestDueDates:
    """Test calendar arithmetic for due dates"""

    def test_add_months_clamps_to_month_end(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
        assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)

    def test_add_months_with_day(self):
        assert add_months(date(2024, 1, 20), 1, 5) == date(2024, 2, 5)
        assert add_months(date(2024, 1, 20), 1, None) == date(2024, 2, 20)

    def test_first_due_date_is_one_month_after_start(self):
        assert calculate_due_date(date(2024, 1, 15), 1, 5) == date(2024, 2, 5)

    def test_due_date_crosses_year(self):
        assert calculate_due_date(date(2024, 1, 15), 12, 5) == date(2025, 1, 5)

    def test_installment_numbers_start_at_one(self):
        with pytest.raises(ValueError):
            calculate_due_date(date(2024, 1, 15), 0, 5)

    def test_end_date_is_last_due_date(self):
        assert calculate_end_date(date(2024, 1, 15), 12, 15) == date(2025, 1, 15)


class TestQuote:
    """Test the one-pass quote"""

    def test_quote_fields(self):
        quote = quote_loan(100000, "1.5", 12, 15, date(2024, 1, 15))

        assert quote.principal == Decimal('100000')
        assert quote.monthly_rate == Decimal('1.5')
        assert quote.total_interest == Decimal('18000')
        assert quote.total_due == Decimal('118000')
        assert quote.monthly_payment == Decimal('9833')
        assert quote.final_installment == Decimal('9837')
        assert quote.first_due_date == date(2024, 2, 15)
        assert quote.end_date == date(2025, 1, 15)

    def test_quote_is_deterministic(self):
        first = quote_loan(75000, "2.1", 9, 28, date(2024, 3, 31))
        second = quote_loan(75000, "2.1", 9, 28, date(2024, 3, 31))
        assert first == second
