"""
Test suite for slip reconciliation
"""

import pytest
from decimal import Decimal
from datetime import date

from loan_ledger.schedules import PaymentScheduleEntry, ScheduleStatus
from loan_ledger.reconciliation import MatchReason, SlipData, match_slip


def entry(number, total, due, status=ScheduleStatus.PENDING):
    total = Decimal(total)
    return PaymentScheduleEntry(
        id=f"c_{number}", contract_id="c", installment_number=number, due_date=due,
        principal_amount=total - Decimal('1500'), interest_amount=Decimal('1500'),
        total_amount=total, status=status
    )


@pytest.fixture
def two_equal_entries():
    return [
        entry(2, '9833', date(2024, 3, 15)),
        entry(1, '9833', date(2024, 2, 15)),
    ]


class TestMatchSlip:
    """Test tolerance-band matching"""

    def test_ties_go_to_earliest_due_date(self, two_equal_entries):
        """Slip of 9,900 against two 9,833 installments settles the earlier one"""
        result = match_slip(Decimal('9900'), two_equal_entries)

        assert result.matched
        assert result.matched_entry_id == "c_1"
        assert result.reason == MatchReason.MATCHED_CLOSEST
        assert result.difference == Decimal('67')

    def test_exact_single_match(self):
        result = match_slip(9833, [entry(1, '9833', date(2024, 2, 15))])
        assert result.reason == MatchReason.MATCHED
        assert result.difference == Decimal('0')
        assert result.reason.is_match

    def test_closest_wins_over_earliest(self):
        entries = [entry(11, '9833', date(2024, 12, 15)), entry(12, '9837', date(2025, 1, 15))]
        result = match_slip(Decimal('9836'), entries)
        assert result.matched_entry_id == "c_12"

    def test_tolerance_is_inclusive(self):
        entries = [entry(1, '9833', date(2024, 2, 15))]
        assert match_slip(Decimal('9933'), entries).matched
        assert match_slip(Decimal('9733'), entries).matched

    def test_outside_tolerance(self):
        result = match_slip(Decimal('9934'), [entry(1, '9833', date(2024, 2, 15))])
        assert not result.matched
        assert result.entry is None
        assert result.reason == MatchReason.OUTSIDE_TOLERANCE
        assert "Manual review" in result.message

    def test_fractional_slip_just_outside_band(self):
        """9,933.40 is 100.40 away from 9,833 and must not auto-match"""
        entries = [entry(1, '9833', date(2024, 2, 15))]
        result = match_slip(Decimal('9933.40'), entries)
        assert result.reason == MatchReason.OUTSIDE_TOLERANCE

        result = match_slip(Decimal('9932.60'), entries)
        assert result.matched
        assert result.difference == Decimal('99.60')

    def test_custom_tolerance(self):
        entries = [entry(1, '9833', date(2024, 2, 15))]
        assert not match_slip(Decimal('9900'), entries, tolerance=50).matched
        assert match_slip(Decimal('9900'), entries, tolerance=Decimal('67')).matched

    def test_paid_entries_ignored(self):
        entries = [
            entry(1, '9833', date(2024, 2, 15), ScheduleStatus.PAID),
            entry(2, '9833', date(2024, 3, 15), ScheduleStatus.OVERDUE),
        ]
        result = match_slip(Decimal('9833'), entries)
        assert result.matched_entry_id == "c_2"
        assert result.reason == MatchReason.MATCHED

    def test_no_unpaid_installment(self):
        entries = [entry(1, '9833', date(2024, 2, 15), ScheduleStatus.PAID)]
        result = match_slip(Decimal('9833'), entries)
        assert result.reason == MatchReason.NO_UNPAID_INSTALLMENT
        assert match_slip(Decimal('9833'), []).reason == MatchReason.NO_UNPAID_INSTALLMENT

    @pytest.mark.parametrize("amount", [Decimal('0'), Decimal('-9833')])
    def test_invalid_amount(self, two_equal_entries, amount):
        result = match_slip(amount, two_equal_entries)
        assert result.reason == MatchReason.INVALID_AMOUNT
        assert not result.matched


def test_slip_data_round_trip():
    slip = SlipData(amount=Decimal('9900'), slip_date=date(2024, 2, 14), bank="KBANK",
                    transaction_ref="016045103921ATF04875")
    assert SlipData.from_dict(slip.to_dict()) == slip
