"""
Test suite for balance tracking

Schedule used throughout: 12 installments due on the 15th from 2024-02-15,
eleven of 9,833 and a final 9,837 (total due 118,000).
"""

import logging
import pytest
from decimal import Decimal
from datetime import date, datetime, timezone

from loan_ledger.schedules import ScheduleStatus, build_schedule_params, generate_schedule
from loan_ledger.lifecycle import mark_paid
from loan_ledger.balances import (
    schedule_total, outstanding_balance, days_overdue, overdue_amount,
    amount_due_to_date, next_payment_due, check_schedule_integrity, recompute
)


PAID_AT = datetime(2024, 2, 26, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def schedule():
    return generate_schedule(build_schedule_params("c-1", 100000, "1.5", 12, 15, date(2024, 1, 15)))


class TestOutstandingBalance:
    """Test outstanding = max(0, total - paid)"""

    def test_nothing_paid(self, schedule):
        assert schedule_total(schedule) == Decimal('118000')
        assert outstanding_balance(schedule, 0) == Decimal('118000')

    def test_partly_paid(self, schedule):
        assert outstanding_balance(schedule, Decimal('9833')) == Decimal('108167')

    def test_fully_paid(self, schedule):
        assert outstanding_balance(schedule, Decimal('118000')) == Decimal('0')

    def test_overpayment_clamped_and_logged(self, schedule, caplog):
        """Collecting more than the schedule asks for never yields a negative balance"""
        with caplog.at_level(logging.WARNING, logger="ledger.balances"):
            assert outstanding_balance(schedule, Decimal('120000')) == Decimal('0')
        assert any("clamping" in record.getMessage() for record in caplog.records)

    def test_negative_total_paid_rejected(self, schedule):
        with pytest.raises(ValueError):
            outstanding_balance(schedule, Decimal('-1'))


class TestDaysOverdue:
    """Test ageing of the earliest unpaid installment"""

    def test_not_yet_due(self, schedule):
        assert days_overdue(schedule, date(2024, 2, 1)) == 0

    def test_due_today_is_not_overdue(self, schedule):
        assert days_overdue(schedule, date(2024, 2, 15)) == 0

    def test_ten_days_overdue_then_paid(self, schedule):
        """Paying the late installment brings overdue days back to zero"""
        today = date(2024, 2, 25)
        assert days_overdue(schedule, today) == 10

        mark_paid(schedule[0], Decimal('9833'), PAID_AT)
        assert days_overdue(schedule, today) == 0

    def test_counts_from_oldest_miss_only(self, schedule):
        # Feb 15 -> Apr 20 2024 is 65 days; later misses do not add up
        assert days_overdue(schedule, date(2024, 4, 20)) == 65

    def test_fully_paid_schedule(self, schedule):
        for entry in schedule:
            mark_paid(entry, entry.total_amount, PAID_AT)
        assert days_overdue(schedule, date(2030, 1, 1)) == 0


class TestOtherFigures:
    """Test overdue amount, amount due to date and next payment"""

    def test_overdue_amount(self, schedule):
        assert overdue_amount(schedule, date(2024, 2, 15)) == Decimal('0')
        assert overdue_amount(schedule, date(2024, 4, 20)) == Decimal('29499')

    def test_overdue_amount_skips_paid(self, schedule):
        mark_paid(schedule[0], Decimal('9833'), PAID_AT)
        assert overdue_amount(schedule, date(2024, 4, 20)) == Decimal('19666')

    def test_amount_due_to_date(self, schedule):
        assert amount_due_to_date(schedule, Decimal('9833'), date(2024, 3, 15)) == Decimal('9833')
        assert amount_due_to_date(schedule, Decimal('50000'), date(2024, 3, 15)) == Decimal('0')

    def test_next_payment_due(self, schedule):
        assert next_payment_due(schedule).installment_number == 1
        mark_paid(schedule[0], Decimal('9833'), PAID_AT)
        assert next_payment_due(schedule).installment_number == 2

    def test_next_payment_due_none_when_settled(self, schedule):
        for entry in schedule:
            entry.status = ScheduleStatus.PAID
        assert next_payment_due(schedule) is None


class TestIntegrity:
    """Test schedule consistency checks"""

    def test_consistent_schedule(self, schedule):
        assert check_schedule_integrity(schedule, Decimal('118000'))

    def test_total_mismatch_logged(self, schedule, caplog):
        with caplog.at_level(logging.ERROR, logger="ledger.balances"):
            assert not check_schedule_integrity(schedule, Decimal('117000'))
        assert caplog.records

    def test_gap_in_numbering(self, schedule):
        del schedule[4]
        assert not check_schedule_integrity(schedule, schedule_total(schedule))


class TestRecompute:
    """Test the combined snapshot"""

    def test_snapshot(self, schedule):
        snapshot = recompute(schedule, Decimal('0'), date(2024, 2, 25))

        assert snapshot.total_due == Decimal('118000')
        assert snapshot.total_paid == Decimal('0')
        assert snapshot.outstanding_balance == Decimal('118000')
        assert snapshot.days_overdue == 10
        assert snapshot.overdue_amount == Decimal('9833')
        assert snapshot.next_due_date == date(2024, 2, 15)
        assert snapshot.as_of == date(2024, 2, 25)

    def test_snapshot_after_payment(self, schedule):
        mark_paid(schedule[0], Decimal('9833'), PAID_AT)
        snapshot = recompute(schedule, Decimal('9833'), date(2024, 2, 25))

        assert snapshot.outstanding_balance == Decimal('108167')
        assert snapshot.days_overdue == 0
        assert snapshot.next_due_date == date(2024, 3, 15)
