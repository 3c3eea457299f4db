"""
Balance Tracking Module

Derives a contract's running figures from its schedule: outstanding balance,
days overdue, overdue amount and the next installment due. Totals are always
recomputed from the schedule rows rather than trusted from the stored
contract, so a contract can never drift from its own schedule.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Iterable, List, Optional
import logging

from .amounts import ZERO, AmountLike, to_amount, to_money
from .schedules import PaymentScheduleEntry

logger = logging.getLogger("ledger.balances")


@dataclass(frozen=True)
class BalanceSnapshot:
    """Recomputed figures for one contract as of a given day"""
    total_due: Decimal
    total_paid: Decimal
    outstanding_balance: Decimal
    days_overdue: int
    overdue_amount: Decimal
    next_due_date: Optional[date]
    as_of: date


def _unpaid(schedules: Iterable[PaymentScheduleEntry]) -> List[PaymentScheduleEntry]:
    """Unpaid entries, oldest obligation first"""
    return sorted(
        (entry for entry in schedules if not entry.is_paid),
        key=lambda entry: (entry.due_date, entry.installment_number)
    )


def schedule_total(schedules: Iterable[PaymentScheduleEntry]) -> Decimal:
    """Sum of every installment's total amount"""
    return sum((entry.total_amount for entry in schedules), ZERO)


def outstanding_balance(schedules: Iterable[PaymentScheduleEntry], total_paid: AmountLike) -> Decimal:
    """
    Outstanding balance = max(0, schedule total - total paid).

    A negative unclamped figure means more was collected than the schedule
    asks for; it is logged as a data-integrity warning and floored at zero.
    """
    schedules = list(schedules)
    total_paid = to_money(total_paid)
    if total_paid < 0:
        raise ValueError(f"Total paid cannot be negative, got {total_paid}")

    unclamped = schedule_total(schedules) - total_paid
    if unclamped < 0:
        contract_id = schedules[0].contract_id if schedules else None
        logger.warning(
            f"Total paid {total_paid} exceeds schedule total by {-unclamped} "
            f"for contract {contract_id}; clamping outstanding balance to 0"
        )
        return ZERO
    return unclamped


def days_overdue(schedules: Iterable[PaymentScheduleEntry], as_of: date) -> int:
    """
    Age in days of the oldest unpaid installment, or 0 when it is not yet due.

    Only the earliest unpaid installment counts: three missed months are
    overdue by the age of the first miss, not the sum.
    """
    unpaid = _unpaid(schedules)
    if not unpaid:
        return 0
    oldest = unpaid[0]
    if oldest.due_date < as_of:
        return (as_of - oldest.due_date).days
    return 0


def overdue_amount(schedules: Iterable[PaymentScheduleEntry], as_of: date) -> Decimal:
    """Unpaid remainder of every installment whose due date has passed"""
    return sum(
        (entry.remaining_amount for entry in _unpaid(schedules) if entry.due_date < as_of),
        ZERO
    )


def amount_due_to_date(schedules: Iterable[PaymentScheduleEntry], total_paid: AmountLike,
                       as_of: date) -> Decimal:
    """Installments falling due on or before ``as_of`` less what has been paid, floored at 0"""
    due = sum((entry.total_amount for entry in schedules if entry.due_date <= as_of), ZERO)
    return max(ZERO, due - to_money(total_paid))


def next_payment_due(schedules: Iterable[PaymentScheduleEntry]) -> Optional[PaymentScheduleEntry]:
    """Earliest unpaid installment, overdue or upcoming"""
    unpaid = _unpaid(schedules)
    return unpaid[0] if unpaid else None


def check_schedule_integrity(schedules: Iterable[PaymentScheduleEntry],
                             expected_total_due: AmountLike) -> bool:
    """
    Verify a stored schedule still matches its contract.

    Checks the total against the contract's total due and that installment
    numbers and due dates are contiguous and strictly increasing. Problems
    are logged at ERROR level; nothing is raised.
    """
    entries = sorted(schedules, key=lambda entry: entry.installment_number)
    expected_total_due = to_amount(expected_total_due)
    contract_id = entries[0].contract_id if entries else None
    ok = True

    total = schedule_total(entries)
    if total != expected_total_due:
        logger.error(
            f"Schedule total {total} does not match total due {expected_total_due} "
            f"for contract {contract_id}"
        )
        ok = False

    for position, entry in enumerate(entries, start=1):
        if entry.installment_number != position:
            logger.error(
                f"Contract {contract_id}: expected installment {position}, "
                f"found {entry.installment_number}"
            )
            ok = False
            break
        if position > 1 and entry.due_date <= entries[position - 2].due_date:
            logger.error(
                f"Contract {contract_id}: installment {position} is not due after its predecessor"
            )
            ok = False
            break

    return ok


def recompute(schedules: Iterable[PaymentScheduleEntry], total_paid: AmountLike,
              as_of: date) -> BalanceSnapshot:
    """
    Recompute all running figures for a contract.

    Args:
        schedules: The contract's installments
        total_paid: Cumulative verified payments
        as_of: Business date to evaluate against

    Returns:
        BalanceSnapshot
    """
    schedules = list(schedules)
    total_paid = to_money(total_paid)
    upcoming = next_payment_due(schedules)
    return BalanceSnapshot(
        total_due=schedule_total(schedules),
        total_paid=total_paid,
        outstanding_balance=outstanding_balance(schedules, total_paid),
        days_overdue=days_overdue(schedules, as_of),
        overdue_amount=overdue_amount(schedules, as_of),
        next_due_date=upcoming.due_date if upcoming else None,
        as_of=as_of
    )
