"""
Contract Lifecycle Module

Two small state machines: the contract (ACTIVE, COMPLETED, DEFAULT) and each
installment (PENDING, OVERDUE, PAID). Decisions are pure; persisting the new
state is the caller's job.
"""

from decimal import Decimal
from datetime import datetime, date
from enum import Enum

from .amounts import AmountLike, to_money
from .schedules import PaymentScheduleEntry, ScheduleStatus

DEFAULT_AFTER_DAYS = 90


class ContractStatus(Enum):
    """Contract lifecycle states"""
    ACTIVE = "ACTIVE"          # In repayment
    COMPLETED = "COMPLETED"    # Fully paid (terminal)
    DEFAULT = "DEFAULT"        # Overdue beyond the default threshold (terminal)

    @property
    def is_terminal(self) -> bool:
        return self != ContractStatus.ACTIVE


class TransitionTrigger(Enum):
    """What prompted a status evaluation"""
    DAILY_BATCH = "daily_batch"
    PAYMENT_VERIFICATION = "payment_verification"


# Allowed installment moves; PAID has none
ENTRY_TRANSITIONS = {
    ScheduleStatus.PENDING: {ScheduleStatus.OVERDUE, ScheduleStatus.PAID},
    ScheduleStatus.OVERDUE: {ScheduleStatus.PAID},
    ScheduleStatus.PAID: set(),
}


def next_contract_status(current: ContractStatus, outstanding_balance: AmountLike,
                         days_overdue: int, trigger: TransitionTrigger,
                         default_after_days: int = DEFAULT_AFTER_DAYS) -> ContractStatus:
    """
    Decide a contract's next status.

    ACTIVE becomes COMPLETED as soon as nothing is outstanding, whichever
    flow asks. ACTIVE becomes DEFAULT only from the daily batch, once the
    oldest unpaid installment is more than ``default_after_days`` old.
    Completion takes precedence. COMPLETED and DEFAULT never change.
    """
    if current.is_terminal:
        return current

    if to_money(outstanding_balance) <= 0:
        return ContractStatus.COMPLETED

    if trigger == TransitionTrigger.DAILY_BATCH and days_overdue > default_after_days:
        return ContractStatus.DEFAULT

    return ContractStatus.ACTIVE


def can_transition(current: ScheduleStatus, target: ScheduleStatus) -> bool:
    """Whether an installment may move from ``current`` to ``target``"""
    return target in ENTRY_TRANSITIONS[current]


def should_mark_overdue(entry: PaymentScheduleEntry, today: date) -> bool:
    """PENDING installments become OVERDUE the day after their due date"""
    return entry.status == ScheduleStatus.PENDING and entry.due_date < today


def mark_overdue(entry: PaymentScheduleEntry, today: date) -> bool:
    """
    Move a PENDING installment to OVERDUE if its due date has passed.

    Returns:
        True if the entry changed
    """
    if not should_mark_overdue(entry, today):
        return False
    entry.status = ScheduleStatus.OVERDUE
    return True


def mark_paid(entry: PaymentScheduleEntry, paid_amount: Decimal, paid_at: datetime) -> None:
    """
    Settle an installment with a verified payment.

    Raises:
        ValueError: If the installment is already PAID
    """
    if not can_transition(entry.status, ScheduleStatus.PAID):
        raise ValueError(
            f"Installment {entry.installment_number} of contract {entry.contract_id} "
            f"cannot move from {entry.status.value} to PAID"
        )
    entry.status = ScheduleStatus.PAID
    entry.paid_amount = to_money(paid_amount)
    entry.paid_at = paid_at
