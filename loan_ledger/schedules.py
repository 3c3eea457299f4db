"""
Payment Schedule Module

Builds the fixed set of installments for a contract at approval time. The
schedule is generated once, in full, and never regenerated; later changes are
limited to status transitions (see lifecycle).
"""

from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime, date
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from enum import Enum

from .amounts import UNIT, ZERO, AmountLike, to_amount, to_rate
from .amortization import quote_loan, calculate_due_date


class ScheduleStatus(Enum):
    """Installment states"""
    PENDING = "PENDING"    # Not yet paid, not yet past due
    OVERDUE = "OVERDUE"    # Not yet paid, due date has passed
    PAID = "PAID"          # Settled by a verified payment


@dataclass
class PaymentScheduleEntry:
    """Single installment of a contract's repayment plan"""
    id: str
    contract_id: str
    installment_number: int
    due_date: date
    principal_amount: Decimal
    interest_amount: Decimal
    total_amount: Decimal
    status: ScheduleStatus = ScheduleStatus.PENDING
    paid_amount: Decimal = ZERO
    paid_at: Optional[datetime] = None

    def __post_init__(self):
        if self.principal_amount + self.interest_amount != self.total_amount:
            raise ValueError(
                f"Installment {self.installment_number}: total {self.total_amount} does not equal "
                f"principal {self.principal_amount} + interest {self.interest_amount}"
            )

    @property
    def is_paid(self) -> bool:
        return self.status == ScheduleStatus.PAID

    @property
    def remaining_amount(self) -> Decimal:
        """Unpaid part of this installment"""
        if self.is_paid:
            return ZERO
        return max(ZERO, self.total_amount - self.paid_amount)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'contract_id': self.contract_id,
            'installment_number': self.installment_number,
            'due_date': self.due_date.isoformat(),
            'principal_amount': str(self.principal_amount),
            'interest_amount': str(self.interest_amount),
            'total_amount': str(self.total_amount),
            'status': self.status.value,
            'paid_amount': str(self.paid_amount),
            'paid_at': self.paid_at.isoformat() if self.paid_at else None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PaymentScheduleEntry':
        return cls(
            id=data['id'],
            contract_id=data['contract_id'],
            installment_number=data['installment_number'],
            due_date=date.fromisoformat(data['due_date']),
            principal_amount=Decimal(data['principal_amount']),
            interest_amount=Decimal(data['interest_amount']),
            total_amount=Decimal(data['total_amount']),
            status=ScheduleStatus(data['status']),
            paid_amount=Decimal(data.get('paid_amount') or '0'),
            paid_at=datetime.fromisoformat(data['paid_at']) if data.get('paid_at') else None
        )


@dataclass(frozen=True)
class ScheduleGenerationParams:
    """Inputs for generating a contract's schedule"""
    contract_id: str
    principal: Decimal
    monthly_rate: Decimal
    term_months: int
    payment_day: int
    start_date: date


def schedule_entry_id(contract_id: str, installment_number: int) -> str:
    """Stable id for an installment row"""
    return f"{contract_id}_{installment_number}"


def generate_schedule(params: ScheduleGenerationParams) -> List[PaymentScheduleEntry]:
    """
    Generate the full installment list for a contract.

    The first installment falls due one month after the start date, on the
    payment day. Every regular installment totals the monthly payment and
    carries the straight-line principal share, the rest being interest; the
    final installment takes whatever remains of both so the totals reconcile
    exactly.

    When rounding leaves too little interest for the straight-line split (or
    too little principal), the regular principal total is moved just far
    enough to keep every portion non-negative and spread across the regular
    installments by cumulative rounding, so they differ by at most one unit.

    Args:
        params: Contract terms

    Returns:
        Exactly ``term_months`` entries, all PENDING and unpaid

    Raises:
        ValueError: If the terms are invalid
    """
    quote = quote_loan(
        params.principal, params.monthly_rate, params.term_months,
        params.payment_day, params.start_date
    )
    term = quote.term_months
    regular_count = term - 1
    regular_total = quote.monthly_payment * regular_count
    straight_line = _round_unit(quote.principal / Decimal(term))

    # quote_loan guarantees regular_total < total_due, so this range is never empty
    regular_principal_total = max(
        regular_total - quote.total_interest,
        min(straight_line * regular_count, quote.principal, regular_total)
    )

    schedule = []
    for number in range(1, term + 1):
        if number == term:
            principal_amount = quote.principal - regular_principal_total
            interest_amount = quote.total_interest - (regular_total - regular_principal_total)
        else:
            principal_amount = (
                _round_unit(regular_principal_total * number / regular_count)
                - _round_unit(regular_principal_total * (number - 1) / regular_count)
            )
            interest_amount = quote.monthly_payment - principal_amount

        schedule.append(PaymentScheduleEntry(
            id=schedule_entry_id(params.contract_id, number),
            contract_id=params.contract_id,
            installment_number=number,
            due_date=calculate_due_date(quote.start_date, number, quote.payment_day),
            principal_amount=principal_amount,
            interest_amount=interest_amount,
            total_amount=principal_amount + interest_amount
        ))

    return schedule


def _round_unit(value: Decimal) -> Decimal:
    return value.quantize(UNIT, rounding=ROUND_HALF_UP)


def build_schedule_params(contract_id: str, principal: AmountLike, monthly_rate: AmountLike,
                          term_months: int, payment_day: int,
                          start_date: date) -> ScheduleGenerationParams:
    """Normalize raw inputs into ScheduleGenerationParams"""
    return ScheduleGenerationParams(
        contract_id=contract_id,
        principal=to_amount(principal),
        monthly_rate=to_rate(monthly_rate),
        term_months=term_months,
        payment_day=payment_day,
        start_date=start_date
    )


def sort_schedule(entries: List[PaymentScheduleEntry]) -> List[PaymentScheduleEntry]:
    """Entries in installment order"""
    return sorted(entries, key=lambda entry: entry.installment_number)
