"""
Slip Reconciliation Module

Matches the amount read off a transfer slip to the installment it most likely
settles. A slip that fits no installment is not an error: it is recorded for
manual staff review.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Iterable, List, Optional
from enum import Enum

from .amounts import AmountLike, to_money
from .schedules import PaymentScheduleEntry

DEFAULT_TOLERANCE = Decimal('100')


class MatchReason(Enum):
    """Why a slip did or did not auto-match"""
    MATCHED = "matched"                              # Exactly one installment within tolerance
    MATCHED_CLOSEST = "matched_closest"              # Several within tolerance, closest chosen
    NO_UNPAID_INSTALLMENT = "no_unpaid_installment"  # Nothing left to pay
    OUTSIDE_TOLERANCE = "outside_tolerance"          # No installment close enough
    INVALID_AMOUNT = "invalid_amount"                # Zero or negative slip amount

    @property
    def is_match(self) -> bool:
        return self in (MatchReason.MATCHED, MatchReason.MATCHED_CLOSEST)


@dataclass(frozen=True)
class SlipData:
    """Fields extracted from a transfer slip by the OCR provider"""
    amount: Decimal
    slip_date: Optional[date] = None
    bank: Optional[str] = None
    transaction_ref: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'amount': str(self.amount),
            'slip_date': self.slip_date.isoformat() if self.slip_date else None,
            'bank': self.bank,
            'transaction_ref': self.transaction_ref
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SlipData':
        return cls(
            amount=Decimal(data['amount']),
            slip_date=date.fromisoformat(data['slip_date']) if data.get('slip_date') else None,
            bank=data.get('bank'),
            transaction_ref=data.get('transaction_ref')
        )


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of matching a slip against a schedule"""
    reason: MatchReason
    entry: Optional[PaymentScheduleEntry] = None
    difference: Optional[Decimal] = None
    candidates: List[str] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.entry is not None

    @property
    def matched_entry_id(self) -> Optional[str]:
        return self.entry.id if self.entry else None

    @property
    def message(self) -> str:
        if self.entry is not None:
            return f"Slip matched to installment {self.entry.installment_number}"
        if self.reason == MatchReason.NO_UNPAID_INSTALLMENT:
            return "No unpaid installment to match. Manual review required."
        if self.reason == MatchReason.INVALID_AMOUNT:
            return "Slip amount is not positive. Manual review required."
        return "Slip could not be matched within tolerance. Manual review required."


def match_slip(slip_amount: AmountLike, schedules: Iterable[PaymentScheduleEntry],
               tolerance: AmountLike = DEFAULT_TOLERANCE) -> ReconciliationResult:
    """
    Match a slip amount to one unpaid installment.

    Unpaid installments are considered oldest first. Those within
    ``tolerance`` of the slip amount are candidates; a single candidate
    matches outright, several resolve to the smallest difference with ties
    going to the earliest due date.

    Args:
        slip_amount: Amount read from the slip
        schedules: The contract's installments (paid ones are ignored)
        tolerance: Allowed absolute difference, inclusive

    Returns:
        ReconciliationResult; ``entry`` is None when manual review is needed
    """
    slip_amount = to_money(slip_amount)
    tolerance = to_money(tolerance)

    unpaid = sorted(
        (entry for entry in schedules if not entry.is_paid),
        key=lambda entry: (entry.due_date, entry.installment_number)
    )
    if not unpaid:
        return ReconciliationResult(reason=MatchReason.NO_UNPAID_INSTALLMENT)

    if slip_amount <= 0:
        return ReconciliationResult(reason=MatchReason.INVALID_AMOUNT)

    candidates = [
        entry for entry in unpaid
        if abs(entry.total_amount - slip_amount) <= tolerance
    ]
    if not candidates:
        return ReconciliationResult(reason=MatchReason.OUTSIDE_TOLERANCE)

    # min() keeps the first of equal differences, i.e. the earliest due date
    best = min(candidates, key=lambda entry: abs(entry.total_amount - slip_amount))
    return ReconciliationResult(
        reason=MatchReason.MATCHED if len(candidates) == 1 else MatchReason.MATCHED_CLOSEST,
        entry=best,
        difference=abs(best.total_amount - slip_amount),
        candidates=[entry.id for entry in candidates]
    )
