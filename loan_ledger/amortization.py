"""
Amortization Module

Flat-rate amortization: interest is charged on the original principal for the
full term ("% per month flat"), spread evenly across fixed monthly
installments. The final installment absorbs the rounding remainder so the
installments sum to the total due exactly.
"""

from decimal import Decimal, ROUND_HALF_UP
from datetime import date
from dataclasses import dataclass
from typing import Optional
import calendar

from .amounts import AmountLike, UNIT, to_amount, to_rate

MAX_PAYMENT_DAY = 28
HUNDRED = Decimal('100')


@dataclass(frozen=True)
class LoanQuote:
    """Repayment figures for an approved loan"""
    principal: Decimal
    monthly_rate: Decimal       # Percent per month, e.g. Decimal('1.5')
    term_months: int
    payment_day: int
    start_date: date
    total_interest: Decimal
    total_due: Decimal
    monthly_payment: Decimal
    final_installment: Decimal
    first_due_date: date
    end_date: date


def validate_terms(principal: Decimal, monthly_rate: Decimal, term_months: int,
                   payment_day: int = 1) -> None:
    """
    Reject loan terms the calculator cannot amortize.

    Raises:
        ValueError: For non-positive principal, rate or term, or a payment day
            outside 1-28
    """
    if principal <= 0:
        raise ValueError(f"Principal must be positive, got {principal}")
    if monthly_rate <= 0:
        raise ValueError(f"Interest rate must be positive, got {monthly_rate}")
    if isinstance(term_months, bool) or not isinstance(term_months, int) or term_months < 1:
        raise ValueError(f"Term must be at least 1 month, got {term_months}")
    if isinstance(payment_day, bool) or not isinstance(payment_day, int) \
            or not 1 <= payment_day <= MAX_PAYMENT_DAY:
        raise ValueError(f"Payment day must be between 1 and {MAX_PAYMENT_DAY}, got {payment_day}")


def calculate_total_interest(principal: AmountLike, monthly_rate: AmountLike,
                             term_months: int) -> Decimal:
    """principal x (rate / 100) x term, rounded to a whole unit"""
    principal = to_amount(principal)
    monthly_rate = to_rate(monthly_rate)
    validate_terms(principal, monthly_rate, term_months)
    interest = principal * (monthly_rate / HUNDRED) * Decimal(term_months)
    return interest.quantize(UNIT, rounding=ROUND_HALF_UP)


def calculate_total_due(principal: AmountLike, monthly_rate: AmountLike,
                        term_months: int) -> Decimal:
    """Principal plus flat interest for the whole term"""
    return to_amount(principal) + calculate_total_interest(principal, monthly_rate, term_months)


def calculate_monthly_payment(principal: AmountLike, monthly_rate: AmountLike,
                              term_months: int) -> Decimal:
    """Regular installment: total due / term, rounded to a whole unit"""
    total_due = calculate_total_due(principal, monthly_rate, term_months)
    return (total_due / Decimal(term_months)).quantize(UNIT, rounding=ROUND_HALF_UP)


def calculate_final_installment(principal: AmountLike, monthly_rate: AmountLike,
                                term_months: int) -> Decimal:
    """Last installment, absorbing whatever rounding left over"""
    total_due = calculate_total_due(principal, monthly_rate, term_months)
    monthly_payment = calculate_monthly_payment(principal, monthly_rate, term_months)
    return total_due - monthly_payment * (term_months - 1)


def add_months(start_date: date, months: int, day: Optional[int] = None) -> date:
    """
    Add calendar months to a date.

    The day of month is ``day`` when given, otherwise the start date's day;
    either way it is clamped to the last valid day of the target month.
    """
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    wanted_day = day if day is not None else start_date.day
    return date(year, month, min(wanted_day, calendar.monthrange(year, month)[1]))


def calculate_due_date(start_date: date, installment_number: int, payment_day: int) -> date:
    """Due date of the n-th installment: n months after start, on the payment day"""
    if installment_number < 1:
        raise ValueError(f"Installment numbers start at 1, got {installment_number}")
    return add_months(start_date, installment_number, payment_day)


def calculate_end_date(start_date: date, term_months: int, payment_day: int) -> date:
    """Due date of the last installment"""
    return calculate_due_date(start_date, term_months, payment_day)


def quote_loan(principal: AmountLike, monthly_rate: AmountLike, term_months: int,
               payment_day: int, start_date: date) -> LoanQuote:
    """
    Compute every repayment figure for a loan in one pass.

    Args:
        principal: Approved amount
        monthly_rate: Flat interest, percent per month
        term_months: Number of monthly installments
        payment_day: Day of month installments fall due (1-28)
        start_date: Disbursement date; the first installment is one month later

    Returns:
        LoanQuote

    Raises:
        ValueError: If any term is out of range
    """
    principal = to_amount(principal)
    monthly_rate = to_rate(monthly_rate)
    validate_terms(principal, monthly_rate, term_months, payment_day)

    total_interest = calculate_total_interest(principal, monthly_rate, term_months)
    total_due = principal + total_interest
    monthly_payment = (total_due / Decimal(term_months)).quantize(UNIT, rounding=ROUND_HALF_UP)
    final_installment = total_due - monthly_payment * (term_months - 1)
    if final_installment <= 0:
        raise ValueError(
            f"Total due {total_due} is too small to spread over {term_months} whole-unit installments"
        )

    return LoanQuote(
        principal=principal,
        monthly_rate=monthly_rate,
        term_months=term_months,
        payment_day=payment_day,
        start_date=start_date,
        total_interest=total_interest,
        total_due=total_due,
        monthly_payment=monthly_payment,
        final_installment=final_installment,
        first_due_date=calculate_due_date(start_date, 1, payment_day),
        end_date=calculate_end_date(start_date, term_months, payment_day)
    )
