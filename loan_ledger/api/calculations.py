"""
Stateless calculation endpoints
"""

from fastapi import APIRouter, Depends, HTTPException

from .schemas import QuoteRequest, RecomputeRequest, SlipMatchRequest, reconciliation_to_response
from ..amortization import quote_loan
from ..schedules import build_schedule_params, generate_schedule
from ..balances import recompute
from ..lifecycle import next_contract_status
from ..reconciliation import match_slip
from .system import LedgerSystem, get_ledger_system


router = APIRouter()


@router.post("/quotes")
def create_quote(request: QuoteRequest, system: LedgerSystem = Depends(get_ledger_system)):
    """Repayment figures and the schedule a loan would get, without saving anything"""
    start_date = request.start_date or system.contract_manager.today()
    try:
        quote = quote_loan(request.principal, request.interest_rate, request.term_months,
                           request.payment_day, start_date)
        schedule = generate_schedule(build_schedule_params(
            "quote", quote.principal, quote.monthly_rate,
            quote.term_months, quote.payment_day, quote.start_date
        ))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "principal": str(quote.principal),
        "interest_rate": str(quote.monthly_rate),
        "term_months": quote.term_months,
        "total_interest": str(quote.total_interest),
        "total_due": str(quote.total_due),
        "monthly_payment": str(quote.monthly_payment),
        "final_installment": str(quote.final_installment),
        "first_due_date": quote.first_due_date.isoformat(),
        "end_date": quote.end_date.isoformat(),
        "schedule": [
            {
                "installment_number": entry.installment_number,
                "due_date": entry.due_date.isoformat(),
                "principal_amount": str(entry.principal_amount),
                "interest_amount": str(entry.interest_amount),
                "total_amount": str(entry.total_amount)
            }
            for entry in schedule
        ]
    }


@router.post("/recompute")
def recompute_balances(request: RecomputeRequest, system: LedgerSystem = Depends(get_ledger_system)):
    """Outstanding balance, overdue days and next status for a supplied schedule"""
    today = request.today or system.contract_manager.today()
    try:
        schedule = [entry.to_entry(request.contract_id) for entry in request.schedules]
        snapshot = recompute(schedule, request.total_paid, today)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    status = next_contract_status(
        request.current_status, snapshot.outstanding_balance, snapshot.days_overdue,
        request.trigger, default_after_days=system.config.default_after_days
    )
    return {
        "total_due": str(snapshot.total_due),
        "total_paid": str(snapshot.total_paid),
        "outstanding_balance": str(snapshot.outstanding_balance),
        "days_overdue": snapshot.days_overdue,
        "overdue_amount": str(snapshot.overdue_amount),
        "next_due_date": snapshot.next_due_date.isoformat() if snapshot.next_due_date else None,
        "next_contract_status": status.value
    }


@router.post("/slips/match")
def match_slip_amount(request: SlipMatchRequest, system: LedgerSystem = Depends(get_ledger_system)):
    """Which unpaid installment a slip amount settles, if any"""
    tolerance = request.tolerance if request.tolerance is not None else system.config.slip_match_tolerance
    try:
        entries = [entry.to_entry("adhoc") for entry in request.unpaid_entries]
        result = match_slip(request.slip_amount, entries, tolerance=tolerance)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return reconciliation_to_response(result)
