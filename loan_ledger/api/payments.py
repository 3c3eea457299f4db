"""
Payment endpoints: manual entries, transfer slips and staff verification
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, status

from .system import LedgerSystem, get_ledger_system, requires
from .schemas import (
    RecordPaymentRequest, SubmitSlipRequest, VerifyPaymentRequest,
    contract_to_response, payment_to_response, reconciliation_to_response
)
from ..capabilities import Capability, StaffRole
from ..contracts import VerificationStatus


router = APIRouter()


@router.post("/contracts/{contract_id}/payments", status_code=status.HTTP_201_CREATED)
def record_payment(
    contract_id: str,
    request: RecordPaymentRequest,
    system: LedgerSystem = Depends(get_ledger_system),
    role: StaffRole = Depends(requires(Capability.RECORD_PAYMENTS))
):
    """Record a payment claim for verification"""
    if not system.contract_manager.get_contract(contract_id):
        raise HTTPException(status_code=404, detail="Contract not found")
    try:
        payment = system.contract_manager.submit_payment(
            contract_id,
            request.amount,
            payment_date=request.payment_date,
            method=request.method,
            schedule_entry_id=request.schedule_entry_id,
            submitted_by=request.submitted_by or role.value
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return payment_to_response(payment)


@router.post("/contracts/{contract_id}/slips", status_code=status.HTTP_201_CREATED)
def submit_slip(
    contract_id: str,
    request: SubmitSlipRequest,
    system: LedgerSystem = Depends(get_ledger_system),
    role: StaffRole = Depends(requires(Capability.UPLOAD_SLIP))
):
    """Record a transfer slip and try to match it to an installment"""
    if not system.contract_manager.get_contract(contract_id):
        raise HTTPException(status_code=404, detail="Contract not found")
    try:
        payment, result = system.contract_manager.submit_slip(
            contract_id, request.slip.to_slip(), submitted_by=request.submitted_by or role.value
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "payment": payment_to_response(payment),
        "reconciliation": reconciliation_to_response(result)
    }


@router.get("/payments")
def list_payments(
    status: Optional[VerificationStatus] = None,
    contract_id: Optional[str] = None,
    system: LedgerSystem = Depends(get_ledger_system),
    role: StaffRole = Depends(requires(Capability.VERIFY_PAYMENTS))
):
    """Payments awaiting or past verification"""
    payments = system.contract_manager.list_payments(contract_id=contract_id, status=status)
    return {
        "payments": [payment_to_response(payment) for payment in payments],
        "count": len(payments)
    }


@router.post("/payments/{payment_id}/verify")
def verify_payment(
    payment_id: str,
    request: VerifyPaymentRequest,
    system: LedgerSystem = Depends(get_ledger_system),
    role: StaffRole = Depends(requires(Capability.VERIFY_PAYMENTS))
):
    """Approve or reject a pending payment"""
    manager = system.contract_manager
    if not manager.get_payment(payment_id):
        raise HTTPException(status_code=404, detail="Payment not found")
    try:
        payment = manager.verify_payment(
            payment_id,
            approved=request.approved,
            verified_by=request.verified_by or role.value,
            note=request.note,
            schedule_entry_id=request.schedule_entry_id
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "payment": payment_to_response(payment),
        "contract": contract_to_response(manager.get_contract(payment.contract_id))
    }
