"""
Contract endpoints
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, status

from .system import LedgerSystem, get_ledger_system, requires
from .schemas import CreateContractRequest, contract_to_response
from ..capabilities import Capability, StaffRole
from ..lifecycle import ContractStatus


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def create_contract(
    request: CreateContractRequest,
    system: LedgerSystem = Depends(get_ledger_system),
    role: StaffRole = Depends(requires(Capability.APPROVE_APPLICATIONS))
):
    """Originate a contract and its full payment schedule"""
    try:
        contract = system.contract_manager.originate_contract(
            principal=request.principal,
            interest_rate=request.interest_rate,
            term_months=request.term_months,
            payment_day=request.payment_day,
            start_date=request.start_date,
            customer_name=request.customer_name,
            customer_phone=request.customer_phone,
            recipient_id=request.recipient_id,
            application_id=request.application_id,
            approved_by=request.approved_by or role.value
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    response = contract_to_response(contract)
    response["schedule"] = [entry.to_dict() for entry in system.contract_manager.get_schedule(contract.id)]
    return response


@router.get("")
def list_contracts(
    status: Optional[ContractStatus] = None,
    system: LedgerSystem = Depends(get_ledger_system),
    role: StaffRole = Depends(requires(Capability.VIEW_CONTRACTS))
):
    """List contracts, optionally by status"""
    contracts = system.contract_manager.list_contracts(status)
    return {
        "contracts": [contract_to_response(contract) for contract in contracts],
        "count": len(contracts)
    }


@router.get("/{contract_id}")
def get_contract(
    contract_id: str,
    system: LedgerSystem = Depends(get_ledger_system),
    role: StaffRole = Depends(requires(Capability.VIEW_CONTRACTS))
):
    """Get contract details"""
    contract = system.contract_manager.get_contract(contract_id)
    if not contract:
        raise HTTPException(status_code=404, detail="Contract not found")
    return contract_to_response(contract)


@router.get("/{contract_id}/schedule")
def get_contract_schedule(
    contract_id: str,
    system: LedgerSystem = Depends(get_ledger_system),
    role: StaffRole = Depends(requires(Capability.VIEW_CONTRACTS))
):
    """Get a contract's installments in order"""
    if not system.contract_manager.get_contract(contract_id):
        raise HTTPException(status_code=404, detail="Contract not found")

    schedule = system.contract_manager.get_schedule(contract_id)
    return {
        "contract_id": contract_id,
        "schedule": [entry.to_dict() for entry in schedule]
    }
