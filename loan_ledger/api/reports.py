"""
Reporting endpoints
"""

from fastapi import APIRouter, Depends

from .system import LedgerSystem, get_ledger_system, requires
from ..capabilities import Capability, StaffRole
from ..contracts import VerificationStatus
from ..reporting import aging_report, portfolio_metrics


router = APIRouter()


@router.get("/aging")
def get_aging_report(
    system: LedgerSystem = Depends(get_ledger_system),
    role: StaffRole = Depends(requires(Capability.VIEW_REPORTS))
):
    """ACTIVE contracts bucketed by days overdue"""
    report = aging_report(system.contract_manager.list_contracts())
    return {"buckets": report.to_dict()}


@router.get("/dashboard")
def get_dashboard(
    system: LedgerSystem = Depends(get_ledger_system),
    role: StaffRole = Depends(requires(Capability.VIEW_REPORTS))
):
    """Headline portfolio figures"""
    manager = system.contract_manager
    pending = manager.list_payments(status=VerificationStatus.PENDING)
    metrics = portfolio_metrics(manager.list_contracts(), pending_payments=len(pending))
    return metrics.to_dict()
