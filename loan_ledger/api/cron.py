"""
Scheduled job endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends

from .system import LedgerSystem, get_ledger_system, requires, verify_cron_secret
from .schemas import DailyBatchRequest
from ..capabilities import Capability, StaffRole
from ..logging_config import get_logger


router = APIRouter(dependencies=[Depends(verify_cron_secret)])
logger = get_logger("ledger.api")


@router.post("/daily")
def run_daily_batch(
    request: Optional[DailyBatchRequest] = None,
    system: LedgerSystem = Depends(get_ledger_system),
    role: StaffRole = Depends(requires(Capability.RUN_BATCH))
):
    """Age installments, recompute balances and move contract statuses"""
    logger.info(f"Daily batch triggered by {role.value}")
    report = system.batch_coordinator.run(request.today if request else None)
    return report.to_dict()


@router.post("/reminders")
def run_reminders(
    request: Optional[DailyBatchRequest] = None,
    system: LedgerSystem = Depends(get_ledger_system),
    role: StaffRole = Depends(requires(Capability.RUN_BATCH))
):
    """Send the day's payment reminders, overdue alerts and escalations"""
    today = (request.today if request else None) or system.contract_manager.today()
    counts = system.reminder_service.run(today)
    return {"run_date": today.isoformat(), "sent": counts}
