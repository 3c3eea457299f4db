"""
Daily Batch Module

The once-a-day pass over every ACTIVE contract: age installments, recompute
balances and overdue days, and move contracts to COMPLETED or DEFAULT.
Re-running it on the same day without new payments changes nothing.
"""

from datetime import date
from dataclasses import dataclass, field
from typing import Dict, Optional
from concurrent.futures import ThreadPoolExecutor

from .config import LedgerConfig
from .logging_config import get_logger, log_action
from .contracts import ContractManager
from .balances import recompute
from .lifecycle import ContractStatus, TransitionTrigger, mark_overdue


@dataclass
class ContractOutcome:
    """What the batch did to one contract"""
    contract_id: str
    updated: bool = False
    newly_overdue: int = 0
    days_overdue: int = 0
    previous_status: ContractStatus = ContractStatus.ACTIVE
    status: ContractStatus = ContractStatus.ACTIVE


@dataclass
class BatchReport:
    """Aggregate counts for one batch run"""
    run_date: date
    processed: int = 0
    updated: int = 0
    newly_overdue: int = 0       # Installments moved PENDING -> OVERDUE
    overdue_contracts: int = 0   # Contracts with days_overdue > 0 after the run
    newly_defaulted: int = 0
    newly_completed: int = 0
    failed: int = 0
    errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "run_date": self.run_date.isoformat(),
            "processed": self.processed,
            "updated": self.updated,
            "newly_overdue": self.newly_overdue,
            "overdue_contracts": self.overdue_contracts,
            "newly_defaulted": self.newly_defaulted,
            "newly_completed": self.newly_completed,
            "failed": self.failed,
            "errors": dict(self.errors)
        }


class DailyBatchCoordinator:
    """
    Runs the daily maintenance pass across all ACTIVE contracts
    """

    def __init__(self, contract_manager: ContractManager, config: Optional[LedgerConfig] = None):
        self.contract_manager = contract_manager
        self.config = config or contract_manager.config
        self.logger = get_logger("ledger.batch")

    def run(self, today: Optional[date] = None) -> BatchReport:
        """
        Process every ACTIVE contract once

        A failure on one contract is logged and counted; the rest still run.

        Args:
            today: Business date to evaluate (defaults to the manager's today)

        Returns:
            BatchReport
        """
        today = today or self.contract_manager.today()
        report = BatchReport(run_date=today)
        contracts = self.contract_manager.list_contracts(ContractStatus.ACTIVE)
        self.logger.info(f"Daily batch for {today.isoformat()}: {len(contracts)} active contracts")

        workers = max(1, self.config.batch_workers)
        if workers == 1:
            results = [self._safe_process(contract.id, today) for contract in contracts]
        else:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                results = list(executor.map(lambda c: self._safe_process(c.id, today), contracts))

        for contract_id, outcome, error in results:
            report.processed += 1
            if error is not None:
                report.failed += 1
                report.errors[contract_id] = error
                continue
            report.newly_overdue += outcome.newly_overdue
            if outcome.updated:
                report.updated += 1
            if outcome.days_overdue > 0:
                report.overdue_contracts += 1
            if outcome.status != outcome.previous_status:
                if outcome.status == ContractStatus.DEFAULT:
                    report.newly_defaulted += 1
                elif outcome.status == ContractStatus.COMPLETED:
                    report.newly_completed += 1

        log_action(
            self.logger, "info",
            f"Daily batch completed: {report.updated} updated, {report.overdue_contracts} overdue, "
            f"{report.newly_defaulted} defaulted, {report.failed} failed",
            action="daily_batch", extra=report.to_dict()
        )
        return report

    def _safe_process(self, contract_id: str, today: date):
        try:
            return contract_id, self.process_contract(contract_id, today), None
        except Exception as e:
            self.logger.exception(f"Daily batch failed for contract {contract_id}")
            return contract_id, None, str(e)

    def process_contract(self, contract_id: str, today: date) -> ContractOutcome:
        """
        Run the daily steps for one contract under its lock

        Contracts that left ACTIVE since the run started are skipped untouched.
        """
        manager = self.contract_manager
        with manager.contract_lock(contract_id):
            contract = manager.get_contract(contract_id)
            if contract is None:
                raise ValueError(f"Contract {contract_id} not found")
            outcome = ContractOutcome(
                contract_id=contract_id,
                days_overdue=contract.days_overdue,
                previous_status=contract.status,
                status=contract.status
            )
            if not contract.is_active:
                return outcome

            schedule = manager.get_schedule(contract_id)
            aged = [entry for entry in schedule if mark_overdue(entry, today)]

            snapshot = recompute(schedule, contract.total_paid, today)
            changed = manager.apply_snapshot(contract, snapshot, TransitionTrigger.DAILY_BATCH, manager.clock())

            if aged or changed:
                with manager.storage.atomic():
                    if aged:
                        manager.save_schedule_entries(aged)
                    if changed:
                        manager.save_contract(contract)

            outcome.updated = bool(aged) or changed
            outcome.newly_overdue = len(aged)
            outcome.days_overdue = contract.days_overdue
            outcome.status = contract.status

        if outcome.status != outcome.previous_status:
            self.logger.info(
                f"Contract {contract_id} moved {outcome.previous_status.value} -> {outcome.status.value}"
            )
            manager.notify_status_change(contract)

        return outcome
