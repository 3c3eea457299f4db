"""
Ledger system wiring and request dependencies
"""

from datetime import datetime
from typing import Callable, Optional
from fastapi import Depends, Header, HTTPException, Request

from ..config import LedgerConfig, get_config
from ..storage import StorageInterface, create_storage
from ..notifications import Notifier, create_notifier
from ..contracts import ContractManager
from ..batch import DailyBatchCoordinator
from ..reminders import ReminderService
from ..capabilities import Capability, StaffRole, require_capability


class LedgerSystem:
    """Loan ledger engine with all components initialized"""

    def __init__(
        self,
        config: Optional[LedgerConfig] = None,
        storage: Optional[StorageInterface] = None,
        notifier: Optional[Notifier] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config.database_url)
        self.notifier = notifier or create_notifier(self.config)

        self.contract_manager = ContractManager(self.storage, self.notifier, self.config, clock)
        self.batch_coordinator = DailyBatchCoordinator(self.contract_manager, self.config)
        self.reminder_service = ReminderService(self.contract_manager, self.config.staff_recipients)

    def close(self) -> None:
        self.storage.close()


def get_ledger_system(request: Request) -> LedgerSystem:
    return request.app.state.ledger_system


def get_staff_role(x_staff_role: Optional[str] = Header(None)) -> StaffRole:
    """Caller's role from the X-Staff-Role header"""
    if not x_staff_role:
        raise HTTPException(status_code=401, detail="X-Staff-Role header required")
    try:
        return StaffRole(x_staff_role.upper())
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Unknown staff role: {x_staff_role}")


def requires(capability: Capability):
    """Dependency that rejects callers whose role lacks ``capability``"""
    def check(role: StaffRole = Depends(get_staff_role)) -> StaffRole:
        try:
            require_capability(role, capability)
        except PermissionError as e:
            raise HTTPException(status_code=403, detail=str(e))
        return role
    return check


def verify_cron_secret(
    authorization: Optional[str] = Header(None),
    system: LedgerSystem = Depends(get_ledger_system)
) -> None:
    """Scheduled jobs must present the configured bearer secret, if any"""
    secret = system.config.cron_secret
    if secret and authorization != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="Invalid cron secret")
