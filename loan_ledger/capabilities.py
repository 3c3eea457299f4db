"""
Capabilities Module

Staff roles and what each may do to the ledger. Roles and capabilities are
closed enums; the role table is an exhaustive match so adding a role without
deciding its capabilities fails loudly.
"""

from enum import Enum
from typing import FrozenSet


class Capability(Enum):
    """Ledger operations that need authorization"""
    APPROVE_APPLICATIONS = "approve_applications"
    VIEW_CONTRACTS = "view_contracts"
    RECORD_PAYMENTS = "record_payments"
    VERIFY_PAYMENTS = "verify_payments"
    UPLOAD_SLIP = "upload_slip"
    SEND_NOTIFICATIONS = "send_notifications"
    VIEW_REPORTS = "view_reports"
    RUN_BATCH = "run_batch"


class StaffRole(Enum):
    """Who is calling"""
    SUPER_ADMIN = "SUPER_ADMIN"
    APPROVER = "APPROVER"
    COLLECTOR = "COLLECTOR"
    VIEWER = "VIEWER"
    CUSTOMER = "CUSTOMER"
    SYSTEM = "SYSTEM"   # Scheduler running the daily jobs


def role_capabilities(role: StaffRole) -> FrozenSet[Capability]:
    """Capabilities granted to a role"""
    match role:
        case StaffRole.SUPER_ADMIN:
            return frozenset(Capability)
        case StaffRole.APPROVER:
            return frozenset({
                Capability.APPROVE_APPLICATIONS,
                Capability.VIEW_CONTRACTS,
                Capability.VIEW_REPORTS,
            })
        case StaffRole.COLLECTOR:
            return frozenset({
                Capability.VIEW_CONTRACTS,
                Capability.RECORD_PAYMENTS,
                Capability.VERIFY_PAYMENTS,
                Capability.UPLOAD_SLIP,
                Capability.SEND_NOTIFICATIONS,
            })
        case StaffRole.VIEWER:
            return frozenset({Capability.VIEW_REPORTS})
        case StaffRole.CUSTOMER:
            return frozenset({Capability.UPLOAD_SLIP})
        case StaffRole.SYSTEM:
            return frozenset({Capability.RUN_BATCH, Capability.SEND_NOTIFICATIONS})
        case _:
            raise ValueError(f"Unknown role: {role}")


def has_capability(role: StaffRole, capability: Capability) -> bool:
    return capability in role_capabilities(role)


def require_capability(role: StaffRole, capability: Capability) -> None:
    """
    Raises:
        PermissionError: If the role lacks the capability
    """
    if not has_capability(role, capability):
        raise PermissionError(f"Role {role.value} lacks capability {capability.value}")
