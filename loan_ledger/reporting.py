"""
Portfolio Reporting Module

Aging buckets and dashboard figures computed from stored contracts.
"""

from decimal import Decimal
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .amounts import ZERO
from .contracts import Contract
from .lifecycle import ContractStatus


# (bucket name, lowest day, highest day inclusive); None = open-ended
AGING_BUCKETS: List[Tuple[str, int, Optional[int]]] = [
    ("current", 0, 0),
    ("days_1_to_7", 1, 7),
    ("days_8_to_30", 8, 30),
    ("days_31_to_60", 31, 60),
    ("days_60_plus", 61, None),
]


@dataclass
class AgingBucket:
    count: int = 0
    amount: Decimal = ZERO


@dataclass
class AgingReport:
    """ACTIVE contracts grouped by days overdue"""
    buckets: Dict[str, AgingBucket] = field(
        default_factory=lambda: {name: AgingBucket() for name, _, _ in AGING_BUCKETS}
    )

    def to_dict(self) -> dict:
        return {
            name: {"count": bucket.count, "amount": str(bucket.amount)}
            for name, bucket in self.buckets.items()
        }


@dataclass
class PortfolioMetrics:
    """Headline figures for the staff dashboard"""
    total_contracts: int
    active_contracts: int
    completed_contracts: int
    defaulted_contracts: int
    total_disbursed: Decimal
    total_outstanding: Decimal
    total_collected: Decimal
    overdue_count: int
    overdue_amount: Decimal
    pending_payments: int

    def to_dict(self) -> dict:
        return {
            key: str(value) if isinstance(value, Decimal) else value
            for key, value in self.__dict__.items()
        }


def aging_bucket_for(days_overdue: int) -> str:
    """Name of the bucket a days-overdue figure falls into"""
    for name, low, high in AGING_BUCKETS:
        if days_overdue >= low and (high is None or days_overdue <= high):
            return name
    raise ValueError(f"Days overdue cannot be negative, got {days_overdue}")


def aging_report(contracts: Iterable[Contract]) -> AgingReport:
    """Bucket ACTIVE contracts by their stored days overdue"""
    report = AgingReport()
    for contract in contracts:
        if contract.status != ContractStatus.ACTIVE:
            continue
        bucket = report.buckets[aging_bucket_for(contract.days_overdue)]
        bucket.count += 1
        bucket.amount += contract.outstanding_balance
    return report


def portfolio_metrics(contracts: Iterable[Contract], pending_payments: int = 0) -> PortfolioMetrics:
    contracts = list(contracts)
    active = [c for c in contracts if c.status == ContractStatus.ACTIVE]
    overdue = [c for c in active if c.days_overdue > 0]

    return PortfolioMetrics(
        total_contracts=len(contracts),
        active_contracts=len(active),
        completed_contracts=sum(1 for c in contracts if c.status == ContractStatus.COMPLETED),
        defaulted_contracts=sum(1 for c in contracts if c.status == ContractStatus.DEFAULT),
        total_disbursed=sum((c.approved_amount for c in contracts), ZERO),
        total_outstanding=sum((c.outstanding_balance for c in active), ZERO),
        total_collected=sum((c.total_paid for c in contracts), ZERO),
        overdue_count=len(overdue),
        overdue_amount=sum((c.outstanding_balance for c in overdue), ZERO),
        pending_payments=pending_payments
    )
