"""
Contract Module

Handles contract origination with its schedule, payment submission (manual
entry or transfer slip), staff verification, and keeping the contract's
running totals in step with its schedule.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional, Tuple
from enum import Enum
from contextlib import contextmanager
from zoneinfo import ZoneInfo
import threading
import uuid

from .amounts import ZERO, AmountLike, to_money, to_rate, format_amount
from .storage import StorageInterface, StorageRecord
from .config import LedgerConfig, get_config
from .logging_config import get_logger, log_action
from .amortization import quote_loan
from .schedules import PaymentScheduleEntry, build_schedule_params, generate_schedule, sort_schedule
from .balances import BalanceSnapshot, recompute, next_payment_due
from .lifecycle import ContractStatus, TransitionTrigger, next_contract_status, mark_paid
from .reconciliation import SlipData, ReconciliationResult, MatchReason, match_slip
from .notifications import Notifier, Notification, NotificationType, dispatch


class PaymentMethod(Enum):
    """How a payment reached the lender"""
    TRANSFER_SLIP = "TRANSFER_SLIP"
    BANK_TRANSFER = "BANK_TRANSFER"
    CASH = "CASH"
    OTHER = "OTHER"


class VerificationStatus(Enum):
    """Staff decision on a submitted payment"""
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


@dataclass
class Contract(StorageRecord):
    """One approved loan and its running totals"""
    approved_amount: Decimal
    interest_rate: Decimal              # Flat percent per month
    term_months: int
    payment_day: int
    monthly_payment: Decimal
    start_date: date
    end_date: date
    total_due: Decimal                  # Fixed at origination
    customer_name: str = ""
    customer_phone: Optional[str] = None
    recipient_id: Optional[str] = None  # Messaging id used for notifications
    application_id: Optional[str] = None
    total_paid: Decimal = ZERO
    outstanding_balance: Decimal = ZERO
    days_overdue: int = 0
    status: ContractStatus = ContractStatus.ACTIVE
    disbursed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    defaulted_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == ContractStatus.ACTIVE

    @property
    def total_interest(self) -> Decimal:
        return self.total_due - self.approved_amount


@dataclass
class Payment(StorageRecord):
    """A payment claim awaiting, or past, staff verification"""
    contract_id: str
    amount: Decimal
    payment_date: date
    method: PaymentMethod
    schedule_entry_id: Optional[str] = None
    slip: Optional[SlipData] = None
    match_reason: Optional[MatchReason] = None
    verification_status: VerificationStatus = VerificationStatus.PENDING
    submitted_by: Optional[str] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    verification_note: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.verification_status == VerificationStatus.PENDING


class ContractManager:
    """
    Manages contracts from approval through the last payment
    """

    def __init__(
        self,
        storage: StorageInterface,
        notifier: Optional[Notifier] = None,
        config: Optional[LedgerConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.storage = storage
        self.notifier = notifier
        self.config = config or get_config()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = get_logger("ledger.contracts")

        self.contracts_table = "contracts"
        self.schedules_table = "payment_schedules"
        self.payments_table = "payments"

        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def today(self) -> date:
        """Business date in the configured timezone"""
        return self.clock().astimezone(ZoneInfo(self.config.business_timezone)).date()

    @contextmanager
    def contract_lock(self, contract_id: str) -> Iterator[None]:
        """Serialize read-modify-write on one contract"""
        with self._locks_guard:
            lock = self._locks.setdefault(contract_id, threading.RLock())
        with lock:
            yield

    def originate_contract(
        self,
        principal: AmountLike,
        interest_rate: AmountLike,
        term_months: int,
        payment_day: int,
        start_date: Optional[date] = None,
        customer_name: str = "",
        customer_phone: Optional[str] = None,
        recipient_id: Optional[str] = None,
        application_id: Optional[str] = None,
        approved_by: Optional[str] = None
    ) -> Contract:
        """
        Create an ACTIVE contract together with its full schedule

        Args:
            principal: Approved amount
            interest_rate: Flat percent per month
            term_months: Number of installments
            payment_day: Day of month installments fall due (1-28)
            start_date: Disbursement date (defaults to today)
            customer_name: Borrower name for notifications and reports
            customer_phone: Borrower phone
            recipient_id: Messaging id notifications are addressed to
            application_id: Originating application
            approved_by: Staff member approving the loan

        Returns:
            Created Contract

        Raises:
            ValueError: If the terms are invalid; nothing is persisted
        """
        now = self.clock()
        start_date = start_date or self.today()
        quote = quote_loan(principal, interest_rate, term_months, payment_day, start_date)

        contract = Contract(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            approved_amount=quote.principal,
            interest_rate=quote.monthly_rate,
            term_months=quote.term_months,
            payment_day=quote.payment_day,
            monthly_payment=quote.monthly_payment,
            start_date=quote.start_date,
            end_date=quote.end_date,
            total_due=quote.total_due,
            customer_name=customer_name,
            customer_phone=customer_phone,
            recipient_id=recipient_id,
            application_id=application_id,
            outstanding_balance=quote.total_due,
            disbursed_at=now
        )

        # Built in full before anything is written
        schedule = generate_schedule(build_schedule_params(
            contract.id, quote.principal, quote.monthly_rate,
            quote.term_months, quote.payment_day, quote.start_date
        ))

        with self.storage.atomic():
            self.save_contract(contract)
            self.save_schedule_entries(schedule)

        log_action(
            self.logger, "info", f"Contract {contract.id} originated",
            user_id=approved_by, action="originate_contract", resource=f"contract:{contract.id}",
            extra={
                "principal": str(quote.principal),
                "interest_rate": str(quote.monthly_rate),
                "term_months": quote.term_months,
                "total_due": str(quote.total_due),
                "end_date": quote.end_date.isoformat()
            }
        )

        self._notify(contract, NotificationType.CONTRACT_APPROVED,
                     f"Your loan of {format_amount(quote.principal, self.config.currency_code)} is approved. "
                     f"{quote.term_months} installments of "
                     f"{format_amount(quote.monthly_payment, self.config.currency_code)} "
                     f"due on day {quote.payment_day} of each month.",
                     {"monthly_payment": str(quote.monthly_payment),
                      "first_due_date": quote.first_due_date.isoformat()})

        return contract

    def get_contract(self, contract_id: str) -> Optional[Contract]:
        """Get contract by ID"""
        data = self.storage.load(self.contracts_table, contract_id)
        if data:
            return self._contract_from_dict(data)
        return None

    def list_contracts(self, status: Optional[ContractStatus] = None) -> List[Contract]:
        """All contracts, optionally filtered by status"""
        if status is None:
            rows = self.storage.load_all(self.contracts_table)
        else:
            rows = self.storage.find(self.contracts_table, {"status": status.value})
        return [self._contract_from_dict(row) for row in rows]

    def get_schedule(self, contract_id: str) -> List[PaymentScheduleEntry]:
        """Installments of a contract in order"""
        rows = self.storage.find(self.schedules_table, {"contract_id": contract_id})
        return sort_schedule([PaymentScheduleEntry.from_dict(row) for row in rows])

    def save_contract(self, contract: Contract) -> None:
        self.storage.save(self.contracts_table, contract.id, self._contract_to_dict(contract))

    def save_schedule_entries(self, entries: List[PaymentScheduleEntry]) -> None:
        self.storage.save_many(self.schedules_table, {entry.id: entry.to_dict() for entry in entries})

    def balance_snapshot(self, contract_id: str, as_of: Optional[date] = None) -> BalanceSnapshot:
        """Recompute a contract's figures from its stored schedule without persisting"""
        contract = self._require_contract(contract_id)
        return recompute(self.get_schedule(contract_id), contract.total_paid, as_of or self.today())

    def reconcile_slip(self, contract_id: str, slip_amount: AmountLike) -> ReconciliationResult:
        """Match a slip amount against the contract's current schedule"""
        self._require_contract(contract_id)
        return match_slip(slip_amount, self.get_schedule(contract_id),
                          tolerance=self.config.slip_match_tolerance)

    def submit_payment(
        self,
        contract_id: str,
        amount: AmountLike,
        payment_date: Optional[date] = None,
        method: PaymentMethod = PaymentMethod.BANK_TRANSFER,
        schedule_entry_id: Optional[str] = None,
        slip: Optional[SlipData] = None,
        match_reason: Optional[MatchReason] = None,
        submitted_by: Optional[str] = None
    ) -> Payment:
        """
        Record a payment claim as PENDING verification

        Raises:
            ValueError: If the contract or linked installment does not exist,
                or the amount is not positive
        """
        contract = self._require_contract(contract_id)
        amount = to_money(amount)
        if amount <= 0:
            raise ValueError(f"Payment amount must be positive, got {amount}")

        if schedule_entry_id is not None:
            if not any(entry.id == schedule_entry_id for entry in self.get_schedule(contract_id)):
                raise ValueError(f"Installment {schedule_entry_id} does not belong to contract {contract_id}")

        now = self.clock()
        payment = Payment(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            contract_id=contract.id,
            amount=amount,
            payment_date=payment_date or self.today(),
            method=method,
            schedule_entry_id=schedule_entry_id,
            slip=slip,
            match_reason=match_reason,
            submitted_by=submitted_by
        )
        self._save_payment(payment)

        log_action(
            self.logger, "info", f"Payment {payment.id} submitted for contract {contract.id}",
            user_id=submitted_by, action="submit_payment", resource=f"payment:{payment.id}",
            extra={"amount": str(amount), "method": method.value, "schedule_entry_id": schedule_entry_id}
        )
        self._notify(contract, NotificationType.PAYMENT_RECEIVED,
                     f"We received your payment of {format_amount(amount, self.config.currency_code)}. "
                     f"It will be confirmed after verification.",
                     {"payment_id": payment.id})
        return payment

    def submit_slip(self, contract_id: str, slip: SlipData,
                    submitted_by: Optional[str] = None) -> Tuple[Payment, ReconciliationResult]:
        """
        Record a transfer slip, linking it to an installment when it auto-matches

        Unmatched slips are still recorded, unlinked, for manual review.
        """
        result = self.reconcile_slip(contract_id, slip.amount)
        payment = self.submit_payment(
            contract_id,
            slip.amount,
            payment_date=slip.slip_date,
            method=PaymentMethod.TRANSFER_SLIP,
            schedule_entry_id=result.matched_entry_id,
            slip=slip,
            match_reason=result.reason,
            submitted_by=submitted_by
        )
        if not result.matched:
            self.logger.info(
                f"Slip payment {payment.id} for contract {contract_id} needs manual review: "
                f"{result.reason.value}"
            )
        return payment, result

    def get_payment(self, payment_id: str) -> Optional[Payment]:
        """Get payment by ID"""
        data = self.storage.load(self.payments_table, payment_id)
        if data:
            return self._payment_from_dict(data)
        return None

    def list_payments(self, contract_id: Optional[str] = None,
                      status: Optional[VerificationStatus] = None) -> List[Payment]:
        """Payments filtered by contract and/or verification status, oldest first"""
        filters = {}
        if contract_id is not None:
            filters["contract_id"] = contract_id
        if status is not None:
            filters["verification_status"] = status.value
        payments = [self._payment_from_dict(row) for row in self.storage.find(self.payments_table, filters)]
        payments.sort(key=lambda payment: (payment.payment_date, payment.created_at))
        return payments

    def verify_payment(
        self,
        payment_id: str,
        approved: bool,
        verified_by: Optional[str] = None,
        note: Optional[str] = None,
        schedule_entry_id: Optional[str] = None
    ) -> Payment:
        """
        Apply a staff decision to a pending payment

        On approval the linked installment (or ``schedule_entry_id`` chosen by
        staff for an unmatched slip) becomes PAID, the contract's total paid
        grows by the payment amount and its balance, overdue days and status
        are recomputed. Everything is written in one transaction under the
        contract's lock.

        Raises:
            ValueError: If the payment is unknown or already decided, or the
                installment is unknown or already paid
        """
        payment = self.get_payment(payment_id)
        if not payment:
            raise ValueError(f"Payment {payment_id} not found")

        with self.contract_lock(payment.contract_id), self.storage.atomic():
            # Re-read under the lock so concurrent decisions see each other
            payment = self.get_payment(payment_id)
            if not payment.is_pending:
                raise ValueError(f"Payment {payment_id} already {payment.verification_status.value}")

            contract = self._require_contract(payment.contract_id)
            now = self.clock()
            previous_status = contract.status

            payment.verification_status = VerificationStatus.VERIFIED if approved else VerificationStatus.REJECTED
            payment.verified_by = verified_by
            payment.verified_at = now
            payment.verification_note = note
            payment.updated_at = now

            if approved:
                if schedule_entry_id is not None:
                    payment.schedule_entry_id = schedule_entry_id
                schedule = self.get_schedule(contract.id)
                if payment.schedule_entry_id is not None:
                    entry = next((e for e in schedule if e.id == payment.schedule_entry_id), None)
                    if entry is None:
                        raise ValueError(
                            f"Installment {payment.schedule_entry_id} does not belong to contract {contract.id}"
                        )
                    mark_paid(entry, payment.amount, now)
                    self.save_schedule_entries([entry])

                contract.total_paid = contract.total_paid + payment.amount
                self.apply_snapshot(
                    contract,
                    recompute(schedule, contract.total_paid, self.today()),
                    TransitionTrigger.PAYMENT_VERIFICATION,
                    now
                )
                self.save_contract(contract)

            self._save_payment(payment)

        log_action(
            self.logger, "info",
            f"Payment {payment.id} {payment.verification_status.value.lower()} for contract {contract.id}",
            user_id=verified_by, action="verify_payment", resource=f"payment:{payment.id}",
            extra={
                "amount": str(payment.amount),
                "schedule_entry_id": payment.schedule_entry_id,
                "outstanding_balance": str(contract.outstanding_balance),
                "contract_status": contract.status.value
            }
        )

        if approved:
            upcoming = next_payment_due(self.get_schedule(contract.id))
            self._notify(contract, NotificationType.PAYMENT_CONFIRMED,
                         f"Payment of {format_amount(payment.amount, self.config.currency_code)} confirmed. "
                         f"Remaining balance {format_amount(contract.outstanding_balance, self.config.currency_code)}.",
                         {"payment_id": payment.id,
                          "remaining_balance": str(contract.outstanding_balance),
                          "next_due_date": upcoming.due_date.isoformat() if upcoming else None})
            if contract.status != previous_status:
                self.notify_status_change(contract)
        else:
            self._notify(contract, NotificationType.PAYMENT_REJECTED,
                         f"Your payment of {format_amount(payment.amount, self.config.currency_code)} "
                         f"could not be verified.",
                         {"payment_id": payment.id, "note": note})

        return payment

    def apply_snapshot(self, contract: Contract, snapshot: BalanceSnapshot,
                       trigger: TransitionTrigger, now: datetime) -> bool:
        """
        Copy recomputed figures onto a contract and advance its status

        Returns:
            True if any field changed
        """
        next_status = next_contract_status(
            contract.status, snapshot.outstanding_balance, snapshot.days_overdue,
            trigger, default_after_days=self.config.default_after_days
        )
        changed = (
            contract.outstanding_balance != snapshot.outstanding_balance
            or contract.days_overdue != snapshot.days_overdue
            or contract.status != next_status
        )
        contract.outstanding_balance = snapshot.outstanding_balance
        contract.days_overdue = snapshot.days_overdue

        if next_status != contract.status:
            if next_status == ContractStatus.COMPLETED and contract.completed_at is None:
                contract.completed_at = now
            elif next_status == ContractStatus.DEFAULT and contract.defaulted_at is None:
                contract.defaulted_at = now
            contract.status = next_status

        if changed:
            contract.updated_at = now
        return changed

    def notify_status_change(self, contract: Contract) -> None:
        """Tell the customer a contract has closed, by completion or default"""
        if contract.status == ContractStatus.COMPLETED:
            self._notify(contract, NotificationType.CONTRACT_COMPLETED,
                         "Your loan is fully repaid. Thank you!", {})
        elif contract.status == ContractStatus.DEFAULT:
            self._notify(contract, NotificationType.CONTRACT_DEFAULTED,
                         f"Your loan is {contract.days_overdue} days overdue and has been placed in default.",
                         {"days_overdue": contract.days_overdue,
                          "outstanding_balance": str(contract.outstanding_balance)})

    def _notify(self, contract: Contract, notification_type: NotificationType,
                body: str, metadata: dict) -> None:
        if not contract.recipient_id:
            return
        dispatch(self.notifier, Notification(
            notification_type=notification_type,
            recipient_id=contract.recipient_id,
            contract_id=contract.id,
            body=body,
            metadata=metadata
        ))

    def _require_contract(self, contract_id: str) -> Contract:
        contract = self.get_contract(contract_id)
        if not contract:
            raise ValueError(f"Contract {contract_id} not found")
        return contract

    def _save_payment(self, payment: Payment) -> None:
        self.storage.save(self.payments_table, payment.id, self._payment_to_dict(payment))

    def _contract_to_dict(self, contract: Contract) -> Dict:
        """Convert contract to dictionary"""
        result = contract.to_dict()
        result['status'] = contract.status.value
        for field_name in ['start_date', 'end_date']:
            result[field_name] = getattr(contract, field_name).isoformat()
        for field_name in ['disbursed_at', 'completed_at', 'defaulted_at']:
            value = getattr(contract, field_name)
            result[field_name] = value.isoformat() if value else None
        return result

    def _contract_from_dict(self, data: Dict) -> Contract:
        """Convert dictionary to contract"""
        def get_datetime(field_name: str) -> Optional[datetime]:
            if data.get(field_name):
                return datetime.fromisoformat(data[field_name])
            return None

        return Contract(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            approved_amount=Decimal(data['approved_amount']),
            interest_rate=to_rate(data['interest_rate']),
            term_months=data['term_months'],
            payment_day=data['payment_day'],
            monthly_payment=Decimal(data['monthly_payment']),
            start_date=date.fromisoformat(data['start_date']),
            end_date=date.fromisoformat(data['end_date']),
            total_due=Decimal(data['total_due']),
            customer_name=data.get('customer_name', ""),
            customer_phone=data.get('customer_phone'),
            recipient_id=data.get('recipient_id'),
            application_id=data.get('application_id'),
            total_paid=Decimal(data['total_paid']),
            outstanding_balance=Decimal(data['outstanding_balance']),
            days_overdue=data.get('days_overdue', 0),
            status=ContractStatus(data['status']),
            disbursed_at=get_datetime('disbursed_at'),
            completed_at=get_datetime('completed_at'),
            defaulted_at=get_datetime('defaulted_at')
        )

    def _payment_to_dict(self, payment: Payment) -> Dict:
        """Convert payment to dictionary"""
        result = payment.to_dict()
        result['payment_date'] = payment.payment_date.isoformat()
        result['method'] = payment.method.value
        result['verification_status'] = payment.verification_status.value
        result['match_reason'] = payment.match_reason.value if payment.match_reason else None
        result['slip'] = payment.slip.to_dict() if payment.slip else None
        result['verified_at'] = payment.verified_at.isoformat() if payment.verified_at else None
        return result

    def _payment_from_dict(self, data: Dict) -> Payment:
        """Convert dictionary to payment"""
        return Payment(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            contract_id=data['contract_id'],
            amount=Decimal(data['amount']),
            payment_date=date.fromisoformat(data['payment_date']),
            method=PaymentMethod(data['method']),
            schedule_entry_id=data.get('schedule_entry_id'),
            slip=SlipData.from_dict(data['slip']) if data.get('slip') else None,
            match_reason=MatchReason(data['match_reason']) if data.get('match_reason') else None,
            verification_status=VerificationStatus(data['verification_status']),
            submitted_by=data.get('submitted_by'),
            verified_by=data.get('verified_by'),
            verified_at=datetime.fromisoformat(data['verified_at']) if data.get('verified_at') else None,
            verification_note=data.get('verification_note')
        )
