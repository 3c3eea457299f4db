"""
Pydantic schemas for API requests and responses
"""

from decimal import Decimal
from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field, model_validator

from ..config import get_config
from ..amortization import MAX_PAYMENT_DAY
from ..contracts import Contract, Payment, PaymentMethod
from ..lifecycle import ContractStatus, TransitionTrigger
from ..schedules import PaymentScheduleEntry, ScheduleStatus
from ..reconciliation import SlipData, ReconciliationResult
from ..reminders import ManualReminderType


class LoanTermsModel(BaseModel):
    principal: Decimal = Field(..., gt=0, description="Approved amount in whole currency units")
    interest_rate: Decimal = Field(..., gt=0, description="Flat interest, percent per month")
    term_months: int = Field(..., ge=1)
    payment_day: int = Field(..., ge=1, le=MAX_PAYMENT_DAY)
    start_date: Optional[date] = None

    @model_validator(mode="after")
    def check_approval_limits(self) -> 'LoanTermsModel':
        config = get_config()
        if not Decimal(config.min_principal) <= self.principal <= Decimal(config.max_principal):
            raise ValueError(
                f"principal must be between {config.min_principal} and {config.max_principal}"
            )
        if not Decimal(config.min_interest_rate) <= self.interest_rate <= Decimal(config.max_interest_rate):
            raise ValueError(
                f"interest_rate must be between {config.min_interest_rate} and {config.max_interest_rate}"
            )
        if self.term_months > config.max_term_months:
            raise ValueError(f"term_months must be at most {config.max_term_months}")
        return self


class QuoteRequest(LoanTermsModel):
    pass


class CreateContractRequest(LoanTermsModel):
    customer_name: str = ""
    customer_phone: Optional[str] = None
    recipient_id: Optional[str] = None
    application_id: Optional[str] = None
    approved_by: Optional[str] = None


class ScheduleEntryModel(BaseModel):
    id: str
    installment_number: int
    due_date: date
    principal_amount: Decimal
    interest_amount: Decimal
    total_amount: Decimal
    status: ScheduleStatus = ScheduleStatus.PENDING
    paid_amount: Decimal = Decimal('0')

    def to_entry(self, contract_id: str) -> PaymentScheduleEntry:
        return PaymentScheduleEntry(
            id=self.id,
            contract_id=contract_id,
            installment_number=self.installment_number,
            due_date=self.due_date,
            principal_amount=self.principal_amount,
            interest_amount=self.interest_amount,
            total_amount=self.total_amount,
            status=self.status,
            paid_amount=self.paid_amount
        )


class RecomputeRequest(BaseModel):
    contract_id: str = "adhoc"
    schedules: List[ScheduleEntryModel]
    total_paid: Decimal = Field(Decimal('0'), ge=0)
    today: Optional[date] = None
    current_status: ContractStatus = ContractStatus.ACTIVE
    trigger: TransitionTrigger = TransitionTrigger.DAILY_BATCH


class SlipMatchRequest(BaseModel):
    slip_amount: Decimal
    unpaid_entries: List[ScheduleEntryModel]
    tolerance: Optional[Decimal] = Field(None, ge=0)


class SlipModel(BaseModel):
    amount: Decimal = Field(..., description="Amount read off the slip")
    slip_date: Optional[date] = None
    bank: Optional[str] = None
    transaction_ref: Optional[str] = None

    def to_slip(self) -> SlipData:
        return SlipData(
            amount=self.amount,
            slip_date=self.slip_date,
            bank=self.bank,
            transaction_ref=self.transaction_ref
        )


class SubmitSlipRequest(BaseModel):
    slip: SlipModel
    submitted_by: Optional[str] = None


class RecordPaymentRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    payment_date: Optional[date] = None
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    schedule_entry_id: Optional[str] = None
    submitted_by: Optional[str] = None


class VerifyPaymentRequest(BaseModel):
    approved: bool
    verified_by: Optional[str] = None
    note: Optional[str] = None
    schedule_entry_id: Optional[str] = Field(
        None, description="Installment to settle when the payment was not auto-matched"
    )


class DailyBatchRequest(BaseModel):
    today: Optional[date] = None


class SendReminderRequest(BaseModel):
    contract_id: str = Field(..., min_length=1)
    type: ManualReminderType
    sent_by: Optional[str] = None


def contract_to_response(contract: Contract) -> dict:
    return {
        "id": contract.id,
        "application_id": contract.application_id,
        "customer_name": contract.customer_name,
        "status": contract.status.value,
        "approved_amount": str(contract.approved_amount),
        "interest_rate": str(contract.interest_rate),
        "term_months": contract.term_months,
        "payment_day": contract.payment_day,
        "monthly_payment": str(contract.monthly_payment),
        "start_date": contract.start_date.isoformat(),
        "end_date": contract.end_date.isoformat(),
        "total_due": str(contract.total_due),
        "total_paid": str(contract.total_paid),
        "outstanding_balance": str(contract.outstanding_balance),
        "days_overdue": contract.days_overdue,
        "completed_at": contract.completed_at.isoformat() if contract.completed_at else None,
        "defaulted_at": contract.defaulted_at.isoformat() if contract.defaulted_at else None
    }


def payment_to_response(payment: Payment) -> dict:
    return {
        "id": payment.id,
        "contract_id": payment.contract_id,
        "amount": str(payment.amount),
        "payment_date": payment.payment_date.isoformat(),
        "method": payment.method.value,
        "schedule_entry_id": payment.schedule_entry_id,
        "match_reason": payment.match_reason.value if payment.match_reason else None,
        "verification_status": payment.verification_status.value,
        "verified_by": payment.verified_by,
        "verification_note": payment.verification_note
    }


def reconciliation_to_response(result: ReconciliationResult) -> dict:
    return {
        "matched_entry_id": result.matched_entry_id,
        "installment_number": result.entry.installment_number if result.entry else None,
        "reason": result.reason.value,
        "difference": str(result.difference) if result.difference is not None else None,
        "message": result.message
    }
