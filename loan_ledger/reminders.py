"""
Payment Reminder Module

Works out which reminders are due today for each ACTIVE contract: an advance
reminder before an installment falls due, an alert on the due date, overdue
alerts on fixed days, and repeated escalations to staff for long-overdue
contracts. Staff can also send any customer reminder on demand.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple
from enum import Enum

from .amounts import format_amount
from .config import LedgerConfig
from .logging_config import get_logger, log_action
from .contracts import Contract, ContractManager
from .schedules import PaymentScheduleEntry
from .balances import days_overdue, next_payment_due, overdue_amount
from .lifecycle import ContractStatus
from .notifications import Notification, NotificationType, dispatch


@dataclass(frozen=True)
class Reminder:
    """One message the reminder run should send"""
    notification_type: NotificationType
    contract_id: str
    recipient_id: str
    body: str
    installment_number: Optional[int] = None
    amount: Optional[Decimal] = None
    days_overdue: int = 0

    def to_notification(self) -> Notification:
        metadata = {"days_overdue": self.days_overdue}
        if self.installment_number is not None:
            metadata["installment_number"] = self.installment_number
        if self.amount is not None:
            metadata["amount"] = str(self.amount)
        return Notification(
            notification_type=self.notification_type,
            recipient_id=self.recipient_id,
            contract_id=self.contract_id,
            body=self.body,
            metadata=metadata
        )


def _installment_reminder(notification_type: NotificationType, contract: Contract,
                          entry: PaymentScheduleEntry, currency: str) -> Reminder:
    if notification_type == NotificationType.PAYMENT_DUE_TODAY:
        body = (f"Installment {entry.installment_number} of "
                f"{format_amount(entry.total_amount, currency)} is due today.")
    else:
        body = (f"Installment {entry.installment_number} of "
                f"{format_amount(entry.total_amount, currency)} is due on "
                f"{entry.due_date.isoformat()}.")
    return Reminder(
        notification_type=notification_type,
        contract_id=contract.id,
        recipient_id=contract.recipient_id,
        body=body,
        installment_number=entry.installment_number,
        amount=entry.total_amount
    )


def _overdue_alert(contract: Contract, overdue_days: int, late_amount: Decimal, currency: str) -> Reminder:
    return Reminder(
        notification_type=NotificationType.PAYMENT_OVERDUE,
        contract_id=contract.id,
        recipient_id=contract.recipient_id,
        body=(f"Your payment is {overdue_days} days overdue. "
              f"Overdue amount {format_amount(late_amount, currency)}."),
        amount=late_amount,
        days_overdue=overdue_days
    )


def plan_reminders(contract: Contract, schedule: Iterable[PaymentScheduleEntry], today: date,
                   config: LedgerConfig, staff_recipients: Iterable[str] = ()) -> List[Reminder]:
    """
    Reminders due today for one contract

    Nothing is planned for contracts that are not ACTIVE. Customer messages
    need a recipient id; escalations go to every staff recipient.
    """
    if contract.status != ContractStatus.ACTIVE:
        return []

    schedule = list(schedule)
    currency = config.currency_code
    reminders = []

    if contract.recipient_id:
        for entry in schedule:
            if entry.is_paid:
                continue
            days_to_due = (entry.due_date - today).days
            if days_to_due == config.reminder_days_before_due:
                reminders.append(_installment_reminder(
                    NotificationType.PAYMENT_REMINDER, contract, entry, currency
                ))
            elif days_to_due == 0:
                reminders.append(_installment_reminder(
                    NotificationType.PAYMENT_DUE_TODAY, contract, entry, currency
                ))

    overdue_days = days_overdue(schedule, today)
    if overdue_days <= 0:
        return reminders

    if contract.recipient_id and overdue_days in config.overdue_alert_days:
        reminders.append(_overdue_alert(contract, overdue_days, overdue_amount(schedule, today), currency))

    if overdue_days >= config.escalation_after_days and \
            (overdue_days - config.escalation_after_days) % config.escalation_interval_days == 0:
        for staff_id in staff_recipients:
            reminders.append(Reminder(
                notification_type=NotificationType.COLLECTION_ESCALATION,
                contract_id=contract.id,
                recipient_id=staff_id,
                body=(f"{contract.customer_name or contract.id} ({contract.customer_phone or 'no phone'}) "
                      f"is {overdue_days} days overdue, "
                      f"outstanding {format_amount(contract.outstanding_balance, currency)}."),
                amount=contract.outstanding_balance,
                days_overdue=overdue_days
            ))

    return reminders


class ManualReminderType(Enum):
    """Reminders staff can send on demand"""
    PAYMENT_REMINDER = "payment_reminder"   # Next installment coming up
    OVERDUE_ALERT = "overdue_alert"         # Contract is behind
    DUE_DATE_ALERT = "due_date_alert"       # Next installment due today


def plan_manual_reminder(contract: Contract, schedule: Iterable[PaymentScheduleEntry],
                         reminder_type: ManualReminderType, today: date,
                         config: LedgerConfig) -> Reminder:
    """
    Build one staff-requested reminder for a contract, regardless of the
    automatic timetable.

    Raises:
        ValueError: If the contract has no recipient, nothing is left to pay,
            or an overdue alert is asked for a contract that is not overdue
    """
    if not contract.recipient_id:
        raise ValueError(f"Contract {contract.id} has no notification recipient")

    schedule = list(schedule)
    currency = config.currency_code

    if reminder_type == ManualReminderType.OVERDUE_ALERT:
        overdue_days = days_overdue(schedule, today)
        if overdue_days <= 0:
            raise ValueError(f"Contract {contract.id} is not overdue")
        return _overdue_alert(contract, overdue_days, overdue_amount(schedule, today), currency)

    upcoming = next_payment_due(schedule)
    if upcoming is None:
        raise ValueError(f"Contract {contract.id} has no unpaid installment")

    if reminder_type == ManualReminderType.DUE_DATE_ALERT:
        return _installment_reminder(NotificationType.PAYMENT_DUE_TODAY, contract, upcoming, currency)
    return _installment_reminder(NotificationType.PAYMENT_REMINDER, contract, upcoming, currency)


class ReminderService:
    """Sends the day's reminders for every ACTIVE contract"""

    def __init__(self, contract_manager: ContractManager, staff_recipients: Iterable[str] = ()):
        self.contract_manager = contract_manager
        self.staff_recipients = list(staff_recipients)
        self.logger = get_logger("ledger.reminders")

    def run(self, today: Optional[date] = None) -> Dict[str, int]:
        """Plan and send reminders; returns counts per notification type plus failures"""
        manager = self.contract_manager
        today = today or manager.today()
        counts: Dict[str, int] = {"failed": 0}

        for contract in manager.list_contracts(ContractStatus.ACTIVE):
            try:
                planned = plan_reminders(
                    contract, manager.get_schedule(contract.id), today,
                    manager.config, self.staff_recipients
                )
            except Exception:
                self.logger.exception(f"Reminder planning failed for contract {contract.id}")
                counts["failed"] += 1
                continue

            for reminder in planned:
                if dispatch(manager.notifier, reminder.to_notification()):
                    key = reminder.notification_type.value
                    counts[key] = counts.get(key, 0) + 1
                else:
                    counts["failed"] += 1

        log_action(self.logger, "info", f"Reminders sent for {today.isoformat()}",
                   action="send_reminders", extra=counts)
        return counts

    def send_reminder(self, contract_id: str, reminder_type: ManualReminderType,
                      today: Optional[date] = None,
                      sent_by: Optional[str] = None) -> Tuple[Reminder, bool]:
        """
        Send one reminder on staff request

        Returns:
            The reminder and whether the notifier accepted it

        Raises:
            ValueError: If the contract does not exist or the reminder does not apply
        """
        manager = self.contract_manager
        contract = manager.get_contract(contract_id)
        if not contract:
            raise ValueError(f"Contract {contract_id} not found")

        reminder = plan_manual_reminder(
            contract, manager.get_schedule(contract_id), reminder_type,
            today or manager.today(), manager.config
        )
        sent = dispatch(manager.notifier, reminder.to_notification())

        log_action(self.logger, "info" if sent else "warning",
                   f"Manual {reminder_type.value} for contract {contract_id} "
                   f"{'sent' if sent else 'failed'}",
                   user_id=sent_by, action="send_reminder", resource=f"contract:{contract_id}",
                   extra={"notification_type": reminder.notification_type.value})
        return reminder, sent
