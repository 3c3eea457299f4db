"""
Test suite for payment reminders and collection escalations
"""

import pytest
from datetime import date

from loan_ledger.config import LedgerConfig
from loan_ledger.lifecycle import ContractStatus
from loan_ledger.notifications import NotificationType
from loan_ledger.reminders import ManualReminderType, ReminderService, plan_manual_reminder, plan_reminders
from loan_ledger.schedules import ScheduleStatus


STAFF = ["staff-1", "staff-2"]


def planned_types(manager, contract, today, config, staff=()):
    reminders = plan_reminders(contract, manager.get_schedule(contract.id), today, config, staff)
    return [r.notification_type for r in reminders]


class TestPlanReminders:
    """Test which messages are due on a given day (first due date 2024-02-15)"""

    def test_advance_reminder(self, manager, contract, config):
        reminders = plan_reminders(contract, manager.get_schedule(contract.id), date(2024, 2, 8), config)

        assert [r.notification_type for r in reminders] == [NotificationType.PAYMENT_REMINDER]
        assert reminders[0].installment_number == 1
        assert reminders[0].recipient_id == "line-user-1"
        assert "2024-02-15" in reminders[0].body

    def test_due_today(self, manager, contract, config):
        assert planned_types(manager, contract, date(2024, 2, 15), config) == [NotificationType.PAYMENT_DUE_TODAY]

    def test_quiet_day(self, manager, contract, config):
        assert planned_types(manager, contract, date(2024, 2, 1), config) == []
        assert planned_types(manager, contract, date(2024, 2, 18), config) == []

    @pytest.mark.parametrize("today,days", [
        (date(2024, 2, 16), 1),
        (date(2024, 2, 22), 7),
        (date(2024, 2, 29), 14),
    ])
    def test_overdue_alert_days(self, manager, contract, config, today, days):
        reminders = plan_reminders(contract, manager.get_schedule(contract.id), today, config)

        assert [r.notification_type for r in reminders] == [NotificationType.PAYMENT_OVERDUE]
        assert reminders[0].days_overdue == days

    def test_escalation_at_thirty_days(self, manager, contract, config):
        # 2024-03-16 is 30 days after the first missed due date
        reminders = plan_reminders(contract, manager.get_schedule(contract.id), date(2024, 3, 16), config, STAFF)
        types = [r.notification_type for r in reminders]

        assert types.count(NotificationType.PAYMENT_OVERDUE) == 1
        assert types.count(NotificationType.COLLECTION_ESCALATION) == 2
        escalations = [r for r in reminders if r.notification_type == NotificationType.COLLECTION_ESCALATION]
        assert {r.recipient_id for r in escalations} == set(STAFF)
        assert "Somchai Jaidee" in escalations[0].body

    def test_escalation_repeats_weekly(self, manager, contract, config):
        assert NotificationType.COLLECTION_ESCALATION in planned_types(
            manager, contract, date(2024, 3, 23), config, STAFF)
        assert NotificationType.COLLECTION_ESCALATION not in planned_types(
            manager, contract, date(2024, 3, 22), config, STAFF)
        assert NotificationType.COLLECTION_ESCALATION not in planned_types(
            manager, contract, date(2024, 3, 15), config, STAFF)

    def test_custom_schedule(self, manager, contract):
        config = LedgerConfig(reminder_days_before_due=3, overdue_alert_days=[2], escalation_after_days=5,
                              escalation_interval_days=5)
        assert planned_types(manager, contract, date(2024, 2, 12), config) == [NotificationType.PAYMENT_REMINDER]
        assert planned_types(manager, contract, date(2024, 2, 17), config) == [NotificationType.PAYMENT_OVERDUE]
        assert planned_types(manager, contract, date(2024, 2, 25), config, ["s"]) == [
            NotificationType.COLLECTION_ESCALATION
        ]

    def test_no_customer_messages_without_recipient(self, manager, config):
        anonymous = manager.originate_contract(100000, "1.5", 12, 15, start_date=date(2024, 1, 15))

        assert planned_types(manager, anonymous, date(2024, 2, 8), config) == []
        assert planned_types(manager, anonymous, date(2024, 3, 16), config, STAFF) == [
            NotificationType.COLLECTION_ESCALATION, NotificationType.COLLECTION_ESCALATION
        ]

    @pytest.mark.parametrize("status", [ContractStatus.COMPLETED, ContractStatus.DEFAULT])
    def test_closed_contracts_get_nothing(self, manager, contract, config, status):
        contract.status = status
        assert planned_types(manager, contract, date(2024, 3, 16), config, STAFF) == []

    def test_to_notification(self, manager, contract, config):
        reminder = plan_reminders(contract, manager.get_schedule(contract.id), date(2024, 2, 16), config)[0]
        notification = reminder.to_notification()

        assert notification.notification_type == NotificationType.PAYMENT_OVERDUE
        assert notification.contract_id == contract.id
        assert notification.metadata["days_overdue"] == 1
        assert notification.metadata["amount"] == "9833"


class TestReminderService:
    """Test the reminder run across contracts"""

    def test_run_sends_and_counts(self, manager, contract, notifier):
        notifier.sent.clear()
        counts = ReminderService(manager, STAFF).run(date(2024, 3, 16))

        assert counts["failed"] == 0
        assert counts[NotificationType.PAYMENT_OVERDUE.value] == 1
        assert counts[NotificationType.COLLECTION_ESCALATION.value] == 2
        assert len(notifier.sent) == 3

    def test_failed_sends_counted(self, manager, contract, notifier):
        notifier.succeed = False
        counts = ReminderService(manager).run(date(2024, 2, 8))
        assert counts == {"failed": 1}

    def test_skips_closed_contracts(self, manager, contract, notifier):
        contract.status = ContractStatus.DEFAULT
        manager.save_contract(contract)
        notifier.sent.clear()

        ReminderService(manager, STAFF).run(date(2024, 3, 16))
        assert notifier.sent == []


class TestManualReminders:
    """Test reminders sent on staff request"""

    def test_payment_reminder_for_next_installment(self, manager, contract, config):
        reminder = plan_manual_reminder(contract, manager.get_schedule(contract.id),
                                        ManualReminderType.PAYMENT_REMINDER, date(2024, 1, 15), config)

        assert reminder.notification_type == NotificationType.PAYMENT_REMINDER
        assert reminder.installment_number == 1
        assert reminder.recipient_id == "line-user-1"
        assert "2024-02-15" in reminder.body

    def test_due_date_alert(self, manager, contract, config):
        reminder = plan_manual_reminder(contract, manager.get_schedule(contract.id),
                                        ManualReminderType.DUE_DATE_ALERT, date(2024, 1, 15), config)
        assert reminder.notification_type == NotificationType.PAYMENT_DUE_TODAY
        assert reminder.body.endswith("is due today.")

    def test_overdue_alert(self, manager, contract, config):
        reminder = plan_manual_reminder(contract, manager.get_schedule(contract.id),
                                        ManualReminderType.OVERDUE_ALERT, date(2024, 2, 20), config)
        assert reminder.notification_type == NotificationType.PAYMENT_OVERDUE
        assert reminder.days_overdue == 5
        assert reminder.amount == 9833

    def test_overdue_alert_needs_overdue_contract(self, manager, contract, config):
        with pytest.raises(ValueError):
            plan_manual_reminder(contract, manager.get_schedule(contract.id),
                                 ManualReminderType.OVERDUE_ALERT, date(2024, 2, 15), config)

    def test_nothing_left_to_pay(self, manager, contract, config):
        schedule = manager.get_schedule(contract.id)
        for entry in schedule:
            entry.status = ScheduleStatus.PAID
        with pytest.raises(ValueError):
            plan_manual_reminder(contract, schedule, ManualReminderType.PAYMENT_REMINDER,
                                 date(2024, 1, 15), config)

    def test_recipient_required(self, manager, config):
        anonymous = manager.originate_contract(100000, "1.5", 12, 15, start_date=date(2024, 1, 15))
        with pytest.raises(ValueError):
            plan_manual_reminder(anonymous, manager.get_schedule(anonymous.id),
                                 ManualReminderType.PAYMENT_REMINDER, date(2024, 1, 15), config)

    def test_service_sends_one_reminder(self, manager, contract, notifier):
        notifier.sent.clear()
        reminder, sent = ReminderService(manager).send_reminder(
            contract.id, ManualReminderType.PAYMENT_REMINDER, sent_by="collector-1"
        )

        assert sent
        assert notifier.types() == [NotificationType.PAYMENT_REMINDER]
        assert notifier.sent[0].metadata["installment_number"] == reminder.installment_number

    def test_service_reports_failed_send(self, manager, contract, notifier):
        notifier.succeed = False
        _, sent = ReminderService(manager).send_reminder(contract.id, ManualReminderType.DUE_DATE_ALERT)
        assert not sent

    def test_service_unknown_contract(self, manager):
        with pytest.raises(ValueError):
            ReminderService(manager).send_reminder("missing", ManualReminderType.PAYMENT_REMINDER)
