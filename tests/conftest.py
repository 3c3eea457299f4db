"""
Shared fixtures for the loan ledger test suite
"""

import pytest
from datetime import datetime, timezone, date

from loan_ledger.config import LedgerConfig
from loan_ledger.storage import InMemoryStorage
from loan_ledger.notifications import Notifier
from loan_ledger.contracts import ContractManager


class FixedClock:
    """Settable clock; dates map to 10:00 in Bangkok"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set_date(self, day: date) -> None:
        self.now = datetime(day.year, day.month, day.day, 3, 0, tzinfo=timezone.utc)


class RecordingNotifier(Notifier):
    """Keeps every notification it is asked to send"""

    def __init__(self, succeed: bool = True):
        self.sent = []
        self.succeed = succeed

    def send(self, notification):
        self.sent.append(notification)
        return self.succeed

    def types(self):
        return [n.notification_type for n in self.sent]


@pytest.fixture
def config():
    return LedgerConfig()


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 15, 3, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def manager(storage, notifier, config, clock):
    return ContractManager(storage, notifier, config, clock)


@pytest.fixture
def contract(manager):
    """100,000 at 1.5% flat for 12 months, due on the 15th from 2024-02-15"""
    return manager.originate_contract(
        principal=100000,
        interest_rate="1.5",
        term_months=12,
        payment_day=15,
        start_date=date(2024, 1, 15),
        customer_name="Somchai Jaidee",
        customer_phone="0812345678",
        recipient_id="line-user-1"
    )
