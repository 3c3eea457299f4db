"""
Notification Module

Customer and staff notifications raised by ledger events: approval, payment
confirmation, reminders, overdue alerts, escalations and contract status
changes. Delivery is a pluggable channel; the ledger never blocks on it.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from enum import Enum
from abc import ABC, abstractmethod
import logging
import uuid

import requests

from .config import LedgerConfig

logger = logging.getLogger("ledger.notifications")


class NotificationType(Enum):
    """Types of notifications"""
    CONTRACT_APPROVED = "contract_approved"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_REJECTED = "payment_rejected"
    PAYMENT_REMINDER = "payment_reminder"
    PAYMENT_DUE_TODAY = "payment_due_today"
    PAYMENT_OVERDUE = "payment_overdue"
    COLLECTION_ESCALATION = "collection_escalation"
    CONTRACT_COMPLETED = "contract_completed"
    CONTRACT_DEFAULTED = "contract_defaulted"


@dataclass
class Notification:
    """Individual notification instance"""
    notification_type: NotificationType
    recipient_id: str       # Customer messaging id, or "staff" for escalations
    contract_id: str
    body: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier(ABC):
    """Abstract base class for notification channels"""

    @abstractmethod
    def send(self, notification: Notification) -> bool:
        """Send notification via this channel. Returns True if successful."""
        pass


class LogNotifier(Notifier):
    """Logging channel for development and tests"""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.logger = log or logger

    def send(self, notification: Notification) -> bool:
        self.logger.info(
            f"{notification.notification_type.value} to {notification.recipient_id} "
            f"(contract {notification.contract_id}): {notification.body}"
        )
        return True


class WebhookNotifier(Notifier):
    """Posts notifications to an external messaging gateway"""

    def __init__(self, url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, notification: Notification) -> bool:
        payload = {
            "notification_id": notification.id,
            "type": notification.notification_type.value,
            "recipient_id": notification.recipient_id,
            "contract_id": notification.contract_id,
            "body": notification.body,
            "timestamp": notification.created_at.isoformat(),
            "metadata": notification.metadata
        }
        try:
            response = self.session.post(
                self.url,
                json=payload,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"}
            )
        except requests.RequestException as e:
            logger.error(f"Webhook send failed for {notification.id}: {e}")
            return False

        if response.status_code >= 300:
            logger.warning(f"Webhook returned {response.status_code} for {notification.id}")
            return False
        return True


def dispatch(notifier: Optional[Notifier], notification: Notification) -> bool:
    """
    Send through ``notifier`` without letting delivery problems escape.

    Ledger updates have already been committed when this runs, so a failed
    send is logged and reported as False rather than raised.
    """
    if notifier is None:
        return False
    try:
        return notifier.send(notification)
    except Exception:
        logger.exception(
            f"Notifier {type(notifier).__name__} failed on {notification.notification_type.value} "
            f"for contract {notification.contract_id}"
        )
        return False


def create_notifier(config: LedgerConfig) -> Notifier:
    """Webhook delivery when a URL is configured, logging otherwise"""
    if config.notification_webhook_url:
        return WebhookNotifier(config.notification_webhook_url, timeout=config.notification_timeout)
    return LogNotifier()
