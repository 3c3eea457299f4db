"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class LedgerConfig(BaseSettings):
    """Loan ledger engine configuration"""

    # Storage configuration
    database_url: str = "memory://"  # or sqlite:///ledger.db

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    cron_secret: str = ""  # Empty = cron endpoint accepts any caller with RUN_BATCH

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Business calendar
    business_timezone: str = "Asia/Bangkok"
    currency_code: str = "THB"

    # Business rules configuration
    slip_match_tolerance: str = "100"  # Currency units either side of the installment
    default_after_days: int = 90       # Contract defaults when overdue strictly longer
    min_principal: str = "10000"
    max_principal: str = "1000000"
    min_interest_rate: str = "0.1"     # Percent per month
    max_interest_rate: str = "10"
    max_term_months: int = 60

    # Batch configuration
    batch_workers: int = 1  # >1 processes contracts in a thread pool

    # Reminder configuration
    reminder_days_before_due: int = 7
    overdue_alert_days: List[int] = [1, 7, 14, 30]
    escalation_after_days: int = 30
    escalation_interval_days: int = 7
    staff_recipients: List[str] = []  # Messaging ids that receive escalations

    # Notification configuration
    notification_webhook_url: str = ""  # Empty = log only
    notification_timeout: float = 5.0

    class Config:
        env_prefix = "LEDGER_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
