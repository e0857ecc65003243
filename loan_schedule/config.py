"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class ScheduleSettings(BaseSettings):
    """Loan schedule engine configuration"""

    # Storage configuration
    database_url: str = "sqlite:///loan_schedule.db"  # or memory://

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Money
    settled_threshold: str = "0.01"  # Outstanding at or below this is settled
    adjustment_threshold: str = "0.01"  # Smaller same-day adjustments are dropped

    # Generation behaviour
    preserve_paid_entries: bool = False
    default_roll_up_length: int = 6
    max_period_search: int = 1000

    # Rent pattern detection
    rent_default_frequency: str = "quarterly"
    rent_lookback_periods: int = 4

    class Config:
        env_prefix = "LOAN_SCHEDULE_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = ScheduleSettings()


def get_config() -> ScheduleSettings:
    """Get global configuration instance"""
    return config


def reload_config() -> ScheduleSettings:
    """Reload configuration from environment"""
    global config
    config = ScheduleSettings()
    return config
