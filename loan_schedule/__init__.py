"""
Loan Schedule Engine

Generates repayment schedules for loans under pluggable accrual regimes
(flat rate, reducing balance, interest-only, rolled-up and others), using
Decimal money math, day-segmented interest and a persistence layer that
replaces a loan's schedule atomically.
"""

__version__ = "1.0.0"

from .models import (
    CapitalEvent, CapitalEventType, EntryStatus, GenerationOptions, InterestAlignment,
    InterestCalculationMethod, Loan, Period, Product, ScheduleEntry, ScheduleResult,
    ScheduleSummary, SchedulerConfig, Transaction, TransactionType
)
from .base import BaseScheduler
from .registry import (
    create_scheduler, get_all_schedulers, get_scheduler, has_scheduler, register_scheduler
)
from . import schedulers
from .manager import ScheduleManager
