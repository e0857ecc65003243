"""
Built-in schedulers. Importing this package registers each of them.
"""

from .flat_rate import FlatRateScheduler
from .reducing_balance import ReducingBalanceScheduler
from .interest_only import InterestOnlyScheduler
from .rolled_up import RolledUpScheduler
from .roll_up_serviced import RollUpServicedScheduler
from .fixed_charge import FixedChargeScheduler
from .rent import RentScheduler
from .irregular_income import IrregularIncomeScheduler

__all__ = [
    "FlatRateScheduler",
    "ReducingBalanceScheduler",
    "InterestOnlyScheduler",
    "RolledUpScheduler",
    "RollUpServicedScheduler",
    "FixedChargeScheduler",
    "RentScheduler",
    "IrregularIncomeScheduler",
]
