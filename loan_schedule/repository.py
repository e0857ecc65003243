"""
Schedule Repository

The persistence collaborator used by schedulers: reads the transaction
ledger, replaces a loan's stored schedule and writes loan totals back.
Backed by any StorageInterface.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import logging

from .models import Loan, Product, ScheduleEntry, Transaction
from .storage import StorageInterface

logger = logging.getLogger(__name__)


class ScheduleRepository(ABC):
    """What the engine needs from persistence"""

    @abstractmethod
    def fetch_transactions(self, loan_id: str) -> List[Transaction]:
        """Non-deleted transactions for a loan, ascending by date"""
        pass

    @abstractmethod
    def replace_schedule(self, loan_id: str, entries: List[ScheduleEntry]) -> None:
        """Delete every stored entry for the loan, then insert ``entries``"""
        pass

    @abstractmethod
    def update_loan_totals(self, loan_id: str, totals: Dict[str, Any]) -> bool:
        """Merge totals into the stored loan; False if the loan is not stored"""
        pass

    @abstractmethod
    def fetch_existing_schedule(self, loan_id: str) -> List[ScheduleEntry]:
        """Stored entries for a loan in schedule order"""
        pass


class StorageScheduleRepository(ScheduleRepository):
    """ScheduleRepository over a StorageInterface backend"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage

        self.loans_table = "loans"
        self.products_table = "products"
        self.transactions_table = "transactions"
        self.schedules_table = "repayment_schedules"

    # Engine contract

    def fetch_transactions(self, loan_id: str) -> List[Transaction]:
        records = self.storage.find(self.transactions_table, {"loan_id": loan_id})
        transactions = [
            Transaction.from_dict(data) for data in records
            if not data.get("is_deleted", False)
        ]
        transactions.sort(key=lambda t: t.date)
        return transactions

    def replace_schedule(self, loan_id: str, entries: List[ScheduleEntry]) -> None:
        with self.storage.atomic():
            removed = self.storage.delete_where(self.schedules_table, {"loan_id": loan_id})
            for index, entry in enumerate(entries, start=1):
                row = entry.to_dict()
                row["id"] = self._entry_id(loan_id, index)
                row["loan_id"] = loan_id
                self.storage.save(self.schedules_table, row["id"], row)
        logger.debug("Replaced schedule for loan %s: %d rows removed, %d written",
                     loan_id, removed, len(entries))

    def update_loan_totals(self, loan_id: str, totals: Dict[str, Any]) -> bool:
        existing = self.storage.load(self.loans_table, loan_id)
        if existing is None:
            logger.debug("Loan %s is not stored; totals not persisted", loan_id)
            return False
        existing.update({k: self._storable(v) for k, v in totals.items()})
        self.storage.save(self.loans_table, loan_id, existing)
        return True

    def fetch_existing_schedule(self, loan_id: str) -> List[ScheduleEntry]:
        rows = self.storage.find(self.schedules_table, {"loan_id": loan_id})
        rows.sort(key=lambda row: row["id"])
        return [ScheduleEntry.from_dict(row) for row in rows]

    # Record access used by ScheduleManager

    def save_loan(self, loan: Loan) -> None:
        self.storage.save(self.loans_table, loan.id, loan.to_dict())

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        data = self.storage.load(self.loans_table, loan_id)
        if data:
            return Loan.from_dict(data)
        return None

    def find_loans(self, filters: Dict[str, Any]) -> List[Loan]:
        return [Loan.from_dict(data) for data in self.storage.find(self.loans_table, filters)]

    def save_product(self, product: Product) -> None:
        self.storage.save(self.products_table, product.id, product.to_dict())

    def get_product(self, product_id: str) -> Optional[Product]:
        data = self.storage.load(self.products_table, product_id)
        if data:
            return Product.from_dict(data)
        return None

    def save_transaction(self, transaction: Transaction) -> None:
        self.storage.save(self.transactions_table, transaction.id, transaction.to_dict())

    @staticmethod
    def _entry_id(loan_id: str, index: int) -> str:
        # Zero-padded so lexical order is schedule order
        return f"{loan_id}_{index:05d}"

    @staticmethod
    def _storable(value: Any) -> Any:
        if value is None or isinstance(value, (bool, int, str)):
            return value
        return str(value)
