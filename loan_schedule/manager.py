"""
Schedule Manager

Application-facing entry point: stores loans, products and ledger
transactions, picks the scheduler a product asks for and runs it. Also runs
the batch auto-extend pass over every auto-extending loan.
"""

from datetime import date
from typing import Any, Dict, List, Optional
import logging
import uuid

from .config import ScheduleSettings, get_config
from .base import BaseScheduler
from .logging_config import log_action, setup_logging_from_config
from .models import (
    GenerationOptions, Loan, Product, ScheduleEntry, ScheduleResult, SchedulerConfig, Transaction
)
from .registry import create_scheduler
from .repository import StorageScheduleRepository
from .storage import StorageInterface, create_storage

logger = logging.getLogger(__name__)


class ScheduleManager:
    """
    Generates and stores repayment schedules for loans
    """

    def __init__(self, storage: Optional[StorageInterface] = None,
                 settings: Optional[ScheduleSettings] = None):
        """
        Args:
            storage: Record store to use. When omitted the manager runs
                standalone: the store is built from ``settings.database_url``
                and package logging is configured from the settings.
            settings: Engine settings, defaulting to the global configuration
        """
        self.settings = settings or get_config()
        if storage is None:
            setup_logging_from_config(self.settings)
            storage = create_storage(self.settings.database_url)
        self.storage = storage
        self.repository = StorageScheduleRepository(storage)

    def save_loan(self, loan: Loan) -> Loan:
        self.repository.save_loan(loan)
        return loan

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        return self.repository.get_loan(loan_id)

    def save_product(self, product: Product) -> Product:
        self.repository.save_product(product)
        return product

    def get_product(self, product_id: str) -> Optional[Product]:
        return self.repository.get_product(product_id)

    def record_transaction(self, transaction: Transaction) -> Transaction:
        self.repository.save_transaction(transaction)
        return transaction

    def get_schedule(self, loan_id: str) -> List[ScheduleEntry]:
        return self.repository.fetch_existing_schedule(loan_id)

    def scheduler_for(self, product: Product) -> BaseScheduler:
        """Instantiate the product's scheduler with its configuration"""
        config = SchedulerConfig.from_settings(self.settings, product.scheduler_config)
        return create_scheduler(product.scheduler_type, config=config, repository=self.repository)

    def generate_for_loan(self, loan_id: str, options: Optional[GenerationOptions] = None) -> ScheduleResult:
        """
        Generate and store the schedule for a stored loan.

        Raises:
            ValueError: if the loan or its product is not found, or the
                product names an unknown scheduler
        """
        loan = self.get_loan(loan_id)
        if not loan:
            raise ValueError(f"Loan {loan_id} not found")
        if not loan.product_id:
            raise ValueError(f"Loan {loan_id} has no product")

        product = self.get_product(loan.product_id)
        if not product:
            raise ValueError(f"Product {loan.product_id} not found")

        scheduler = self.scheduler_for(product)
        log_action(
            logger, "info", "Generating schedule",
            loan_id=loan.id, scheduler=scheduler.id, action="generate_for_loan",
            resource=product.id
        )
        return scheduler.generate_schedule(loan, product, options)

    def auto_extend_loans(self, as_of: Optional[date] = None) -> Dict[str, Any]:
        """
        Extend the schedule of every auto-extending loan that has run out of
        future due dates.

        A failure on one loan is logged and counted; the pass carries on.
        """
        as_of = as_of or date.today()
        correlation_id = str(uuid.uuid4())
        results: Dict[str, Any] = {"processed": 0, "succeeded": 0, "failed": 0, "skipped": 0, "loans": []}

        for loan in self.repository.find_loans({"auto_extend": True}):
            results["processed"] += 1
            try:
                schedule = self.get_schedule(loan.id)
                latest_due = max((entry.due_date for entry in schedule), default=None)
                if latest_due is not None and latest_due >= as_of:
                    results["skipped"] += 1
                    results["loans"].append({
                        "loan_id": loan.id,
                        "status": "skipped",
                        "message": f"Schedule already runs to {latest_due.isoformat()}"
                    })
                    continue

                result = self.generate_for_loan(loan.id, GenerationOptions(end_date=as_of, as_of=as_of))
                results["succeeded"] += 1
                results["loans"].append({
                    "loan_id": loan.id,
                    "status": "extended",
                    "message": f"{len(result.schedule)} entries"
                })

            except Exception as e:
                # Log error but continue with other loans
                log_action(
                    logger, "error", f"Auto-extend failed: {e}",
                    loan_id=loan.id, action="auto_extend", correlation_id=correlation_id
                )
                results["failed"] += 1
                results["loans"].append({"loan_id": loan.id, "status": "failed", "message": str(e)})

        log_action(
            logger, "info", "Auto-extend complete",
            action="auto_extend", correlation_id=correlation_id,
            extra={k: v for k, v in results.items() if k != "loans"}
        )
        return results
