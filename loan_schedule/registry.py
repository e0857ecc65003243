"""
Scheduler Registry

Maps a scheduler id (``product.scheduler_type``) to its class. Built-in
schedulers register themselves when ``loan_schedule.schedulers`` is imported.
"""

from typing import Any, Dict, List, Optional, Type
import logging

from .base import BaseScheduler
from .models import SchedulerConfig
from .repository import ScheduleRepository

logger = logging.getLogger(__name__)

_registry: Dict[str, Type[BaseScheduler]] = {}


def register_scheduler(scheduler_class: Type[BaseScheduler]) -> Type[BaseScheduler]:
    """
    Register a scheduler class under its ``id``.

    A second registration of the same id is skipped with a warning. Returns
    the class so this can also be used as a decorator.

    Raises:
        ValueError: if the class does not declare its own id
    """
    scheduler_id = getattr(scheduler_class, "id", None)
    if not scheduler_id or scheduler_id == BaseScheduler.id:
        raise ValueError(f"Scheduler {scheduler_class!r} must define an id")

    if scheduler_id in _registry:
        logger.warning("Scheduler %s already registered, skipping duplicate", scheduler_id)
        return scheduler_class

    _registry[scheduler_id] = scheduler_class
    logger.debug("Registered scheduler: %s (%s)", scheduler_id, scheduler_class.display_name)
    return scheduler_class


def unregister_scheduler(scheduler_id: str) -> bool:
    """Remove a registration; True if one existed"""
    return _registry.pop(scheduler_id, None) is not None


def get_scheduler(scheduler_id: str) -> Optional[Type[BaseScheduler]]:
    return _registry.get(scheduler_id)


def get_all_schedulers() -> List[Dict[str, Any]]:
    """Metadata for every registered scheduler, in registration order"""
    return [
        {
            "id": scheduler_class.id,
            "display_name": scheduler_class.display_name,
            "description": scheduler_class.description,
            "category": scheduler_class.category,
            "generates_schedule": scheduler_class.generates_schedule,
            "config_schema": scheduler_class.config_schema
        }
        for scheduler_class in _registry.values()
    ]


def get_schedulers_by_category(category: str) -> List[Dict[str, Any]]:
    return [s for s in get_all_schedulers() if s["category"] == category]


def has_scheduler(scheduler_id: str) -> bool:
    return scheduler_id in _registry


def create_scheduler(scheduler_id: str, config: Optional[SchedulerConfig] = None,
                     repository: Optional[ScheduleRepository] = None) -> BaseScheduler:
    """
    Instantiate the scheduler registered under ``scheduler_id``.

    Raises:
        ValueError: if no scheduler is registered under that id
    """
    scheduler_class = get_scheduler(scheduler_id)
    if scheduler_class is None:
        raise ValueError(f"Scheduler not found: {scheduler_id}")
    return scheduler_class(config=config, repository=repository)


def get_scheduler_count() -> int:
    return len(_registry)


def list_scheduler_ids() -> List[str]:
    return list(_registry.keys())
