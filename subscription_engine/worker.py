import logging
from datetime import datetime
from typing import Any

from arq import cron

from subscription_engine.core import database as db_module
from subscription_engine.services.event_sink import get_event_sink
from subscription_engine.services.lifecycle_driver import LifecycleDriver
from subscription_engine.tasks import redis_settings

logger = logging.getLogger(__name__)


async def process_subscription_lifecycle_task(
    ctx: dict[str, Any], now: str | None = None
) -> int:
    """Background task: advance every subscription to ``now`` (default: current time).

    Runs hourly. Returns the number of lifecycle events emitted.
    """
    db = db_module.SessionLocal()
    try:
        driver = LifecycleDriver(db, sink=get_event_sink())
        result = driver.run_detailed(datetime.fromisoformat(now) if now else None)
        if result.failed > 0:
            logger.warning("Lifecycle run had %d failed subscriptions", result.failed)
        return len(result.events)
    finally:
        db.close()


class WorkerSettings:
    functions = [
        process_subscription_lifecycle_task,
    ]
    cron_jobs = [
        cron(process_subscription_lifecycle_task, minute={0}),  # hourly
    ]
    # One job at a time: a subscription must never be processed by two runs at once.
    max_jobs = 1
    redis_settings = redis_settings
