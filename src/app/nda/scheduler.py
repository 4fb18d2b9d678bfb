"""Background tasks for the NDA lifecycle.

Task functions are built by setup_nda_scheduler() and run by plain asyncio
loops, so tests can call a task directly without a running loop.

Task definitions:
1. check_expiring_ndas: send expiry reminders (daily by default)
2. expire_lapsed_ndas: mark acceptances past expires_at as expired (hourly)
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import structlog

logger = structlog.get_logger(__name__)

TASK_INTERVALS: dict[str, int] = {
    "check_expiring_ndas": 24 * 60 * 60,
    "expire_lapsed_ndas": 60 * 60,
}


def setup_nda_scheduler(nda_service, nda_repository) -> dict:
    """Return a dict mapping task name to async callable.

    Each task catches its own failures, logs them, and returns the count of
    items processed (0 on failure) so one bad run never stops the loop.
    """

    async def check_expiring_ndas_task():
        try:
            result = await nda_service.check_expiring()
            logger.info(
                "scheduler.expiring_ndas_checked",
                processed=len(result.results),
                sent=result.success_count,
            )
            return result.success_count
        except Exception:
            logger.warning("scheduler.expiring_ndas_failed", exc_info=True)
            return 0

    async def expire_lapsed_ndas_task():
        try:
            count = await nda_repository.expire_lapsed(datetime.now(timezone.utc))
            logger.info("scheduler.lapsed_ndas_expired", expired=count)
            return count
        except Exception:
            logger.warning("scheduler.lapsed_ndas_failed", exc_info=True)
            return 0

    return {
        "check_expiring_ndas": check_expiring_ndas_task,
        "expire_lapsed_ndas": expire_lapsed_ndas_task,
    }


async def start_scheduler_background(
    tasks: dict, app_state, intervals: dict[str, int] | None = None
) -> None:
    """Start each task in its own asyncio loop.

    Args:
        tasks: Dict mapping task name to async callable.
        app_state: FastAPI app.state; task handles are stored on
            nda_scheduler_tasks for cancellation at shutdown.
        intervals: Per-task interval overrides in seconds.
    """
    intervals = {**TASK_INTERVALS, **(intervals or {})}
    background_tasks: list[asyncio.Task] = []

    for task_name, task_fn in tasks.items():
        interval = intervals.get(task_name, 3600)

        async def _loop(fn=task_fn, name=task_name, sleep=interval):
            while True:
                try:
                    await asyncio.sleep(sleep)
                    await fn()
                except asyncio.CancelledError:
                    logger.info("scheduler.task_cancelled", task=name)
                    break
                except Exception:
                    logger.warning("scheduler.task_loop_error", task=name, exc_info=True)

        background_tasks.append(asyncio.create_task(_loop(), name=f"nda_scheduler_{task_name}"))

    app_state.nda_scheduler_tasks = background_tasks
    logger.info(
        "scheduler.background_tasks_started",
        task_count=len(background_tasks),
        tasks=list(tasks.keys()),
    )
