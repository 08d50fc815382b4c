"""Workflow Scheduler - Background jobs for outbox draining and overdue steps

Each server runs its own scheduler. Both jobs are safe to run concurrently
across servers: outcome events are written idempotently and overdue
reminders are stamped with a version-checked run update.
"""
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config.settings import settings
from ..engine.engine import WorkflowEngine
from ..utils.logger import get_logger, set_correlation_id
from ..utils.idgen import generate_correlation_id

logger = get_logger(__name__)


class WorkflowScheduler:
    """
    APScheduler wrapper for the engine's periodic work

    Responsibilities:
    - Re-publish outcome events left on run outboxes
    - Remind assignees of overdue step executions
    """

    def __init__(self, engine: Optional[WorkflowEngine] = None):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.engine = engine or WorkflowEngine()
        self._is_running = False

    def start(self) -> None:
        """Start the scheduler"""
        if self._is_running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = AsyncIOScheduler()

        self.scheduler.add_job(
            self._drain_outbox,
            trigger=IntervalTrigger(seconds=settings.scheduler_interval_seconds),
            id="drain_outbox",
            name="Publish pending outcome events",
            max_instances=1,
            replace_existing=True
        )

        self.scheduler.add_job(
            self._check_overdue_steps,
            trigger=IntervalTrigger(seconds=settings.overdue_check_interval_seconds),
            id="check_overdue_steps",
            name="Remind assignees of overdue steps",
            max_instances=1,
            replace_existing=True
        )

        self.scheduler.start()
        self._is_running = True
        logger.info(
            f"Scheduler started (outbox every {settings.scheduler_interval_seconds}s, "
            f"overdue check every {settings.overdue_check_interval_seconds}s)"
        )

    def stop(self) -> None:
        """Stop the scheduler"""
        if self.scheduler:
            self.scheduler.shutdown()
            self._is_running = False
            logger.info("Workflow scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def _drain_outbox(self) -> None:
        set_correlation_id(generate_correlation_id())
        try:
            self.engine.drain_outbox()
        except Exception as e:
            logger.error(f"Error in drain outbox job: {e}", exc_info=True)

    async def _check_overdue_steps(self) -> None:
        set_correlation_id(generate_correlation_id())
        try:
            self.engine.send_overdue_reminders()
        except Exception as e:
            logger.error(f"Error in overdue step job: {e}", exc_info=True)


# Global scheduler instance
_scheduler: Optional[WorkflowScheduler] = None


def get_scheduler() -> WorkflowScheduler:
    """Get or create scheduler instance"""
    global _scheduler
    if _scheduler is None:
        _scheduler = WorkflowScheduler()
    return _scheduler


def start_scheduler() -> None:
    """Start the global scheduler"""
    get_scheduler().start()


def stop_scheduler() -> None:
    """Stop the global scheduler"""
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None
