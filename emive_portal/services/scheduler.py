from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from emive_portal.core.config import get_settings
from emive_portal.core.logging import log_error, log_info
from emive_portal.services import preventive as preventive_service

PREVENTIVE_JOB_ID = "preventive-due-notifications"
PREVENTIVE_CHECK_MINUTES = 30


class SchedulerService:
    def __init__(self) -> None:
        settings = get_settings()
        self._scheduler = AsyncIOScheduler(timezone=settings.default_timezone)
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        self._scheduler.start()
        self._started = True
        self._ensure_jobs()
        log_info("Scheduler started")

    async def stop(self) -> None:
        if not self._started:
            return
        self._scheduler.shutdown(wait=True)
        self._started = False
        log_info("Scheduler stopped")

    def _ensure_jobs(self) -> None:
        if not self._started:
            return
        if not self._scheduler.get_job(PREVENTIVE_JOB_ID):
            self._scheduler.add_job(
                self._run_preventive_notifications,
                "interval",
                minutes=PREVENTIVE_CHECK_MINUTES,
                id=PREVENTIVE_JOB_ID,
                replace_existing=True,
                coalesce=True,
                max_instances=1,
            )

    async def _run_preventive_notifications(self) -> None:
        try:
            notified = await preventive_service.notify_due_schedules()
        except Exception as exc:  # pragma: no cover
            log_error("Preventive notification job failed", error=str(exc))
            return
        log_info("Preventive notification job finished", notified=notified)

    async def run_now(self) -> None:
        await self._run_preventive_notifications()


scheduler_service = SchedulerService()
