"""APScheduler-based daily schedule.

Runs the catalog merge and, an hour later, the alert check once a day.
"""

from typing import Awaitable, Callable, Dict, Optional

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from solewatch.config import settings

logger = structlog.get_logger(__name__)

JobFunc = Callable[[], Awaitable[object]]

MERGE_JOB_ID = "merge_deals"
ALERTS_JOB_ID = "check_alerts"


class DealScheduler:
    """Manages the daily merge and alert-check jobs.

    Job failures are logged and never stop the scheduler.
    """

    def __init__(self, run_merge: JobFunc, run_alert_check: JobFunc):
        self.run_merge = run_merge
        self.run_alert_check = run_alert_check
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.logger = logger.bind(service="deal_scheduler")

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            self.logger.info("scheduler_started")
        else:
            self.logger.warning("scheduler_already_running")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            self.logger.info("scheduler_stopped")
        else:
            self.logger.warning("scheduler_not_running")

    def schedule_daily_jobs(
        self,
        merge_hour: int = settings.MERGE_CRON_HOUR,
        alerts_hour: int = settings.ALERTS_CRON_HOUR,
    ) -> Dict[str, Optional[Job]]:
        """Register both daily jobs (UTC hours).

        Returns:
            Mapping of job id to the scheduled Job
        """
        return {
            MERGE_JOB_ID: self._add_daily_job(MERGE_JOB_ID, "Merge deals", merge_hour, self.run_merge),
            ALERTS_JOB_ID: self._add_daily_job(
                ALERTS_JOB_ID, "Check alerts", alerts_hour, self.run_alert_check
            ),
        }

    def _add_daily_job(self, job_id: str, name: str, hour: int, func: JobFunc) -> Job:
        job = self.scheduler.add_job(
            func=self._run_job_wrapper,
            trigger=CronTrigger(hour=hour, minute=0, timezone="UTC"),
            args=[job_id, func],
            id=job_id,
            name=name,
            replace_existing=True,
            max_instances=1,  # Never overlap a slow run with the next one
            coalesce=True,
        )
        self.logger.info(
            "daily_job_added",
            job_id=job_id,
            hour=hour,
            next_run=job.next_run_time.isoformat() if getattr(job, "next_run_time", None) else None,
        )
        return job

    async def _run_job_wrapper(self, job_id: str, func: JobFunc) -> None:
        self.logger.info("job_started", job_id=job_id)
        try:
            await func()
        except Exception as e:
            self.logger.error(
                "job_failed",
                job_id=job_id,
                error=str(e),
                exc_info=True,
            )
            return
        self.logger.info("job_completed", job_id=job_id)
