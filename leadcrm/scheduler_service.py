"""
Scheduler for Lead CRM background jobs
- Monthly performance report on the 1st at 02:00 (app timezone)
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from leadcrm.config import APP_TIMEZONE

logger = logging.getLogger("scheduler")


class TaskScheduler:
    """Scheduled task manager"""

    def __init__(self, timezone: str = APP_TIMEZONE):
        self.timezone = timezone
        self.scheduler = AsyncIOScheduler(timezone=timezone)

    def start(self):
        """Register every job and start the scheduler"""
        self.scheduler.add_job(
            self.send_monthly_report,
            CronTrigger(day=1, hour=2, minute=0, timezone=self.timezone),
            id="monthly_report",
            name="Monthly performance report",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self.scheduler.start()
        logger.info(f"Scheduler started ({self.timezone})")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler stopped")

    # ==================== SCHEDULED TASKS ====================

    async def send_monthly_report(self):
        from leadcrm.services.monthly_report import generate_and_send_monthly_report

        logger.info("CRON JOB: Running monthly report generation task...")
        try:
            summary = await generate_and_send_monthly_report()
            logger.info(f"Monthly report run finished: {summary}")
        except Exception as e:
            logger.exception(f"Error generating and sending monthly report: {str(e)}")


# Global instance
task_scheduler = TaskScheduler()
