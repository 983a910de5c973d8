import logging
from datetime import datetime
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from epg_json.config import CustomSettings, settings as default_settings
from epg_json.services.epg_convert_service import convert_epg
from epg_json.services.image_db_service import update_image_database


logger = logging.getLogger(__name__)

CONVERT_JOB_ID = "epg_convert"
IMAGE_UPDATE_JOB_ID = "image_update"


class EPGScheduler:
    """Scheduler for periodic EPG conversion and image database updates"""

    def __init__(self, config: CustomSettings | None = None):
        self.settings = config or default_settings
        self.scheduler: AsyncIOScheduler | None = None

    async def _convert_job(self) -> None:
        """Background job that runs the EPG conversion"""
        logger.info("Scheduled EPG conversion triggered")
        try:
            result = await convert_epg(self.settings)
            if result.get("status") == "failed":
                logger.error(f"Scheduled conversion failed: {result.get('error', 'no source succeeded')}")
        except Exception as e:
            logger.error(f"Exception in scheduled conversion: {e}", exc_info=True)

    async def _image_update_job(self) -> None:
        """Background job that refreshes the image database"""
        logger.info("Scheduled image database update triggered")
        try:
            await update_image_database(self.settings)
        except Exception as e:
            logger.error(f"Exception in scheduled image update: {e}", exc_info=True)

    def _add_cron_job(self, job, cron: str, job_id: str) -> None:
        try:
            trigger = CronTrigger.from_crontab(cron)
        except (ValueError, KeyError) as exc:
            logger.error("Invalid cron expression '%s': %s", cron, exc)
            raise

        self.scheduler.add_job(
            job,
            trigger=trigger,
            id=job_id,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.settings.schedule_misfire_grace_sec
        )

    def start(self) -> None:
        """Start the scheduler with the configured jobs"""
        if self.scheduler and self.scheduler.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = AsyncIOScheduler(timezone='UTC')
        self._add_cron_job(self._convert_job, self.settings.epg_convert_cron, CONVERT_JOB_ID)
        if self.settings.image_update_cron:
            self._add_cron_job(self._image_update_job, self.settings.image_update_cron, IMAGE_UPDATE_JOB_ID)

        self.scheduler.start()
        next_time = self.get_next_run_time()
        logger.info(
            "Scheduler started. Next conversion: %s",
            next_time.isoformat() if next_time else "unknown"
        )

    def shutdown(self) -> None:
        """Shutdown the scheduler"""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler stopped")
            self.scheduler = None

    def get_next_run_time(self, job_id: str = CONVERT_JOB_ID) -> datetime | None:
        """Get next scheduled run time of a job"""
        if not self.scheduler:
            return None
        job = self.scheduler.get_job(job_id)
        return job.next_run_time if job else None
