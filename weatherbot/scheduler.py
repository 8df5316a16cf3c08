import logging
from datetime import timezone
from typing import Any, Dict, Optional

from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from weatherbot.config import settings
from weatherbot.services.cache import WeatherCache
from weatherbot.services.context import LocationProvider

logger = logging.getLogger(__name__)


def _next_run(job) -> Optional[str]:
    # jobs added before the scheduler starts have no next_run_time yet
    next_run = getattr(job, "next_run_time", None)
    return next_run.isoformat() if next_run else None


class TaskScheduler:
    """Background jobs that keep the weather cache warm."""

    def __init__(self, weather_cache: WeatherCache, location_provider: LocationProvider,
                 refresh_minutes: Optional[int] = None):
        self.weather_cache = weather_cache
        self.location_provider = location_provider
        self.refresh_minutes = refresh_minutes or settings.CACHE_REFRESH_MINUTES
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.jobstores = {'default': MemoryJobStore()}
        self.job_defaults = {
            'coalesce': True,
            'max_instances': 1,
            'misfire_grace_time': 300
        }

    def initialize(self):
        logger.info("🔄 Initializing task scheduler...")

        self.scheduler = AsyncIOScheduler(
            jobstores=self.jobstores,
            job_defaults=self.job_defaults,
            timezone=timezone.utc
        )

        self.scheduler.add_job(
            self.refresh_weather_cache,
            IntervalTrigger(minutes=self.refresh_minutes),
            id='refresh_weather_cache',
            name='Refresh home weather cache',
            replace_existing=True
        )

        self.scheduler.add_job(
            self.log_cache_stats,
            IntervalTrigger(hours=1),
            id='cache_stats',
            name='Log weather cache statistics',
            replace_existing=True
        )

        logger.info(f"Configured {len(self.scheduler.get_jobs())} jobs")

    async def refresh_weather_cache(self) -> Dict[str, int]:
        logger.info("🔄 Refreshing weather cache...")
        try:
            location = await self.location_provider.get_location()
            return await self.weather_cache.update_locations_cache([location])
        except Exception as e:
            logger.error(f"❌ Weather cache refresh failed: {e}")
            return {"success": 0, "failed": 1}

    async def log_cache_stats(self) -> Dict[str, Any]:
        try:
            stats = await self.weather_cache.get_cache_stats()
        except Exception as e:
            logger.error(f"❌ Could not collect cache stats: {e}")
            return {}

        logger.info(
            f"📊 Weather cache: {stats['entries']} entries "
            f"({stats['current_entries']} current, {stats['forecast_entries']} forecast), "
            f"backend: {stats['backend']}"
        )
        return stats

    def start(self):
        if self.scheduler is None:
            self.initialize()
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("🚀 Task scheduler started")

            for job in self.scheduler.get_jobs():
                logger.info(f"  • {job.name} ({job.id}) - next run: {_next_run(job)}")

    def shutdown(self):
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("🛑 Task scheduler stopped")

    def get_scheduler_info(self) -> Dict[str, Any]:
        if not self.scheduler:
            return {"status": "not_initialized"}

        jobs = self.scheduler.get_jobs()

        return {
            "status": "running" if self.scheduler.running else "stopped",
            "job_count": len(jobs),
            "jobs": [
                {
                    "id": job.id,
                    "name": job.name,
                    "next_run": _next_run(job),
                    "trigger": str(job.trigger)
                }
                for job in jobs
            ]
        }
