"""
Scheduler for harvest runs.

Uses APScheduler to trigger:
1. A full harvest at a fixed delay, starting shortly after startup
2. A daily incremental harvest
3. A weekly full harvest

Overlapping triggers are rejected by the orchestrator's single-flight guard.
"""

import logging
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..config import SchedulerConfig
from ..exceptions import AlreadyRunningError, IndexerError
from .orchestrator import HarvestOrchestrator

logger = logging.getLogger(__name__)


class IndexerScheduler:
    """Scheduler for harvest background jobs."""

    def __init__(self, orchestrator: HarvestOrchestrator, config: SchedulerConfig):
        self.orchestrator = orchestrator
        self.config = config
        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)

    def start(self):
        """Register the harvest jobs and start the scheduler."""
        cfg = self.config

        self.scheduler.add_job(
            self._full_harvest,
            trigger=IntervalTrigger(
                seconds=cfg.full_run_interval_sec,
                start_date=datetime.now(timezone.utc)
                + timedelta(seconds=cfg.initial_delay_sec),
            ),
            id="harvest_full_interval",
            name="Full harvest at fixed delay",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self._incremental_harvest,
            trigger=CronTrigger.from_crontab(cfg.daily_incremental_cron, timezone=timezone.utc),
            id="harvest_daily_incremental",
            name="Daily incremental harvest",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self._full_harvest,
            trigger=CronTrigger.from_crontab(cfg.weekly_full_cron, timezone=timezone.utc),
            id="harvest_weekly_full",
            name="Weekly full harvest",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self.scheduler.start()
        logger.info(
            f"Harvest scheduler started. Full harvest every {cfg.full_run_interval_sec}s "
            f"after {cfg.initial_delay_sec}s, incremental '{cfg.daily_incremental_cron}', "
            f"weekly full '{cfg.weekly_full_cron}'"
        )

    def stop(self):
        """Stop the scheduler."""
        self.scheduler.shutdown(wait=False)
        logger.info("Harvest scheduler stopped")

    async def _full_harvest(self):
        try:
            await self.orchestrator.run_full()
        except AlreadyRunningError:
            logger.warning("Full harvest skipped, a harvest is already running")
        except IndexerError as e:
            logger.error(f"Full harvest failed: {e}")

    async def _incremental_harvest(self):
        try:
            await self.orchestrator.run_incremental()
        except AlreadyRunningError:
            logger.warning("Incremental harvest skipped, a harvest is already running")
        except IndexerError as e:
            logger.error(f"Incremental harvest failed: {e}")


__all__ = ["IndexerScheduler"]
