# background/cutoff_scheduler.py
"""
Cutoff Scheduler - runs the monthly settlement on the configured cutoff day.
Uses APScheduler for task scheduling.
"""
import calendar
import logging
from datetime import date, datetime, timezone
from typing import Callable, Dict, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from config import Config
from core.db import get_db_session_ctx
from network_comp.config.constants import CutoffStatus
from network_comp.repositories.config_repository import ConfigRepository
from network_comp.repositories.cutoff_repository import CutoffRepository
from network_comp.services.settlement_service import SettlementService
from network_comp.utils.period import previousPeriod

logger = logging.getLogger(__name__)


def effectiveCutoffDay(year: int, month: int, cutoffDay: int) -> int:
    """Cutoff day clamped to the length of the month (31 -> 28 in February)."""
    return min(cutoffDay, calendar.monthrange(year, month)[1])


class CutoffScheduler:
    """
    Background scheduler for monthly settlement.

    On the cutoff day the previous calendar month is settled: its window is
    complete by then.
    """

    def __init__(self, sessionFactory: Callable = get_db_session_ctx, hour: Optional[int] = None):
        """
        Initialize scheduler.

        Args:
            sessionFactory: Context manager factory yielding a session
            hour: UTC hour of the daily check (Config CUTOFF_HOUR by default)
        """
        self.sessionFactory = sessionFactory
        self.hour = hour if hour is not None else Config.get(Config.CUTOFF_HOUR, 0)
        self.isRunning = False
        self.cancelRequested = False

        self.scheduler = AsyncIOScheduler(
            timezone='UTC',
            job_defaults={
                'coalesce': True,
                'max_instances': 1,
                'misfire_grace_time': 3600
            }
        )

        # Statistics
        self.stats = {
            "cutoffsProcessed": 0,
            "membersProcessed": 0,
            "errors": 0,
            "lastError": None,
            "startedAt": None,
            "lastCheckAt": None,
            "lastCutoff": None
        }

    async def start(self):
        """Start scheduler with the daily cutoff check."""
        if self.isRunning:
            logger.warning("Cutoff Scheduler already running")
            return

        logger.info("=" * 60)
        logger.info("Starting Cutoff Scheduler with APScheduler")
        logger.info("=" * 60)

        self.isRunning = True
        self.cancelRequested = False
        self.stats["startedAt"] = datetime.now(timezone.utc)

        # ═══════════════════════════════════════════════════════════════
        # JOB: Daily cutoff check
        # ═══════════════════════════════════════════════════════════════
        self.scheduler.add_job(
            func=self._safe_cutoff_wrapper,
            trigger=CronTrigger(hour=self.hour, minute=0),
            id='monthly_cutoff',
            name=f'Monthly Cutoff Check ({self.hour:02d}:00 UTC)',
            replace_existing=True
        )
        logger.info(f"✓ Job registered: Monthly Cutoff Check ({self.hour:02d}:00 UTC)")

        self.scheduler.start()

        logger.info(f"✅ Cutoff Scheduler started, active jobs: {len(self.scheduler.get_jobs())}")

    async def stop(self):
        """Stop scheduler; a running cutoff stops after its current member."""
        if not self.isRunning:
            return

        logger.info("Stopping Cutoff Scheduler...")
        self.isRunning = False
        self.cancelRequested = True

        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        logger.info("✓ Cutoff Scheduler stopped")

    # ═══════════════════════════════════════════════════════════════════
    # SAFE WRAPPER (error handling for APScheduler jobs)
    # ═══════════════════════════════════════════════════════════════════

    async def _safe_cutoff_wrapper(self):
        """Safe wrapper for the cutoff check."""
        try:
            await self.checkCutoff()
        except Exception as e:
            logger.error(f"Error in cutoff job: {e}", exc_info=True)
            self.stats["errors"] += 1
            self.stats["lastError"] = str(e)

    # ═══════════════════════════════════════════════════════════════════
    # CUTOFF
    # ═══════════════════════════════════════════════════════════════════

    def _shouldCancel(self) -> bool:
        return self.cancelRequested

    async def checkCutoff(self, today: Optional[date] = None) -> Optional[Dict]:
        """
        Settle the previous month when today is the cutoff day.

        Args:
            today: Date to check (UTC today by default)

        Returns:
            Settlement summary, or None when nothing was due
        """
        today = today or datetime.now(timezone.utc).date()
        self.stats["lastCheckAt"] = datetime.now(timezone.utc)

        with self.sessionFactory() as session:
            config = ConfigRepository(session).get()
            if today.day != effectiveCutoffDay(today.year, today.month, config.monthlyCutoffDay):
                logger.debug(f"{today} is not a cutoff day (day {config.monthlyCutoffDay})")
                return None

            year, month = previousPeriod(today.year, today.month)
            cutoffs = CutoffRepository(session)
            cutoff = cutoffs.find(year, month)

            if cutoff is None:
                cutoffs.create(year, month, cutoffDay=config.monthlyCutoffDay, notes="Created by scheduler")
                session.commit()
            elif cutoff.status == CutoffStatus.COMPLETED.value:
                logger.info(f"Cutoff {year}-{month:02d} already completed, skipping")
                return None

            logger.info(f"Running cutoff {year}-{month:02d}")
            result = await SettlementService(session).processCutoff(
                year, month, shouldCancel=self._shouldCancel
            )

        self.stats["lastCutoff"] = f"{year}-{month:02d}"
        self.stats["membersProcessed"] += result["processed"]
        if not result["cancelled"]:
            self.stats["cutoffsProcessed"] += 1

        return result

    def getStats(self) -> Dict:
        """Get scheduler statistics."""
        return {
            **self.stats,
            "isRunning": self.isRunning,
            "hour": self.hour,
        }
