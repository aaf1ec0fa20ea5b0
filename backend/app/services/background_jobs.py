"""
services/background_jobs.py

Scheduled background jobs for case priority analysis.

Jobs:
  1. hourly_priority_analysis
     - Selects cases due for (re)scoring and scores them in batches.
     - Skipped if another run is still in progress.

  2. daily_case_maintenance
     - Recomputes case statistics and lawyer active-case counts.
     - Runs at a low-traffic hour; waits for an in-flight hourly run.

Both jobs share one run lock, so they never overlap. The lock lives in
memory: exactly one scheduler process may run per deployment.

Setup (APScheduler, add to your FastAPI app startup):

    from app.services.background_jobs import start_scheduler, shutdown_scheduler
    from contextlib import asynccontextmanager

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        start_scheduler()
        yield
        shutdown_scheduler()

    app = FastAPI(lifespan=lifespan)
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.database import SessionLocal
from app.db.models import Case
from app.services.case_priority_service import (
    BatchRunResult,
    CasePriorityService,
    case_priority_service,
)
from app.services.case_store import CaseStore, case_store
from app.services.workload_service import (
    WorkloadRebalanceResult,
    WorkloadService,
    workload_service,
)
from app.utils.exceptions import CaseNotFoundError
from app.utils.helpers import utcnow

logger = logging.getLogger(__name__)


class SchedulerState(str, enum.Enum):
    idle = "idle"
    processing = "processing"
    maintenance = "maintenance"


@dataclass
class RunSummary:
    started_at: datetime
    finished_at: datetime
    selected: int
    result: BatchRunResult = field(default_factory=BatchRunResult)

    def as_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "selected": self.selected,
            **self.result.as_dict(),
        }


@dataclass
class MaintenanceSummary:
    finished_at: datetime
    statistics: dict[str, Any]
    workload: WorkloadRebalanceResult

    def as_dict(self) -> dict[str, Any]:
        return {
            "finished_at": self.finished_at.isoformat(),
            "statistics": self.statistics,
            "workload": self.workload.as_dict(),
        }


class CasePriorityScheduler:
    """
    Owns the run state machine (idle → processing/maintenance → idle) and the
    APScheduler jobs that drive it. Construct one per process; tests build
    their own with injected collaborators.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        priority_service: Optional[CasePriorityService] = None,
        workload: Optional[WorkloadService] = None,
        store: Optional[CaseStore] = None,
        selection_limit: Optional[int] = None,
        reanalyze_after_hours: Optional[int] = None,
    ) -> None:
        self.session_factory = session_factory
        self.priority_service = priority_service or case_priority_service
        self.workload = workload or workload_service
        self.store = store or case_store
        self.selection_limit = selection_limit or settings.SCHEDULER_SELECTION_LIMIT
        self.reanalyze_after_hours = reanalyze_after_hours or settings.SCHEDULER_REANALYZE_AFTER_HOURS

        self.state = SchedulerState.idle
        self.last_run_at: Optional[datetime] = None
        self.last_daily_run_at: Optional[datetime] = None
        self._run_lock = asyncio.Lock()
        self._background_tasks: set[asyncio.Task] = set()
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def is_processing(self) -> bool:
        return self.state == SchedulerState.processing

    def _set_state(self, state: SchedulerState) -> None:
        logger.debug("Priority scheduler %s → %s", self.state.value, state.value)
        self.state = state

    # ------------------------------------------------------------------
    # Hourly run
    # ------------------------------------------------------------------

    async def run_hourly_analysis(self) -> Optional[RunSummary]:
        """
        Select due cases and score them. Returns None when skipped because
        another run holds the lock. Selection errors propagate.
        """
        if self._run_lock.locked():
            logger.info("Priority analysis already running, skipping this trigger")
            return None

        async with self._run_lock:
            self._set_state(SchedulerState.processing)
            started_at = utcnow()
            db = self.session_factory()
            try:
                cases = self.store.find_cases_for_analysis(
                    db,
                    started_at,
                    limit=self.selection_limit,
                    reanalyze_after_hours=self.reanalyze_after_hours,
                )
                if not cases:
                    logger.info("No cases need priority analysis")
                    result = BatchRunResult()
                else:
                    logger.info("Analyzing %d cases for priority", len(cases))
                    result = await self.priority_service.run_batches(db, cases, started_at)

                self.last_run_at = utcnow()
                return RunSummary(
                    started_at=started_at,
                    finished_at=self.last_run_at,
                    selected=len(cases),
                    result=result,
                )
            finally:
                db.close()
                self._set_state(SchedulerState.idle)

    def trigger_hourly_analysis(self) -> bool:
        """Fire-and-forget run for admin use. Must be called inside the event loop."""
        if self._run_lock.locked():
            logger.info("Priority analysis already running, manual trigger ignored")
            return False

        task = asyncio.get_running_loop().create_task(self._hourly_job())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return True

    async def _hourly_job(self) -> None:
        try:
            summary = await self.run_hourly_analysis()
            if summary is not None:
                logger.info("Job: hourly_priority_analysis: done. %s", summary.as_dict())
        except Exception as e:
            logger.exception("Job: hourly_priority_analysis failed: %s", e)

    # ------------------------------------------------------------------
    # Daily maintenance
    # ------------------------------------------------------------------

    async def run_daily_maintenance(self) -> MaintenanceSummary:
        async with self._run_lock:
            self._set_state(SchedulerState.maintenance)
            db = self.session_factory()
            try:
                statistics = self.workload.compute_case_statistics(db)
                logger.info("Current case statistics: %s", statistics)
                workload = self.workload.rebalance_lawyer_workloads(db)

                self.last_daily_run_at = utcnow()
                return MaintenanceSummary(
                    finished_at=self.last_daily_run_at,
                    statistics=statistics,
                    workload=workload,
                )
            finally:
                db.close()
                self._set_state(SchedulerState.idle)

    async def _daily_job(self) -> None:
        try:
            summary = await self.run_daily_maintenance()
            logger.info("Job: daily_case_maintenance: done. %s", summary.workload.as_dict())
        except Exception as e:
            logger.exception("Job: daily_case_maintenance failed: %s", e)

    # ------------------------------------------------------------------
    # On-demand single case
    # ------------------------------------------------------------------

    async def analyze_case_now(self, case_id: Any, db: Optional[Session] = None) -> Case:
        """
        Score one case immediately, bypassing selection and batching.
        Raises CaseNotFoundError; scoring and save errors propagate.
        """
        owns_session = db is None
        db = db or self.session_factory()
        try:
            case = self.store.get_case(db, case_id)
            if case is None:
                raise CaseNotFoundError(str(case_id))

            logger.info("On-demand priority analysis for case %s", case.case_number)
            await self.priority_service.analyze_case(db, case)
            db.refresh(case)
            return case
        finally:
            if owns_session:
                db.close()

    # ------------------------------------------------------------------
    # APScheduler wiring
    # ------------------------------------------------------------------

    def start(self, paused: bool = False) -> None:
        """Register cron jobs and start APScheduler. Call from FastAPI lifespan startup."""
        tz = ZoneInfo(settings.SCHEDULER_TIMEZONE)
        self._scheduler = AsyncIOScheduler(timezone=tz)

        self._scheduler.add_job(
            self._hourly_job,
            trigger=CronTrigger(minute=settings.SCHEDULER_HOURLY_MINUTE, timezone=tz),
            id="hourly_priority_analysis",
            name="Hourly case priority analysis",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )

        self._scheduler.add_job(
            self._daily_job,
            trigger=CronTrigger(
                hour=settings.SCHEDULER_DAILY_HOUR,
                minute=settings.SCHEDULER_DAILY_MINUTE,
                timezone=tz,
            ),
            id="daily_case_maintenance",
            name="Daily case statistics and workload rebalance",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=1800,
        )

        self._scheduler.start(paused=paused)
        logger.info("Case priority scheduler started with 2 jobs registered")

    def shutdown(self) -> None:
        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Case priority scheduler shut down")
        self._scheduler = None

    def jobs(self) -> list:
        return self._scheduler.get_jobs() if self._scheduler else []

    def status(self) -> dict[str, Any]:
        healthy = bool(
            self.last_run_at
            and utcnow() - self.last_run_at < timedelta(hours=settings.SCHEDULER_HEALTHY_WITHIN_HOURS)
        )
        return {
            "state": self.state.value,
            "is_processing": self.is_processing,
            "healthy": healthy,
            "last_run_at": self.last_run_at,
            "last_daily_run_at": self.last_daily_run_at,
            "jobs_registered": len(self.jobs()),
        }


# ── Scheduler singleton ───────────────────────────────────────────────────────
case_priority_scheduler = CasePriorityScheduler()


def start_scheduler() -> None:
    if not settings.SCHEDULER_ENABLED:
        logger.info("Case priority scheduler disabled")
        return
    case_priority_scheduler.start()


def shutdown_scheduler() -> None:
    case_priority_scheduler.shutdown()
