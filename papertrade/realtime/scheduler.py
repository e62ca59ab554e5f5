"""
Scheduler for the market data refresh job.

Uses APScheduler to refresh cached quotes on a fixed interval while the
US market is open (Mon-Fri 09:30-16:00 America/New_York). Outside market
hours the job wakes up and returns without calling the provider.

A refresh can also be triggered on demand through run_now(), which ignores
market hours.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from papertrade.application.trading.refresh_market_data import RefreshMarketDataUseCase
from papertrade.domain.trading.market_hours import is_market_open

logger = logging.getLogger(__name__)

JOB_ID = "market_refresh"


class TaskStatus(Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class TaskResult:
    """Result of one refresh attempt."""

    task_name: str
    status: TaskStatus
    started_at: str
    finished_at: str | None = None
    duration_seconds: float = 0.0
    details: dict = field(default_factory=dict)
    error: str | None = None


class MarketRefreshScheduler:
    """Runs RefreshMarketDataUseCase in a background thread.

    Usage:
        scheduler = MarketRefreshScheduler(use_case, interval_seconds=60)
        scheduler.start()     # begin the interval job
        scheduler.run_now()   # refresh immediately, market open or not
        scheduler.stop()      # graceful shutdown
    """

    def __init__(
        self,
        use_case: RefreshMarketDataUseCase,
        interval_seconds: int = 60,
        market_open: Callable[[], bool] = is_market_open,
    ) -> None:
        self._use_case = use_case
        self._interval = interval_seconds
        self._market_open = market_open
        self._scheduler: Optional[BackgroundScheduler] = None
        self._task_history: list[TaskResult] = []
        self._max_history = 200
        self._lock = threading.Lock()
        # One refresh at a time, whether scheduled or on demand.
        self._run_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    @property
    def task_history(self) -> list[TaskResult]:
        with self._lock:
            return list(self._task_history)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the interval job."""
        if self._scheduler is not None:
            logger.warning("Market refresh scheduler already running.")
            return

        self._scheduler = BackgroundScheduler(
            timezone="America/New_York",
            job_defaults={"coalesce": True, "max_instances": 1},
        )
        self._scheduler.add_job(
            self._scheduled_refresh,
            IntervalTrigger(seconds=self._interval),
            id=JOB_ID,
            name="Market data refresh",
        )
        self._scheduler.start()
        logger.info("Market refresh scheduler started (every %ds).", self._interval)

    def stop(self) -> None:
        """Gracefully stop the scheduler."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        logger.info("Market refresh scheduler stopped.")

    def run_now(self) -> TaskResult:
        """Refresh immediately (blocking), regardless of market hours."""
        return self._run("manual_refresh")

    # ------------------------------------------------------------------
    # Task implementations
    # ------------------------------------------------------------------

    def _scheduled_refresh(self) -> TaskResult:
        if not self._market_open():
            result = TaskResult(
                task_name=JOB_ID,
                status=TaskStatus.SKIPPED,
                started_at=datetime.now(timezone.utc).isoformat(),
                finished_at=datetime.now(timezone.utc).isoformat(),
                details={"reason": "market closed"},
            )
            logger.debug("Market closed, refresh skipped.")
            self._record_result(result)
            return result
        return self._run(JOB_ID)

    def _run(self, task_name: str) -> TaskResult:
        start = time.monotonic()
        started_at = datetime.now(timezone.utc).isoformat()
        with self._run_lock:
            try:
                outcome = self._use_case.execute()
                task_result = TaskResult(
                    task_name=task_name,
                    status=TaskStatus.COMPLETED,
                    started_at=started_at,
                    finished_at=datetime.now(timezone.utc).isoformat(),
                    duration_seconds=round(time.monotonic() - start, 2),
                    details={
                        "symbols": outcome.symbols,
                        "updated": outcome.updated,
                        "failed": outcome.failed,
                        "seeded": outcome.seeded,
                    },
                )
            except Exception as exc:
                task_result = TaskResult(
                    task_name=task_name,
                    status=TaskStatus.FAILED,
                    started_at=started_at,
                    finished_at=datetime.now(timezone.utc).isoformat(),
                    duration_seconds=round(time.monotonic() - start, 2),
                    error=str(exc),
                )
                logger.exception("Market data refresh failed.")

        self._record_result(task_result)
        return task_result

    def _record_result(self, result: TaskResult) -> None:
        with self._lock:
            self._task_history.append(result)
            if len(self._task_history) > self._max_history:
                self._task_history = self._task_history[-self._max_history:]

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_scheduled_jobs(self) -> list[dict]:
        """Return info about all scheduled jobs."""
        if self._scheduler is None:
            return []
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger),
            }
            for job in self._scheduler.get_jobs()
        ]

    def get_status(self) -> dict:
        """Return scheduler status summary."""
        history = self.task_history
        last = history[-1] if history else None
        return {
            "running": self.is_running,
            "interval_seconds": self._interval,
            "market_open": self._market_open(),
            "jobs": self.get_scheduled_jobs(),
            "last_run": (
                {
                    "task": last.task_name,
                    "status": last.status.value,
                    "started_at": last.started_at,
                    "duration_seconds": last.duration_seconds,
                    "details": last.details,
                    "error": last.error,
                }
                if last
                else None
            ),
            "total_runs": len(history),
            "failed_runs": sum(1 for r in history if r.status == TaskStatus.FAILED),
        }
