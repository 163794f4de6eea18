"""
Auto-Check Runner

Holds the single process-wide sweep state. Only one sweep runs at a time;
a second run_now() while one is active fails immediately instead of
queuing. Stop requests are cooperative and take effect between brands.
"""

import asyncio
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from serptrack.database import repository
from serptrack.database.models import ActivityAction
from serptrack.database.session import get_db_context
from serptrack.errors import AlreadyRunningError

from .orchestrator import SerpRunService, SweepProgress, SweepResult

logger = logging.getLogger(__name__)


ActivitySink = Callable[[ActivityAction, str, Dict[str, Any]], None]


def record_activity_sink(action: ActivityAction, note: str, metadata: Dict[str, Any]) -> None:
    """Default sink: append to the activity log table."""
    with get_db_context() as db:
        repository.record_activity(db, action, note=note, actor="system", metadata=metadata)


@dataclass
class RunSummary:
    source: str
    total_brands: int
    ok_count: int
    fail_count: int
    stopped: bool


@dataclass
class RunnerStatus:
    """Snapshot returned by get_status()."""
    is_running: bool
    stop_requested: bool
    last_run_started_at: Optional[datetime]
    last_run_finished_at: Optional[datetime]
    last_run_source: Optional[str]
    last_run_summary: Optional[RunSummary]
    last_error: Optional[str]
    progress: SweepProgress

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_IDLE_PROGRESS = SweepProgress(processed_brands=0, total_brands=0, brand_code="")


class AutoCheckRunner:
    """
    Runs sweeps and exposes their status.

    Usage:
        runner = AutoCheckRunner(service)
        sweep = await runner.run_now()
        runner.request_stop()   # from another task while a sweep runs
    """

    def __init__(
        self,
        service: SerpRunService,
        activity_sink: Optional[ActivitySink] = record_activity_sink,
        on_status_change: Optional[Callable[[RunnerStatus], None]] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.service = service
        self._activity_sink = activity_sink
        self._on_status_change = on_status_change
        self._clock = clock

        self._is_running = False
        self._stop_requested = False
        self._last_run_started_at: Optional[datetime] = None
        self._last_run_finished_at: Optional[datetime] = None
        self._last_run_source: Optional[str] = None
        self._last_run_summary: Optional[RunSummary] = None
        self._last_error: Optional[str] = None
        self._progress = _IDLE_PROGRESS

    @property
    def is_running(self) -> bool:
        return self._is_running

    def get_status(self) -> RunnerStatus:
        return RunnerStatus(
            is_running=self._is_running,
            stop_requested=self._stop_requested,
            last_run_started_at=self._last_run_started_at,
            last_run_finished_at=self._last_run_finished_at,
            last_run_source=self._last_run_source,
            last_run_summary=self._last_run_summary,
            last_error=self._last_error,
            progress=self._progress,
        )

    async def run_now(self, source: str = "manual") -> SweepResult:
        """
        Run one sweep over all active brands.

        Raises:
            AlreadyRunningError: A sweep is already in progress
        """
        if self._is_running:
            raise AlreadyRunningError("Auto check is already running")

        self._start(source)
        self._emit(ActivityAction.AUTO_START, f"Auto check started ({source})", {"source": source})

        try:
            sweep = await self.service.run_auto_check_for_all_brands(
                should_stop=lambda: self._stop_requested,
                on_progress=self._set_progress,
            )
        except asyncio.CancelledError:
            self._finish(error=RuntimeError("Auto check cancelled"))
            raise
        except Exception as e:
            self._finish(error=e)
            raise

        summary = RunSummary(
            source=source,
            total_brands=len(sweep.outcomes),
            ok_count=sweep.ok_count,
            fail_count=sweep.fail_count,
            stopped=sweep.stopped,
        )
        self._finish(summary=summary)

        if sweep.stopped:
            self._emit(ActivityAction.AUTO_STOP, "Auto check stopped", asdict(summary))
        self._emit(
            ActivityAction.AUTO_CHECK,
            f"Auto check finished: {summary.ok_count} ok, {summary.fail_count} failed",
            asdict(summary),
        )
        return sweep

    def request_stop(self) -> bool:
        """Ask the running sweep to stop before its next brand. False when idle."""
        if not self._is_running:
            return False
        self._stop_requested = True
        logger.info("Stop requested for running auto check")
        self._notify()
        return True

    # -------------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------------

    def _start(self, source: str) -> None:
        self._is_running = True
        self._stop_requested = False
        self._progress = _IDLE_PROGRESS
        self._last_run_started_at = self._clock()
        self._last_run_source = source
        self._last_error = None
        logger.info(f"Auto check started (source={source})")
        self._notify()

    def _finish(self, summary: Optional[RunSummary] = None, error: Optional[BaseException] = None) -> None:
        self._is_running = False
        self._last_run_finished_at = self._clock()
        if summary is not None:
            self._last_run_summary = summary
        if error is not None:
            self._last_error = str(error) or error.__class__.__name__
            logger.error(f"Auto check failed: {self._last_error}")
        self._notify()

    def _set_progress(self, progress: SweepProgress) -> None:
        self._progress = progress
        self._notify()

    def _notify(self) -> None:
        if self._on_status_change is None:
            return
        try:
            self._on_status_change(self.get_status())
        except Exception as e:
            logger.warning(f"Status change callback failed: {e}")

    def _emit(self, action: ActivityAction, note: str, metadata: Dict[str, Any]) -> None:
        if self._activity_sink is None:
            return
        try:
            self._activity_sink(action, note, metadata)
        except Exception as e:
            logger.warning(f"Activity log write failed for {action.value}: {e}")
