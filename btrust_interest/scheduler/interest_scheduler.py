"""
Interest schedulers - recurring FD and Savings batch triggers.

Cron format: minute hour day month weekday, or with a leading seconds field:
second minute hour day month weekday.

    '0 3 * * *'     every day at 03:00 (FD default)
    '30 3 * * *'    every day at 03:30 (Savings default)
    '*/10 * * * * *' every 10 seconds

INTEREST_CRON_DEBUG=1 replaces both schedules with a fixed interval
(INTEREST_DEBUG_INTERVAL_SECONDS, default 10).
"""

import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime
from typing import Callable, Dict, Iterator, Optional

from apscheduler.job import Job
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from btrust_interest.config import Settings, resolve_schedules, settings
from btrust_interest.domain.exceptions import ConfigurationError, RunInProgressError
from btrust_interest.domain.models import InterestKind, RunSummary
from btrust_interest.infrastructure.ledger.factory import validate_ledger_backend
from btrust_interest.infrastructure.observability.metrics import record_overlap_skip
from btrust_interest.services.interest_batch import run_interest_batch

BatchRunner = Callable[[InterestKind, Optional[date]], RunSummary]

MISFIRE_GRACE_SECONDS = 600


class RunGuard:
    """One in-flight run per interest kind, shared by scheduled and manual triggers"""

    def __init__(self):
        self._locks = {kind: threading.Lock() for kind in InterestKind}

    @contextmanager
    def hold(self, kind: InterestKind) -> Iterator[None]:
        lock = self._locks[kind]
        if not lock.acquire(blocking=False):
            raise RunInProgressError(kind.value)
        try:
            yield
        finally:
            lock.release()

    def is_running(self, kind: InterestKind) -> bool:
        return self._locks[kind].locked()


def build_cron_trigger(expression: str, timezone: str) -> CronTrigger:
    """
    Parse a 5-field crontab or a 6-field expression with leading seconds.

    Raises:
        ConfigurationError: wrong field count, bad field values or unknown timezone
    """
    fields = expression.split()
    if len(fields) not in (5, 6):
        raise ConfigurationError(f"Cron expression {expression!r} must have 5 or 6 fields")

    try:
        if len(fields) == 5:
            return CronTrigger.from_crontab(expression, timezone=timezone)
        second, minute, hour, day, month, day_of_week = fields
        return CronTrigger(
            second=second,
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=day_of_week,
            timezone=timezone,
        )
    except (ValueError, KeyError) as e:
        raise ConfigurationError(f"Invalid cron expression {expression!r}: {e}") from e


class InterestSchedulerHandle:
    """
    Owns the scheduler and its two job registrations.

    Each firing is isolated: an exception or failed run is logged and never
    cancels later firings or touches the other kind's job.
    """

    def __init__(
        self,
        scheduler: BackgroundScheduler,
        runner: BatchRunner,
        guard: Optional[RunGuard] = None,
        debug_mode: bool = False,
    ):
        self.scheduler = scheduler
        self.runner = runner
        self.guard = guard or RunGuard()
        self.debug_mode = debug_mode
        self.jobs: Dict[InterestKind, Job] = {}
        self.schedules: Dict[InterestKind, str] = {}

    def register(self, kind: InterestKind, trigger: BaseTrigger, schedule: str) -> Job:
        job = self.scheduler.add_job(
            self.fire,
            trigger=trigger,
            args=[kind],
            id=f"{kind.value}-interest",
            name=f"{kind.label} interest processor",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=MISFIRE_GRACE_SECONDS,
            replace_existing=True,
        )
        self.jobs[kind] = job
        self.schedules[kind] = schedule
        return job

    def fire(self, kind: InterestKind) -> Optional[RunSummary]:
        """Scheduled entry point; returns the summary, or None if the firing did not run"""
        try:
            with self.guard.hold(kind):
                return self.runner(kind, None)
        except RunInProgressError:
            record_overlap_skip(kind.value)
            logging.warning(
                f"{kind.label} interest run still in progress, skipping this firing",
                extra={"kind": kind.value, "step": "scheduler_overlap"},
            )
        except Exception:
            logging.exception(f"{kind.label} interest scheduler error", extra={"kind": kind.value})
        return None

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def next_run_times(self) -> Dict[str, Optional[datetime]]:
        return {kind.value: getattr(job, "next_run_time", None) for kind, job in self.jobs.items()}

    def describe(self) -> Dict[str, Dict[str, object]]:
        """Schedule, debug flag, next firing and in-flight state per kind"""
        next_runs = self.next_run_times()
        return {
            kind.value: {
                "schedule": self.schedules[kind],
                "debug_mode": self.debug_mode,
                "next_run_at": next_runs[kind.value].isoformat() if next_runs[kind.value] else None,
                "running": self.guard.is_running(kind),
            }
            for kind in self.jobs
        }

    def stop(self, wait: bool = True) -> None:
        """Stop future firings; with wait=True, block until in-flight runs finish"""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logging.info("Interest schedulers stopped")


def _interval_trigger(seconds: int, timezone: str) -> IntervalTrigger:
    try:
        return IntervalTrigger(seconds=seconds, timezone=timezone)
    except (ValueError, KeyError) as e:
        raise ConfigurationError(f"Invalid scheduler timezone {timezone!r}: {e}") from e


def _default_runner(actor_id: int) -> BatchRunner:
    def run(kind: InterestKind, as_of_date: Optional[date] = None) -> RunSummary:
        return run_interest_batch(kind, as_of_date, system_actor_id=actor_id)

    return run


def start_interest_schedulers(
    config: Settings = settings,
    runner: Optional[BatchRunner] = None,
    guard: Optional[RunGuard] = None,
) -> InterestSchedulerHandle:
    """
    Register and start the FD and Savings interest jobs.

    Configuration is validated before anything is scheduled.

    Raises:
        ConfigurationError: missing system actor, unknown ledger backend, malformed
            cron expression or timezone
    """
    if config.system_actor_employee_id is None:
        raise ConfigurationError("SYSTEM_ACTOR_EMPLOYEE_ID must be set before interest schedulers start")
    validate_ledger_backend(config.ledger_backend)

    debug = config.interest_cron_debug
    fd_schedule, savings_schedule = resolve_schedules(config)
    if debug:
        if config.interest_debug_interval_seconds <= 0:
            raise ConfigurationError("INTEREST_DEBUG_INTERVAL_SECONDS must be positive")
        interval = config.interest_debug_interval_seconds
        fd_trigger = _interval_trigger(interval, config.scheduler_timezone)
        savings_trigger = _interval_trigger(interval, config.scheduler_timezone)
    else:
        fd_trigger = build_cron_trigger(fd_schedule, config.scheduler_timezone)
        savings_trigger = build_cron_trigger(savings_schedule, config.scheduler_timezone)

    handle = InterestSchedulerHandle(
        BackgroundScheduler(timezone=fd_trigger.timezone),
        runner or _default_runner(config.system_actor_employee_id),
        guard=guard,
        debug_mode=debug,
    )
    handle.register(InterestKind.FD, fd_trigger, fd_schedule)
    handle.register(InterestKind.SAVINGS, savings_trigger, savings_schedule)
    handle.scheduler.start()

    if debug:
        logging.warning(
            f"DEBUG MODE: interest processors run every {config.interest_debug_interval_seconds} seconds. "
            "Set INTEREST_CRON_DEBUG=0 in production!",
            extra={"debug_mode": True, "step": "scheduler_start"},
        )
    logging.info(
        "Interest schedulers initialized",
        extra={
            "step": "scheduler_start",
            "debug_mode": debug,
            "fd_schedule": fd_schedule,
            "savings_schedule": savings_schedule,
        },
    )
    return handle
