"""Recurring trigger for the daily order status batch."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any

import schedule
from sqlalchemy.orm import Session

from portal.core.errors import ConfigurationError
from portal.services.delivery_dates import parse_order_time_limit
from portal.services.order_service import StatusUpdateResult, update_pending_orders_status
from portal.services.settings_service import SettingsProvider
from portal.utils.time import now_local

logger = logging.getLogger(__name__)

WEEKDAY_NAMES: tuple[str, ...] = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
BUSINESS_DAYS: tuple[int, ...] = (0, 1, 2, 3, 4)
DAILY_STATUS_TASK: str = "dailyOrderStatusUpdate"

StatusUpdater = Callable[..., StatusUpdateResult]


@dataclass(frozen=True)
class TriggerSpec:
    """When the batch fires: a time of day on a set of weekdays (Monday=0)."""

    run_at: time
    weekdays: tuple[int, ...]

    @property
    def at_string(self) -> str:
        return self.run_at.strftime("%H:%M")

    @property
    def cron_expression(self) -> str:
        cron_days = ",".join(str((day + 1) % 7) for day in self.weekdays)
        return f"{self.run_at.minute} {self.run_at.hour} * * {cron_days}"


def build_trigger(
    order_time_limit: str,
    *,
    offset_minutes: int = 5,
    weekdays: tuple[int, ...] = BUSINESS_DAYS,
) -> TriggerSpec:
    """Fire ``offset_minutes`` after the cutoff; a run pushed past midnight moves to the next weekday."""
    cutoff = parse_order_time_limit(order_time_limit)
    base_day = date(2024, 1, 1)
    fire_at = datetime.combine(base_day, cutoff) + timedelta(minutes=offset_minutes)
    day_shift = (fire_at.date() - base_day).days
    shifted = tuple(sorted({(day + day_shift) % 7 for day in weekdays}))
    return TriggerSpec(run_at=fire_at.time(), weekdays=shifted)


class ScheduledTask:
    """Handle over the ``schedule`` jobs that make up one recurring trigger."""

    def __init__(self, name: str, trigger: TriggerSpec, jobs: list[schedule.Job], runner: "JobRunner") -> None:
        self.name = name
        self.trigger = trigger
        self.jobs = jobs
        self.cancelled = False
        self._runner = runner

    def cancel(self) -> None:
        if self.cancelled:
            return
        self._runner.cancel_jobs(self.jobs)
        self.cancelled = True

    @property
    def next_run(self) -> datetime | None:
        runs = [job.next_run for job in self.jobs if job.next_run is not None]
        return min(runs) if runs else None


class JobRunner:
    """Drives a ``schedule.Scheduler`` from a daemon thread.

    ``timezone`` pins the fire time to the business zone; ``job.next_run`` stays
    naive host-local time, which is what ``schedule`` compares against.
    """

    def __init__(
        self,
        scheduler: schedule.Scheduler | None = None,
        *,
        poll_seconds: int = 30,
        timezone: str | None = None,
    ) -> None:
        self.scheduler = scheduler or schedule.Scheduler()
        self.poll_seconds = poll_seconds
        self.timezone = timezone
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._tasks: list[ScheduledTask] = []

    def schedule_daily(self, name: str, trigger: TriggerSpec, callback: Callable[[], Any]) -> ScheduledTask:
        with self._lock:
            jobs = [
                getattr(self.scheduler.every(), WEEKDAY_NAMES[day])
                .at(trigger.at_string, self.timezone)
                .do(callback)
                .tag(name)
                for day in trigger.weekdays
            ]
            task = ScheduledTask(name, trigger, jobs, self)
            self._tasks.append(task)
            return task

    def cancel_jobs(self, jobs: list[schedule.Job]) -> None:
        with self._lock:
            for job in jobs:
                self.scheduler.cancel_job(job)
            self._tasks = [task for task in self._tasks if task.jobs is not jobs]

    @property
    def active_tasks(self) -> list[ScheduledTask]:
        with self._lock:
            return [task for task in self._tasks if not task.cancelled]

    def run_pending(self) -> None:
        with self._lock:
            self.scheduler.run_pending()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="order-scheduler", daemon=True)
        self._thread.start()
        logger.info("[SCHEDULER] Runner thread started (poll=%ss)", self.poll_seconds)

    def stop(self, timeout: float = 5) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("[SCHEDULER] Runner thread stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop_event.wait(self.poll_seconds):
            try:
                self.run_pending()
            except Exception:
                logger.exception("[SCHEDULER] Unexpected error while running pending jobs")


def session_status_updater(session_factory: Callable[[], Session]) -> StatusUpdater:
    """Bind the batch update to sessions produced by ``session_factory``."""

    def _update(order_time_limit: str, **options: Any) -> StatusUpdateResult:
        with session_factory() as db:
            return update_pending_orders_status(db, order_time_limit, **options)

    return _update


class OrderScheduler:
    """Keeps exactly one daily trigger for the status batch in sync with the cutoff."""

    def __init__(
        self,
        settings_provider: SettingsProvider,
        status_updater: StatusUpdater,
        runner: JobRunner,
        *,
        offset_minutes: int = 5,
        weekdays: tuple[int, ...] = BUSINESS_DAYS,
        default_order_time_limit: str = "18:00",
    ) -> None:
        self.settings_provider = settings_provider
        self.status_updater = status_updater
        self.runner = runner
        self.offset_minutes = offset_minutes
        self.weekdays = weekdays
        self.default_order_time_limit = default_order_time_limit
        self.tasks: list[ScheduledTask] = []
        self.initialized = False
        self.order_time_limit: str | None = None
        self.last_run_at: datetime | None = None
        self.last_result: StatusUpdateResult | None = None
        self.last_error: str | None = None
        self._lock = threading.Lock()

    def initialize(self) -> None:
        if self.initialized:
            return
        try:
            order_time_limit = self.settings_provider.get_order_time_limit()
        except Exception:
            logger.exception(
                "[SCHEDULER] Could not read order time limit; using default %s",
                self.default_order_time_limit,
            )
            order_time_limit = self.default_order_time_limit

        with self._lock:
            self._replace_tasks(order_time_limit)
        self.initialized = True
        logger.info("[SCHEDULER] Order scheduler initialized (order_time_limit=%s)", order_time_limit)

    def update_task_settings(self, new_settings: Mapping[str, Any]) -> TriggerSpec:
        """Stop the current trigger and derive a new one from ``orderTimeLimit``."""
        order_time_limit = new_settings.get("orderTimeLimit") or self.default_order_time_limit
        logger.info("[SCHEDULER] Updating scheduled task settings (order_time_limit=%s)", order_time_limit)
        with self._lock:
            trigger = self._replace_tasks(order_time_limit)
        return trigger

    def _replace_tasks(self, order_time_limit: str) -> TriggerSpec:
        # Build first so a bad cutoff leaves the current trigger in place.
        trigger = build_trigger(order_time_limit, offset_minutes=self.offset_minutes, weekdays=self.weekdays)
        for task in self.tasks:
            task.cancel()
        self.tasks = [self.runner.schedule_daily(DAILY_STATUS_TASK, trigger, self._scheduled_run)]
        self.order_time_limit = order_time_limit
        logger.info(
            "[SCHEDULER] Daily status task scheduled (order_time_limit=%s cron=%s)",
            order_time_limit,
            trigger.cron_expression,
        )
        return trigger

    def _current_order_time_limit(self) -> str:
        try:
            return self.settings_provider.get_order_time_limit()
        except ConfigurationError:
            if self.order_time_limit is None:
                raise
            logger.warning(
                "[SCHEDULER] Stored order time limit unusable; falling back to scheduled value %s",
                self.order_time_limit,
            )
            return self.order_time_limit

    def _scheduled_run(self) -> None:
        logger.info("[SCHEDULER] Running scheduled order status update")
        try:
            order_time_limit = self._current_order_time_limit()
            result = self.status_updater(order_time_limit)
        except Exception as exc:
            self.last_error = str(exc)
            logger.exception("[SCHEDULER] Scheduled order status update failed")
            return
        self.last_run_at = now_local()
        self.last_result = result
        self.last_error = None
        logger.info(
            "[SCHEDULER] Scheduled update finished (updated=%s cancelled=%s order_time_limit=%s)",
            result.updated_count,
            result.cancelled_count,
            order_time_limit,
        )

    def run_status_update(self, **options: Any) -> StatusUpdateResult:
        """Run the batch now and return its counts; errors propagate to the caller."""
        order_time_limit = self.settings_provider.get_order_time_limit()
        logger.info("[SCHEDULER] Manual order status update (order_time_limit=%s options=%s)", order_time_limit, options)
        try:
            result = self.status_updater(order_time_limit, **options)
        except Exception:
            logger.exception("[SCHEDULER] Manual order status update failed")
            raise
        self.last_run_at = now_local()
        self.last_result = result
        return result

    def describe(self) -> dict[str, Any]:
        active = [task for task in self.tasks if not task.cancelled]
        next_run = min((task.next_run for task in active if task.next_run is not None), default=None)
        return {
            "orderTimeLimit": self.order_time_limit,
            "cronExpression": active[0].trigger.cron_expression if active else None,
            "activeTasks": len(active),
            "nextRun": next_run.isoformat() if next_run else None,
            "lastRunAt": self.last_run_at.isoformat() if self.last_run_at else None,
            "lastError": self.last_error,
        }

    def shutdown(self) -> None:
        with self._lock:
            for task in self.tasks:
                task.cancel()
            self.tasks = []
        self.runner.stop()
        self.initialized = False
