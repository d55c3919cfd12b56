"""Order scheduler tests with a recording runner and the real schedule-backed runner."""

from datetime import datetime, time, timedelta
from decimal import Decimal
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
import schedule
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from portal.core.errors import ConfigurationError
from portal.db.base import Base
from portal.db.seed import ensure_order_statuses
from portal.db.session import enable_sqlite_foreign_keys
from portal.models import Order, User
from portal.services import order_service
from portal.services.order_service import StatusUpdateResult
from portal.services.order_status import OrderStatus
from portal.services.scheduler import (
    DAILY_STATUS_TASK,
    JobRunner,
    OrderScheduler,
    build_trigger,
    session_status_updater,
)

BUSINESS_TZ = "America/Bogota"


class StaticSettingsProvider:
    def __init__(self, order_time_limit: str = "18:00") -> None:
        self.order_time_limit = order_time_limit
        self.reads = 0

    def get_order_time_limit(self) -> str:
        self.reads += 1
        if isinstance(self.order_time_limit, Exception):
            raise self.order_time_limit
        return self.order_time_limit


class RecordingUpdater:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.error = error

    def __call__(self, order_time_limit: str, **options) -> StatusUpdateResult:
        self.calls.append((order_time_limit, options))
        if self.error is not None:
            raise self.error
        return StatusUpdateResult(updated_ids=[1, 2], cancelled_ids=[3])


class FakeTask:
    def __init__(self, name, trigger, callback) -> None:
        self.name = name
        self.trigger = trigger
        self.callback = callback
        self.cancelled = False
        self.next_run = None

    def cancel(self) -> None:
        self.cancelled = True


class FakeRunner:
    """Records schedule and cancel calls instead of touching the wall clock."""

    def __init__(self) -> None:
        self.tasks: list[FakeTask] = []
        self.stopped = False

    def schedule_daily(self, name, trigger, callback) -> FakeTask:
        task = FakeTask(name, trigger, callback)
        self.tasks.append(task)
        return task

    @property
    def active_tasks(self) -> list[FakeTask]:
        return [task for task in self.tasks if not task.cancelled]

    def stop(self) -> None:
        self.stopped = True


def _scheduler(provider=None, updater=None, runner=None) -> OrderScheduler:
    return OrderScheduler(
        provider or StaticSettingsProvider(),
        updater or RecordingUpdater(),
        runner or FakeRunner(),
    )


def test_trigger_fires_five_minutes_after_cutoff_on_weekdays() -> None:
    trigger = build_trigger("18:00")

    assert trigger.run_at == time(18, 5)
    assert trigger.weekdays == (0, 1, 2, 3, 4)
    assert trigger.cron_expression == "5 18 * * 1,2,3,4,5"


def test_trigger_rolling_past_midnight_shifts_weekdays() -> None:
    trigger = build_trigger("23:58")

    assert trigger.run_at == time(0, 3)
    assert trigger.weekdays == (1, 2, 3, 4, 5)
    assert trigger.cron_expression == "3 0 * * 2,3,4,5,6"


def test_trigger_rejects_malformed_cutoff() -> None:
    with pytest.raises(ConfigurationError):
        build_trigger("6pm")


def test_initialize_schedules_single_task() -> None:
    runner = FakeRunner()
    scheduler = _scheduler(runner=runner)

    scheduler.initialize()
    scheduler.initialize()

    assert scheduler.initialized is True
    assert len(runner.active_tasks) == 1
    assert runner.active_tasks[0].name == DAILY_STATUS_TASK
    assert runner.active_tasks[0].trigger.run_at == time(18, 5)


def test_initialize_falls_back_to_default_when_settings_unreadable() -> None:
    runner = FakeRunner()
    provider = StaticSettingsProvider(RuntimeError("db down"))
    scheduler = _scheduler(provider=provider, runner=runner)

    scheduler.initialize()

    assert scheduler.order_time_limit == "18:00"
    assert len(runner.active_tasks) == 1


def test_update_task_settings_leaves_exactly_one_active_task() -> None:
    runner = FakeRunner()
    scheduler = _scheduler(runner=runner)
    scheduler.initialize()
    previous = runner.active_tasks[0]

    trigger = scheduler.update_task_settings({"orderTimeLimit": "09:00"})

    assert previous.cancelled is True
    assert len(runner.active_tasks) == 1
    assert len(scheduler.tasks) == 1
    assert runner.active_tasks[0].trigger.run_at == time(9, 5)
    assert trigger.run_at == time(9, 5)
    assert scheduler.order_time_limit == "09:00"


def test_bad_cutoff_keeps_the_current_task() -> None:
    runner = FakeRunner()
    scheduler = _scheduler(runner=runner)
    scheduler.initialize()
    previous = runner.active_tasks[0]

    with pytest.raises(ConfigurationError):
        scheduler.update_task_settings({"orderTimeLimit": "25:00"})

    assert runner.active_tasks == [previous]
    assert scheduler.order_time_limit == "18:00"


def test_scheduled_run_reads_the_current_cutoff() -> None:
    provider = StaticSettingsProvider("18:00")
    updater = RecordingUpdater()
    runner = FakeRunner()
    scheduler = _scheduler(provider=provider, updater=updater, runner=runner)
    scheduler.initialize()

    provider.order_time_limit = "17:30"
    runner.active_tasks[0].callback()

    assert updater.calls == [("17:30", {})]
    assert scheduler.last_result.updated_count == 2
    assert scheduler.last_error is None


def test_failed_scheduled_run_is_recorded_and_schedule_survives() -> None:
    updater = RecordingUpdater(error=RuntimeError("deadlock"))
    runner = FakeRunner()
    scheduler = _scheduler(updater=updater, runner=runner)
    scheduler.initialize()
    task = runner.active_tasks[0]

    task.callback()

    assert scheduler.last_error == "deadlock"
    assert task.cancelled is False
    assert runner.active_tasks == [task]

    updater.error = None
    task.callback()
    assert scheduler.last_error is None
    assert len(updater.calls) == 2


def test_scheduled_run_uses_last_good_cutoff_when_stored_value_is_broken() -> None:
    provider = StaticSettingsProvider("18:00")
    updater = RecordingUpdater()
    runner = FakeRunner()
    scheduler = _scheduler(provider=provider, updater=updater, runner=runner)
    scheduler.initialize()

    provider.order_time_limit = ConfigurationError(error="order_time_limit is empty")
    runner.active_tasks[0].callback()

    assert updater.calls == [("18:00", {})]


def test_run_status_update_passes_options_and_propagates_errors() -> None:
    updater = RecordingUpdater()
    scheduler = _scheduler(updater=updater)

    result = scheduler.run_status_update(ignore_time_limit=True)

    assert result.as_dict()["updatedIds"] == [1, 2]
    assert updater.calls == [("18:00", {"ignore_time_limit": True})]

    updater.error = RuntimeError("boom")
    with pytest.raises(RuntimeError):
        scheduler.run_status_update()


def test_shutdown_cancels_tasks_and_stops_runner() -> None:
    runner = FakeRunner()
    scheduler = _scheduler(runner=runner)
    scheduler.initialize()

    scheduler.shutdown()

    assert runner.active_tasks == []
    assert runner.stopped is True
    assert scheduler.initialized is False


def test_job_runner_registers_one_job_per_weekday() -> None:
    runner = JobRunner(schedule.Scheduler())
    scheduler = _scheduler(runner=runner)

    scheduler.initialize()
    assert len(runner.scheduler.jobs) == 5
    assert len(runner.active_tasks) == 1
    assert runner.active_tasks[0].next_run is not None

    scheduler.update_task_settings({"orderTimeLimit": "09:00"})
    assert len(runner.scheduler.jobs) == 5
    assert len(runner.active_tasks) == 1
    assert {job.at_time for job in runner.scheduler.jobs} == {time(9, 5)}

    scheduler.shutdown()
    assert runner.scheduler.jobs == []
    assert runner.active_tasks == []


def test_job_runner_survives_failing_job() -> None:
    runner = JobRunner(schedule.Scheduler())
    updater = RecordingUpdater(error=RuntimeError("db gone"))
    scheduler = _scheduler(updater=updater, runner=runner)
    scheduler.initialize()
    due_job = runner.scheduler.jobs[0]
    due_job.next_run = datetime.now() - timedelta(minutes=1)

    runner.run_pending()

    assert len(updater.calls) == 1
    assert scheduler.last_error == "db gone"
    assert len(runner.scheduler.jobs) == 5
    assert due_job.next_run > datetime.now()

    describe = scheduler.describe()
    assert describe["activeTasks"] == 1
    assert describe["cronExpression"] == "5 18 * * 1,2,3,4,5"
    assert describe["lastError"] == "db gone"


def test_job_runner_thread_starts_and_stops() -> None:
    runner = JobRunner(schedule.Scheduler(), poll_seconds=1)

    runner.start()
    assert runner.running is True

    runner.stop()
    assert runner.running is False


def _business_fire_time(job: schedule.Job) -> datetime:
    # next_run is naive host-local time; astimezone() reads it as such.
    return job.next_run.astimezone(ZoneInfo(BUSINESS_TZ)).replace(tzinfo=None)


def test_job_runner_fires_in_business_timezone() -> None:
    runner = JobRunner(schedule.Scheduler(), timezone=BUSINESS_TZ)
    scheduler = _scheduler(runner=runner)

    scheduler.initialize()

    assert len(runner.scheduler.jobs) == 5
    for job in runner.scheduler.jobs:
        assert _business_fire_time(job).time() == time(18, 5)
    scheduler.shutdown()


def test_business_timezone_run_moves_yesterdays_order_to_production(tmp_path: Path, monkeypatch) -> None:
    engine = enable_sqlite_foreign_keys(
        create_engine(f"sqlite:///{tmp_path / 'test_scheduler_run.db'}", connect_args={"check_same_thread": False})
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    runner = JobRunner(schedule.Scheduler(), timezone=BUSINESS_TZ)
    scheduler = OrderScheduler(
        StaticSettingsProvider("18:00"),
        session_status_updater(testing_session_local),
        runner,
    )
    scheduler.initialize()
    due_job = min(runner.scheduler.jobs, key=lambda job: job.next_run)
    fire_at = _business_fire_time(due_job)

    with testing_session_local() as session:
        ensure_order_statuses(session)
        user = User(name="Cliente", email="client@example.com", password_hash="x", role="CLIENT")
        session.add(user)
        session.flush()
        created_at = datetime.combine(fire_at.date() - timedelta(days=1), time(10, 0))
        order = Order(
            user_id=user.id,
            total_amount=Decimal("11.90"),
            subtotal=Decimal("10.00"),
            tax_amount=Decimal("1.90"),
            delivery_date=fire_at.date() + timedelta(days=2),
            status_id=int(OrderStatus.OPEN),
            created_at=created_at,
            updated_at=created_at,
        )
        session.add(order)
        session.commit()
        order_id = order.order_id

    monkeypatch.setattr(order_service, "now_local", lambda: fire_at)
    due_job.next_run = datetime.now() - timedelta(minutes=1)
    runner.run_pending()

    assert scheduler.last_error is None
    assert scheduler.last_result.updated_ids == [order_id]
    with testing_session_local() as session:
        assert session.scalar(select(Order.status_id).where(Order.order_id == order_id)) == int(OrderStatus.IN_PRODUCTION)
    scheduler.shutdown()
    engine.dispose()
