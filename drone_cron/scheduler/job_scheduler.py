"""Cron scheduler and job registry.

The CronScheduler wraps APScheduler. On every due tick it launches the
registered action as its own asyncio task and returns straight away, so
actions run concurrently with each other and with the timing loop.

The JobRegistry turns declared jobs into BuildTrigger actions and
registers them with the scheduler, reporting (but surviving) jobs whose
repository identifier or schedule is malformed.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set
from uuid import uuid4

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from drone_cron.drone.client import DroneClient
from drone_cron.scheduler.cron import ScheduleError, ScheduleTrigger, parse_schedule
from drone_cron.scheduler.jobs import Job, RepositoryIdentifierError, parse_repository
from drone_cron.scheduler.trigger import BuildTrigger

logger = logging.getLogger(__name__)

Action = Callable[[], Awaitable[Any]]


@dataclass
class Registration:
    """A recurring action armed with the scheduler.

    Attributes:
        registration_id: Scheduler-assigned identifier
        name: Label used in log records
        schedule: The schedule expression as declared
        action: Zero-argument coroutine function run on each tick
        trigger: Parsed APScheduler trigger
        in_flight: Number of runs currently executing
        run_count: Number of runs finished
    """

    registration_id: str
    name: str
    schedule: str
    action: Action
    trigger: ScheduleTrigger
    in_flight: int = 0
    run_count: int = 0


class CronScheduler:
    """Dispatches registered actions on cron schedules.

    Example:
        scheduler = CronScheduler(timezone="UTC")
        scheduler.register("0 */5 * * * *", trigger, name="acme/widgets")
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        timezone: str = "UTC",
        allow_overlap: bool = False,
        misfire_grace_time: int = 60,
    ) -> None:
        """Initialize the scheduler.

        Args:
            timezone: Timezone cron fields are evaluated in
            allow_overlap: Dispatch a tick even if the previous run of the
                same registration is still in progress
            misfire_grace_time: Seconds a late tick may still be dispatched
        """
        self._timezone = timezone
        self._allow_overlap = allow_overlap
        self._misfire_grace_time = misfire_grace_time
        self._registrations: Dict[str, Registration] = {}
        self._in_flight: Set["asyncio.Task[None]"] = set()
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def registrations(self) -> List[Registration]:
        return list(self._registrations.values())

    @property
    def in_flight(self) -> int:
        """Number of dispatched actions that have not finished yet."""
        return sum(1 for task in self._in_flight if not task.done())

    def register(self, schedule: str, action: Action, name: str = "") -> Registration:
        """Arm an action under a schedule expression.

        Args:
            schedule: Cron expression
            action: Zero-argument coroutine function
            name: Label for log records

        Returns:
            The registration handle

        Raises:
            ScheduleError: If the schedule expression is malformed
        """
        trigger = parse_schedule(schedule, timezone=self._timezone)
        registration_id = uuid4().hex
        registration = Registration(
            registration_id=registration_id,
            name=name or registration_id[:8],
            schedule=schedule,
            action=action,
            trigger=trigger,
        )
        self._registrations[registration_id] = registration

        if self._running and self._scheduler:
            self._add_to_apscheduler(registration)

        logger.debug(f"Registered {registration.name} with schedule '{schedule}'")
        return registration

    def unregister(self, registration_id: str) -> bool:
        """Disarm a registration. In-flight runs are left alone."""
        if registration_id not in self._registrations:
            return False

        if self._running and self._scheduler and self._scheduler.get_job(registration_id):
            self._scheduler.remove_job(registration_id)

        del self._registrations[registration_id]
        return True

    def next_run(self, registration_id: str) -> Optional[datetime]:
        """When a registration will next fire, or None if it never will."""
        registration = self._registrations.get(registration_id)
        if registration is None:
            return None

        if self._running and self._scheduler:
            aps_job = self._scheduler.get_job(registration_id)
            if aps_job is not None:
                return aps_job.next_run_time

        return registration.trigger.get_next_fire_time(None, datetime.now(dt_timezone.utc))

    def start(self) -> None:
        """Start dispatching ticks.

        Must be called from within a running event loop.
        """
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._scheduler = self._create_scheduler()
        self._setup_listeners()
        self._scheduler.start()

        for registration in self._registrations.values():
            self._add_to_apscheduler(registration)

        self._running = True
        logger.info(f"Scheduler started with {len(self._registrations)} jobs")

    async def stop(self, drain_timeout: Optional[float] = None) -> None:
        """Stop dispatching ticks, then wait for in-flight runs.

        In-flight runs are never cancelled.

        Args:
            drain_timeout: Seconds to wait for in-flight runs; None waits
                until they all finish
        """
        if not self._running:
            return

        logger.info("Stopping scheduler...")

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        await self.drain(drain_timeout)
        logger.info("Scheduler stopped")

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for dispatched runs to finish.

        Returns:
            True if nothing is left running
        """
        pending = {task for task in self._in_flight if not task.done()}
        if not pending:
            return True

        logger.info(f"Waiting for {len(pending)} in-flight run(s) to finish")
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        if still_running:
            logger.warning(
                f"{len(still_running)} run(s) still in progress after {timeout}s, "
                "leaving them to finish on their own"
            )
        return not still_running

    def dispatch(self, registration_id: str) -> "Optional[asyncio.Task[None]]":
        """Launch one run of a registration as an independent task.

        Returns:
            The task, or None if the tick was skipped
        """
        registration = self._registrations.get(registration_id)
        if registration is None:
            logger.warning(f"Registration {registration_id} not found, skipping tick")
            return None

        if registration.in_flight and not self._allow_overlap:
            logger.warning(
                f"Skipping tick for {registration.name}: previous run still in progress"
            )
            return None

        registration.in_flight += 1
        task = asyncio.get_running_loop().create_task(self._run(registration))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _run(self, registration: Registration) -> None:
        try:
            await registration.action()
        except Exception:
            logger.exception(f"Scheduled run of {registration.name} failed")
        finally:
            registration.in_flight -= 1
            registration.run_count += 1

    async def _tick(self, registration_id: str) -> None:
        """Callback invoked by APScheduler when a registration is due."""
        if not self._running:
            return
        self.dispatch(registration_id)

    def _create_scheduler(self) -> AsyncIOScheduler:
        jobstores = {"default": MemoryJobStore()}

        executors = {"default": AsyncIOExecutor()}

        job_defaults = {
            "coalesce": True,  # Combine missed runs
            "max_instances": 1,  # _tick returns immediately
            "misfire_grace_time": self._misfire_grace_time,
        }

        return AsyncIOScheduler(
            jobstores=jobstores,
            executors=executors,
            job_defaults=job_defaults,
            timezone=self._timezone,
        )

    def _setup_listeners(self) -> None:
        if not self._scheduler:
            return

        def on_job_error(event: Any) -> None:
            exception = getattr(event, "exception", "Unknown error")
            logger.error(f"Dispatch of {self._label(event.job_id)} failed: {exception}")

        def on_job_missed(event: Any) -> None:
            logger.warning(f"{self._label(event.job_id)} missed scheduled run")

        self._scheduler.add_listener(on_job_error, EVENT_JOB_ERROR)
        self._scheduler.add_listener(on_job_missed, EVENT_JOB_MISSED)

    def _label(self, registration_id: str) -> str:
        registration = self._registrations.get(registration_id)
        return registration.name if registration else registration_id

    def _add_to_apscheduler(self, registration: Registration) -> None:
        if not self._scheduler:
            return

        self._scheduler.add_job(
            func=self._tick,
            trigger=registration.trigger,
            id=registration.registration_id,
            name=registration.name,
            args=[registration.registration_id],
            replace_existing=True,
        )


@dataclass
class RegistrationFailure:
    """A declared job that could not be armed."""

    job: Job
    reason: str


@dataclass
class RegistrationReport:
    """Outcome of registering a list of jobs."""

    registrations: List[Registration] = field(default_factory=list)
    failures: List[RegistrationFailure] = field(default_factory=list)

    @property
    def armed(self) -> int:
        return len(self.registrations)


class JobRegistry:
    """Arms one BuildTrigger per declared job.

    Example:
        registry = JobRegistry(scheduler, client)
        report = registry.register_all(jobs)
        print(f"{report.armed} jobs armed, {len(report.failures)} rejected")
    """

    def __init__(self, scheduler: CronScheduler, client: DroneClient) -> None:
        self._scheduler = scheduler
        self._client = client

    def build_trigger(self, job: Job) -> BuildTrigger:
        """Bind a trigger to a job's repository.

        Raises:
            RepositoryIdentifierError: If the repository is not ``owner/name``
        """
        owner, name = parse_repository(job.repository)
        return BuildTrigger(owner=owner, name=name, client=self._client, branch=job.branch)

    def register(self, job: Job) -> Registration:
        """Arm a single job.

        Raises:
            RepositoryIdentifierError: Malformed repository identifier
            ScheduleError: Malformed schedule expression
        """
        trigger = self.build_trigger(job)
        return self._scheduler.register(job.schedule, trigger, name=job.name)

    def register_all(self, jobs: Iterable[Job]) -> RegistrationReport:
        """Arm every job, in order, skipping the ones that are malformed."""
        report = RegistrationReport()

        logger.info("Adding jobs with their schedule:")
        for job in jobs:
            logger.info(f"{job.schedule} {job.repository}")
            try:
                registration = self.register(job)
            except (RepositoryIdentifierError, ScheduleError) as e:
                logger.error(f"{e.message}, not scheduling {job.repository}")
                report.failures.append(RegistrationFailure(job=job, reason=e.message))
                continue
            report.registrations.append(registration)

        return report
