"""Cron scheduling of Drone build triggers.

Declared jobs are turned into BuildTrigger actions by the JobRegistry and
dispatched by the CronScheduler at their scheduled times.
"""

from drone_cron.scheduler.cron import ScheduleError, parse_schedule
from drone_cron.scheduler.job_scheduler import (
    CronScheduler,
    JobRegistry,
    Registration,
    RegistrationFailure,
    RegistrationReport,
)
from drone_cron.scheduler.jobs import Job, RepositoryIdentifierError, parse_repository
from drone_cron.scheduler.trigger import BuildTrigger, TriggerResult, TriggerState

__all__ = [
    "BuildTrigger",
    "CronScheduler",
    "Job",
    "JobRegistry",
    "Registration",
    "RegistrationFailure",
    "RegistrationReport",
    "RepositoryIdentifierError",
    "ScheduleError",
    "TriggerResult",
    "TriggerState",
    "parse_repository",
    "parse_schedule",
]
