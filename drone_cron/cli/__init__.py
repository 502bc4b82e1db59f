"""CLI command modules for drone-cron.

This package contains the CLI command implementations together with the
exit codes and the error hierarchy shared by the rest of the package.
"""

from drone_cron.cli import config, jobs, run

from drone_cron.cli.exit_codes import ExitCode
from drone_cron.cli.error_handler import (
    DroneCronError,
    ConfigurationError,
    NetworkError,
    SchedulerError,
    ValidationError,
    NotFoundError,
    handle_errors,
)

__all__ = [
    # Command modules
    "config",
    "jobs",
    "run",
    # Exit codes
    "ExitCode",
    # Error handling
    "DroneCronError",
    "ConfigurationError",
    "NetworkError",
    "SchedulerError",
    "ValidationError",
    "NotFoundError",
    "handle_errors",
]
