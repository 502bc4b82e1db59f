"""Daemon module for drone-cron.

Runs the cron scheduler as a long-lived service with signal handling
and PID file tracking.
"""

from drone_cron.daemon.pid import PIDFile
from drone_cron.daemon.service import DroneCronDaemon, run_daemon

__all__ = [
    "DroneCronDaemon",
    "PIDFile",
    "run_daemon",
]
