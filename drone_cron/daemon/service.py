"""Long-running scheduler service.

This module provides:
- Service lifecycle (start/stop) around the Drone client and the scheduler
- Signal handling for graceful shutdown
"""

import asyncio
import logging
import signal
from typing import List, Optional

from drone_cron.cli.error_handler import NetworkError
from drone_cron.config import DroneCronConfig
from drone_cron.drone.client import DroneClient
from drone_cron.drone.exceptions import DroneError
from drone_cron.scheduler.job_scheduler import CronScheduler, JobRegistry, RegistrationReport
from drone_cron.scheduler.jobs import Job

logger = logging.getLogger(__name__)


class DroneCronDaemon:
    """Owns the shared Drone client and the cron scheduler.

    Startup verifies the server is reachable with the configured token
    before any job is armed. Shutdown stops new ticks, lets in-flight
    triggers finish, then closes the client.

    Example:
        daemon = DroneCronDaemon(config, jobs)
        await daemon.start()
        await daemon.run_until_shutdown()
        await daemon.stop()
    """

    def __init__(self, config: DroneCronConfig, jobs: List[Job]):
        """Initialize the service.

        Args:
            config: drone-cron configuration
            jobs: Jobs loaded from the jobs file
        """
        self._config = config
        self._jobs = list(jobs)
        self._client: Optional[DroneClient] = None
        self._scheduler: Optional[CronScheduler] = None
        self._report: Optional[RegistrationReport] = None
        self._running = False
        self._shutdown_event = asyncio.Event()

    async def start(self) -> None:
        """Connect to Drone, arm every job and start the scheduler.

        Raises:
            NetworkError: If the server cannot be reached or rejects the token
        """
        server = self._config.server
        logger.info(f"Starting drone-cron against {server.url}...")

        self._client = DroneClient(server.url, server.token, timeout=server.request_timeout)
        try:
            user = await self._client.self_user()
        except DroneError as e:
            await self._client.close()
            raise NetworkError(f"failed to ping drone: {e}") from e
        logger.info(f"Authenticated as {user.login}")

        self._scheduler = CronScheduler(
            timezone=self._config.scheduler.timezone,
            allow_overlap=self._config.scheduler.allow_overlap,
            misfire_grace_time=self._config.scheduler.misfire_grace_time,
        )
        registry = JobRegistry(self._scheduler, self._client)
        self._report = registry.register_all(self._jobs)

        if self._report.failures:
            logger.warning(
                f"{len(self._report.failures)} of {len(self._jobs)} jobs were not scheduled"
            )

        self._scheduler.start()
        self._running = True
        logger.info("drone-cron started")

    async def stop(self) -> None:
        """Stop the scheduler, wait for in-flight triggers, close the client."""
        logger.info("Stopping drone-cron...")

        self._running = False

        if self._scheduler:
            await self._scheduler.stop(drain_timeout=self._config.scheduler.drain_timeout)

        if self._client:
            await self._client.close()

        logger.info("drone-cron stopped")

    async def run_until_shutdown(self) -> None:
        """Block until request_shutdown() is called."""
        await self._shutdown_event.wait()

    def request_shutdown(self) -> None:
        """Ask the service to shut down."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def scheduler(self) -> Optional[CronScheduler]:
        return self._scheduler

    @property
    def report(self) -> Optional[RegistrationReport]:
        """Which jobs were armed and which were rejected."""
        return self._report


async def run_daemon(config: DroneCronConfig, jobs: List[Job]) -> None:
    """Run the service until SIGINT or SIGTERM.

    Args:
        config: drone-cron configuration
        jobs: Jobs loaded from the jobs file
    """
    daemon = DroneCronDaemon(config, jobs)

    loop = asyncio.get_running_loop()

    def handle_signal(sig: signal.Signals) -> None:
        logger.info(f"received an interrupt signal ({sig.name}), shutting down")
        daemon.request_shutdown()

    installed = []
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
            installed.append(sig)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            signal.signal(sig, lambda signum, frame: handle_signal(signal.Signals(signum)))

    try:
        await daemon.start()
        await daemon.run_until_shutdown()
    finally:
        await daemon.stop()
        for sig in installed:
            loop.remove_signal_handler(sig)
