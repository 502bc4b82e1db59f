"""Build trigger: the action executed on every scheduled tick.

A BuildTrigger resolves the most recent build of one repository branch
and asks the Drone server to run that exact build number again.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from drone_cron.drone.client import DroneClient
from drone_cron.drone.exceptions import DroneError
from drone_cron.drone.models import DEFAULT_BRANCH, BuildReference

logger = logging.getLogger(__name__)


class TriggerState(Enum):
    """Progress of a single trigger invocation."""

    IDLE = "idle"
    RESOLVING_LAST_BUILD = "resolving_last_build"
    RESOLVED = "resolved"
    STARTING_BUILD = "starting_build"
    STARTED = "started"
    FAILED = "failed"


@dataclass
class TriggerResult:
    """Outcome of one trigger invocation.

    Attributes:
        repository: ``owner/name`` of the repository
        branch: Branch whose last build was looked up
        state: Final state reached
        last_build: The build that was restarted, once resolved
        new_build: The build the server created, once started
        error: Error message if the invocation failed
        started_at: When the invocation began
        completed_at: When the invocation ended
    """

    repository: str
    branch: str
    state: TriggerState = TriggerState.IDLE
    last_build: Optional[BuildReference] = None
    new_build: Optional[BuildReference] = None
    error: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.state == TriggerState.STARTED

    def fail(self, error: Exception) -> "TriggerResult":
        self.state = TriggerState.FAILED
        self.error = str(error)
        self.completed_at = datetime.now(timezone.utc)
        return self


@dataclass(frozen=True)
class BuildTrigger:
    """Restart the last build of one repository branch.

    Instances are immutable values; the scheduler calls them without
    arguments. The client is shared with every other trigger and is
    only read.

    Example:
        trigger = BuildTrigger("acme", "widgets", client)
        result = await trigger()
        if result.success:
            print(result.new_build.number)
    """

    owner: str
    name: str
    client: DroneClient = field(repr=False, compare=False)
    branch: str = DEFAULT_BRANCH

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.name}"

    async def __call__(self) -> TriggerResult:
        """Run one invocation.

        Drone failures are logged and reported in the result; they never
        propagate. At most one build is started.
        """
        result = TriggerResult(repository=self.repository, branch=self.branch)

        result.state = TriggerState.RESOLVING_LAST_BUILD
        try:
            last = await self.client.build_last(self.owner, self.name, self.branch)
        except DroneError as e:
            logger.error(f"failed to get last build of {self.repository}@{self.branch}: {e}")
            return result.fail(e)

        result.last_build = BuildReference.from_build(self.owner, self.name, last, self.branch)
        result.state = TriggerState.RESOLVED
        logger.info(f"Restarting last build {result.last_build.slug}")

        result.state = TriggerState.STARTING_BUILD
        try:
            build = await self.client.build_start(self.owner, self.name, last.number, None)
        except DroneError as e:
            logger.error(f"failed to start new build of {result.last_build.slug}: {e}")
            return result.fail(e)

        result.new_build = BuildReference.from_build(self.owner, self.name, build, self.branch)
        result.state = TriggerState.STARTED
        result.completed_at = datetime.now(timezone.utc)
        logger.info(f"Starting build {result.new_build.slug}")
        return result
