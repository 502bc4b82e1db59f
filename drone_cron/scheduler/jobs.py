"""Declared jobs: which repository to rebuild and when."""

from dataclasses import dataclass
from typing import Tuple

from drone_cron.cli.error_handler import ValidationError
from drone_cron.drone.models import DEFAULT_BRANCH


class RepositoryIdentifierError(ValidationError):
    """Raised when a repository identifier is not ``owner/name``."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"failed to split repo name: {identifier!r}", details={"repository": identifier})
        self.identifier = identifier


@dataclass(frozen=True)
class Job:
    """A repository rebuild declared in the jobs file.

    Attributes:
        repository: Repository identifier in ``owner/name`` form
        schedule: Cron expression (5 or 6 fields, a descriptor, or @every)
        branch: Branch whose last build is restarted
    """

    repository: str
    schedule: str
    branch: str = DEFAULT_BRANCH

    @property
    def name(self) -> str:
        return f"{self.repository}@{self.branch}"


def parse_repository(identifier: str) -> Tuple[str, str]:
    """Split ``owner/name`` into its two segments.

    Raises:
        RepositoryIdentifierError: Unless there are exactly two non-empty segments
    """
    parts = identifier.split("/")
    if len(parts) != 2 or not all(parts):
        raise RepositoryIdentifierError(identifier)
    return parts[0], parts[1]
