"""Data types decoded from Drone API responses."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

DEFAULT_BRANCH = "master"


@dataclass
class Build:
    """A build as returned by the Drone API.

    Drone 1.x reports the branch as ``target`` and the commit as ``after``;
    0.8 servers use ``branch`` and ``commit``. Both spellings are accepted.
    """

    number: int
    id: Optional[int] = None
    status: str = ""
    event: str = ""
    branch: str = ""
    commit: str = ""
    link: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Build":
        """Decode a build payload.

        Raises:
            ValueError: If the payload has no usable build number
        """
        if not isinstance(data, dict):
            raise ValueError(f"expected a build object, got {type(data).__name__}")
        try:
            number = int(data["number"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"build payload has no valid number: {e}") from e

        return cls(
            number=number,
            id=data.get("id"),
            status=data.get("status") or "",
            event=data.get("event") or "",
            branch=data.get("target") or data.get("branch") or "",
            commit=data.get("after") or data.get("commit") or "",
            link=data.get("link") or data.get("link_url") or "",
        )


@dataclass(frozen=True)
class BuildReference:
    """Identifying data for one build run of a repository."""

    owner: str
    name: str
    branch: str
    number: int
    link: str = ""

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}#{self.number}"

    @classmethod
    def from_build(cls, owner: str, name: str, build: Build, branch: str = DEFAULT_BRANCH) -> "BuildReference":
        return cls(
            owner=owner,
            name=name,
            branch=build.branch or branch,
            number=build.number,
            link=build.link,
        )


@dataclass
class User:
    """The account the access token belongs to."""

    login: str
    email: str = ""
    admin: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        if not isinstance(data, dict) or not data.get("login"):
            raise ValueError("user payload has no login")
        return cls(
            login=data["login"],
            email=data.get("email") or "",
            admin=bool(data.get("admin", False)),
        )
