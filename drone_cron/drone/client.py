"""Async client for the parts of the Drone REST API drone-cron uses.

Only three endpoints are needed:

- ``GET  /api/user``                                  token and connectivity check
- ``GET  /api/repos/{owner}/{name}/builds/latest``     last build on a branch
- ``POST /api/repos/{owner}/{name}/builds/{number}``   restart a build

Every request carries the access token as a bearer credential.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from drone_cron.drone.exceptions import (
    DroneAPIError,
    DroneAuthError,
    DroneConnectionError,
    DroneError,
    DroneNotFoundError,
)
from drone_cron.drone.models import DEFAULT_BRANCH, Build, User

logger = logging.getLogger(__name__)


class DroneClient:
    """Talks to a Drone server on behalf of every scheduled trigger.

    A single instance is shared by all concurrently running triggers. It
    holds no per-request state, so sharing needs no locking.

    Example:
        client = DroneClient("https://drone.example.com", token)
        user = await client.self_user()
        last = await client.build_last("acme", "widgets", "master")
        build = await client.build_start("acme", "widgets", last.number)
        await client.close()
    """

    def __init__(
        self,
        server: str,
        token: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            server: Drone server base URL
            token: Personal access token
            timeout: Per-request timeout in seconds; None disables timeouts
            transport: Optional httpx transport (used by tests)
        """
        self.server = server.rstrip("/")
        self.timeout = timeout
        self._token = token
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_open(self) -> bool:
        return self._client is not None and not self._client.is_closed

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.server,
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "Accept": "application/json",
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "DroneClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def self_user(self) -> User:
        """Return the user owning the token.

        Used at startup to verify that the server is reachable and the
        token is accepted.
        """
        data = await self._request("GET", "/api/user")
        try:
            return User.from_dict(data)
        except ValueError as e:
            raise DroneAPIError(f"unexpected user response: {e}", url="/api/user") from e

    async def build_last(self, owner: str, name: str, branch: str = DEFAULT_BRANCH) -> Build:
        """Return the most recent build of a repository branch.

        Raises:
            DroneNotFoundError: Unknown repository or no build on the branch
            DroneError: Any other failure
        """
        path = f"/api/repos/{owner}/{name}/builds/latest"
        data = await self._request("GET", path, params={"branch": branch})
        return self._decode_build(data, path)

    async def build_start(
        self,
        owner: str,
        name: str,
        number: int,
        params: Optional[Dict[str, str]] = None,
    ) -> Build:
        """Start a new build derived from an existing build number.

        Args:
            owner: Repository owner
            name: Repository name
            number: Number of the build to re-run
            params: Optional key/value overrides passed as query parameters

        Returns:
            The newly created build
        """
        path = f"/api/repos/{owner}/{name}/builds/{number}"
        data = await self._request("POST", path, params=params or None)
        return self._decode_build(data, path)

    def _decode_build(self, data: Any, path: str) -> Build:
        try:
            return Build.from_dict(data)
        except ValueError as e:
            raise DroneAPIError(f"unexpected build response: {e}", url=path) from e

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        client = self._get_client()
        logger.debug(f"{method} {self.server}{path} params={params}")

        try:
            response = await client.request(method, path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._status_error(e.response, path) from e
        except httpx.TransportError as e:
            raise DroneConnectionError(
                f"cannot reach Drone server at {self.server}: {str(e) or type(e).__name__}",
                url=path,
            ) from e

        try:
            return response.json()
        except ValueError as e:
            raise DroneAPIError(
                "response body is not valid JSON",
                status_code=response.status_code,
                url=path,
            ) from e

    def _status_error(self, response: httpx.Response, path: str) -> DroneError:
        status = response.status_code
        reason = response.text.strip() or response.reason_phrase

        if status in (401, 403):
            return DroneAuthError(f"access denied: {reason}", status_code=status, url=path)
        if status == 404:
            return DroneNotFoundError(f"not found: {reason}", status_code=status, url=path)
        return DroneAPIError(f"Drone API error: {reason}", status_code=status, url=path)
