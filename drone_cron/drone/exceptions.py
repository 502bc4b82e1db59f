"""Exceptions raised by the Drone API client."""

from typing import Optional

from drone_cron.cli.error_handler import NetworkError, NotFoundError


class DroneError(NetworkError):
    """Base exception for Drone API failures."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ) -> None:
        details = {}
        if status_code is not None:
            details["status"] = status_code
        if url:
            details["url"] = url
        super().__init__(message, details=details)
        self.status_code = status_code
        self.url = url


class DroneConnectionError(DroneError):
    """Raised when the server cannot be reached or the request times out."""
    pass


class DroneAuthError(DroneError):
    """Raised when the server rejects the access token (401/403)."""
    pass


class DroneNotFoundError(NotFoundError, DroneError):
    """Raised on 404: unknown repository, or no build on the branch."""
    pass


class DroneAPIError(DroneError):
    """Raised for any other non-success status or an undecodable body."""
    pass
