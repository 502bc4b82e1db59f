"""Drone CI API client."""

from drone_cron.drone.client import DroneClient
from drone_cron.drone.exceptions import (
    DroneAPIError,
    DroneAuthError,
    DroneConnectionError,
    DroneError,
    DroneNotFoundError,
)
from drone_cron.drone.models import DEFAULT_BRANCH, Build, BuildReference, User

__all__ = [
    "DroneClient",
    "DroneError",
    "DroneAPIError",
    "DroneAuthError",
    "DroneConnectionError",
    "DroneNotFoundError",
    "DEFAULT_BRANCH",
    "Build",
    "BuildReference",
    "User",
]
