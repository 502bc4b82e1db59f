"""
drone-cron Configuration Management.

Settings come from, in increasing priority:
- Default values
- An optional TOML settings file
- Environment variables

The list of jobs lives in a separate YAML file (``DRONE_CRON_CONFIG``,
``./config.yaml`` by default).
"""

from __future__ import annotations

import json
import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from drone_cron.cli.error_handler import ConfigurationError
from drone_cron.drone.models import DEFAULT_BRANCH
from drone_cron.scheduler.jobs import Job

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "drone-cron"
DEFAULT_CONFIG_FILE = "config.toml"
DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "drone-cron"
DEFAULT_JOBS_FILE = Path("./config.yaml")

# Variable names shared with other Drone tooling, so no prefix
SERVER_ENV = "DRONE_SERVER"
TOKEN_ENV = "DRONE_TOKEN"
JOBS_FILE_ENV = "DRONE_CRON_CONFIG"

_TRUE_VALUES = ("true", "1", "yes", "on")


@dataclass
class ValidationError:
    """Validation error for configuration."""
    field: str
    message: str
    severity: str  # "error" or "warning"

    def __str__(self) -> str:
        return f"[{self.severity.upper()}] {self.field}: {self.message}"


@dataclass
class ServerConfig:
    """Connection to the Drone server."""

    url: str = ""
    token: str = ""

    # None means requests never time out
    request_timeout: Optional[float] = None


@dataclass
class SchedulerConfig:
    """Configuration for the cron scheduler."""

    jobs_file: Path = DEFAULT_JOBS_FILE
    timezone: str = "UTC"

    # Run a tick even if the previous run of the same job is still going
    allow_overlap: bool = False

    # Seconds to wait for in-flight triggers on shutdown; None waits forever
    drain_timeout: Optional[float] = None

    misfire_grace_time: int = 60


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[Path] = None


@dataclass
class DroneCronConfig:
    """Main configuration container for drone-cron."""

    config_dir: Path = DEFAULT_CONFIG_DIR
    data_dir: Path = DEFAULT_DATA_DIR

    server: ServerConfig = field(default_factory=ServerConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def pid_file(self) -> Path:
        return self.data_dir / "drone-cron.pid"


def load_config(
    config_path: Optional[Path] = None,
    env_prefix: str = "DRONE_CRON_",
) -> DroneCronConfig:
    """
    Load configuration from the settings file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Settings file
    3. Default values

    Args:
        config_path: Path to settings file (default: ~/.config/drone-cron/config.toml)
        env_prefix: Prefix for drone-cron specific environment variables

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If the settings file exists but cannot be parsed,
            an environment variable holds an invalid value, or the timezone
            is unknown
    """
    config = DroneCronConfig()

    if config_path is None:
        env_config_dir = os.environ.get(f"{env_prefix}CONFIG_DIR")
        if env_config_dir:
            config_path = Path(env_config_dir) / DEFAULT_CONFIG_FILE
        else:
            config_path = DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE

    if config_path.exists():
        config = _load_from_file(config_path, config)

    config = _load_from_env(config, env_prefix)
    config.server.url = config.server.url.strip().rstrip("/")

    if not _known_timezone(config.scheduler.timezone):
        raise ConfigurationError(
            f"Unknown timezone: {config.scheduler.timezone}",
            details={"setting": "scheduler.timezone"},
        )

    return config


def _load_from_file(path: Path, config: DroneCronConfig) -> DroneCronConfig:
    """Load configuration from a TOML file."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Failed to load settings from {path}: {e}") from e

    for section in ("server", "scheduler", "logging"):
        if section in data:
            target = getattr(config, section)
            for key, value in data[section].items():
                if hasattr(target, key):
                    setattr(target, key, value)

    if isinstance(config.scheduler.jobs_file, str):
        config.scheduler.jobs_file = Path(config.scheduler.jobs_file)
    if isinstance(config.logging.file, str):
        config.logging.file = Path(config.logging.file)

    if "config_dir" in data:
        config.config_dir = Path(data["config_dir"])
    if "data_dir" in data:
        config.data_dir = Path(data["data_dir"])

    return config


def _env_float(name: str, value: str) -> Optional[float]:
    if value.lower() in ("", "none"):
        return None
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number of seconds, got {value!r}") from None


def _load_from_env(config: DroneCronConfig, prefix: str) -> DroneCronConfig:
    """Load configuration from environment variables."""

    if env_val := os.environ.get(SERVER_ENV):
        config.server.url = env_val
    if env_val := os.environ.get(TOKEN_ENV):
        config.server.token = env_val
    if env_val := os.environ.get(f"{prefix}REQUEST_TIMEOUT"):
        config.server.request_timeout = _env_float(f"{prefix}REQUEST_TIMEOUT", env_val)

    if env_val := os.environ.get(JOBS_FILE_ENV):
        config.scheduler.jobs_file = Path(env_val)
    if env_val := os.environ.get(f"{prefix}TIMEZONE"):
        config.scheduler.timezone = env_val
    if env_val := os.environ.get(f"{prefix}ALLOW_OVERLAP"):
        config.scheduler.allow_overlap = env_val.lower() in _TRUE_VALUES
    if env_val := os.environ.get(f"{prefix}DRAIN_TIMEOUT"):
        config.scheduler.drain_timeout = _env_float(f"{prefix}DRAIN_TIMEOUT", env_val)

    if env_val := os.environ.get(f"{prefix}LOG_LEVEL"):
        config.logging.level = env_val.upper()

    if env_val := os.environ.get(f"{prefix}CONFIG_DIR"):
        config.config_dir = Path(env_val)
    if env_val := os.environ.get(f"{prefix}DATA_DIR"):
        config.data_dir = Path(env_val)

    return config


def require_server_settings(config: DroneCronConfig) -> None:
    """Fail unless both the server URL and the token are set.

    Raises:
        ConfigurationError: Naming the first missing variable
    """
    if not config.server.url:
        raise ConfigurationError(f"Set {SERVER_ENV} which is currently empty")
    if not config.server.token:
        raise ConfigurationError(f"Set {TOKEN_ENV} which is currently empty")


def load_jobs(path: Path) -> List[Job]:
    """
    Read the jobs file.

    Expected layout::

        jobs:
          - name: owner/repo
            schedule: "0 0 * * * *"
            branch: main          # optional, defaults to master

    Repository identifiers and schedules are not validated here; the
    scheduler reports and skips malformed ones.

    Raises:
        ConfigurationError: If the file is unreadable, not YAML, or an
            entry lacks a name or schedule
    """
    try:
        text = path.read_text()
    except OSError as e:
        raise ConfigurationError(f"Cannot read jobs file {path}: {e.strerror or e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Jobs file {path} is not valid YAML: {e}") from e

    if data is None:
        return []
    if not isinstance(data, dict):
        raise ConfigurationError(f"Jobs file {path} must be a mapping with a 'jobs' list")

    entries = data.get("jobs") or []
    if not isinstance(entries, list):
        raise ConfigurationError(f"'jobs' in {path} must be a list")

    jobs: List[Job] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Job #{index + 1} in {path} must be a mapping")

        name = entry.get("name")
        schedule = entry.get("schedule")
        branch = entry.get("branch") or DEFAULT_BRANCH
        if not isinstance(name, str) or not isinstance(schedule, (str, int)):
            raise ConfigurationError(
                f"Job #{index + 1} in {path} needs a 'name' and a 'schedule'",
                details={"entry": entry},
            )

        jobs.append(Job(repository=name, schedule=str(schedule), branch=str(branch)))

    return jobs


def ensure_directories(config: DroneCronConfig) -> None:
    """Ensure the runtime directories exist."""
    config.data_dir.mkdir(parents=True, exist_ok=True)


def _validate_url(url: str) -> bool:
    """Validate a URL format."""
    url_pattern = r"^https?://[^\s/$.?#].[^\s]*$"
    return bool(re.match(url_pattern, url))


def validate_config(config: Optional[DroneCronConfig] = None) -> List[ValidationError]:
    """
    Validate configuration and return list of errors.

    Args:
        config: Configuration to validate (default: loaded from file and env)

    Returns:
        List of validation errors (empty if valid)
    """
    if config is None:
        config = load_config()

    errors: List[ValidationError] = []

    if not config.server.url:
        errors.append(ValidationError(
            field="server.url",
            message=f"Server URL not set. Set {SERVER_ENV}.",
            severity="error",
        ))
    elif not _validate_url(config.server.url):
        errors.append(ValidationError(
            field="server.url",
            message=f"Invalid URL format: {config.server.url}",
            severity="error",
        ))

    if not config.server.token:
        errors.append(ValidationError(
            field="server.token",
            message=f"Access token not set. Set {TOKEN_ENV}.",
            severity="error",
        ))

    timeout = config.server.request_timeout
    if timeout is None:
        errors.append(ValidationError(
            field="server.request_timeout",
            message="No request timeout; a hung Drone call blocks its trigger indefinitely.",
            severity="warning",
        ))
    elif timeout <= 0:
        errors.append(ValidationError(
            field="server.request_timeout",
            message=f"Timeout must be positive, got {timeout}",
            severity="error",
        ))

    if not config.scheduler.jobs_file.exists():
        errors.append(ValidationError(
            field="scheduler.jobs_file",
            message=f"Jobs file does not exist: {config.scheduler.jobs_file}",
            severity="error",
        ))

    if not _known_timezone(config.scheduler.timezone):
        errors.append(ValidationError(
            field="scheduler.timezone",
            message=f"Unknown timezone: {config.scheduler.timezone}",
            severity="error",
        ))

    if config.scheduler.allow_overlap:
        errors.append(ValidationError(
            field="scheduler.allow_overlap",
            message="Overlapping runs of the same job may restart the same build twice.",
            severity="warning",
        ))

    return errors


def _config_to_dict(config: DroneCronConfig, mask_secrets: bool = True) -> dict[str, Any]:
    """
    Convert configuration to dictionary.

    Args:
        config: Configuration to convert
        mask_secrets: If True, mask the access token

    Returns:
        Dictionary representation of config
    """
    token = config.server.token
    if mask_secrets and token:
        token = token[:4] + "****" if len(token) > 4 else "****"

    return {
        "config_dir": str(config.config_dir),
        "data_dir": str(config.data_dir),
        "server": {
            "url": config.server.url,
            "token": token,
            "request_timeout": config.server.request_timeout,
        },
        "scheduler": {
            "jobs_file": str(config.scheduler.jobs_file),
            "timezone": config.scheduler.timezone,
            "allow_overlap": config.scheduler.allow_overlap,
            "drain_timeout": config.scheduler.drain_timeout,
            "misfire_grace_time": config.scheduler.misfire_grace_time,
        },
        "logging": {
            "level": config.logging.level,
            "format": config.logging.format,
            "file": str(config.logging.file) if config.logging.file else None,
        },
    }


def export_config_yaml(config: DroneCronConfig, mask_secrets: bool = True) -> str:
    """Export configuration as YAML string."""
    config_dict = _config_to_dict(config, mask_secrets)
    return yaml.safe_dump(config_dict, default_flow_style=False, sort_keys=False, allow_unicode=True)


def export_config_json(config: DroneCronConfig, mask_secrets: bool = True) -> str:
    """Export configuration as JSON string."""
    config_dict = _config_to_dict(config, mask_secrets)
    return json.dumps(config_dict, indent=2)


def _known_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True
