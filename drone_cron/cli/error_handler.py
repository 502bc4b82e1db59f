"""Global exception handling for drone-cron.

This module provides the exception hierarchy shared by the scheduler,
the Drone client and the CLI, plus a decorator that turns those
exceptions into consistent error output and exit codes.
"""

from functools import wraps
from typing import Callable, TypeVar, Any
import logging

import typer
from rich.console import Console

from drone_cron.cli.exit_codes import ExitCode

# Console for error output (stderr)
console = Console(stderr=True)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class DroneCronError(Exception):
    """Base exception for drone-cron.

    Attributes:
        message: Error message
        exit_code: Exit code to use when the error ends the process
        details: Optional dictionary of additional error details
    """

    exit_code: int = ExitCode.GENERAL_ERROR

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if exit_code is not None:
            self.exit_code = exit_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(DroneCronError):
    """Configuration-related error.

    Raised for startup prerequisites that cannot be satisfied.

    Examples:
        - DRONE_SERVER or DRONE_TOKEN not set
        - Jobs file missing, unreadable or not valid YAML
        - Jobs file entry without a name or schedule
    """

    exit_code = ExitCode.CONFIGURATION_ERROR


class NetworkError(DroneCronError):
    """Network/connectivity error.

    Raised when talking to the Drone server fails.

    Examples:
        - Connection refused or timed out
        - Token rejected by the server
        - Unexpected response from the API
    """

    exit_code = ExitCode.NETWORK_ERROR


class SchedulerError(DroneCronError):
    """Scheduler error.

    Raised when the scheduler cannot be started or a schedule cannot
    be registered.

    Examples:
        - Malformed cron expression
        - Scheduler started twice
    """

    exit_code = ExitCode.SCHEDULER_ERROR


class ValidationError(DroneCronError):
    """Validation error for user input.

    Examples:
        - Repository identifier not in owner/name form
        - Invalid option combination
    """

    exit_code = ExitCode.INVALID_ARGUMENT


class NotFoundError(DroneCronError):
    """Resource not found error.

    Examples:
        - Repository unknown to the Drone server
        - Repository without any build on the branch
    """

    exit_code = ExitCode.NOT_FOUND


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling across CLI commands.

    - DroneCronError subclasses: print the message and exit with the
      error's exit code
    - KeyboardInterrupt: print a cancellation notice and exit with 130
    - Anything else: log the traceback and exit with GENERAL_ERROR

    Example:
        @app.command()
        @handle_errors
        def my_command():
            raise ConfigurationError("Set DRONE_SERVER which is currently empty")
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except DroneCronError as e:
            logger.error(
                f"{type(e).__name__}: {e.message}",
                extra={"exit_code": e.exit_code, "details": e.details},
            )

            console.print(f"[red]Error:[/red] {e.message}")

            if e.details:
                for key, value in e.details.items():
                    console.print(f"  [dim]{key}:[/dim] {value}")

            raise typer.Exit(code=e.exit_code)

        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user.[/yellow]")
            logger.info("Operation cancelled by user (KeyboardInterrupt)")
            raise typer.Exit(code=ExitCode.CANCELLED)

        except typer.Exit:
            raise

        except Exception as e:
            logger.exception("Unexpected error occurred")

            console.print(f"[red]Unexpected error:[/red] {e}")
            console.print("[dim]Run with --debug for more details[/dim]")

            raise typer.Exit(code=ExitCode.GENERAL_ERROR)

    return wrapper  # type: ignore[return-value]
