"""drone-cron run command - Start the scheduler and keep it running."""

import asyncio
import logging
import os
import signal
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from drone_cron.cli.error_handler import handle_errors
from drone_cron.cli.exit_codes import ExitCode

app = typer.Typer(help="Start the cron scheduler that restarts Drone builds.")
console = Console()
logger = logging.getLogger(__name__)


def _setup_logging(level: str, log_format: str, log_file: Optional[Path] = None) -> None:
    """Set up logging for the long-running scheduler.

    Args:
        level: Log level name (DEBUG, INFO, ...)
        log_format: logging format string
        log_file: Optional log file path
    """
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        handlers=handlers,
        force=True,
    )


@app.callback(invoke_without_command=True)
@handle_errors
def run(
    ctx: typer.Context,
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the TOML settings file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    jobs_file: Optional[Path] = typer.Option(
        None,
        "--jobs",
        "-j",
        help="Path to the YAML jobs file (overrides DRONE_CRON_CONFIG).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging (ignored when global logging options are given).",
    ),
) -> None:
    """Start the scheduler and run until interrupted.

    Reads DRONE_SERVER and DRONE_TOKEN, loads the jobs file, checks the
    token against the server, then restarts each job's last build on its
    schedule. Stops on Ctrl+C or SIGTERM.

    Example:
        drone-cron run
        drone-cron run --jobs /etc/drone-cron/jobs.yaml --verbose
    """
    if ctx.invoked_subcommand is not None:
        return

    from drone_cron.config import (
        ensure_directories,
        load_config,
        load_jobs,
        require_server_settings,
    )
    from drone_cron.daemon.pid import PIDFile
    from drone_cron.daemon.service import run_daemon
    from drone_cron.main import logging_configured

    config = load_config(config_file)
    if jobs_file is not None:
        config.scheduler.jobs_file = jobs_file

    require_server_settings(config)
    jobs = load_jobs(config.scheduler.jobs_file)

    # Global --verbose/--debug/--quiet/--log-file take precedence over settings
    if logging_configured():
        logger.debug("Keeping logging set up by global options")
    else:
        level = "DEBUG" if verbose else config.logging.level
        _setup_logging(level, config.logging.format, config.logging.file)

    ensure_directories(config)
    pid_file = PIDFile(config.pid_file)

    if pid_file.is_running():
        console.print(f"[red]Error: drone-cron is already running (PID: {pid_file.read()})[/red]")
        raise typer.Exit(code=ExitCode.GENERAL_ERROR)
    pid_file.clear_if_stale()

    console.print(f"[bold green]Starting drone-cron[/bold green] with {len(jobs)} jobs from {config.scheduler.jobs_file}")

    pid_file.create()
    try:
        asyncio.run(run_daemon(config, jobs))
    finally:
        pid_file.remove()


def _pid_file(config_file: Optional[Path]):
    from drone_cron.config import load_config
    from drone_cron.daemon.pid import PIDFile

    return PIDFile(load_config(config_file).pid_file)


@app.command()
@handle_errors
def status(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the TOML settings file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
) -> None:
    """Show whether the scheduler is running.

    Example:
        drone-cron run status
    """
    pid_file = _pid_file(config_file)

    if pid_file.is_running():
        console.print(f"[green]● drone-cron is running[/green] (PID: {pid_file.read()})")
        return

    console.print("[yellow]○ drone-cron is not running[/yellow]")
    if pid_file.clear_if_stale():
        console.print("[dim]  (removed stale PID file)[/dim]")


@app.command()
@handle_errors
def stop(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the TOML settings file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Kill immediately (SIGKILL) instead of letting in-flight triggers finish.",
    ),
) -> None:
    """Stop the running scheduler.

    Sends SIGTERM, which stops new ticks and lets in-flight triggers
    finish. Use --force to send SIGKILL.

    Example:
        drone-cron run stop
        drone-cron run stop --force
    """
    pid_file = _pid_file(config_file)
    pid = pid_file.read()

    if pid is None:
        console.print("[yellow]drone-cron is not running (no PID file found)[/yellow]")
        raise typer.Exit()

    if not pid_file.is_running():
        console.print("[yellow]drone-cron is not running (stale PID file)[/yellow]")
        pid_file.remove()
        raise typer.Exit()

    sig = signal.SIGKILL if force else signal.SIGTERM

    try:
        os.kill(pid, sig)
    except ProcessLookupError:
        console.print("[yellow]Process not found (already stopped)[/yellow]")
        pid_file.remove()
        return
    except OSError as e:
        console.print(f"[red]Cannot signal process {pid}: {e}[/red]")
        raise typer.Exit(code=ExitCode.GENERAL_ERROR)

    if force:
        console.print(f"[red]Killed drone-cron (PID: {pid})[/red]")
        pid_file.remove()
    else:
        console.print(f"[green]Shutdown signal sent to drone-cron (PID: {pid})[/green]")
