"""drone-cron jobs command - Inspect and trigger configured jobs."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from drone_cron.cli.error_handler import handle_errors
from drone_cron.cli.exit_codes import ExitCode

app = typer.Typer(help="Inspect the jobs file and trigger builds by hand.")
console = Console()


@app.command("list")
@handle_errors
def list_jobs(
    jobs_file: Optional[Path] = typer.Option(
        None,
        "--jobs",
        "-j",
        help="Path to the YAML jobs file (overrides DRONE_CRON_CONFIG).",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON.",
    ),
) -> None:
    """List configured jobs, whether they would be scheduled, and when they fire next.

    Nothing is sent to the Drone server.

    Example:
        drone-cron jobs list
        drone-cron jobs list --jobs ./config.yaml --json
    """
    from drone_cron.config import load_config, load_jobs
    from drone_cron.drone.client import DroneClient
    from drone_cron.scheduler.cron import ScheduleError
    from drone_cron.scheduler.job_scheduler import CronScheduler, JobRegistry
    from drone_cron.scheduler.jobs import RepositoryIdentifierError

    config = load_config()
    path = jobs_file or config.scheduler.jobs_file
    jobs = load_jobs(path)

    # Registration only parses; the client is never opened
    scheduler = CronScheduler(timezone=config.scheduler.timezone)
    registry = JobRegistry(scheduler, DroneClient(config.server.url, config.server.token))

    rows = []
    for job in jobs:
        row = {
            "repository": job.repository,
            "branch": job.branch,
            "schedule": job.schedule,
            "armed": True,
            "error": None,
            "next_run": None,
        }
        try:
            registration = registry.register(job)
        except (RepositoryIdentifierError, ScheduleError) as e:
            row["armed"] = False
            row["error"] = e.message
        else:
            next_run = scheduler.next_run(registration.registration_id)
            row["next_run"] = next_run.isoformat() if next_run else None
        rows.append(row)

    if json_output:
        print(json.dumps(rows, indent=2))
        return

    if not rows:
        console.print(f"[yellow]No jobs configured in {path}[/yellow]")
        return

    table = Table(title=f"Jobs ({path})")
    table.add_column("Repository", style="cyan")
    table.add_column("Branch", style="magenta")
    table.add_column("Schedule", style="green")
    table.add_column("Status", style="bold")
    table.add_column("Next Run")

    for row in rows:
        if row["armed"]:
            status_str = "[green]scheduled[/green]"
            next_run = row["next_run"] or "N/A"
        else:
            status_str = "[red]rejected[/red]"
            next_run = f"[dim]{escape(row['error'])}[/dim]"

        table.add_row(row["repository"], row["branch"], row["schedule"], status_str, next_run)

    console.print(table)


@app.command("trigger")
@handle_errors
def trigger_job(
    repository: str = typer.Argument(
        ...,
        help="Repository in owner/name form.",
    ),
    branch: str = typer.Option(
        "master",
        "--branch",
        "-b",
        help="Branch whose last build is restarted.",
    ),
) -> None:
    """Restart the last build of a repository now.

    Example:
        drone-cron jobs trigger acme/widgets
        drone-cron jobs trigger acme/gadgets --branch main
    """
    from drone_cron.config import load_config, require_server_settings
    from drone_cron.drone.client import DroneClient
    from drone_cron.scheduler.jobs import parse_repository
    from drone_cron.scheduler.trigger import BuildTrigger

    config = load_config()
    require_server_settings(config)
    owner, name = parse_repository(repository)

    async def _trigger():
        async with DroneClient(
            config.server.url,
            config.server.token,
            timeout=config.server.request_timeout,
        ) as client:
            return await BuildTrigger(owner=owner, name=name, client=client, branch=branch)()

    result = asyncio.run(_trigger())

    if not result.success:
        console.print(f"[red]✗[/red] Trigger of {result.repository}@{result.branch} failed: {escape(result.error)}")
        raise typer.Exit(code=ExitCode.NETWORK_ERROR)

    console.print(f"[green]✓[/green] Restarted {result.last_build.slug}")
    console.print(f"  New build: {result.new_build.slug}")
    if result.new_build.link:
        console.print(f"  Link: {result.new_build.link}")
