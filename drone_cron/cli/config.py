"""drone-cron config command - Show and validate settings."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from drone_cron.cli.error_handler import handle_errors
from drone_cron.cli.exit_codes import ExitCode

app = typer.Typer(help="Show and validate drone-cron settings.")
console = Console()


@app.command("show")
@handle_errors
def show_config(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the TOML settings file.",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output as JSON instead of a table.",
    ),
    yaml_output: bool = typer.Option(
        False,
        "--yaml",
        help="Output as YAML instead of a table.",
    ),
    unmask: bool = typer.Option(
        False,
        "--unmask",
        help="Show the access token unmasked (use with caution).",
    ),
) -> None:
    """Show the effective settings after applying the environment.

    Example:
        drone-cron config show
        drone-cron config show --json
    """
    from drone_cron.config import _config_to_dict, export_config_json, export_config_yaml, load_config

    config = load_config(config_file)

    if json_output:
        print(export_config_json(config, mask_secrets=not unmask))
        return
    if yaml_output:
        console.print(Syntax(export_config_yaml(config, mask_secrets=not unmask), "yaml", theme="monokai"))
        return

    data = _config_to_dict(config, mask_secrets=not unmask)

    console.print("[bold]drone-cron Configuration[/bold]")
    console.print()

    paths = {"config_dir": data.pop("config_dir"), "data_dir": data.pop("data_dir")}
    data["paths"] = paths

    for section, values in data.items():
        table = Table(title=section.capitalize())
        table.add_column("Key", style="cyan")
        table.add_column("Value", style="green")

        for key, value in values.items():
            table.add_row(key, "" if value is None else str(value))

        console.print(table)
        console.print()


@app.command("validate")
@handle_errors
def validate_config(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the TOML settings file.",
    ),
) -> None:
    """Validate settings and the jobs file.

    Parses every job the way `run` would, without contacting the server.

    Example:
        drone-cron config validate
    """
    from drone_cron.cli.error_handler import ConfigurationError
    from drone_cron.config import load_config, load_jobs, validate_config as do_validate
    from drone_cron.scheduler.cron import ScheduleError, parse_schedule
    from drone_cron.scheduler.jobs import RepositoryIdentifierError, parse_repository

    config = load_config(config_file)

    console.print("[bold]Validating configuration...[/bold]")
    console.print()

    all_passed = True
    errors = do_validate(config)

    for error in errors:
        if error.severity == "error":
            status = "[red]✗[/red]"
            all_passed = False
        else:
            status = "[yellow]![/yellow]"
        console.print(f"  {status} [{error.severity.upper()}] {error.field}: {escape(error.message)}")

    if config.scheduler.jobs_file.exists():
        try:
            jobs = load_jobs(config.scheduler.jobs_file)
        except ConfigurationError as e:
            console.print(f"  [red]✗[/red] [ERROR] scheduler.jobs_file: {escape(e.message)}")
            jobs = []
            all_passed = False

        for job in jobs:
            try:
                parse_repository(job.repository)
                parse_schedule(job.schedule, timezone=config.scheduler.timezone)
            except (RepositoryIdentifierError, ScheduleError) as e:
                # Skipped at runtime, so only a warning here
                console.print(f"  [yellow]![/yellow] [WARNING] jobs.{job.repository}: {escape(e.message)}")
            else:
                console.print(f"  [green]✓[/green] {job.schedule} {job.name}")

    console.print()
    if all_passed:
        console.print("[green]Configuration is valid[/green]")
    else:
        console.print("[red]Configuration has errors[/red]")
        raise typer.Exit(code=ExitCode.CONFIGURATION_ERROR)
