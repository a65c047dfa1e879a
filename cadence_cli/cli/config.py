"""Cadence config command - show and validate configuration."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from cadence_cli.exit_codes import ExitCode

app = typer.Typer(help="Show and validate configuration.")
console = Console()

config_option = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to configuration file.",
    exists=True,
    dir_okay=False,
    resolve_path=True,
)


@app.command("show")
def show_config(config_file: Optional[Path] = config_option) -> None:
    """Print the effective configuration as JSON."""
    from cadence_cli.config import config_to_dict, load_config

    config = load_config(config_file)
    console.print_json(json.dumps(config_to_dict(config)))


@app.command("validate")
def validate(config_file: Optional[Path] = config_option) -> None:
    """Check the effective configuration for problems."""
    from cadence_cli.config import load_config, validate_config

    errors = validate_config(load_config(config_file))
    if not errors:
        console.print("[green]Configuration is valid[/green]")
        return

    table = Table(title="Configuration Problems")
    table.add_column("Severity", style="bold")
    table.add_column("Field", style="cyan")
    table.add_column("Message")
    for error in errors:
        color = "red" if error.severity == "error" else "yellow"
        table.add_row(f"[{color}]{error.severity}[/{color}]", error.field, error.message)
    console.print(table)

    if any(e.severity == "error" for e in errors):
        raise typer.Exit(code=ExitCode.CONFIGURATION_ERROR)
