"""Main CLI entry point for Cadence."""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from cadence_cli import __app_name__, __version__
from cadence_cli.cli import config, jobs, serve
from cadence_cli.exit_codes import ExitCode

app = typer.Typer(
    name=__app_name__,
    help="Cadence - bounded interval jobs against a remote service.",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

app.add_typer(serve.app, name="serve")
app.add_typer(jobs.app, name="jobs")
app.add_typer(config.app, name="config")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"{__app_name__} v{__version__}")
        raise typer.Exit(code=ExitCode.SUCCESS)


def _setup_logging(
    verbose: bool = False,
    debug: bool = False,
    quiet: bool = False,
    log_file: Optional[Path] = None,
) -> None:
    """Set up logging configuration based on CLI options.

    Args:
        verbose: Enable INFO level logging
        debug: Enable DEBUG level logging
        quiet: Suppress non-error output
        log_file: Optional log file path
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING

    if debug:
        format_str = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
    else:
        format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    handlers: list[logging.Handler] = []

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)  # Always log debug to file
        handlers.append(file_handler)

    if not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        handlers.append(console_handler)
    elif not log_file:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=handlers,
        force=True,
    )

    # APScheduler logs every dispatched call at INFO
    if not debug:
        logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.debug(f"Logging configured: level={logging.getLevelName(level)}, debug={debug}")


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Enable verbose output (INFO level logging).",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode (DEBUG level logging).",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress non-error output.",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Log to file (logs DEBUG level regardless of console settings).",
    ),
) -> None:
    """Cadence - bounded interval jobs against a remote service.

    [bold]Commands:[/bold]

    • [cyan]serve[/cyan] - Run the HTTP API and job scheduler
    • [cyan]jobs[/cyan] - List or submit jobs on a running server
    • [cyan]config[/cyan] - Show or validate configuration

    [bold]Examples:[/bold]

        cadence serve --port 5000
        cadence jobs list
        cadence jobs submit --url https://example.com/post/1 --amount 3 --interval 5 -f creds.json
    """
    if quiet and (verbose or debug):
        console.print("[red]Error:[/red] --quiet cannot be combined with --verbose or --debug")
        raise typer.Exit(code=ExitCode.INVALID_ARGUMENT)

    _setup_logging(verbose=verbose, debug=debug, quiet=quiet, log_file=log_file)


if __name__ == "__main__":
    app()
