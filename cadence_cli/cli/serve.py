"""Cadence serve command - run the HTTP API and the job scheduler."""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from cadence_cli.cli.error_handler import handle_errors
from cadence_cli.config import LoggingConfig
from cadence_cli.errors import ConfigurationError

app = typer.Typer(help="Run the Cadence HTTP API with its job scheduler.")
console = Console()

logger = logging.getLogger(__name__)


def _apply_logging_config(logging_config: LoggingConfig) -> None:
    """Add the configured log file next to the handlers the CLI flags set up."""
    if logging_config.file is None:
        return

    path = Path(logging_config.file).expanduser().resolve()
    root = logging.getLogger()
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename).resolve() == path:
            return

    level = getattr(logging, logging_config.level.upper())
    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(path)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(logging_config.format))
    root.addHandler(file_handler)

    if root.level > level:
        root.setLevel(level)
    logger.debug(f"Logging to {path} at {logging_config.level.upper()}")


@app.callback(invoke_without_command=True)
@handle_errors
def serve(
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    host: Optional[str] = typer.Option(
        None,
        "--host",
        help="Interface to bind (default from config).",
    ),
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        help="Port to listen on (default from PORT / config).",
        min=1,
        max=65535,
    ),
) -> None:
    """Start the Cadence server.

    Example:
        cadence serve
        cadence serve --port 8080
        PORT=8080 cadence serve --config cadence.toml
    """
    import uvicorn

    from cadence_cli.api.app import create_app
    from cadence_cli.config import load_config, set_config, validate_config

    config = load_config(config_file)
    if host:
        config.server.host = host
    if port:
        config.server.port = port

    problems = [e for e in validate_config(config) if e.severity == "error"]
    if problems:
        raise ConfigurationError(
            "Configuration is invalid",
            details={e.field: e.message for e in problems},
        )
    set_config(config)
    _apply_logging_config(config.logging)

    console.print(
        f"[bold green]Starting Cadence on {config.server.host}:{config.server.port}[/bold green]"
    )
    logger.info(f"Observation window: {config.scheduler.observation_window}s")

    uvicorn.run(
        create_app(config=config),
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )
