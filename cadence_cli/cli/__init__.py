"""CLI command modules for Cadence."""

from cadence_cli.cli import config, jobs, serve
from cadence_cli.cli.error_handler import handle_errors

__all__ = [
    "config",
    "jobs",
    "serve",
    "handle_errors",
]
