"""Error handling for Cadence CLI commands.

Commands wrapped with ``handle_errors`` turn CadenceError subclasses into
a readable message and the matching exit code.
"""

from functools import wraps
from typing import Callable, TypeVar, Any
import logging

import typer
from rich.console import Console

from cadence_cli.errors import CadenceError
from cadence_cli.exit_codes import ExitCode

# Console for error output (stderr)
console = Console(stderr=True)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def handle_errors(func: F) -> F:
    """Decorator for consistent error handling across CLI commands.

    Example:
        @app.command()
        @handle_errors
        def my_command():
            raise ConfigurationError("Invalid config")
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except CadenceError as e:
            logger.error(
                f"{type(e).__name__}: {e.message}",
                extra={"exit_code": e.exit_code, "details": e.details},
            )
            console.print(f"[red]Error:[/red] {e.message}")

            for key, value in e.details.items():
                console.print(f"  [dim]{key}:[/dim] {value}")

            raise typer.Exit(code=e.exit_code)

        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user.[/yellow]")
            raise typer.Exit(code=ExitCode.CANCELLED)

        except typer.Exit:
            raise

        except Exception as e:
            logger.exception("Unexpected error occurred")
            console.print(f"[red]Unexpected error:[/red] {e}")
            console.print("[dim]Run with --debug for more details[/dim]")
            raise typer.Exit(code=ExitCode.GENERAL_ERROR)

    return wrapper  # type: ignore[return-value]
