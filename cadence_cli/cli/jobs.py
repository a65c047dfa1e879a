"""Cadence jobs command - inspect and submit jobs on a running server."""

import json
from pathlib import Path
from typing import Any

import httpx
import typer
from rich.console import Console
from rich.table import Table

from cadence_cli.cli.error_handler import handle_errors
from cadence_cli.errors import CadenceError, NetworkError, ValidationError

app = typer.Typer(help="Inspect and submit jobs on a running Cadence server.")
console = Console()

DEFAULT_SERVER = "http://127.0.0.1:5000"

server_option = typer.Option(
    DEFAULT_SERVER,
    "--server",
    envvar="CADENCE_SERVER",
    help="Base URL of the Cadence server.",
)


def _request(method: str, server: str, path: str, **kwargs: Any) -> Any:
    """Call the server and return the decoded JSON body."""
    try:
        response = httpx.request(method, f"{server.rstrip('/')}{path}", timeout=30.0, **kwargs)
    except httpx.HTTPError as e:
        raise NetworkError(f"Cannot reach Cadence server at {server}", details={"reason": str(e)}) from e

    try:
        body = response.json()
    except ValueError:
        body = None

    if response.is_error:
        message = body.get("error") if isinstance(body, dict) else response.text
        error = CadenceError(message or f"Server answered {response.status_code}")
        error.status_code = response.status_code
        raise error

    return body


@app.command("list")
@handle_errors
def list_jobs(
    server: str = server_option,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the raw JSON listing.",
    ),
) -> None:
    """List live jobs with their progress.

    Example:
        cadence jobs list
        cadence jobs list --server http://host:5000 --json
    """
    jobs = _request("GET", server, "/total")

    if json_output:
        console.print_json(json.dumps(jobs))
        return

    if not jobs:
        console.print("[yellow]No live jobs[/yellow]")
        return

    table = Table(title="Live Jobs")
    table.add_column("#", style="cyan")
    table.add_column("Content ID", style="magenta")
    table.add_column("Progress", style="bold")
    table.add_column("URL")

    for job in jobs:
        done = job["count"] >= job["target"]
        progress = f"{job['count']}/{job['target']}"
        table.add_row(
            str(job["session"]),
            str(job["id"]),
            f"[green]{progress}[/green]" if done else progress,
            job["url"],
        )

    console.print(table)


@app.command("submit")
@handle_errors
def submit_job(
    url: str = typer.Option(..., "--url", "-u", help="Target URL."),
    amount: int = typer.Option(..., "--amount", "-a", help="Number of writes.", min=1),
    interval: float = typer.Option(..., "--interval", "-i", help="Seconds between writes."),
    credential_file: Path = typer.Option(
        ...,
        "--credential-file",
        "-f",
        help="JSON file with the credential key/value entries.",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    server: str = server_option,
) -> None:
    """Submit a new job.

    Example:
        cadence jobs submit --url https://example.com/post/1 --amount 3 --interval 5 -f creds.json
    """
    if interval <= 0:
        raise ValidationError("Interval must be positive", details={"interval": interval})

    payload = {
        "cookie": credential_file.read_text(),
        "url": url,
        "amount": amount,
        "interval": interval,
    }
    result = _request("POST", server, "/api/submit", json=payload)
    console.print(f"[green]Job accepted:[/green] {result.get('jobId', url)}")
