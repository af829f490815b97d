"""
Streamed download command.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn

from telletadmin.cli.common import EMAIL_OPTION, PASSWORD_OPTION, get_state, run_async, session

console = Console()


def _default_filename(url: str) -> Path:
    name = Path(urlparse(url).path).name
    return Path(name or "download.bin")


def download(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Absolute URL or API path to download"),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Destination file (default: last URL segment)",
    ),
    auth: bool = typer.Option(
        True,
        "--auth/--no-auth",
        help="Send the bearer token with the request",
    ),
    email: Optional[str] = EMAIL_OPTION,
    password: Optional[str] = PASSWORD_OPTION,
) -> None:
    """Download a file with a progress bar."""
    state = get_state(ctx)
    destination = output or _default_filename(url)

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(f"Downloading {destination.name}", total=100)

        async def _download() -> bytes:
            async with session(state, email, password, authenticate=auth) as api:
                return await api.download(url, on_progress=lambda pct: progress.update(task, completed=pct))

        payload = run_async(_download())

    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(payload)
    console.print(f"[green]OK[/green] Saved {len(payload)} bytes to {destination}")
