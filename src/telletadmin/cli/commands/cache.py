"""
Cache management commands.
"""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from telletadmin.cli.common import get_state, run_async
from telletadmin.core.fetch.caching import CACHE_PROFILES, build_caches

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Inspect and clear local caches",
    no_args_is_help=True,
)


@app.command("stats")
def cache_stats(ctx: typer.Context) -> None:
    """Show configuration of the named caches and their on-disk entries."""
    settings = get_state(ctx).config.cache
    caches = build_caches(settings)

    table = Table(title="Caches", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("TTL (s)", justify="right")
    table.add_column("Max size", justify="right")
    table.add_column("Persistent", justify="center")
    table.add_column("Files on disk", justify="right")

    for name, cache in caches.items():
        stats = cache.stats()
        files = len(list(cache.cache_dir.glob("*.json"))) if cache.cache_dir and cache.cache_dir.exists() else 0
        table.add_row(
            name,
            f"{stats['ttl']:g}",
            str(stats["max_size"]),
            "yes" if stats["persistent"] else "no",
            str(files),
        )

    console.print(table)
    console.print(f"[dim]Cache directory: {settings.dir}[/dim]")


@app.command("clear")
def cache_clear(
    ctx: typer.Context,
    name: Optional[str] = typer.Option(
        None,
        "--name",
        "-n",
        help=f"Cache to clear ({', '.join(CACHE_PROFILES)}); default: all",
    ),
) -> None:
    """Clear cached entries."""
    caches = build_caches(get_state(ctx).config.cache)

    if name is not None and name not in caches:
        err_console.print(f"[red]Unknown cache:[/red] {name}")
        raise typer.Exit(1)

    selected = [caches[name]] if name else list(caches.values())

    async def _clear() -> None:
        for cache in selected:
            await cache.clear()

    run_async(_clear())
    console.print(f"[green]OK[/green] Cleared {name or 'all caches'}")
