"""
API connectivity and organization listing commands.
"""

from __future__ import annotations

from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from telletadmin.cli.common import (
    EMAIL_OPTION,
    NO_CACHE_OPTION,
    PASSWORD_OPTION,
    CLIState,
    get_state,
    run_async,
    session,
)
from telletadmin.core.api.client import APIClient
from telletadmin.core.errors import TelletError
from telletadmin.core.fetch.caching import CacheManager, build_caches

console = Console()


def _workspaces(data: Any) -> list[dict[str, Any]]:
    """Flatten the private/shared workspace groups of one organization."""
    if not isinstance(data, dict):
        return []
    private = data.get("privateWorkspaces") or data.get("priv") or []
    shared = data.get("sharedWorkspaces") or data.get("shared") or []
    return [*private, *shared]


def _short_id(value: str, show_full: bool) -> str:
    if show_full or len(value) <= 8:
        return value
    return f"{value[:8]}..."


def test_api(
    ctx: typer.Context,
    email: Optional[str] = EMAIL_OPTION,
    password: Optional[str] = PASSWORD_OPTION,
    no_cache: bool = NO_CACHE_OPTION,
) -> None:
    """Test API connection and authentication."""
    state = get_state(ctx)

    async def _test() -> dict[str, Any]:
        async with session(state, email, password, use_cache=not no_cache) as api:
            console.print("[bold]Testing API Connection[/bold]")
            console.print("[green]OK[/green] Authentication: token accepted")

            orgs = await api.get("/organizations")
            orgs = orgs if isinstance(orgs, list) else []
            console.print(f"[green]OK[/green] Organizations: found {len(orgs)} organization(s)")

            if orgs:
                first = orgs[0]
                console.print(f"  First org: {first.get('name')} ({first.get('_id')})")
                try:
                    data = await api.get(f"/organizations/{first.get('_id')}/workspaces")
                    console.print(f"[green]OK[/green] Workspaces: found {len(_workspaces(data))} workspace(s)")
                except TelletError as e:
                    console.print(f"[red]x[/red] Workspaces: {e.message}")

            return api.stats()

    stats = run_async(_test())

    table = Table(title="API Test Summary", show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row("Base URL", state.client_config.base_url)
    table.add_row("Requests made", str(stats["total_requests"]))
    table.add_row("Requests in window", str(stats["current_window_requests"]))
    table.add_row(
        "Rate limit",
        f"{stats['rate_limit']['max_requests']} per {stats['rate_limit']['per_seconds']:g}s",
    )
    table.add_row("Concurrency limit", str(stats["concurrency_limit"]))
    console.print(table)


async def _fetch_organizations(
    api: APIClient,
    cache: CacheManager | None,
    base_url: str,
    refresh: bool = False,
) -> list[dict[str, Any]]:
    key = CacheManager.generate_key("organizations", {"base_url": base_url})
    if cache is not None and not refresh:
        orgs = await cache.get(key)
        if orgs is not None:
            return orgs

    orgs = await api.get("/organizations")
    orgs = orgs if isinstance(orgs, list) else []
    if cache is not None:
        await cache.set(key, orgs)
    return orgs


def list_orgs(
    ctx: typer.Context,
    show_ids: bool = typer.Option(
        False,
        "--show-ids",
        help="Show full IDs instead of truncated versions",
    ),
    fast: bool = typer.Option(
        False,
        "--fast",
        help="Only fetch organization names",
    ),
    refresh: bool = typer.Option(
        False,
        "--refresh",
        help="Ignore cached organizations and fetch them again",
    ),
    email: Optional[str] = EMAIL_OPTION,
    password: Optional[str] = PASSWORD_OPTION,
    no_cache: bool = NO_CACHE_OPTION,
) -> None:
    """List your organizations and workspaces."""
    state: CLIState = get_state(ctx)
    cache = None
    if state.config.cache.enabled:
        cache = build_caches(state.config.cache)["organizations"]

    async def _list() -> list[tuple[dict[str, Any], list[dict[str, Any]] | str]]:
        async with session(state, email, password, use_cache=not no_cache) as api:
            orgs = await _fetch_organizations(api, cache, state.client_config.base_url, refresh)
            if fast or not orgs:
                return [(org, []) for org in orgs]

            requests = [{"path": f"/organizations/{org.get('_id')}/workspaces"} for org in orgs]
            settlements = await api.batch(requests, chunk_size=state.client_config.max_concurrent)
            return [
                (org, _workspaces(s.value) if s.ok else f"Failed to fetch workspaces: {s.reason}")
                for org, s in zip(orgs, settlements)
            ]

    rows = run_async(_list())

    if not rows:
        console.print("[yellow]No organizations found[/yellow]")
        return

    table = Table(title="Organizations", show_header=True, header_style="bold magenta")
    table.add_column("Organization", style="cyan")
    table.add_column("Workspace", style="green")
    table.add_column("ID", style="dim")

    for org, workspaces in rows:
        table.add_row(org.get("name", "?"), "", _short_id(str(org.get("_id", "")), show_ids))
        if isinstance(workspaces, str):
            table.add_row("", f"[yellow]{workspaces}[/yellow]", "")
            continue
        for ws in workspaces:
            table.add_row("", ws.get("name", "?"), _short_id(str(ws.get("_id", "")), show_ids))

    console.print(table)
