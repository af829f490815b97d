"""
Authentication commands.
"""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from telletadmin.cli.common import EMAIL_OPTION, PASSWORD_OPTION, get_state, run_async, session
from telletadmin.core.auth import AuthManager

console = Console()


def login(
    ctx: typer.Context,
    email: Optional[str] = EMAIL_OPTION,
    password: Optional[str] = PASSWORD_OPTION,
) -> None:
    """Log in and cache the access token."""
    state = get_state(ctx)

    async def _login() -> None:
        async with session(state, email, password, use_cache=False):
            pass

    run_async(_login())
    console.print(f"[green]OK[/green] Logged in to {state.client_config.base_url}")
    console.print(f"[dim]Token cached at {state.config.auth.token_path}[/dim]")


def logout(ctx: typer.Context) -> None:
    """Remove the cached access token."""
    state = get_state(ctx)

    async def _logout() -> None:
        async with session(state, authenticate=False) as client:
            AuthManager(client, state.config.auth.token_path).logout()

    run_async(_logout())
    console.print("[green]OK[/green] Logged out")
