"""
Shared CLI plumbing: per-invocation state, sessions and error rendering.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Coroutine, TypeVar

import typer
from rich.console import Console

from telletadmin.core.api.client import APIClient, create_client
from telletadmin.core.auth import AuthManager
from telletadmin.core.config.models import AppConfig, ClientConfig
from telletadmin.core.errors import (
    AuthenticationError,
    AuthorizationError,
    NetworkError,
    RateLimitError,
    TelletError,
    exit_code_for,
)

err_console = Console(stderr=True)

T = TypeVar("T")


@dataclass
class CLIState:
    """Options resolved by the root callback."""

    config: AppConfig
    base_url: str | None = None

    @property
    def client_config(self) -> ClientConfig:
        if self.base_url:
            return self.config.api.model_copy(update={"base_url": self.base_url.rstrip("/")})
        return self.config.api


def get_state(ctx: typer.Context) -> CLIState:
    state = ctx.find_root().obj
    if not isinstance(state, CLIState):
        state = CLIState(config=AppConfig())
        ctx.find_root().obj = state
    return state


def _suggestion(error: TelletError) -> str | None:
    if isinstance(error, AuthenticationError):
        return (
            "Please check your credentials and try again.\n"
            "You can set TELLET_EMAIL and TELLET_PASSWORD environment variables."
        )
    if isinstance(error, AuthorizationError):
        return "Your account does not have access to this resource."
    if isinstance(error, NetworkError):
        return "Please check your internet connection and the API URL."
    if isinstance(error, RateLimitError) and error.retry_after:
        return f"Please wait {error.retry_after:g} seconds before trying again."
    return None


def render_error(error: TelletError) -> None:
    err_console.print(f"[red]{error.code}:[/red] {error.message}")
    suggestion = _suggestion(error)
    if suggestion:
        err_console.print(f"[dim]{suggestion}[/dim]")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a command coroutine, turning classified errors into exit codes."""
    try:
        return asyncio.run(coro)
    except TelletError as e:
        render_error(e)
        raise typer.Exit(exit_code_for(e))


@asynccontextmanager
async def session(
    state: CLIState,
    email: str | None = None,
    password: str | None = None,
    use_cache: bool = True,
    authenticate: bool = True,
) -> AsyncIterator[APIClient]:
    """Yield an API client, authenticated unless ``authenticate`` is False.

    Prompts for missing credentials only when no cached token can be used.
    """
    async with create_client(state.client_config) as client:
        if authenticate:
            auth = AuthManager(client, state.config.auth.token_path)
            if not (use_cache and auth.cached_token()):
                email = email or typer.prompt("Email")
                password = password or typer.prompt("Password", hide_input=True)
            await auth.authenticate(email, password, use_cache=use_cache)
        yield client


EMAIL_OPTION = typer.Option(
    None,
    "--email",
    "-e",
    envvar="TELLET_EMAIL",
    help="Email for authentication",
)
PASSWORD_OPTION = typer.Option(
    None,
    "--password",
    "-P",
    envvar="TELLET_PASSWORD",
    help="Password for authentication",
)
NO_CACHE_OPTION = typer.Option(
    False,
    "--no-cache",
    help="Ignore the cached token and log in again",
)
