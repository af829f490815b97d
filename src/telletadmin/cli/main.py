"""
Tellet Admin CLI - Main entry point.

Administrative command-line client for the Tellet API with rate limiting,
retries and local caching.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.traceback import install as install_rich_traceback

from telletadmin import __app_name__, __version__
from telletadmin.cli.common import CLIState, render_error
from telletadmin.core.config import ConfigError, load_app_config
from telletadmin.core.logging import setup_logging

# Load environment variables from .env (if present)
load_dotenv()

install_rich_traceback(show_locals=False, width=120)

console = Console()

app = typer.Typer(
    name=__app_name__,
    help="Administrative CLI for the Tellet API",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    url: Optional[str] = typer.Option(
        None,
        "--url",
        "-u",
        help="API base URL (overrides TELLET_API_URL and config file)",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to config.yaml (default: $TELLET_CONFIG or ~/.tellet/config.yaml)",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug logging",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Tellet Admin - API client and maintenance tool."""
    try:
        config = load_app_config(config_path)
    except ConfigError as e:
        render_error(e)
        raise typer.Exit(e.exit_code)

    log = config.logging
    setup_logging(
        level="DEBUG" if debug else log.level,
        log_file=log.file,
        json_format=log.json_format,
        rich_console=log.rich_console,
    )
    ctx.obj = CLIState(config=config, base_url=url)


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import api, auth, cache, download  # noqa: E402

app.command("login")(auth.login)
app.command("logout")(auth.logout)
app.command("test-api")(api.test_api)
app.command("list-orgs")(api.list_orgs)
app.command("download")(download.download)
app.add_typer(cache.app, name="cache", help="Inspect and clear local caches")


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
