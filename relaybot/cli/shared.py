"""Shared utilities for Relaybot CLI commands."""

from rich.console import Console

from relaybot.communication.errors import ConfigError
from relaybot.config import RelaySettings, load_settings

console = Console()


def require_settings() -> RelaySettings:
    """Load settings or exit with a readable message when incomplete."""
    import click

    settings = load_settings()
    missing = settings.missing_required()
    if missing:
        console.print(f"[red]✗ {ConfigError(missing)}[/red]")
        raise click.exceptions.Exit(1)
    return settings
