"""Start command."""

import click

from . import cli
from .shared import console


@cli.command()
@click.option("--host", default=None, help="Bind host (default: HOST or 0.0.0.0)")
@click.option("--port", type=int, default=None, help="Bind port (default: PORT or 8080)")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def start(host, port, debug):
    """Start the webhook server."""
    from relaybot.config import load_settings
    from relaybot.main import run

    settings = load_settings(debug=True) if debug else load_settings()
    console.print("[bold blue]Starting Relaybot...[/bold blue]")
    run(settings, host=host, port=port)
