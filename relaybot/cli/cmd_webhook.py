"""Telegram maintenance commands."""

import asyncio
import click

from . import cli
from .shared import console, require_settings


@cli.command("set-webhook")
@click.argument("url")
def set_webhook(url):
    """Register URL (ending in /webhook) as the bot's webhook."""
    settings = require_settings()

    async def _set():
        from relaybot.communication.telegram import TelegramTransport

        transport = TelegramTransport(settings.bot_token)
        try:
            return await transport.register_webhook(url, settings.webhook_secret or "")
        finally:
            await transport.close()

    try:
        result = asyncio.run(_set())
    except Exception as e:
        console.print(f"[red]✗ Failed to set webhook: {e}[/red]")
        raise click.exceptions.Exit(1)

    if result.get("ok"):
        console.print(f"[green]✓ Webhook set to {url}[/green]")
    else:
        console.print(f"[red]✗ Telegram refused webhook {url}[/red]")
        raise click.exceptions.Exit(1)


@cli.command()
def me():
    """Show the bot's Telegram identity."""
    settings = require_settings()

    async def _me():
        from relaybot.communication.telegram import TelegramTransport

        transport = TelegramTransport(settings.bot_token)
        try:
            return await transport.get_self_info()
        finally:
            await transport.close()

    try:
        info = asyncio.run(_me())
    except Exception as e:
        console.print(f"[red]✗ Error: {e}[/red]")
        raise click.exceptions.Exit(1)

    bot = info["result"]
    console.print(f"[green]✓ @{bot.get('username')} ({bot.get('first_name')})[/green]")
    console.print(f"   ID: {bot.get('id')}")
