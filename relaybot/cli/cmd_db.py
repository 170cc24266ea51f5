"""Database management commands."""

import asyncio
import click

from . import cli
from .shared import console


@cli.group()
def db():
    """Recipient directory database commands."""
    pass


@db.command("init")
def db_init():
    """Initialize the recipient directory schema."""
    from relaybot.config import load_settings

    settings = load_settings()
    if not settings.database_url:
        console.print("[red]✗ DATABASE_URL is not set[/red]")
        raise click.exceptions.Exit(1)

    async def _init():
        from relaybot.db.connection import apply_schema, close_db, get_connection, init_db

        await init_db(settings.database_url)
        try:
            async with get_connection() as conn:
                await apply_schema(conn)
        finally:
            await close_db()

    asyncio.run(_init())
    console.print("[green]✓ Database schema initialized[/green]")
