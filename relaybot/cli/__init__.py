"""Relaybot CLI — command line interface."""

import click
from rich.table import Table

from relaybot import __version__
from .shared import console


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="relaybot")
@click.pass_context
def cli(ctx):
    """Relaybot — Telegram relay between users and one admin"""
    if ctx.invoked_subcommand is None:
        _show_help(ctx)


def _iter_commands(group: click.Group, ctx: click.Context, prefix: str = ""):
    """Yield (name, summary) for every visible command, descending into subgroups."""
    for name in group.list_commands(ctx):
        command = group.get_command(ctx, name)
        if command is None or command.hidden:
            continue
        if isinstance(command, click.Group):
            yield from _iter_commands(command, ctx, f"{prefix}{name} ")
        else:
            yield f"{prefix}{name}", command.get_short_help_str(limit=60)


def _show_help(ctx: click.Context):
    console.print(f"[bold]Relaybot v{__version__}[/bold]: Telegram relay between users and one admin\n")

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()
    for name, summary in _iter_commands(cli, ctx):
        table.add_row(f"relaybot {name}", summary)
    console.print(table)

    console.print("\n[dim]Run 'relaybot <command> --help' for details on a specific command.[/dim]")


# Import all command modules (registers commands onto cli group)
from . import cmd_start  # noqa: E402, F401
from . import cmd_webhook  # noqa: E402, F401
from . import cmd_db  # noqa: E402, F401


@cli.command(name="help", hidden=True)
@click.pass_context
def help_cmd(ctx):
    """Show all available commands."""
    _show_help(ctx)
