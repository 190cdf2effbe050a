"""Command: rolegate bootstrap - Create tables and seed default data."""

import asyncio

import typer
from rich.console import Console

from rolegate.commands._runtime import open_engine


console = Console()


def bootstrap() -> None:
    """Create the tables and seed the default permissions and roles.

    Safe to run repeatedly: a store that already has a super-role is left
    untouched.
    """

    async def _run() -> tuple[int, int]:
        async with open_engine(bootstrap=True, create_tables=True) as engine:
            return len(engine.catalog), len(engine.roles)

    try:
        permissions, roles = asyncio.run(_run())
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(
        f"[green]✓[/green] Store ready: {permissions} permissions, {roles} roles"
    )
