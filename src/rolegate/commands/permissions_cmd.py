"""Command: rolegate permissions - List the permission catalog."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from rolegate.commands._runtime import open_engine
from rolegate.permissions.models import Permission


console = Console()


def list_permissions(
    category: str | None = typer.Option(
        None, "--category", "-c", help="Show only this category"
    ),
) -> None:
    """List registered permissions grouped by category."""

    async def _run() -> list[Permission]:
        async with open_engine() as engine:
            return engine.catalog.list()

    permissions = asyncio.run(_run())
    if category:
        permissions = [p for p in permissions if p.category == category]

    if not permissions:
        console.print("[yellow]No permissions registered.[/yellow]")
        return

    table = Table(title="Permissions", show_header=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Category", style="green", no_wrap=True)
    table.add_column("Description")

    for p in permissions:
        table.add_row(p.id, p.name, p.category, p.description)

    console.print()
    console.print(table)
    console.print()
