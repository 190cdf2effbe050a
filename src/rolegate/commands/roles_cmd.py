"""Command: rolegate roles - Inspect and edit roles."""

import asyncio
from typing import NoReturn

import typer
from rich.console import Console
from rich.table import Table

from rolegate.commands._runtime import open_engine
from rolegate.core.constants import SYSTEM_ACTOR
from rolegate.core.errors import RoleGateError
from rolegate.permissions.models import Role


console = Console()

app = typer.Typer(help="Inspect and edit roles.", no_args_is_help=True)


def _fail(e: RoleGateError) -> NoReturn:
    console.print(f"[red]Error:[/red] {e.message}")
    raise typer.Exit(1)


@app.command(name="list")
def list_roles() -> None:
    """List roles from most to least privileged."""

    async def _run() -> list[Role]:
        async with open_engine() as engine:
            return engine.roles.list()

    roles = asyncio.run(_run())
    if not roles:
        console.print("[yellow]No roles defined.[/yellow] Run 'rolegate bootstrap' first.")
        return

    table = Table(title="Roles", show_header=True)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Level", justify="right")
    table.add_column("Permissions", justify="right")
    table.add_column("Type", no_wrap=True)

    for role in roles:
        table.add_row(
            role.id,
            role.name,
            str(role.level),
            "all" if role.is_super else str(len(role.permissions)),
            "custom" if role.is_custom else "[dim]system[/dim]",
        )

    console.print()
    console.print(table)
    console.print()


@app.command(name="create")
def create_role(
    name: str = typer.Argument(..., help="Display name of the new role"),
    level: int = typer.Option(..., "--level", "-l", help="Rank (1-99, lower is more privileged)"),
    permission: list[str] = typer.Option(
        [], "--permission", "-p", help="Permission id to grant (repeatable)"
    ),
    description: str = typer.Option("", "--description", "-d", help="Role description"),
    by: str = typer.Option(SYSTEM_ACTOR, "--by", help="Actor recorded as creator"),
) -> None:
    """Create a custom role."""

    async def _run() -> Role:
        async with open_engine() as engine:
            return await engine.roles.create_custom_role(
                name,
                level=level,
                permissions=permission,
                description=description,
                created_by=by,
            )

    try:
        role = asyncio.run(_run())
    except RoleGateError as e:
        _fail(e)
    console.print(f"[green]✓[/green] Created role [cyan]{role.id}[/cyan] ({role.name})")


@app.command(name="set-permissions")
def set_permissions(
    role_id: str = typer.Argument(..., help="Role to edit"),
    permission: list[str] = typer.Option(
        [], "--permission", "-p", help="Permission id to grant (repeatable)"
    ),
    by: str = typer.Option(SYSTEM_ACTOR, "--by", help="Actor recorded as editor"),
) -> None:
    """Replace the permission set of a role.

    Actors holding the role are reconciled before the command exits.
    """

    async def _run() -> Role:
        async with open_engine() as engine:
            return await engine.roles.set_permissions(role_id, permission, updated_by=by)

    try:
        role = asyncio.run(_run())
    except RoleGateError as e:
        _fail(e)
    console.print(
        f"[green]✓[/green] Role [cyan]{role.id}[/cyan] now grants {len(role.permissions)} permissions"
    )


@app.command(name="delete")
def delete_role(
    role_id: str = typer.Argument(..., help="Custom role to delete"),
    reassign_to: str | None = typer.Option(
        None, "--reassign-to", "-r", help="Move assigned actors to this role first"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
) -> None:
    """Delete a custom role."""
    if not force:
        confirm = typer.confirm(f"Are you sure you want to delete role '{role_id}'?")
        if not confirm:
            console.print("[yellow]Cancelled.[/yellow]")
            raise typer.Exit(0)

    async def _run() -> list[str]:
        async with open_engine() as engine:
            return await engine.roles.delete(role_id, reassign_to)

    try:
        moved = asyncio.run(_run())
    except RoleGateError as e:
        _fail(e)
    console.print(f"[green]✓[/green] Deleted role [cyan]{role_id}[/cyan]")
    if moved:
        console.print(f"[dim]{len(moved)} actor(s) moved to {reassign_to}[/dim]")
