"""Command: rolegate reconcile - Repair permission snapshots."""

import asyncio

import typer
from rich.console import Console

from rolegate.commands._runtime import open_engine


console = Console()


def reconcile(
    role_id: str | None = typer.Option(
        None, "--role", "-r", help="Only actors assigned this role"
    ),
    actor_id: str | None = typer.Option(None, "--actor", "-a", help="Only this actor"),
) -> None:
    """Bring stored permission snapshots in line with role definitions."""
    if role_id and actor_id:
        console.print("[red]Error:[/red] Use either --role or --actor, not both.")
        raise typer.Exit(1)

    async def _run() -> int:
        async with open_engine() as engine:
            if actor_id:
                return int(await engine.reconciler.reconcile(actor_id))
            if role_id:
                return await engine.reconciler.reconcile_role(role_id)
            return await engine.reconciler.reconcile_all()

    changed = asyncio.run(_run())
    console.print(f"[green]✓[/green] {changed} snapshot(s) updated")
