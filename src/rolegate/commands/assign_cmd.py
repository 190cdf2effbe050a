"""Command: rolegate assign - Assign a role to an actor."""

import asyncio
from datetime import timedelta

import typer
from rich.console import Console

from rolegate.commands._runtime import open_engine
from rolegate.core.constants import SYSTEM_ACTOR
from rolegate.core.errors import RoleGateError
from rolegate.permissions.models import ActorRoleAssignment, utcnow


console = Console()


def assign(
    actor_id: str = typer.Argument(..., help="Actor to assign"),
    role_id: str = typer.Argument(..., help="Role to give the actor"),
    expires_in_days: int | None = typer.Option(
        None, "--expires-in-days", "-e", help="Let the assignment lapse after N days"
    ),
    by: str = typer.Option(SYSTEM_ACTOR, "--by", help="Actor recorded as assigner"),
) -> None:
    """Assign a role to an actor, replacing any previous assignment."""
    expires_at = utcnow() + timedelta(days=expires_in_days) if expires_in_days else None

    async def _run() -> ActorRoleAssignment:
        async with open_engine() as engine:
            return await engine.assign(
                actor_id, role_id, assigned_by=by, expires_at=expires_at
            )

    try:
        assignment = asyncio.run(_run())
    except RoleGateError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    console.print(
        f"[green]✓[/green] Assigned [cyan]{assignment.role_id}[/cyan] to {assignment.actor_id}"
    )
    if assignment.expires_at:
        console.print(f"[dim]Expires at {assignment.expires_at.isoformat()}[/dim]")
