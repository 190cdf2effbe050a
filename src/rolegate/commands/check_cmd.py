"""Command: rolegate check - Ask whether an actor may do something."""

import asyncio

import typer
from rich.console import Console

from rolegate.commands._runtime import open_engine
from rolegate.core.errors import RoleGateError
from rolegate.permissions.guard import Decision, Requirement


console = Console()


def check(
    actor_id: str = typer.Argument(..., help="Actor to check"),
    permissions: list[str] = typer.Argument(..., help="Permission ids the actor needs"),
    any_of: bool = typer.Option(
        False, "--any", help="Pass if any one permission is granted"
    ),
    min_level: int | None = typer.Option(
        None, "--min-level", help="Also require this rank or better"
    ),
) -> None:
    """Check permissions for an actor.

    Exits with status 1 when the actor is denied, 2 when the question
    cannot be answered (unknown permission, no usable default role).
    """
    if any_of:
        requirement = Requirement.any_permission(*permissions)
    else:
        requirement = Requirement.all_permissions(*permissions)
    if min_level is not None:
        requirement = requirement & Requirement.rank(min_level)

    async def _run() -> Decision:
        async with open_engine() as engine:
            return await engine.allow(actor_id, requirement)

    try:
        decision = asyncio.run(_run())
    except RoleGateError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(2)

    if decision.error is not None:
        console.print(f"[red]Error:[/red] {decision.error.message}")
        raise typer.Exit(2)

    if decision:
        console.print(f"[green]allowed[/green] {decision.reason}")
        return
    console.print(f"[red]denied[/red] {decision.reason}")
    raise typer.Exit(1)
