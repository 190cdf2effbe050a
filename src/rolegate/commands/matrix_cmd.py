"""Command: rolegate matrix - Show the role x permission matrix."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from rolegate.commands._runtime import open_engine
from rolegate.permissions.matrix import analyze_coverage, build_permission_matrix
from rolegate.permissions.models import Permission, Role


console = Console()


def matrix(
    coverage: bool = typer.Option(
        False, "--coverage", help="Show per-role coverage instead of the full matrix"
    ),
) -> None:
    """Show which role grants which permission."""

    async def _run() -> tuple[list[Permission], list[Role]]:
        async with open_engine() as engine:
            return engine.catalog.list(), engine.roles.list()

    permissions, roles = asyncio.run(_run())

    if coverage:
        report = analyze_coverage(permissions, roles)
        table = Table(title=f"Coverage of {report.total_permissions} permissions")
        table.add_column("Role", style="cyan", no_wrap=True)
        table.add_column("Permissions", justify="right")
        table.add_column("Coverage", justify="right")
        for role_id, row in report.roles.items():
            table.add_row(role_id, str(row.permission_count), f"{row.coverage:.2f}%")
    else:
        grid = build_permission_matrix(permissions, roles)
        table = Table(title="Permission matrix")
        table.add_column("Permission", style="cyan", no_wrap=True)
        for role in roles:
            table.add_column(role.id, justify="center")
        for p in permissions:
            table.add_row(
                p.id,
                *("[green]✓[/green]" if grid[role.id][p.id] else "" for role in roles),
            )

    console.print()
    console.print(table)
    console.print()
