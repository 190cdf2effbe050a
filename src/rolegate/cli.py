"""Main rolegate CLI application."""

import typer
from rich.console import Console

from rolegate import __version__
from rolegate.commands import (
    assign_cmd,
    bootstrap_cmd,
    check_cmd,
    matrix_cmd,
    permissions_cmd,
    reconcile_cmd,
    roles_cmd,
)


console = Console()

app = typer.Typer(
    name="rolegate",
    help="Administer roles and permissions.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register commands
app.command(name="bootstrap")(bootstrap_cmd.bootstrap)
app.command(name="permissions")(permissions_cmd.list_permissions)
app.add_typer(roles_cmd.app, name="roles")
app.command(name="assign")(assign_cmd.assign)
app.command(name="check")(check_cmd.check)
app.command(name="reconcile")(reconcile_cmd.reconcile)
app.command(name="matrix")(matrix_cmd.matrix)


@app.callback(invoke_without_command=True)
def version_callback(
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version and exit."
    ),
) -> None:
    """rolegate CLI - Administer roles and permissions."""
    if version:
        console.print(f"[bold cyan]rolegate[/bold cyan] version {__version__}")
        raise typer.Exit()


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
