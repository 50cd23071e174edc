"""Schema migration commands (thin wrappers around alembic)."""

import subprocess
import sys

import typer
from rich.console import Console

console = Console()
app = typer.Typer(help="Database schema commands")


def _alembic(*args: str) -> None:
    """Run alembic in a subprocess, exiting with its status on failure."""
    result = subprocess.run([sys.executable, "-m", "alembic", *args], check=False)
    if result.returncode != 0:
        console.print(f"[red]alembic {' '.join(args)} failed (exit {result.returncode})[/red]")
        raise typer.Exit(result.returncode)


@app.command("migrate")
def migrate(revision: str = typer.Argument("head", help="Revision to upgrade to")):
    """Upgrade the schema (accounts and verification_tokens)."""
    _alembic("upgrade", revision)
    console.print(f"[green]Schema at {revision}[/green]")


@app.command("rollback")
def rollback(revision: str = typer.Argument("-1", help="Revision to downgrade to")):
    """Downgrade the schema; one step by default."""
    _alembic("downgrade", revision)
    console.print(f"[green]Rolled back to {revision}[/green]")


@app.command("current")
def current():
    """Print the revision the database is at."""
    _alembic("current")


@app.command("create-migration")
def create_migration(
    message: str = typer.Argument(..., help="Short description of the change"),
    autogenerate: bool = typer.Option(True, "--autogenerate/--empty"),
):
    """Write a new revision, diffed against the models unless --empty."""
    args = ["revision", "-m", message]
    if autogenerate:
        args.append("--autogenerate")
    _alembic(*args)
