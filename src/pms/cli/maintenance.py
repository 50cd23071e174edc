"""Maintenance CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from pms.tasks import queue
from pms.tasks.maintenance import MAINTENANCE_TIMEOUT_SECONDS

console = Console()
app = typer.Typer(help="Maintenance and cleanup commands")


@app.command("sweep-tokens")
def sweep_tokens(
    dry_run: bool = typer.Option(True, "--dry-run/--execute", help="Only report, don't delete"),
    background: bool = typer.Option(False, "--background", "-b", help="Run in background worker"),
):
    """Delete expired verification tokens and pending registrations.

    By default runs in dry-run mode to show what would be deleted.
    Use --execute to actually delete them.
    """

    async def _sweep():
        if background:
            job = await queue.enqueue(
                "sweep_expired_tokens",
                dry_run=dry_run,
                timeout=MAINTENANCE_TIMEOUT_SECONDS,
            )
            console.print(f"[green]Queued token sweep job:[/green] {job.id if job else 'unknown'}")
            return

        from pms.tasks.maintenance import sweep_expired_tokens

        result = await sweep_expired_tokens(ctx={}, dry_run=dry_run)

        if not result.get("success"):
            console.print(f"[red]Error:[/red] {result.get('error')}")
            raise typer.Exit(1)

        table = Table(title="Expired Token Sweep")
        table.add_column("Kind", style="cyan")
        table.add_column("Rows", justify="right")

        for kind, count in sorted(result["by_kind"].items()):
            table.add_row(kind, str(count))
        table.add_row("Total", str(result["expired_count"]), style="bold")

        console.print(table)

        if dry_run and result["expired_count"] > 0:
            console.print("\n[yellow]Dry run mode - no rows were deleted.[/yellow]")
            console.print("Run with --execute to delete them.")

    asyncio.run(_sweep())
