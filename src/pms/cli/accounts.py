"""Account and pending registration CLI commands."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import select

from pms.database import get_session_context
from pms.models import Account
from pms.services import token_issuer, token_store
from pms.services.accounts import find_account_by_email, normalize_email
from pms.services.email import build_verification_link

console = Console()
app = typer.Typer(help="Account management commands")


@app.command("list")
def list_accounts():
    """List all accounts."""

    async def _list():
        async with get_session_context() as session:
            result = await session.execute(select(Account).order_by(Account.email))
            accounts = result.scalars().all()

            table = Table(title="Accounts")
            table.add_column("ID", style="cyan")
            table.add_column("Email", style="green")
            table.add_column("Name")
            table.add_column("Verified", style="magenta")
            table.add_column("Created", style="dim")

            for account in accounts:
                verified = (
                    account.email_verified_at.strftime("%Y-%m-%d %H:%M")
                    if account.email_verified_at
                    else "[yellow]No[/yellow]"
                )
                created = account.created_at.strftime("%Y-%m-%d") if account.created_at else "-"
                table.add_row(account.id, account.email, account.name or "-", verified, created)

            console.print(table)

    asyncio.run(_list())


@app.command("pending")
def list_pending():
    """List registrations waiting for email verification."""

    async def _pending():
        async with get_session_context() as session:
            pointers = await token_store.list_pending_pointers(session)

            table = Table(title="Pending Registrations")
            table.add_column("Email", style="green")
            table.add_column("Expires", style="dim")
            table.add_column("Status")

            for pointer in pointers:
                status = "[red]expired[/red]" if pointer.is_expired() else "[green]live[/green]"
                table.add_row(
                    pointer.identifier, pointer.expires.strftime("%Y-%m-%d %H:%M"), status
                )

            console.print(table)

    asyncio.run(_pending())


@app.command("verification-url")
def verification_url(email: str = typer.Argument(..., help="Account email")):
    """Issue a verification link for an existing unverified account without emailing it."""

    async def _generate():
        async with get_session_context() as session:
            address = normalize_email(email)
            account = await find_account_by_email(session, address)

            if not account:
                console.print(f"[red]Error:[/red] Account {address} not found")
                raise typer.Exit(1)

            if account.is_verified:
                console.print(f"[yellow]Warning:[/yellow] Account {address} is already verified")
                return

            issued = await token_issuer.issue_standing_verification(session, address)
            await session.commit()

            console.print(f"[green]Verification URL:[/green] {build_verification_link(issued.token)}")
            console.print(f"[dim]Expires: {issued.expires}[/dim]")

    asyncio.run(_generate())
