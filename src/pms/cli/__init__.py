"""CLI commands using Typer."""

import typer

from pms.cli.accounts import app as accounts_app
from pms.cli.db import app as db_app
from pms.cli.maintenance import app as maintenance_app

app = typer.Typer(name="pms", help="Property management system CLI")

# Register sub-apps
app.add_typer(db_app, name="db")
app.add_typer(accounts_app, name="accounts")
app.add_typer(maintenance_app, name="maintenance")


@app.command()
def version():
    """Show version information."""
    from pms import __version__

    typer.echo(f"PMS v{__version__}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(8000, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
):
    """Run the API server."""
    import uvicorn

    from pms.logging import get_uvicorn_log_config

    uvicorn.run(
        "pms.main:app",
        host=host,
        port=port,
        reload=reload,
        log_config=get_uvicorn_log_config(),
    )


@app.command()
def worker(
    concurrency: int = typer.Option(2, help="Number of concurrent tasks"),
):
    """Run the background worker (expired token sweep)."""
    import asyncio

    from saq import Worker

    from pms.logging import setup_logging
    from pms.tasks import get_queue_settings

    setup_logging()
    settings = get_queue_settings()

    typer.echo(f"Starting worker with concurrency={concurrency}")

    async def run_worker():
        w = Worker(
            queue=settings["queue"],
            functions=settings["functions"],
            concurrency=concurrency,
            cron_jobs=settings.get("cron_jobs"),
            startup=settings.get("startup"),
            shutdown=settings.get("shutdown"),
        )
        await w.start()

    asyncio.run(run_worker())


if __name__ == "__main__":
    app()
