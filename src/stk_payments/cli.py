import asyncio
import typer
import logging
import sys
from datetime import timedelta
if sys.platform == "win32":
    # Принудительно устанавливаем политику, которая использует SelectorEventLoop.
    # Это решает проблему с ProactorEventLoop по умолчанию в Windows.
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
from stk_payments.config import get_settings
from stk_payments import create_payment_client
from stk_payments.logging import configure
from stk_payments.utils.cli_utils import get_rich_console, payments_table

from stk_payments.db.base import Base
from sqlalchemy.ext.asyncio import create_async_engine


app = typer.Typer(help="CLI for stk-payments management.")
logger = logging.getLogger(__name__)
console = get_rich_console()


@app.callback()
def main(log_level: str = typer.Option(None, "--log-level", help="Overrides LOG_LEVEL.")):
    configure(log_level)


@app.command()
def init():
    """
    Creates the payments table in the configured database.
    """
    console.rule("[bold cyan]Database Initialization[/bold cyan]")

    with console.status("Creating tables...", spinner="dots"):
        async def _create_tables():
            try:
                settings = get_settings()
                engine = create_async_engine(settings.postgres.get_pg_dsn())
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
                await engine.dispose()
                console.print("[bold green]✔[/bold green] Database tables created successfully.")
            except Exception as e:
                console.print(f"[bold red]✖[/bold red] Database initialization FAILED: {e}")
                raise typer.Exit(code=1)

        asyncio.run(_create_tables())


@app.command()
def check():
    """Checks connectivity to the database and the M-Pesa gateway."""
    console.rule("[bold cyan]Connection Check[/bold cyan]")

    async def _check() -> bool:
        client = create_payment_client()
        try:
            statuses = await client.check_connections()
        finally:
            await client.aclose()

        ok = True
        for name, label in (("database", "Database"), ("mpesa", "M-Pesa gateway")):
            status = statuses.get(name, "unknown error")
            if status == "ok":
                console.print(f"[bold green]✔[/bold green] {label} connection: OK")
            else:
                ok = False
                console.print(f"[bold red]✖[/bold red] {label} connection: FAILED ({status})")
        return ok

    if not asyncio.run(_check()):
        raise typer.Exit(code=1)


@app.command()
def pending(older_than_minutes: int = typer.Option(10, "--older-than-minutes", min=0)):
    """Lists pending payments that never received a callback. Read-only."""
    async def _pending():
        client = create_payment_client()
        try:
            return await client.find_stale_pending(timedelta(minutes=older_than_minutes))
        finally:
            await client.aclose()

    payments = asyncio.run(_pending())
    if not payments:
        console.print(f"No pending payments older than {older_than_minutes} min.")
        return
    console.print(payments_table(payments, title=f"Pending > {older_than_minutes} min"))


@app.command()
def serve(host: str = "0.0.0.0", port: int = 8000):
    """Runs the payments API and the M-Pesa callback endpoint."""
    import uvicorn
    uvicorn.run("stk_payments.server.main:app", host=host, port=port)


if __name__ == "__main__":
    app()
