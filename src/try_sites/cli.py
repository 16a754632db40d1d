"""Typer CLI for Try-Sites."""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="try-sites", help="Try-Sites: self-service demo tenants")
console = Console()


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind host"),
    port: int = typer.Option(8080, help="Bind port"),
):
    """Start the Try-Sites web server."""
    import uvicorn
    from try_sites.app import create_app
    from try_sites.common.config import get_settings
    from try_sites.common.logging import setup_logging

    setup_logging(get_settings().log_level)
    console.print(f"[bold green]Starting Try-Sites on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def password(
    length: int = typer.Option(8, help="Minimum length"),
    unique: int = typer.Option(4, help="Minimum distinct characters"),
    count: int = typer.Option(1, help="How many passwords to print"),
):
    """Generate demo admin passwords (offline)."""
    from try_sites.sites.generators import PasswordOptions, generate_random_password

    opts = PasswordOptions(required_length=length, required_unique_chars=unique)
    try:
        for _ in range(count):
            console.print(generate_random_password(opts), markup=False)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def recipes():
    """List the setup recipes offered on the registration form."""
    import asyncio
    from try_sites.deps import get_setup_service

    table = Table("Name", "Display name", "Features")
    for recipe in asyncio.run(get_setup_service().get_setup_recipes()):
        table.add_row(recipe.name, recipe.display_name, ", ".join(recipe.features))
    console.print(table)


@app.command()
def prune(
    days: Optional[int] = typer.Option(None, help="Disable tenants older than this many days"),
):
    """Disable demo tenants older than the configured age."""
    import asyncio
    from datetime import timedelta
    from try_sites.common.config import get_settings
    from try_sites.deps import get_clock, get_db, get_shell_host

    age = days if days is not None else get_settings().stale_after_days

    async def _prune() -> int:
        db = get_db()
        await db.init()
        await db.create_all()
        try:
            async with db.get_session() as session:
                cutoff = get_clock().utc_now - timedelta(days=age)
                return len(await get_shell_host().disable_stale(session, cutoff))
        finally:
            await db.close()

    disabled = asyncio.run(_prune())
    console.print(f"[bold]{disabled}[/bold] tenant(s) disabled")


@app.command()
def health(
    url: str = typer.Option("http://localhost:8080", help="Server URL"),
):
    """Check Try-Sites server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] v{data['version']}")
    except (httpx.HTTPError, ValueError, KeyError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
