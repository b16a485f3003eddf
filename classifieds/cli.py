"""Classifieds CLI - taxonomy sync and local server."""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import settings

app = typer.Typer(
    name="classifieds",
    help="Classifieds backend - category taxonomy sync and ad API",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    level = logging.DEBUG if verbose else settings.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


async def _ensure_tables() -> None:
    if settings.is_sqlite:
        from .database import engine
        from .models import Base
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)


async def _run_sync(force: bool):
    from .database import async_session_factory
    from .sync.category_sync import sync_all
    from .sync.taxonomy_client import TaxonomyClient

    await _ensure_tables()
    async with TaxonomyClient() as client, async_session_factory() as db:
        return await sync_all(db, client, force_refresh=force)


async def _load_categories():
    from sqlalchemy import func, select

    from .database import async_session_factory
    from .models import Category, CategoryField

    await _ensure_tables()
    async with async_session_factory() as db:
        counts = (
            select(CategoryField.category_id, func.count(CategoryField.id).label("n"))
            .group_by(CategoryField.category_id)
            .subquery()
        )
        stmt = (
            select(Category, func.coalesce(counts.c.n, 0))
            .outerjoin(counts, counts.c.category_id == Category.id)
            .order_by(Category.position, Category.name)
        )
        return [(c, n) for c, n in (await db.execute(stmt)).all()]


@app.command("sync")
def sync(
    force: bool = typer.Option(False, "--force", "-f", help="Bypass the taxonomy response cache"),
):
    """Sync categories, fields and options from the upstream taxonomy API."""
    console.print(f"[bold cyan]Syncing taxonomy from {settings.taxonomy_base_url}[/bold cyan]")
    try:
        stats = asyncio.run(_run_sync(force))
    except Exception as e:
        console.print(f"[red]Sync failed: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Taxonomy sync")
    table.add_column("Entity", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Categories", str(stats.categories))
    table.add_row("Fields", str(stats.fields))
    table.add_row("Options", str(stats.options))
    table.add_row("Options pruned", str(stats.options_pruned))
    table.add_row("Skipped", str(stats.skipped))
    console.print(table)

    for warning in stats.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")
    console.print("[green]Sync complete[/green]")


@app.command("categories")
def categories():
    """List locally stored categories."""
    rows = asyncio.run(_load_categories())
    if not rows:
        console.print("[yellow]No categories stored. Run 'classifieds sync' first.[/yellow]")
        return

    table = Table(title=f"Categories ({len(rows)})")
    table.add_column("ID", style="dim")
    table.add_column("External ID", style="white")
    table.add_column("Name", style="cyan")
    table.add_column("Parent", style="dim")
    table.add_column("Fields", style="green", justify="right")
    for category, field_count in rows:
        table.add_row(
            str(category.id),
            category.external_id or "-",
            category.name,
            str(category.parent_id) if category.parent_id else "-",
            str(field_count),
        )
    console.print(table)


@app.command("serve")
def serve(
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
    host: str = typer.Option("127.0.0.1", "--host", help="Host to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Launch the classifieds JSON API."""
    try:
        import uvicorn
    except ImportError:
        console.print("[red]Missing dependencies. Install with: pip install -e .[/red]")
        raise typer.Exit(1)

    console.print(f"[bold cyan]Starting Classifieds API at http://{host}:{port}[/bold cyan]")
    uvicorn.run("classifieds.app:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
