"""
postvault – builds a website database from a content tree (SQLModel + SQLite)

Quick start
-----------
1) pip install -e .
2) write website.json (posts_path, files_path, database_path, ...)
3) postvault build       # idempotent, fast after the first run
4) postvault stats

Commands:
    build                   - Rebuild the database from the content tree
    stats                   - Show row counts
    show-post <id>          - Show a post by id or permalink
    photos                  - List photos, newest first
    export-photo <id> <out> - Write a stored rendition to a file
"""
import logging
import math
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from config import Settings, load_settings
from database import Store
from errors import NotFoundError, PostVaultError
from models import Asset, File, Photo, Post, PostTag, User
from scanner import Reconciler

app = typer.Typer(
    name="postvault",
    help="postvault — reconcile a content tree of posts, photos and files into SQLite",
    no_args_is_help=True,
)
console = Console()
logger = logging.getLogger("postvault")

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="JSON config file (default: website.json)"),
]


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def open_store(config: Optional[Path]) -> tuple[Settings, Store]:
    try:
        settings = load_settings(config)
        return settings, Store.open(settings.database_path)
    except PostVaultError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)


@app.command()
def build(
    config: ConfigOption = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log every photo decision")
    ] = False,
):
    """Rebuild the database so it mirrors the content tree."""
    setup_logging(verbose)
    settings, store = open_store(config)
    try:
        stats = Reconciler(store, settings).rebuild()
    except PostVaultError as exc:
        logger.error("build failed: %s", exc)
        raise typer.Exit(1)

    table = Table(title="Build")
    table.add_column("Item")
    table.add_column("Count", justify="right")
    for name, value in stats.as_dict().items():
        table.add_row(name.replace("_", " "), str(value))
    console.print(table)


@app.command()
def stats(config: ConfigOption = None):
    """Show how many rows each table holds."""
    _, store = open_store(config)
    table = Table(title="Database")
    table.add_column("Table")
    table.add_column("Rows", justify="right")
    for model in (Post, PostTag, Photo, Asset, File, User):
        table.add_row(model.__tablename__, str(store.count(model)))
    console.print(table)


@app.command("show-post")
def show_post(
    post_id: Annotated[str, typer.Argument(help="Post id or permalink")],
    config: ConfigOption = None,
):
    """Show details for a post, looked up by id and then by permalink."""
    _, store = open_store(config)
    post = store.find_post_by_id(post_id) or store.find_post_by_permalink(post_id)
    if post is None:
        console.print(f"[red]Error:[/red] Post not found: {post_id}")
        raise typer.Exit(1)

    lines = [
        f"[bold]ID:[/bold] {post.id}",
        f"[bold]Title:[/bold] {post.title}",
        f"[bold]Date:[/bold] {post.date}",
    ]
    if post.description:
        lines.append(f"[bold]Description:[/bold] {post.description}")
    if post.permalink:
        lines.append(f"[bold]Permalink:[/bold] {post.permalink}")
    tags = store.get_tags(post.id)
    if tags:
        lines.append(f"[bold]Tags:[/bold] {', '.join(tags)}")
    page = store.list_photos(post_id=post.id, include_private=True)
    lines.append(f"[bold]Photos:[/bold] {page.total}")
    console.print(Panel("\n".join(lines), title="Post Details"))


@app.command()
def photos(
    config: ConfigOption = None,
    post: Annotated[Optional[str], typer.Option("--post", help="Only photos of this post")] = None,
    private: Annotated[
        bool, typer.Option("--private", help="Include private photos")
    ] = False,
    page: Annotated[int, typer.Option("--page", min=1, help="Page number")] = 1,
):
    """List photos, newest post first."""
    settings, store = open_store(config)
    per_page = settings.photos_per_page
    result = store.list_photos(
        post_id=post,
        include_private=private,
        offset=(page - 1) * per_page,
        limit=per_page,
    )
    last_page = max(1, math.ceil(result.total / per_page))
    if page > last_page:
        console.print(f"[red]Error:[/red] Page {page} not found (last page is {last_page})")
        raise typer.Exit(1)

    table = Table(title=f"Photos (page {page} of {last_page})")
    table.add_column("ID")
    table.add_column("Post")
    table.add_column("Private")
    table.add_column("Source")
    for photo in result.items:
        parent = store.get_post_for_photo(photo.id)
        table.add_row(
            photo.id,
            parent.title if parent else "-",
            "yes" if photo.is_private else "no",
            photo.source_path,
        )
    console.print(table)
    if result.hidden_count:
        console.print(f"[yellow]{result.hidden_count} private photo(s) hidden[/yellow]")


@app.command("export-photo")
def export_photo(
    photo_id: Annotated[str, typer.Argument(help="Photo id")],
    output: Annotated[Path, typer.Argument(help="Where to write the JPEG")],
    config: ConfigOption = None,
    size: Annotated[str, typer.Option("--size", help="large or small")] = "large",
):
    """Write one rendition of a stored photo to a file."""
    _, store = open_store(config)
    try:
        data = store.get_photo_data(photo_id, size)
    except (NotFoundError, ValueError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)
    output.write_bytes(data)
    console.print(f"[green]OK[/green] → {output} ({len(data):,} bytes)")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
