"""CLI commands for chainbot."""

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from chainbot import __logo__, __version__

app = typer.Typer(
    name="chainbot",
    help=f"{__logo__} chainbot - update dispatch and filter queries",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} chainbot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
    log_level: str = typer.Option(None, "--log-level", help="Loguru log level (default: from config)"),
):
    """chainbot - update dispatch and filter queries."""
    from chainbot.config.loader import load_config
    from chainbot.utils.log import configure_logging

    settings = load_config()
    configure_logging(log_level or settings.log_level, json=settings.log_json)


@app.command()
def check(queries: list[str] = typer.Argument(..., help="Filter queries, e.g. message:entities:url")):
    """Validate filter queries and show what they expand to."""
    from chainbot.core.errors import FilterQueryError
    from chainbot.filters.query import expand

    table = Table(title="Filter queries")
    table.add_column("Query", style="cyan")
    table.add_column("Expands to")

    failed = False
    for query in queries:
        try:
            concrete = expand(query)
        except FilterQueryError as e:
            failed = True
            table.add_row(query, f"[red]{e}[/red]")
            continue
        table.add_row(query, "\n".join(concrete))

    console.print(table)
    if failed:
        raise typer.Exit(1)


@app.command()
def match(
    query: list[str] = typer.Argument(..., help="Filter queries, OR-combined"),
    update: Path = typer.Option(..., "--update", "-u", exists=True, dir_okay=False, help="JSON update file"),
    me_id: int = typer.Option(0, "--me-id", help="Bot user id for ':me' filters"),
    me_username: str = typer.Option("", "--me-username", help="Bot username"),
):
    """Evaluate filter queries against a recorded update."""
    from chainbot.core.context import Context
    from chainbot.core.errors import FilterQueryError
    from chainbot.core.models import BotInfo
    from chainbot.filters.query import match_filter

    try:
        predicate = match_filter(query)
    except FilterQueryError as e:
        console.print(f"[red]Invalid query:[/red] {e}")
        raise typer.Exit(1)

    try:
        payload = json.loads(update.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON in {update}:[/red] {e}")
        raise typer.Exit(1)

    ctx = Context(payload, None, BotInfo(id=me_id, username=me_username))
    if predicate(ctx):
        console.print("[green]✓[/green] match")
    else:
        console.print("[yellow]✗[/yellow] no match")
        raise typer.Exit(2)


@app.command()
def config(path: Path = typer.Option(None, "--path", "-p", help="Config file path")):
    """Show the effective configuration."""
    from chainbot.config.loader import load_config

    settings = load_config(path)
    table = Table(title="chainbot settings")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in settings.model_dump(mode="json").items():
        table.add_row(key, json.dumps(value))
    console.print(table)
