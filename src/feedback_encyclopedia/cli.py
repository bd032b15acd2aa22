"""
Command Line Interface for Feedback Encyclopedia
"""

import asyncio
import json
import logging
import sys
from typing import List

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import configure_logging, get_config, load_config, print_config_validation
from .exceptions import InvalidQueryError, RankerError, RankerNotConfigured, SourceUnavailable
from .models import ALL_CATEGORIES, FeedbackEntry
from .normalizer import list_categories
from .ranker import RelevanceRanker
from .retrieval import RetrievalSession
from .source import SheetSource

console = Console()
stderr_console = Console(stderr=True)


def _load_corpus() -> List[FeedbackEntry]:
    try:
        return asyncio.run(SheetSource().fetch_corpus())
    except SourceUnavailable as e:
        stderr_console.print(f"[red]Data unavailable:[/red] {e}")
        sys.exit(1)


def _print_entries(entries: List[FeedbackEntry], title: str, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps([entry.dict() for entry in entries], ensure_ascii=False, indent=2))
        return

    if not entries:
        console.print(f"[yellow]{title}: no entries[/yellow]")
        return

    table = Table(title=f"{title} ({len(entries)})")
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Category", style="cyan")
    table.add_column("Problem", style="bold", max_width=50)
    table.add_column("Solution", style="green", max_width=60)
    table.add_column("Versions", style="magenta", justify="center")

    for entry in entries:
        table.add_row(
            str(entry.id),
            entry.category,
            entry.problem,
            entry.solution1 or entry.solution2,
            str(len(entry.solutions)),
        )

    console.print(table)


@click.group()
@click.option('--config', '-c', help='Configuration file path')
@click.option('--debug', '-d', is_flag=True, help='Enable debug logging')
@click.option('--validate-config', is_flag=True, help='Validate configuration and exit')
@click.pass_context
def cli(ctx, config, debug, validate_config):
    """Feedback Encyclopedia CLI - look up problem/solution feedback"""
    ctx.ensure_object(dict)

    try:
        ctx.obj['config'] = load_config(config) if config else get_config()
    except (ValueError, FileNotFoundError) as e:
        stderr_console.print(f"\n[red]Configuration Error:[/red] {e}")
        sys.exit(1)

    if debug:
        ctx.obj['config'].debug = True
        ctx.obj['config'].logging.level = "DEBUG"
    configure_logging(ctx.obj['config'].logging)
    if not debug:
        # Progress logs would interleave with table and JSON output
        logging.getLogger("feedback_encyclopedia").setLevel(logging.WARNING)

    if validate_config:
        console.print("\n[bold blue]Configuration Validation Report[/bold blue]\n")
        print_config_validation()
        sys.exit(0)


@cli.command('list')
@click.option('--category', '-k', default=ALL_CATEGORIES, show_default=True, help='Category facet')
@click.option('--query', '-q', default='', help='Case-insensitive substring filter')
@click.option('--json', 'as_json', is_flag=True, help='Output entries as JSON')
def list_entries(category, query, as_json):
    """List feedback entries, optionally filtered by category and text.

    Examples:
        feedback-cli list
        feedback-cli list --category 기타 --query bug
    """
    session = RetrievalSession(_load_corpus())
    session.select_category(category)
    session.set_query(query)
    _print_entries(session.display(), "Feedback", as_json)


@cli.command()
def categories():
    """Show the category facets."""
    for category in list_categories(_load_corpus()):
        click.echo(category)


@cli.command()
@click.argument('query')
@click.option('--json', 'as_json', is_flag=True, help='Output entries as JSON')
def rank(query, as_json):
    """Rank feedback entries by relevance to QUERY using the AI service.

    QUERY may be a short problem description or a whole draft text.
    """
    session = RetrievalSession(_load_corpus(), RelevanceRanker())
    try:
        with stderr_console.status("[bold green]Ranking with AI...[/bold green]"):
            results = asyncio.run(session.request_ranking(query))
    except InvalidQueryError:
        stderr_console.print("[red]Query is required[/red]")
        sys.exit(2)
    except RankerNotConfigured:
        provider = get_config().ai.provider
        stderr_console.print(Panel(
            f"No API key is configured for the '{provider}' ranking provider.\n"
            "Set GEMINI_API_KEY (or AI__API_KEY) in the environment or .env file.",
            title="AI ranking unavailable",
            border_style="yellow",
        ))
        sys.exit(2)
    except RankerError as e:
        stderr_console.print(f"[red]AI ranking failed:[/red] {e}")
        sys.exit(1)

    _print_entries(results, "AI ranking", as_json)


@cli.command()
def serve():
    """Start the REST API server."""
    from .api import run_api_server
    sys.exit(run_api_server())


def main():
    """Main entry point"""
    cli()


if __name__ == "__main__":
    main()
