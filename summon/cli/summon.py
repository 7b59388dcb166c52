#!/usr/bin/env python3
"""
Command line front end for the Summon matching core.

Usage:
    summon search "query" -i items.json      - Rank indexed items
    summon stats -i items.json               - Item counts per type
    summon expand "text ;sig" -r rules.json  - Find the trigger the text ends with
    summon bench "query" -i items.json       - Time repeated searches
"""

import json
import sys
from pathlib import Path
from typing import Any, List, Optional, Tuple

import click
import yaml
from loguru import logger
from rich.console import Console
from rich.table import Table

from summon.engine.config import Config
from summon.engine.index import SearchIndex
from summon.engine.metrics import get_metrics
from summon.engine.scanner import FileScanner
from summon.engine.models import ItemType
from summon.engine.triggers import TriggerMatcher

console = Console()

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(config: Config, verbose: bool = False) -> None:
    """Route loguru output to stderr and, if configured, a rotating file."""
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level="DEBUG" if verbose else config.logging.level)
    if config.logging.file:
        log_file = Path(config.logging.file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation=config.logging.rotation,
            retention=config.logging.retention,
            level="DEBUG",
        )


def load_document(path: Path) -> Any:
    """Read a JSON or YAML file."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise click.ClickException(f"Cannot read {path}: {e}")


def build_index(config: Config, item_files: Tuple[Path, ...], scan_dirs: Tuple[Path, ...]) -> SearchIndex:
    index = SearchIndex(config.search)

    for path in item_files:
        data = load_document(path)
        if isinstance(data, dict):
            data = data.get("items", [])
        if not isinstance(data, list) or not index.add_items(data):
            raise click.ClickException(f"Invalid items in {path}")

    directories = list(scan_dirs) or config.files.directories
    if directories:
        scanner = FileScanner(
            directories,
            extensions=config.files.extensions,
            max_depth=config.files.max_depth,
            max_files_per_dir=config.files.max_files_per_dir,
        )
        index.replace_type(ItemType.FILE, scanner.scan())

    return index


def build_matcher(rules_file: Optional[Path], config: Config) -> TriggerMatcher:
    path = rules_file or config.snippets.rules_path
    if path is None:
        raise click.ClickException("No rules file given (use --rules or snippets.rules_path)")
    data = load_document(Path(path))
    if isinstance(data, dict):
        data = data.get("rules", data.get("snippets"))
    matcher = TriggerMatcher()
    if not matcher.update(data):
        raise click.ClickException(f"Invalid trigger rules in {path}")
    return matcher


@click.group()
@click.option("--config", "-c", "config_path", type=click.Path(path_type=Path, dir_okay=False),
              help="Path to summon.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_path: Optional[Path], verbose: bool):
    """Summon - launcher search and snippet trigger matching."""
    try:
        config = Config.load_or_default(config_path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise click.ClickException(f"Configuration error: {e}")
    configure_logging(config, verbose)
    ctx.obj = config


items_option = click.option(
    "--items", "-i", "item_files", multiple=True,
    type=click.Path(path_type=Path, exists=True, dir_okay=False),
    help="JSON/YAML file with a list of {id, name, path, type} items",
)
scan_option = click.option(
    "--scan", "-s", "scan_dirs", multiple=True,
    type=click.Path(path_type=Path, exists=True, file_okay=False),
    help="Directory to scan for files",
)


@cli.command()
@click.argument("query")
@items_option
@scan_option
@click.option("--limit", "-l", type=int, default=None, help="Max results")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.pass_obj
def search(config: Config, query: str, item_files, scan_dirs, limit: Optional[int], as_json: bool):
    """Rank indexed items against QUERY."""
    index = build_index(config, item_files, scan_dirs)
    results = index.search(query, limit)

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], indent=2))
        return

    if not results:
        console.print("[yellow]No results found[/yellow]")
        return

    table = Table(title=f"Results for '{query}'")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Type", style="magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Path", style="dim")
    for result in results:
        table.add_row(str(result.score), result.item_type.name.lower(), result.name, result.path)
    console.print(table)


@cli.command()
@items_option
@scan_option
@click.pass_obj
def stats(config: Config, item_files, scan_dirs):
    """Show indexed item counts per type."""
    index = build_index(config, item_files, scan_dirs)
    counts = index.stats()

    table = Table(title="Index")
    table.add_column("Type", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("applications", str(counts.applications))
    table.add_row("files", str(counts.files))
    table.add_row("snippets", str(counts.snippets))
    table.add_row("clipboard entries", str(counts.clipboard_entries))
    table.add_row("[bold]total[/bold]", f"[bold]{counts.total}[/bold]")
    console.print(table)


@cli.command()
@click.argument("text")
@click.option("--rules", "-r", "rules_file", type=click.Path(path_type=Path, exists=True, dir_okay=False),
              help="JSON/YAML file with trigger rules")
@click.pass_obj
def expand(config: Config, text: str, rules_file: Optional[Path]):
    """Expand the trigger TEXT ends with, if any."""
    matcher = build_matcher(rules_file, config)
    window = text[-config.snippets.max_buffer_length:]
    match = matcher.find(window)

    if match is None:
        console.print("[yellow]No trigger matched[/yellow]")
        sys.exit(1)

    offset = len(text) - len(window)
    start = offset + match.match_start
    console.print(f"[green]✓[/green] Trigger [cyan]{match.trigger}[/cyan] ends at {offset + match.match_end}")
    click.echo(text[:start] + match.content)


@cli.command()
@click.argument("query")
@items_option
@scan_option
@click.option("--repeat", "-n", type=click.IntRange(min=1), default=100, help="Number of searches")
@click.option("--limit", "-l", type=int, default=None, help="Max results")
@click.pass_obj
def bench(config: Config, query: str, item_files, scan_dirs, repeat: int, limit: Optional[int]):
    """Time repeated uncached searches for QUERY."""
    index = build_index(config, item_files, scan_dirs)
    metrics = get_metrics()
    metrics.reset()

    prefixes: List[str] = [query[:n] for n in range(1, len(query) + 1)] or [query]
    for _ in range(repeat):
        for prefix in prefixes:
            index.clear_cache()
            index.search(prefix, limit)

    hist = metrics.histograms["search"].to_dict()
    console.print(
        f"{hist['count']} searches over {len(index)} items: "
        f"mean {hist['mean']}us, p50 ≤{hist['p50']}us, p95 ≤{hist['p95']}us"
    )
    click.echo(metrics.export_metrics())


if __name__ == "__main__":
    cli()
