"""Match command — show how a collection hint resolves against a catalog."""

from __future__ import annotations

import json
import sys

import click
from rich import box
from rich.table import Table

from bundlecraft.assembly.catalog import parse_catalog, parse_collections, parse_products
from bundlecraft.assembly.matching import CollectionMatcher
from bundlecraft.cli.main import console, load_config


@click.command()
@click.argument("hint")
@click.option("--collections", default="", help="Comma-separated collection titles")
@click.option("--products", default="", help="Comma-separated product types")
@click.option("--threshold", default=None, type=click.FloatRange(min=0.0, max=1.0, min_open=True),
              help="Override the token-overlap threshold")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def match(hint: str, collections: str, products: str, threshold: float | None, output_json: bool):
    """Rank catalog entries for HINT, best first."""
    catalog = parse_catalog({
        "collections": parse_collections(collections),
        "products": parse_products(products),
    })
    if catalog is None or catalog.is_empty:
        console.print("[red]Error:[/red] Provide --collections and/or --products to match against.")
        sys.exit(1)

    _, config = load_config(threshold)
    ranked = CollectionMatcher(config).rank(hint, catalog)

    if output_json:
        click.echo(json.dumps([r.to_dict() for r in ranked], indent=2))
        return

    if not ranked:
        console.print(f"[yellow]No match[/yellow] for [bold]{hint}[/bold]")
        return

    table = Table(title=f"Matches for {hint!r}", box=box.SIMPLE)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("Source")
    table.add_column("Id", style="dim")
    table.add_column("Method")
    table.add_column("Score", justify="right")
    for i, result in enumerate(ranked, start=1):
        marker = "[green]*[/green] " if i == 1 else ""
        table.add_row(str(i), f"{marker}{result.title}", result.source, result.id, result.method, f"{result.score:.2f}")
    console.print(table)
