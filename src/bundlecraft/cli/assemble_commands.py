"""Assemble command — run the engine on one recorded case and render the result."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from rich import box
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from bundlecraft.assembly.catalog import parse_collections, parse_products
from bundlecraft.assembly.decision import DecisionEngine
from bundlecraft.cases import AssemblyCase, load_case
from bundlecraft.cli.main import console, get_status_style, load_config, make_logger
from bundlecraft.core.errors import CaseFileError, atomic_write
from bundlecraft.core.models import PipelineResult


@click.command()
@click.argument("case_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--collections", default=None, help="Comma-separated collection titles (replaces the case catalog's)")
@click.option("--products", default=None, help="Comma-separated product types (replaces the case catalog's)")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False), help="Write the JSON result to a file")
@click.option("-v", "--verbose", count=True, help="Verbosity level (-v, -vv)")
def assemble(
    case_file: str,
    collections: str | None,
    products: str | None,
    output_json: bool,
    output: str | None,
    verbose: int,
):
    """Assemble a bundle configuration from one case file.

    CASE_FILE is a JSON or YAML file holding the Structure, Discount and
    Rules outputs plus the merchant catalog.
    """
    try:
        case = load_case(Path(case_file))
    except CaseFileError as e:
        console.print(f"[red]Error loading case:[/red] {e}")
        sys.exit(1)

    case = apply_catalog_overrides(case, collections, products)

    settings, config = load_config()
    run_logger = make_logger(settings, verbose)
    try:
        result = DecisionEngine(config=config, run_logger=run_logger).run(
            case.structure,
            case.discount,
            case.rules,
            case.catalog,
            case_id=case.case_id,
            llm_durations=case.llm_durations,
        )
    finally:
        run_logger.close()

    payload = result.to_dict()
    if output:
        atomic_write(Path(output), json.dumps(payload, indent=2, default=str))

    if output_json:
        click.echo(json.dumps(payload, indent=2, default=str))
        return

    render_result(case, result)
    if output:
        console.print(f"[dim]Result written to {output}[/dim]")


def apply_catalog_overrides(case: AssemblyCase, collections: str | None, products: str | None) -> AssemblyCase:
    """Replace catalog lists given on the command line."""
    if collections is None and products is None:
        return case
    return case.with_catalog(
        parse_collections(collections) if collections is not None else None,
        parse_products(products) if products is not None else None,
    )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def render_result(case: AssemblyCase, result: PipelineResult) -> None:
    """Render a full result: status, bundle, flags, decision and trace."""
    status = result.status.value
    style = get_status_style(status)
    applied = next((d for d in result.decision_trace if d.applied), None)
    subtitle = f"via {applied.rule}" if applied else ""
    console.print(Panel(
        f"[bold {style}]{status}[/bold {style}]\n[dim]{applied.description if applied else ''}[/dim]",
        title=f"[bold]Assembly[/bold] {case.case_id}",
        subtitle=subtitle,
        border_style=style,
    ))
    if case.merchant_text:
        console.print(f'[dim]Merchant:[/dim] [italic]"{case.merchant_text}"[/italic]')

    if result.bundle_config is None:
        console.print("[dim]No bundle configuration produced.[/dim]")
    else:
        _render_bundle(result)

    raised = result.raised_flags
    if raised:
        console.print(f"\n[bold]Flags:[/bold] [yellow]{', '.join(raised)}[/yellow]")
    else:
        console.print("\n[bold]Flags:[/bold] [green]none[/green]")

    _render_decision_trace(result)
    _render_trace(result)
    console.print(f"[dim]fingerprint {result.fingerprint().short}[/dim]")


def _render_bundle(result: PipelineResult) -> None:
    bundle = result.bundle_config
    tree = Tree("[bold]Bundle[/bold]")
    for step in bundle.steps:
        label = step.label or "[dim](no label)[/dim]"
        branch = tree.add(f"[cyan]Step {step.index}[/cyan] {label}")
        for category in step.categories:
            branch.add(f"{category.title} [dim]{category.source}:{category.id}[/dim]")
        for hint in step.unmatched_hints:
            branch.add(f"[red]unmatched[/red] {hint}")
        if not step.categories and not step.unmatched_hints:
            branch.add("[dim]no categories[/dim]")
    console.print(tree)

    discount = bundle.discount_configuration
    table = Table(title=f"Discount ({discount.discount_mode or 'none'})", box=box.SIMPLE)
    table.add_column("Qualifier")
    table.add_column("Threshold", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("Unit", style="dim")
    for rule in discount.rules:
        table.add_row(rule.qualifier_type, str(rule.threshold), str(rule.discount_value), rule.unit)
    console.print(table)

    rules_table = Table(title="Selection rules", box=box.SIMPLE)
    rules_table.add_column("Step", justify="right")
    rules_table.add_column("Qualifier")
    rules_table.add_column("Operator")
    rules_table.add_column("Value", justify="right")
    constrained = {r.step_index for r in bundle.selection_rules}
    for rule in bundle.selection_rules:
        rules_table.add_row(str(rule.step_index), rule.qualifier_type, rule.operator, str(rule.value))
    for step in bundle.steps:
        if step.index not in constrained:
            rules_table.add_row(str(step.index), "[dim]any[/dim]", "[dim]-[/dim]", "[dim]-[/dim]")
    console.print(rules_table)


def _render_decision_trace(result: PipelineResult) -> None:
    table = Table(title="Decision trace", box=box.SIMPLE)
    table.add_column("Rule", style="bold")
    table.add_column("Matched")
    table.add_column("Status")
    table.add_column("Inspected", style="dim")
    for entry in result.decision_trace:
        marker = "[green]applied[/green]" if entry.applied else ("yes" if entry.matched else "[dim]no[/dim]")
        inspected = ", ".join(f"{k}={v}" for k, v in entry.inspected.items())
        table.add_row(entry.rule, marker, entry.status, inspected)
    console.print(table)


def _render_trace(result: PipelineResult) -> None:
    table = Table(title="Execution trace", box=box.SIMPLE)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Stage")
    table.add_column("Pattern")
    table.add_column("ms", justify="right", style="dim")
    for entry in result.trace:
        duration = "" if entry.duration_ms is None else str(entry.duration_ms)
        table.add_row(str(entry.step), entry.name, entry.pattern or "", duration)
    console.print(table)
