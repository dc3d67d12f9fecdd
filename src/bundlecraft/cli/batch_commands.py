"""Batch command — assemble every case in a file and summarize the outcomes."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from rich import box
from rich.table import Table

from bundlecraft.assembly.decision import DecisionEngine
from bundlecraft.batch import run_batch
from bundlecraft.cases import load_cases
from bundlecraft.cli.main import console, get_status_style, load_config, make_logger
from bundlecraft.core.errors import CaseFileError
from bundlecraft.core.fingerprint import Fingerprint


@click.command()
@click.argument("cases_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--concurrency", "-j", default=1, type=click.IntRange(min=1), help="Number of concurrent workers")
@click.option("--baseline", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Earlier `batch --json` output to compare fingerprints against")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("-v", "--verbose", count=True, help="Verbosity level (-v, -vv)")
def batch(cases_file: str, concurrency: int, baseline: str | None, output_json: bool, verbose: int):
    """Assemble every case in CASES_FILE and summarize statuses and flags.

    CASES_FILE holds a list of cases or a mapping with a ``cases`` list.
    With --baseline, each case is compared against the stored result and the
    parts that changed are listed.
    """
    try:
        cases = load_cases(Path(cases_file))
    except CaseFileError as e:
        console.print(f"[red]Error loading cases:[/red] {e}")
        sys.exit(1)

    stored: dict[str, Fingerprint] | None = None
    if baseline:
        try:
            stored = load_baseline(Path(baseline))
        except CaseFileError as e:
            console.print(f"[red]Error loading baseline:[/red] {e}")
            sys.exit(1)

    settings, config = load_config()
    run_logger = make_logger(settings, verbose)
    try:
        results = run_batch(DecisionEngine(config=config, run_logger=run_logger), cases, concurrency)
    finally:
        run_logger.close()
    batch_log = run_logger.batch_log

    diffs: dict[str, list[str]] = {}
    if stored is not None:
        for case, result in zip(cases, results):
            fingerprint = result.fingerprint()
            previous = stored.get(case.case_id)
            diffs[case.case_id] = [] if fingerprint.matches(previous) else fingerprint.explain_diff(previous)

    if output_json:
        payload = {
            "summary": batch_log.to_dict(),
            "results": [
                {"id": case.case_id, "fingerprint": result.fingerprint().to_dict(), **result.to_dict()}
                for case, result in zip(cases, results)
            ],
        }
        if stored is not None:
            payload["changes"] = diffs
        click.echo(json.dumps(payload, indent=2, default=str))
        return

    table = Table(title=f"Batch: {Path(cases_file).name}", box=box.ROUNDED)
    table.add_column("Case", style="bold")
    table.add_column("Status")
    table.add_column("Rule", style="dim")
    table.add_column("Flags")
    table.add_column("Fingerprint", style="dim")
    if stored is not None:
        table.add_column("Baseline")
    for case, result in zip(cases, results):
        status = result.status.value
        style = get_status_style(status)
        applied = next((d.rule for d in result.decision_trace if d.applied), "")
        row = [
            case.case_id,
            f"[{style}]{status}[/{style}]",
            applied,
            ", ".join(result.raised_flags) or "[dim]-[/dim]",
            result.fingerprint().short,
        ]
        if stored is not None:
            changes = diffs[case.case_id]
            row.append("[green]same[/green]" if not changes else f"[yellow]{', '.join(changes)}[/yellow]")
        table.add_row(*row)
    console.print(table)

    counts = "  ".join(
        f"[{get_status_style(s)}]{s}[/{get_status_style(s)}] {n}"
        for s, n in sorted(batch_log.statuses.items())
    )
    console.print(f"[bold]{batch_log.total_cases}[/bold] case(s)  {counts}")
    if stored is not None:
        changed = sum(1 for c in diffs.values() if c)
        console.print(f"[bold]{changed}[/bold] changed since baseline")
    if run_logger.log_path is not None:
        console.print(f"[dim]Log written to {run_logger.log_path}[/dim]")


def load_baseline(path: Path) -> dict[str, Fingerprint]:
    """Read case fingerprints from an earlier `batch --json` output."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise CaseFileError(f"Cannot read baseline {path}: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("results"), list):
        raise CaseFileError(f"Baseline {path} is not `bundlecraft batch --json` output")

    fingerprints: dict[str, Fingerprint] = {}
    for entry in data["results"]:
        if not isinstance(entry, dict) or not isinstance(entry.get("fingerprint"), dict):
            continue
        fingerprint = Fingerprint.from_dict(entry["fingerprint"])
        if fingerprint is not None:
            fingerprints[str(entry.get("id"))] = fingerprint
    return fingerprints
