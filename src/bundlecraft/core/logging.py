"""Structured logging and verbosity levels for assembly runs."""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import Any

from rich.console import Console


class Verbosity(IntEnum):
    """Verbosity levels for console output."""

    DEFAULT = 0   # Nothing beyond what the CLI renders
    VERBOSE = 1   # + per-run status and raised flags
    DEBUG = 2     # + every trace stage with its details


@dataclass
class BatchLog:
    """Structured log of a batch of assembly runs.

    The dict format is::

        {
            "run_id": "20250101T120000Z",
            "statuses": {"AUTO": 3, "DOWNGRADED_TO_MANUAL": 1, "MANUAL": 0},
            "flag_counts": {"hasConflict": 1, ...},
            "total_cases": 4,
            "cases": [{"case_id": "c1", "status": "AUTO", "flags": []}, ...],
            "total_time": 0.02,
        }
    """

    run_id: str = ""
    statuses: dict[str, int] = field(default_factory=dict)
    flag_counts: dict[str, int] = field(default_factory=dict)
    cases: list[dict[str, Any]] = field(default_factory=list)
    total_time: float = 0.0

    def record(self, case_id: str, status: str, flags: list[str]) -> None:
        self.statuses[status] = self.statuses.get(status, 0) + 1
        for flag in flags:
            self.flag_counts[flag] = self.flag_counts.get(flag, 0) + 1
        self.cases.append({"case_id": case_id, "status": status, "flags": list(flags)})

    @property
    def total_cases(self) -> int:
        return len(self.cases)

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "statuses": dict(self.statuses),
            "flag_counts": dict(self.flag_counts),
            "total_cases": self.total_cases,
            "cases": [dict(c) for c in self.cases],
            "total_time": self.total_time,
        }


class AssemblyLogger:
    """Structured logger for assembly runs.

    Writes JSONL log files to log_dir/ and optionally emits console output
    via Rich based on verbosity level. Safe to share between threads of a
    batch run. Nothing logged here feeds back into an assembly result.
    """

    def __init__(
        self,
        verbosity: Verbosity = Verbosity.DEFAULT,
        log_dir: Path | None = None,
        console: Console | None = None,
    ):
        self.verbosity = verbosity
        self.log_dir = log_dir
        self.console = console or Console(stderr=True)
        self.batch_log = BatchLog(
            run_id=datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ"),
        )
        self._lock = threading.Lock()
        self._log_file = None
        self._log_path: Path | None = None

        if log_dir is not None:
            log_dir.mkdir(parents=True, exist_ok=True)
            self._log_path = log_dir / f"{self.batch_log.run_id}.jsonl"
            self._log_file = open(self._log_path, "a", encoding="utf-8")

    @property
    def log_path(self) -> Path | None:
        return self._log_path

    def _write_event(self, event: dict[str, Any]) -> None:
        """Write a JSON event to the JSONL log file."""
        if self._log_file is None:
            return
        event["timestamp"] = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._log_file.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")
            self._log_file.flush()

    def _console_print(self, message: str, min_verbosity: Verbosity) -> None:
        """Print to console if verbosity is high enough."""
        if self.verbosity >= min_verbosity:
            self.console.print(message)

    # -- Assembly events --

    def assembly_start(self, case_id: str) -> float:
        """Log the start of one assembly run. Returns start time for assembly_finish."""
        self._write_event({"event": "assembly_start", "case_id": case_id})
        self._console_print(f"  [bold]Assembling:[/bold] {case_id}", Verbosity.DEBUG)
        return time.monotonic()

    def stage(self, case_id: str, name: str, details: dict[str, Any]) -> None:
        """Log one execution-trace stage."""
        self._write_event({"event": "stage", "case_id": case_id, "stage": name, **details})

        if self.verbosity >= Verbosity.DEBUG:
            summary = ", ".join(f"{k}={v}" for k, v in details.items() if k not in ("name", "output", "step"))
            self._console_print(f"    [dim]{name}[/dim] {summary}", Verbosity.DEBUG)

    def flag_raised(self, case_id: str, flag: str, source: str) -> None:
        """Log that a flag was raised for the first time in a run."""
        self._write_event({"event": "flag", "case_id": case_id, "flag": flag, "source": source})
        self._console_print(
            f"    [yellow]![/yellow] {flag} [dim]({source})[/dim]",
            Verbosity.DEBUG,
        )

    def aborted(self, case_id: str, reason: str) -> None:
        """Log that a run short-circuited before assembly completed."""
        self._write_event({"event": "aborted", "case_id": case_id, "reason": reason})
        self._console_print(f"  [red]Aborted[/red] {case_id}: {reason}", Verbosity.VERBOSE)

    def assembly_finish(
        self,
        case_id: str,
        status: str,
        rule: str,
        flags: list[str],
        start_time: float,
    ) -> None:
        """Log the completion of one assembly run and fold it into the batch log."""
        elapsed = time.monotonic() - start_time
        with self._lock:
            self.batch_log.record(case_id, status, flags)
            self.batch_log.total_time += elapsed

        self._write_event({
            "event": "assembly_finish",
            "case_id": case_id,
            "status": status,
            "rule": rule,
            "flags": flags,
            "duration_seconds": round(elapsed, 6),
        })

        style = {"AUTO": "green", "DOWNGRADED_TO_MANUAL": "yellow"}.get(status, "red")
        flag_text = f" [dim]{', '.join(flags)}[/dim]" if flags else ""
        self._console_print(
            f"  {case_id}: [{style}]{status}[/{style}] via {rule}{flag_text}",
            Verbosity.VERBOSE,
        )

    def close(self) -> None:
        """Close the log file if open."""
        if self._log_file is not None:
            self._log_file.close()
            self._log_file = None
