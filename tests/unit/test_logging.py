"""Tests for structured run logging."""

from __future__ import annotations

import io
import json

from rich.console import Console

from bundlecraft.core.logging import AssemblyLogger, BatchLog, Verbosity


def make_console() -> tuple[Console, io.StringIO]:
    buf = io.StringIO()
    return Console(file=buf, force_terminal=False, width=200), buf


class TestBatchLog:
    def test_record(self):
        log = BatchLog(run_id="r1")
        log.record("a", "AUTO", [])
        log.record("b", "MANUAL", ["structureRejected"])
        log.record("c", "AUTO", ["rulesReordered"])
        assert log.total_cases == 3
        assert log.statuses == {"AUTO": 2, "MANUAL": 1}
        assert log.flag_counts == {"structureRejected": 1, "rulesReordered": 1}

    def test_to_dict(self):
        log = BatchLog(run_id="r1")
        log.record("a", "AUTO", [])
        log.record("b", "DOWNGRADED_TO_MANUAL", ["hasConflict"])
        d = log.to_dict()
        assert d["run_id"] == "r1"
        assert d["total_cases"] == 2
        assert d["flag_counts"] == {"hasConflict": 1}
        assert [c["case_id"] for c in d["cases"]] == ["a", "b"]


class TestAssemblyLogger:
    def test_no_log_dir_writes_nothing(self):
        console, _ = make_console()
        run_logger = AssemblyLogger(console=console)
        start = run_logger.assembly_start("c1")
        run_logger.assembly_finish("c1", "AUTO", "DEFAULT_AUTO", [], start)
        assert run_logger.log_path is None
        assert run_logger.batch_log.statuses == {"AUTO": 1}

    def test_jsonl_events(self, tmp_path):
        run_logger = AssemblyLogger(log_dir=tmp_path / "logs")
        start = run_logger.assembly_start("c1")
        run_logger.stage("c1", "Decision", {"pattern": "DEFAULT_AUTO"})
        run_logger.flag_raised("c1", "rulesReordered", "discount")
        run_logger.assembly_finish("c1", "AUTO", "DEFAULT_AUTO", ["rulesReordered"], start)
        run_logger.close()

        lines = run_logger.log_path.read_text().splitlines()
        events = [json.loads(line) for line in lines]
        assert [e["event"] for e in events] == ["assembly_start", "stage", "flag", "assembly_finish"]
        assert all("timestamp" in e for e in events)
        assert events[-1]["status"] == "AUTO"
        assert events[-1]["flags"] == ["rulesReordered"]

    def test_non_ascii_written_as_utf8(self, tmp_path):
        run_logger = AssemblyLogger(log_dir=tmp_path / "logs")
        start = run_logger.assembly_start("café-bundle")
        run_logger.assembly_finish("café-bundle", "AUTO", "DEFAULT_AUTO", [], start)
        run_logger.close()

        text = run_logger.log_path.read_text(encoding="utf-8")
        assert "café-bundle" in text
        assert json.loads(text.splitlines()[-1])["case_id"] == "café-bundle"

    def test_default_verbosity_is_quiet(self):
        console, buf = make_console()
        run_logger = AssemblyLogger(console=console)
        start = run_logger.assembly_start("c1")
        run_logger.assembly_finish("c1", "AUTO", "DEFAULT_AUTO", [], start)
        assert buf.getvalue() == ""

    def test_verbose_prints_outcome(self):
        console, buf = make_console()
        run_logger = AssemblyLogger(verbosity=Verbosity.VERBOSE, console=console)
        start = run_logger.assembly_start("c1")
        run_logger.flag_raised("c1", "hasConflict", "rules")
        run_logger.assembly_finish("c1", "DOWNGRADED_TO_MANUAL", "NORMALIZATION_CONFLICT", ["hasConflict"], start)
        output = buf.getvalue()
        assert "DOWNGRADED_TO_MANUAL" in output
        assert "NORMALIZATION_CONFLICT" in output
        assert "Assembling" not in output

    def test_debug_prints_stages(self):
        console, buf = make_console()
        run_logger = AssemblyLogger(verbosity=Verbosity.DEBUG, console=console)
        run_logger.assembly_start("c1")
        run_logger.stage("c1", "Discount normalization", {"pattern": "TIERED"})
        output = buf.getvalue()
        assert "Assembling" in output
        assert "Discount normalization" in output
        assert "pattern=TIERED" in output
