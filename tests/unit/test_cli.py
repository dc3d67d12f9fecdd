"""Unit tests for Bundlecraft CLI commands."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from bundlecraft.cli import main


@pytest.fixture
def runner():
    return CliRunner()


def test_commands_registered(runner):
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    for name in ("assemble", "batch", "match"):
        assert name in result.output


def test_assemble_help(runner):
    result = runner.invoke(main, ["assemble", "--help"])
    assert result.exit_code == 0
    assert "CASE_FILE" in result.output


# ---------------------------------------------------------------------------
# assemble
# ---------------------------------------------------------------------------


class TestAssemble:
    def test_renders_result(self, runner, fixtures_dir):
        result = runner.invoke(main, ["assemble", str(fixtures_dir / "single_step.yaml")])
        assert result.exit_code == 0, result.output
        assert "AUTO" in result.output
        assert "DEFAULT_AUTO" in result.output
        assert "Shirts" in result.output

    def test_json_output(self, runner, fixtures_dir):
        result = runner.invoke(main, ["assemble", str(fixtures_dir / "single_step.yaml"), "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["status"] == "AUTO"
        assert payload["bundleConfig"]["steps"][0]["categories"][0]["id"] == "c1"
        assert payload["trace"][0]["durationMs"] == 812

    def test_output_file(self, runner, fixtures_dir, tmp_path):
        out = tmp_path / "result.json"
        result = runner.invoke(main, ["assemble", str(fixtures_dir / "single_step.yaml"), "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert json.loads(out.read_text())["status"] == "AUTO"

    def test_catalog_override(self, runner, fixtures_dir):
        result = runner.invoke(main, [
            "assemble", str(fixtures_dir / "single_step.yaml"), "--collections", "Socks", "--json",
        ])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["status"] == "DOWNGRADED_TO_MANUAL"
        assert payload["flags"]["collectionHintUnmatched"] is True

    def test_history_entry_replay(self, runner, fixtures_dir):
        result = runner.invoke(main, ["assemble", str(fixtures_dir / "history_entry.json"), "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["status"] == "AUTO"

    def test_history_entry_shows_merchant_text(self, runner, fixtures_dir):
        result = runner.invoke(main, ["assemble", str(fixtures_dir / "history_entry.json")])
        assert result.exit_code == 0, result.output
        assert "Buy any 2 shirts" in result.output

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(main, ["assemble", str(tmp_path / "nope.yaml")])
        assert result.exit_code != 0

    def test_bad_case_file(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("structure: [unclosed\n")
        result = runner.invoke(main, ["assemble", str(path)])
        assert result.exit_code == 1
        assert "Error loading case" in result.output

    def test_invalid_configuration(self, runner, fixtures_dir, monkeypatch):
        monkeypatch.setenv("BUNDLECRAFT_SCORER", "fuzzy")
        result = runner.invoke(main, ["assemble", str(fixtures_dir / "single_step.yaml")])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_log_dir_from_env(self, runner, fixtures_dir, monkeypatch, tmp_path):
        monkeypatch.setenv("BUNDLECRAFT_LOG_DIR", str(tmp_path / "logs"))
        result = runner.invoke(main, ["assemble", str(fixtures_dir / "single_step.yaml"), "--json"])
        assert result.exit_code == 0, result.output
        logs = list((tmp_path / "logs").glob("*.jsonl"))
        assert len(logs) == 1
        events = [json.loads(line)["event"] for line in logs[0].read_text().splitlines()]
        assert events[0] == "assembly_start"
        assert events[-1] == "assembly_finish"


# ---------------------------------------------------------------------------
# batch
# ---------------------------------------------------------------------------


class TestBatch:
    def test_summary_table(self, runner, fixtures_dir):
        result = runner.invoke(main, ["batch", str(fixtures_dir / "batch.yaml")])
        assert result.exit_code == 0, result.output
        assert "3 case(s)" in result.output
        assert "MANUAL" in result.output

    def test_json(self, runner, fixtures_dir):
        result = runner.invoke(main, ["batch", str(fixtures_dir / "batch.yaml"), "--json", "-j", "2"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["summary"]["total_cases"] == 3
        assert payload["summary"]["statuses"] == {"AUTO": 1, "MANUAL": 1, "DOWNGRADED_TO_MANUAL": 1}
        assert sorted(c["case_id"] for c in payload["summary"]["cases"]) == ["auto", "bundle-price", "rejected"]
        assert [r["id"] for r in payload["results"]] == ["auto", "rejected", "bundle-price"]
        assert payload["results"][1]["bundleConfig"] is None
        assert set(payload["results"][0]["fingerprint"]["components"]) >= {"status", "flags", "trace"}
        assert "changes" not in payload

    def test_baseline_unchanged(self, runner, fixtures_dir, tmp_path):
        first = runner.invoke(main, ["batch", str(fixtures_dir / "batch.yaml"), "--json"])
        baseline = tmp_path / "baseline.json"
        baseline.write_text(first.output)

        result = runner.invoke(main, ["batch", str(fixtures_dir / "batch.yaml"), "--baseline", str(baseline), "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["changes"] == {"auto": [], "rejected": [], "bundle-price": []}

        table = runner.invoke(main, ["batch", str(fixtures_dir / "batch.yaml"), "--baseline", str(baseline)])
        assert table.exit_code == 0, table.output
        assert "same" in table.output
        assert "0 changed since baseline" in table.output

    def test_baseline_reports_changed_parts(self, runner, fixtures_dir, tmp_path):
        first = json.loads(runner.invoke(main, ["batch", str(fixtures_dir / "batch.yaml"), "--json"]).output)
        stored = first["results"][0]["fingerprint"]
        stored["digest"] = "0" * 64
        stored["components"]["status"] = "0" * 64
        first["results"] = first["results"][:2]
        baseline = tmp_path / "baseline.json"
        baseline.write_text(json.dumps(first))

        result = runner.invoke(main, ["batch", str(fixtures_dir / "batch.yaml"), "--baseline", str(baseline), "--json"])
        assert result.exit_code == 0, result.output
        changes = json.loads(result.output)["changes"]
        assert changes["auto"] == ["status changed"]
        assert changes["rejected"] == []
        assert changes["bundle-price"] == ["no stored fingerprint"]

    def test_bad_baseline(self, runner, fixtures_dir, tmp_path):
        baseline = tmp_path / "baseline.json"
        baseline.write_text("[1, 2]")
        result = runner.invoke(main, ["batch", str(fixtures_dir / "batch.yaml"), "--baseline", str(baseline)])
        assert result.exit_code == 1
        assert "Error loading baseline" in result.output

    def test_bad_concurrency(self, runner, fixtures_dir):
        result = runner.invoke(main, ["batch", str(fixtures_dir / "batch.yaml"), "-j", "0"])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# match
# ---------------------------------------------------------------------------


class TestMatch:
    def test_json(self, runner):
        result = runner.invoke(main, [
            "match", "Dresses", "--collections", "Summer Dresses, Shirts", "--json",
        ])
        assert result.exit_code == 0, result.output
        ranked = json.loads(result.output)
        assert ranked[0]["title"] == "Summer Dresses"
        assert ranked[0]["method"] == "substring"

    def test_table(self, runner):
        result = runner.invoke(main, ["match", "hats", "--products", "Hat,Scarf"])
        assert result.exit_code == 0, result.output
        assert "Hat" in result.output

    def test_no_match(self, runner):
        result = runner.invoke(main, ["match", "Widgets", "--collections", "Shirts"])
        assert result.exit_code == 0
        assert "No match" in result.output

    def test_threshold_option(self, runner):
        args = ["match", "summer linen dresses", "--collections", "Summer Dresses", "--json"]
        assert json.loads(runner.invoke(main, args).output)
        assert json.loads(runner.invoke(main, args + ["--threshold", "0.9"]).output) == []

    def test_requires_catalog(self, runner):
        result = runner.invoke(main, ["match", "Shirts"])
        assert result.exit_code == 1
