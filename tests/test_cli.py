"""Tests for the covtree CLI commands."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest
import yaml
from click.testing import CliRunner

from covtree.cli import _find_file, cli
from covtree.models.coverage import CoverageReport, DirectoryNode, FileCoverage

if TYPE_CHECKING:
    from pathlib import Path


_SOURCE = """int add(int a, int b) {
  return a + b;
}
int sub(int a, int b) {
  return a - b;
}
"""

_EXPORT: dict[str, Any] = {
    "type": "llvm.coverage.json.export",
    "version": "2.0.1",
    "data": [
        {
            "files": [
                {
                    "filename": "src/calc.c",
                    "segments": [
                        [1, 1, 5, True, True, False],
                        [3, 2, 0, False, False, False],
                        [4, 1, 0, True, True, False],
                        [6, 2, 0, False, False, False],
                    ],
                    "summary": {
                        "lines": {"count": 6, "covered": 3},
                        "functions": {"count": 2, "covered": 1},
                    },
                }
            ],
            "functions": [
                {
                    "name": "add",
                    "count": 5,
                    "filenames": ["src/calc.c"],
                    "regions": [[1, 23, 3, 2, 5, 0, 0, 0]],
                },
                {
                    "name": "sub",
                    "count": 0,
                    "filenames": ["src/calc.c"],
                    "regions": [[4, 23, 6, 2, 0, 0, 0, 0]],
                },
            ],
        }
    ],
}


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A checkout with one source file and its llvm-cov export."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "calc.c").write_text(_SOURCE, encoding="utf-8")
    (tmp_path / "coverage.json").write_text(json.dumps(_EXPORT), encoding="utf-8")
    return tmp_path


def _invoke(project: Path, *args: str) -> Any:
    runner = CliRunner()
    command, *rest = args
    return runner.invoke(
        cli,
        [command, str(project / "coverage.json"), *rest, "--config-dir", str(project)],
    )


# ── Group ───────────────────────────────────────────────────────


def test_version() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_help() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("report", "functions", "annotate"):
        assert command in result.output


# ── report ──────────────────────────────────────────────────────


def test_report_prints_tree(project: Path) -> None:
    result = _invoke(project, "report")
    assert result.exit_code == 0, result.output
    assert "Coverage Report" in result.output
    assert "src/" in result.output
    assert "calc.c" in result.output
    assert "50.0%" in result.output


def test_report_writes_json(project: Path) -> None:
    output = project / "out" / "tree.json"
    result = _invoke(project, "report", "--json-output", str(output))
    assert result.exit_code == 0, result.output
    data = json.loads(output.read_text(encoding="utf-8"))
    assert data["summary"]["lines_covered"] == 3
    assert data["summary"]["lines_total"] == 6
    assert data["summary"]["functions_covered"] == 1
    assert data["tree"]["children"][0]["name"] == "src"


def test_report_fail_under(project: Path) -> None:
    result = _invoke(project, "report", "--fail-under", "90")
    assert result.exit_code == 2
    assert "below" in result.output


def test_report_fail_under_from_config(project: Path) -> None:
    (project / ".covtree.yml").write_text(
        yaml.dump({"report": {"fail_under": 60}}), encoding="utf-8"
    )
    assert _invoke(project, "report").exit_code == 2
    assert _invoke(project, "report", "--fail-under", "40").exit_code == 0


def test_report_fail_under_ignored_without_instrumented_lines(project: Path) -> None:
    export = json.loads(json.dumps(_EXPORT))
    export["data"][0]["files"][0]["segments"] = []
    export["data"][0]["functions"] = []
    (project / "coverage.json").write_text(json.dumps(export), encoding="utf-8")
    result = _invoke(project, "report", "--fail-under", "50")
    assert result.exit_code == 0, result.output
    assert "below" not in result.output


def test_report_invalid_json(project: Path) -> None:
    (project / "coverage.json").write_text("{", encoding="utf-8")
    result = _invoke(project, "report")
    assert result.exit_code == 1
    assert "Invalid coverage export" in result.output


def test_report_unsupported_version(project: Path) -> None:
    export = dict(_EXPORT, version="3.0.0")
    (project / "coverage.json").write_text(json.dumps(export), encoding="utf-8")
    result = _invoke(project, "report")
    assert result.exit_code == 1
    assert "3.0.0" in result.output


def test_report_rejects_inverted_thresholds(project: Path) -> None:
    result = _invoke(project, "report", "--low", "0.9", "--high", "0.5")
    assert result.exit_code == 1
    assert "report.low_threshold" in result.output


def test_report_recovers_segment_errors(project: Path) -> None:
    export = json.loads(json.dumps(_EXPORT))
    export["data"][0]["files"][0]["segments"].reverse()
    (project / "coverage.json").write_text(json.dumps(export), encoding="utf-8")
    result = _invoke(project, "report")
    assert result.exit_code == 0
    assert "segment-order" in result.output


def test_report_source_root_option(project: Path) -> None:
    output = project / "tree.json"
    result = _invoke(
        project, "report", "--source-root", str(project / "src"), "--json-output", str(output)
    )
    assert result.exit_code == 0, result.output
    assert json.loads(output.read_text(encoding="utf-8"))["tree"]["name"] == "src"


# ── functions ───────────────────────────────────────────────────


def test_functions_lists_all(project: Path) -> None:
    result = _invoke(project, "functions")
    assert result.exit_code == 0, result.output
    assert "add" in result.output
    assert "sub" in result.output


def test_functions_uncovered_only(project: Path) -> None:
    result = _invoke(project, "functions", "--uncovered")
    assert result.exit_code == 0
    assert "sub" in result.output
    assert "add" not in result.output


# ── annotate ────────────────────────────────────────────────────


def test_annotate_shows_source(project: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(
        cli,
        [
            "annotate",
            str(project / "coverage.json"),
            "calc.c",
            "--config-dir",
            str(project),
        ],
    )
    assert result.exit_code == 0, result.output
    assert "return a + b;" in result.output
    assert "return a - b;" in result.output


def test_annotate_unknown_file(project: Path) -> None:
    runner = CliRunner()
    result = runner.invoke(
        cli,
        ["annotate", str(project / "coverage.json"), "missing.c", "--config-dir", str(project)],
    )
    assert result.exit_code == 1
    assert "missing.c" in result.output


def test_find_file_prefers_exact_match() -> None:
    exact = FileCoverage(path="calc.c")
    nested = FileCoverage(path="lib/calc.c")
    report = CoverageReport(root=DirectoryNode(name=".", children=(exact, nested)))
    assert _find_file(report, "calc.c") is exact
    assert _find_file(report, "lib/calc.c") is nested
    assert _find_file(report, "other.c") is None
