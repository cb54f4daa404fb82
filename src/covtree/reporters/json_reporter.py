"""JSON reporter: serializes the coverage tree for downstream renderers."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from covtree import __version__
from covtree.engine.thresholds import DEFAULT_THRESHOLDS, classify
from covtree.models.coverage import DirectoryNode

if TYPE_CHECKING:
    from pathlib import Path

    from covtree.engine.thresholds import Thresholds
    from covtree.models.coverage import (
        CoverageReport,
        FileCoverage,
        FunctionSummary,
        Region,
        ReportNode,
        Summary,
    )

logger = logging.getLogger(__name__)


class JSONReporter:
    """Write a :class:`CoverageReport` as a single JSON document.

    Every node carries its summary, percentages and tiers; file nodes also
    carry their line verdicts, regions and functions.
    """

    def __init__(self, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> None:
        self.thresholds = thresholds

    def generate(self, output_path: Path, report: CoverageReport) -> Path:
        """Write the JSON report to *output_path* and return it."""
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(self.generate_string(report), encoding="utf-8")
        logger.info("JSON report written to %s", output_path)
        return output_path

    def generate_string(self, report: CoverageReport) -> str:
        return json.dumps(self.build(report), indent=2, ensure_ascii=False)

    def build(self, report: CoverageReport) -> dict[str, Any]:
        """Build the JSON-compatible report structure."""
        return {
            "tool": "covtree",
            "version": __version__,
            "timestamp": datetime.now(tz=UTC).isoformat(),
            "thresholds": {"low": self.thresholds.low, "high": self.thresholds.high},
            "summary": self._summary(report.summary),
            "tree": self._node(report.root),
            "functions": [_function(fn) for fn in report.functions],
            "diagnostics": [
                {"code": d.code, "severity": d.severity, "path": d.path, "message": d.message}
                for d in report.diagnostics
            ],
        }

    def _summary(self, summary: Summary) -> dict[str, Any]:
        data: dict[str, Any] = summary.as_dict()
        for dimension in ("lines", "regions", "functions"):
            covered = getattr(summary, f"{dimension}_covered")
            total = getattr(summary, f"{dimension}_total")
            data[f"{dimension}_percent"] = round(covered * 100.0 / total, 2) if total else None
            data[f"{dimension}_tier"] = classify(covered, total, self.thresholds).value
        return data

    def _node(self, node: ReportNode) -> dict[str, Any]:
        if isinstance(node, DirectoryNode):
            return {
                "type": "directory",
                "name": node.name,
                "path": node.path,
                "summary": self._summary(node.summary),
                "children": [self._node(child) for child in node.children],
            }
        return self._file(node)

    def _file(self, file_coverage: FileCoverage) -> dict[str, Any]:
        return {
            "type": "file",
            "name": file_coverage.name,
            "path": file_coverage.path,
            "summary": self._summary(file_coverage.summary),
            "lines": {
                str(line): {
                    "status": verdict.display_status.value,
                    "max_count": verdict.max_count,
                    "min_count": verdict.min_count,
                }
                for line, verdict in file_coverage.line_verdicts.items()
            },
            "regions": [_region(r) for r in file_coverage.regions],
            "functions": [_function(fn) for fn in file_coverage.functions],
        }


def _region(region: Region) -> dict[str, Any]:
    return {
        "span": list(region.span),
        "count": region.execution_count,
        "kind": region.kind.name.lower(),
        "expanded": region.expanded,
    }


def _function(fn: FunctionSummary) -> dict[str, Any]:
    return {
        "name": fn.name,
        "display_name": fn.display_name,
        "filename": fn.filename,
        "count": fn.execution_count,
        "regions": fn.region_count,
        "covered_regions": fn.covered_region_count,
    }
