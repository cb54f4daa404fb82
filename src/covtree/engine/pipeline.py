"""Report pipeline: export payload + configuration -> coverage tree.

Per-file resolution shares no state between files, so it is fanned out over
a thread pool; the tree is only built once every file is back.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

from covtree.engine.aggregator import aggregate_file, cross_check, failed_file, merge_file_coverage
from covtree.engine.regions import RegionIndex, collect_regions
from covtree.engine.resolver import resolve_segments
from covtree.engine.thresholds import Thresholds
from covtree.engine.tree import build_tree
from covtree.errors import SegmentOrderError
from covtree.models.coverage import CoverageReport, Diagnostic, FileCoverage

if TYPE_CHECKING:
    from covtree.adapters.export import ExportFile, ExportPayload

logger = logging.getLogger(__name__)

MIN_FILES_FOR_PARALLEL = 8


@dataclass(frozen=True)
class ReportConfig:
    """Configuration consumed by the aggregation engine."""

    source_root: str = ""
    """Directory the report tree is rooted at."""

    low_threshold: float = 0.5
    """Ratios below this are LOW."""

    high_threshold: float = 0.8
    """Ratios at or above this are HIGH."""

    @property
    def thresholds(self) -> Thresholds:
        return Thresholds(low=self.low_threshold, high=self.high_threshold)


def resolve_file(
    export_file: ExportFile, index: RegionIndex
) -> tuple[FileCoverage, list[Diagnostic]]:
    """Resolve and aggregate one file; segment errors are recovered here."""
    path = export_file.filename
    regions = index.regions_for(path)
    try:
        resolution = resolve_segments(
            export_file.segments,
            expansions=export_file.expansions,
            regions=regions,
            path=path,
        )
    except SegmentOrderError as e:
        logger.warning("%s; marking file as not instrumented", e)
        return failed_file(path, export_file.segments), [Diagnostic.from_error(e, path)]

    file_coverage = aggregate_file(
        path,
        resolution,
        regions=regions,
        functions=index.functions_for(path),
    )
    diagnostics = [
        Diagnostic(code="summary-mismatch", message=message, path=path, severity="info")
        for message in cross_check(file_coverage, export_file.summary)
    ]
    if diagnostics:
        logger.info("%s: exported summary differs from recomputed totals", path)
    return file_coverage, diagnostics


def _resolve_all(
    files: list[ExportFile], index: RegionIndex, workers: int | None
) -> list[tuple[FileCoverage, list[Diagnostic]]]:
    if len(files) < MIN_FILES_FOR_PARALLEL or workers == 1:
        return [resolve_file(f, index) for f in files]

    logger.debug("Resolving %d files across worker threads", len(files))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(lambda f: resolve_file(f, index), files))


def build_report(
    payload: ExportPayload,
    config: ReportConfig | None = None,
    *,
    workers: int | None = None,
) -> CoverageReport:
    """Aggregate a validated export payload into a coverage tree.

    Args:
        payload: Output of :func:`covtree.adapters.export.load_export`.
        config: Engine configuration; defaults to ``ReportConfig()``.
        workers: Worker threads for per-file resolution. ``1`` forces a
            serial run; ``None`` lets the executor pick.

    Returns:
        The tree, the recovered-error diagnostics, and every function summary.
    """
    report_config = config or ReportConfig()
    files = payload.files
    known_files = {f.filename for f in files}
    index = collect_regions(payload.functions, known_files)

    diagnostics: list[Diagnostic] = list(index.diagnostics)
    merged: dict[str, FileCoverage] = {}
    for file_coverage, file_diagnostics in _resolve_all(files, index, workers):
        diagnostics.extend(file_diagnostics)
        existing = merged.get(file_coverage.path)
        merged[file_coverage.path] = (
            file_coverage if existing is None else merge_file_coverage(existing, file_coverage)
        )

    tree = build_tree(merged.values(), source_root=report_config.source_root)
    diagnostics.extend(tree.diagnostics)

    # functions of files whose segments were rejected are left out with them
    functions = tuple(
        sorted(
            (fn for fc in merged.values() for fn in fc.functions),
            key=lambda fn: (fn.filename, fn.name),
        )
    )
    logger.info(
        "Built coverage tree: %d file(s), %d diagnostic(s)", len(merged), len(diagnostics)
    )
    return CoverageReport(root=tree.root, diagnostics=tuple(diagnostics), functions=functions)
