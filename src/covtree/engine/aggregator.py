"""File aggregation: one ``FileCoverage`` per exported source file."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from covtree.engine.regions import count_code_regions
from covtree.models.coverage import (
    NOT_INSTRUMENTED,
    FileCoverage,
    FunctionSummary,
    LineStatus,
    LineVerdict,
    Region,
    Summary,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from covtree.engine.resolver import Resolution
    from covtree.models.coverage import Segment

logger = logging.getLogger(__name__)


def summarize(
    line_verdicts: Mapping[int, LineVerdict],
    regions: Iterable[Region],
    functions: Iterable[FunctionSummary],
) -> Summary:
    """Compute a file summary from its resolved parts."""
    lines_total = lines_covered = 0
    for verdict in line_verdicts.values():
        if verdict.is_instrumented:
            lines_total += 1
            if verdict.status is LineStatus.COVERED:
                lines_covered += 1

    regions_covered, regions_total = count_code_regions(regions)
    functions = list(functions)
    return Summary(
        lines_covered=lines_covered,
        lines_total=lines_total,
        regions_covered=regions_covered,
        regions_total=regions_total,
        functions_covered=sum(1 for f in functions if f.is_covered),
        functions_total=len(functions),
    )


def aggregate_file(
    path: str,
    resolution: Resolution,
    regions: Sequence[Region] = (),
    functions: Sequence[FunctionSummary] = (),
) -> FileCoverage:
    """Combine resolved lines with the regions and functions reported in *path*."""
    return FileCoverage(
        path=path,
        line_verdicts=resolution.line_verdicts,
        regions=tuple(regions),
        functions=tuple(functions),
        summary=summarize(resolution.line_verdicts, regions, functions),
    )


def failed_file(path: str, segments: Sequence[Segment] = ()) -> FileCoverage:
    """Zeroed record for a file whose segment stream was rejected.

    Every line the segments mention is kept as ``NOT_INSTRUMENTED`` so the
    file still shows up in the tree without contributing to any total.
    """
    known = sorted({s.line for s in segments if s.line >= 1})
    return FileCoverage(path=path, line_verdicts=dict.fromkeys(known, NOT_INSTRUMENTED))


# ── Merging ──────────────────────────────────────────────────────


def _merge_verdicts(a: LineVerdict, b: LineVerdict) -> LineVerdict:
    if not a.is_instrumented:
        return b
    if not b.is_instrumented:
        return a
    max_count = max(a.max_count, b.max_count)
    status = LineStatus.COVERED if max_count > 0 else LineStatus.NOT_COVERED
    return LineVerdict(status, max_count=max_count, min_count=min(a.min_count, b.min_count))


def _group_regions(regions: Sequence[Region]) -> dict[tuple[object, ...], list[Region]]:
    grouped: dict[tuple[object, ...], list[Region]] = {}
    for region in regions:
        grouped.setdefault((region.span, region.kind, region.expanded), []).append(region)
    for bucket in grouped.values():
        bucket.sort(key=lambda r: r.execution_count, reverse=True)
    return grouped


def _merge_regions(a: Sequence[Region], b: Sequence[Region]) -> tuple[Region, ...]:
    """Union of two region lists using max execution count per span.

    Several expansion-body regions can share one call-site span, so spans
    are matched as multisets: the i-th highest count on one side is paired
    with the i-th highest on the other.
    """
    left, right = _group_regions(a), _group_regions(b)
    merged: list[Region] = []
    for key in left.keys() | right.keys():
        ours, theirs = left.get(key, []), right.get(key, [])
        for i in range(max(len(ours), len(theirs))):
            candidates = [side[i] for side in (ours, theirs) if i < len(side)]
            merged.append(max(candidates, key=lambda r: r.execution_count))
    merged.sort(key=lambda r: (r.span, r.kind, r.expanded, -r.execution_count))
    return tuple(merged)


def _merge_functions(
    a: Sequence[FunctionSummary], b: Sequence[FunctionSummary]
) -> tuple[FunctionSummary, ...]:
    """Merge function summaries using max execution count per name."""
    by_name: dict[str, FunctionSummary] = {}
    for fn in (*a, *b):
        existing = by_name.get(fn.name)
        if existing is None or (fn.execution_count, fn.filename) > (
            existing.execution_count,
            existing.filename,
        ):
            by_name[fn.name] = fn
    return tuple(by_name[name] for name in sorted(by_name))


def merge_file_coverage(a: FileCoverage, b: FileCoverage) -> FileCoverage:
    """Merge two records of the same file (e.g. from two export groups).

    A line covered in either record is covered in the result; the summary is
    recomputed from the merged parts. The lexicographically smaller path is
    kept so the result does not depend on argument order.
    """
    verdicts = dict(a.line_verdicts)
    for line, verdict in b.line_verdicts.items():
        verdicts[line] = _merge_verdicts(verdicts[line], verdict) if line in verdicts else verdict
    verdicts = dict(sorted(verdicts.items()))
    regions = _merge_regions(a.regions, b.regions)
    functions = _merge_functions(a.functions, b.functions)
    return FileCoverage(
        path=min(a.path, b.path),
        line_verdicts=verdicts,
        regions=regions,
        functions=functions,
        summary=summarize(verdicts, regions, functions),
    )


# ── Cross-checking ───────────────────────────────────────────────


def cross_check(file_coverage: FileCoverage, precomputed: Summary | None) -> list[str]:
    """Return descriptions of totals that disagree with the exporter's own summary.

    Only dimensions the exporter reported (non-zero totals) are compared; the
    recomputed summary always wins.
    """
    if precomputed is None:
        return []
    mismatches: list[str] = []
    ours = file_coverage.summary
    for dimension in ("lines", "regions", "functions"):
        theirs_total = getattr(precomputed, f"{dimension}_total")
        theirs_covered = getattr(precomputed, f"{dimension}_covered")
        if theirs_total == 0 and theirs_covered == 0:
            continue
        ours_total = getattr(ours, f"{dimension}_total")
        ours_covered = getattr(ours, f"{dimension}_covered")
        if (ours_covered, ours_total) != (theirs_covered, theirs_total):
            mismatches.append(
                f"{dimension}: recomputed {ours_covered}/{ours_total}, "
                f"exported {theirs_covered}/{theirs_total}"
            )
    return mismatches
