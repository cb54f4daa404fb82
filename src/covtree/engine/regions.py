"""Region and function attribution.

Function records carry the regions of every file the function touches,
indexed through the function's own ``filenames`` list. Regions belonging to
an expansion body (macro or inlined code) are moved onto the call site at
the top of their expansion chain, so their counts are reported where the
expansion was written rather than where the body lives.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from rust_demangler import demangle as rust_demangle

from covtree.errors import MissingFileError
from covtree.models.coverage import Diagnostic, FunctionSummary, Region, RegionKind

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

    from covtree.adapters.export import ExportFunction

logger = logging.getLogger(__name__)

_RegionKey = tuple[tuple[int, int, int, int], RegionKind, str]

_LEGACY_PREFIXES = ("_ZN", "ZN", "__ZN")
_V0_PREFIX = "_R"
_RUST_HASH = re.compile(r"::h[0-9a-f]{16}$")


@dataclass(frozen=True)
class RegionIndex:
    """Regions and function summaries grouped by the file they are reported in."""

    regions: dict[str, tuple[Region, ...]]
    functions: dict[str, tuple[FunctionSummary, ...]]
    diagnostics: tuple[Diagnostic, ...] = ()

    def regions_for(self, path: str) -> tuple[Region, ...]:
        return self.regions.get(path, ())

    def functions_for(self, path: str) -> tuple[FunctionSummary, ...]:
        return self.functions.get(path, ())


def count_code_regions(regions: Iterable[Region]) -> tuple[int, int]:
    """Return ``(covered, total)`` over code regions only."""
    covered = total = 0
    for region in regions:
        if region.kind is not RegionKind.CODE:
            continue
        total += 1
        if region.is_covered:
            covered += 1
    return covered, total


def _expansion_root(region: Region, parents: dict[int, Region]) -> Region:
    """Walk up the expansion chain of *region* to its outermost call site."""
    current = region
    seen: set[int] = set()
    while current.file_id in parents and current.file_id not in seen:
        seen.add(current.file_id)
        current = parents[current.file_id]
    return current


def attribute_regions(function: ExportFunction) -> list[tuple[str, _RegionKey, Region]]:
    """Place each region of *function* in the file it is reported in.

    Returns ``(filename, dedup_key, region)`` triples. The dedup key is
    derived from the region's original position so that regions collapsed
    onto the same call site stay distinct.
    """
    parents = {
        r.expanded_file_id: r
        for r in function.regions
        if r.kind is RegionKind.EXPANSION and r.expanded_file_id != r.file_id
    }
    placed: list[tuple[str, _RegionKey, Region]] = []
    for region in function.regions:
        key = (region.span, region.kind, function.filenames[region.file_id])
        root = _expansion_root(region, parents)
        if root is region:
            placed.append((function.filenames[region.file_id], key, region))
            continue
        moved = replace(
            region,
            start_line=root.start_line,
            start_col=root.start_col,
            end_line=root.end_line,
            end_col=root.end_col,
            file_id=root.file_id,
            expanded=True,
        )
        placed.append((function.filenames[root.file_id], key, moved))
    return placed


def demangle(name: str) -> str | None:
    """Return the readable form of a Rust symbol, or None if *name* is not one.

    The trailing disambiguation hash is dropped. Symbols the demangler cannot
    parse are left as exported.
    """
    # C++ function symbols share the legacy prefix but end in parameter types
    is_legacy = name.startswith(_LEGACY_PREFIXES) and name.endswith("E")
    if not (is_legacy or name.startswith(_V0_PREFIX)):
        return None
    try:
        readable = rust_demangle(name)
    except Exception as e:
        logger.debug("Could not demangle %s: %s", name, e)
        return None
    readable = _RUST_HASH.sub("", readable)
    return readable if readable and readable != name else None


def summarize_function(function: ExportFunction) -> FunctionSummary:
    covered, total = count_code_regions(function.regions)
    return FunctionSummary(
        name=function.name,
        filename=function.filename,
        execution_count=function.count,
        region_count=total,
        covered_region_count=covered,
        demangled_name=demangle(function.name),
    )


def collect_regions(
    functions: Iterable[ExportFunction],
    known_files: Collection[str],
) -> RegionIndex:
    """Group function regions and summaries by reporting file.

    Functions defined in a file missing from *known_files* are dropped and a
    ``missing-file`` diagnostic is recorded. Duplicate regions and functions
    (template instantiations, functions listed by several export groups) are
    merged keeping the highest execution count.
    """
    regions: dict[str, dict[_RegionKey, Region]] = {}
    summaries: dict[str, dict[str, FunctionSummary]] = {}
    diagnostics: list[Diagnostic] = []

    for function in functions:
        if function.filename not in known_files:
            error = MissingFileError(function.name, function.filename)
            logger.warning("%s; dropping function", error)
            diagnostics.append(Diagnostic.from_error(error, function.filename))
            continue

        for filename, key, region in attribute_regions(function):
            if filename not in known_files:
                logger.debug("Skipping region in unlisted file %s", filename)
                continue
            by_key = regions.setdefault(filename, {})
            existing = by_key.get(key)
            if existing is None or region.execution_count > existing.execution_count:
                by_key[key] = region

        summary = summarize_function(function)
        by_name = summaries.setdefault(function.filename, {})
        existing_fn = by_name.get(summary.name)
        if existing_fn is None or summary.execution_count > existing_fn.execution_count:
            by_name[summary.name] = summary

    return RegionIndex(
        regions={
            path: tuple(sorted(by_key.values(), key=lambda r: (r.span, r.kind, r.expanded)))
            for path, by_key in regions.items()
        },
        functions={
            path: tuple(sorted(by_name.values(), key=lambda f: f.name))
            for path, by_name in summaries.items()
        },
        diagnostics=tuple(diagnostics),
    )
