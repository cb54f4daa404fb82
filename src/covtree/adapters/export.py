"""llvm-cov export JSON loader.

Deserializes the document produced by ``llvm-cov export -format=text`` into
typed entities and validates its structural shape. Segment semantics are not
interpreted here; see :mod:`covtree.engine.resolver`.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from covtree.errors import SchemaError, VersionError
from covtree.models.coverage import Expansion, Region, RegionKind, Segment, Summary

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────

EXPORT_TYPE = "llvm.coverage.json.export"
SUPPORTED_MAJOR_VERSIONS = frozenset({2})

_VERSION_RE = re.compile(r"^(\d+)(?:\.(\d+))?(?:\.(\d+))?$")

# Segment: [line, col, count, hasCount, isRegionEntry, isGapRegion]
# Exports older than 2.0.1 omit isGapRegion.
_SEGMENT_ARITIES = (5, 6)
# Region: [lineStart, colStart, lineEnd, colEnd, count, fileId, expandedFileId, kind]
_REGION_ARITY = 8

_SUMMARY_DIMENSIONS = (
    ("lines", "lines_covered", "lines_total"),
    ("regions", "regions_covered", "regions_total"),
    ("functions", "functions_covered", "functions_total"),
)


# ── Typed payload ────────────────────────────────────────────────


@dataclass(frozen=True)
class ExportFile:
    """One ``data[].files[]`` entry."""

    filename: str
    segments: tuple[Segment, ...]
    expansions: tuple[Expansion, ...] = ()
    summary: Summary | None = None
    """Totals precomputed by the exporter; used for cross-checking only."""


@dataclass(frozen=True)
class ExportFunction:
    """One ``data[].functions[]`` entry."""

    name: str
    filenames: tuple[str, ...]
    count: int
    regions: tuple[Region, ...] = ()

    @property
    def filename(self) -> str:
        """The file holding the function definition."""
        return self.filenames[0]


@dataclass(frozen=True)
class ExportGroup:
    """One ``data[]`` entry: the coverage mapping of one binary."""

    files: tuple[ExportFile, ...]
    functions: tuple[ExportFunction, ...] = ()
    totals: Summary | None = None


@dataclass(frozen=True)
class ExportPayload:
    """A whole export document."""

    version: str
    data: tuple[ExportGroup, ...]
    export_type: str = EXPORT_TYPE

    @property
    def files(self) -> list[ExportFile]:
        return [f for group in self.data for f in group.files]

    @property
    def functions(self) -> list[ExportFunction]:
        return [fn for group in self.data for fn in group.functions]


# ── Entry points ─────────────────────────────────────────────────


def load_export(raw: bytes | str) -> ExportPayload:
    """Decode and validate an export document.

    Raises:
        SchemaError: If the JSON is invalid or a required field is malformed.
        VersionError: If the declared format version is not supported.
    """
    try:
        document = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SchemaError("$", f"invalid JSON: {e}") from e
    return parse_export(document)


def parse_export(document: Any) -> ExportPayload:
    """Validate an already-decoded export document."""
    obj = _expect_object(document, "$")

    export_type = obj.get("type", EXPORT_TYPE)
    if export_type != EXPORT_TYPE:
        raise SchemaError("type", f"expected {EXPORT_TYPE!r}, got {export_type!r}")

    version = _require(obj, "version", "$")
    if not isinstance(version, str):
        raise SchemaError("version", "must be a string")
    check_version(version)

    data = _expect_list(_require(obj, "data", "$"), "data")
    groups = tuple(_parse_group(group, f"data[{i}]") for i, group in enumerate(data))
    logger.debug(
        "Loaded export v%s: %d group(s), %d file(s)",
        version,
        len(groups),
        sum(len(g.files) for g in groups),
    )
    return ExportPayload(version=version, data=groups, export_type=export_type)


def check_version(version: str) -> tuple[int, int, int]:
    """Parse *version* and reject unsupported major versions."""
    match = _VERSION_RE.match(version.strip())
    if not match:
        raise VersionError(version)
    major, minor, patch = (int(part) if part else 0 for part in match.groups())
    if major not in SUPPORTED_MAJOR_VERSIONS:
        raise VersionError(version)
    return major, minor, patch


# ── Structure parsing ────────────────────────────────────────────


def _parse_group(raw: Any, path: str) -> ExportGroup:
    obj = _expect_object(raw, path)
    files_raw = _expect_list(_require(obj, "files", path), f"{path}.files")
    functions_raw = _expect_list(obj.get("functions", []), f"{path}.functions")

    files = tuple(_parse_file(f, f"{path}.files[{i}]") for i, f in enumerate(files_raw))
    functions = tuple(
        _parse_function(fn, f"{path}.functions[{i}]") for i, fn in enumerate(functions_raw)
    )
    totals = _parse_summary(obj["totals"], f"{path}.totals") if "totals" in obj else None
    return ExportGroup(files=files, functions=functions, totals=totals)


def _parse_file(raw: Any, path: str) -> ExportFile:
    obj = _expect_object(raw, path)
    filename = _require(obj, "filename", path)
    if not isinstance(filename, str) or not filename:
        raise SchemaError(f"{path}.filename", "must be a non-empty string")

    segments_raw = _expect_list(_require(obj, "segments", path), f"{path}.segments")
    segments = tuple(
        _parse_segment(seg, f"{path}.segments[{i}]") for i, seg in enumerate(segments_raw)
    )

    expansions_raw = _expect_list(obj.get("expansions", []), f"{path}.expansions")
    expansions = tuple(
        _parse_expansion(exp, f"{path}.expansions[{i}]") for i, exp in enumerate(expansions_raw)
    )

    summary = _parse_summary(obj["summary"], f"{path}.summary") if "summary" in obj else None
    return ExportFile(
        filename=filename,
        segments=segments,
        expansions=expansions,
        summary=summary,
    )


def _parse_function(raw: Any, path: str) -> ExportFunction:
    obj = _expect_object(raw, path)
    name = _require(obj, "name", path)
    if not isinstance(name, str):
        raise SchemaError(f"{path}.name", "must be a string")

    filenames_raw = _expect_list(_require(obj, "filenames", path), f"{path}.filenames")
    if not filenames_raw:
        raise SchemaError(f"{path}.filenames", "must not be empty")
    for i, fname in enumerate(filenames_raw):
        if not isinstance(fname, str):
            raise SchemaError(f"{path}.filenames[{i}]", "must be a string")

    count = _expect_int(_require(obj, "count", path), f"{path}.count")
    regions_raw = _expect_list(obj.get("regions", []), f"{path}.regions")
    regions = tuple(
        _parse_region(region, f"{path}.regions[{i}]") for i, region in enumerate(regions_raw)
    )
    for i, region in enumerate(regions):
        for attr in ("file_id", "expanded_file_id"):
            if getattr(region, attr) >= len(filenames_raw):
                raise SchemaError(
                    f"{path}.regions[{i}]", f"{attr} out of range for {len(filenames_raw)} files"
                )
    return ExportFunction(name=name, filenames=tuple(filenames_raw), count=count, regions=regions)


def _parse_expansion(raw: Any, path: str) -> Expansion:
    obj = _expect_object(raw, path)
    source = _parse_region(_require(obj, "source_region", path), f"{path}.source_region")
    targets_raw = _expect_list(obj.get("target_regions", []), f"{path}.target_regions")
    targets = tuple(
        _parse_region(r, f"{path}.target_regions[{i}]") for i, r in enumerate(targets_raw)
    )
    filenames_raw = _expect_list(obj.get("filenames", []), f"{path}.filenames")
    if not all(isinstance(f, str) for f in filenames_raw):
        raise SchemaError(f"{path}.filenames", "must contain only strings")
    return Expansion(source_region=source, target_regions=targets, filenames=tuple(filenames_raw))


def _parse_segment(raw: Any, path: str) -> Segment:
    items = _expect_list(raw, path)
    if len(items) not in _SEGMENT_ARITIES:
        raise SchemaError(path, f"expected 5 or 6 items, got {len(items)}")
    return Segment(
        line=_expect_int(items[0], f"{path}[0]"),
        column=_expect_int(items[1], f"{path}[1]"),
        execution_count=_expect_int(items[2], f"{path}[2]"),
        has_count=_expect_bool(items[3], f"{path}[3]"),
        is_region_entry=_expect_bool(items[4], f"{path}[4]"),
        is_gap_region=_expect_bool(items[5], f"{path}[5]") if len(items) > 5 else False,
    )


def _parse_region(raw: Any, path: str) -> Region:
    items = _expect_list(raw, path)
    if len(items) != _REGION_ARITY:
        raise SchemaError(path, f"expected {_REGION_ARITY} items, got {len(items)}")
    values = [_expect_int(item, f"{path}[{i}]") for i, item in enumerate(items)]
    try:
        kind = RegionKind(values[7])
    except ValueError as e:
        raise SchemaError(f"{path}[7]", f"unknown region kind {values[7]}") from e
    return Region(
        start_line=values[0],
        start_col=values[1],
        end_line=values[2],
        end_col=values[3],
        execution_count=values[4],
        file_id=values[5],
        expanded_file_id=values[6],
        kind=kind,
    )


def _parse_summary(raw: Any, path: str) -> Summary:
    obj = _expect_object(raw, path)
    counts: dict[str, int] = {}
    for key, covered_attr, total_attr in _SUMMARY_DIMENSIONS:
        if key not in obj:
            continue
        dim = _expect_object(obj[key], f"{path}.{key}")
        counts[total_attr] = _expect_int(dim.get("count", 0), f"{path}.{key}.count")
        counts[covered_attr] = _expect_int(dim.get("covered", 0), f"{path}.{key}.covered")
    return Summary(**counts)


# ── Shape helpers ────────────────────────────────────────────────


def _require(obj: dict[str, Any], key: str, path: str) -> Any:
    if key not in obj:
        where = key if path == "$" else f"{path}.{key}"
        raise SchemaError(where, "required field is missing")
    return obj[key]


def _expect_object(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError(path, f"expected an object, got {type(value).__name__}")
    return value


def _expect_list(value: Any, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise SchemaError(path, f"expected an array, got {type(value).__name__}")
    return value


def _expect_int(value: Any, path: str) -> int:
    # bool is an int subclass; JSON true/false is never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaError(path, f"expected an integer, got {value!r}")
    if value < 0:
        raise SchemaError(path, f"expected a non-negative integer, got {value}")
    return value


def _expect_bool(value: Any, path: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise SchemaError(path, f"expected a boolean, got {value!r}")
