"""Coverage report models.

Input entities (segments, regions, expansions) mirror the ``llvm-cov export``
JSON shapes. Derived entities (line verdicts, file coverage, directory nodes)
are produced once per report and are read-only afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from collections.abc import Mapping

    from covtree.errors import CoverageError


# ── Export entities ──────────────────────────────────────────────


@dataclass(frozen=True)
class Segment:
    """A coverage state change at one source position."""

    line: int
    column: int
    execution_count: int
    has_count: bool
    is_region_entry: bool
    is_gap_region: bool = False

    @property
    def position(self) -> tuple[int, int]:
        return (self.line, self.column)

    @property
    def is_counted(self) -> bool:
        """Return True if this state carries a real (non-gap) execution count."""
        return self.has_count and not self.is_gap_region


class RegionKind(IntEnum):
    """Region kinds, numbered as in the export format."""

    CODE = 0
    EXPANSION = 1
    SKIPPED = 2
    GAP = 3
    BRANCH = 4


@dataclass(frozen=True)
class Region:
    """A source span with its own execution count."""

    start_line: int
    start_col: int
    end_line: int
    end_col: int
    execution_count: int
    kind: RegionKind = RegionKind.CODE
    file_id: int = 0
    expanded_file_id: int = 0
    expanded: bool = False
    """True when the region was moved from an expansion body onto its call site."""

    @property
    def span(self) -> tuple[int, int, int, int]:
        return (self.start_line, self.start_col, self.end_line, self.end_col)

    @property
    def lines(self) -> range:
        """Line numbers the region touches."""
        return range(self.start_line, max(self.start_line, self.end_line) + 1)

    @property
    def is_covered(self) -> bool:
        return self.execution_count > 0


@dataclass(frozen=True)
class Expansion:
    """A macro/inline expansion: call site plus the regions of the expanded body."""

    source_region: Region
    target_regions: tuple[Region, ...] = ()
    filenames: tuple[str, ...] = ()

    @property
    def body_count(self) -> int:
        """Highest count seen at the call site or in the non-gap body regions."""
        counts = [self.source_region.execution_count]
        counts.extend(
            r.execution_count
            for r in self.target_regions
            if r.kind not in (RegionKind.GAP, RegionKind.SKIPPED)
        )
        return max(counts)


@dataclass(frozen=True)
class FunctionSummary:
    """Execution data for one function."""

    name: str
    filename: str
    execution_count: int
    region_count: int = 0
    covered_region_count: int = 0
    demangled_name: str | None = None

    @property
    def display_name(self) -> str:
        """The demangled name when one is known, else the exported symbol."""
        return self.demangled_name or self.name

    @property
    def is_covered(self) -> bool:
        """Return True if this function was executed at least once."""
        return self.execution_count > 0


# ── Line verdicts ────────────────────────────────────────────────


class LineStatus(Enum):
    """Execution status of a single source line."""

    COVERED = "covered"
    NOT_COVERED = "not_covered"
    NOT_INSTRUMENTED = "not_instrumented"
    MIXED = "mixed"


@dataclass(frozen=True)
class LineVerdict:
    """Resolved status of one line, with the range of counts observed on it."""

    status: LineStatus
    max_count: int = 0
    min_count: int = 0

    @property
    def is_instrumented(self) -> bool:
        return self.status is not LineStatus.NOT_INSTRUMENTED

    @property
    def is_mixed(self) -> bool:
        """A covered line that also carries an unexecuted state."""
        return self.status is LineStatus.COVERED and self.min_count == 0

    @property
    def display_status(self) -> LineStatus:
        """Status for renderers: ``MIXED`` for partially executed lines."""
        if self.is_mixed:
            return LineStatus.MIXED
        return self.status


NOT_INSTRUMENTED = LineVerdict(LineStatus.NOT_INSTRUMENTED)


# ── Summaries and tree ───────────────────────────────────────────


def _percent(covered: int, total: int) -> float:
    if total == 0:
        return 0.0
    return covered * 100.0 / total


@dataclass(frozen=True)
class Summary:
    """Covered/total counts for lines, regions and functions."""

    lines_covered: int = 0
    lines_total: int = 0
    regions_covered: int = 0
    regions_total: int = 0
    functions_covered: int = 0
    functions_total: int = 0

    def __add__(self, other: Summary) -> Summary:
        if not isinstance(other, Summary):
            return NotImplemented
        return Summary(
            *(getattr(self, f.name) + getattr(other, f.name) for f in fields(Summary))
        )

    @property
    def line_percent(self) -> float:
        return _percent(self.lines_covered, self.lines_total)

    @property
    def region_percent(self) -> float:
        return _percent(self.regions_covered, self.regions_total)

    @property
    def function_percent(self) -> float:
        return _percent(self.functions_covered, self.functions_total)

    def as_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(Summary)}


@dataclass(frozen=True)
class FileCoverage:
    """Fully resolved coverage for one source file."""

    path: str
    """File path as it appears in the export."""

    line_verdicts: Mapping[int, LineVerdict] = field(default_factory=dict)
    """Verdict per line number."""

    regions: tuple[Region, ...] = ()
    """Regions attributed to this file, ordered by position."""

    functions: tuple[FunctionSummary, ...] = ()
    """Functions whose definition lives in this file."""

    summary: Summary = field(default_factory=Summary)

    @property
    def name(self) -> str:
        return PurePosixPath(self.path.replace("\\", "/")).name

    def verdict(self, line: int) -> LineVerdict:
        """Return the verdict for *line*, ``NOT_INSTRUMENTED`` if unknown."""
        return self.line_verdicts.get(line, NOT_INSTRUMENTED)


@dataclass(frozen=True)
class DirectoryNode:
    """A directory in the report tree; ``summary`` is the sum over its children."""

    name: str
    path: str = ""
    children: tuple[ReportNode, ...] = ()
    summary: Summary = field(default_factory=Summary)


ReportNode = Union[DirectoryNode, FileCoverage]


@dataclass(frozen=True)
class Diagnostic:
    """A recovered error, reported alongside the tree."""

    code: str
    message: str
    path: str = ""
    severity: str = "warning"
    """``warning`` for recovered errors, ``info`` for cross-check notes."""

    @classmethod
    def from_error(cls, error: CoverageError, path: str = "") -> Diagnostic:
        return cls(code=error.code, message=str(error), path=path)


@dataclass(frozen=True)
class CoverageReport:
    """Result of aggregating one export payload."""

    root: DirectoryNode
    diagnostics: tuple[Diagnostic, ...] = ()
    functions: tuple[FunctionSummary, ...] = ()

    @property
    def summary(self) -> Summary:
        return self.root.summary
