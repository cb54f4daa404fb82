"""Data models for covtree."""

from covtree.models.coverage import (
    CoverageReport,
    Diagnostic,
    DirectoryNode,
    Expansion,
    FileCoverage,
    FunctionSummary,
    LineStatus,
    LineVerdict,
    Region,
    RegionKind,
    ReportNode,
    Segment,
    Summary,
)

__all__ = [
    "CoverageReport",
    "Diagnostic",
    "DirectoryNode",
    "Expansion",
    "FileCoverage",
    "FunctionSummary",
    "LineStatus",
    "LineVerdict",
    "Region",
    "RegionKind",
    "ReportNode",
    "Segment",
    "Summary",
]
