"""Coverage aggregation engine: segments in, directory tree out."""

from covtree.engine.aggregator import aggregate_file, merge_file_coverage
from covtree.engine.pipeline import ReportConfig, build_report
from covtree.engine.resolver import Resolution, resolve_segments
from covtree.engine.thresholds import DEFAULT_THRESHOLDS, Thresholds, Tier, classify
from covtree.engine.tree import EXTERNAL_ROOT, build_tree, iter_files, walk

__all__ = [
    "DEFAULT_THRESHOLDS",
    "EXTERNAL_ROOT",
    "ReportConfig",
    "Resolution",
    "Thresholds",
    "Tier",
    "aggregate_file",
    "build_report",
    "build_tree",
    "classify",
    "iter_files",
    "merge_file_coverage",
    "resolve_segments",
    "walk",
]
