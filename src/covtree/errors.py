"""Error taxonomy for loading and aggregating coverage exports.

``SchemaError`` and ``VersionError`` are fatal: no report is produced.
The remaining errors are raised per file or per function and are recovered
by the pipeline, which turns them into :class:`~covtree.models.coverage.Diagnostic`
entries returned alongside the tree.
"""

from __future__ import annotations


class CoverageError(Exception):
    """Base exception for coverage export errors."""

    code = "coverage-error"


class SchemaError(CoverageError):
    """Raised when a required field is missing or has the wrong shape."""

    code = "schema"

    def __init__(self, field_path: str, message: str) -> None:
        """Initialize with the offending field path.

        Args:
            field_path: Location of the bad field, e.g. ``data[0].files[2].segments``.
            message: Description of what is wrong with it.
        """
        super().__init__(f"{field_path}: {message}")
        self.field_path = field_path


class VersionError(CoverageError):
    """Raised when the export declares a format version we cannot read."""

    code = "version"

    def __init__(self, version: str) -> None:
        super().__init__(f"Unsupported export format version: {version!r}")
        self.version = version


class SegmentOrderError(CoverageError):
    """Raised when a file's segments are out of order or carry invalid positions."""

    code = "segment-order"

    def __init__(self, path: str, index: int, message: str) -> None:
        super().__init__(f"{path}: segment {index}: {message}")
        self.path = path
        self.index = index


class MissingFileError(CoverageError):
    """Raised when a function record points at a file absent from the export."""

    code = "missing-file"

    def __init__(self, function: str, filename: str) -> None:
        super().__init__(f"Function {function!r} references unknown file {filename!r}")
        self.function = function
        self.filename = filename


class PathError(CoverageError):
    """Raised when a file path cannot be related to the source root."""

    code = "path"

    def __init__(self, path: str, source_root: str) -> None:
        super().__init__(f"{path} is outside source root {source_root}")
        self.path = path
        self.source_root = source_root
