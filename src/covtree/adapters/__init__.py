"""Adapters that turn coverage tool output into covtree entities."""

from covtree.adapters.export import (
    ExportFile,
    ExportFunction,
    ExportGroup,
    ExportPayload,
    load_export,
    parse_export,
)

__all__ = [
    "ExportFile",
    "ExportFunction",
    "ExportGroup",
    "ExportPayload",
    "load_export",
    "parse_export",
]
