"""Directory tree construction and summary rollup."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from covtree.engine.aggregator import merge_file_coverage
from covtree.errors import PathError
from covtree.models.coverage import Diagnostic, DirectoryNode, FileCoverage, Summary

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import PurePath

    from covtree.models.coverage import ReportNode

logger = logging.getLogger(__name__)

EXTERNAL_ROOT = "(external)"


@dataclass
class _DirBuilder:
    """Mutable directory used only while the tree is being assembled."""

    dirs: dict[str, _DirBuilder] = field(default_factory=dict)
    files: dict[str, FileCoverage] = field(default_factory=dict)

    def insert(self, parts: tuple[str, ...], file_coverage: FileCoverage) -> None:
        node = self
        for part in parts[:-1]:
            node = node.dirs.setdefault(part, _DirBuilder())
        name = parts[-1]
        existing = node.files.get(name)
        node.files[name] = (
            file_coverage if existing is None else merge_file_coverage(existing, file_coverage)
        )


@dataclass(frozen=True)
class TreeResult:
    root: DirectoryNode
    diagnostics: tuple[Diagnostic, ...] = ()


def _posix(path: str | PurePath) -> PurePosixPath:
    return PurePosixPath(str(path).replace("\\", "/"))


def relative_parts(path: str, source_root: str | PurePath) -> tuple[str, ...]:
    """Split *path* into segments relative to *source_root*.

    Raises:
        PathError: If *path* cannot be placed under *source_root*.
    """
    candidate = _posix(path)
    root = _posix(source_root)
    if candidate.is_absolute():
        if not root.is_absolute():
            raise PathError(path, str(source_root))
        try:
            candidate = candidate.relative_to(root)
        except ValueError as e:
            raise PathError(path, str(source_root)) from e

    normalized = posixpath.normpath(str(candidate))
    if normalized == ".." or normalized.startswith("../"):
        raise PathError(path, str(source_root))
    parts = tuple(p for p in PurePosixPath(normalized).parts if p != ".")
    if not parts:
        raise PathError(path, str(source_root))
    return parts


def _external_parts(path: str) -> tuple[str, ...]:
    parts = tuple(p for p in _posix(path).parts if p not in ("/", ".", ".."))
    return (EXTERNAL_ROOT, *parts) if parts else (EXTERNAL_ROOT, path)


def _freeze(name: str, path: str, builder: _DirBuilder) -> DirectoryNode:
    """Post-order: freeze children first, then sum their summaries."""
    children: list[ReportNode] = []
    for dir_name in builder.dirs:
        child_path = posixpath.join(path, dir_name) if path else dir_name
        children.append(_freeze(dir_name, child_path, builder.dirs[dir_name]))
    children.extend(builder.files.values())
    children.sort(key=lambda node: (node.name, isinstance(node, FileCoverage)))

    summary = Summary()
    for child in children:
        summary = summary + child.summary
    return DirectoryNode(name=name, path=path, children=tuple(children), summary=summary)


def build_tree(
    files: Iterable[FileCoverage],
    *,
    source_root: str | PurePath = "",
) -> TreeResult:
    """Group *files* into a directory tree rooted at *source_root*.

    Files outside the root are kept under a synthetic ``(external)`` directory
    and reported as ``path`` diagnostics. Children are ordered by name, so
    the result does not depend on the order of *files*.
    """
    root = _DirBuilder()
    diagnostics: list[Diagnostic] = []
    for file_coverage in files:
        try:
            parts = relative_parts(file_coverage.path, source_root)
        except PathError as e:
            logger.warning("%s; placing it under %s", e, EXTERNAL_ROOT)
            diagnostics.append(Diagnostic.from_error(e, file_coverage.path))
            parts = _external_parts(file_coverage.path)
        root.insert(parts, file_coverage)

    root_name = _posix(source_root).name or "."
    return TreeResult(root=_freeze(root_name, "", root), diagnostics=tuple(diagnostics))


# ── Traversal ────────────────────────────────────────────────────


def walk(node: ReportNode, depth: int = 0) -> Iterator[tuple[int, ReportNode]]:
    """Yield ``(depth, node)`` pairs in pre-order."""
    yield depth, node
    if isinstance(node, DirectoryNode):
        for child in node.children:
            yield from walk(child, depth + 1)


def iter_files(node: ReportNode) -> Iterator[FileCoverage]:
    """Yield every file under *node*, in tree order."""
    for _, child in walk(node):
        if isinstance(child, FileCoverage):
            yield child
