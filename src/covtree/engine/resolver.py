"""Segment resolution: per-line verdicts from a file's segment stream.

A file's segments form a run-length encoding of coverage state over source
positions: each segment's state holds from its own ``(line, column)`` up to
the next segment's position, and the last segment holds to the end of its
line. Resolution is a single forward pass that hands every state to the
lines its range intersects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from covtree.errors import SegmentOrderError
from covtree.models.coverage import NOT_INSTRUMENTED, LineStatus, LineVerdict, RegionKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from covtree.models.coverage import Expansion, Region, Segment

logger = logging.getLogger(__name__)

_UNCOUNTED_KINDS = frozenset({RegionKind.GAP, RegionKind.SKIPPED})


@dataclass(frozen=True)
class Resolution:
    """Resolver output for one file."""

    line_verdicts: Mapping[int, LineVerdict] = field(default_factory=dict)

    @property
    def lines_total(self) -> int:
        return sum(1 for v in self.line_verdicts.values() if v.is_instrumented)

    @property
    def lines_covered(self) -> int:
        return sum(1 for v in self.line_verdicts.values() if v.status is LineStatus.COVERED)


class _LineTally:
    """Counts observed on one line."""

    __slots__ = ("max_count", "min_count")

    def __init__(self) -> None:
        self.max_count = 0
        self.min_count: int | None = None

    def add(self, count: int) -> None:
        self.max_count = max(self.max_count, count)
        self.min_count = count if self.min_count is None else min(self.min_count, count)

    def verdict(self) -> LineVerdict:
        if self.min_count is None:
            return NOT_INSTRUMENTED
        status = LineStatus.COVERED if self.max_count > 0 else LineStatus.NOT_COVERED
        return LineVerdict(status, max_count=self.max_count, min_count=self.min_count)


def check_order(segments: Sequence[Segment], path: str = "") -> None:
    """Reject segments with invalid positions or out of ``(line, column)`` order.

    Raises:
        SegmentOrderError: On the first offending segment.
    """
    previous: tuple[int, int] | None = None
    for index, segment in enumerate(segments):
        if segment.line < 1 or segment.column < 1:
            raise SegmentOrderError(
                path, index, f"invalid position {segment.line}:{segment.column}"
            )
        if previous is not None and segment.position < previous:
            raise SegmentOrderError(
                path,
                index,
                f"{segment.line}:{segment.column} precedes {previous[0]}:{previous[1]}",
            )
        previous = segment.position


def _last_line_touched(segment: Segment, following: Segment | None) -> int:
    """Last line the state of *segment* applies to, or ``segment.line - 1`` if none."""
    if following is None:
        return segment.line
    if following.position == segment.position:
        # zero-width: overwritten by the later segment at the same position
        return segment.line - 1
    if following.column > 1:
        return following.line
    return following.line - 1


def resolve_segments(
    segments: Sequence[Segment],
    *,
    expansions: Iterable[Expansion] = (),
    regions: Iterable[Region] = (),
    path: str = "",
) -> Resolution:
    """Resolve one file's segments (and expansion call sites) into line verdicts.

    Lines touched only by gap states or by states without a count are
    ``NOT_INSTRUMENTED`` unless one of *regions* spans them; such lines take
    their verdict from the counts of the regions covering them. A line is
    ``COVERED`` as soon as one counted, non-gap state applying to it has a
    non-zero count.

    Raises:
        SegmentOrderError: If the segments are not in ascending position order.
    """
    check_order(segments, path)
    expansions = tuple(expansions)
    regions = [r for r in regions if r.kind not in _UNCOUNTED_KINDS]

    if not segments:
        known: set[int] = set()
        for expansion in expansions:
            known.update(expansion.source_region.lines)
        for region in regions:
            known.update(region.lines)
        return Resolution(line_verdicts=dict.fromkeys(sorted(known), NOT_INSTRUMENTED))

    tallies: dict[int, _LineTally] = {}
    first_line = segments[0].line
    last_line = segments[-1].line

    for index, segment in enumerate(segments):
        following = segments[index + 1] if index + 1 < len(segments) else None
        end_line = _last_line_touched(segment, following)
        if not segment.is_counted:
            continue
        for line in range(segment.line, end_line + 1):
            tallies.setdefault(line, _LineTally()).add(segment.execution_count)

    for expansion in expansions:
        count = expansion.body_count
        for line in expansion.source_region.lines:
            tallies.setdefault(line, _LineTally()).add(count)

    # regions only fill lines the segment stream leaves uncounted
    filled: dict[int, _LineTally] = {}
    for region in regions:
        for line in region.lines:
            if line not in tallies:
                filled.setdefault(line, _LineTally()).add(region.execution_count)
    tallies.update(filled)

    lines = set(range(first_line, last_line + 1)) | tallies.keys()
    verdicts = {
        line: tallies[line].verdict() if line in tallies else NOT_INSTRUMENTED
        for line in sorted(lines)
    }
    logger.debug(
        "Resolved %s: %d segment(s), %d line(s)",
        path or "<file>",
        len(segments),
        len(verdicts),
    )
    return Resolution(line_verdicts=verdicts)
