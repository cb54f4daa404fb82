"""Tests for segment resolution (engine/resolver.py)."""

from __future__ import annotations

import pytest

from covtree.engine.resolver import check_order, resolve_segments
from covtree.errors import SegmentOrderError
from covtree.models.coverage import Expansion, LineStatus, Region, RegionKind, Segment


def _seg(
    line: int,
    col: int,
    count: int,
    *,
    has_count: bool = True,
    entry: bool = True,
    gap: bool = False,
) -> Segment:
    return Segment(line, col, count, has_count, entry, gap)


def _statuses(segments: list[Segment]) -> dict[int, LineStatus]:
    resolution = resolve_segments(segments)
    return {line: v.status for line, v in resolution.line_verdicts.items()}


# ── Basic verdicts ──────────────────────────────────────────────


def test_worked_example_with_trailing_gap() -> None:
    segments = [
        _seg(1, 1, 5),
        _seg(3, 1, 0),
        _seg(5, 1, 0, entry=False, gap=True),
    ]
    resolution = resolve_segments(segments)
    statuses = {line: v.status for line, v in resolution.line_verdicts.items()}

    assert statuses[1] is LineStatus.COVERED
    assert statuses[2] is LineStatus.COVERED
    assert statuses[3] is LineStatus.NOT_COVERED
    assert statuses[4] is LineStatus.NOT_COVERED
    assert statuses[5] is LineStatus.NOT_INSTRUMENTED
    assert resolution.lines_total == 4
    assert resolution.lines_covered == 2


def test_gap_line_counted_when_expansion_touches_it() -> None:
    segments = [
        _seg(1, 1, 5),
        _seg(3, 1, 0),
        _seg(5, 1, 0, entry=False, gap=True),
    ]
    expansion = Expansion(
        source_region=Region(5, 3, 5, 10, 7, kind=RegionKind.EXPANSION, expanded_file_id=1)
    )
    resolution = resolve_segments(segments, expansions=[expansion])
    assert resolution.line_verdicts[5].status is LineStatus.COVERED
    assert resolution.line_verdicts[5].max_count == 7
    assert resolution.lines_total == 5


_WORKED_EXAMPLE = [
    _seg(1, 1, 5),
    _seg(3, 1, 0),
    _seg(5, 1, 0, entry=False, gap=True),
]


def test_gap_line_counted_when_code_region_touches_it() -> None:
    resolution = resolve_segments(_WORKED_EXAMPLE, regions=[Region(5, 1, 5, 9, 0)])
    assert resolution.line_verdicts[5].status is LineStatus.NOT_COVERED
    assert resolution.lines_total == 5
    assert resolution.lines_covered == 2


def test_gap_and_skipped_regions_do_not_instrument_lines() -> None:
    regions = [
        Region(5, 1, 5, 9, 3, kind=RegionKind.GAP),
        Region(5, 1, 5, 9, 3, kind=RegionKind.SKIPPED),
    ]
    resolution = resolve_segments(_WORKED_EXAMPLE, regions=regions)
    assert resolution.line_verdicts[5].status is LineStatus.NOT_INSTRUMENTED
    assert resolution.lines_total == 4


def test_regions_leave_segment_verdicts_alone() -> None:
    regions = [Region(1, 1, 4, 2, 0), Region(3, 1, 4, 2, 9)]
    with_regions = resolve_segments(_WORKED_EXAMPLE, regions=regions)
    without = resolve_segments(_WORKED_EXAMPLE)
    for line in (1, 2, 3, 4):
        assert with_regions.line_verdicts[line] == without.line_verdicts[line]


def test_state_carries_over_following_lines() -> None:
    statuses = _statuses([_seg(2, 5, 3), _seg(6, 2, 0, has_count=False, entry=False)])
    # 2..6: line 6 is touched by the counted state before column 2
    assert [statuses[line] for line in range(2, 7)] == [LineStatus.COVERED] * 5


def test_next_segment_at_column_one_does_not_touch_its_line() -> None:
    statuses = _statuses([_seg(1, 1, 4), _seg(2, 1, 0, has_count=False, entry=False)])
    assert statuses[1] is LineStatus.COVERED
    assert statuses[2] is LineStatus.NOT_INSTRUMENTED


def test_no_count_state_is_not_instrumented() -> None:
    statuses = _statuses(
        [
            _seg(1, 1, 1),
            _seg(2, 1, 0, has_count=False, entry=False),
            _seg(4, 1, 1),
        ]
    )
    assert statuses[2] is LineStatus.NOT_INSTRUMENTED
    assert statuses[3] is LineStatus.NOT_INSTRUMENTED
    assert statuses[4] is LineStatus.COVERED


def test_every_line_between_first_and_last_segment_present() -> None:
    resolution = resolve_segments([_seg(3, 1, 1), _seg(9, 4, 0, has_count=False, entry=False)])
    assert sorted(resolution.line_verdicts) == list(range(3, 10))


# ── Mixed lines ─────────────────────────────────────────────────


def test_mixed_line_is_covered_with_count_range() -> None:
    # `if (x) { y(); }` on one line: the branch body never ran
    segments = [
        _seg(1, 1, 4),
        _seg(1, 10, 0),
        _seg(1, 16, 4, entry=False),
        _seg(2, 1, 0, has_count=False, entry=False),
    ]
    verdict = resolve_segments(segments).line_verdicts[1]
    assert verdict.status is LineStatus.COVERED
    assert verdict.max_count == 4
    assert verdict.min_count == 0
    assert verdict.is_mixed
    assert verdict.display_status is LineStatus.MIXED


def test_fully_covered_line_is_not_mixed() -> None:
    verdict = resolve_segments([_seg(1, 1, 2), _seg(1, 5, 3)]).line_verdicts[1]
    assert verdict.status is LineStatus.COVERED
    assert verdict.min_count == 2
    assert verdict.max_count == 3
    assert not verdict.is_mixed
    assert verdict.display_status is LineStatus.COVERED


# ── Gap regions ─────────────────────────────────────────────────


def test_gap_never_downgrades_covered_line() -> None:
    segments = [
        _seg(1, 1, 3),
        _seg(1, 20, 0, entry=False, gap=True),
        _seg(2, 1, 3),
    ]
    verdict = resolve_segments(segments).line_verdicts[1]
    assert verdict.status is LineStatus.COVERED
    assert verdict.min_count == 3


def test_gap_with_count_does_not_upgrade_line() -> None:
    segments = [
        _seg(1, 1, 0),
        _seg(2, 1, 8, entry=False, gap=True),
        _seg(3, 1, 0),
    ]
    statuses = _statuses(segments)
    assert statuses[1] is LineStatus.NOT_COVERED
    assert statuses[2] is LineStatus.NOT_INSTRUMENTED
    assert statuses[3] is LineStatus.NOT_COVERED


# ── Ordering ────────────────────────────────────────────────────


def test_same_position_last_write_wins() -> None:
    segments = [
        _seg(1, 1, 0, has_count=False, entry=False),
        _seg(1, 1, 6),
        _seg(2, 1, 0, has_count=False, entry=False),
    ]
    verdict = resolve_segments(segments).line_verdicts[1]
    assert verdict.status is LineStatus.COVERED
    assert verdict.min_count == 6


def test_same_position_later_no_count_wins() -> None:
    segments = [
        _seg(1, 1, 6),
        _seg(1, 1, 0, has_count=False, entry=False),
    ]
    assert _statuses(segments)[1] is LineStatus.NOT_INSTRUMENTED


def test_out_of_order_segments_raise() -> None:
    with pytest.raises(SegmentOrderError) as exc_info:
        resolve_segments([_seg(3, 1, 1), _seg(2, 1, 1)], path="a.c")
    assert exc_info.value.index == 1
    assert exc_info.value.path == "a.c"


def test_column_order_within_line_checked() -> None:
    with pytest.raises(SegmentOrderError):
        check_order([_seg(3, 8, 1), _seg(3, 2, 1)])


def test_zero_line_rejected() -> None:
    with pytest.raises(SegmentOrderError, match="invalid position"):
        check_order([_seg(0, 1, 1)])


# ── Expansions and edge cases ───────────────────────────────────


def test_expansion_uses_highest_body_count() -> None:
    expansion = Expansion(
        source_region=Region(4, 5, 4, 20, 0, kind=RegionKind.EXPANSION, expanded_file_id=1),
        target_regions=(
            Region(10, 1, 12, 2, 9, file_id=1),
            Region(11, 1, 11, 5, 50, file_id=1, kind=RegionKind.GAP),
        ),
    )
    resolution = resolve_segments(
        [_seg(1, 1, 0), _seg(6, 1, 0, has_count=False, entry=False)], expansions=[expansion]
    )
    verdict = resolution.line_verdicts[4]
    assert verdict.status is LineStatus.COVERED
    assert verdict.max_count == 9
    # body lines are not tallied at their own position
    assert 10 not in resolution.line_verdicts


def test_zero_segments_only_known_lines_not_instrumented() -> None:
    expansion = Expansion(
        source_region=Region(2, 1, 3, 4, 5, kind=RegionKind.EXPANSION, expanded_file_id=1)
    )
    resolution = resolve_segments([], expansions=[expansion])
    assert sorted(resolution.line_verdicts) == [2, 3]
    assert all(
        v.status is LineStatus.NOT_INSTRUMENTED for v in resolution.line_verdicts.values()
    )
    assert resolution.lines_total == 0


def test_zero_segments_known_lines_include_regions() -> None:
    resolution = resolve_segments([], regions=[Region(2, 1, 4, 2, 0)])
    assert sorted(resolution.line_verdicts) == [2, 3, 4]
    assert all(
        v.status is LineStatus.NOT_INSTRUMENTED for v in resolution.line_verdicts.values()
    )
    assert resolution.lines_total == 0


def test_empty_file_has_no_lines() -> None:
    resolution = resolve_segments([])
    assert dict(resolution.line_verdicts) == {}


def test_resolution_is_idempotent() -> None:
    segments = [_seg(1, 1, 2), _seg(2, 4, 0), _seg(4, 1, 0, entry=False, gap=True)]
    assert resolve_segments(segments) == resolve_segments(segments)
