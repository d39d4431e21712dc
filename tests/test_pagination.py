from __future__ import annotations

import random

import pytest

from sondagem.report.pagination import BlockMetrics, PageGeometry, paginate


GEOMETRY = PageGeometry(page_height=1123, bottom_margin=60, top_pad=40)


def _blocks(*heights: float) -> list[BlockMetrics]:
    return [BlockMetrics(height=h) for h in heights]


def test_usable_height():
    assert GEOMETRY.usable_height == 1063
    assert GEOMETRY.page_index(1062.9) == 0
    assert GEOMETRY.page_index(1063) == 1


def test_second_block_pushed_past_first_cut():
    result = paginate(_blocks(300, 900, 100), GEOMETRY)

    first, second, third = result.placements
    assert not first.pushed
    assert second.push == pytest.approx(803)
    assert second.start_y + second.push == pytest.approx(1103)
    assert second.end_y == pytest.approx(2003)
    assert not third.pushed
    assert result.total_height == pytest.approx(2103)


def test_chained_pushes_across_two_cuts():
    result = paginate(_blocks(300, 900, 200), GEOMETRY)

    pushes = [p.push for p in result.placements]
    assert pushes == pytest.approx([0, 803, 163])
    assert result.total_height == pytest.approx(2366)
    assert [p.index for p in result.pushed] == [1, 2]


def test_push_grows_top_margin_only():
    blocks = [BlockMetrics(height=500, margin_top=10, margin_bottom=8), BlockMetrics(height=600, margin_top=12)]
    result = paginate(blocks, GEOMETRY)

    second = result.placements[1]
    assert second.pushed
    assert second.margin_top == pytest.approx(12 + second.push)
    assert second.end_y - second.start_y == pytest.approx(second.push + blocks[1].total)


def test_header_offset_is_start_cursor():
    result = paginate(_blocks(100), GEOMETRY, start_y=1000)

    only = result.placements[0]
    assert only.start_y == 1000
    # 1000 -> 1100 crosses 1063
    assert only.push == pytest.approx(63 + 40)


def test_oversized_block_flows_across_cut(caplog):
    with caplog.at_level('WARNING', logger='sondagem.report.pagination'):
        result = paginate(_blocks(200, 1100, 50), GEOMETRY)

    big = result.placements[1]
    assert big.oversized
    assert not big.pushed
    assert big.end_y == pytest.approx(1300)
    assert result.oversized == [big]
    assert 'taller than a page' in caplog.text
    # layout continues normally after the oversized block
    assert result.placements[2].start_y == pytest.approx(1300)


def test_block_that_fills_page_with_pad_is_oversized():
    result = paginate(_blocks(100, 1023), GEOMETRY)

    assert result.placements[1].oversized


def test_empty_input():
    result = paginate([], GEOMETRY, start_y=42)

    assert result.placements == []
    assert result.total_height == 42


def test_invalid_geometry():
    with pytest.raises(ValueError):
        paginate(_blocks(10), PageGeometry(page_height=50, bottom_margin=60))


def test_no_block_straddles_a_cut_and_cursor_is_monotonic():
    rng = random.Random(1234)
    blocks = [
        BlockMetrics(
            height=rng.uniform(10, 700),
            margin_top=rng.choice([0, 4, 8, 16]),
            margin_bottom=rng.choice([0, 8]),
        )
        for _ in range(200)
    ]

    result = paginate(blocks, GEOMETRY, start_y=120)

    previous_end = 120.0
    for placement, block in zip(result.placements, blocks):
        assert placement.start_y == pytest.approx(previous_end)
        assert placement.end_y >= placement.start_y
        assert placement.end_y - placement.start_y == pytest.approx(placement.push + block.total)
        assert not placement.oversized
        top = placement.start_y + placement.push
        assert GEOMETRY.page_index(top) == GEOMETRY.page_index(placement.end_y)
        previous_end = placement.end_y
    assert result.total_height == pytest.approx(previous_end)


def test_cuts_repeat_every_usable_height_not_every_page():
    # the 60 px gap is never re-added, so cut n sits n * 60 px above page edge n
    assert GEOMETRY.page_index(2 * 1063) == 2
    assert GEOMETRY.page_index(2 * 1123 - 1) == 2
    result = paginate(_blocks(1000, 1000, 1000), GEOMETRY)

    tops = [p.start_y + p.push for p in result.placements]
    assert tops == pytest.approx([0, 1103, 2166])
