from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockMetrics:
    height: float
    margin_top: float = 0.0
    margin_bottom: float = 0.0

    @property
    def total(self) -> float:
        return self.height + self.margin_top + self.margin_bottom


@dataclass(frozen=True)
class PageGeometry:
    page_height: float = 1123.0
    bottom_margin: float = 60.0
    top_pad: float = 40.0

    @property
    def usable_height(self) -> float:
        return self.page_height - self.bottom_margin

    def page_index(self, y: float) -> int:
        return math.floor(y / self.usable_height)


@dataclass(frozen=True)
class BlockPlacement:
    index: int
    start_y: float
    end_y: float
    push: float
    margin_top: float
    oversized: bool = False

    @property
    def pushed(self) -> bool:
        return self.push > 0


@dataclass(frozen=True)
class PaginationResult:
    placements: list[BlockPlacement]
    start_y: float
    total_height: float

    @property
    def pushed(self) -> list[BlockPlacement]:
        return [p for p in self.placements if p.pushed]

    @property
    def oversized(self) -> list[BlockPlacement]:
        return [p for p in self.placements if p.oversized]


def paginate(
    blocks: Sequence[BlockMetrics],
    geometry: PageGeometry,
    *,
    start_y: float = 0.0,
) -> PaginationResult:
    """Push every block that would cross a page cut down to the next page.

    ``start_y`` is where the first block begins (the header height). Blocks
    keep their order and height; the only adjustment is a larger top margin.
    ``start_y``/``end_y`` of a placement cover the block including its
    (adjusted) margins.
    """
    usable = geometry.usable_height
    if usable <= 0:
        raise ValueError(f'usable page height must be positive, got {usable}')

    current_y = float(start_y)
    placements: list[BlockPlacement] = []

    for index, block in enumerate(blocks):
        block_total = block.total
        end_y = current_y + block_total
        start_page = geometry.page_index(current_y)
        end_page = geometry.page_index(end_y)

        if start_page == end_page:
            placements.append(
                BlockPlacement(
                    index=index,
                    start_y=current_y,
                    end_y=end_y,
                    push=0.0,
                    margin_top=block.margin_top,
                )
            )
            current_y = end_y
            continue

        if block_total + geometry.top_pad >= usable:
            # Cannot fit below the top pad of any page; let it flow across the cut.
            logger.warning(
                'Content block %d is taller than a page (%.1f >= %.1f); leaving it unsplit',
                index,
                block_total + geometry.top_pad,
                usable,
            )
            placements.append(
                BlockPlacement(
                    index=index,
                    start_y=current_y,
                    end_y=end_y,
                    push=0.0,
                    margin_top=block.margin_top,
                    oversized=True,
                )
            )
            current_y = end_y
            continue

        remaining = (start_page + 1) * usable - current_y
        push = remaining + geometry.top_pad
        placements.append(
            BlockPlacement(
                index=index,
                start_y=current_y,
                end_y=current_y + push + block_total,
                push=push,
                margin_top=block.margin_top + push,
            )
        )
        current_y += push + block_total

    return PaginationResult(placements=placements, start_y=float(start_y), total_height=current_y)
