"""
Free-interval tracking
A pool's free space is recomputed from its bounds and occupied ranges
"""

from typing import Iterable, List, Tuple

from errors import InternalConsistencyError
from models import FreeBlock


def merge_ranges(ranges: Iterable[Tuple[int, int]]) -> List[Tuple[int, int]]:
    """Merge overlapping/adjacent (start, end) ranges, end exclusive"""
    merged = []
    for start, end in sorted(ranges):
        if merged and start <= merged[-1][1]:  # Overlap or adjacent
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])
    return [(s, e) for s, e in merged]


def free_blocks(
    base: int, size: int, occupied: Iterable[Tuple[int, int]]
) -> List[FreeBlock]:
    """
    Gaps of [base, base + size) not covered by the occupied (start, size) ranges.

    Occupied ranges must lie inside the pool and never overlap each other;
    either violation means the caller's state is corrupt and is raised as
    InternalConsistencyError instead of being merged away.
    """
    pool_end = base + size
    blocks = []
    cursor = base
    previous = None

    for start, length in sorted(occupied):
        end = start + length
        if length <= 0 or start < base or end > pool_end:
            raise InternalConsistencyError(
                f"Range [{start}, {end}) is outside pool [{base}, {pool_end})"
            )
        if start < cursor:
            raise InternalConsistencyError(
                f"Range [{start}, {end}) overlaps [{previous[0]}, {previous[1]})"
            )
        if start > cursor:
            blocks.append(FreeBlock(cursor, start - cursor))
        cursor = end
        previous = (start, end)

    if cursor < pool_end:
        blocks.append(FreeBlock(cursor, pool_end - cursor))
    return blocks
